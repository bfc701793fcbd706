"""Conversation log built from streamed transcription fragments."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from .live.events import AI_STREAM, USER_STREAM
from .models import ConversationMessage, Sender


logger = logging.getLogger(__name__)

_SENDERS = {USER_STREAM: Sender.USER, AI_STREAM: Sender.AI}


class TranscriptAccumulator:
    """Keeps the message list with at most one open (non-final) entry.

    A partial for the same stream overwrites the open entry; a partial for
    the other stream, a turn completion or a final message closes it.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None) -> None:
        self._messages: List[ConversationMessage] = []
        self._lock = threading.Lock()
        self._on_change = on_change

    @property
    def messages(self) -> List[ConversationMessage]:
        with self._lock:
            return [message.model_copy() for message in self._messages]

    @property
    def user_transcript(self) -> str:
        return self._open_text(Sender.USER)

    @property
    def ai_transcript(self) -> str:
        return self._open_text(Sender.AI)

    def partial(self, stream: str, text: str) -> None:
        sender = _sender_for(stream)
        with self._lock:
            tail = self._open_entry()
            if tail is not None and tail.sender is not sender:
                tail.is_final = True
                tail = None
            if tail is None:
                self._messages.append(ConversationMessage(sender=sender, text=text))
            else:
                tail.text = text
        self._notify()

    def turn_complete(self) -> None:
        with self._lock:
            self._close_open_entry()
        self._notify()

    def reset(self) -> None:
        """Close any open entry before a typed turn."""
        self.turn_complete()

    def add_system(self, text: str) -> None:
        self._add_final(Sender.SYSTEM, text)

    def add_user_text(self, text: str) -> None:
        self._add_final(Sender.USER, text)

    def _add_final(self, sender: Sender, text: str) -> None:
        with self._lock:
            self._close_open_entry()
            self._messages.append(ConversationMessage(sender=sender, text=text, is_final=True))
        self._notify()

    def _open_entry(self) -> Optional[ConversationMessage]:
        if self._messages and not self._messages[-1].is_final:
            return self._messages[-1]
        return None

    def _close_open_entry(self) -> None:
        tail = self._open_entry()
        if tail is not None:
            tail.is_final = True

    def _open_text(self, sender: Sender) -> str:
        with self._lock:
            tail = self._open_entry()
            if tail is not None and tail.sender is sender:
                return tail.text
            return ""

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change()
        except Exception:
            logger.exception("Transcript: change listener failed")


def _sender_for(stream: str) -> Sender:
    try:
        return _SENDERS[stream]
    except KeyError:
        raise ValueError(f"Unknown transcript stream: {stream!r}") from None
