"""Typed inbound events demultiplexed from Live server messages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


logger = logging.getLogger(__name__)

JsonDict = Dict[str, Any]

USER_STREAM = "user"
AI_STREAM = "ai"


@dataclass(frozen=True)
class SetupComplete:
    pass


@dataclass(frozen=True)
class TranscriptFragment:
    stream: str
    text: str
    finished: bool = False


@dataclass(frozen=True)
class AudioPayload:
    data: str
    mime_type: str = "audio/pcm;rate=24000"


@dataclass(frozen=True)
class Interrupted:
    pass


@dataclass(frozen=True)
class TurnComplete:
    pass


@dataclass(frozen=True)
class FunctionCall:
    id: Optional[str]
    name: str
    args: JsonDict = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallBatch:
    calls: List[FunctionCall]


@dataclass(frozen=True)
class ToolCallCancellation:
    ids: List[str]


@dataclass(frozen=True)
class GoAway:
    time_left: Optional[str] = None


@dataclass(frozen=True)
class ConnectionClosed:
    reason: str = ""


@dataclass(frozen=True)
class ConnectionLost:
    reason: str


LiveEvent = Union[
    SetupComplete,
    TranscriptFragment,
    AudioPayload,
    Interrupted,
    TurnComplete,
    ToolCallBatch,
    ToolCallCancellation,
    GoAway,
    ConnectionClosed,
    ConnectionLost,
]


def _transcription(content: JsonDict, key: str, stream: str) -> Optional[TranscriptFragment]:
    payload = content.get(key)
    if not isinstance(payload, dict):
        return None
    text = payload.get("text")
    if not isinstance(text, str) or not text:
        return None
    return TranscriptFragment(stream=stream, text=text, finished=bool(payload.get("finished")))


def _audio_parts(content: JsonDict) -> List[AudioPayload]:
    turn = content.get("modelTurn") or {}
    payloads: List[AudioPayload] = []
    for part in turn.get("parts") or []:
        inline = part.get("inlineData") if isinstance(part, dict) else None
        if not isinstance(inline, dict):
            continue
        mime_type = str(inline.get("mimeType") or "audio/pcm;rate=24000")
        data = inline.get("data")
        if mime_type.startswith("audio/") and isinstance(data, str) and data:
            payloads.append(AudioPayload(data=data, mime_type=mime_type))
    return payloads


def _function_calls(tool_call: JsonDict) -> List[FunctionCall]:
    calls: List[FunctionCall] = []
    for raw in tool_call.get("functionCalls") or []:
        if not isinstance(raw, dict):
            continue
        args = raw.get("args")
        calls.append(
            FunctionCall(
                id=raw.get("id"),
                name=str(raw.get("name") or ""),
                args=args if isinstance(args, dict) else {},
            )
        )
    return calls


def parse_server_message(data: JsonDict) -> List[LiveEvent]:
    """Split one server message into events.

    Within a serverContent message the order is transcripts, audio,
    interruption, then turn completion.
    """
    events: List[LiveEvent] = []
    if "setupComplete" in data:
        events.append(SetupComplete())

    content = data.get("serverContent")
    if isinstance(content, dict):
        for key, stream in (("inputTranscription", USER_STREAM), ("outputTranscription", AI_STREAM)):
            fragment = _transcription(content, key, stream)
            if fragment is not None:
                events.append(fragment)
        events.extend(_audio_parts(content))
        if content.get("interrupted"):
            events.append(Interrupted())
        if content.get("turnComplete"):
            events.append(TurnComplete())

    tool_call = data.get("toolCall")
    if isinstance(tool_call, dict):
        calls = _function_calls(tool_call)
        if calls:
            events.append(ToolCallBatch(calls=calls))

    cancellation = data.get("toolCallCancellation")
    if isinstance(cancellation, dict):
        events.append(ToolCallCancellation(ids=[str(i) for i in cancellation.get("ids") or []]))

    go_away = data.get("goAway")
    if isinstance(go_away, dict):
        events.append(GoAway(time_left=go_away.get("timeLeft")))

    if not events:
        logger.debug("Live: unhandled server message keys=%s", sorted(data.keys()))
    return events
