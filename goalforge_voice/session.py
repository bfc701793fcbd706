"""Live assistant session: composes transport, audio, transcript and tools."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .audio.codec import decode, decode_audio_data, sample_rate_from_mime
from .audio.input import AudioCapture
from .audio.output import PlaybackScheduler
from .config import AppConfig, AudioInputConfig, AudioOutputConfig, LiveConfig
from .errors import ConfigurationError, TransportError
from .live.client import MISSING_KEY_MESSAGE, ConnectionState, LiveConnection
from .live.events import (
    AudioPayload,
    ConnectionClosed,
    ConnectionLost,
    GoAway,
    Interrupted,
    LiveEvent,
    ToolCallBatch,
    ToolCallCancellation,
    TranscriptFragment,
    TurnComplete,
)
from .models import ConversationMessage, Project, Status
from .plan_store import PlanStore
from .settings import SettingsStore
from .tools.contracts import function_declarations
from .tools.dispatcher import ToolDispatcher
from .transcript import TranscriptAccumulator


logger = logging.getLogger(__name__)

CONNECT_FAILED_MESSAGE = "Failed to connect to AI assistant."
CONNECTION_LOST_MESSAGE = "Connection error. Please try again."

ConnectionFactory = Callable[[LiveConfig], LiveConnection]
CaptureFactory = Callable[[Callable[[Dict[str, str]], None], AudioInputConfig], AudioCapture]
PlaybackFactory = Callable[[AudioOutputConfig], PlaybackScheduler]


def prune_project_context(project: Project) -> Dict[str, Any]:
    """Compact project view for the system instruction.

    Done tasks carry `[Completed]` instead of their description and only
    incomplete subtasks are listed.
    """
    plan = []
    for task in project.plan:
        plan.append(
            {
                "id": task.id,
                "title": task.title,
                "priority": task.priority.value,
                "status": task.status.value,
                "description": "[Completed]" if task.status is Status.DONE else task.description,
                "subtasks": [
                    {"id": subtask.id, "text": subtask.text}
                    for subtask in task.subtasks
                    if not subtask.completed
                ],
                "completedSubtasksCount": sum(1 for subtask in task.subtasks if subtask.completed),
            }
        )
    return {"id": project.id, "goal": project.goal, "plan": plan}


def build_system_instruction(preamble: str, project: Project) -> str:
    context = json.dumps(prune_project_context(project))
    return f"{preamble}\nThe user's project is: {context}."


def _default_capture(sink, config: AudioInputConfig) -> AudioCapture:
    return AudioCapture(
        sink,
        sample_rate=config.sample_rate,
        block_size=config.block_size,
        device_name=config.device_name,
        device_index=config.device_index,
    )


def _default_playback(config: AudioOutputConfig) -> PlaybackScheduler:
    return PlaybackScheduler(
        sample_rate=config.sample_rate,
        device_name=config.device_name,
        device_index=config.device_index,
    )


@dataclass
class SessionResources:
    """Everything one connected session owns; released in one place."""

    connection: Optional[LiveConnection] = None
    capture: Optional[AudioCapture] = None
    playback: Optional[PlaybackScheduler] = None
    consumer: Optional[asyncio.Task] = None

    async def release(self) -> None:
        capture, self.capture = self.capture, None
        if capture is not None:
            capture.stop()
        consumer, self.consumer = self.consumer, None
        if consumer is not None and consumer is not asyncio.current_task() and not consumer.done():
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
        connection, self.connection = self.connection, None
        if connection is not None:
            await connection.close()
        playback, self.playback = self.playback, None
        if playback is not None:
            playback.close()


class LiveAssistantSession:
    """Voice assistant bridge for one project.

    All public methods are called from the event loop. Audio callbacks only
    touch the capture sink and the playback scheduler.
    """

    def __init__(
        self,
        config: AppConfig,
        settings: SettingsStore,
        plan_store: PlanStore,
        on_error: Optional[Callable[[str], None]] = None,
        on_change: Optional[Callable[[], None]] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        capture_factory: Optional[CaptureFactory] = None,
        playback_factory: Optional[PlaybackFactory] = None,
    ) -> None:
        self._config = config
        self._settings = settings
        self._plan_store = plan_store
        self._on_error = on_error
        self._on_change = on_change
        self._connection_factory = connection_factory or LiveConnection
        self._capture_factory = capture_factory or _default_capture
        self._playback_factory = playback_factory or _default_playback

        self._state = ConnectionState.IDLE
        self._resources = SessionResources()
        self._transcript = TranscriptAccumulator(on_change=self._notify)
        self._dispatcher = ToolDispatcher(
            plan_store,
            on_error=self._report_error,
            on_system_message=self._transcript.add_system,
        )

    @property
    def connection_state(self) -> str:
        return self._state.public

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def is_listening(self) -> bool:
        capture = self._resources.capture
        return capture is not None and capture.is_capturing

    @property
    def user_transcript(self) -> str:
        return self._transcript.user_transcript

    @property
    def ai_transcript(self) -> str:
        return self._transcript.ai_transcript

    @property
    def messages(self) -> List[ConversationMessage]:
        return self._transcript.messages

    @property
    def playback(self) -> Optional[PlaybackScheduler]:
        return self._resources.playback

    async def connect(self, project: Optional[Project]) -> bool:
        """Open a session for `project`. Returns True once the model is ready."""
        if project is None:
            await self.disconnect()
            return False

        await self._teardown()
        self._set_state(ConnectionState.CONNECTING)
        self._transcript.reset()

        api_key = self._settings.get_active_credential()
        if not api_key:
            await self._fail(MISSING_KEY_MESSAGE)
            return False

        resources = self._resources
        try:
            instruction = build_system_instruction(self._config.live.instructions_prompt, project)
            resources.playback = self._playback_factory(self._config.audio_output)
            resources.playback.open()
            resources.connection = self._connection_factory(self._config.live)
            await resources.connection.connect(api_key, instruction, function_declarations())
        except asyncio.CancelledError:
            await self._teardown()
            self._set_state(ConnectionState.IDLE)
            raise
        except ConfigurationError as exc:
            await self._fail(str(exc))
            return False
        except Exception as exc:
            logger.error("Session: failed to connect: %s", exc)
            await self._fail(CONNECT_FAILED_MESSAGE)
            return False

        resources.consumer = asyncio.create_task(
            self._consume(resources.connection), name="live-session-events"
        )
        self._set_state(ConnectionState.CONNECTED)
        logger.info("Session: connected for project %s.", project.id)
        return True

    async def disconnect(self) -> None:
        """Tear the session down. Safe to call any number of times."""
        await self._teardown()
        self._set_state(ConnectionState.IDLE)

    def start_listening(self) -> None:
        """Open the microphone and stream it to the model.

        Microphone errors propagate to the caller; the session stays connected.
        """
        if not self.is_connected:
            raise TransportError("Live session is not connected.")
        if self.is_listening:
            logger.debug("Session: already listening.")
            return
        resources = self._resources
        if resources.playback is not None:
            resources.playback.resume()
        capture = self._capture_factory(resources.connection.send_audio_chunk, self._config.audio_input)
        capture.start()
        resources.capture = capture
        logger.info("Session: listening.")
        self._notify()

    def stop_listening(self) -> None:
        capture, self._resources.capture = self._resources.capture, None
        if capture is None:
            return
        capture.stop()
        logger.info("Session: stopped listening.")
        self._notify()

    def send_text_message(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        connection = self._resources.connection
        if not self.is_connected or connection is None:
            logger.warning("Session: dropping text message, not connected.")
            return False
        self._transcript.reset()
        self._transcript.add_user_text(text)
        connection.send_text(text)
        return True

    async def _consume(self, connection: LiveConnection) -> None:
        while True:
            event = await connection.events.get()
            if isinstance(event, ConnectionLost):
                await self._connection_lost(event)
                return
            if isinstance(event, ConnectionClosed):
                logger.info("Session: server closed the connection (%s).", event.reason)
                await self._teardown()
                self._set_state(ConnectionState.IDLE)
                return
            try:
                self._route(event, connection)
            except Exception:
                logger.exception("Session: failed to handle %s", type(event).__name__)

    def _route(self, event: LiveEvent, connection: LiveConnection) -> None:
        if isinstance(event, TranscriptFragment):
            self._transcript.partial(event.stream, event.text)
        elif isinstance(event, AudioPayload):
            self._play(event)
        elif isinstance(event, Interrupted):
            if self._resources.playback is not None:
                self._resources.playback.interrupt()
        elif isinstance(event, TurnComplete):
            self._transcript.turn_complete()
        elif isinstance(event, ToolCallBatch):
            self._dispatcher.dispatch_batch(event.calls, connection.send_tool_result)
        elif isinstance(event, ToolCallCancellation):
            logger.info("Session: server cancelled tool calls %s", event.ids)
        elif isinstance(event, GoAway):
            logger.warning("Session: server will close the connection (time left: %s).", event.time_left)
        else:
            logger.debug("Session: ignoring event %s", type(event).__name__)

    def _play(self, payload: AudioPayload) -> None:
        playback = self._resources.playback
        if playback is None:
            return
        chunk = decode_audio_data(
            decode(payload.data),
            sample_rate=sample_rate_from_mime(payload.mime_type, self._config.audio_output.sample_rate),
        )
        playback.schedule(chunk)

    async def _connection_lost(self, event: ConnectionLost) -> None:
        logger.error("Session: connection lost (%s).", event.reason)
        self._set_state(ConnectionState.ERROR)
        self._report_error(CONNECTION_LOST_MESSAGE)
        await self._teardown()

    async def _fail(self, message: str) -> None:
        self._set_state(ConnectionState.ERROR)
        self._report_error(message)
        self._transcript.add_system(f"Error: {message}")
        await self._teardown()

    async def _teardown(self) -> None:
        resources, self._resources = self._resources, SessionResources()
        await resources.release()

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug("Session: state %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify()

    def _report_error(self, message: str) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(message)
        except Exception:
            logger.exception("Session: error callback failed")

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change()
        except Exception:
            logger.exception("Session: change listener failed")

    async def __aenter__(self) -> "LiveAssistantSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()
