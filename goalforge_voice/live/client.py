"""Websocket client for the Gemini Live bidirectional streaming API."""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import websockets

from ..config import LiveConfig
from ..errors import ConfigurationError, TransportError
from .events import ConnectionClosed, ConnectionLost, LiveEvent, SetupComplete, parse_server_message


logger = logging.getLogger(__name__)

JsonDict = Dict[str, Any]

MISSING_KEY_MESSAGE = "Gemini API key is missing. Please configure it in Settings."


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"

    @property
    def public(self) -> str:
        """UI view of the state; a ready connection reads as 'idle'."""
        if self is ConnectionState.CONNECTED:
            return ConnectionState.IDLE.value
        return self.value


def build_setup_message(
    config: LiveConfig,
    system_instruction: str,
    function_declarations: List[JsonDict],
) -> JsonDict:
    generation_config: JsonDict = {"responseModalities": ["AUDIO"]}
    if config.voice:
        generation_config["speechConfig"] = {
            "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": config.voice}}
        }
    setup: JsonDict = {
        "model": config.model if config.model.startswith("models/") else f"models/{config.model}",
        "generationConfig": generation_config,
        "systemInstruction": {"parts": [{"text": system_instruction}]},
        "inputAudioTranscription": {},
        "outputAudioTranscription": {},
    }
    if function_declarations:
        setup["tools"] = [{"functionDeclarations": function_declarations}]
    return {"setup": setup}


class LiveConnection:
    """One streaming session: connect, send, demultiplex inbound messages, close.

    Outbound messages go through a queue drained by a writer task so that
    audio threads never await the network. Inbound messages are parsed into
    typed events and placed on `events` for a single consumer.
    """

    def __init__(self, config: LiveConfig, connector: Optional[Callable[..., Any]] = None) -> None:
        self._config = config
        self._connector = connector or websockets.connect
        self._ws = None
        self._state = ConnectionState.IDLE
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._events: "asyncio.Queue[LiveEvent]" = asyncio.Queue()
        self._outbox: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._reader_task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None
        self._closing = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def events(self) -> "asyncio.Queue[LiveEvent]":
        return self._events

    async def connect(
        self,
        api_key: Optional[str],
        system_instruction: str,
        function_declarations: List[JsonDict],
    ) -> None:
        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            await self.disconnect()
        if not api_key:
            self._state = ConnectionState.ERROR
            raise ConfigurationError(MISSING_KEY_MESSAGE)

        self._state = ConnectionState.CONNECTING
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()
        self._outbox = asyncio.Queue()
        self._closing = False

        url = f"{self._config.endpoint}?key={api_key}"
        logger.info("Live: connecting (model=%s)...", self._config.model)
        try:
            self._ws = await self._connector(
                url,
                max_size=20_000_000,
                open_timeout=self._config.connect_timeout,
            )
            setup = build_setup_message(self._config, system_instruction, function_declarations)
            await self._ws.send(json.dumps(setup))
            await asyncio.wait_for(self._await_setup_complete(), timeout=self._config.setup_timeout)
        except asyncio.CancelledError:
            await self._release()
            self._state = ConnectionState.IDLE
            raise
        except Exception as exc:
            await self._release()
            self._state = ConnectionState.ERROR
            if isinstance(exc, asyncio.TimeoutError):
                raise TransportError(
                    f"Live setup timed out after {self._config.setup_timeout} seconds"
                ) from exc
            raise TransportError(f"Live connect failed: {exc}") from exc

        self._reader_task = asyncio.create_task(self._read_loop(), name="live-reader")
        self._writer_task = asyncio.create_task(self._write_loop(), name="live-writer")
        self._state = ConnectionState.CONNECTED
        logger.info("Live: handshake successful.")

    async def _await_setup_complete(self) -> None:
        while True:
            raw = await self._ws.recv()
            events = parse_server_message(_decode_frame(raw))
            ready = False
            for event in events:
                if isinstance(event, SetupComplete):
                    ready = True
                else:
                    self._events.put_nowait(event)
            if ready:
                return

    async def _read_loop(self) -> None:
        try:
            # Iteration ends without raising on a clean close frame.
            async for raw in self._ws:
                try:
                    data = _decode_frame(raw)
                except ValueError as exc:
                    logger.warning("Live: dropping undecodable message: %s", exc)
                    continue
                for event in parse_server_message(data):
                    self._events.put_nowait(event)
        except asyncio.CancelledError:
            raise
        except websockets.ConnectionClosedOK as exc:
            self._server_closed(f"Live connection closed: {exc}")
            return
        except websockets.ConnectionClosed as exc:
            self._lost(f"Live connection closed abnormally: {exc}")
            return
        except Exception as exc:
            logger.exception("Live: receive loop failed")
            self._lost(f"Live receive failed: {exc}")
            return
        self._server_closed("Live connection closed by server")

    def _server_closed(self, reason: str) -> None:
        if self._closing:
            return
        logger.info("%s", reason)
        self._state = ConnectionState.IDLE
        self._events.put_nowait(ConnectionClosed(reason=reason))

    def _lost(self, reason: str) -> None:
        if self._closing:
            return
        logger.error("%s", reason)
        self._state = ConnectionState.ERROR
        self._events.put_nowait(ConnectionLost(reason=reason))

    async def _write_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            if message is None:
                return
            try:
                await self._ws.send(message)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                # The reader reports the loss once the socket is gone.
                logger.warning("Live: send failed: %s", exc)
                return

    def _enqueue(self, message: str) -> None:
        if self._state is ConnectionState.CONNECTED:
            self._outbox.put_nowait(message)

    def _post(self, payload: JsonDict) -> None:
        loop = self._loop
        if loop is None or self._state is not ConnectionState.CONNECTED:
            return
        message = json.dumps(payload)
        try:
            loop.call_soon_threadsafe(self._enqueue, message)
        except RuntimeError:
            logger.debug("Live: event loop closed; dropping outbound message.")

    def send_audio_chunk(self, blob: Dict[str, str]) -> None:
        """Queue one encoded audio block. Safe to call from audio threads; no-op when not connected."""
        self._post({"realtimeInput": {"mediaChunks": [blob]}})

    def send_text(self, text: str) -> None:
        if not self.is_connected:
            raise TransportError("Live session is not connected.")
        if not text or not text.strip():
            raise ValueError("Text turn must not be empty.")
        self._post(
            {
                "clientContent": {
                    "turns": [{"role": "user", "parts": [{"text": text}]}],
                    "turnComplete": True,
                }
            }
        )

    def send_tool_result(self, call_id: Optional[str], name: str, result: str) -> None:
        self._post(
            {
                "toolResponse": {
                    "functionResponses": [
                        {"id": call_id, "name": name, "response": {"result": result}}
                    ]
                }
            }
        )

    async def close(self) -> None:
        """Release the socket and background tasks; an ERROR state is kept."""
        await self._release()
        if self._state is not ConnectionState.ERROR:
            self._state = ConnectionState.IDLE

    async def disconnect(self) -> None:
        """Close the session if open. Safe to call any number of times."""
        await self._release()
        self._state = ConnectionState.IDLE

    async def _release(self) -> None:
        self._closing = True
        current = asyncio.current_task()
        for task in (self._writer_task, self._reader_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as exc:
                    logger.debug("Live: background task ended with %s", exc)
        self._writer_task = None
        self._reader_task = None
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as exc:
                logger.debug("Live: error while closing websocket: %s", exc)
            logger.info("Live: disconnected.")


def _decode_frame(raw: Any) -> JsonDict:
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Live message is not a JSON object")
    return data
