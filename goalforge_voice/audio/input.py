"""Microphone capture that streams encoded blocks to the live session."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

import numpy as np

from ..errors import AudioInputError
from .codec import INPUT_SAMPLE_RATE, create_blob


logger = logging.getLogger(__name__)

BlobSink = Callable[[Dict[str, str]], None]
StreamFactory = Callable[..., Any]


def _resolve_device(device_name: Optional[str], device_index: Optional[int]) -> Optional[int]:
    """Resolve a device hint to a PortAudio index; backend names mean the system default."""
    if device_index is not None:
        return device_index
    if not device_name:
        return None
    name_lower = device_name.strip().lower()
    if name_lower in {"pipewire", "pulse", "pulseaudio", "default", "auto"}:
        return None
    import sounddevice as sd

    for index, info in enumerate(sd.query_devices()):
        if info.get("max_input_channels", 0) <= 0:
            continue
        if name_lower in str(info.get("name", "")).lower():
            return index
    raise AudioInputError(f"No input device found matching name '{device_name}'.")


def _open_input_stream(**kwargs: Any) -> Any:
    # sounddevice loads PortAudio at import time, so it is imported on first use.
    import sounddevice as sd

    return sd.InputStream(**kwargs)


class AudioCapture:
    """Pulls microphone blocks on the PortAudio thread and forwards them encoded.

    Each callback encodes its block independently and hands it to `sink`
    without waiting on the network. There is no backpressure on sends.
    """

    def __init__(
        self,
        sink: BlobSink,
        sample_rate: int = INPUT_SAMPLE_RATE,
        block_size: int = 4096,
        device_name: Optional[str] = None,
        device_index: Optional[int] = None,
        stream_factory: Optional[StreamFactory] = None,
    ) -> None:
        self._sink = sink
        self.sample_rate = int(sample_rate)
        self.block_size = int(block_size)
        self.device_name = device_name
        self.device_index = device_index
        self._stream_factory = stream_factory or _open_input_stream
        self._stream = None
        self._active = False
        self._lock = threading.Lock()
        self.blocks_sent = 0

    @property
    def is_capturing(self) -> bool:
        return self._active

    def start(self) -> None:
        if self._active:
            raise AudioInputError("Audio capture is already running.")
        device = _resolve_device(self.device_name, self.device_index)
        logger.info(
            "AudioCapture: opening stream (sample_rate=%d, block_size=%d, device=%s).",
            self.sample_rate,
            self.block_size,
            device if device is not None else "default",
        )
        try:
            stream = self._stream_factory(
                samplerate=float(self.sample_rate),
                channels=1,
                dtype="float32",
                blocksize=self.block_size,
                device=device,
                callback=self._callback,
            )
        except Exception as exc:
            raise AudioInputError(f"Failed to open input stream: {exc}") from exc

        with self._lock:
            self._stream = stream
            self._active = True
            self.blocks_sent = 0
        try:
            stream.start()
        except Exception as exc:
            self.stop()
            raise AudioInputError(f"Failed to start input stream: {exc}") from exc
        logger.info("AudioCapture: stream started.")

    def _callback(self, indata, frames, time_info, status) -> None:
        if not self._active:
            return
        if status:
            logger.debug("AudioCapture stream status: %s", status)
        if frames <= 0 or indata is None or indata.size == 0:
            return
        # PortAudio reuses the buffer, so the block is copied before encoding.
        block = np.array(indata[:, 0] if indata.ndim > 1 else indata, dtype=np.float32, copy=True)
        blob = create_blob(block, self.sample_rate)
        # Forwarding under the lock means stop() cannot return while a block is in flight.
        with self._lock:
            if not self._active:
                return
            self.blocks_sent += 1
            self._sink(blob)

    def stop(self) -> None:
        """Stop and release the microphone. Idempotent."""
        with self._lock:
            was_active = self._active
            self._active = False
            stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        except Exception as exc:
            logger.debug("AudioCapture: stream stop failed: %s", exc)
        try:
            stream.close()
        except Exception as exc:
            logger.debug("AudioCapture: stream close failed: %s", exc)
        if was_active:
            logger.info("AudioCapture: stream closed (%d blocks sent).", self.blocks_sent)
