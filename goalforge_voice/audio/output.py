"""Gapless playback scheduling for model audio with barge-in support."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import numpy as np

from ..errors import AudioOutputError
from .codec import OUTPUT_SAMPLE_RATE, AudioChunk


logger = logging.getLogger(__name__)

StreamFactory = Callable[..., Any]


def _resolve_device(device_name: Optional[str], device_index: Optional[int]) -> Optional[int]:
    if device_index is not None:
        return device_index
    if not device_name:
        return None
    name_lower = device_name.strip().lower()
    if name_lower in {"pipewire", "pulse", "pulseaudio", "default", "auto"}:
        return None
    import sounddevice as sd

    for index, info in enumerate(sd.query_devices()):
        if info.get("max_output_channels", 0) <= 0:
            continue
        if name_lower in str(info.get("name", "")).lower():
            return index
    raise AudioOutputError(f"No output device found matching name '{device_name}'.")


def _open_output_stream(**kwargs: Any) -> Any:
    # sounddevice loads PortAudio at import time, so it is imported on first use.
    import sounddevice as sd

    return sd.OutputStream(**kwargs)


def _resample_linear(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    if source_rate == target_rate or samples.size == 0:
        return samples.astype(np.float32, copy=False)
    duration = samples.size / float(source_rate)
    new_size = int(round(duration * target_rate))
    if new_size <= 1:
        return samples.astype(np.float32, copy=True)
    x_old = np.arange(samples.size, dtype=np.float32)
    x_new = np.linspace(0, samples.size - 1, new_size, dtype=np.float32)
    return np.interp(x_new, x_old, samples).astype(np.float32)


@dataclass(eq=False)
class ScheduledUnit:
    """One chunk placed on the output timeline."""

    start_frame: int
    samples: np.ndarray = field(repr=False)
    sample_rate: int
    stopped: bool = False

    @property
    def frames(self) -> int:
        return int(self.samples.size)

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.frames

    @property
    def start_time(self) -> float:
        return self.start_frame / float(self.sample_rate)

    @property
    def duration(self) -> float:
        return self.frames / float(self.sample_rate)


class PlaybackScheduler:
    """Schedules decoded chunks back to back on the output stream clock.

    The clock is the number of frames the output callback has rendered.
    A chunk starts at max(now, next_start_time) and moves the cursor to its
    end, so consecutive chunks neither gap nor overlap. `interrupt()` drops
    every scheduled unit and resets the cursor to zero.
    """

    def __init__(
        self,
        sample_rate: int = OUTPUT_SAMPLE_RATE,
        device_name: Optional[str] = None,
        device_index: Optional[int] = None,
        stream_factory: Optional[StreamFactory] = None,
    ) -> None:
        self.sample_rate = int(sample_rate)
        self.device_name = device_name
        self.device_index = device_index
        self._stream_factory = stream_factory or _open_output_stream
        self._stream = None
        self._lock = threading.Lock()
        self._frames_rendered = 0
        self._next_frame = 0
        self._active: List[ScheduledUnit] = []

    @property
    def current_time(self) -> float:
        return self._frames_rendered / float(self.sample_rate)

    @property
    def next_start_time(self) -> float:
        return self._next_frame / float(self.sample_rate)

    @property
    def active(self) -> List[ScheduledUnit]:
        with self._lock:
            return list(self._active)

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self) -> None:
        """Open and start the output stream if it is not running yet."""
        if self._stream is not None:
            return
        device = _resolve_device(self.device_name, self.device_index)
        logger.info(
            "Playback: opening stream (sample_rate=%d, device=%s).",
            self.sample_rate,
            device if device is not None else "default",
        )
        try:
            stream = self._stream_factory(
                samplerate=float(self.sample_rate),
                channels=1,
                dtype="float32",
                blocksize=0,
                device=device,
                callback=self._render,
            )
            stream.start()
        except Exception as exc:
            raise AudioOutputError(f"Failed to open output stream: {exc}") from exc
        self._stream = stream

    resume = open

    def schedule(self, chunk: AudioChunk) -> Optional[ScheduledUnit]:
        samples = chunk.samples
        if samples.ndim > 1:
            samples = samples.mean(axis=1)
        samples = _resample_linear(np.asarray(samples, dtype=np.float32), chunk.sample_rate, self.sample_rate)
        if samples.size == 0:
            return None
        with self._lock:
            start_frame = max(self._frames_rendered, self._next_frame)
            unit = ScheduledUnit(start_frame=start_frame, samples=samples, sample_rate=self.sample_rate)
            self._next_frame = unit.end_frame
            self._active.append(unit)
        logger.debug(
            "Playback: scheduled %d frames at %.3fs (now=%.3fs, active=%d).",
            unit.frames,
            unit.start_time,
            self.current_time,
            len(self._active),
        )
        return unit

    def interrupt(self) -> int:
        """Silence everything scheduled and reset the cursor. Returns the number of units dropped."""
        with self._lock:
            dropped = len(self._active)
            for unit in self._active:
                unit.stopped = True
            self._active.clear()
            self._next_frame = 0
        if dropped:
            logger.info("Playback: interrupted, dropped %d scheduled chunk(s).", dropped)
        return dropped

    def _render(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug("Playback stream status: %s", status)
        mix = np.zeros(frames, dtype=np.float32)
        with self._lock:
            window_start = self._frames_rendered
            window_end = window_start + frames
            remaining: List[ScheduledUnit] = []
            for unit in self._active:
                begin = max(unit.start_frame, window_start)
                end = min(unit.end_frame, window_end)
                if end > begin:
                    mix[begin - window_start:end - window_start] += unit.samples[
                        begin - unit.start_frame:end - unit.start_frame
                    ]
                if unit.end_frame > window_end:
                    remaining.append(unit)
            self._active = remaining
            self._frames_rendered = window_end
        np.clip(mix, -1.0, 1.0, out=mix)
        if outdata is not None:
            outdata[:] = mix.reshape(-1, 1) if outdata.ndim > 1 else mix

    def close(self) -> None:
        """Flush all scheduled audio, release the output stream and reset the clock."""
        self.interrupt()
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
            except Exception as exc:
                logger.debug("Playback: stream stop failed: %s", exc)
            try:
                stream.close()
            except Exception as exc:
                logger.debug("Playback: stream close failed: %s", exc)
            logger.info("Playback: stream closed.")
        with self._lock:
            self._frames_rendered = 0
            self._next_frame = 0
