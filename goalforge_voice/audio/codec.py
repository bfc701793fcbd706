"""PCM helpers for the Live wire format (base64 PCM16 little-endian)."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np


INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000


@dataclass(frozen=True)
class AudioChunk:
    """Decoded audio ready for scheduling: float32 samples shaped (frames, channels)."""

    samples: np.ndarray
    sample_rate: int

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def channels(self) -> int:
        return int(self.samples.shape[1]) if self.samples.ndim > 1 else 1

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frames / float(self.sample_rate)


def decode(data: str) -> bytes:
    """Base64 text to raw bytes."""
    return base64.b64decode(data)


def encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def decode_audio_data(raw: bytes, sample_rate: int = OUTPUT_SAMPLE_RATE, channels: int = 1) -> AudioChunk:
    """Convert interleaved PCM16 bytes into a float32 chunk in [-1.0, 1.0)."""
    if channels <= 0:
        raise ValueError("channels must be positive")
    usable = len(raw) - (len(raw) % 2)
    pcm16 = np.frombuffer(raw[:usable], dtype="<i2")
    frames = pcm16.size // channels
    pcm16 = pcm16[: frames * channels]
    samples = (pcm16.astype(np.float32) / 32768.0).reshape(frames, channels)
    return AudioChunk(samples=samples, sample_rate=sample_rate)


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    clipped = np.clip(np.asarray(samples, dtype=np.float32).reshape(-1), -1.0, 1.0)
    return np.clip(clipped * 32768.0, -32768, 32767).astype("<i2")


def create_blob(samples: np.ndarray, sample_rate: int = INPUT_SAMPLE_RATE) -> Dict[str, str]:
    """Encode float samples as the realtime media blob expected by the Live API."""
    pcm16 = float_to_pcm16(samples)
    return {
        "data": encode(pcm16.tobytes()),
        "mimeType": f"audio/pcm;rate={sample_rate}",
    }


def sample_rate_from_mime(mime_type: Optional[str], default: int = OUTPUT_SAMPLE_RATE) -> int:
    """Read the `rate=` parameter of an `audio/pcm;rate=N` mime type."""
    for param in (mime_type or "").split(";")[1:]:
        key, _, value = param.strip().partition("=")
        if key.lower() == "rate" and value.isdigit():
            return int(value)
    return default
