import base64

import numpy as np

from goalforge_voice.audio.codec import (
    AudioChunk,
    create_blob,
    decode,
    decode_audio_data,
    encode,
    float_to_pcm16,
    sample_rate_from_mime,
)


def test_decode_audio_data_scales_pcm16_to_float():
    raw = np.array([0, 16384, -32768, 32767], dtype="<i2").tobytes()

    chunk = decode_audio_data(raw, sample_rate=24000)

    assert chunk.samples.shape == (4, 1)
    assert chunk.samples.dtype == np.float32
    assert chunk.samples[:, 0].tolist() == [0.0, 0.5, -1.0, 32767 / 32768.0]
    assert chunk.duration == 4 / 24000


def test_decode_audio_data_drops_trailing_odd_byte():
    raw = np.array([100, 200], dtype="<i2").tobytes() + b"\x01"

    chunk = decode_audio_data(raw)

    assert chunk.frames == 2


def test_audio_chunk_duration_for_stereo():
    chunk = AudioChunk(samples=np.zeros((480, 2), dtype=np.float32), sample_rate=48000)

    assert chunk.channels == 2
    assert chunk.duration == 0.01


def test_float_to_pcm16_clips_out_of_range_samples():
    pcm = float_to_pcm16(np.array([1.5, 1.0, 0.0, -1.0, -2.0], dtype=np.float32))

    assert pcm.tolist() == [32767, 32767, 0, -32768, -32768]


def test_create_blob_encodes_little_endian_pcm16():
    blob = create_blob(np.array([0.5, -0.5], dtype=np.float32))

    assert blob["mimeType"] == "audio/pcm;rate=16000"
    pcm = np.frombuffer(base64.b64decode(blob["data"]), dtype="<i2")
    assert pcm.tolist() == [16384, -16384]


def test_base64_helpers():
    assert decode(encode(b"\x00\x01\xff")) == b"\x00\x01\xff"


def test_sample_rate_from_mime():
    assert sample_rate_from_mime("audio/pcm;rate=16000") == 16000
    assert sample_rate_from_mime("audio/pcm; rate=22050") == 22050
    assert sample_rate_from_mime("audio/pcm") == 24000
    assert sample_rate_from_mime(None, default=8000) == 8000
