"""16-bit PCM WAV encoding for conditioned audio."""

from __future__ import annotations

import io
import wave
from pathlib import Path

import numpy as np

from models import ConditionedAudio

PCM16_MAX = 32767


def to_pcm16(samples: np.ndarray) -> np.ndarray:
    clamped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    # astype truncates toward zero
    return (clamped * PCM16_MAX).astype(np.int16)


def encode_wav(audio: ConditionedAudio) -> bytes:
    """Encode mono float samples as a 16-bit PCM WAV file in memory."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(audio.sample_rate)
        wf.writeframes(to_pcm16(audio.samples).astype("<i2").tobytes())
    return buf.getvalue()


def decode_wav(data: bytes) -> ConditionedAudio:
    with wave.open(io.BytesIO(data), "rb") as wf:
        if wf.getnchannels() != 1 or wf.getsampwidth() != 2:
            raise ValueError("expected 16-bit mono WAV")
        rate = wf.getframerate()
        pcm = np.frombuffer(wf.readframes(wf.getnframes()), dtype="<i2")
    return ConditionedAudio(samples=(pcm.astype(np.float32) / PCM16_MAX), sample_rate=rate)


def write_wav(audio: ConditionedAudio, path: Path | str) -> Path:
    target = Path(path)
    target.write_bytes(encode_wav(audio))
    return target

