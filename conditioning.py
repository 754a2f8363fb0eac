"""Downmix and resample captured audio to mono 16 kHz float32."""

from __future__ import annotations

import math

import numpy as np

from models import TARGET_SAMPLE_RATE, CaptureSession, ConditionedAudio


def downmix(samples: np.ndarray, channels: int) -> np.ndarray:
    """Average each interleaved frame into a single mono sample."""
    if channels < 1:
        raise ValueError(f"channels must be >= 1, got {channels}")
    data = np.asarray(samples, dtype=np.float32)
    if channels == 1:
        return data
    n_frames = len(data) // channels
    frames = data[: n_frames * channels].reshape(n_frames, channels)
    return frames.mean(axis=1, dtype=np.float64).astype(np.float32)


def resample(
    samples: np.ndarray,
    source_rate: int,
    target_rate: int = TARGET_SAMPLE_RATE,
) -> np.ndarray:
    """Linear-interpolation resampler.

    Output sample ``i`` reads position ``i * source_rate / target_rate`` and
    blends the two neighbouring input samples, both clamped to the last
    valid index. Equal rates return the input untouched.
    """
    data = np.asarray(samples, dtype=np.float32)
    if source_rate <= 0 or target_rate <= 0:
        raise ValueError(f"invalid sample rates {source_rate} -> {target_rate}")
    if source_rate == target_rate or len(data) == 0:
        return data

    ratio = source_rate / target_rate
    output_len = math.ceil(len(data) / ratio)
    last = len(data) - 1

    src_index = np.arange(output_len, dtype=np.float64) * ratio
    idx = np.floor(src_index).astype(np.int64)
    frac = src_index - idx
    s0 = data[np.minimum(idx, last)].astype(np.float64)
    s1 = data[np.minimum(idx + 1, last)].astype(np.float64)
    return (s0 + (s1 - s0) * frac).astype(np.float32)


def condition(session: CaptureSession, target_rate: int = TARGET_SAMPLE_RATE) -> ConditionedAudio:
    mono = downmix(session.samples, session.channels)
    resampled = resample(mono, session.sample_rate, target_rate)
    return ConditionedAudio(
        samples=np.clip(resampled, -1.0, 1.0).astype(np.float32),
        sample_rate=target_rate,
    )
