"""Core data models for the app."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

import numpy as np

TARGET_SAMPLE_RATE = 16000


class PipelineState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    CONDITIONING = "CONDITIONING"
    TRANSCRIBING = "TRANSCRIBING"
    INJECTING = "INJECTING"
    FAILED = "FAILED"


@dataclass
class ModifierState:
    ctrl: bool = False
    shift: bool = False
    alt: bool = False
    cmd: bool = False

    def held(self) -> FrozenSet[str]:
        return frozenset(name for name in ("ctrl", "shift", "alt", "cmd") if getattr(self, name))


@dataclass(frozen=True)
class KeyMessage:
    pressed: bool
    key: str


@dataclass(frozen=True)
class HotkeySpec:
    modifiers: FrozenSet[str]
    key: str


@dataclass(frozen=True)
class CaptureSession:
    """Interleaved float32 samples exactly as the input device produced them."""

    samples: np.ndarray
    sample_rate: int
    channels: int

    @property
    def duration_s(self) -> float:
        if self.sample_rate <= 0 or self.channels <= 0:
            return 0.0
        return len(self.samples) / float(self.sample_rate * self.channels)


@dataclass(frozen=True)
class ConditionedAudio:
    samples: np.ndarray
    sample_rate: int = TARGET_SAMPLE_RATE

    @property
    def duration_s(self) -> float:
        return len(self.samples) / float(self.sample_rate)


@dataclass(frozen=True)
class PipelineOutcome:
    success: bool
    text: str = ""
    code: str = ""
    message: str = ""

    @classmethod
    def ok(cls, text: str) -> "PipelineOutcome":
        return cls(success=True, text=text)

    @classmethod
    def failed(cls, code: str, message: str) -> "PipelineOutcome":
        return cls(success=False, code=code, message=message)


@dataclass(frozen=True)
class UsageEvent:
    duration_s: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class UsageStats:
    total_recordings: int = 0
    total_audio_seconds: float = 0.0
    errors_encountered: int = 0
    last_used: Optional[str] = None
