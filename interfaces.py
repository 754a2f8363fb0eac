"""Protocol interfaces used by PipelineCoordinator."""

from __future__ import annotations

from typing import Protocol

from models import CaptureSession, ConditionedAudio, UsageEvent


class Recorder(Protocol):
    def capture(self, duration_ms: int) -> CaptureSession: ...


class TranscriptionBackend(Protocol):
    def transcribe(self, audio: ConditionedAudio) -> str: ...


class TextInjector(Protocol):
    def inject(self, text: str) -> None: ...


class Feedback(Protocol):
    def play_start(self) -> None: ...

    def play_stop(self) -> None: ...

    def play_error(self) -> None: ...


class StatsStore(Protocol):
    def record_usage(self, event: UsageEvent) -> None: ...

    def record_error(self) -> None: ...

    def save(self) -> None: ...
