from __future__ import annotations

import threading
import time

import numpy as np

from errors import (
    BUSY,
    EMPTY_CAPTURE,
    PIPELINE_ERROR,
    REMOTE_TRANSCRIPTION_ERROR,
    EmptyCapture,
    InjectionError,
    RemoteTranscriptionError,
)
from models import CaptureSession, ConditionedAudio, PipelineOutcome, PipelineState, UsageEvent
from pipeline import PipelineCoordinator
from trigger_channel import TriggerChannel, TriggerPolicy


class FakeRecorder:
    def __init__(self, error: Exception | None = None, rate: int = 48000, channels: int = 2) -> None:
        self.error = error
        self.rate = rate
        self.channels = channels
        self.calls: list[int] = []
        self.log: list[str] | None = None
        self.delay_s = 0.0

    def capture(self, duration_ms: int) -> CaptureSession:
        self.calls.append(duration_ms)
        if self.log is not None:
            self.log.append("capture-start")
        time.sleep(self.delay_s)
        if self.log is not None:
            self.log.append("capture-end")
        if self.error is not None:
            raise self.error
        frames = self.rate // 10
        samples = np.full(frames * self.channels, 0.1, dtype=np.float32)
        return CaptureSession(samples=samples, sample_rate=self.rate, channels=self.channels)


class FakeBackend:
    def __init__(self, text: str = "hello", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.received: list[ConditionedAudio] = []

    def transcribe(self, audio: ConditionedAudio) -> str:
        self.received.append(audio)
        if self.error is not None:
            raise self.error
        return self.text


class FakeInjector:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.events: list[tuple[str, str]] = []

    def inject(self, text: str) -> None:
        if self.error is not None:
            raise self.error
        for ch in text:
            if ch == "\n":
                self.events.append(("key", "enter"))
            elif ch == "\t":
                self.events.append(("key", "tab"))
            else:
                self.events.append(("char", ch))


class FakeFeedback:
    def __init__(self, broken: bool = False) -> None:
        self.calls: list[str] = []
        self.broken = broken

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.broken:
            raise RuntimeError("speaker on fire")

    def play_start(self) -> None:
        self._call("start")

    def play_stop(self) -> None:
        self._call("stop")

    def play_error(self) -> None:
        self._call("error")


class FakeStats:
    def __init__(self) -> None:
        self.usage: list[UsageEvent] = []
        self.errors = 0
        self.saves = 0

    def record_usage(self, event: UsageEvent) -> None:
        self.usage.append(event)

    def record_error(self) -> None:
        self.errors += 1

    def save(self) -> None:
        self.saves += 1


def _coordinator(
    recorder: FakeRecorder | None = None,
    backend: FakeBackend | None = None,
    injector: FakeInjector | None = None,
    feedback: FakeFeedback | None = None,
    stats: FakeStats | None = None,
    transitions: list | None = None,
    outcomes: list | None = None,
) -> PipelineCoordinator:
    return PipelineCoordinator(
        recorder=recorder or FakeRecorder(),
        backend=backend or FakeBackend(),
        injector=injector or FakeInjector(),
        feedback=feedback or FakeFeedback(),
        stats=stats or FakeStats(),
        record_duration_ms=1500,
        on_state_change=(lambda f, t: transitions.append((f, t))) if transitions is not None else None,
        on_outcome=outcomes.append if outcomes is not None else None,
    )


# ---------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------

def test_successful_run_types_hello() -> None:
    injector = FakeInjector()
    feedback = FakeFeedback()
    stats = FakeStats()
    transitions: list[tuple[PipelineState, PipelineState]] = []
    outcomes: list[PipelineOutcome] = []

    controller = _coordinator(
        injector=injector, feedback=feedback, stats=stats, transitions=transitions, outcomes=outcomes
    )
    outcome = controller.run_once()

    assert outcome == PipelineOutcome.ok("hello")
    assert outcomes == [outcome]
    assert injector.events == [("char", c) for c in "hello"]
    assert feedback.calls == ["start", "stop"]
    assert len(stats.usage) == 1
    assert stats.usage[0].duration_s == 1.5
    assert stats.errors == 0
    assert stats.saves == 1
    assert controller.state == PipelineState.IDLE
    assert [t for _, t in transitions] == [
        PipelineState.RECORDING,
        PipelineState.CONDITIONING,
        PipelineState.TRANSCRIBING,
        PipelineState.INJECTING,
        PipelineState.IDLE,
    ]


def test_backend_receives_conditioned_mono_16k() -> None:
    backend = FakeBackend()
    controller = _coordinator(recorder=FakeRecorder(rate=48000, channels=2), backend=backend)

    controller.run_once()

    audio = backend.received[0]
    assert audio.sample_rate == 16000
    assert audio.samples.ndim == 1
    assert len(audio.samples) == 1600


def test_empty_transcript_skips_injection() -> None:
    injector = FakeInjector()
    feedback = FakeFeedback()

    outcome = _coordinator(backend=FakeBackend(text="   "), injector=injector, feedback=feedback).run_once()

    assert outcome.success is True
    assert injector.events == []
    assert feedback.calls == ["start", "stop"]


# ---------------------------------------------------------------
# Failures
# ---------------------------------------------------------------

def test_empty_capture_scenario() -> None:
    backend = FakeBackend()
    feedback = FakeFeedback()
    stats = FakeStats()
    transitions: list[tuple[PipelineState, PipelineState]] = []

    controller = _coordinator(
        recorder=FakeRecorder(error=EmptyCapture()),
        backend=backend,
        feedback=feedback,
        stats=stats,
        transitions=transitions,
    )
    outcome = controller.run_once()

    assert outcome.success is False
    assert outcome.code == EMPTY_CAPTURE
    assert stats.usage == []
    assert stats.errors == 1
    assert stats.saves == 1
    assert feedback.calls == ["start", "error"]
    assert backend.received == []
    assert (PipelineState.RECORDING, PipelineState.FAILED) in transitions
    assert controller.state == PipelineState.IDLE


def test_cloud_unauthorized_scenario() -> None:
    injector = FakeInjector()
    feedback = FakeFeedback()
    stats = FakeStats()

    controller = _coordinator(
        backend=FakeBackend(error=RemoteTranscriptionError(401, "invalid api key")),
        injector=injector,
        feedback=feedback,
        stats=stats,
    )
    outcome = controller.run_once()

    assert outcome.code == REMOTE_TRANSCRIPTION_ERROR
    assert "401" in outcome.message
    assert feedback.calls == ["start", "error"]
    assert stats.errors == 1
    assert injector.events == []
    assert controller.state == PipelineState.IDLE


def test_injection_failure_is_reported() -> None:
    feedback = FakeFeedback()
    outcome = _coordinator(injector=FakeInjector(error=InjectionError("no target")), feedback=feedback).run_once()

    assert outcome.success is False
    assert outcome.message == "no target"
    assert feedback.calls == ["start", "error"]


def test_unexpected_exception_does_not_escape() -> None:
    stats = FakeStats()
    outcome = _coordinator(backend=FakeBackend(error=KeyError("surprise")), stats=stats).run_once()

    assert outcome.code == PIPELINE_ERROR
    assert stats.errors == 1


def test_feedback_failures_do_not_change_outcome() -> None:
    feedback = FakeFeedback(broken=True)
    outcome = _coordinator(feedback=feedback).run_once()

    assert outcome.success is True
    assert feedback.calls == ["start", "stop"]


def test_stats_save_failure_does_not_change_outcome() -> None:
    class BrokenStats(FakeStats):
        def save(self) -> None:
            raise OSError("disk full")

    outcome = _coordinator(stats=BrokenStats()).run_once()
    assert outcome.success is True


# ---------------------------------------------------------------
# Backend substitutability
# ---------------------------------------------------------------

def test_swapping_backend_changes_only_transcription_result() -> None:
    runs = []
    for backend in (FakeBackend(text="cloud words"), FakeBackend(text="local words")):
        feedback = FakeFeedback()
        stats = FakeStats()
        transitions: list = []
        outcome = _coordinator(backend=backend, feedback=feedback, stats=stats, transitions=transitions).run_once()
        runs.append((outcome, feedback.calls, len(stats.usage), stats.errors, transitions))

    (out_a, *rest_a), (out_b, *rest_b) = runs
    assert out_a.text == "cloud words"
    assert out_b.text == "local words"
    assert rest_a == rest_b


# ---------------------------------------------------------------
# Single flight
# ---------------------------------------------------------------

def test_run_once_while_running_is_busy() -> None:
    recorder = FakeRecorder()
    recorder.delay_s = 0.2
    feedback = FakeFeedback()
    controller = _coordinator(recorder=recorder, feedback=feedback)

    worker = threading.Thread(target=controller.run_once)
    worker.start()
    time.sleep(0.05)
    outcome = controller.run_once()
    worker.join()

    assert outcome.code == BUSY
    assert recorder.calls == [1500]
    assert feedback.calls == ["start", "stop"]


def test_queued_triggers_run_sequentially_without_interleaving() -> None:
    log: list[str] = []
    recorder = FakeRecorder()
    recorder.log = log
    recorder.delay_s = 0.02
    outcomes: list[PipelineOutcome] = []

    controller = _coordinator(
        recorder=recorder,
        outcomes=outcomes,
        transitions=None,
    )
    controller._on_state_change = lambda f, t: log.append(t.value)

    channel = TriggerChannel(TriggerPolicy.QUEUE)
    stop = threading.Event()
    worker = threading.Thread(target=controller.serve, args=(channel, stop, 0.01))
    worker.start()
    for _ in range(3):
        channel.offer()

    deadline = time.time() + 3.0
    while len(outcomes) < 3 and time.time() < deadline:
        time.sleep(0.01)
    stop.set()
    worker.join(timeout=2.0)

    assert len(outcomes) == 3
    one_run = [
        "RECORDING", "capture-start", "capture-end", "CONDITIONING",
        "TRANSCRIBING", "INJECTING", "IDLE",
    ]
    assert log == one_run * 3


def test_drop_when_busy_ignores_presses_during_run() -> None:
    recorder = FakeRecorder()
    recorder.delay_s = 0.2
    outcomes: list[PipelineOutcome] = []
    controller = _coordinator(recorder=recorder, outcomes=outcomes)

    channel = TriggerChannel(TriggerPolicy.DROP_WHEN_BUSY)
    stop = threading.Event()
    worker = threading.Thread(target=controller.serve, args=(channel, stop, 0.01))
    worker.start()

    assert channel.offer() is True
    time.sleep(0.05)
    assert channel.offer() is False
    assert channel.offer() is False

    deadline = time.time() + 3.0
    while not outcomes and time.time() < deadline:
        time.sleep(0.01)
    time.sleep(0.05)
    stop.set()
    worker.join(timeout=2.0)

    assert len(outcomes) == 1
    assert recorder.calls == [1500]
    assert channel.offer() is True
