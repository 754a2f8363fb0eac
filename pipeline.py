"""State-machine based dictation pipeline orchestration."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from conditioning import condition
from errors import BUSY, PIPELINE_ERROR, DictationError
from interfaces import Feedback, Recorder, StatsStore, TextInjector, TranscriptionBackend
from models import PipelineOutcome, PipelineState, UsageEvent
from trigger_channel import TriggerChannel

logger = logging.getLogger(__name__)

StateCallback = Callable[[PipelineState, PipelineState], None]
OutcomeCallback = Callable[[PipelineOutcome], None]


class PipelineCoordinator:
    def __init__(
        self,
        recorder: Recorder,
        backend: TranscriptionBackend,
        injector: TextInjector,
        feedback: Feedback,
        stats: StatsStore,
        record_duration_ms: int = 5000,
        on_state_change: Optional[StateCallback] = None,
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._backend = backend
        self._injector = injector
        self._feedback = feedback
        self._stats = stats
        self._record_duration_ms = record_duration_ms
        self._on_state_change = on_state_change
        self._on_outcome = on_outcome

        self._run_lock = threading.Lock()
        self._state = PipelineState.IDLE
        self._run_id = 0

    @property
    def state(self) -> PipelineState:
        return self._state

    def run_once(self) -> PipelineOutcome:
        """Drive one trigger through capture, conditioning, transcription and typing."""
        if not self._run_lock.acquire(blocking=False):
            return PipelineOutcome.failed(BUSY, "a pipeline run is already in progress")
        try:
            self._run_id += 1
            outcome = self._run()
            self._save_stats()
        finally:
            self._run_lock.release()
        if self._on_outcome:
            self._on_outcome(outcome)
        return outcome

    def serve(self, channel: TriggerChannel, stop_event: threading.Event, poll_s: float = 0.2) -> None:
        """Coordinator loop: one trigger at a time until ``stop_event`` is set."""
        while not stop_event.is_set():
            if not channel.take(timeout=poll_s):
                continue
            try:
                self.run_once()
            except Exception:
                logger.exception("Pipeline run crashed")
            finally:
                channel.done()

    def _run(self) -> PipelineOutcome:
        run_id = self._run_id
        logger.info("Run %d: hotkey triggered", run_id)
        self._safe_feedback("play_start")
        try:
            self._transition(PipelineState.RECORDING)
            session = self._recorder.capture(self._record_duration_ms)
            self._stats.record_usage(UsageEvent(duration_s=self._record_duration_ms / 1000.0))

            self._transition(PipelineState.CONDITIONING)
            audio = condition(session)
            logger.debug(
                "Run %d: %.2f s captured, %d samples @ %d Hz x%d -> %d samples @ %d Hz",
                run_id, session.duration_s, len(session.samples), session.sample_rate, session.channels,
                len(audio.samples), audio.sample_rate,
            )

            self._transition(PipelineState.TRANSCRIBING)
            text = self._backend.transcribe(audio)

            self._transition(PipelineState.INJECTING)
            if text.strip():
                self._injector.inject(text)
            else:
                logger.info("Run %d: empty transcript, nothing to type", run_id)
        except DictationError as exc:
            return self._fail(exc.code, exc.message)
        except Exception as exc:
            logger.exception("Run %d: unexpected failure", run_id)
            return self._fail(PIPELINE_ERROR, str(exc))

        self._safe_feedback("play_stop")
        self._transition(PipelineState.IDLE)
        logger.info("Run %d: done (%d characters)", run_id, len(text))
        return PipelineOutcome.ok(text)

    def _fail(self, code: str, message: str) -> PipelineOutcome:
        logger.error("Run %d failed in %s: %s: %s", self._run_id, self._state.value, code, message)
        self._transition(PipelineState.FAILED)
        self._safe_feedback("play_error")
        self._stats.record_error()
        self._transition(PipelineState.IDLE)
        return PipelineOutcome.failed(code, message)

    def _save_stats(self) -> None:
        try:
            self._stats.save()
        except OSError as exc:
            logger.warning("Could not persist usage stats: %s", exc)

    def _safe_feedback(self, name: str) -> None:
        try:
            getattr(self._feedback, name)()
        except Exception as exc:
            logger.debug("Feedback %s failed: %s", name, exc)

    def _transition(self, to_state: PipelineState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._on_state_change:
            try:
                self._on_state_change(from_state, to_state)
            except Exception:
                logger.exception("State listener failed")
