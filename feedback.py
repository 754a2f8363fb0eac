"""Short synthesized tones for start/stop/error notification.

Playback is best effort: each tone plays on a detached daemon thread and any
failure is logged, never reported back to the caller.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Sequence, Tuple

import numpy as np

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100
VOLUME = 0.2

# (frequency Hz, duration s); frequency 0 is silence
START_TONES = ((440.0, 0.1),)
STOP_TONES = ((330.0, 0.1), (0.0, 0.1), (220.0, 0.2))
ERROR_TONES = ((150.0, 0.3),)


def generate_tone(frequency: float, duration_s: float, volume: float = VOLUME) -> np.ndarray:
    n = int(SAMPLE_RATE * duration_s)
    if frequency <= 0:
        return np.zeros(n, dtype=np.float32)
    t = np.arange(n, dtype=np.float64) / SAMPLE_RATE
    return (np.sin(2 * np.pi * frequency * t) * volume).astype(np.float32)


def render(tones: Sequence[Tuple[float, float]], volume: float = VOLUME) -> np.ndarray:
    return np.concatenate([generate_tone(f, d, volume) for f, d in tones])


class ToneFeedback:
    def __init__(
        self,
        volume: float = VOLUME,
        spawn: Callable[[Callable[[], None]], None] | None = None,
    ) -> None:
        self.volume = max(0.0, min(1.0, volume))
        self._spawn = spawn or self._spawn_daemon

    def play_start(self) -> None:
        self._play(START_TONES)

    def play_stop(self) -> None:
        self._play(STOP_TONES)

    def play_error(self) -> None:
        self._play(ERROR_TONES)

    def _play(self, tones: Sequence[Tuple[float, float]]) -> None:
        def worker() -> None:
            if sd is None:
                logger.debug("Audio feedback skipped: sounddevice missing")
                return
            try:
                sd.play(render(tones, self.volume), SAMPLE_RATE, blocking=True)
            except Exception as exc:
                logger.debug("Audio feedback failed: %s", exc)

        try:
            self._spawn(worker)
        except Exception as exc:
            logger.debug("Audio feedback thread failed: %s", exc)

    @staticmethod
    def _spawn_daemon(target: Callable[[], None]) -> None:
        threading.Thread(target=target, name="feedback-tone", daemon=True).start()

