"""Hand-off of hotkey triggers to the coordinator thread."""

from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Optional


class TriggerPolicy(str, Enum):
    QUEUE = "queue"
    DROP_WHEN_BUSY = "drop_when_busy"


class TriggerChannel:
    """Never blocks the sender.

    ``QUEUE`` keeps every press and runs them one after another.
    ``DROP_WHEN_BUSY`` holds a single slot: a press that arrives while a run
    is pending or active is ignored and reported through ``on_ignored``.
    """

    def __init__(
        self,
        policy: TriggerPolicy = TriggerPolicy.DROP_WHEN_BUSY,
        on_ignored: Optional[Callable[[], None]] = None,
    ) -> None:
        self.policy = TriggerPolicy(policy)
        self._on_ignored = on_ignored
        self._cond = threading.Condition()
        self._pending = 0
        self._busy = False
        self.ignored_count = 0

    @property
    def pending(self) -> int:
        with self._cond:
            return self._pending

    def offer(self) -> bool:
        with self._cond:
            if self.policy == TriggerPolicy.DROP_WHEN_BUSY and (self._busy or self._pending):
                self.ignored_count += 1
                accepted = False
            else:
                self._pending += 1
                self._cond.notify()
                accepted = True
        if not accepted and self._on_ignored is not None:
            self._on_ignored()
        return accepted

    def take(self, timeout: Optional[float] = None) -> bool:
        """Wait for the next trigger and mark the channel busy."""
        with self._cond:
            if not self._cond.wait_for(lambda: self._pending > 0, timeout=timeout):
                return False
            self._pending -= 1
            self._busy = True
            return True

    def done(self) -> None:
        with self._cond:
            self._busy = False
