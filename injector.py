"""Types a transcript into the focused application."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from errors import InjectionError

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = logging.getLogger(__name__)


class KeyboardInjector:
    def __init__(
        self,
        controller: Optional[Any] = None,
        delay_s: float = 0.01,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._controller = controller
        self._delay_s = delay_s
        self._sleep = sleep

    def inject(self, text: str) -> None:
        """Send one keystroke per character; typed characters are not rolled back."""
        if Controller is None or Key is None:
            raise InjectionError("keyboard dependency missing")
        if self._controller is None:
            self._controller = Controller()
        keyboard = self._controller

        for pos, ch in enumerate(text):
            try:
                if ch == "\n":
                    keyboard.tap(Key.enter)
                elif ch == "\t":
                    keyboard.tap(Key.tab)
                else:
                    keyboard.type(ch)
            except Exception as exc:
                raise InjectionError(f"typing failed at character {pos}: {exc}") from exc
            self._sleep(self._delay_s)
        logger.debug("Typed %d characters", len(text))
