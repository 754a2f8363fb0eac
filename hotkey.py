"""Global hotkey monitor based on pynput.

The pynput listener thread only translates raw keys into ``KeyMessage``
values and queues them. A single pump thread owns the modifier state and
decides when the configured combination fires.
"""

from __future__ import annotations

import logging
import threading
from queue import Queue
from typing import Callable, Dict, Optional, Set

from models import HotkeySpec, KeyMessage, ModifierState

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)

_MODIFIER_ALIASES = {
    "ctrl": "ctrl",
    "control": "ctrl",
    "ctrl_l": "ctrl",
    "ctrl_r": "ctrl",
    "shift": "shift",
    "shift_l": "shift",
    "shift_r": "shift",
    "alt": "alt",
    "option": "alt",
    "alt_l": "alt",
    "alt_r": "alt",
    "alt_gr": "alt",
    "cmd": "cmd",
    "super": "cmd",
    "win": "cmd",
    "cmd_l": "cmd",
    "cmd_r": "cmd",
}


def parse_hotkey(text: str) -> HotkeySpec:
    """Parse strings such as ``"Ctrl+Shift+V"``; the last token is the action key."""
    tokens = [t.strip().lower() for t in text.split("+")]
    if not tokens or any(not t for t in tokens):
        raise ValueError(f"invalid hotkey: {text!r}")
    *mods, key = tokens
    modifiers = set()
    for token in mods:
        if token not in _MODIFIER_ALIASES:
            raise ValueError(f"unknown modifier {token!r} in hotkey {text!r}")
        modifiers.add(_MODIFIER_ALIASES[token])
    if key in _MODIFIER_ALIASES:
        raise ValueError(f"hotkey {text!r} has no action key")
    return HotkeySpec(modifiers=frozenset(modifiers), key=key)


def key_name(key: object) -> Optional[str]:
    """Normalise a pynput ``Key``/``KeyCode`` to a lowercase name."""
    char = getattr(key, "char", None)
    if char:
        code = ord(char[0])
        # Ctrl held on Windows yields control characters (Ctrl+V -> '\x16')
        if 1 <= code <= 26:
            return chr(ord("a") + code - 1)
        if char.isprintable():
            return char.lower()
    name = getattr(key, "name", None)
    if name:
        return name
    vk = getattr(key, "vk", None)
    if vk is not None and 0x41 <= vk <= 0x5A:
        return chr(vk).lower()
    return None


class ModifierTracker:
    """Single owner of ``ModifierState``; not shared between threads."""

    def __init__(self, spec: HotkeySpec) -> None:
        self.spec = spec
        self.state = ModifierState()
        self._action_down = False
        # modifier -> physical keys currently down (ctrl_l, ctrl_r, ...)
        self._held: Dict[str, Set[str]] = {m: set() for m in ("ctrl", "shift", "alt", "cmd")}

    def feed(self, msg: KeyMessage) -> bool:
        modifier = _MODIFIER_ALIASES.get(msg.key)
        if modifier is not None:
            keys = self._held[modifier]
            if msg.pressed:
                keys.add(msg.key)
            else:
                keys.discard(msg.key)
            setattr(self.state, modifier, bool(keys))
            return False
        if msg.key != self.spec.key:
            return False
        if not msg.pressed:
            self._action_down = False
            return False
        if self._action_down:
            return False  # auto-repeat
        self._action_down = True
        return self.spec.modifiers <= self.state.held()


class HotkeyMonitor:
    def __init__(self, hotkey: str, on_trigger: Callable[[], object]) -> None:
        self._tracker = ModifierTracker(parse_hotkey(hotkey))
        self._on_trigger = on_trigger
        self._messages: Queue[KeyMessage | None] = Queue()
        self._listener: Optional[object] = None
        self._pump: Optional[threading.Thread] = None
        self.degraded = False

    def start(self) -> None:
        if self._pump is None:
            self._pump = threading.Thread(target=self._run_pump, name="hotkey-pump", daemon=True)
            self._pump.start()
        if keyboard is None:
            self._degrade("pynput is not installed")
            return
        try:
            listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
            listener.start()
        except Exception as exc:
            self._degrade(str(exc))
            return
        self._listener = listener
        logger.info("Listening for %s", self._describe())

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
        if self._pump is not None:
            self._messages.put(None)
            self._pump.join(timeout=1.0)
            self._pump = None

    def post(self, msg: KeyMessage) -> None:
        self._messages.put(msg)

    def _on_press(self, key: object) -> None:
        name = key_name(key)
        if name is not None:
            self.post(KeyMessage(pressed=True, key=name))

    def _on_release(self, key: object) -> None:
        name = key_name(key)
        if name is not None:
            self.post(KeyMessage(pressed=False, key=name))

    def _run_pump(self) -> None:
        while True:
            msg = self._messages.get()
            if msg is None:
                return
            if self._tracker.feed(msg):
                logger.debug("Hotkey %s triggered", self._describe())
                try:
                    self._on_trigger()
                except Exception:
                    logger.exception("Hotkey trigger handler failed")

    def _degrade(self, reason: str) -> None:
        self.degraded = True
        logger.error("Global hotkey disabled: %s", reason)

    def _describe(self) -> str:
        spec = self._tracker.spec
        return "+".join(sorted(spec.modifiers) + [spec.key])
