"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys
import tempfile
import threading

from config import CONFIG_DIR, AppConfig, JsonConfigStore
from errors import ERROR_MESSAGES, BUSY, DictationError
from feedback import ToneFeedback
from hotkey import HotkeyMonitor, parse_hotkey
from injector import KeyboardInjector
from interfaces import TranscriptionBackend
from models import PipelineOutcome, PipelineState
from pipeline import PipelineCoordinator
from recorder import SUPPORTED_FORMATS, SoundDeviceRecorder, list_input_devices
from telemetry import JsonStatsStore
from transcriber import create_backend
from trigger_channel import TriggerChannel, TriggerPolicy

try:
    from PySide6.QtCore import QLockFile, QObject, QSize, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QMenu, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger("dictation")

LOCK_PATH = os.path.join(tempfile.gettempdir(), "voice-dictation.lock")
LOG_FILE = CONFIG_DIR / "dictation.log"

ICON_IDLE = "#888888"      # grey
ICON_RECORDING = "#FF4444"  # red
ICON_BUSY = "#4488FF"      # blue
ICON_ERROR = "#FF8800"     # orange


def setup_logging() -> None:
    debug = os.getenv("DICTATION_DEBUG", "").lower() in ("1", "true", "yes")
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_FILE, encoding="utf-8"),
            logging.StreamHandler(sys.stdout),
        ],
    )


def _create_icon(color: str = ICON_IDLE, size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


class UIBridge(QObject):
    state_signal = Signal(str, str)  # from_state, to_state
    outcome_signal = Signal(bool, str)  # success, message
    busy_signal = Signal()


class App:
    def __init__(self, config: AppConfig, stats: JsonStatsStore, backend: TranscriptionBackend) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config = config
        self.stats = stats
        self.ui = UIBridge()
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.outcome_signal.connect(self._on_outcome_ui)
        self.ui.busy_signal.connect(self._on_busy_ui)

        self.coordinator = PipelineCoordinator(
            recorder=SoundDeviceRecorder(
                device_index=config.audio_device_index,
                sample_format=config.sample_format,
            ),
            backend=backend,
            injector=KeyboardInjector(),
            feedback=ToneFeedback(),
            stats=stats,
            record_duration_ms=config.record_duration_ms,
            on_state_change=self._on_state_change,
            on_outcome=self._on_outcome,
        )
        self.channel = TriggerChannel(
            policy=TriggerPolicy(config.trigger_policy),
            on_ignored=self._on_trigger_ignored,
        )
        self.hotkey = HotkeyMonitor(config.hotkey, on_trigger=self.channel.offer)
        self._stop_event = threading.Event()
        self._worker = threading.Thread(
            target=self.coordinator.serve,
            args=(self.channel, self._stop_event),
            name="pipeline",
            daemon=True,
        )

        self.tray = None
        if QSystemTrayIcon.isSystemTrayAvailable():
            self.tray = QSystemTrayIcon()
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip(f"Voice Dictation — Ready ({config.hotkey})")
            self._setup_menu()
            self.tray.show()
        else:
            logger.warning("System tray unavailable, running without tray icon")

    def _setup_menu(self) -> None:
        menu = QMenu()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)
        self.tray.setContextMenu(menu)
        self._menu = menu

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: PipelineState, to_state: PipelineState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_outcome(self, outcome: PipelineOutcome) -> None:
        message = outcome.text if outcome.success else f"{outcome.code}: {outcome.message}"
        self.ui.outcome_signal.emit(outcome.success, message)

    def _on_trigger_ignored(self) -> None:
        logger.info("Hotkey ignored: %s", ERROR_MESSAGES[BUSY])
        self.ui.busy_signal.emit()

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        if self.tray is None:
            return
        if to_state == PipelineState.RECORDING.value:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("Voice Dictation — Recording...")
        elif to_state in (PipelineState.TRANSCRIBING.value, PipelineState.INJECTING.value):
            self.tray.setIcon(_create_icon(ICON_BUSY))
            self.tray.setToolTip("Voice Dictation — Processing...")
        elif to_state == PipelineState.FAILED.value:
            self.tray.setIcon(_create_icon(ICON_ERROR))
        elif to_state == PipelineState.IDLE.value and from_state != PipelineState.FAILED.value:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip(f"Voice Dictation — Ready ({self.config.hotkey})")

    def _on_outcome_ui(self, success: bool, message: str) -> None:
        if self.tray is None or success:
            return
        self.tray.setToolTip(f"Voice Dictation — Last run failed: {message}")
        self.tray.showMessage("Voice Dictation", message, QSystemTrayIcon.Warning, 3000)

    def _on_busy_ui(self) -> None:
        if self.tray is not None:
            self.tray.showMessage("Voice Dictation", ERROR_MESSAGES[BUSY], QSystemTrayIcon.Information, 1500)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self._worker.start()
        self.hotkey.start()
        if self.hotkey.degraded and self.tray is not None:
            self.tray.showMessage("Voice Dictation", "Global hotkey unavailable", QSystemTrayIcon.Warning, 3000)
        try:
            return self.app.exec()
        finally:
            self.shutdown()

    def quit(self) -> None:
        self.app.quit()

    def shutdown(self) -> None:
        self.hotkey.stop()
        self._stop_event.set()
        logger.info("Session summary: %s", self.stats.summary())


def _sanitize(config: AppConfig) -> AppConfig:
    try:
        parse_hotkey(config.hotkey)
    except ValueError as exc:
        logger.warning("%s, falling back to %s", exc, AppConfig.hotkey)
        config.hotkey = AppConfig.hotkey
    if config.trigger_policy not in {p.value for p in TriggerPolicy}:
        logger.warning("Unknown trigger_policy %r, using %s", config.trigger_policy, AppConfig.trigger_policy)
        config.trigger_policy = AppConfig.trigger_policy
    if config.sample_format not in SUPPORTED_FORMATS:
        logger.warning("Unknown sample_format %r, using %s", config.sample_format, AppConfig.sample_format)
        config.sample_format = AppConfig.sample_format
    return config


def main() -> int:
    setup_logging()

    lock = QLockFile(LOCK_PATH)
    if not lock.tryLock(100):
        logger.info("Voice Dictation is already running.")
        return 0

    try:
        config = _sanitize(JsonConfigStore().load())
        stats = JsonStatsStore()
        stats.load()
        logger.info("Input devices: %s", [d["name"] for d in list_input_devices()])
        try:
            backend = create_backend(config)
        except (DictationError, ValueError) as exc:
            logger.error("Cannot start %s backend: %s", config.backend, exc)
            return 1
        logger.info("Using %s backend, hotkey %s", config.backend, config.hotkey)
        return App(config, stats, backend).run()
    finally:
        lock.unlock()


if __name__ == "__main__":
    raise SystemExit(main())
