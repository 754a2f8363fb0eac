"""Microphone recorder adapter."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

import numpy as np

from errors import EmptyCapture, NoInputDevice, StreamError
from models import CaptureSession

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

MAX_CHANNELS = 2

# dtype -> (max magnitude, unsigned)
_INT_FORMATS = {
    "int32": (2147483647.0, False),
    "int16": (32767.0, False),
    "int8": (127.0, False),
    "uint8": (255.0, True),
}
SUPPORTED_FORMATS = ("float32",) + tuple(_INT_FORMATS)


def normalize_block(block: Any, sample_format: str) -> np.ndarray:
    """Scale one block of native samples to float32 in [-1.0, 1.0]."""
    data = np.asarray(block)
    if sample_format == "float32":
        return np.clip(data.astype(np.float32), -1.0, 1.0).reshape(-1)
    if sample_format not in _INT_FORMATS:
        raise StreamError(f"unsupported sample format: {sample_format}")
    max_value, unsigned = _INT_FORMATS[sample_format]
    scaled = data.astype(np.float64) / max_value
    if unsigned:
        scaled = scaled * 2.0 - 1.0
    return np.clip(scaled, -1.0, 1.0).astype(np.float32).reshape(-1)


def list_input_devices() -> list[dict]:
    if sd is None:
        return []
    devices = []
    for idx, d in enumerate(sd.query_devices()):
        if d.get("max_input_channels", 0) > 0:
            devices.append({"index": idx, "name": d["name"], "default_samplerate": d["default_samplerate"]})
    return devices


class SoundDeviceRecorder:
    def __init__(
        self,
        device_index: Optional[int] = None,
        sample_format: str = "float32",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.device_index = device_index
        self.sample_format = sample_format
        self._sleep = sleep
        self._lock = threading.Lock()
        self._chunks: list[np.ndarray] = []
        self._running = False

    def capture(self, duration_ms: int) -> CaptureSession:
        if sd is None:
            raise StreamError("sounddevice is not installed")
        if self.sample_format not in SUPPORTED_FORMATS:
            raise StreamError(f"unsupported sample format: {self.sample_format}")

        device = self._resolve_device()
        sample_rate = int(device["default_samplerate"])
        channels = max(1, min(int(device["max_input_channels"]), MAX_CHANNELS))
        logger.info(
            "Recording %d ms from %r (%d Hz, %d ch, %s)",
            duration_ms, device.get("name", "?"), sample_rate, channels, self.sample_format,
        )

        with self._lock:
            self._chunks = []
            self._running = True
        stream: Any = None
        try:
            stream = sd.InputStream(
                device=self.device_index,
                samplerate=sample_rate,
                channels=channels,
                dtype=self.sample_format,
                callback=self._on_audio,
            )
            stream.start()
            self._sleep(duration_ms / 1000.0)
        except sd.PortAudioError as exc:
            raise StreamError(str(exc)) from exc
        finally:
            with self._lock:
                self._running = False
            if stream is not None:
                self._release(stream)

        with self._lock:
            chunks, self._chunks = self._chunks, []
        if not chunks:
            raise EmptyCapture()
        samples = np.concatenate(chunks).astype(np.float32)
        if len(samples) == 0:
            raise EmptyCapture()
        return CaptureSession(samples=samples, sample_rate=sample_rate, channels=channels)

    def _resolve_device(self) -> dict:
        try:
            if self.device_index is not None:
                info = sd.query_devices(self.device_index)
            else:
                info = sd.query_devices(kind="input")
        except (ValueError, sd.PortAudioError) as exc:
            raise NoInputDevice(str(exc)) from exc
        if not info or int(info.get("max_input_channels", 0)) < 1:
            raise NoInputDevice(f"device {self.device_index!r} has no input channels")
        return dict(info)

    def _release(self, stream: Any) -> None:
        stop_error: Optional[Exception] = None
        try:
            stream.stop()
        except sd.PortAudioError as exc:
            stop_error = exc
        # close runs even when stop failed
        try:
            stream.close()
        except sd.PortAudioError as exc:
            raise StreamError(f"closing input stream failed: {exc}") from exc
        if stop_error is not None:
            raise StreamError(f"stopping input stream failed: {stop_error}") from stop_error

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.warning("Input stream status: %s", status)
        block = normalize_block(indata, self.sample_format)
        with self._lock:
            if not self._running:
                return
            self._chunks.append(block)
