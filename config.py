"""Simple JSON-based config store."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "voice_dictation"


@dataclass
class AppConfig:
    hotkey: str = "Ctrl+Shift+V"
    record_duration_ms: int = 5000
    audio_device_index: Optional[int] = None
    api_key: Optional[str] = None
    backend: str = "cloud"
    model_path: str = "ggml-base.en.bin"
    trigger_policy: str = "drop_when_busy"
    sample_format: str = "float32"


# field name -> accepted types for values read from disk
_FIELD_TYPES = {
    "hotkey": (str,),
    "record_duration_ms": (int,),
    "audio_device_index": (int, type(None)),
    "api_key": (str, type(None)),
    "backend": (str,),
    "model_path": (str,),
    "trigger_policy": (str,),
    "sample_format": (str,),
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_DIR / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppConfig:
        if not self._path.exists():
            config = AppConfig()
            self.save(config)
            logger.info("Created default config: %s", self._path)
            return config

        data = self._read_all()
        config = AppConfig()
        for f in fields(AppConfig):
            if f.name not in data:
                continue
            value = data[f.name]
            # bool is an int subclass and never a valid value here
            if isinstance(value, bool) or not isinstance(value, _FIELD_TYPES[f.name]):
                logger.warning("Ignoring invalid %s=%r in %s", f.name, value, self._path)
                continue
            setattr(config, f.name, value)
        if config.record_duration_ms <= 0:
            logger.warning("record_duration_ms must be positive, using default")
            config.record_duration_ms = AppConfig.record_duration_ms
        return config

    def save(self, config: AppConfig) -> None:
        self._write_all(asdict(config))

    def _read_all(self) -> dict:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Config %s unreadable (%s), using defaults", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
