"""Usage counters persisted as JSON."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, replace
from datetime import datetime, timezone
from pathlib import Path

from config import CONFIG_DIR
from models import UsageEvent, UsageStats

logger = logging.getLogger(__name__)


class JsonStatsStore:
    """Explicit stats context: load at startup, save after every pipeline run."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_DIR / "stats.json"
        self._lock = threading.Lock()
        self._stats = UsageStats()

    @property
    def stats(self) -> UsageStats:
        with self._lock:
            return replace(self._stats)

    def load(self) -> UsageStats:
        loaded = UsageStats()
        if self._path.exists():
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
                loaded = UsageStats(
                    total_recordings=int(data.get("total_recordings", 0)),
                    total_audio_seconds=float(data.get("total_audio_seconds", 0.0)),
                    errors_encountered=int(data.get("errors_encountered", 0)),
                    last_used=data.get("last_used"),
                )
            except (json.JSONDecodeError, OSError, TypeError, ValueError, AttributeError) as exc:
                logger.warning("Stats file %s unreadable (%s), starting fresh", self._path, exc)
        with self._lock:
            self._stats = loaded
        return replace(loaded)

    def save(self) -> None:
        with self._lock:
            data = asdict(self._stats)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def record_usage(self, event: UsageEvent) -> None:
        with self._lock:
            self._stats.total_recordings += 1
            self._stats.total_audio_seconds += event.duration_s
            self._stats.last_used = datetime.fromtimestamp(event.timestamp, tz=timezone.utc).isoformat()

    def record_error(self) -> None:
        with self._lock:
            self._stats.errors_encountered += 1

    def summary(self) -> str:
        s = self.stats
        return (
            f"Recordings: {s.total_recordings}, "
            f"Total audio: {s.total_audio_seconds:.1f}s, "
            f"Errors: {s.errors_encountered}"
        )
