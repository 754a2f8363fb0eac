"""Transcription backends: OpenAI-compatible HTTP API and local whisper.cpp.

Both backends take mono 16 kHz float samples and return the transcript as a
plain string, raising a ``DictationError`` subclass on failure. The backend
is chosen once at startup by :func:`create_backend`.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional

import numpy as np

from config import AppConfig
from errors import LocalModelUnavailable, MissingCredential, RemoteTranscriptionError
from interfaces import TranscriptionBackend
from model_store import ensure_model
from models import ConditionedAudio
from wav_io import write_wav

try:
    import requests
except Exception:  # pragma: no cover
    requests = None  # type: ignore

try:
    from pywhispercpp.model import Model as WhisperModel
except Exception:  # pragma: no cover
    WhisperModel = None  # type: ignore

logger = logging.getLogger(__name__)

OPENAI_TRANSCRIPTION_URL = "https://api.openai.com/v1/audio/transcriptions"
WAV_ARTIFACT = "recording.wav"
GREEDY = 0  # whisper_sampling_strategy.WHISPER_SAMPLING_GREEDY


class OpenAITranscriber:
    def __init__(
        self,
        api_key: Optional[str],
        endpoint: str = OPENAI_TRANSCRIPTION_URL,
        model: str = "whisper-1",
        timeout_s: float = 30.0,
        wav_path: Path | str = WAV_ARTIFACT,
        session: Any = None,
    ) -> None:
        self._api_key = api_key or ""
        self._endpoint = endpoint
        self._model = model
        self._timeout_s = timeout_s
        self._wav_path = Path(wav_path)
        self._session = session

    def transcribe(self, audio: ConditionedAudio) -> str:
        if not self._api_key:
            raise MissingCredential("No API key configured (api_key or OPENAI_API_KEY)")
        if requests is None:
            raise RemoteTranscriptionError(0, "requests is not installed")

        write_wav(audio, self._wav_path)

        http = self._session or requests
        try:
            with self._wav_path.open("rb") as fh:
                resp = http.post(
                    self._endpoint,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    data={"model": self._model, "response_format": "json"},
                    files={"file": (self._wav_path.name, fh, "audio/wav")},
                    timeout=self._timeout_s,
                )
        except requests.RequestException as exc:
            raise RemoteTranscriptionError(0, str(exc)) from exc

        if not 200 <= resp.status_code < 300:
            raise RemoteTranscriptionError(resp.status_code, resp.text)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise RemoteTranscriptionError(resp.status_code, resp.text) from exc
        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise RemoteTranscriptionError(resp.status_code, f"no 'text' field in response: {resp.text}")
        return text


class WhisperCppTranscriber:
    """Runs a whisper.cpp model in-process.

    The model is loaded once in ``__init__`` and reused by every call.
    """

    def __init__(self, model_path: Path | str, language: str = "en", n_threads: int = 4) -> None:
        if WhisperModel is None:
            raise LocalModelUnavailable("pywhispercpp is not installed")
        self._language = language
        self._lock = threading.Lock()
        logger.info("Loading whisper model %s", model_path)
        try:
            self._model = WhisperModel(
                str(model_path),
                params_sampling_strategy=GREEDY,
                n_threads=n_threads,
                print_progress=False,
                print_realtime=False,
            )
        except Exception as exc:
            raise LocalModelUnavailable(f"failed to load model: {exc}") from exc
        logger.info("Whisper model loaded")

    def transcribe(self, audio: ConditionedAudio) -> str:
        samples = np.ascontiguousarray(audio.samples, dtype=np.float32)
        with self._lock:
            try:
                segments = self._model.transcribe(
                    samples,
                    language=self._language,
                    print_progress=False,
                    print_realtime=False,
                    print_timestamps=False,
                    print_special=False,
                )
            except Exception as exc:
                raise LocalModelUnavailable(f"inference failed: {exc}") from exc
        return " ".join(seg.text.strip() for seg in segments).strip()


def create_backend(config: AppConfig) -> TranscriptionBackend:
    """Build the configured backend. Evaluated once at startup."""
    if config.backend == "cloud":
        api_key = config.api_key or os.getenv("OPENAI_API_KEY", "")
        return OpenAITranscriber(api_key=api_key)
    if config.backend == "local":
        return WhisperCppTranscriber(ensure_model(config.model_path))
    raise ValueError(f"unknown backend: {config.backend!r}")
