"""Locate or download the whisper.cpp model used by the local backend."""

from __future__ import annotations

import logging
from pathlib import Path

from errors import LocalModelUnavailable

try:
    import requests
except Exception:  # pragma: no cover
    requests = None  # type: ignore

logger = logging.getLogger(__name__)

MODEL_FILENAME = "ggml-base.en.bin"
MODEL_URL = f"https://huggingface.co/ggerganov/whisper.cpp/resolve/main/{MODEL_FILENAME}"
DOWNLOAD_TIMEOUT_S = 600
CHUNK_SIZE = 1 << 20


def ensure_model(path: Path | str, url: str = MODEL_URL) -> Path:
    """Return ``path`` if the model exists, downloading it once otherwise."""
    target = Path(path)
    if target.exists():
        logger.info("Model found at %s", target)
        return target

    if requests is None:
        raise LocalModelUnavailable("requests is not installed, cannot download model")

    logger.info("Model not found, downloading %s (~142MB, happens once)", url)
    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(target.name + ".part")
    try:
        with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_S) as resp:
            if not resp.ok:
                raise LocalModelUnavailable(f"model download failed: HTTP {resp.status_code}")
            with partial.open("wb") as fh:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        fh.write(chunk)
        partial.replace(target)
    except (requests.RequestException, OSError) as exc:
        raise LocalModelUnavailable(f"model download failed: {exc}") from exc
    finally:
        if partial.exists():
            partial.unlink()

    logger.info("Model downloaded to %s", target)
    return target
