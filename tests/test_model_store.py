from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from errors import LocalModelUnavailable
from model_store import ensure_model


def _response(status: int = 200, chunks: list[bytes] | None = None) -> MagicMock:
    resp = MagicMock()
    resp.ok = 200 <= status < 300
    resp.status_code = status
    resp.iter_content.return_value = chunks or []
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


def test_existing_model_is_not_downloaded(tmp_path: Path) -> None:
    path = tmp_path / "ggml-base.en.bin"
    path.write_bytes(b"model")

    with patch("model_store.requests.get") as mock_get:
        assert ensure_model(path) == path

    mock_get.assert_not_called()


def test_missing_model_is_downloaded_once(tmp_path: Path) -> None:
    path = tmp_path / "models" / "ggml-base.en.bin"

    with patch("model_store.requests.get", return_value=_response(200, [b"ab", b"", b"cd"])) as mock_get:
        assert ensure_model(path, url="https://example.test/m.bin") == path

    assert path.read_bytes() == b"abcd"
    assert not path.with_name(path.name + ".part").exists()
    assert mock_get.call_args.args[0] == "https://example.test/m.bin"
    assert mock_get.call_args.kwargs["stream"] is True


def test_http_error_is_fatal_for_local_mode(tmp_path: Path) -> None:
    path = tmp_path / "ggml-base.en.bin"

    with patch("model_store.requests.get", return_value=_response(404)):
        with pytest.raises(LocalModelUnavailable, match="404"):
            ensure_model(path)

    assert not path.exists()


def test_network_error_is_fatal_for_local_mode(tmp_path: Path) -> None:
    path = tmp_path / "ggml-base.en.bin"

    with patch("model_store.requests.get", side_effect=requests.ConnectionError("offline")):
        with pytest.raises(LocalModelUnavailable, match="offline"):
            ensure_model(path)

    assert not path.exists()
