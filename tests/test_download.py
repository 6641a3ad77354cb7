# =============================================================================
# Unit Tests — HTTP Downloads
# =============================================================================
#
# requests.get is replaced by a fake, so no network access is needed.
# =============================================================================

from __future__ import annotations

import pytest
import requests

from agentic_patterns.services import download
from agentic_patterns.services.download import DownloadError, download_file, fetch_text


class FakeResponse:
    def __init__(self, status_code=200, body=b"", reason="OK", chunks=None):
        self.status_code = status_code
        self.reason = reason
        self.ok = status_code < 400
        self.headers = {"content-length": str(len(body))}
        self.text = body.decode("utf-8")
        self._chunks = chunks if chunks is not None else [body]

    def iter_content(self, chunk_size=8192):
        for chunk in self._chunks:
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


def _fake_get(response, calls=None):
    def fake_get(url, **kwargs):
        if calls is not None:
            calls.append(url)
        return response

    return fake_get


class TestDownloadFile:
    def test_writes_file_and_creates_dirs(self, tmp_path, monkeypatch):
        monkeypatch.setattr(download.requests, "get", _fake_get(FakeResponse(body=b"sqlite-bytes")))
        target = tmp_path / "nested" / "db.sqlite"

        assert download_file("http://example.test/db", target) == target
        assert target.read_bytes() == b"sqlite-bytes"

    def test_existing_file_is_not_downloaded(self, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(download.requests, "get", _fake_get(FakeResponse(), calls))
        target = tmp_path / "db.sqlite"
        target.write_bytes(b"cached")

        download_file("http://example.test/db", target)

        assert calls == []
        assert target.read_bytes() == b"cached"

    def test_http_error_raises_with_status(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            download.requests, "get",
            _fake_get(FakeResponse(status_code=404, reason="Not Found")),
        )
        target = tmp_path / "db.sqlite"

        with pytest.raises(DownloadError, match="HTTP 404 Not Found") as exc_info:
            download_file("http://example.test/db", target)

        assert exc_info.value.status_code == 404
        assert not target.exists()

    def test_interrupted_download_removes_partial_file(self, tmp_path, monkeypatch):
        response = FakeResponse(
            body=b"partial",
            chunks=[b"partial", requests.ConnectionError("reset")],
        )
        monkeypatch.setattr(download.requests, "get", _fake_get(response))
        target = tmp_path / "db.sqlite"

        with pytest.raises(DownloadError, match="interrupted"):
            download_file("http://example.test/db", target)
        assert not target.exists()

    def test_disk_error_removes_partial_file(self, tmp_path, monkeypatch):
        response = FakeResponse(
            body=b"partial",
            chunks=[b"partial", OSError("No space left on device")],
        )
        monkeypatch.setattr(download.requests, "get", _fake_get(response))
        target = tmp_path / "db.sqlite"

        with pytest.raises(OSError, match="No space left"):
            download_file("http://example.test/db", target)
        assert not target.exists()

    def test_keyboard_interrupt_removes_partial_file(self, tmp_path, monkeypatch):
        response = FakeResponse(
            body=b"partial",
            chunks=[b"partial", KeyboardInterrupt()],
        )
        monkeypatch.setattr(download.requests, "get", _fake_get(response))
        target = tmp_path / "db.sqlite"

        with pytest.raises(KeyboardInterrupt):
            download_file("http://example.test/db", target)
        assert not target.exists()

    def test_connection_error(self, tmp_path, monkeypatch):
        def failing_get(url, **kwargs):
            raise requests.ConnectionError("no route")

        monkeypatch.setattr(download.requests, "get", failing_get)
        with pytest.raises(DownloadError, match="no route"):
            download_file("http://example.test/db", tmp_path / "db.sqlite")


class TestFetchText:
    def test_returns_body(self, monkeypatch):
        monkeypatch.setattr(download.requests, "get", _fake_get(FakeResponse(body=b"x" * 50)))
        assert fetch_text("http://example.test/t", min_length=10) == "x" * 50

    def test_too_short_raises(self, monkeypatch):
        monkeypatch.setattr(download.requests, "get", _fake_get(FakeResponse(body=b"short")))
        with pytest.raises(DownloadError, match="too short"):
            fetch_text("http://example.test/t", min_length=1000)

    def test_http_error(self, monkeypatch):
        monkeypatch.setattr(
            download.requests, "get",
            _fake_get(FakeResponse(status_code=500, reason="Server Error")),
        )
        with pytest.raises(DownloadError, match="HTTP 500"):
            fetch_text("http://example.test/t")
