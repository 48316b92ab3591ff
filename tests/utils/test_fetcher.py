"""
Tests for the content fetcher and its buffered retry.
"""

from typing import Optional
from unittest.mock import Mock, patch

import pytest
import requests

from packlauncher.utils.exception import NotFoundError, TransportError
from packlauncher.utils.fetcher import (
    FetchProgress,
    build_headers,
    fetch,
    fetch_json,
    is_success,
)

URL = "https://raw.githubusercontent.com/org/packs/main/mods/a.jar"


def _response(
    status_code: int = 200,
    chunks: Optional[list[bytes]] = None,
    content: bytes = b"",
    content_length: Optional[str] = None,
) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.headers = {} if content_length is None else {"content-length": content_length}
    response.iter_content.return_value = chunks or []
    response.content = content
    return response


class TestBuildHeaders:
    """Tests for build_headers."""

    def test_without_credentials(self) -> None:
        headers = build_headers()
        assert headers == {"User-Agent": "PackLauncher"}

    def test_with_credentials_and_accept(self) -> None:
        headers = build_headers("secret", accept="application/json")
        assert headers["Authorization"] == "token secret"
        assert headers["Accept"] == "application/json"


def test_is_success() -> None:
    assert is_success(200) is True
    assert is_success(204) is True
    assert is_success(301) is False
    assert is_success(500) is False


class TestFetch:
    """Tests for fetch."""

    def test_streams_and_reports_progress(self) -> None:
        """Test that chunks are concatenated and each reports progress."""
        response = _response(chunks=[b"abc", b"", b"def"], content_length="6")
        progress: list[FetchProgress] = []

        with patch("packlauncher.utils.fetcher.requests.get", return_value=response) as get:
            content = fetch(URL, on_progress=progress.append)

        assert content == b"abcdef"
        assert [p.received_bytes for p in progress] == [3, 6]
        assert all(p.total_bytes == 6 for p in progress)
        assert get.call_args.kwargs["stream"] is True
        response.close.assert_called_once()

    def test_unknown_length_reports_none_total(self) -> None:
        response = _response(chunks=[b"abc"])
        progress: list[FetchProgress] = []

        with patch("packlauncher.utils.fetcher.requests.get", return_value=response):
            fetch(URL, on_progress=progress.append)

        assert progress == [FetchProgress(received_bytes=3, total_bytes=None)]

    def test_not_found_is_not_retried(self) -> None:
        """Test that HTTP 404 raises immediately without the buffered retry."""
        with patch(
            "packlauncher.utils.fetcher.requests.get", return_value=_response(404)
        ) as get:
            with pytest.raises(NotFoundError) as exc_info:
                fetch(URL)

        assert get.call_count == 1
        assert exc_info.value.status_code == 404
        assert exc_info.value.url == URL

    def test_bad_status_retries_buffered(self) -> None:
        """Test that a non-404 error status falls back to a buffered request."""
        responses = [_response(503), _response(200, content=b"payload")]

        with patch(
            "packlauncher.utils.fetcher.requests.get", side_effect=responses
        ) as get:
            content = fetch(URL)

        assert content == b"payload"
        assert get.call_count == 2
        assert "stream" not in get.call_args_list[1].kwargs

    def test_transport_error_retries_buffered(self) -> None:
        responses = [requests.ConnectionError("reset"), _response(200, content=b"ok")]

        with patch("packlauncher.utils.fetcher.requests.get", side_effect=responses):
            assert fetch(URL) == b"ok"

    def test_interrupted_stream_retries_buffered(self) -> None:
        streaming = _response(200)
        streaming.iter_content.side_effect = requests.ConnectionError("broken")
        responses = [streaming, _response(200, content=b"whole")]

        with patch("packlauncher.utils.fetcher.requests.get", side_effect=responses):
            assert fetch(URL) == b"whole"

    def test_failed_retry_raises_transport_error(self) -> None:
        responses = [requests.Timeout("slow"), requests.Timeout("still slow")]

        with patch("packlauncher.utils.fetcher.requests.get", side_effect=responses):
            with pytest.raises(TransportError):
                fetch(URL)

    def test_bad_status_twice_raises_transport_error(self) -> None:
        responses = [_response(500), _response(502)]

        with patch("packlauncher.utils.fetcher.requests.get", side_effect=responses):
            with pytest.raises(TransportError) as exc_info:
                fetch(URL)

        assert exc_info.value.status_code == 502

    def test_sends_credentials(self) -> None:
        with patch(
            "packlauncher.utils.fetcher.requests.get",
            return_value=_response(chunks=[b"x"]),
        ) as get:
            fetch(URL, credentials="secret")

        assert get.call_args.kwargs["headers"]["Authorization"] == "token secret"


def test_fetch_json_decodes_leniently() -> None:
    response = _response(chunks=[b'{"versions": [],}'])

    with patch("packlauncher.utils.fetcher.requests.get", return_value=response):
        assert fetch_json(URL) == {"versions": []}
