"""
Content fetcher for remote manifest assets.

Responses are streamed in chunks with progress reporting. When the streaming
request fails with a non-404 status or a transport error, the resource is
requested once more without streaming before giving up. Nothing is written to
disk here; callers persist the returned bytes.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Type, TypeVar

import requests
from loguru import logger

from packlauncher.utils.constants import DOWNLOAD_CHUNK_SIZE, DOWNLOAD_TIMEOUT
from packlauncher.utils.exception import FetchError, NotFoundError, TransportError
from packlauncher.utils.json_utils import decode_lenient

T = TypeVar("T")

USER_AGENT = "PackLauncher"


@dataclass
class FetchProgress:
    received_bytes: int
    total_bytes: Optional[int]


FetchProgressCallback = Callable[[FetchProgress], None]


def build_headers(
    credentials: Optional[str] = None, accept: Optional[str] = None
) -> dict[str, str]:
    """
    Build request headers, including a GitHub token when given.

    :param credentials: GitHub personal access token
    :param accept: optional Accept header value
    """
    headers = {"User-Agent": USER_AGENT}
    if credentials:
        headers["Authorization"] = f"token {credentials}"
    if accept:
        headers["Accept"] = accept
    return headers


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def _content_length(response: requests.Response) -> Optional[int]:
    raw = response.headers.get("content-length")
    if raw is None:
        return None
    try:
        total = int(raw)
    except (TypeError, ValueError):
        return None
    return total if total > 0 else None


def _read_stream(
    response: requests.Response,
    on_progress: Optional[FetchProgressCallback],
) -> bytes:
    total = _content_length(response)
    content = bytearray()
    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
        if not chunk:
            continue
        content.extend(chunk)
        if on_progress is not None:
            on_progress(FetchProgress(received_bytes=len(content), total_bytes=total))
    return bytes(content)


def _fetch_buffered(url: str, headers: dict[str, str], timeout: float) -> bytes:
    """Single non-streaming GET used as the fallback strategy."""
    try:
        response = requests.get(url, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        raise TransportError(f"Buffered request failed: {e}", url) from e

    status = response.status_code
    if status == 404:
        raise NotFoundError(f"Not found: {url}", url, status)
    if not is_success(status):
        raise TransportError(f"HTTP {status} for {url}", url, status)
    return response.content


def fetch(
    url: str,
    credentials: Optional[str] = None,
    on_progress: Optional[FetchProgressCallback] = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> bytes:
    """
    Retrieve a remote resource into memory.

    :param url: resource URL
    :param credentials: optional GitHub token
    :param on_progress: called per received chunk; total is None when unknown
    :param timeout: per-request timeout in seconds
    :return: the response body
    :raises NotFoundError: on HTTP 404, without retrying
    :raises TransportError: when the buffered retry also fails
    """
    headers = build_headers(credentials)
    logger.debug(f"Fetching {url}")

    try:
        response = requests.get(url, headers=headers, stream=True, timeout=timeout)
    except requests.RequestException as e:
        logger.warning(f"Streaming request failed for {url} ({e}), retrying buffered")
        return _retry_after_error(url, headers, timeout, e)

    try:
        status = response.status_code
        if status == 404:
            raise NotFoundError(f"Not found: {url}", url, status)
        if not is_success(status):
            logger.warning(f"HTTP {status} for {url}, retrying buffered")
            return _fetch_buffered(url, headers, timeout)
        try:
            return _read_stream(response, on_progress)
        except requests.RequestException as e:
            logger.warning(f"Stream interrupted for {url} ({e}), retrying buffered")
            return _retry_after_error(url, headers, timeout, e)
    finally:
        response.close()


def _retry_after_error(
    url: str, headers: dict[str, str], timeout: float, original: Exception
) -> bytes:
    try:
        return _fetch_buffered(url, headers, timeout)
    except FetchError as retry_error:
        logger.debug(f"Buffered retry for {url} failed too: {retry_error}")
        raise TransportError(
            f"Failed to fetch {url}: {original}", url
        ) from original


def fetch_json(
    url: str,
    type: Type[T] = Any,  # type: ignore[assignment]
    credentials: Optional[str] = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> T:
    """
    Fetch a JSON document and decode it leniently into ``type``.

    :raises FetchError: if the document cannot be retrieved
    :raises ManifestError: if the document cannot be decoded
    """
    return decode_lenient(
        fetch(url, credentials=credentials, timeout=timeout), type=type, source=url
    )
