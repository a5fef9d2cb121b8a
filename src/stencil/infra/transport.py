"""httpx-backed implementation of :class:`~stencil.core.protocols.Transport`.

This module is the **only** place in the codebase that imports
``httpx``.  All httpx exceptions are caught here and re-raised as typed
:class:`~stencil.exceptions.StencilError` subclasses so callers can tell
"unreachable" from "answered with an error" from "answered with garbage".

Nothing here retries; retry policy belongs to the caller.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from stencil.core.protocols import ProgressCallback
from stencil.exceptions import (
    FileSystemError,
    InvalidResponseError,
    NetworkError,
    RequestFailedError,
)
from stencil.version import __version__

logger = logging.getLogger(__name__)

USER_AGENT: str = f"stencil/{__version__}"
TIMEOUT_SECONDS: float = 30.0
CONNECT_TIMEOUT_SECONDS: float = 10.0
POOL_IDLE_SECONDS: float = 90.0
POOL_MAX_IDLE_PER_HOST: int = 10
CHUNK_SIZE: int = 8192


# ---------------------------------------------------------------------------
# Process-wide client
# ---------------------------------------------------------------------------

_client: httpx.Client | None = None
_client_error: NetworkError | None = None


def _build_client() -> httpx.Client:
    return httpx.Client(
        timeout=httpx.Timeout(TIMEOUT_SECONDS, connect=CONNECT_TIMEOUT_SECONDS),
        limits=httpx.Limits(
            max_keepalive_connections=POOL_MAX_IDLE_PER_HOST,
            keepalive_expiry=POOL_IDLE_SECONDS,
        ),
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    )


def get_client() -> httpx.Client:
    """Return the shared client, creating it on first use.

    A construction failure is remembered and raised again for every
    later caller instead of being retried.  The client is never closed
    explicitly; process exit reclaims it.
    """
    global _client, _client_error

    if _client_error is not None:
        raise _client_error
    if _client is None:
        try:
            _client = _build_client()
        except Exception as exc:  # noqa: BLE001
            _client_error = NetworkError(f"Failed to build HTTP client: {exc}")
            raise _client_error from exc
    return _client


def reset_client() -> None:
    """Forget the shared client and any cached construction failure."""
    global _client, _client_error
    _client = None
    _client_error = None


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class HttpTransport:
    """Concrete :class:`~stencil.core.protocols.Transport`.

    Parameters
    ----------
    client:
        Explicit client to use instead of the shared one (tests pass an
        ``httpx.Client`` wired to ``httpx.MockTransport``).
    """

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._client: httpx.Client | None = client

    def _http(self) -> httpx.Client:
        return self._client if self._client is not None else get_client()

    def fetch_json(self, url: str) -> Any:
        """GET *url* and decode its JSON body."""
        if not url.strip():
            raise InvalidResponseError("URL cannot be empty")

        client = self._http()
        logger.debug("GET %s", url)
        try:
            response = client.get(url)
        except httpx.InvalidURL as exc:
            raise InvalidResponseError(f"Invalid URL {url!r}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Network error: {exc}") from exc

        if not response.is_success:
            raise RequestFailedError(
                response.status_code, f"Failed to fetch JSON from {url}",
            )

        try:
            return response.json()
        except ValueError as exc:
            raise InvalidResponseError(f"Invalid response from {url}: {exc}") from exc

    def download_to_file(
        self,
        url: str,
        destination: Path,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Stream *url* into *destination* in fixed-size chunks.

        *destination* must not exist; missing parent directories are
        created.  A partially written file is removed on failure.
        """
        if not url.strip():
            raise InvalidResponseError("URL cannot be empty")
        if not str(destination) or not destination.parts:
            raise FileSystemError("Output file path cannot be empty")
        if destination.exists():
            raise FileSystemError(f"File or directory already exists: {destination}")

        client = self._http()
        logger.debug("Downloading %s -> %s", url, destination)
        try:
            with client.stream("GET", url) as response:
                if not response.is_success:
                    raise RequestFailedError(
                        response.status_code, f"Failed to download from {url}",
                    )
                total = _content_length(response)
                _ensure_parent(destination)
                self._stream_body(response, destination, total, progress)
        except httpx.InvalidURL as exc:
            _discard_partial(destination)
            raise InvalidResponseError(f"Invalid URL {url!r}: {exc}") from exc
        except httpx.HTTPError as exc:
            _discard_partial(destination)
            raise NetworkError(f"Failed to download {url}: {exc}") from exc
        except FileSystemError:
            _discard_partial(destination)
            raise

        logger.info("Downloaded %s to %s", url, destination)

    @staticmethod
    def _stream_body(
        response: httpx.Response,
        destination: Path,
        total: int,
        progress: ProgressCallback | None,
    ) -> None:
        downloaded = 0
        try:
            with destination.open("wb") as out:
                for chunk in response.iter_bytes(chunk_size=CHUNK_SIZE):
                    out.write(chunk)
                    downloaded += len(chunk)
                    if progress is not None:
                        progress(downloaded, total)
                out.flush()
        except OSError as exc:
            raise FileSystemError(f"Failed to write {destination}: {exc}") from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _content_length(response: httpx.Response) -> int:
    try:
        return max(int(response.headers.get("content-length", 0)), 0)
    except ValueError:
        return 0


def _ensure_parent(destination: Path) -> None:
    parent = destination.parent
    if parent.is_dir():
        return
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileSystemError(f"Failed to create directory {parent}: {exc}") from exc


def _discard_partial(destination: Path) -> None:
    try:
        destination.unlink(missing_ok=True)
    except OSError as exc:
        logger.debug("Could not remove partial download %s: %s", destination, exc)
