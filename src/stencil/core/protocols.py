"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters and the CLI
must satisfy.  Core code depends ONLY on these protocols — never on
concrete implementations — so every role of the update handshake can
be exercised in tests with plain mocks.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Protocol

ProgressCallback = Callable[[int, int], None]
"""Called with ``(downloaded_bytes, total_bytes)``; total is ``0`` when unknown."""


class Transport(Protocol):
    """Contract for the HTTP backend.

    Implementations must map all backend-specific exceptions to
    :class:`~stencil.exceptions.StencilError` subclasses.
    """

    def fetch_json(self, url: str) -> Any:
        """GET *url* and return the decoded JSON body.

        Raises
        ------
        NetworkError
            The service is unreachable or timed out.
        RequestFailedError
            The service answered with a non-success status.
        InvalidResponseError
            The body is not valid JSON.
        """
        ...  # pragma: no cover

    def download_to_file(
        self,
        url: str,
        destination: Path,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Stream *url* into *destination*, which must not exist yet.

        Raises
        ------
        FileSystemError
            *destination* already exists or cannot be written.
        NetworkError, RequestFailedError
            As for :meth:`fetch_json`.
        """
        ...  # pragma: no cover


class ProcessRunner(Protocol):
    """Contract for launching child processes."""

    def run_foreground(self, work_dir: Path, argv: Sequence[str]) -> int:
        """Run *argv* with inherited standard streams; return the exit code."""
        ...  # pragma: no cover

    def run_silent(self, work_dir: Path, argv: Sequence[str]) -> int:
        """Run *argv* with standard streams discarded; return the exit code."""
        ...  # pragma: no cover

    def spawn_detached(self, work_dir: Path, argv: Sequence[str]) -> None:
        """Start *argv* and return immediately without waiting."""
        ...  # pragma: no cover

    def is_available(self, work_dir: Path, command: str) -> bool:
        """Probe whether *command* can be executed."""
        ...  # pragma: no cover


class Acquirer(Protocol):
    """Contract for materializing a version-control URL into a directory."""

    def acquire(self, url: str, output_directory: Path) -> None:
        """Fill *output_directory* with the repository at *url*.

        Raises
        ------
        VcsUnavailableError
            The archive path failed and no VCS client is installed.
        VcsFailureError
            Every acquisition strategy failed.
        """
        ...  # pragma: no cover


class StatusReporter(Protocol):
    """Phase-labeled status output, implemented by the CLI layer."""

    def info(self, text: str) -> None:
        ...  # pragma: no cover

    def done(self, text: str) -> None:
        ...  # pragma: no cover

    def error(self, text: str, detail: str = "") -> None:
        ...  # pragma: no cover
