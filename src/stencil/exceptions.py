"""Custom exception hierarchy for stencil.

All exceptions that cross layer boundaries must inherit from
:class:`StencilError`.  Raw third-party and OS exceptions (httpx,
``zipfile``, ``subprocess``) must NEVER propagate beyond the
infrastructure layer — they are caught and re-raised as a typed
subclass defined here.

Hierarchy
---------
StencilError
├── UnsupportedPlatformError
├── InvalidSourceError
├── CommandError
├── NetworkError
├── RequestFailedError
├── InvalidResponseError
├── FileSystemError
│   └── PermissionElevationRequiredError
├── ArchiveError
├── VcsUnavailableError
├── VcsFailureError
├── NoMatchingAssetError
└── UpdateTimeoutError
"""

from __future__ import annotations


class StencilError(Exception):
    """Base exception for all stencil errors.

    Every user-visible error condition must map to a subclass of this
    exception so that the CLI error boundary can render a clean message
    without leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Platform --------------------------------------------------------------

class UnsupportedPlatformError(StencilError):
    """Raised when the running OS or executable cannot be identified."""


# --- Sources ---------------------------------------------------------------

class InvalidSourceError(StencilError):
    """Raised when a source locator is blank, unknown, or the wrong kind."""


class NoMatchingAssetError(StencilError):
    """Raised when a release has no artifact for the current platform."""


# --- Processes -------------------------------------------------------------

class CommandError(StencilError):
    """Raised when a child process cannot be prepared or spawned."""


# --- Network ---------------------------------------------------------------

class NetworkError(StencilError):
    """Raised when a remote service is unreachable or times out."""


class RequestFailedError(StencilError):
    """Raised when a remote service answers with a non-success status."""

    def __init__(self, status: int, message: str, *, hint: str | None = None) -> None:
        super().__init__(
            f"HTTP request failed with status code {status}: {message}",
            hint=hint,
        )
        self.status: int = status


class InvalidResponseError(StencilError):
    """Raised when a response body cannot be parsed, or a URL is blank."""


# --- Filesystem ------------------------------------------------------------

class FileSystemError(StencilError):
    """Raised on create/write/remove failures and path conflicts."""


class PermissionElevationRequiredError(FileSystemError):
    """Raised when staging an update is denied by the OS."""


class ArchiveError(StencilError):
    """Raised when a downloaded archive is corrupt or unsafe."""


# --- Version control -------------------------------------------------------

class VcsUnavailableError(StencilError):
    """Raised when the git client is not installed or not on PATH."""


class VcsFailureError(StencilError):
    """Raised when a clone or branch-archive acquisition fails."""


# --- Update handshake ------------------------------------------------------

class UpdateTimeoutError(StencilError):
    """Raised when the updater task gives up waiting for the original binary."""
