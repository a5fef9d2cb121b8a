"""Domain models for stencil.

All value objects here are **frozen** dataclasses or enums with no I/O
beyond the existence checks :meth:`PlatformDescriptor.is_valid` needs.
They carry zero dependencies on external packages.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path

STAGED_PREFIX: str = "latest-"
"""Filename prefix of the staged replacement executable."""


# ---------------------------------------------------------------------------
# Operating system family
# ---------------------------------------------------------------------------

class OSFamily(enum.Enum):
    """Operating system families stencil knows how to update on."""

    WINDOWS = "windows"
    LINUX = "linux"
    MACOS = "macos"
    UNSUPPORTED = "unsupported"

    @property
    def is_supported(self) -> bool:
        return self is not OSFamily.UNSUPPORTED

    @property
    def asset_suffix(self) -> str | None:
        """Release-asset filename suffix for this family (``linux.zip`` …)."""
        if not self.is_supported:
            return None
        return f"{self.value}.zip"

    def matches_asset(self, filename: str) -> bool:
        suffix = self.asset_suffix
        return suffix is not None and filename.endswith(suffix)


# ---------------------------------------------------------------------------
# Platform descriptor
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class PlatformDescriptor:
    """Identity and location of the running executable.

    Created once per process by :func:`stencil.infra.host.detect`
    and never mutated afterwards.
    """

    family: OSFamily
    """Detected operating system family."""

    executable_name: str
    """Filename of the running executable (e.g. ``stencil.exe``)."""

    executable_path: Path
    """Absolute path to the running executable."""

    executable_directory: Path
    """Directory containing the running executable."""

    staged_prefix: str = STAGED_PREFIX
    """Prefix marking the staged copy used during the update handshake."""

    def is_valid(self) -> bool:
        """Whether the descriptor can be trusted for update work."""
        return (
            self.family.is_supported
            and bool(self.executable_name)
            and self.executable_path.exists()
            and self.executable_directory.exists()
        )

    @property
    def is_staged(self) -> bool:
        """``True`` when this process is running from the staged copy."""
        return bool(self.staged_prefix) and self.executable_name.startswith(self.staged_prefix)

    def staged_path(self) -> Path | None:
        """Return ``{dir}/{prefix}{name}``, or ``None`` if a part is empty."""
        if not self.executable_name or not self.executable_directory.parts:
            return None
        return self.executable_directory / f"{self.staged_prefix}{self.executable_name}"

    def original_path_from_staged(self) -> Path | None:
        """Return the un-prefixed sibling this staged copy should replace."""
        if not self.executable_name or not self.executable_directory.parts:
            return None
        name = self.executable_name
        if self.staged_prefix and name.startswith(self.staged_prefix):
            name = name[len(self.staged_prefix):]
        if not name:
            return None
        return self.executable_directory / name


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class SourceKind(enum.Enum):
    """Where acquirable content originates."""

    LOCAL_PATH = "local-path"
    GIT_HTTPS = "git-url"
    GIT_SSH = "git-ssh"
    LATEST_RELEASE = "latest-release"
    UNKNOWN = "unknown"

    @property
    def is_valid(self) -> bool:
        return self is not SourceKind.UNKNOWN

    @property
    def requires_network(self) -> bool:
        return self in (SourceKind.GIT_HTTPS, SourceKind.GIT_SSH, SourceKind.LATEST_RELEASE)


GIT_SUFFIX: str = ".git"
_WEB_SCHEMES: tuple[str, ...] = ("https://", "http://")
_SSH_PREFIX: str = "git@"
_LOCAL_PREFIXES: tuple[str, ...] = ("/", ".", "~")


def is_git_https_url(url: str) -> bool:
    return url.startswith(_WEB_SCHEMES) and url.endswith(GIT_SUFFIX)


def is_git_ssh_url(url: str) -> bool:
    return url.startswith(_SSH_PREFIX) and url.endswith(GIT_SUFFIX)


def is_valid_git_url(url: str) -> bool:
    return is_git_https_url(url) or is_git_ssh_url(url)


def classify_source(raw: str) -> SourceKind:
    """Classify a user-supplied locator string.

    * ``https://host/owner/repo.git`` → :attr:`SourceKind.GIT_HTTPS`
    * ``git@host:owner/repo.git`` → :attr:`SourceKind.GIT_SSH`
    * ``/abs``, ``./rel``, ``~/home`` → :attr:`SourceKind.LOCAL_PATH`
    * anything else → :attr:`SourceKind.UNKNOWN`
    """
    locator = raw.strip()
    if not locator:
        return SourceKind.UNKNOWN
    if is_git_https_url(locator):
        return SourceKind.GIT_HTTPS
    if is_git_ssh_url(locator):
        return SourceKind.GIT_SSH
    if locator.startswith(_LOCAL_PREFIXES):
        return SourceKind.LOCAL_PATH
    return SourceKind.UNKNOWN


# ---------------------------------------------------------------------------
# Release metadata
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ReleaseAsset:
    """A single downloadable file attached to a published release."""

    name: str
    """Asset filename (e.g. ``stencil-1.4.0-linux.zip``)."""

    browser_download_url: str
    """Direct download URL."""


def parse_release_assets(payload: object) -> tuple[ReleaseAsset, ...]:
    """Extract well-formed assets from a release JSON document.

    Entries lacking a string ``name`` or ``browser_download_url`` are
    skipped; a payload that is not an object yields no assets.
    """
    if not isinstance(payload, dict):
        return ()
    raw_assets = payload.get("assets")
    if not isinstance(raw_assets, list):
        return ()

    assets: list[ReleaseAsset] = []
    for entry in raw_assets:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        url = entry.get("browser_download_url")
        if isinstance(name, str) and name and isinstance(url, str) and url:
            assets.append(ReleaseAsset(name=name, browser_download_url=url))
    return tuple(assets)


def select_platform_asset(
    assets: tuple[ReleaseAsset, ...], family: OSFamily,
) -> ReleaseAsset | None:
    """Return the first asset built for *family*, or ``None``."""
    return next((asset for asset in assets if family.matches_asset(asset.name)), None)


# ---------------------------------------------------------------------------
# Update outcome
# ---------------------------------------------------------------------------

class UpdateOutcome(enum.Enum):
    """Terminal result of the initiating process."""

    HANDED_OFF = "handed-off"
    NO_UPDATE = "no-update"
