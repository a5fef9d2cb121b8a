"""Source — where acquirable content comes from.

A :class:`Source` turns a locator (local directory, git URL, or the
tool's own latest release) into a local directory.  It owns:

* temporary-directory naming (``.stencil-tmp-<purpose>-<unix-seconds>``),
* retry with exponential backoff around git acquisition,
* guaranteed cleanup — nothing half-acquired survives a failure, and
  network-origin directories are removed by :meth:`Source.clear`, on
  context-manager exit, or as a last resort when the object is collected.

Local directories are never deleted: the caller does not own them.

Guarantees
----------
* No ``print()`` — progress reaches the CLI only through callbacks.
* Network and subprocess access only through injected protocols.
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

from stencil.config import DEFAULT_RELEASE_ENDPOINT
from stencil.core.models import (
    PlatformDescriptor,
    SourceKind,
    classify_source,
    parse_release_assets,
    select_platform_asset,
)
from stencil.core.protocols import Acquirer, ProgressCallback, Transport
from stencil.exceptions import (
    FileSystemError,
    InvalidSourceError,
    NoMatchingAssetError,
    StencilError,
    VcsFailureError,
    VcsUnavailableError,
)
from stencil.infra.archive import extract_zip, find_matching_file

logger = logging.getLogger(__name__)

TEMP_DIR_PREFIX: str = ".stencil-tmp"
GIT_PURPOSE: str = "source-git"
RELEASE_PURPOSE: str = "source-latest-app-release"

MAX_ATTEMPTS: int = 3
RETRY_DELAY_SECONDS: float = 1.0


def temp_dir_name(purpose: str, timestamp: int | None = None) -> str:
    """Return ``<prefix>-<purpose>-<unix-seconds>``."""
    stamp = int(time.time()) if timestamp is None else timestamp
    return f"{TEMP_DIR_PREFIX}-{purpose}-{stamp}"


def backoff_delay(attempt: int) -> float:
    """Delay slept after failed *attempt* (1-based): 1 s, 2 s, 4 s …"""
    return RETRY_DELAY_SECONDS * (2 ** (attempt - 1))


class Source:
    """A locator plus the directory it was materialized into.

    Parameters
    ----------
    locator:
        Path or URL, stored trimmed.
    kind:
        Acquisition strategy.  Classified from *locator* when omitted.
    platform:
        Running platform; selects release assets and the executable name.
    transport:
        HTTP backend for release metadata and downloads.
    acquirer:
        Git backend for :attr:`SourceKind.GIT_HTTPS` / ``GIT_SSH``.
    work_dir:
        Where temporary directories are created (defaults to the
        current directory at provisioning time).
    progress:
        Optional ``(downloaded, total)`` callback for release downloads.
    """

    def __init__(
        self,
        locator: str,
        *,
        platform: PlatformDescriptor,
        kind: SourceKind | None = None,
        transport: Transport | None = None,
        acquirer: Acquirer | None = None,
        work_dir: Path | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.locator: str = locator.strip()
        self.kind: SourceKind = classify_source(self.locator) if kind is None else kind
        self.acquired_directory: Path | None = None
        self.cleaned: bool = False
        self._platform = platform
        self._transport = transport
        self._acquirer = acquirer
        self._work_dir = work_dir
        self._progress = progress

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_input(cls, raw: str, platform: PlatformDescriptor, **kwargs: object) -> Source:
        """Classify user input and build a source from it."""
        return cls(raw, platform=platform, **kwargs)  # type: ignore[arg-type]

    @classmethod
    def latest_release(
        cls,
        platform: PlatformDescriptor,
        *,
        endpoint: str = DEFAULT_RELEASE_ENDPOINT,
        **kwargs: object,
    ) -> Source:
        """Source pointing at this tool's own release-metadata endpoint."""
        return cls(
            endpoint,
            platform=platform,
            kind=SourceKind.LATEST_RELEASE,
            **kwargs,  # type: ignore[arg-type]
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_valid(self) -> bool:
        return self.kind.is_valid and bool(self.locator.strip())

    @property
    def requires_network(self) -> bool:
        return self.kind.requires_network

    def __repr__(self) -> str:
        return (
            f"Source(kind={self.kind.value!r}, locator={self.locator!r}, "
            f"acquired_directory={self.acquired_directory!r}, cleaned={self.cleaned!r})"
        )

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def provide_dir(self) -> Path:
        """Materialize this source and return the directory holding it.

        Raises
        ------
        InvalidSourceError
            The kind is :attr:`SourceKind.UNKNOWN`.
        FileSystemError
            A local path is missing or not a directory, or a temporary
            directory cannot be created.
        VcsUnavailableError, VcsFailureError
            Git acquisition failed.
        NetworkError, RequestFailedError, InvalidResponseError, NoMatchingAssetError
            Release acquisition failed.
        """
        if self.kind is SourceKind.LOCAL_PATH:
            return self._provide_local()
        if self.kind in (SourceKind.GIT_HTTPS, SourceKind.GIT_SSH):
            return self._provide_git()
        if self.kind is SourceKind.LATEST_RELEASE:
            return self._provide_latest_release_dir()
        raise InvalidSourceError(f"Invalid source type: {self.kind.value}")

    def provide_latest_app_release(self) -> Path:
        """Download and unpack the latest release; return the new executable.

        The executable is looked up under the running platform's
        executable name.  On failure the temporary directory is removed
        before the error propagates.
        """
        if self.kind is not SourceKind.LATEST_RELEASE:
            raise InvalidSourceError("Invalid source type for latest app release")

        directory = self.provide_dir()
        try:
            archive = find_matching_file(directory, self._platform.family.matches_asset)
            if archive is None:
                raise NoMatchingAssetError("No matching archive found for the current OS")

            extract_zip(archive, directory)

            binary = directory / self._platform.executable_name
            if not binary.is_file():
                raise FileSystemError(f"Binary not found after extraction: {binary}")
        except StencilError:
            self.clear()
            raise
        return binary

    def _provide_local(self) -> Path:
        path = Path(self.locator).expanduser()
        if not path.exists():
            raise FileSystemError(f"Local source does not exist: {path}")
        if not path.is_dir():
            raise FileSystemError(f"Local source must be a directory: {path}")
        self.acquired_directory = path
        return path

    def _provide_git(self) -> Path:
        acquirer = self._acquirer
        if acquirer is None:
            raise InvalidSourceError("No git acquirer configured for this source")
        tmp_dir = self._create_temp_dir(GIT_PURPOSE)
        try:
            self._acquire_with_retry(acquirer, tmp_dir)
            if not tmp_dir.is_dir():
                raise VcsFailureError("Git source was not downloaded successfully")
        except StencilError:
            _remove_quietly(tmp_dir)
            raise
        self.acquired_directory = tmp_dir
        return tmp_dir

    def _acquire_with_retry(self, acquirer: Acquirer, output_dir: Path) -> None:
        errors: list[str] = []
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                acquirer.acquire(self.locator, output_dir)
                return
            except VcsUnavailableError:
                raise
            except StencilError as exc:
                logger.info("Git attempt %s/%s failed: %s", attempt, MAX_ATTEMPTS, exc)
                errors.append(f"attempt {attempt}: {exc}")
            if attempt < MAX_ATTEMPTS:
                time.sleep(backoff_delay(attempt))
                _remove_quietly(output_dir)
                output_dir.mkdir(parents=True, exist_ok=True)

        raise VcsFailureError(
            f"Failed to download Git source after {MAX_ATTEMPTS} attempts: " + "; ".join(errors),
        )

    def _provide_latest_release_dir(self) -> Path:
        transport = self._transport
        if transport is None:
            raise InvalidSourceError("No transport configured for this source")

        payload = transport.fetch_json(self.locator)
        assets = parse_release_assets(payload)
        if not assets:
            raise NoMatchingAssetError("No release assets were found")

        tmp_dir = self._create_temp_dir(RELEASE_PURPOSE)
        try:
            asset = select_platform_asset(assets, self._platform.family)
            if asset is None:
                raise NoMatchingAssetError(
                    "No matching release asset found for the current OS",
                    hint=f"Available assets: {', '.join(a.name for a in assets)}",
                )
            output_path = tmp_dir / asset.name
            transport.download_to_file(
                asset.browser_download_url, output_path, self._progress,
            )
            if not output_path.is_file():
                raise FileSystemError(f"Downloaded asset not found: {output_path}")
        except StencilError:
            _remove_quietly(tmp_dir)
            raise

        self.acquired_directory = tmp_dir
        return tmp_dir

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Delete the acquired directory if this source owns it.

        Idempotent.  Does nothing for local sources, for sources already
        cleaned, or when the directory is already gone.  A failed
        deletion is logged and leaves :attr:`cleaned` unset.
        """
        if self.cleaned or not self.requires_network:
            return
        directory = self.acquired_directory
        if directory is None or not directory.exists():
            return
        try:
            shutil.rmtree(directory)
        except OSError as exc:
            logger.debug("Could not remove %s: %s", directory, exc)
            return
        self.cleaned = True
        logger.debug("Removed %s", directory)

    def __enter__(self) -> Source:
        return self

    def __exit__(self, *_args: object) -> None:
        self.clear()

    def __del__(self) -> None:
        if getattr(self, "cleaned", True) or not hasattr(self, "kind"):
            return
        directory = getattr(self, "acquired_directory", None)
        if self.kind.requires_network and directory is not None and directory.exists():
            shutil.rmtree(directory, ignore_errors=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _create_temp_dir(self, purpose: str) -> Path:
        base = self._work_dir if self._work_dir is not None else Path.cwd()
        path = base / temp_dir_name(purpose)
        try:
            path.mkdir(parents=True)
        except FileExistsError as exc:
            raise FileSystemError(f"Temporary directory already exists: {path}") from exc
        except OSError as exc:
            raise FileSystemError(f"Failed to create directory {path}: {exc}") from exc
        logger.debug("Created temporary directory %s", path)
        return path


def _remove_quietly(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path, ignore_errors=True)
    elif path.exists():
        path.unlink(missing_ok=True)
