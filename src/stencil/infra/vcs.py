"""Infrastructure: version-control acquisition and git detection.

Archive-first: when the host serves branch archives (GitHub), each
candidate default branch is tried as a zip download before falling back
to ``git clone``.  Public repositories then never need a git client or
its credential setup.

Rules
-----
* Git availability is probed by running ``git --version`` through the
  process runner — never assumed.
* A missing client (:class:`VcsUnavailableError`) is reported separately
  from a clone that fails (:class:`VcsFailureError`).
* No user-facing output; callers handle it.
"""

from __future__ import annotations

import logging
import platform
import shutil
from dataclasses import dataclass
from pathlib import Path

from stencil.core.models import is_valid_git_url
from stencil.core.protocols import ProcessRunner, Transport
from stencil.exceptions import (
    StencilError,
    VcsFailureError,
    VcsUnavailableError,
)
from stencil.infra.archive import extract_zip, hoist_single_root

logger = logging.getLogger(__name__)

GIT_COMMAND: str = "git"
ARCHIVE_HOST: str = "github.com"
DEFAULT_BRANCHES: tuple[str, ...] = ("master", "main")
ARCHIVE_TEMP_NAME: str = ".stencil-tmp-downloaded-repo.zip"
_SSH_HOST_PREFIX = f"git@{ARCHIVE_HOST}:"


# ---------------------------------------------------------------------------
# Git detection
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class GitStatus:
    """Result of a git availability probe.

    Attributes
    ----------
    found : bool
        Whether ``git --version`` succeeded.
    version_hint : str
        Human-readable status string.
    install_commands : tuple[str, ...]
        Suggested shell commands for installing git on the current
        platform.  Empty when git is already usable.
    """

    found: bool
    version_hint: str
    install_commands: tuple[str, ...]


def detect_git(runner: ProcessRunner, work_dir: Path) -> GitStatus:
    """Probe for a usable git client.

    Returns a :class:`GitStatus` regardless of the outcome — the caller
    decides whether to abort or merely warn.
    """
    if runner.is_available(work_dir, GIT_COMMAND):
        return GitStatus(found=True, version_hint="available", install_commands=())
    return GitStatus(
        found=False,
        version_hint="not found",
        install_commands=_platform_install_commands(),
    )


def require_git(runner: ProcessRunner, work_dir: Path) -> None:
    """Raise :class:`VcsUnavailableError` when git cannot be run."""
    status = detect_git(runner, work_dir)
    if status.found:
        return
    hint_lines: list[str] = []
    if status.install_commands:
        hint_lines.append("Install git using one of:")
        hint_lines.extend(f"  {cmd}" for cmd in status.install_commands)
    raise VcsUnavailableError(
        "Git is not installed or is not available in PATH",
        hint="\n".join(hint_lines) if hint_lines else None,
    )


def _platform_install_commands() -> tuple[str, ...]:
    """Return install commands appropriate for the current OS."""
    system = platform.system().lower()
    if system == "windows":
        return (
            "winget install Git.Git",
            "choco install git",
        )
    if system == "linux":
        return (
            "sudo apt install git",
            "sudo dnf install git",
            "sudo pacman -S git",
        )
    if system == "darwin":
        return ("brew install git", "xcode-select --install")
    return ("Please install git from https://git-scm.com/downloads",)


# ---------------------------------------------------------------------------
# Archive URLs
# ---------------------------------------------------------------------------

def archive_url(git_url: str, branch: str) -> str | None:
    """Return the branch-archive URL for *git_url*, or ``None``.

    Only GitHub serves ``/archive/refs/heads/<branch>.zip``; SSH remotes
    (``git@github.com:owner/repo.git``) map to the same HTTPS archive.
    """
    url = git_url.strip()
    if ARCHIVE_HOST not in url or not branch:
        return None
    if url.startswith(_SSH_HOST_PREFIX):
        url = f"https://{ARCHIVE_HOST}/{url[len(_SSH_HOST_PREFIX):]}"
    base = url.rstrip("/").removesuffix(".git")
    return f"{base}/archive/refs/heads/{branch}.zip"


# ---------------------------------------------------------------------------
# Acquirer
# ---------------------------------------------------------------------------

class VcsAcquirer:
    """Concrete :class:`~stencil.core.protocols.Acquirer`.

    Parameters
    ----------
    transport:
        Used for branch-archive downloads.
    runner:
        Used to probe for and run the git client.
    branches:
        Candidate default branches, tried in order.
    """

    def __init__(
        self,
        transport: Transport,
        runner: ProcessRunner,
        *,
        branches: tuple[str, ...] = DEFAULT_BRANCHES,
    ) -> None:
        self._transport = transport
        self._runner = runner
        self._branches = branches

    def acquire(self, url: str, output_directory: Path) -> None:
        """Materialize the repository at *url* into *output_directory*."""
        if self._try_archive(url, output_directory):
            logger.info("Fetched %s as a branch archive", url)
        else:
            self._clone(url, output_directory)

        if not output_directory.is_dir():
            raise VcsFailureError(
                f"Git repository was not downloaded successfully to {output_directory}",
            )

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _try_archive(self, url: str, output_directory: Path) -> bool:
        archive_path = output_directory / ARCHIVE_TEMP_NAME
        for branch in self._branches:
            candidate = archive_url(url, branch)
            if candidate is None:
                return False
            try:
                self._transport.download_to_file(candidate, archive_path)
                if not archive_path.is_file():
                    continue
                try:
                    extract_zip(archive_path, output_directory)
                finally:
                    archive_path.unlink(missing_ok=True)
                hoist_single_root(output_directory)
                return True
            except (StencilError, OSError) as exc:
                logger.debug("Archive attempt for branch %s failed: %s", branch, exc)
                _reset_directory(output_directory)
        return False

    def _clone(self, url: str, output_directory: Path) -> None:
        if not is_valid_git_url(url):
            raise VcsFailureError(f"Invalid Git URL: {url}")
        if not output_directory.name:
            raise VcsFailureError("Git repository output path cannot be empty")

        work_dir = output_directory.parent
        require_git(self._runner, work_dir)
        _reset_directory(output_directory)

        try:
            code = self._runner.run_foreground(
                work_dir, [GIT_COMMAND, "clone", url, output_directory.name],
            )
        except StencilError as exc:
            raise VcsFailureError(f"Failed to clone Git repository from {url}: {exc}") from exc
        if code != 0:
            raise VcsFailureError(
                f"Failed to clone Git repository from {url}: git exited with status {code}",
                hint="Check the URL, your network, and your git credentials.",
            )


def _reset_directory(directory: Path) -> None:
    """Remove leftovers of a failed attempt so git can clone into the path."""
    if directory.is_dir():
        shutil.rmtree(directory, ignore_errors=True)
    elif directory.exists():
        directory.unlink(missing_ok=True)
