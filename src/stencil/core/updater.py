"""Self-update handshake.

Replacing a running executable takes three cooperating processes:

1. **Initiator** — the user's ``stencil update``.  Downloads the latest
   release, copies the new binary beside itself as ``latest-<name>``
   (the *staged* executable), starts it with ``--updater-task`` and
   exits.
2. **Updater task** — the staged copy.  Copies itself over the original
   path, retrying until the initiator has released the file, then starts
   the original with ``--updater-task-clearance`` and exits.
3. **Clearance owner** — the updated original.  Deletes the staged copy.

Which role a process plays depends only on whether its own filename
carries the staged prefix and on the flag it was started with; see
:func:`resolve_role`.  The staged file's presence is the only state the
processes share.
"""

from __future__ import annotations

import enum
import errno
import logging
import shutil
import time
from collections.abc import Callable
from pathlib import Path

from stencil.config import INSTALL_SCRIPT_URL, RELEASES_PAGE_URL, Settings
from stencil.core.models import OSFamily, PlatformDescriptor, UpdateOutcome
from stencil.core.protocols import ProcessRunner, StatusReporter
from stencil.core.source import Source
from stencil.exceptions import (
    FileSystemError,
    InvalidSourceError,
    PermissionElevationRequiredError,
    StencilError,
    UpdateTimeoutError,
)

logger = logging.getLogger(__name__)

UPDATER_TASK_FLAG: str = "--updater-task"
CLEARANCE_FLAG: str = "--updater-task-clearance"
POLL_INTERVAL_SECONDS: float = 0.1

_WINDOWS_ACCESS_DENIED = 5
_ACCESS_ERRNOS = frozenset({errno.EACCES, errno.EPERM})


class Role(enum.Enum):
    """Part a process plays in the handshake."""

    INITIATOR = "initiator"
    UPDATER_TASK = "updater-task"
    CLEARANCE_OWNER = "clearance-owner"
    NOOP = "noop"


_ROLE_TABLE: dict[tuple[bool, str | None], Role] = {
    (False, None): Role.INITIATOR,
    (True, UPDATER_TASK_FLAG): Role.UPDATER_TASK,
    (False, CLEARANCE_FLAG): Role.CLEARANCE_OWNER,
}


def resolve_role(platform: PlatformDescriptor, flag: str | None) -> Role:
    """Map ``(is_staged, flag)`` to a role; mismatches are :attr:`Role.NOOP`.

    A staged copy asked to update normally, or an original asked to act
    as updater task, exits without touching anything.  This tolerates a
    renamed binary or a flag passed by accident.
    """
    return _ROLE_TABLE.get((platform.is_staged, flag), Role.NOOP)


def is_access_denied(exc: OSError) -> bool:
    """Classify *exc* by its structured error code, not its message."""
    if isinstance(exc, PermissionError):
        return True
    if getattr(exc, "winerror", None) == _WINDOWS_ACCESS_DENIED:
        return True
    return exc.errno in _ACCESS_ERRNOS


def elevation_hint(family: OSFamily) -> str:
    """Platform-specific remediation for a denied staging copy."""
    if family is OSFamily.WINDOWS:
        return "\n".join(
            (
                "Please run this command as Administrator:",
                "  1. Open Command Prompt or PowerShell as Administrator",
                "  2. Run: stencil update",
                "Alternatively, download the latest installer from:",
                f"  {RELEASES_PAGE_URL}",
            )
        )
    return "\n".join(
        (
            "Please run this command with sudo:",
            "  sudo stencil update",
            "Or reinstall using the installation script:",
            f"  curl -sSL {INSTALL_SCRIPT_URL} | sh",
        )
    )


class UpdateOrchestrator:
    """Runs whichever handshake role the current process was started in.

    Parameters
    ----------
    platform:
        Descriptor of the running executable.
    runner:
        Used to start the next handshake phase, detached.
    reporter:
        Receives a status line before each phase.
    settings:
        Supplies the optional updater-task timeout.
    sleep, copy, clock:
        Injected for tests; default to the real ``time``/``shutil`` calls.
    """

    def __init__(
        self,
        platform: PlatformDescriptor,
        runner: ProcessRunner,
        reporter: StatusReporter,
        *,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        copy: Callable[[Path, Path], object] = shutil.copy2,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._platform = platform
        self._runner = runner
        self._reporter = reporter
        self._settings = settings if settings is not None else Settings()
        self._sleep = sleep
        self._copy = copy
        self._clock = clock

    @property
    def work_dir(self) -> Path:
        return self._settings.work_dir

    # ------------------------------------------------------------------
    # Initiator: Initiating -> Staging -> Handoff
    # ------------------------------------------------------------------

    def initiate(self, source: Source) -> UpdateOutcome:
        """Acquire the latest release, stage it, and hand off.

        The source's temporary files are released on every path out of
        this method.
        """
        try:
            new_binary = self._initiating(source)
            staged = self._staging(new_binary)
            if staged is None:
                self._reporter.done("No latest update available")
                return UpdateOutcome.NO_UPDATE
            self._handoff(staged)
            return UpdateOutcome.HANDED_OFF
        finally:
            source.clear()

    def _initiating(self, source: Source) -> Path:
        self._reporter.info("Checking latest stencil source")
        if not source.is_valid():
            raise InvalidSourceError("The latest stencil source is currently not available")

        self._reporter.info("Getting the latest update")
        return source.provide_latest_app_release()

    def _staging(self, new_binary: Path) -> Path | None:
        self._reporter.info("Updating stencil")
        staged = self._platform.staged_path()
        if staged is None:
            raise FileSystemError("Cannot compute the staged executable path")

        try:
            self._copy(new_binary, staged)
        except OSError as exc:
            if is_access_denied(exc):
                raise PermissionElevationRequiredError(
                    "Access denied - elevated privileges required",
                    hint=elevation_hint(self._platform.family),
                ) from exc
            raise FileSystemError(
                f"Failed to copy {new_binary} to {staged}: {exc}",
            ) from exc

        if not staged.is_file():
            return None
        logger.info("Staged new executable at %s", staged)
        return staged

    def _handoff(self, staged: Path) -> None:
        try:
            self._runner.spawn_detached(self.work_dir, [str(staged), UPDATER_TASK_FLAG])
        except StencilError:
            staged.unlink(missing_ok=True)
            raise
        self._reporter.done("Updating stencil")

    # ------------------------------------------------------------------
    # Updater task
    # ------------------------------------------------------------------

    def run_updater_task(self) -> bool:
        """Copy this staged binary over the original, then start clearance.

        Returns ``False`` without side effects when this process is not a
        staged copy.  Retries every :data:`POLL_INTERVAL_SECONDS` while the
        original is still locked; forever unless a timeout is configured.
        """
        if not self._platform.is_staged:
            return False
        target = self._platform.original_path_from_staged()
        if target is None:
            return False

        timeout = self._settings.updater_timeout
        deadline = None if timeout is None else self._clock() + timeout
        attempts = 0
        while True:
            attempts += 1
            try:
                self._copy(self._platform.executable_path, target)
                break
            except OSError as exc:
                if deadline is not None and self._clock() >= deadline:
                    raise UpdateTimeoutError(
                        f"Gave up replacing {target} after {attempts} attempts: {exc}",
                    ) from exc
                logger.debug("Target %s still busy: %s", target, exc)
                self._sleep(POLL_INTERVAL_SECONDS)

        logger.info("Replaced %s after %s attempt(s)", target, attempts)
        self._runner.spawn_detached(self.work_dir, [str(target), CLEARANCE_FLAG])
        return True

    # ------------------------------------------------------------------
    # Clearance owner
    # ------------------------------------------------------------------

    def run_clearance(self) -> bool:
        """Delete the staged copy beside this (updated) executable.

        Returns ``True`` when a staged file was removed.
        """
        if self._platform.is_staged:
            return False
        staged = self._platform.staged_path()
        if staged is None or not staged.is_file():
            return False
        try:
            staged.unlink()
        except OSError as exc:
            raise FileSystemError(f"Failed to remove {staged}: {exc}") from exc
        logger.info("Removed staged executable %s", staged)
        return True

    def run(self, role: Role, source_factory: Callable[[], Source]) -> UpdateOutcome | bool:
        """Dispatch *role*; the source is only built for the initiator."""
        if role is Role.INITIATOR:
            return self.initiate(source_factory())
        if role is Role.UPDATER_TASK:
            return self.run_updater_task()
        if role is Role.CLEARANCE_OWNER:
            return self.run_clearance()
        return False
