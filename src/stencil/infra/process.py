"""Infrastructure: child-process launching.

Every launch goes through :func:`prepare_command`, which normalises the
working directory and resolves relative program paths against it.
Spawn failures surface as :class:`~stencil.exceptions.CommandError`;
only :meth:`SubprocessRunner.is_available` folds them into ``False``.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from stencil.exceptions import CommandError

logger = logging.getLogger(__name__)

_VERSION_FLAG = "--version"
_PROBE_ARGS: dict[str, tuple[str, ...]] = {
    "git": (_VERSION_FLAG,),
    "python": (_VERSION_FLAG,),
    "python3": (_VERSION_FLAG,),
    "py": (_VERSION_FLAG,),
    "pip": (_VERSION_FLAG,),
    "pip3": (_VERSION_FLAG,),
    "node": (_VERSION_FLAG,),
    "cargo": (_VERSION_FLAG,),
    "tsc": (_VERSION_FLAG,),
    "tsc-alias": (_VERSION_FLAG,),
    "npm": ("-v",),
    "npx": ("-v",),
    "go": ("version",),
}
_SCRIPT_SUFFIXES: tuple[str, ...] = (".exe", ".cmd", ".ps1")
_WINDOWS_EXTENDED_PREFIX = "\\\\?\\"


# ---------------------------------------------------------------------------
# Command preparation
# ---------------------------------------------------------------------------

def normalize_work_dir(work_dir: Path | str | None) -> Path:
    """Return *work_dir* if it is a directory, else the current directory.

    The result is resolved and stripped of the Windows extended-length
    ``\\\\?\\`` prefix, which some tools reject as a working directory.
    """
    candidate = Path(work_dir) if work_dir is not None else None
    base = candidate if candidate is not None and candidate.is_dir() else Path.cwd()
    try:
        resolved = base.resolve()
    except OSError:
        resolved = base
    text = str(resolved)
    if text.startswith(_WINDOWS_EXTENDED_PREFIX):
        return Path(text[len(_WINDOWS_EXTENDED_PREFIX):])
    return resolved


def resolve_program(work_dir: Path, program: str) -> str:
    """Resolve *program* against *work_dir*.

    * Absolute paths are used verbatim.
    * Paths with separators resolve against *work_dir* only when the
      resulting file exists.
    * Anything else is handed to the OS search mechanism unchanged.
    """
    path = Path(program)
    if path.is_absolute():
        return str(path)
    if "/" in program or "\\" in program:
        full = work_dir / path
        if full.exists():
            return str(full)
    return program


def prepare_command(work_dir: Path | str | None, argv: Sequence[str]) -> tuple[list[str], Path]:
    """Return ``(resolved_argv, cwd)`` ready for :mod:`subprocess`."""
    if not argv:
        raise CommandError("The command array is empty")
    program = argv[0].strip()
    if not program:
        raise CommandError("The command name is empty")

    cwd = normalize_work_dir(work_dir)
    return [resolve_program(cwd, program), *argv[1:]], cwd


def probe_args(command: str) -> tuple[str, ...] | None:
    """Return the version-query arguments used to probe *command*."""
    base = command.replace("\\", "/").rsplit("/", 1)[-1]
    for suffix in _SCRIPT_SUFFIXES:
        if base.endswith(suffix):
            base = base[: -len(suffix)]
            break
    return _PROBE_ARGS.get(base)


def _detached_options() -> dict[str, Any]:
    if sys.platform == "win32":
        flags = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        return {"creationflags": flags, "close_fds": True}
    return {"start_new_session": True, "close_fds": True}


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class SubprocessRunner:
    """Concrete :class:`~stencil.core.protocols.ProcessRunner`.

    This class satisfies the protocol structurally — no explicit
    inheritance required.
    """

    def run_foreground(self, work_dir: Path, argv: Sequence[str]) -> int:
        """Block until *argv* exits, sharing this process's streams."""
        return self._run(work_dir, argv, stdout=None, stderr=None)

    def run_silent(self, work_dir: Path, argv: Sequence[str]) -> int:
        """Block until *argv* exits, discarding its output."""
        return self._run(
            work_dir, argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
        )

    def spawn_detached(self, work_dir: Path, argv: Sequence[str]) -> None:
        """Start *argv* in its own session and return immediately."""
        command, cwd = prepare_command(work_dir, argv)
        logger.debug("Spawning detached %s in %s", command, cwd)
        try:
            subprocess.Popen(  # noqa: S603 - argv is built internally
                command,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                **_detached_options(),
            )
        except OSError as exc:
            raise CommandError(f"Failed to start {command[0]}: {exc}") from exc

    def is_available(self, work_dir: Path, command: str) -> bool:
        """Return ``True`` when *command* answers its version query."""
        if not command.strip():
            return False
        args = probe_args(command)
        if args is None:
            return False
        try:
            return self.run_silent(work_dir, [command, *args]) == 0
        except CommandError as exc:
            logger.debug("Probe for %s failed: %s", command, exc)
            return False

    @staticmethod
    def _run(
        work_dir: Path,
        argv: Sequence[str],
        *,
        stdout: int | None,
        stderr: int | None,
    ) -> int:
        command, cwd = prepare_command(work_dir, argv)
        logger.debug("Running %s in %s", command, cwd)
        try:
            completed = subprocess.run(  # noqa: S603 - argv is built internally
                command,
                cwd=cwd,
                stdout=stdout,
                stderr=stderr,
                check=False,
            )
        except OSError as exc:
            raise CommandError(f"Failed to run {command[0]}: {exc}") from exc
        return completed.returncode


def current_work_dir() -> Path:
    """Working directory for launches that have no better choice."""
    return normalize_work_dir(os.getcwd())
