"""CLI application entry point and command routing for stencil.

This module is the **sole error boundary** for the entire application.
It catches :class:`~stencil.exceptions.StencilError`, ``KeyboardInterrupt``,
and any unexpected ``Exception``, rendering user-friendly messages via Rich
and returning well-defined exit codes.

Architecture notes
------------------
* No business logic lives here — all work is delegated to the core and
  infrastructure layers.
* A failure that happens while a status phase is open is rendered on
  that phase's line (``→ Phase... ERR !! reason.``).
* This module is the only place that translates between the domain world
  and the OS process exit code.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from stencil.cli import exit_codes
from stencil.cli.console import console, escape, reporter
from stencil.cli.logging_setup import configure_logging
from stencil.config import Settings
from stencil.core.models import PlatformDescriptor
from stencil.core.updater import (
    CLEARANCE_FLAG,
    UPDATER_TASK_FLAG,
    Role,
    UpdateOrchestrator,
    resolve_role,
)
from stencil.exceptions import InvalidSourceError, StencilError, UnsupportedPlatformError
from stencil.version import __version__

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser.

    * ``stencil update``               — replace this executable with the latest release
    * ``stencil import SOURCE DEST``   — copy a local or git source into DEST
    * ``stencil doctor``               — environment diagnostics
    * ``stencil --version``

    ``--updater-task`` and ``--updater-task-clearance`` are passed between
    the processes of a self-update and are hidden from ``--help``.
    """
    parser = argparse.ArgumentParser(
        prog="stencil",
        description="Import project sources and keep stencil up to date.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logging on stderr.",
    )
    parser.add_argument(
        UPDATER_TASK_FLAG,
        dest="handshake",
        action="store_const",
        const=UPDATER_TASK_FLAG,
        default=None,
        help=argparse.SUPPRESS,
    )
    parser.add_argument(
        CLEARANCE_FLAG,
        dest="handshake",
        action="store_const",
        const=CLEARANCE_FLAG,
        help=argparse.SUPPRESS,
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.add_parser("update", help="Update stencil to the latest release.")

    import_parser = commands.add_parser(
        "import",
        help="Copy a local directory or git repository into DEST.",
    )
    import_parser.add_argument(
        "source",
        help="Local directory, https:// git URL, or git@ SSH URL.",
    )
    import_parser.add_argument("dest", help="Directory to copy the source into.")

    commands.add_parser("doctor", help="Run environment diagnostics.")
    return parser


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _detect_platform() -> PlatformDescriptor:
    """Describe the running executable or raise when it is unusable."""
    from stencil.infra.host import detect

    platform = detect()
    logger.debug("Detected platform %s", platform)
    if not platform.is_valid():
        raise UnsupportedPlatformError(
            "The current OS is not supported",
            hint="stencil runs on Windows, Linux and macOS.",
        )
    return platform


def _handle_update(settings: Settings, flag: str | None) -> int:
    """Run this process's part of the self-update handshake.

    Flow:
    1. Detect the platform and resolve the role from the staged prefix
       and *flag*.
    2. The initiator downloads the latest release with a progress bar,
       stages it and hands off; the other roles finish their step
       silently.
    """
    from stencil.cli.progress import RichProgressHook
    from stencil.core.source import Source
    from stencil.infra.process import SubprocessRunner
    from stencil.infra.transport import HttpTransport

    platform = _detect_platform()
    role = resolve_role(platform, flag)
    logger.debug("Running self-update role %s", role.value)

    orchestrator = UpdateOrchestrator(
        platform,
        SubprocessRunner(),
        reporter,
        settings=settings,
    )

    if role is not Role.INITIATOR:
        orchestrator.run(role, lambda: Source.latest_release(platform))
        return exit_codes.SUCCESS

    with RichProgressHook("Downloading latest release") as hook:
        source = Source.latest_release(
            platform,
            endpoint=settings.release_endpoint,
            transport=HttpTransport(),
            work_dir=settings.work_dir,
            progress=hook,
        )
        orchestrator.initiate(source)
    return exit_codes.SUCCESS


def _handle_import(settings: Settings, raw_source: str, raw_dest: str) -> int:
    """Materialize *raw_source* and copy its files into *raw_dest*.

    Existing files in the destination are left alone and reported as
    warnings.  Temporary directories are removed before returning.
    """
    from stencil.core.source import Source
    from stencil.infra.files import copy_tree
    from stencil.infra.process import SubprocessRunner
    from stencil.infra.transport import HttpTransport
    from stencil.infra.vcs import VcsAcquirer

    platform = _detect_platform()
    transport = HttpTransport()
    source = Source.from_input(
        raw_source,
        platform,
        transport=transport,
        acquirer=VcsAcquirer(transport, SubprocessRunner()),
        work_dir=settings.work_dir,
    )
    if not source.is_valid():
        raise InvalidSourceError(
            "The source is invalid",
            hint="Use a local directory, an https:// git URL, or a git@ SSH URL.",
        )

    with source:
        reporter.info("Providing source")
        directory = source.provide_dir()
        reporter.done("Providing source")

        reporter.info("Importing")
        report = copy_tree(directory, Path(raw_dest).expanduser())
        for relative in report.skipped:
            reporter.warn(f"Skipping {relative}", "File already exists")
        reporter.done("Importing")
    return exit_codes.SUCCESS


def _handle_doctor() -> int:
    """Dispatch the ``doctor`` diagnostics command."""
    from stencil.cli.doctor import run_doctor

    return run_doctor()


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    """Run the stencil CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.  Accepting *argv* enables deterministic testing without
        monkeypatching.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(settings.log_level, verbose=args.verbose)

    if args.handshake is not None:
        return _handle_update(settings, args.handshake)

    if args.command is None:
        parser.print_help()
        return exit_codes.SUCCESS

    if args.command == "doctor":
        return _handle_doctor()

    if args.command == "import":
        return _handle_import(settings, args.source, args.dest)

    return _handle_update(settings, None)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except StencilError as exc:
        if reporter.current is not None:
            reporter.error(reporter.current, str(exc))
        else:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        if exc.hint:
            console.print(f"[yellow]Hint:[/yellow] {escape(exc.hint)}")
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {escape(str(exc))}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
