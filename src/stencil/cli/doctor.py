"""``stencil doctor`` — environment diagnostics command.

Collects one row per requirement and renders them as a Rich table (or a
plain-text table when Rich is unavailable).  Missing git only warns:
local imports and self-update work without it.
"""

from __future__ import annotations

import platform
import sys

from stencil.cli import exit_codes
from stencil.cli.console import console
from stencil.infra.host import detect
from stencil.infra.process import SubprocessRunner, current_work_dir
from stencil.infra.vcs import GitStatus, detect_git
from stencil.version import __version__

OK = "[green]OK[/green]"
WARN = "[yellow]WARN[/yellow]"
FAIL = "[red]FAIL[/red]"

Check = tuple[str, str, str]


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _stencil_version_check() -> Check:
    return "stencil", __version__, OK


def _python_version_check() -> Check:
    """Return (label, value, status) for the Python version row."""
    version = platform.python_version()
    ok = sys.version_info[:2] >= (3, 10)
    status = OK if ok else "[red]FAIL (>=3.10 required)[/red]"
    return "Python", version, status


def _git_check(git: GitStatus) -> Check:
    if git.found:
        return "git", git.version_hint, OK
    return "git", "not found", WARN


def _os_check() -> Check:
    """Return (label, value, status) for the OS row."""
    system_raw = platform.system()
    system_display = {
        "Windows": "Windows",
        "Linux": "Linux",
        "Darwin": "macOS",
    }.get(system_raw, system_raw)
    value = f"{system_display} {platform.release()} ({platform.machine()})"
    status = OK if system_raw in ("Windows", "Linux", "Darwin") else FAIL
    return "OS", value, status


def _self_update_check() -> Check:
    descriptor = detect()
    if descriptor.is_valid():
        return "self-update", str(descriptor.executable_path), OK
    return "self-update", "executable not identified", WARN


def _status_plain(status: str) -> str:
    for word in ("FAIL", "WARN", "OK"):
        if word in status:
            return word
    return status


def _print_plain_doctor_table(checks: list[Check]) -> None:
    """Render doctor output without Rich."""
    print("\nstencil doctor", file=sys.stderr)
    print("=" * 64, file=sys.stderr)
    print(f"{'Component':<12} {'Value':<40} {'Status':<8}", file=sys.stderr)
    print("-" * 64, file=sys.stderr)
    for label, value, status in checks:
        print(f"{label:<12} {value:<40} {_status_plain(status):<8}", file=sys.stderr)
    print(file=sys.stderr)


def _print_rich_doctor_table(checks: list[Check]) -> None:
    from rich.table import Table

    table = Table(
        title="stencil doctor",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Component", style="bold", min_width=12)
    table.add_column("Value", min_width=20)
    table.add_column("Status", justify="center", min_width=8)
    for label, value, status in checks:
        table.add_row(label, value, status)

    console.print()
    console.print(table)
    console.print()


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def run_doctor() -> int:
    """Execute all diagnostic checks and render a summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` when no check fails,
        :data:`exit_codes.GENERAL_ERROR` otherwise.  Warnings do not
        change the exit code.
    """
    git = detect_git(SubprocessRunner(), current_work_dir())
    checks = [
        _stencil_version_check(),
        _python_version_check(),
        _git_check(git),
        _os_check(),
        _self_update_check(),
    ]
    has_failure = any("FAIL" in status for _, _, status in checks)

    try:
        _print_rich_doctor_table(checks)
        rich_available = True
    except ModuleNotFoundError:
        _print_plain_doctor_table(checks)
        rich_available = False

    if not git.found and git.install_commands:
        lines = ["git is not installed; git sources will be unavailable.",
                 "Install using one of the following commands:", ""]
        lines.extend(f"  {cmd}" for cmd in git.install_commands)
        for line in lines:
            if rich_available:
                console.print(line)
            else:
                print(line, file=sys.stderr)

    summary = "Some checks failed." if has_failure else "All checks passed."
    if rich_available:
        colour = "bold red" if has_failure else "bold green"
        console.print(f"[{colour}]{summary}[/{colour}]")
    else:
        print(summary, file=sys.stderr)

    return exit_codes.GENERAL_ERROR if has_failure else exit_codes.SUCCESS
