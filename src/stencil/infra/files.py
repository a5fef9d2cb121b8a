"""Copy a materialized source tree into a destination directory.

Existing destination files are never overwritten; they are reported
back to the caller so the CLI can warn about each one.  Version-control
metadata (``.git``) is not copied.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from stencil.exceptions import FileSystemError

logger = logging.getLogger(__name__)

IGNORED_NAMES: frozenset[str] = frozenset({".git"})


@dataclass(slots=True)
class CopyReport:
    """Relative paths copied and skipped by :func:`copy_tree`."""

    copied: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)


def copy_tree(source: Path, destination: Path) -> CopyReport:
    """Copy every file under *source* into *destination*.

    Raises
    ------
    FileSystemError
        *source* is not a directory, *destination* exists as a file, or
        a copy fails.
    """
    if not source.is_dir():
        raise FileSystemError(f"Source directory does not exist: {source}")
    if destination.exists() and not destination.is_dir():
        raise FileSystemError(
            f"Destination is not a directory: {destination}",
            hint="Choose a new or existing directory as the import target.",
        )

    report = CopyReport()
    for path in sorted(source.rglob("*")):
        relative = path.relative_to(source)
        if IGNORED_NAMES.intersection(relative.parts) or not path.is_file():
            continue

        target = destination / relative
        if target.exists():
            report.skipped.append(relative)
            continue

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, target)
        except OSError as exc:
            raise FileSystemError(f"Failed to copy {relative}: {exc}") from exc
        report.copied.append(relative)

    logger.info(
        "Copied %s file(s) into %s, skipped %s",
        len(report.copied), destination, len(report.skipped),
    )
    return report
