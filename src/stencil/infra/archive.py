"""Archive handling helpers for source acquisition and self-update."""

from __future__ import annotations

import logging
import shutil
import stat
import zipfile
from collections.abc import Callable
from pathlib import Path

from stencil.exceptions import ArchiveError

logger = logging.getLogger(__name__)


def extract_zip(archive_path: Path, destination: Path) -> None:
    """Extract *archive_path* into *destination*.

    Raises :class:`ArchiveError` for corrupt archives or members that
    would land outside *destination*.
    """
    logger.info("Extracting archive %s", archive_path)
    try:
        destination.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive_path) as archive:
            extract_zip_safely(archive, destination)
    except (OSError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"Failed to extract archive {archive_path}: {exc}") from exc


def extract_zip_safely(archive: zipfile.ZipFile, target_dir: Path) -> None:
    root = target_dir.resolve()
    extracted = 0
    for member in archive.infolist():
        name = member.filename
        if not name:
            continue
        path = Path(name)
        if path.is_absolute():
            raise ArchiveError(f"Archive contained an absolute path entry: {name}")
        destination = (root / path).resolve()
        try:
            destination.relative_to(root)
        except ValueError:
            raise ArchiveError(f"Archive contained an unsafe relative path: {name}") from None
        if member.is_dir():
            destination.mkdir(parents=True, exist_ok=True)
            continue
        destination.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(member) as source, destination.open("wb") as target:
            shutil.copyfileobj(source, target)
        _restore_mode(member, destination)
        extracted += 1

    logger.debug("Extracted %s files into %s", extracted, target_dir)


def _restore_mode(member: zipfile.ZipInfo, destination: Path) -> None:
    # Unix builds store st_mode in the high word; zipfile drops it on extract.
    mode = (member.external_attr >> 16) & 0o777
    if not mode:
        return
    if mode & stat.S_IXUSR:
        mode |= stat.S_IRUSR
    try:
        destination.chmod(mode)
    except OSError as exc:
        logger.debug("Could not restore mode of %s: %s", destination, exc)


def hoist_single_root(directory: Path) -> None:
    """Move the contents of a lone top-level folder up into *directory*.

    Hosted branch archives wrap the tree in ``<repo>-<branch>/``; after
    hoisting, *directory* looks like a fresh clone.
    """
    entries = list(directory.iterdir())
    if len(entries) != 1 or not entries[0].is_dir():
        return
    wrapper = entries[0].rename(directory / f".{entries[0].name}.hoist")
    for child in list(wrapper.iterdir()):
        shutil.move(str(child), str(directory / child.name))
    wrapper.rmdir()
    logger.debug("Hoisted %s into %s", entries[0].name, directory)


def find_matching_file(directory: Path, predicate: Callable[[str], bool]) -> Path | None:
    """Return the first regular file in *directory* whose name matches."""
    if not directory.is_dir():
        return None
    for entry in sorted(directory.iterdir()):
        if entry.is_file() and predicate(entry.name):
            return entry
    return None
