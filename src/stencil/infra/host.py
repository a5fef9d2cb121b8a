"""Infrastructure: platform and running-executable detection.

Rules
-----
* Fails closed — any OS not explicitly recognised is reported as
  :attr:`~stencil.core.models.OSFamily.UNSUPPORTED`.
* No raising; callers check :meth:`PlatformDescriptor.is_valid` and
  treat an invalid descriptor as fatal before doing anything else.
"""

from __future__ import annotations

import platform
import shutil
import sys
from pathlib import Path

from stencil.core.models import OSFamily, PlatformDescriptor

_SYSTEM_FAMILIES: dict[str, OSFamily] = {
    "windows": OSFamily.WINDOWS,
    "linux": OSFamily.LINUX,
    "darwin": OSFamily.MACOS,
}


def detect_family(system: str | None = None) -> OSFamily:
    """Map ``platform.system()`` (or *system*) to an :class:`OSFamily`."""
    raw = platform.system() if system is None else system
    return _SYSTEM_FAMILIES.get(raw.strip().lower(), OSFamily.UNSUPPORTED)


def detect(
    system: str | None = None,
    executable: str | Path | None = None,
) -> PlatformDescriptor:
    """Describe the current OS and the executable this process runs from.

    Parameters
    ----------
    system:
        Override for ``platform.system()``; used by tests.
    executable:
        Override for the running executable's path; used by tests.
    """
    path = Path(executable) if executable is not None else _running_executable()

    if not str(path) or not path.parts:
        return PlatformDescriptor(
            family=detect_family(system),
            executable_name="",
            executable_path=Path(),
            executable_directory=Path(),
        )

    return PlatformDescriptor(
        family=detect_family(system),
        executable_name=path.name,
        executable_path=path,
        executable_directory=path.parent,
    )


def _running_executable() -> Path:
    """Return the path of the binary the user launched.

    Frozen builds (PyInstaller and friends) report themselves through
    ``sys.executable``; a console-script install is the script in
    ``sys.argv[0]``, looked up on PATH when it is a bare name.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve()

    argv0 = sys.argv[0] if sys.argv else ""
    if not argv0:
        return Path()

    candidate = Path(argv0)
    if len(candidate.parts) == 1 and not candidate.exists():
        found = shutil.which(argv0)
        if found is None:
            return Path()
        candidate = Path(found)
    return candidate.resolve()
