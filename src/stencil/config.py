"""Runtime settings for stencil.

Settings are read once from environment variables at CLI start-up and
passed down explicitly; nothing below the CLI layer reads ``os.environ``.

Variables
---------
``STENCIL_RELEASE_URL``
    Release-metadata endpoint used by ``stencil update``.
``STENCIL_UPDATER_TIMEOUT``
    Seconds the updater task waits for the original executable to be
    released.  Unset, empty, zero or invalid means "wait forever".
``STENCIL_LOG_LEVEL``
    Logging level name (``DEBUG``, ``INFO`` …).  Defaults to ``WARNING``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_RELEASE_ENDPOINT: str = (
    "https://api.github.com/repos/stencil-cli/stencil/releases/latest"
)
"""GitHub "latest release" API document listing the published assets."""

INSTALL_SCRIPT_URL: str = (
    "https://raw.githubusercontent.com/stencil-cli/stencil/master/install.sh"
)
RELEASES_PAGE_URL: str = "https://github.com/stencil-cli/stencil/releases/latest"

_DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable runtime configuration."""

    release_endpoint: str = DEFAULT_RELEASE_ENDPOINT
    updater_timeout: float | None = None
    log_level: str = _DEFAULT_LOG_LEVEL
    work_dir: Path = field(default_factory=Path.cwd)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from *environ* (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ

        endpoint = env.get("STENCIL_RELEASE_URL", "").strip() or DEFAULT_RELEASE_ENDPOINT

        return cls(
            release_endpoint=endpoint,
            updater_timeout=_parse_timeout(env.get("STENCIL_UPDATER_TIMEOUT")),
            log_level=_parse_log_level(env.get("STENCIL_LOG_LEVEL")),
        )


def _parse_timeout(raw: str | None) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def _parse_log_level(raw: str | None) -> str:
    if raw is None:
        return _DEFAULT_LOG_LEVEL
    name = raw.strip().upper()
    if isinstance(logging.getLevelName(name), int):
        return name
    return _DEFAULT_LOG_LEVEL
