"""Single source of truth for the stencil version string."""

from __future__ import annotations

__version__: str = "1.4.0"
