"""stencil — project-skeleton CLI with in-place self-update.

The interesting parts live in :mod:`stencil.core` (source acquisition and
the update handshake) and :mod:`stencil.infra` (platform, processes,
network, archives).
"""

from stencil.version import __version__

__all__: list[str] = ["__version__"]
