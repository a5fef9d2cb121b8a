"""Core layer — source acquisition and the self-update handshake.

Rules
-----
* No ``print()`` calls; status goes through a ``StatusReporter``.
* Network and subprocess access only through the protocols in
  :mod:`stencil.core.protocols`.
* No imports from ``cli``.
"""

from stencil.core.models import (
    OSFamily,
    PlatformDescriptor,
    ReleaseAsset,
    SourceKind,
    UpdateOutcome,
    classify_source,
)
from stencil.core.protocols import Acquirer, ProcessRunner, StatusReporter, Transport
from stencil.core.source import Source
from stencil.core.updater import Role, UpdateOrchestrator, resolve_role

__all__: list[str] = [
    "Acquirer",
    "OSFamily",
    "PlatformDescriptor",
    "ProcessRunner",
    "ReleaseAsset",
    "Role",
    "Source",
    "SourceKind",
    "StatusReporter",
    "Transport",
    "UpdateOrchestrator",
    "UpdateOutcome",
    "classify_source",
    "resolve_role",
]
