"""Process exit codes returned by :func:`stencil.cli.app.main`.

The self-update handshake children exit with :data:`SUCCESS` as well;
nothing waits on them, so their codes only matter to tests.
"""

from __future__ import annotations

SUCCESS: int = 0
"""Command completed, including an update that found nothing new."""

GENERAL_ERROR: int = 1
"""A :class:`~stencil.exceptions.StencilError` was reported to the user."""

KEYBOARD_INTERRUPT: int = 130
"""Interrupted with Ctrl+C (128 + SIGINT)."""

UNEXPECTED_ERROR: int = 2
"""Any other exception reached the error boundary."""
