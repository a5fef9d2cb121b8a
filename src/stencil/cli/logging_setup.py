"""Logging configuration for the CLI process.

Library modules only create ``logging.getLogger(__name__)`` loggers;
this is the one place that attaches a handler.  Records go to stderr
through Rich when it is installed, otherwise through a plain
``StreamHandler``.
"""

from __future__ import annotations

import logging

_FORMAT = "%(message)s"
_PLAIN_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "WARNING", *, verbose: bool = False) -> None:
    """Attach a single handler to the ``stencil`` logger.

    *verbose* forces ``DEBUG`` regardless of *level*.  Calling this more
    than once replaces the previous handler.
    """
    resolved = logging.DEBUG if verbose else logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.WARNING

    logger = logging.getLogger("stencil")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    logger.addHandler(_build_handler())
    logger.setLevel(resolved)
    logger.propagate = False


def _build_handler() -> logging.Handler:
    try:
        from rich.logging import RichHandler

        from stencil.cli.console import get_rich_console
    except ModuleNotFoundError:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))
        return handler

    handler = RichHandler(
        console=get_rich_console(),
        show_time=False,
        show_path=False,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter(_FORMAT))
    return handler
