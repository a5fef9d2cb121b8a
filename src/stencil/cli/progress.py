"""Download progress bar fed by transport byte callbacks.

:meth:`~stencil.infra.transport.HttpTransport.download_to_file` reports
``(downloaded, total)`` after every chunk; :class:`RichProgressHook`
turns those counts into a transient Rich bar.  The bar lives on stderr
next to the status lines, which Rich renders above it while it is live.
"""

from __future__ import annotations

from typing import Any

from stencil.cli.console import get_rich_console
from stencil.exceptions import StencilError


def _load_rich_progress() -> Any:
    try:
        import rich.progress
    except ModuleNotFoundError as exc:
        raise StencilError(
            "rich is not installed. Install with: pip install rich",
        ) from exc
    return rich.progress


class RichProgressHook:
    """``(downloaded, total)`` callback drawing a transient bar.

    The bar exists only inside the ``with`` block; counts reported
    outside it are dropped.  A *total* of ``0`` (no Content-Length)
    leaves the bar indeterminate.

    Usage::

        with RichProgressHook("stencil-linux.zip") as hook:
            transport.download_to_file(url, path, hook)
    """

    def __init__(self, description: str = "Downloading") -> None:
        progress = _load_rich_progress()
        self._progress: Any = progress.Progress(
            progress.TextColumn("{task.description}", style="cyan"),
            progress.BarColumn(bar_width=None),
            progress.TaskProgressColumn(),
            progress.DownloadColumn(binary_units=True),
            progress.TransferSpeedColumn(),
            console=get_rich_console(),
            transient=True,
        )
        self._description = _shorten(description)
        self._task_id: Any = None
        self._active = False

    def __enter__(self) -> RichProgressHook:
        self._progress.start()
        self._active = True
        return self

    def __exit__(self, *_args: object) -> None:
        if self._active:
            self._active = False
            self._progress.stop()

    def __call__(self, downloaded: int, total: int) -> None:
        if not self._active:
            return
        known_total = total if total > 0 else None
        if self._task_id is None:
            self._task_id = self._progress.add_task(self._description, total=known_total)
        self._progress.update(self._task_id, total=known_total, completed=downloaded)


def _shorten(name: str, limit: int = 50) -> str:
    display = name.rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    if len(display) > limit:
        display = display[: limit - 3] + "..."
    return display
