"""CLI console helpers with optional Rich support.

This module intentionally avoids module-level imports of optional UI
dependencies so bootstrap paths (``--help``, ``--version`` and the
hidden handshake flags) remain functional even when Rich is missing.
"""

from __future__ import annotations

import sys
from typing import Any

from stencil.exceptions import StencilError

ARROW = "→"
DONE_TAG = "DONE"
WARN_TAG = "WARN"
ERR_TAG = "ERR"


def _load_rich_console_class() -> type[Any]:
	"""Return ``rich.console.Console`` class or raise ``StencilError``."""
	try:
		from rich.console import Console
	except ModuleNotFoundError as exc:
		raise StencilError(
			"rich is not installed. Install with: pip install rich",
		) from exc
	return Console


def get_rich_console() -> Any:
	"""Create a Rich console instance targeting stderr."""
	console_class = _load_rich_console_class()
	return console_class(stderr=True, highlight=False)


class _ConsoleProxy:
	"""Minimal ``print``-compatible proxy with Rich fallback."""

	def print(self, *objects: object) -> None:
		"""Render with Rich when available, else plain stderr print."""
		try:
			rich_console = get_rich_console()
		except StencilError:
			print(*objects, file=sys.stderr)
			return
		rich_console.print(*objects)


console = _ConsoleProxy()


def escape(text: str) -> str:
	"""Neutralise Rich markup in *text* (paths and OS errors contain brackets)."""
	return text.replace("[", "\\[")


class ConsoleReporter:
	"""Phase-labeled status lines for long-running commands.

	Satisfies :class:`~stencil.core.protocols.StatusReporter`::

	    → Getting the latest update...
	    → Updating stencil. DONE
	    → Getting the latest update... ERR !! No release assets were found.
	"""

	def __init__(self) -> None:
		self.current: str | None = None
		"""Label of the phase in progress, used to tag a failure line."""

	def info(self, text: str) -> None:
		self.current = text
		console.print(f"[bright_cyan]{ARROW}[/bright_cyan] {escape(text)}...")

	def done(self, text: str) -> None:
		self.current = None
		console.print(
			f"[bright_cyan]{ARROW}[/bright_cyan] {escape(text)}. "
			f"[bold bright_green]{DONE_TAG}[/bold bright_green]"
		)

	def warn(self, text: str, detail: str = "") -> None:
		console.print(
			f"[bright_yellow]{ARROW} {escape(text)}...[/bright_yellow] "
			f"[bold bright_yellow]{WARN_TAG}[/bold bright_yellow] !! "
			f"[bold yellow]{escape(detail)}.[/bold yellow]"
		)

	def error(self, text: str, detail: str = "") -> None:
		console.print(
			f"[bright_red]{ARROW} {escape(text)}...[/bright_red] "
			f"[bold bright_red]{ERR_TAG}[/bold bright_red] !! "
			f"[bold red]{escape(detail)}.[/bold red]"
		)


reporter = ConsoleReporter()
