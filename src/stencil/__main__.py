"""Allow ``python -m stencil`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m stencil`` behaves identically to the ``stencil``
console script.
"""

from __future__ import annotations

from stencil.cli.app import cli

if __name__ == "__main__":
    cli()
