"""CLI layer — argument parsing, status output, and the error boundary.

The only layer that renders to the terminal.  It may import from
``core`` and ``infra``; nothing imports from ``cli``.
"""
