"""Infrastructure layer — the OS, child processes, HTTP, zip files and git.

Every raw third-party or OS exception is caught here and re-raised as a
:class:`~stencil.exceptions.StencilError` subclass.

Rules
-----
* No imports from ``cli``.
* No user-facing output; diagnostics go to ``logging`` only.
"""
