"""Shared pytest fixtures for the stencil test suite.

Guidelines
----------
* No internet access in any test: HTTP goes through
  ``httpx.MockTransport``.
* Child processes are replaced with ``MagicMock`` runners.
* Temporary directories come from ``tmp_path``; nothing is written to
  the real working directory.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from stencil.cli.console import reporter
from stencil.core.models import OSFamily, PlatformDescriptor
from stencil.infra import transport


def make_platform(
    directory: Path,
    name: str = "stencil",
    family: OSFamily = OSFamily.LINUX,
    *,
    create: bool = True,
) -> PlatformDescriptor:
    """Descriptor for an executable called *name* inside *directory*."""
    path = directory / name
    if create:
        directory.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"old binary")
    return PlatformDescriptor(
        family=family,
        executable_name=name,
        executable_path=path,
        executable_directory=directory,
    )


@pytest.fixture
def platform_factory() -> Callable[..., PlatformDescriptor]:
    return make_platform


@pytest.fixture
def linux_platform(tmp_path: Path) -> PlatformDescriptor:
    return make_platform(tmp_path / "bin")


@pytest.fixture(autouse=True)
def _reset_shared_state() -> Iterator[None]:
    transport.reset_client()
    reporter.current = None
    yield
    transport.reset_client()
    reporter.current = None
