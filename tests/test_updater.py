"""Tests for the self-update handshake (core/updater.py).

Each role is exercised by constructing its preconditions on disk (a
staged file, an executable name) and asserting its single side effect.
Child processes are recorded by a ``MagicMock`` runner, never started.
"""

from __future__ import annotations

import errno
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from stencil.config import Settings
from stencil.core.models import OSFamily, PlatformDescriptor, UpdateOutcome
from stencil.core.updater import (
    CLEARANCE_FLAG,
    POLL_INTERVAL_SECONDS,
    UPDATER_TASK_FLAG,
    Role,
    UpdateOrchestrator,
    elevation_hint,
    is_access_denied,
    resolve_role,
)
from stencil.exceptions import (
    CommandError,
    FileSystemError,
    InvalidSourceError,
    NoMatchingAssetError,
    PermissionElevationRequiredError,
    UpdateTimeoutError,
)


def _orchestrator(
    platform: PlatformDescriptor,
    *,
    runner: MagicMock | None = None,
    reporter: MagicMock | None = None,
    settings: Settings | None = None,
    **kwargs: object,
) -> UpdateOrchestrator:
    return UpdateOrchestrator(
        platform,
        runner or MagicMock(),
        reporter or MagicMock(),
        settings=settings or Settings(work_dir=platform.executable_directory),
        sleep=kwargs.pop("sleep", lambda seconds: None),  # type: ignore[arg-type]
        **kwargs,  # type: ignore[arg-type]
    )


def _source_with_binary(binary: Path) -> MagicMock:
    source = MagicMock()
    source.is_valid.return_value = True
    source.provide_latest_app_release.return_value = binary
    return source


# ---------------------------------------------------------------------------
# Role resolution
# ---------------------------------------------------------------------------

class TestResolveRole:
    @pytest.mark.parametrize(
        ("name", "flag", "role"),
        [
            ("stencil", None, Role.INITIATOR),
            ("latest-stencil", UPDATER_TASK_FLAG, Role.UPDATER_TASK),
            ("stencil", CLEARANCE_FLAG, Role.CLEARANCE_OWNER),
            ("latest-stencil", None, Role.NOOP),
            ("stencil", UPDATER_TASK_FLAG, Role.NOOP),
            ("latest-stencil", CLEARANCE_FLAG, Role.NOOP),
        ],
    )
    def test_table(
        self,
        name: str,
        flag: str | None,
        role: Role,
        tmp_path: Path,
        platform_factory: Callable[..., PlatformDescriptor],
    ) -> None:
        assert resolve_role(platform_factory(tmp_path, name), flag) is role


# ---------------------------------------------------------------------------
# Permission classification
# ---------------------------------------------------------------------------

class TestAccessDenied:
    def test_permission_error(self) -> None:
        assert is_access_denied(PermissionError(errno.EACCES, "denied"))

    def test_eperm(self) -> None:
        assert is_access_denied(OSError(errno.EPERM, "not permitted"))

    def test_windows_code(self) -> None:
        exc = OSError(errno.EINVAL, "Access is denied")
        exc.winerror = 5  # type: ignore[attr-defined]
        assert is_access_denied(exc)

    def test_other_errors(self) -> None:
        assert not is_access_denied(OSError(errno.ENOSPC, "No space left on device"))
        assert not is_access_denied(OSError("permission denied in message only"))

    def test_hints_are_platform_specific(self) -> None:
        assert "Administrator" in elevation_hint(OSFamily.WINDOWS)
        assert "sudo stencil update" in elevation_hint(OSFamily.LINUX)


# ---------------------------------------------------------------------------
# Initiator
# ---------------------------------------------------------------------------

class TestInitiator:
    def test_stages_and_hands_off(
        self, tmp_path: Path, linux_platform: PlatformDescriptor,
    ) -> None:
        new_binary = tmp_path / "release" / "stencil"
        new_binary.parent.mkdir()
        new_binary.write_bytes(b"new binary")
        source = _source_with_binary(new_binary)
        runner = MagicMock()
        reporter = MagicMock()

        outcome = _orchestrator(linux_platform, runner=runner, reporter=reporter).initiate(source)

        staged = linux_platform.executable_directory / "latest-stencil"
        assert outcome is UpdateOutcome.HANDED_OFF
        assert staged.read_bytes() == b"new binary"
        runner.spawn_detached.assert_called_once_with(
            linux_platform.executable_directory, [str(staged), UPDATER_TASK_FLAG],
        )
        assert [c.args[0] for c in reporter.info.call_args_list] == [
            "Checking latest stencil source",
            "Getting the latest update",
            "Updating stencil",
        ]
        reporter.done.assert_called_once_with("Updating stencil")
        source.clear.assert_called_once()

    def test_invalid_source(self, linux_platform: PlatformDescriptor) -> None:
        source = MagicMock()
        source.is_valid.return_value = False

        with pytest.raises(InvalidSourceError):
            _orchestrator(linux_platform).initiate(source)
        source.provide_latest_app_release.assert_not_called()
        source.clear.assert_called_once()

    def test_acquisition_failure_still_clears(self, linux_platform: PlatformDescriptor) -> None:
        source = MagicMock()
        source.is_valid.return_value = True
        source.provide_latest_app_release.side_effect = NoMatchingAssetError("none")

        with pytest.raises(NoMatchingAssetError):
            _orchestrator(linux_platform).initiate(source)
        source.clear.assert_called_once()

    def test_no_staged_file_means_no_update(
        self, tmp_path: Path, linux_platform: PlatformDescriptor,
    ) -> None:
        reporter = MagicMock()
        runner = MagicMock()
        orchestrator = _orchestrator(
            linux_platform, runner=runner, reporter=reporter, copy=lambda src, dst: None,
        )

        outcome = orchestrator.initiate(_source_with_binary(tmp_path / "stencil-new"))

        assert outcome is UpdateOutcome.NO_UPDATE
        reporter.done.assert_called_once_with("No latest update available")
        runner.spawn_detached.assert_not_called()

    def test_permission_denied_requires_elevation(
        self, tmp_path: Path, linux_platform: PlatformDescriptor,
    ) -> None:
        def deny(src: Path, dst: Path) -> None:
            raise PermissionError(errno.EACCES, "Permission denied", str(dst))

        orchestrator = _orchestrator(linux_platform, copy=deny)

        with pytest.raises(PermissionElevationRequiredError) as exc_info:
            orchestrator.initiate(_source_with_binary(tmp_path / "new"))
        assert "sudo" in (exc_info.value.hint or "")

    def test_other_copy_errors_are_filesystem_errors(
        self, tmp_path: Path, linux_platform: PlatformDescriptor,
    ) -> None:
        def full(src: Path, dst: Path) -> None:
            raise OSError(errno.ENOSPC, "No space left on device")

        with pytest.raises(FileSystemError) as exc_info:
            _orchestrator(linux_platform, copy=full).initiate(_source_with_binary(tmp_path / "new"))
        assert not isinstance(exc_info.value, PermissionElevationRequiredError)

    def test_failed_handoff_removes_staged_copy(
        self, tmp_path: Path, linux_platform: PlatformDescriptor,
    ) -> None:
        new_binary = tmp_path / "new"
        new_binary.write_bytes(b"new")
        runner = MagicMock()
        runner.spawn_detached.side_effect = CommandError("Failed to start")

        with pytest.raises(CommandError):
            _orchestrator(linux_platform, runner=runner).initiate(_source_with_binary(new_binary))
        assert linux_platform.staged_path() is not None
        assert not linux_platform.staged_path().exists()  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Updater task
# ---------------------------------------------------------------------------

class TestUpdaterTask:
    def test_replaces_original_and_spawns_clearance(
        self, tmp_path: Path, platform_factory: Callable[..., PlatformDescriptor],
    ) -> None:
        original = tmp_path / "stencil"
        original.write_bytes(b"old")
        staged = platform_factory(tmp_path, "latest-stencil")
        (tmp_path / "latest-stencil").write_bytes(b"new binary")
        runner = MagicMock()

        assert _orchestrator(staged, runner=runner).run_updater_task() is True

        assert original.read_bytes() == b"new binary"
        runner.spawn_detached.assert_called_once_with(tmp_path, [str(original), CLEARANCE_FLAG])

    def test_retries_while_target_is_busy(
        self, tmp_path: Path, platform_factory: Callable[..., PlatformDescriptor],
    ) -> None:
        staged = platform_factory(tmp_path, "latest-stencil")
        attempts: list[int] = []
        sleeps: list[float] = []

        def busy_twice(src: Path, dst: Path) -> None:
            attempts.append(1)
            if len(attempts) < 3:
                raise OSError(errno.EBUSY, "Device or resource busy")

        orchestrator = _orchestrator(staged, copy=busy_twice, sleep=sleeps.append)

        assert orchestrator.run_updater_task() is True
        assert len(attempts) == 3
        assert sleeps == [POLL_INTERVAL_SECONDS, POLL_INTERVAL_SECONDS]

    def test_times_out_when_configured(
        self, tmp_path: Path, platform_factory: Callable[..., PlatformDescriptor],
    ) -> None:
        staged = platform_factory(tmp_path, "latest-stencil")
        ticks = iter([0.0, 0.5, 1.5])
        runner = MagicMock()

        def always_busy(src: Path, dst: Path) -> None:
            raise OSError(errno.EBUSY, "Device or resource busy")

        orchestrator = _orchestrator(
            staged,
            runner=runner,
            settings=Settings(updater_timeout=1.0, work_dir=tmp_path),
            copy=always_busy,
            clock=lambda: next(ticks),
        )

        with pytest.raises(UpdateTimeoutError, match="2 attempts"):
            orchestrator.run_updater_task()
        runner.spawn_detached.assert_not_called()

    def test_noop_for_original_executable(self, linux_platform: PlatformDescriptor) -> None:
        runner = MagicMock()
        copy = MagicMock()
        assert _orchestrator(linux_platform, runner=runner, copy=copy).run_updater_task() is False
        copy.assert_not_called()
        runner.spawn_detached.assert_not_called()


# ---------------------------------------------------------------------------
# Clearance owner
# ---------------------------------------------------------------------------

class TestClearance:
    def test_removes_staged_copy(
        self, tmp_path: Path, platform_factory: Callable[..., PlatformDescriptor],
    ) -> None:
        original = platform_factory(tmp_path, "stencil")
        staged = tmp_path / "latest-stencil"
        staged.write_bytes(b"new")

        assert _orchestrator(original).run_clearance() is True
        assert not staged.exists()
        assert (tmp_path / "stencil").exists()

    def test_nothing_to_remove(self, linux_platform: PlatformDescriptor) -> None:
        assert _orchestrator(linux_platform).run_clearance() is False

    def test_staged_process_never_clears(
        self, tmp_path: Path, platform_factory: Callable[..., PlatformDescriptor],
    ) -> None:
        staged = platform_factory(tmp_path, "latest-stencil")
        assert _orchestrator(staged).run_clearance() is False
        assert (tmp_path / "latest-stencil").exists()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestRun:
    def test_source_only_built_for_initiator(
        self, tmp_path: Path, platform_factory: Callable[..., PlatformDescriptor],
    ) -> None:
        factory = MagicMock()
        orchestrator = _orchestrator(platform_factory(tmp_path, "stencil"))

        assert orchestrator.run(Role.CLEARANCE_OWNER, factory) is False
        assert orchestrator.run(Role.NOOP, factory) is False
        factory.assert_not_called()
