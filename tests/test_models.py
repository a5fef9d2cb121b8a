"""Tests for domain models (core/models.py).

Covers source classification, release-asset parsing and per-platform
selection, and staged-path arithmetic on :class:`PlatformDescriptor`.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from stencil.core.models import (
    OSFamily,
    PlatformDescriptor,
    ReleaseAsset,
    SourceKind,
    classify_source,
    is_valid_git_url,
    parse_release_assets,
    select_platform_asset,
)


def _descriptor(name: str, directory: str = "/opt/bin") -> PlatformDescriptor:
    return PlatformDescriptor(
        family=OSFamily.LINUX,
        executable_name=name,
        executable_path=Path(directory) / name,
        executable_directory=Path(directory),
    )


# ---------------------------------------------------------------------------
# classify_source
# ---------------------------------------------------------------------------

class TestClassifySource:
    @pytest.mark.parametrize(
        "raw",
        [
            "https://github.com/acme/templates.git",
            "http://git.internal/acme/templates.git",
            "  https://gitlab.com/group/sub/repo.git  ",
        ],
    )
    def test_web_urls_with_git_suffix_are_https(self, raw: str) -> None:
        assert classify_source(raw) is SourceKind.GIT_HTTPS

    @pytest.mark.parametrize(
        "raw",
        ["git@github.com:acme/templates.git", "git@host.example:team/repo.git"],
    )
    def test_ssh_form_is_ssh(self, raw: str) -> None:
        assert classify_source(raw) is SourceKind.GIT_SSH

    @pytest.mark.parametrize("raw", ["/srv/templates", "./local", "../up", "~/templates", "."])
    def test_path_prefixes_are_local(self, raw: str) -> None:
        assert classify_source(raw) is SourceKind.LOCAL_PATH

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "https://github.com/acme/templates",
            "git@github.com:acme/templates",
            "templates",
            "ftp://example.com/repo.git",
        ],
    )
    def test_everything_else_is_unknown(self, raw: str) -> None:
        kind = classify_source(raw)
        assert kind is SourceKind.UNKNOWN
        assert kind.is_valid is False

    def test_git_url_helper(self) -> None:
        assert is_valid_git_url("git@github.com:a/b.git")
        assert is_valid_git_url("https://github.com/a/b.git")
        assert not is_valid_git_url("/srv/repo.git")


class TestSourceKind:
    def test_network_kinds(self) -> None:
        assert SourceKind.GIT_HTTPS.requires_network
        assert SourceKind.GIT_SSH.requires_network
        assert SourceKind.LATEST_RELEASE.requires_network
        assert not SourceKind.LOCAL_PATH.requires_network
        assert not SourceKind.UNKNOWN.requires_network


# ---------------------------------------------------------------------------
# Release assets
# ---------------------------------------------------------------------------

ASSETS = (
    ReleaseAsset("app-windows.zip", "https://dl/app-windows.zip"),
    ReleaseAsset("app-linux.zip", "https://dl/app-linux.zip"),
    ReleaseAsset("app-macos.zip", "https://dl/app-macos.zip"),
)


class TestAssetSelection:
    @pytest.mark.parametrize(
        ("family", "expected"),
        [
            (OSFamily.WINDOWS, "app-windows.zip"),
            (OSFamily.LINUX, "app-linux.zip"),
            (OSFamily.MACOS, "app-macos.zip"),
        ],
    )
    def test_each_platform_selects_only_its_asset(
        self, family: OSFamily, expected: str,
    ) -> None:
        matches = [asset.name for asset in ASSETS if family.matches_asset(asset.name)]
        assert matches == [expected]
        selected = select_platform_asset(ASSETS, family)
        assert selected is not None
        assert selected.name == expected

    def test_unsupported_selects_nothing(self) -> None:
        assert select_platform_asset(ASSETS, OSFamily.UNSUPPORTED) is None
        assert OSFamily.UNSUPPORTED.asset_suffix is None

    def test_macos_with_only_linux_asset(self) -> None:
        assert select_platform_asset(ASSETS[1:2], OSFamily.MACOS) is None


class TestParseReleaseAssets:
    def test_reads_name_and_url(self) -> None:
        payload = {
            "tag_name": "v1.4.0",
            "assets": [
                {"name": "app-linux.zip", "browser_download_url": "https://dl/linux", "size": 1},
            ],
        }
        assert parse_release_assets(payload) == (
            ReleaseAsset("app-linux.zip", "https://dl/linux"),
        )

    def test_skips_malformed_entries(self) -> None:
        payload = {
            "assets": [
                "not-an-object",
                {"name": "no-url.zip"},
                {"name": "", "browser_download_url": "https://dl/x"},
                {"name": "ok.zip", "browser_download_url": "https://dl/ok"},
            ],
        }
        assert [a.name for a in parse_release_assets(payload)] == ["ok.zip"]

    @pytest.mark.parametrize("payload", [None, [], {"assets": None}, {"message": "Not Found"}])
    def test_no_assets(self, payload: object) -> None:
        assert parse_release_assets(payload) == ()


# ---------------------------------------------------------------------------
# PlatformDescriptor
# ---------------------------------------------------------------------------

class TestStagedPaths:
    def test_staged_path(self) -> None:
        assert _descriptor("tool").staged_path() == Path("/opt/bin/latest-tool")

    def test_original_from_staged(self) -> None:
        staged = _descriptor("latest-tool")
        assert staged.is_staged
        assert staged.original_path_from_staged() == Path("/opt/bin/tool")

    def test_original_is_not_staged(self) -> None:
        assert not _descriptor("tool").is_staged

    def test_empty_name_gives_none(self) -> None:
        descriptor = _descriptor("")
        assert descriptor.staged_path() is None
        assert descriptor.original_path_from_staged() is None

    def test_bare_prefix_has_no_original(self) -> None:
        descriptor = _descriptor("latest-")
        assert descriptor.is_staged
        assert descriptor.original_path_from_staged() is None

    def test_empty_directory_gives_none(self) -> None:
        descriptor = PlatformDescriptor(
            family=OSFamily.LINUX,
            executable_name="tool",
            executable_path=Path("tool"),
            executable_directory=Path(),
        )
        assert descriptor.staged_path() is None

    def test_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            _descriptor("tool").executable_name = "other"  # type: ignore[misc]


class TestDescriptorValidity:
    def test_valid_when_files_exist(self, linux_platform: PlatformDescriptor) -> None:
        assert linux_platform.is_valid()

    def test_invalid_for_unsupported_family(self, linux_platform: PlatformDescriptor) -> None:
        unsupported = dataclasses.replace(linux_platform, family=OSFamily.UNSUPPORTED)
        assert not unsupported.is_valid()

    def test_invalid_when_executable_missing(self, tmp_path: Path) -> None:
        descriptor = PlatformDescriptor(
            family=OSFamily.LINUX,
            executable_name="stencil",
            executable_path=tmp_path / "missing",
            executable_directory=tmp_path,
        )
        assert not descriptor.is_valid()
