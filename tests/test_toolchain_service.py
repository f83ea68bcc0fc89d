"""Tests for toolchain service module.

Download tests use respx; verification runs a fake clang script.
"""

import hashlib
import io
import os
import subprocess
import tarfile
from unittest.mock import patch

import httpx
import pytest
import respx

from gki_builder.errors import (
    DownloadError,
    ExtractionError,
    ToolchainMissingError,
    VerificationError,
)
from gki_builder.toolchain.service import (
    clang_binary,
    ensure_toolchain,
    staging_path,
    toolchain_env,
    verify_toolchain,
)

CLANG_URL = "https://example.com/prebuilts/clang-r584948.tar.gz"


def _tarball_with_absolute_link() -> bytes:
    """Archive whose clang extracts before a member the data filter rejects."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        data = b"#!/bin/sh\necho clang\n"
        info = tarfile.TarInfo(name="bin/clang")
        info.size = len(data)
        info.mode = 0o755
        tar.addfile(info, io.BytesIO(data))

        link = tarfile.TarInfo(name="lib/libc.so")
        link.type = tarfile.SYMTYPE
        link.linkname = "/etc/passwd"
        tar.addfile(link)
    return buf.getvalue()


@pytest.fixture
def download_settings(settings):
    """Settings pointing at a mocked clang URL."""
    settings.clang_url = CLANG_URL
    return settings


class TestClangBinary:
    """Tests for clang_binary function."""

    def test_path(self, tmp_path):
        """Should point at bin/clang."""
        assert clang_binary(tmp_path) == tmp_path / "bin" / "clang"


class TestEnsureToolchain:
    """Tests for ensure_toolchain function."""

    def test_already_present_skips_download(self, download_settings, installed_toolchain):
        """Should not touch the network when clang exists."""
        with respx.mock(assert_all_called=False) as router:
            route = router.get(CLANG_URL).mock(return_value=httpx.Response(404))
            result = ensure_toolchain(download_settings)

        assert result.downloaded is False
        assert result.clang_path == installed_toolchain / "clang"
        assert not route.called

    @respx.mock
    def test_downloads_and_extracts(self, download_settings, clang_tarball):
        """Should download, extract in place and delete the archive."""
        respx.get(CLANG_URL).mock(
            return_value=httpx.Response(200, content=clang_tarball)
        )

        with httpx.Client() as client:
            result = ensure_toolchain(download_settings, client=client)

        clang_dir = download_settings.clang_root
        assert result.downloaded is True
        assert result.checksum == hashlib.sha256(clang_tarball).hexdigest()
        assert (clang_dir / "bin" / "clang").is_file()
        assert not (clang_dir / "clang-r584948.tar.gz").exists()
        assert not list(clang_dir.glob("*.tmp"))
        assert not staging_path(clang_dir).exists()

    @respx.mock
    def test_second_run_is_idempotent(self, download_settings, clang_tarball):
        """A re-run should reuse the extracted toolchain."""
        route = respx.get(CLANG_URL).mock(
            return_value=httpx.Response(200, content=clang_tarball)
        )

        with httpx.Client() as client:
            first = ensure_toolchain(download_settings, client=client)
            second = ensure_toolchain(download_settings, client=client)

        assert first.downloaded is True
        assert second.downloaded is False
        assert route.call_count == 1

    @respx.mock
    def test_download_failure_is_fatal(self, download_settings):
        """Should raise DownloadError and leave no partial files."""
        respx.get(CLANG_URL).mock(return_value=httpx.Response(500))

        with httpx.Client() as client, pytest.raises(DownloadError) as exc_info:
            ensure_toolchain(download_settings, client=client)

        assert exc_info.value.code == "http_error"
        assert exc_info.value.exit_code != 0
        assert not download_settings.clang_root.exists()
        assert not staging_path(download_settings.clang_root).exists()

    @respx.mock
    def test_checksum_mismatch(self, download_settings, clang_tarball):
        """Should verify against clang_sha256 when configured."""
        download_settings.clang_sha256 = "0" * 64
        respx.get(CLANG_URL).mock(
            return_value=httpx.Response(200, content=clang_tarball)
        )

        with httpx.Client() as client, pytest.raises(VerificationError):
            ensure_toolchain(download_settings, client=client)

        assert not clang_binary(download_settings.clang_root).exists()

    @respx.mock
    def test_bad_archive(self, download_settings):
        """Should raise ExtractionError and remove the archive."""
        respx.get(CLANG_URL).mock(
            return_value=httpx.Response(200, content=b"<html>not a tarball</html>")
        )

        with httpx.Client() as client, pytest.raises(ExtractionError):
            ensure_toolchain(download_settings, client=client)

        assert not download_settings.clang_root.exists()
        assert not staging_path(download_settings.clang_root).exists()

    @respx.mock
    def test_partial_extraction_is_not_reused(self, download_settings, clang_tarball):
        """A failure midway through extraction should not leave a usable clang."""
        respx.get(CLANG_URL).mock(
            side_effect=[
                httpx.Response(200, content=_tarball_with_absolute_link()),
                httpx.Response(200, content=clang_tarball),
            ]
        )

        with httpx.Client() as client:
            with pytest.raises(ExtractionError):
                ensure_toolchain(download_settings, client=client)

            assert not clang_binary(download_settings.clang_root).exists()
            assert not staging_path(download_settings.clang_root).exists()

            retry = ensure_toolchain(download_settings, client=client)

        assert retry.downloaded is True
        assert clang_binary(download_settings.clang_root).is_file()

    @respx.mock
    def test_replaces_incomplete_clang_dir(self, download_settings, clang_tarball):
        """Leftovers in a clang directory without a binary are replaced."""
        download_settings.clang_root.mkdir(parents=True)
        (download_settings.clang_root / "stale.txt").write_text("old")
        respx.get(CLANG_URL).mock(
            return_value=httpx.Response(200, content=clang_tarball)
        )

        with httpx.Client() as client:
            ensure_toolchain(download_settings, client=client)

        assert clang_binary(download_settings.clang_root).is_file()
        assert not (download_settings.clang_root / "stale.txt").exists()

    def test_offline_mode(self, download_settings):
        """Should refuse to download in offline mode."""
        download_settings.offline = True

        with pytest.raises(DownloadError) as exc_info:
            ensure_toolchain(download_settings)

        assert exc_info.value.code == "offline"


class TestVerifyToolchain:
    """Tests for verify_toolchain function."""

    def test_reports_first_version_line(self, settings, installed_toolchain):
        """Should return only the first line of clang --version."""
        version = verify_toolchain(settings)
        assert version == "Android (12345, based on r584948) clang version 19.0.0"

    def test_missing_binary(self, settings):
        """Should raise ToolchainMissingError when clang is absent."""
        with pytest.raises(ToolchainMissingError) as exc_info:
            verify_toolchain(settings)

        assert exc_info.value.code == "toolchain_missing"
        assert exc_info.value.clang_path == clang_binary(settings.clang_root)

    def test_broken_binary(self, settings, installed_toolchain):
        """Should raise ToolchainMissingError when clang cannot run."""
        with patch(
            "gki_builder.toolchain.service.subprocess.run",
            side_effect=subprocess.CalledProcessError(1, ["clang", "--version"]),
        ), pytest.raises(ToolchainMissingError) as exc_info:
            verify_toolchain(settings)

        assert exc_info.value.code == "toolchain_broken"


class TestToolchainEnv:
    """Tests for toolchain_env function."""

    def test_prepends_bin_dir(self, settings):
        """Clang bin directory should come first on PATH."""
        env = toolchain_env(settings, {"PATH": "/usr/bin:/bin", "HOME": "/root"})

        assert env["PATH"] == f"{settings.clang_root / 'bin'}{os.pathsep}/usr/bin:/bin"
        assert env["HOME"] == "/root"

    def test_empty_path(self, settings):
        """Should work without an existing PATH."""
        env = toolchain_env(settings, {})
        assert env["PATH"] == str(settings.clang_root / "bin")

    def test_does_not_mutate_environ(self, settings):
        """os.environ should be left alone."""
        before = os.environ.get("PATH")
        toolchain_env(settings)
        assert os.environ.get("PATH") == before
