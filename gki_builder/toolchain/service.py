"""Toolchain service module.

This module provides high-level APIs for the clang toolchain:
- ensure_toolchain(): Download and extract clang if it is not present
- verify_toolchain(): Confirm the binary exists and report its version
- toolchain_env(): Environment with clang first on PATH
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from gki_builder.config import get_settings
from gki_builder.errors import DownloadError, ToolchainMissingError
from gki_builder.toolchain.fetch import (
    archive_name_from_url,
    download_file,
    extract_archive,
)
from gki_builder.types import ToolchainResult

if TYPE_CHECKING:
    from gki_builder.config import Settings

logger = logging.getLogger(__name__)

# Timeout for `clang --version` (seconds)
VERSION_TIMEOUT = 60


def clang_binary(clang_dir: Path) -> Path:
    """Return the path of the clang executable inside a toolchain dir."""
    return clang_dir / "bin" / "clang"


def staging_path(clang_dir: Path) -> Path:
    """Return the directory a download is unpacked into before install."""
    return clang_dir.with_name(f"{clang_dir.name}.partial")


def ensure_toolchain(
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> ToolchainResult:
    """Ensure the clang toolchain is available.

    If the clang binary already exists nothing is fetched. Otherwise the
    archive is downloaded and extracted into a staging directory next to
    the clang directory, which replaces the clang directory only once
    extraction has succeeded. A failed attempt leaves no clang behind.

    Args:
        settings: Application settings (uses defaults if not provided).
        client: HTTPX client (creates one if not provided).

    Returns:
        ToolchainResult describing the toolchain.

    Raises:
        DownloadError: If download fails or offline mode is enabled.
        VerificationError: If checksum verification fails.
        ExtractionError: If extraction fails.
    """
    if settings is None:
        settings = get_settings()

    clang_dir = settings.clang_root
    clang_path = clang_binary(clang_dir)

    if clang_path.is_file():
        logger.info("Clang already exists at %s, skipping download", clang_path)
        return ToolchainResult(clang_path=clang_path, downloaded=False)

    if settings.offline:
        raise DownloadError(
            f"Clang not found at {clang_path} and offline mode is enabled",
            code="offline",
        )

    logger.info("Clang not found, downloading %s", settings.clang_url)

    # Unpack beside clang_dir; only a complete toolchain is renamed into place
    staging_dir = staging_path(clang_dir)
    if staging_dir.exists():
        shutil.rmtree(staging_dir)
    staging_dir.mkdir(parents=True)
    archive_path = staging_dir / archive_name_from_url(settings.clang_url)

    with tempfile.NamedTemporaryFile(
        dir=staging_dir, suffix=".tmp", delete=False
    ) as tmp_file:
        tmp_path = Path(tmp_file.name)

    own_client = client is None
    if client is None:
        client = httpx.Client()

    try:
        result = download_file(
            client,
            settings.clang_url,
            tmp_path,
            expected_checksum=settings.clang_sha256,
            timeout=settings.download_timeout,
        )
        shutil.move(str(tmp_path), str(archive_path))
        extract_archive(archive_path, staging_dir, remove_archive=True)
        if clang_dir.exists():
            shutil.rmtree(clang_dir)
        staging_dir.rename(clang_dir)
    except Exception:
        logger.error("Clang setup failed, removing %s", staging_dir)
        shutil.rmtree(staging_dir, ignore_errors=True)
        raise
    finally:
        if own_client:
            client.close()

    logger.info("Clang downloaded successfully")
    return ToolchainResult(
        clang_path=clang_path,
        downloaded=True,
        checksum=result.checksum,
    )


def verify_toolchain(settings: Settings | None = None) -> str:
    """Verify the clang binary and return its version line.

    Args:
        settings: Application settings (uses defaults if not provided).

    Returns:
        First line of `clang --version`.

    Raises:
        ToolchainMissingError: If the binary is absent or cannot be run.
    """
    if settings is None:
        settings = get_settings()

    clang_path = clang_binary(settings.clang_root)
    if not clang_path.is_file():
        raise ToolchainMissingError(clang_path)

    try:
        result = subprocess.run(
            [str(clang_path), "--version"],
            capture_output=True,
            text=True,
            timeout=VERSION_TIMEOUT,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise ToolchainMissingError(clang_path, code="toolchain_broken") from e

    lines = result.stdout.splitlines()
    version = lines[0].strip() if lines else ""
    logger.info("Clang version: %s", version)
    return version


def toolchain_env(
    settings: Settings,
    base_env: dict[str, str] | None = None,
) -> dict[str, str]:
    """Return an environment with the clang bin directory first on PATH.

    Args:
        settings: Application settings.
        base_env: Environment to extend (defaults to os.environ).

    Returns:
        New environment mapping.
    """
    env = dict(os.environ if base_env is None else base_env)
    bin_dir = str(settings.clang_root / "bin")
    path = env.get("PATH")
    env["PATH"] = f"{bin_dir}{os.pathsep}{path}" if path else bin_dir
    return env


__all__ = [
    "clang_binary",
    "ensure_toolchain",
    "staging_path",
    "toolchain_env",
    "verify_toolchain",
]
