"""Toolchain fetch module.

This module handles:
- Download of the clang prebuilt archive with optional checksum verification
- Extraction into the toolchain directory
"""

from __future__ import annotations

import hashlib
import logging
import tarfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

import httpx

from gki_builder.errors import DownloadError, ExtractionError, VerificationError

logger = logging.getLogger(__name__)

# Whole-download timeout (seconds)
DOWNLOAD_TIMEOUT = 3600

DOWNLOAD_CHUNK_SIZE = 1024 * 1024

# Archive suffix -> tarfile read mode
TAR_MODES = {
    ".tar.gz": "r:gz",
    ".tgz": "r:gz",
    ".tar.xz": "r:xz",
    ".tar": "r:",
}


@dataclass
class DownloadResult:
    """Result of an archive download."""

    archive_path: Path
    checksum: str
    size_bytes: int


def archive_name_from_url(url: str) -> str:
    """Return the archive filename from the last URL path segment.

    Args:
        url: Archive URL.

    Returns:
        Filename, e.g. 'clang-r584948.tar.gz'.

    Raises:
        ValueError: If the URL has no filename component.
    """
    name = urlsplit(url).path.rsplit("/", 1)[-1]
    if not name:
        raise ValueError(f"Cannot determine archive name from {url}")
    return name


def compute_file_sha256(file_path: Path, chunk_size: int = DOWNLOAD_CHUNK_SIZE) -> str:
    """Return the SHA-256 hex digest of a file on disk."""
    digest = hashlib.sha256()
    with file_path.open("rb") as fh:
        for block in iter(lambda: fh.read(chunk_size), b""):
            digest.update(block)
    return digest.hexdigest()


def _save_stream(
    response: httpx.Response, dest_path: Path, chunk_size: int
) -> tuple[str, int]:
    """Write a streamed body to dest_path, returning (sha256, size)."""
    digest = hashlib.sha256()
    size = 0
    with dest_path.open("wb") as out:
        for block in response.iter_bytes(chunk_size):
            out.write(block)
            digest.update(block)
            size += len(block)
    return digest.hexdigest(), size


def download_file(
    client: httpx.Client,
    url: str,
    dest_path: Path,
    expected_checksum: str | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
    chunk_size: int = DOWNLOAD_CHUNK_SIZE,
) -> DownloadResult:
    """Stream the clang archive to dest_path.

    Redirects are followed (googlesource serves archives behind one).
    Nothing is left at dest_path when the download or the checksum
    check fails.

    Args:
        client: HTTPX client instance.
        url: Archive URL.
        dest_path: File to write.
        expected_checksum: SHA-256 the archive must match, if given.
        timeout: Request timeout in seconds.
        chunk_size: Streaming block size.

    Returns:
        DownloadResult for the saved archive.

    Raises:
        DownloadError: On HTTP, timeout or network failure.
        VerificationError: On checksum mismatch.
    """
    logger.info("Fetching %s -> %s", url, dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with client.stream(
            "GET", url, timeout=timeout, follow_redirects=True
        ) as response:
            response.raise_for_status()
            checksum, size = _save_stream(response, dest_path, chunk_size)
    except httpx.HTTPStatusError as e:
        dest_path.unlink(missing_ok=True)
        status = e.response.status_code
        raise DownloadError(
            f"Download of {url} failed with HTTP {status}", code="http_error"
        ) from e
    except httpx.TimeoutException as e:
        dest_path.unlink(missing_ok=True)
        raise DownloadError(f"Download of {url} timed out", code="timeout") from e
    except httpx.RequestError as e:
        dest_path.unlink(missing_ok=True)
        raise DownloadError(
            f"Download of {url} failed: {type(e).__name__}", code="network_error"
        ) from e

    if expected_checksum and checksum != expected_checksum.lower():
        dest_path.unlink(missing_ok=True)
        raise VerificationError(
            f"Checksum mismatch for {dest_path.name}: "
            f"expected {expected_checksum}, got {checksum}"
        )

    logger.info("Saved %s (%d bytes, sha256 %s)", dest_path.name, size, checksum)
    return DownloadResult(archive_path=dest_path, checksum=checksum, size_bytes=size)


def _tar_mode(archive_path: Path) -> str:
    suffixes = "".join(archive_path.suffixes).lower()
    for suffix, mode in TAR_MODES.items():
        if suffixes.endswith(suffix):
            return mode
    raise ExtractionError(
        f"Unsupported archive format: {archive_path.name}",
        code="unsupported_format",
    )


def extract_archive(
    archive_path: Path,
    dest_dir: Path,
    remove_archive: bool = False,
) -> Path:
    """Extract a toolchain archive into a directory.

    The AOSP prebuilt archives have no top-level directory, so members land
    directly in dest_dir (bin/, lib/, ...).

    Args:
        archive_path: Path to the archive file.
        dest_dir: Destination directory for extraction.
        remove_archive: Whether to remove the archive after extraction.

    Returns:
        The destination directory.

    Raises:
        ExtractionError: If extraction fails.
    """
    logger.info("Unpacking %s into %s", archive_path.name, dest_dir)

    dest_dir.mkdir(parents=True, exist_ok=True)
    mode = _tar_mode(archive_path)

    try:
        with tarfile.open(archive_path, mode) as tar:  # type: ignore[call-overload]
            members = tar.getmembers()
            if not members:
                raise ExtractionError(
                    f"{archive_path.name} contains no members",
                    code="empty_archive",
                )

            for member in members:
                member_path = Path(member.name)
                if member_path.is_absolute() or ".." in member_path.parts:
                    raise ExtractionError(
                        f"Unsafe member {member.name!r} in {archive_path.name}",
                        code="path_traversal",
                    )

            tar.extractall(dest_dir, filter="data")

    except tarfile.TarError as e:
        raise ExtractionError(
            f"Cannot unpack {archive_path.name}: {e}",
            code="tar_error",
        ) from e
    except OSError as e:
        raise ExtractionError(
            f"Cannot write toolchain to {dest_dir}: {e}",
            code="os_error",
        ) from e

    if remove_archive:
        archive_path.unlink()
        logger.debug("Deleted %s", archive_path.name)

    logger.info("Extracted toolchain to %s", dest_dir)
    return dest_dir


__all__ = [
    "DownloadResult",
    "archive_name_from_url",
    "compute_file_sha256",
    "download_file",
    "extract_archive",
]
