"""Toolchain management module.

This module handles:
- Downloading/verifying the clang prebuilt archive and extracting it
- Checking the clang binary and reporting its version
"""

from gki_builder.toolchain.fetch import (
    DownloadResult,
    download_file,
    extract_archive,
)
from gki_builder.toolchain.service import (
    clang_binary,
    ensure_toolchain,
    staging_path,
    toolchain_env,
    verify_toolchain,
)

__all__ = [
    # Fetch module
    "DownloadResult",
    "download_file",
    "extract_archive",
    # Service module
    "clang_binary",
    "ensure_toolchain",
    "staging_path",
    "toolchain_env",
    "verify_toolchain",
]
