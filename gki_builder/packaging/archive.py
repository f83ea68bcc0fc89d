"""Flashable zip creation.

This module handles:
- Naming the zip after the run timestamp
- Selecting template files (VCS metadata and readme left out)
- Writing the zip with maximum deflate compression
"""

from __future__ import annotations

import logging
import zipfile
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from gki_builder.errors import PackagingError

logger = logging.getLogger(__name__)

# Timestamp format used in zip names and titles
DATE_FORMAT = "%Y%m%d-%H%M"

DEFAULT_EXCLUDES = (".git", ".gitignore", "README.md")


def format_date(timestamp: datetime) -> str:
    """Format a run timestamp, e.g. '20241031-1530'."""
    return timestamp.strftime(DATE_FORMAT)


def zip_name(timestamp: datetime, prefix: str = "gki") -> str:
    """Return the flashable zip filename for a run timestamp."""
    return f"{prefix}-{format_date(timestamp)}.zip"


def iter_archive_members(
    tree: Path,
    excludes: Iterable[str] = DEFAULT_EXCLUDES,
) -> list[Path]:
    """List the files of a template tree that go into the zip.

    Any path with a component named in excludes is skipped, as are
    top-level hidden entries.

    Args:
        tree: Template root directory.
        excludes: File or directory names to leave out.

    Returns:
        Sorted list of files relative to tree.
    """
    excluded = set(excludes)
    members: list[Path] = []

    for path in sorted(tree.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(tree)
        if relative.parts[0].startswith("."):
            continue
        if excluded.intersection(relative.parts):
            continue
        members.append(relative)

    return members


def create_flashable_zip(
    tree: Path,
    dest: Path,
    excludes: Iterable[str] = DEFAULT_EXCLUDES,
) -> Path:
    """Compress a template tree into a flashable zip.

    Args:
        tree: Template root directory (becomes the zip root).
        dest: Zip file to write.
        excludes: File or directory names to leave out.

    Returns:
        Path to the written zip.

    Raises:
        PackagingError: If writing fails or the zip is missing afterwards.
    """
    members = iter_archive_members(tree, excludes)
    logger.info("Zipping %d files from %s to %s", len(members), tree, dest)

    try:
        with zipfile.ZipFile(
            dest, "w", zipfile.ZIP_DEFLATED, compresslevel=9
        ) as zf:
            for relative in members:
                zf.write(tree / relative, relative.as_posix())
    except OSError as e:
        dest.unlink(missing_ok=True)
        raise PackagingError(
            f"Failed to create {dest}: {e}",
            code="archive_error",
        ) from e

    if not dest.is_file():
        raise PackagingError(f"Failed to create zip: {dest}", code="archive_missing")

    return dest


__all__ = [
    "DATE_FORMAT",
    "DEFAULT_EXCLUDES",
    "create_flashable_zip",
    "format_date",
    "iter_archive_members",
    "zip_name",
]
