"""Kernel image lookup and version extraction."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from gki_builder.errors import ArtifactNotFoundError

if TYPE_CHECKING:
    from gki_builder.config import Settings

logger = logging.getLogger(__name__)

VERSION_MARKER = b"Linux version"

# Bytes `strings` treats as printable text
PRINTABLE = frozenset(range(0x20, 0x7F)) | {0x09}


def kernel_image_path(settings: Settings) -> Path:
    """Return where the build leaves the kernel image."""
    return settings.out_path / "arch" / settings.arch / "boot" / settings.make_target


def find_kernel_image(settings: Settings) -> Path:
    """Return the built kernel image.

    Raises:
        ArtifactNotFoundError: If the image does not exist.
    """
    image = kernel_image_path(settings)
    if not image.is_file():
        raise ArtifactNotFoundError(image)
    logger.info("Kernel image: %s (%d bytes)", image, image.stat().st_size)
    return image


def _printable_run(data: bytes, index: int) -> bytes:
    """Return the run of printable bytes surrounding index."""
    start = index
    while start > 0 and data[start - 1] in PRINTABLE:
        start -= 1
    end = index
    while end < len(data) and data[end] in PRINTABLE:
        end += 1
    return data[start:end]


def extract_kernel_version(image_path: Path) -> str | None:
    """Extract the kernel banner from a binary image.

    Equivalent to `strings Image | grep "Linux version"`: the first run of
    printable bytes containing the marker is returned whole.

    Args:
        image_path: Uncompressed kernel image.

    Returns:
        The banner line, or None if the image has no banner.
    """
    data = image_path.read_bytes()
    index = data.find(VERSION_MARKER)
    if index < 0:
        logger.warning("No kernel version banner found in %s", image_path)
        return None

    version = _printable_run(data, index).decode("ascii")
    logger.info("Kernel version: %s", version)
    return version


__all__ = [
    "VERSION_MARKER",
    "extract_kernel_version",
    "find_kernel_image",
    "kernel_image_path",
]
