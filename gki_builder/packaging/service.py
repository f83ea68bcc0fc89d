"""Packaging service module.

This module provides the high-level packaging API:
- package_kernel(): image lookup, version banner, template refresh,
  zip creation
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from gki_builder.config import get_settings
from gki_builder.packaging.anykernel import copy_image, ensure_template
from gki_builder.packaging.archive import create_flashable_zip, format_date, zip_name
from gki_builder.packaging.image import extract_kernel_version, find_kernel_image
from gki_builder.toolchain.fetch import compute_file_sha256
from gki_builder.types import PackageResult

if TYPE_CHECKING:
    from gki_builder.config import Settings

logger = logging.getLogger(__name__)

TITLE_PREFIX = "GKI-BUILD"


def package_kernel(
    settings: Settings | None = None,
    now: datetime | None = None,
) -> PackageResult:
    """Package the built kernel image into a flashable zip.

    The zip is written to the kernel directory as <prefix>-<date>.zip.

    Args:
        settings: Application settings (uses defaults if not provided).
        now: Run timestamp for the zip name (defaults to the current time).

    Returns:
        PackageResult describing the zip.

    Raises:
        ArtifactNotFoundError: If the kernel image is missing.
        PackagingError: If the template or the zip cannot be produced.
    """
    if settings is None:
        settings = get_settings()
    if now is None:
        now = datetime.now()


    image = find_kernel_image(settings)
    kernel_version = extract_kernel_version(image)

    cloned = ensure_template(settings, image.name)
    copy_image(image, settings.anykernel_root)

    dest = settings.kernel_dir / zip_name(now, settings.zip_prefix)
    create_flashable_zip(settings.anykernel_root, dest, settings.zip_excludes)

    size_bytes = dest.stat().st_size
    logger.info("Flashable zip created: %s (%d bytes)", dest, size_bytes)

    return PackageResult(
        zip_path=dest,
        image_path=image,
        title=f"{TITLE_PREFIX}-{format_date(now)}",
        kernel_version=kernel_version,
        size_bytes=size_bytes,
        sha256=compute_file_sha256(dest),
        cloned_template=cloned,
    )


__all__ = ["TITLE_PREFIX", "package_kernel"]
