"""AnyKernel3 template management.

The template tree is cloned once and reused; every run replaces the
kernel image inside it.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from gki_builder.errors import PackagingError

if TYPE_CHECKING:
    from gki_builder.config import Settings

logger = logging.getLogger(__name__)


def clone_template(repo: str, branch: str, dest: Path) -> None:
    """Clone the AnyKernel3 template repository.

    Raises:
        PackagingError: If git fails or cannot be run.
    """
    cmd = ["git", "clone", repo, "-b", branch, str(dest)]
    logger.info("Cloning %s (%s) into %s", repo, branch, dest)

    try:
        subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise PackagingError(
            f"git clone of {repo} failed: {e.stderr.strip()}",
            code="clone_failed",
        ) from e
    except OSError as e:
        raise PackagingError(
            f"Failed to run git: {e}",
            code="clone_failed",
        ) from e


def ensure_template(settings: Settings, image_name: str) -> bool:
    """Ensure the AnyKernel3 tree exists and holds no stale image.

    Args:
        settings: Application settings.
        image_name: Filename of the kernel image inside the tree.

    Returns:
        True if the template was cloned, False if it already existed.

    Raises:
        PackagingError: If cloning fails.
    """
    ak_dir = settings.anykernel_root

    if ak_dir.is_dir():
        logger.info("%s found", ak_dir)
        (ak_dir / image_name).unlink(missing_ok=True)
        return False

    logger.info("%s not found, cloning", ak_dir)
    clone_template(settings.anykernel_repo, settings.anykernel_branch, ak_dir)
    return True


def copy_image(image: Path, ak_dir: Path) -> Path:
    """Copy the kernel image into the template tree.

    Raises:
        PackagingError: If the copy fails.
    """
    dest = ak_dir / image.name
    try:
        shutil.copy2(image, dest)
    except OSError as e:
        raise PackagingError(
            f"Failed to copy {image} to {ak_dir}: {e}",
            code="copy_failed",
        ) from e
    logger.debug("Copied %s to %s", image, dest)
    return dest


__all__ = ["clone_template", "copy_image", "ensure_template"]
