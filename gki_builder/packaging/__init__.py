"""Kernel packaging module.

This module handles:
- Locating the built kernel image and reading its version banner
- Refreshing the AnyKernel3 template tree
- Writing the dated flashable zip
"""

from gki_builder.packaging.archive import create_flashable_zip, zip_name
from gki_builder.packaging.image import extract_kernel_version, find_kernel_image
from gki_builder.packaging.service import package_kernel

__all__ = [
    "create_flashable_zip",
    "extract_kernel_version",
    "find_kernel_image",
    "package_kernel",
    "zip_name",
]
