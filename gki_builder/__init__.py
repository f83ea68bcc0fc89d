"""GKI Builder - Opinionated tooling for building Android GKI kernels.

This package provides orchestration around a prebuilt clang toolchain,
the kernel's own `make` build, AnyKernel3 packaging, and optional
Telegram delivery of the flashable zip.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
