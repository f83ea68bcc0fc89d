"""Error definitions for gki_builder.

Every fatal step failure is raised as a GkiBuildError subclass carrying
a stable string code and the process exit code the CLI surfaces.
Notification failures are never raised.
"""

from __future__ import annotations

from pathlib import Path


class GkiBuildError(Exception):
    """Base class for fatal pipeline errors."""

    exit_code = 1

    def __init__(self, message: str, code: str = "gki_build_error") -> None:
        """Initialize GkiBuildError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


class DownloadError(GkiBuildError):
    """Raised when the toolchain download fails."""

    exit_code = 2

    def __init__(self, message: str, code: str = "download_error") -> None:
        super().__init__(message, code)


class VerificationError(GkiBuildError):
    """Raised when checksum verification fails."""

    exit_code = 2

    def __init__(self, message: str, code: str = "verification_error") -> None:
        super().__init__(message, code)


class ExtractionError(GkiBuildError):
    """Raised when archive extraction fails."""

    exit_code = 3

    def __init__(self, message: str, code: str = "extraction_error") -> None:
        super().__init__(message, code)


class ToolchainMissingError(GkiBuildError):
    """Raised when the clang binary is absent after provisioning."""

    exit_code = 4

    def __init__(self, clang_path: Path, code: str = "toolchain_missing") -> None:
        super().__init__(f"Clang binary not found: {clang_path}", code)
        self.clang_path = clang_path


class BuildExecutionError(GkiBuildError):
    """Raised when a make phase fails."""

    exit_code = 5

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        log_path: Path | None = None,
        code: str = "build_failed",
    ) -> None:
        """Initialize BuildExecutionError.

        Args:
            message: Error description.
            returncode: Exit status of make, if it ran.
            log_path: Build log kept for diagnosis.
            code: Error code for structured error handling.
        """
        super().__init__(message, code)
        self.returncode = returncode
        self.log_path = log_path


class ArtifactNotFoundError(GkiBuildError):
    """Raised when the kernel image is missing after the build."""

    exit_code = 6

    def __init__(self, image_path: Path, code: str = "image_not_found") -> None:
        super().__init__(f"Kernel image not found: {image_path}", code)
        self.image_path = image_path


class PackagingError(GkiBuildError):
    """Raised when the flashable zip cannot be produced."""

    exit_code = 7

    def __init__(self, message: str, code: str = "packaging_error") -> None:
        super().__init__(message, code)


__all__ = [
    "ArtifactNotFoundError",
    "BuildExecutionError",
    "DownloadError",
    "ExtractionError",
    "GkiBuildError",
    "PackagingError",
    "ToolchainMissingError",
    "VerificationError",
]
