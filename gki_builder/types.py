"""Shared type definitions for gki_builder.

This module contains dataclasses and enums shared across subpackages
to avoid circular imports.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class StepStatus(str, Enum):
    """Status of a pipeline step."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ToolchainResult:
    """Result of toolchain provisioning."""

    clang_path: Path
    downloaded: bool
    checksum: str | None = None


@dataclass
class PhaseResult:
    """Result of a single make invocation."""

    name: str
    command: str
    exit_code: int


@dataclass
class BuildResult:
    """Result of the two-phase kernel build.

    Attributes:
        log_path: Path to the build log file.
        started_at: Build start time.
        finished_at: Build finish time.
        phases: Make invocations in execution order.
    """

    log_path: Path
    started_at: datetime
    finished_at: datetime
    phases: list[PhaseResult] = field(default_factory=list)

    @property
    def elapsed_seconds(self) -> int:
        """Whole seconds between start and finish."""
        return int((self.finished_at - self.started_at).total_seconds())


@dataclass
class PackageResult:
    """Information about the flashable zip."""

    zip_path: Path
    image_path: Path
    title: str
    kernel_version: str | None
    size_bytes: int
    sha256: str
    cloned_template: bool = False


@dataclass
class NotifyResult:
    """Outcome of the optional Telegram upload."""

    status: StepStatus
    message: str


@dataclass
class PipelineResult:
    """Result of a full pipeline run."""

    toolchain: ToolchainResult
    clang_version: str
    build: BuildResult
    package: PackageResult
    notify: NotifyResult


__all__ = [
    "BuildResult",
    "NotifyResult",
    "PackageResult",
    "PhaseResult",
    "PipelineResult",
    "StepStatus",
    "ToolchainResult",
]
