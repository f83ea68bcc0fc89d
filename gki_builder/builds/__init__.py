"""Kernel build module.

This module handles:
- Composing the defconfig and image `make` commands
- Running them with output teed to build.log
- Timing the build
"""

from gki_builder.builds.runner import (
    compose_make_command,
    format_duration,
    run_build,
    run_make_phase,
)

__all__ = [
    "compose_make_command",
    "format_duration",
    "run_build",
    "run_make_phase",
]
