"""Build runner for executing the kernel's make targets.

This module handles:
- Composing `make` commands for the defconfig and image phases
- Executing each phase with stdout/stderr merged, teed to the console
  and appended to the build log
- Timing the whole build
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, TYPE_CHECKING

from gki_builder.config import get_settings
from gki_builder.errors import BuildExecutionError
from gki_builder.toolchain.service import toolchain_env
from gki_builder.types import BuildResult, PhaseResult

if TYPE_CHECKING:
    from gki_builder.config import Settings

logger = logging.getLogger(__name__)

Echo = Callable[[str], None]


def format_duration(seconds: float) -> str:
    """Format a duration as minutes and seconds, e.g. 125 -> '2m 5s'."""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s"


def compose_make_command(
    settings: Settings,
    target: str,
    jobs: int | None = None,
) -> list[str]:
    """Compose a kernel `make` command.

    Args:
        settings: Application settings.
        target: Make target (defconfig name or image name).
        jobs: Parallel jobs; omitted from the command when None.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [
        "make",
        f"ARCH={settings.arch}",
        "LLVM=1",
        "LLVM_IAS=1",
        f"O={settings.out_dir}",
        f"CROSS_COMPILE={settings.cross_compile}",
    ]
    if jobs is not None:
        cmd.append(f"-j{jobs}")
    cmd.append(target)
    return cmd


def run_make_phase(
    cmd: list[str],
    cwd: Path,
    log_file: IO[str],
    env: dict[str, str] | None = None,
    echo: Echo | None = None,
    timeout: int | None = None,
    log_path: Path | None = None,
) -> int:
    """Run one make invocation, teeing its output.

    Every line of merged stdout/stderr is appended to log_file and passed
    to echo. The return value is make's own exit status.

    Args:
        cmd: Command to execute.
        cwd: Working directory (kernel source tree).
        log_file: Open text file the output is appended to.
        env: Process environment.
        echo: Optional per-line callback for console output.
        timeout: Kill make after this many seconds (None = no timeout).
        log_path: Log file path reported in errors.

    Returns:
        Exit code of make.

    Raises:
        BuildExecutionError: If make cannot be started or times out.
    """
    cmd_str = shlex.join(cmd)
    log_file.write(f"# Command: {cmd_str}\n")
    log_file.flush()

    try:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            bufsize=1,
        )
    except OSError as e:
        message = f"Failed to execute {cmd_str}: {e}"
        logger.error(message)
        raise BuildExecutionError(
            message, log_path=log_path, code="execution_error"
        ) from e

    timed_out = threading.Event()

    def _kill() -> None:
        timed_out.set()
        proc.kill()

    timer: threading.Timer | None = None
    if timeout is not None:
        timer = threading.Timer(timeout, _kill)
        timer.start()

    try:
        for line in proc.stdout:  # type: ignore[union-attr]
            log_file.write(line)
            if echo is not None:
                echo(line.rstrip("\n"))
        returncode = proc.wait()
    finally:
        if timer is not None:
            timer.cancel()
        log_file.flush()

    if timed_out.is_set():
        log_file.write(f"\n# TIMEOUT after {timeout} seconds\n")
        raise BuildExecutionError(
            f"{cmd_str} timed out after {timeout} seconds",
            returncode=returncode,
            log_path=log_path,
            code="build_timeout",
        )

    return returncode


def run_build(
    settings: Settings | None = None,
    echo: Echo | None = None,
) -> BuildResult:
    """Run the two-phase kernel build.

    The previous log is discarded, then `make <defconfig>` and
    `make -jN <target>` run in the kernel tree with clang on PATH.

    Args:
        settings: Application settings (uses defaults if not provided).
        echo: Optional per-line callback for console output.

    Returns:
        BuildResult with timing and phase details.

    Raises:
        BuildExecutionError: If either phase fails. The log is kept.
    """
    if settings is None:
        settings = get_settings()

    env = toolchain_env(settings)
    logger.info("Clang in PATH: %s", shutil.which("clang", path=env["PATH"]))

    log_path = settings.build_log_path
    log_path.unlink(missing_ok=True)

    phases: list[PhaseResult] = []
    started_at = datetime.now(timezone.utc)

    with log_path.open("a") as log_file:
        # Phase 1: defconfig
        cmd = compose_make_command(settings, settings.defconfig)
        logger.info("Creating defconfig: %s", shlex.join(cmd))
        returncode = run_make_phase(
            cmd,
            settings.kernel_dir,
            log_file,
            env=env,
            echo=echo,
            timeout=settings.build_timeout,
            log_path=log_path,
        )
        phases.append(PhaseResult("defconfig", shlex.join(cmd), returncode))
        if returncode != 0:
            message = f"Defconfig failed with exit code {returncode}"
            logger.error("%s. See log: %s", message, log_path)
            raise BuildExecutionError(
                message,
                returncode=returncode,
                log_path=log_path,
                code="defconfig_failed",
            )

        # Phase 2: kernel image
        jobs = settings.resolved_jobs()
        cmd = compose_make_command(settings, settings.make_target, jobs=jobs)
        logger.info("Building kernel image: %s", shlex.join(cmd))
        returncode = run_make_phase(
            cmd,
            settings.kernel_dir,
            log_file,
            env=env,
            echo=echo,
            timeout=settings.build_timeout,
            log_path=log_path,
        )
        phases.append(PhaseResult("image", shlex.join(cmd), returncode))

    finished_at = datetime.now(timezone.utc)

    if returncode != 0:
        message = f"Build failed with exit code {returncode}"
        logger.error("%s. See log: %s", message, log_path)
        raise BuildExecutionError(
            message,
            returncode=returncode,
            log_path=log_path,
            code="build_failed",
        )

    result = BuildResult(
        log_path=log_path,
        started_at=started_at,
        finished_at=finished_at,
        phases=phases,
    )
    logger.info("Build time: %s", format_duration(result.elapsed_seconds))
    return result


__all__ = [
    "compose_make_command",
    "format_duration",
    "run_build",
    "run_make_phase",
]
