"""Thin CLI wrapper for gki_builder.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import logging
from collections.abc import Callable
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from gki_builder import __version__
from gki_builder.builds.runner import format_duration
from gki_builder.config import Settings, get_settings, print_settings_json
from gki_builder.errors import BuildExecutionError, GkiBuildError
from gki_builder.types import (
    BuildResult,
    NotifyResult,
    PackageResult,
    StepStatus,
    ToolchainResult,
)

app = typer.Typer(
    name="gki-build",
    help="GKI Builder - build, package and ship Android GKI kernels",
)
console = Console()
err_console = Console(stderr=True)

BANNER = "=" * 40

STEP_MESSAGES = {
    "toolchain": "Checking clang toolchain...",
    "verify": "Verifying clang...",
    "build": "Starting build process...",
    "package": "Creating flashable zip...",
    "notify": "Sending notification...",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"gki-builder version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _echo_build_line(line: str) -> None:
    console.out(line, highlight=False)


def _announce_step(step: str) -> None:
    console.print(f"[yellow]{STEP_MESSAGES[step]}[/yellow]")


def _fail(error: GkiBuildError) -> typer.Exit:
    """Print a fatal error and return the matching exit."""
    if isinstance(error, BuildExecutionError):
        console.print(f"[red]{BANNER}[/red]")
        console.print("[red]  Build FAILED![/red]")
        console.print(f"[red]{BANNER}[/red]")
    console.print(f"[red]{escape(str(error))}[/red]", soft_wrap=True)
    if isinstance(error, BuildExecutionError) and error.log_path:
        console.print(
            f"[red]Check {escape(str(error.log_path))} for details[/red]",
            soft_wrap=True,
        )
    return typer.Exit(code=error.exit_code)


def _report_toolchain(result: ToolchainResult) -> None:
    if result.downloaded:
        console.print("[green]Clang downloaded successfully![/green]")
    else:
        console.print("[green]Clang already exists, skipping download[/green]")


def _report_clang_version(clang_version: str) -> None:
    console.print("[green]Clang Version:[/green]")
    console.print(clang_version, markup=False, highlight=False)


def _report_build(result: BuildResult) -> None:
    console.print(f"[green]{BANNER}[/green]")
    console.print("[green]  Build SUCCESS![/green]")
    console.print(f"[green]{BANNER}[/green]")
    console.print(
        f"[green]Build time: {format_duration(result.elapsed_seconds)}[/green]"
    )


def _report_package(result: PackageResult) -> None:
    console.print(f"[green]Kernel Image: {result.image_path}[/green]")
    console.print(
        f"[green]Kernel Version: {escape(result.kernel_version or 'unknown')}[/green]",
        highlight=False,
    )
    if result.cloned_template:
        console.print("[yellow]AnyKernel3 template cloned[/yellow]")
    console.print(f"[green]Flashable zip created: {result.zip_path}[/green]")
    console.print(f"  Size: {result.size_bytes} bytes")
    console.print(f"  SHA256: {result.sha256}")


def _report_notify(result: NotifyResult) -> None:
    color = {
        StepStatus.SUCCEEDED: "green",
        StepStatus.SKIPPED: "yellow",
        StepStatus.FAILED: "red",
    }.get(result.status, "white")
    console.print(f"[{color}]{escape(result.message)}[/{color}]")


STEP_REPORTERS: dict[str, Callable[[Any], None]] = {
    "toolchain": _report_toolchain,
    "verify": _report_clang_version,
    "build": _report_build,
    "package": _report_package,
    "notify": _report_notify,
}


def _report_step(step: str, result: Any) -> None:
    STEP_REPORTERS[step](result)


def _run_all(settings: Settings) -> None:
    from gki_builder.pipeline import run_pipeline

    try:
        run_pipeline(
            settings,
            echo=_echo_build_line,
            on_step=_announce_step,
            on_result=_report_step,
        )
    except GkiBuildError as e:
        raise _fail(e) from None

    console.print(f"[green]{BANNER}[/green]")
    console.print("[green]  All Done![/green]")
    console.print(f"[green]{BANNER}[/green]")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", "-l", help="Logging level (overrides config)"),
    ] = None,
) -> None:
    """GKI Builder - build, package and ship Android GKI kernels.

    Without a subcommand, runs the whole pipeline.
    """
    settings = get_settings()
    configure_logging((log_level or settings.log_level).upper())
    if ctx.invoked_subcommand is None:
        _run_all(settings)


@app.command()
def run() -> None:
    """Run the whole pipeline: toolchain, build, package, notify."""
    _run_all(get_settings())


@app.command()
def toolchain() -> None:
    """Download (if needed) and verify the clang toolchain."""
    from gki_builder.toolchain.service import ensure_toolchain, verify_toolchain

    settings = get_settings()
    try:
        _announce_step("toolchain")
        _report_toolchain(ensure_toolchain(settings))
        _announce_step("verify")
        _report_clang_version(verify_toolchain(settings))
    except GkiBuildError as e:
        raise _fail(e) from None


@app.command()
def build() -> None:
    """Run the defconfig and kernel image make phases."""
    from gki_builder.builds.runner import run_build

    settings = get_settings()
    try:
        _announce_step("build")
        result = run_build(settings, echo=_echo_build_line)
    except GkiBuildError as e:
        raise _fail(e) from None

    _report_build(result)


@app.command()
def package(
    notify: Annotated[
        bool,
        typer.Option("--notify/--no-notify", help="Upload the zip to Telegram"),
    ] = True,
) -> None:
    """Package the built kernel image into a flashable zip."""
    from gki_builder.notify.telegram import build_caption, send_document
    from gki_builder.packaging.service import package_kernel

    settings = get_settings()
    try:
        _announce_step("package")
        result = package_kernel(settings)
    except GkiBuildError as e:
        raise _fail(e) from None

    _report_package(result)

    if notify:
        _announce_step("notify")
        caption = build_caption(result.title, result.kernel_version)
        _report_notify(send_document(result.zip_path, caption, settings))


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.out(print_settings_json(settings), highlight=False)
        return

    jobs_display = settings.jobs if settings.jobs is not None else "(all CPUs)"
    timeout_display = settings.build_timeout or "(none)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Kernel directory:    {settings.kernel_dir}")
    console.print(f"  Toolchain directory: {settings.toolchain_root}")
    console.print(f"  Clang directory:     {settings.clang_root}")
    console.print(f"  AnyKernel3 directory: {settings.anykernel_root}")
    console.print(f"  Build log:           {settings.build_log_path}")
    console.print()
    console.print("[bold]Build:[/bold]")
    console.print(f"  Arch:                {settings.arch}")
    console.print(f"  Defconfig:           {settings.defconfig}")
    console.print(f"  Target:              {settings.make_target}")
    console.print(f"  Jobs:                {jobs_display}")
    console.print()
    console.print("[bold]Telegram:[/bold]")
    console.print(f"  Configured:          {settings.telegram_configured}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Offline mode:        {settings.offline}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print()
    console.print("[bold]Timeouts (seconds):[/bold]")
    console.print(f"  Download timeout:    {settings.download_timeout}")
    console.print(f"  Upload timeout:      {settings.upload_timeout}")
    console.print(f"  Build timeout:       {timeout_display}")


if __name__ == "__main__":
    app()
