"""End-to-end GKI build pipeline.

Provision -> Verify -> Build -> Package -> Notify, strictly in order.
A GkiBuildError from any step propagates and stops the chain; the
notification outcome never changes the result.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from gki_builder.builds.runner import Echo, run_build
from gki_builder.config import get_settings
from gki_builder.notify.telegram import build_caption, send_document
from gki_builder.packaging.service import package_kernel
from gki_builder.toolchain.service import ensure_toolchain, verify_toolchain
from gki_builder.types import PipelineResult

if TYPE_CHECKING:
    import httpx

    from gki_builder.config import Settings

logger = logging.getLogger(__name__)

# Step names in execution order
STEPS = ("toolchain", "verify", "build", "package", "notify")

OnStep = Callable[[str], None]
OnResult = Callable[[str, Any], None]


def run_pipeline(
    settings: Settings | None = None,
    echo: Echo | None = None,
    on_step: OnStep | None = None,
    on_result: OnResult | None = None,
    client: httpx.Client | None = None,
    now: datetime | None = None,
) -> PipelineResult:
    """Run every step of a GKI build.

    Args:
        settings: Application settings (uses defaults if not provided).
        echo: Optional per-line callback for build output.
        on_step: Optional callback invoked with each step name before it runs.
        on_result: Optional callback invoked with each step name and its
            result as soon as the step finishes.
        client: HTTPX client shared by download and upload.
        now: Run timestamp for the zip name (defaults to pipeline start).

    Returns:
        PipelineResult with the outcome of each step.

    Raises:
        GkiBuildError: On the first fatal step failure.
    """
    if settings is None:
        settings = get_settings()
    if now is None:
        now = datetime.now()

    def _announce(step: str) -> None:
        logger.debug("Starting step: %s", step)
        if on_step is not None:
            on_step(step)

    def _finish(step: str, result: Any) -> None:
        logger.debug("Finished step: %s", step)
        if on_result is not None:
            on_result(step, result)

    _announce("toolchain")
    toolchain = ensure_toolchain(settings, client=client)
    _finish("toolchain", toolchain)

    _announce("verify")
    clang_version = verify_toolchain(settings)
    _finish("verify", clang_version)

    _announce("build")
    build = run_build(settings, echo=echo)
    _finish("build", build)

    _announce("package")
    package = package_kernel(settings, now=now)
    _finish("package", package)

    _announce("notify")
    caption = build_caption(package.title, package.kernel_version)
    notify = send_document(package.zip_path, caption, settings, client=client)
    _finish("notify", notify)

    logger.info("All done: %s", package.zip_path)
    return PipelineResult(
        toolchain=toolchain,
        clang_version=clang_version,
        build=build,
        package=package,
        notify=notify,
    )


__all__ = ["STEPS", "run_pipeline"]
