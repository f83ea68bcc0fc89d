"""Telegram notifier.

Uploads the flashable zip with a Markdown caption through the Bot API
`sendDocument` method. Upload problems are reported, never raised: the
notification is the last, best-effort step of a run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from gki_builder.config import get_settings
from gki_builder.types import NotifyResult, StepStatus

if TYPE_CHECKING:
    from gki_builder.config import Settings

logger = logging.getLogger(__name__)

FLASH_NOTE = r"*Note: Always backup working boot before flash\.*"


def build_caption(title: str, kernel_version: str | None) -> str:
    """Compose the Markdown caption sent with the zip.

    Args:
        title: Build title, e.g. 'GKI-BUILD-20241031-1530'.
        kernel_version: Kernel banner line, if known.

    Returns:
        Caption text.
    """
    return "\n".join(
        [
            f"*{title}*",
            "```",
            kernel_version or "unknown",
            "```",
            FLASH_NOTE,
        ]
    )


def send_document_url(api_base: str, token: str) -> str:
    """Return the Bot API sendDocument endpoint for a token."""
    return f"{api_base.rstrip('/')}/bot{token}/sendDocument"


def send_document(
    file_path: Path,
    caption: str,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> NotifyResult:
    """Upload a file to the configured Telegram chat.

    Skipped unless both BOT_TOKEN and CHAT_ID are set.

    Args:
        file_path: File to upload.
        caption: Markdown caption.
        settings: Application settings (uses defaults if not provided).
        client: HTTPX client (creates one if not provided).

    Returns:
        NotifyResult with status skipped, succeeded or failed.
    """
    if settings is None:
        settings = get_settings()

    if not settings.telegram_configured:
        logger.info("Telegram config not set, skipping upload")
        return NotifyResult(StepStatus.SKIPPED, "Telegram config not set")

    url = send_document_url(settings.telegram_api_base, settings.telegram_token)
    data = {
        "chat_id": str(settings.chat_id),
        "disable_web_page_preview": "true",
        "parse_mode": "markdown",
        "caption": caption,
    }

    own_client = client is None
    if client is None:
        client = httpx.Client()

    logger.info("Uploading %s to Telegram", file_path.name)
    try:
        with file_path.open("rb") as fh:
            response = client.post(
                url,
                data=data,
                files={"document": (file_path.name, fh)},
                timeout=settings.upload_timeout,
            )
        response.raise_for_status()
        body = response.json()
    except httpx.HTTPStatusError as e:
        message = f"Upload to Telegram failed: HTTP {e.response.status_code}"
        logger.warning(message)
        return NotifyResult(StepStatus.FAILED, message)
    except httpx.RequestError as e:
        # The exception text carries the URL, which contains the token
        message = f"Upload to Telegram failed: {type(e).__name__}"
        logger.warning(message)
        return NotifyResult(StepStatus.FAILED, message)
    except (OSError, ValueError) as e:
        message = f"Upload to Telegram failed: {e}"
        logger.warning(message)
        return NotifyResult(StepStatus.FAILED, message)
    finally:
        if own_client:
            client.close()

    if not isinstance(body, dict):
        message = "Upload to Telegram failed: unexpected response body"
        logger.warning(message)
        return NotifyResult(StepStatus.FAILED, message)

    if not body.get("ok", False):
        message = f"Upload to Telegram failed: {body.get('description', 'unknown error')}"
        logger.warning(message)
        return NotifyResult(StepStatus.FAILED, message)

    logger.info("Upload to Telegram success")
    return NotifyResult(StepStatus.SUCCEEDED, "Upload to Telegram success")


__all__ = ["FLASH_NOTE", "build_caption", "send_document", "send_document_url"]
