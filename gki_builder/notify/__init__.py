"""Build notification module."""

from gki_builder.notify.telegram import build_caption, send_document

__all__ = ["build_caption", "send_document"]
