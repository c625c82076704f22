"""
cpf_auth/masking.py — Masking of personal identifiers in logs and diagnostics.

A full CPF or a full email address must never reach a log line, an event
payload or an error body. Services call ``mask_national_id`` / ``mask_email``
explicitly, and ``PiiMaskingFilter`` is installed on the root log handler so
that anything slipping through (exception text from a backend, a stray
f-string) is rewritten before it is emitted.
"""

from __future__ import annotations

import logging
import re
from typing import Any

# Bare 11 digits or the dotted form 111.444.777-35, not part of a longer number.
_CPF_RE = re.compile(r"(?<!\d)(\d{3})\.?(\d{3})\.?(\d{3})-?(\d{2})(?!\d)")
_EMAIL_RE = re.compile(r"[^\s@\"'<>()\[\],;:]+@([^\s@\"'<>()\[\],;:]+\.[^\s@\"'<>()\[\],;:]+)")

MASK = "***"


def mask_national_id(value: str | None) -> str:
    """``"11144477735"`` → ``"***7735"``."""
    if not value:
        return MASK
    digits = re.sub(r"\D", "", value)
    if len(digits) < 4:
        return MASK
    return f"{MASK}{digits[-4:]}"


def mask_email(value: str | None) -> str:
    """``"joao@example.com"`` → ``"***@example.com"``."""
    if not value or "@" not in value:
        return MASK
    return f"{MASK}@{value.rsplit('@', 1)[1]}"


def mask_text(text: str) -> str:
    """Masks every CPF-shaped number and email address inside free text."""
    text = _EMAIL_RE.sub(lambda m: f"{MASK}@{m.group(1)}", text)
    return _CPF_RE.sub(lambda m: f"{MASK}{m.group(3)[-2:]}{m.group(4)}", text)


def _mask_arg(arg: Any) -> Any:
    if isinstance(arg, str):
        return mask_text(arg)
    if isinstance(arg, BaseException):
        return mask_text(str(arg))
    return arg


class PiiMaskingFilter(logging.Filter):
    """Rewrites CPFs and emails in the message and args of every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = mask_text(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(_mask_arg(a) for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {k: _mask_arg(v) for k, v in record.args.items()}
        return True


def install_masking_filter(handlers: list[logging.Handler] | None = None) -> None:
    """Attaches ``PiiMaskingFilter`` to the given handlers (root handlers by default)."""
    targets = handlers if handlers is not None else logging.getLogger().handlers
    for handler in targets:
        if not any(isinstance(f, PiiMaskingFilter) for f in handler.filters):
            handler.addFilter(PiiMaskingFilter())


__all__ = [
    "mask_national_id",
    "mask_email",
    "mask_text",
    "PiiMaskingFilter",
    "install_masking_filter",
]
