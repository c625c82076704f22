"""
cpf_auth/services/validators.py — Attribute validation and normalization.

Pure functions, no I/O. Each ``validate_*`` either returns ``True`` or raises
the matching ``IdentityError`` subclass; each ``normalize_*`` never raises on
input that already passed validation.
"""

from __future__ import annotations

import re

from cpf_auth.exceptions import InvalidEmailError, InvalidNameError, InvalidNationalIdError
from cpf_auth.models.enums import ProvisioningStage

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 254
NATIONAL_ID_LENGTH = 11

_NON_DIGIT_RE = re.compile(r"\D")
_WHITESPACE_RE = re.compile(r"\s+")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_STAGE = ProvisioningStage.RECEIVED


# ═══════════════════════════════════════════════════════════════════════════
# NAME
# ═══════════════════════════════════════════════════════════════════════════


def validate_name(name: str | None) -> bool:
    """Name must be 2–100 characters after trimming."""
    trimmed = (name or "").strip()
    if not trimmed:
        raise InvalidNameError("Name is required", stage=_STAGE)
    if len(trimmed) < NAME_MIN_LENGTH:
        raise InvalidNameError(
            f"Name must have at least {NAME_MIN_LENGTH} characters", stage=_STAGE
        )
    if len(trimmed) > NAME_MAX_LENGTH:
        raise InvalidNameError(
            f"Name is too long (max {NAME_MAX_LENGTH} characters)", stage=_STAGE
        )
    return True


def normalize_name(name: str) -> str:
    return _WHITESPACE_RE.sub(" ", name.strip())


# ═══════════════════════════════════════════════════════════════════════════
# CPF
# ═══════════════════════════════════════════════════════════════════════════


def normalize_national_id(national_id: str) -> str:
    """Strips every non-digit: ``"111.444.777-35"`` → ``"11144477735"``."""
    return _NON_DIGIT_RE.sub("", national_id)


def _check_digit(digits: str) -> int:
    """
    CPF check digit over ``digits`` (9 digits for the first, 10 for the second).

    Weights run from ``len(digits) + 1`` down to 2; the digit is
    ``(sum * 10) % 11`` with 10 mapped to 0.
    """
    weight = len(digits) + 1
    total = sum(int(d) * (weight - i) for i, d in enumerate(digits))
    remainder = (total * 10) % 11
    return 0 if remainder >= 10 else remainder


def validate_national_id(national_id: str | None) -> bool:
    """Validates a CPF with or without punctuation."""
    if not national_id:
        raise InvalidNationalIdError("CPF is required", stage=_STAGE)

    digits = normalize_national_id(national_id)

    if len(digits) != NATIONAL_ID_LENGTH:
        raise InvalidNationalIdError("CPF must have exactly 11 digits", stage=_STAGE)

    if len(set(digits)) == 1:
        raise InvalidNationalIdError("CPF cannot have all equal digits", stage=_STAGE)

    if _check_digit(digits[:9]) != int(digits[9]) or _check_digit(digits[:10]) != int(digits[10]):
        raise InvalidNationalIdError("Invalid CPF verification digits", stage=_STAGE)

    return True


def format_national_id(national_id: str) -> str:
    """``"11144477735"`` → ``"111.444.777-35"``."""
    d = normalize_national_id(national_id)
    if len(d) != NATIONAL_ID_LENGTH:
        return d
    return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"


def looks_like_national_id(value: str) -> bool:
    """True when ``value`` is a bare 11-digit string."""
    return len(value) == NATIONAL_ID_LENGTH and value.isdigit()


# ═══════════════════════════════════════════════════════════════════════════
# EMAIL
# ═══════════════════════════════════════════════════════════════════════════


def validate_email(email: str | None) -> bool:
    email = (email or "").strip()
    if not email:
        raise InvalidEmailError("Email is required", stage=_STAGE)
    if len(email) > EMAIL_MAX_LENGTH:
        raise InvalidEmailError("Email is too long", stage=_STAGE)
    if not _EMAIL_RE.match(email):
        raise InvalidEmailError("Invalid email format", stage=_STAGE)
    return True


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ═══════════════════════════════════════════════════════════════════════════
# Validate + normalize in one step
# ═══════════════════════════════════════════════════════════════════════════


def clean_name(name: str | None) -> str:
    validate_name(name)
    return normalize_name(name)


def clean_national_id(national_id: str | None) -> str:
    validate_national_id(national_id)
    return normalize_national_id(national_id)


def clean_email(email: str | None) -> str:
    validate_email(email)
    return normalize_email(email)
