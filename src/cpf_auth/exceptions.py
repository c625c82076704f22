"""
═══════════════════════════════════════════════════════════════════════════════
CPF Auth — Error hierarchy (Custom Exception Hierarchy)
═══════════════════════════════════════════════════════════════════════════════

Two families of errors live here:

    • ``IdentityError`` — the closed set of error kinds the orchestrator
      surfaces to the entry point. One subclass per ``ErrorKind``.
      HTTP mapping is done in ``cpf_auth.main:identity_error_handler``.

    • ``DirectoryError`` — what a directory adapter raises. Adapters translate
      backend-specific failures into these four classes; the orchestrator
      maps them onto ``IdentityError`` kinds.

Messages never carry a full CPF or a full email address. Only masked forms
(see ``cpf_auth.masking``) go into ``details``.
"""

from __future__ import annotations

from enum import Enum

from cpf_auth.models.enums import ProvisioningStage


class ErrorKind(str, Enum):
    """Closed set of error kinds returned to callers."""

    INVALID_NAME = "INVALID_NAME"
    INVALID_NATIONAL_ID = "INVALID_CPF"
    INVALID_EMAIL = "INVALID_EMAIL"
    AMBIGUOUS_REQUEST = "AMBIGUOUS_REQUEST"
    MISSING_IDENTIFIER = "MISSING_IDENTIFIER"
    DUPLICATE_IDENTIFIER = "DUPLICATE_CPF"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    DIRECTORY_UNAVAILABLE = "DIRECTORY_UNAVAILABLE"


# ═══════════════════════════════════════════════════════════════════════════════
# Orchestrator-facing errors
# ═══════════════════════════════════════════════════════════════════════════════


class IdentityError(Exception):
    """
    Base class for every error the orchestrator raises.

    Attributes
    ──────────
        kind (ErrorKind):          Error kind. Used for HTTP status mapping.
        message (str):             Client-safe description.
        stage (ProvisioningStage): Stage of the request that failed.
        details (dict):            Extra structured data (masked values only).
    """

    kind: ErrorKind = ErrorKind.DIRECTORY_UNAVAILABLE
    default_message: str = "Identity operation failed"

    def __init__(
        self,
        message: str | None = None,
        stage: ProvisioningStage = ProvisioningStage.FAILED,
        details: dict | None = None,
    ):
        self.message = message or self.default_message
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.kind.value


class InvalidNameError(IdentityError):
    kind = ErrorKind.INVALID_NAME
    default_message = "Invalid name"


class InvalidNationalIdError(IdentityError):
    kind = ErrorKind.INVALID_NATIONAL_ID
    default_message = "Invalid CPF"


class InvalidEmailError(IdentityError):
    kind = ErrorKind.INVALID_EMAIL
    default_message = "Invalid email format"


class AmbiguousRequestError(IdentityError):
    kind = ErrorKind.AMBIGUOUS_REQUEST
    default_message = (
        "Please provide either CPF for registered user login "
        "or name for anonymous user login, not both"
    )


class MissingIdentifierError(IdentityError):
    kind = ErrorKind.MISSING_IDENTIFIER
    default_message = "Please provide either CPF or name"


class DuplicateIdentifierError(IdentityError):
    kind = ErrorKind.DUPLICATE_IDENTIFIER
    default_message = "CPF already registered"


class DuplicateEmailError(IdentityError):
    kind = ErrorKind.DUPLICATE_EMAIL
    default_message = "Email already registered"


class UserNotFoundError(IdentityError):
    kind = ErrorKind.USER_NOT_FOUND
    default_message = "User not found with provided CPF"


class UnauthorizedError(IdentityError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Invalid credentials"


class DirectoryUnavailableError(IdentityError):
    """
    Any directory failure the orchestrator cannot classify.

    ``diagnostic`` keeps the underlying message for logs. It is never part
    of the client response.
    """

    kind = ErrorKind.DIRECTORY_UNAVAILABLE
    default_message = "Identity directory is unavailable"

    def __init__(
        self,
        message: str | None = None,
        stage: ProvisioningStage = ProvisioningStage.FAILED,
        details: dict | None = None,
        diagnostic: str = "",
    ):
        super().__init__(message, stage=stage, details=details)
        self.diagnostic = diagnostic


# ═══════════════════════════════════════════════════════════════════════════════
# Directory port errors
# ═══════════════════════════════════════════════════════════════════════════════


class DirectoryError(Exception):
    """Base class for errors raised by directory adapters."""

    def __init__(self, message: str = "Directory error"):
        self.message = message
        super().__init__(message)


class DirectoryAlreadyExistsError(DirectoryError):
    """Key collision on create."""


class DirectoryNotFoundError(DirectoryError):
    """No identity with the given key."""


class DirectoryUnauthorizedError(DirectoryError):
    """Credential mismatch on authenticate."""


class DirectoryFailureError(DirectoryError):
    """Unclassified backend failure; ``diagnostic`` keeps the raw cause."""

    def __init__(self, message: str = "Directory request failed", diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic or message


__all__ = [
    "ErrorKind",
    "IdentityError",
    "InvalidNameError",
    "InvalidNationalIdError",
    "InvalidEmailError",
    "AmbiguousRequestError",
    "MissingIdentifierError",
    "DuplicateIdentifierError",
    "DuplicateEmailError",
    "UserNotFoundError",
    "UnauthorizedError",
    "DirectoryUnavailableError",
    "DirectoryError",
    "DirectoryAlreadyExistsError",
    "DirectoryNotFoundError",
    "DirectoryUnauthorizedError",
    "DirectoryFailureError",
]
