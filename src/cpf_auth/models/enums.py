"""
cpf_auth/models/enums.py — Enumerations of the identity domain.

    • IdentityClass — authenticated (CPF-keyed) or anonymous (UUID-keyed)
    • ProvisioningStage — stages a single request moves through
"""

from enum import Enum


class IdentityClass(str, Enum):
    """Class of an identity held in the directory."""
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class ProvisioningStage(str, Enum):
    """
    Stages of a single register/login request.

    ``PROVISIONED`` without ``CREDENTIAL_FINALIZED`` is the recognized
    inconsistent state: the identity exists in the directory with only its
    temporary credential.
    """
    RECEIVED = "received"
    VALIDATED = "validated"
    UNIQUENESS_CHECKED = "uniqueness_checked"
    PROVISIONED = "provisioned"
    CREDENTIAL_FINALIZED = "credential_finalized"
    AUTHENTICATED = "authenticated"
    COMPLETED = "completed"
    FAILED = "failed"
