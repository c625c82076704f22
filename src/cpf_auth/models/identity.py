"""
cpf_auth/models/identity.py — Identity records, requests and results.

``Identity`` is the directory-facing record. Requests are transient input
values; they are validated and normalized by the orchestrator, never by
pydantic, so that every input problem surfaces through the same error kinds.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

from cpf_auth.models.common import IdentityBase
from cpf_auth.models.enums import IdentityClass

_CPF_KEY_RE = re.compile(r"^\d{11}$")


class Identity(BaseModel):
    """Identity record as stored in the directory."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1, description="CPF or generated anonymous id")
    display_name: str = Field(..., min_length=2, max_length=100)
    email: str | None = None
    identity_class: IdentityClass

    @model_validator(mode="after")
    def _check_class_invariant(self) -> "Identity":
        is_cpf_key = bool(_CPF_KEY_RE.match(self.key))
        if self.identity_class is IdentityClass.AUTHENTICATED:
            if not self.email:
                raise ValueError("authenticated identity requires an email")
            if not is_cpf_key:
                raise ValueError("authenticated identity must be keyed by an 11-digit CPF")
        else:
            if self.email is not None:
                raise ValueError("anonymous identity must not carry an email")
            if is_cpf_key:
                raise ValueError("anonymous identity key must not look like a CPF")
        return self

    @property
    def is_anonymous(self) -> bool:
        return self.identity_class is IdentityClass.ANONYMOUS


class AuthTokens(IdentityBase):
    """Session tokens issued by the directory."""
    id_token: str = Field(..., serialization_alias="idToken", validation_alias="idToken")
    refresh_token: str = Field(..., serialization_alias="refreshToken", validation_alias="refreshToken")


class ProvisioningCredentials(BaseModel):
    """Shared provisioning secrets, derived from configuration at startup."""

    model_config = ConfigDict(frozen=True)

    temporary: SecretStr
    permanent: SecretStr


# ═══════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════


class RegisterRequest(IdentityBase):
    """Registration payload: ``{name, cpf, email}``."""
    name: str | None = Field(default=None, examples=["João Silva"])
    cpf: str | None = Field(default=None, examples=["111.444.777-35"])
    email: str | None = Field(default=None, examples=["joao@example.com"])


class LoginRequest(IdentityBase):
    """Login payload: exactly one of ``cpf`` or ``name``."""
    cpf: str | None = Field(default=None, examples=["11144477735"])
    name: str | None = Field(default=None, examples=["Guest"])


# ═══════════════════════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════════════════════


class RegisterResult(IdentityBase):
    message: str = "User registered successfully"
    user_id: str = Field(..., serialization_alias="userId")


class UserSummary(IdentityBase):
    id: str
    name: str
    type: IdentityClass


class LoginResult(IdentityBase):
    tokens: AuthTokens
    user: UserSummary
