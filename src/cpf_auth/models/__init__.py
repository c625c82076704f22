"""
cpf_auth.models — Data models of the identity domain.

Re-exports for convenience:
    from cpf_auth.models import Identity, IdentityClass, LoginResult
"""

from cpf_auth.models.enums import IdentityClass, ProvisioningStage  # noqa: F401
from cpf_auth.models.identity import (  # noqa: F401
    AuthTokens,
    Identity,
    LoginRequest,
    LoginResult,
    ProvisioningCredentials,
    RegisterRequest,
    RegisterResult,
    UserSummary,
)
