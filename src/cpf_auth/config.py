"""
═══════════════════════════════════════════════════════════════════════════════
CPF Auth — Service settings (Application Configuration)
═══════════════════════════════════════════════════════════════════════════════

Settings class for the CPF Auth service:
    • API server (host, port, CORS)
    • Identity directory backend (Cognito user pool or in-memory)
    • Shared provisioning credentials
    • NATS (domain event publishing)
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import List, Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cpf_auth.models.identity import ProvisioningCredentials

UNSAFE_PASSWORDS = {"CHANGE_ME_IN_PRODUCTION", "password", "changeme", ""}


class AuthSettings(BaseSettings):
    """
    CPF Auth settings.

    Every value is read from the environment or a ``.env`` file. No prefix
    is used, so the variables match the ones the Lambda deployment already
    sets (USER_POOL_ID, CLIENT_ID, USER_PASSWORD).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Runtime environment ───────────────────────────────────────────────
    app_env: str = Field(
        default="development",
        description="Application environment: development | staging | production",
    )

    # ── API server ────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8300, ge=1, le=65535)
    log_level: str = Field(default="INFO")
    cors_origins: List[str] = Field(default=["*"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors(cls, v: str | List[str]) -> List[str]:
        """Accepts CORS_ORIGINS as a JSON string."""
        if isinstance(v, str):
            return json.loads(v)
        return v

    # ── Identity directory ────────────────────────────────────────────────
    directory_backend: Literal["cognito", "memory"] = Field(default="cognito")
    aws_region: str = Field(default="us-east-1")
    user_pool_id: str = Field(default="")
    client_id: str = Field(default="")

    # ── Shared provisioning credentials ───────────────────────────────────
    user_password: SecretStr = Field(
        default=SecretStr("CHANGE_ME_IN_PRODUCTION"),
        description="Permanent credential shared by every provisioned identity",
    )
    temporary_password: SecretStr | None = Field(
        default=None,
        description="Temporary credential used at creation; defaults to USER_PASSWORD",
    )

    # ── In-memory directory ───────────────────────────────────────────────
    memory_token_secret: SecretStr = Field(default=SecretStr("dev-memory-directory-secret"))
    memory_token_expire_minutes: int = Field(default=60, ge=1)

    # ── NATS (event publishing) ───────────────────────────────────────────
    nats_url: str = Field(default="nats://localhost:4222")
    events_enabled: bool = Field(default=True)
    nats_connect_timeout: float = Field(default=2.0, gt=0, description="Upper bound for one connect attempt, seconds")
    nats_retry_interval: float = Field(default=30.0, ge=0, description="Pause after a failed connect, seconds")

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def cognito_configured(self) -> bool:
        return bool(self.user_pool_id and self.client_id)

    @property
    def credentials(self) -> ProvisioningCredentials:
        return ProvisioningCredentials(
            temporary=self.temporary_password or self.user_password,
            permanent=self.user_password,
        )

    # ── Production guards ─────────────────────────────────────────────────
    @model_validator(mode="after")
    def _validate_production(self) -> "AuthSettings":
        """
        Production must use a real shared password and a configured pool.

        Outside production a missing pool is tolerated: ``cpf_auth.main``
        falls back to the in-memory directory.
        """
        if not self.is_production:
            return self
        if self.user_password.get_secret_value() in UNSAFE_PASSWORDS:
            raise ValueError("USER_PASSWORD must be set for production")
        if self.directory_backend == "memory":
            raise ValueError("The in-memory directory cannot be used in production")
        if not self.cognito_configured:
            raise ValueError("USER_POOL_ID and CLIENT_ID are required for production")
        return self


@lru_cache
def get_settings() -> AuthSettings:
    """
    Returns the single AuthSettings instance.

    ``@lru_cache`` makes sure the object is built on the first call only.
    """
    return AuthSettings()


__all__ = ["AuthSettings", "get_settings"]
