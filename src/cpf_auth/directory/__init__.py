"""
cpf_auth.directory — Identity directory port and adapters.

``build_directory`` is called once at process start; the resulting object is
passed explicitly to the orchestrator.
"""

from __future__ import annotations

import logging

from cpf_auth.config import AuthSettings
from cpf_auth.directory.memory import InMemoryDirectory
from cpf_auth.directory.port import IdentityDirectory

logger = logging.getLogger(__name__)


def build_directory(settings: AuthSettings) -> IdentityDirectory:
    """
    Builds the configured directory adapter.

    A ``cognito`` backend without USER_POOL_ID/CLIENT_ID degrades to the
    in-memory directory outside production (production settings refuse to
    load in that case).
    """
    if settings.directory_backend == "cognito" and settings.cognito_configured:
        import boto3

        from cpf_auth.directory.cognito import CognitoDirectory

        client = boto3.client("cognito-idp", region_name=settings.aws_region)
        logger.info("Identity directory: Cognito pool %s (%s)", settings.user_pool_id, settings.aws_region)
        return CognitoDirectory(client, settings.user_pool_id, settings.client_id)

    if settings.directory_backend == "cognito":
        logger.warning(
            "⚠️  USER_POOL_ID/CLIENT_ID not set — activating in-memory directory "
            "(all identities are lost on restart)"
        )
    else:
        logger.info("Identity directory: in-memory")

    return InMemoryDirectory(
        token_secret=settings.memory_token_secret.get_secret_value(),
        token_expire_minutes=settings.memory_token_expire_minutes,
    )


__all__ = ["IdentityDirectory", "InMemoryDirectory", "build_directory"]
