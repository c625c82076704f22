"""
cpf_auth/directory/cognito.py — Amazon Cognito user pool adapter.

Implements the ``IdentityDirectory`` port over the ``cognito-idp`` admin API.
boto3 is blocking, so every call is pushed to a worker thread with
``asyncio.to_thread``; the boto3 client itself is thread-safe and is built
once at startup (see ``cpf_auth.main``).

Attribute layout in the pool:
    name               — display name
    email              — authenticated users only (+ email_verified=true)
    custom:cpf         — authenticated users only
    custom:user_type   — "authenticated" | "anonymous"
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from cpf_auth.exceptions import (
    DirectoryAlreadyExistsError,
    DirectoryFailureError,
    DirectoryNotFoundError,
    DirectoryUnauthorizedError,
)
from cpf_auth.masking import mask_text
from cpf_auth.models.enums import IdentityClass
from cpf_auth.models.identity import AuthTokens, Identity

logger = logging.getLogger(__name__)

ATTR_NAME = "name"
ATTR_EMAIL = "email"
ATTR_EMAIL_VERIFIED = "email_verified"
ATTR_CPF = "custom:cpf"
ATTR_USER_TYPE = "custom:user_type"
ATTR_SUB = "sub"

# Port attribute names → pool attribute names usable in a ListUsers filter.
FILTERABLE_ATTRIBUTES = {
    "email": ATTR_EMAIL,
    "display_name": ATTR_NAME,
}

AUTH_FLOW = "ADMIN_USER_PASSWORD_AUTH"


# ═══════════════════════════════════════════════════════════════════════════
# MAPPING: Cognito attributes ↔ Identity
# ═══════════════════════════════════════════════════════════════════════════


def get_attribute(attributes: list[dict], name: str) -> str | None:
    for attr in attributes:
        if attr.get("Name") == name:
            return attr.get("Value")
    return None


def identity_to_attributes(identity: Identity) -> list[dict[str, str]]:
    """Builds ``UserAttributes`` for ``AdminCreateUser``."""
    attributes = [
        {"Name": ATTR_NAME, "Value": identity.display_name},
        {"Name": ATTR_USER_TYPE, "Value": identity.identity_class.value},
    ]
    if identity.email:
        attributes.append({"Name": ATTR_EMAIL, "Value": identity.email})
        attributes.append({"Name": ATTR_EMAIL_VERIFIED, "Value": "true"})
    if identity.identity_class is IdentityClass.AUTHENTICATED:
        attributes.append({"Name": ATTR_CPF, "Value": identity.key})
    return attributes


def attributes_to_identity(username: str, attributes: list[dict]) -> Identity:
    """
    Maps a pool record onto ``Identity``.

    Records written by other tools may not satisfy the class invariant
    (e.g. an authenticated user without email). Those are still returned,
    unvalidated, since their key is taken either way.
    """
    raw_type = get_attribute(attributes, ATTR_USER_TYPE) or IdentityClass.AUTHENTICATED.value
    try:
        identity_class = IdentityClass(raw_type)
    except ValueError:
        identity_class = IdentityClass.AUTHENTICATED

    fields: dict[str, Any] = {
        "key": username,
        "display_name": get_attribute(attributes, ATTR_NAME) or "",
        "email": get_attribute(attributes, ATTR_EMAIL),
        "identity_class": identity_class,
    }
    if identity_class is IdentityClass.ANONYMOUS:
        fields["email"] = None
    try:
        return Identity(**fields)
    except ValidationError:
        logger.warning("Cognito record %s does not satisfy the identity invariant", mask_text(username))
        return Identity.model_construct(**fields)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def _failure(operation: str, exc: Exception) -> DirectoryFailureError:
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        diagnostic = f"{operation}: {err.get('Code', 'Unknown')}: {err.get('Message', '')}"
    else:
        diagnostic = f"{operation}: {exc}"
    return DirectoryFailureError(f"Cognito {operation} failed", diagnostic=mask_text(diagnostic))


# ═══════════════════════════════════════════════════════════════════════════
# ADAPTER
# ═══════════════════════════════════════════════════════════════════════════


class CognitoDirectory:
    """``IdentityDirectory`` backed by a Cognito user pool."""

    name = "cognito"

    def __init__(self, client: Any, user_pool_id: str, client_id: str) -> None:
        self._client = client
        self._user_pool_id = user_pool_id
        self._client_id = client_id

    async def _call(self, operation: str, **kwargs: Any) -> dict:
        method = getattr(self._client, operation)
        return await asyncio.to_thread(method, **kwargs)

    # ── Lookups ──────────────────────────────────────────────────────────

    async def _get_user(self, key: str) -> dict | None:
        try:
            return await self._call("admin_get_user", UserPoolId=self._user_pool_id, Username=key)
        except ClientError as exc:
            if _error_code(exc) == "UserNotFoundException":
                return None
            raise _failure("admin_get_user", exc) from exc
        except BotoCoreError as exc:
            raise _failure("admin_get_user", exc) from exc

    async def exists(self, key: str) -> bool:
        return await self._get_user(key) is not None

    async def find_by_key(self, key: str) -> Identity | None:
        """
        Looks a record up by username.

        An authenticated record counts as found only when its ``custom:cpf``
        equals the key; a username without the matching CPF attribute is not
        a registered CPF user.
        """
        response = await self._get_user(key)
        if response is None:
            return None
        attributes = response.get("UserAttributes", [])
        identity = attributes_to_identity(response.get("Username", key), attributes)
        cpf = get_attribute(attributes, ATTR_CPF)
        if identity.identity_class is IdentityClass.AUTHENTICATED and cpf != key:
            logger.warning("Cognito user %s has no matching custom:cpf", mask_text(key))
            return None
        return identity

    async def find_by_attribute(self, attribute: str, value: str) -> Identity | None:
        pool_attribute = FILTERABLE_ATTRIBUTES.get(attribute)
        if pool_attribute is None:
            raise DirectoryFailureError(
                f"Attribute '{attribute}' cannot be searched",
                diagnostic=f"list_users: unsupported filter attribute {attribute}",
            )
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        try:
            response = await self._call(
                "list_users",
                UserPoolId=self._user_pool_id,
                Filter=f'{pool_attribute} = "{escaped}"',
                Limit=1,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _failure("list_users", exc) from exc

        for user in response.get("Users", []):
            identity = attributes_to_identity(user.get("Username", ""), user.get("Attributes", []))
            if getattr(identity, attribute, None) == value:
                return identity
        return None

    # ── Provisioning ─────────────────────────────────────────────────────

    async def create(self, identity: Identity, temporary_credential: str) -> str:
        try:
            response = await self._call(
                "admin_create_user",
                UserPoolId=self._user_pool_id,
                Username=identity.key,
                TemporaryPassword=temporary_credential,
                MessageAction="SUPPRESS",
                UserAttributes=identity_to_attributes(identity),
            )
        except ClientError as exc:
            if _error_code(exc) == "UsernameExistsException":
                raise DirectoryAlreadyExistsError("User already exists") from exc
            raise _failure("admin_create_user", exc) from exc
        except BotoCoreError as exc:
            raise _failure("admin_create_user", exc) from exc

        sub = get_attribute(response.get("User", {}).get("Attributes", []), ATTR_SUB)
        logger.info("User created in Cognito (sub: %s)", sub)
        return sub or identity.key

    async def finalize_credential(self, key: str, permanent_credential: str) -> None:
        try:
            await self._call(
                "admin_set_user_password",
                UserPoolId=self._user_pool_id,
                Username=key,
                Password=permanent_credential,
                Permanent=True,
            )
        except ClientError as exc:
            if _error_code(exc) == "UserNotFoundException":
                raise DirectoryNotFoundError("User not found") from exc
            raise _failure("admin_set_user_password", exc) from exc
        except BotoCoreError as exc:
            raise _failure("admin_set_user_password", exc) from exc

    # ── Authentication ───────────────────────────────────────────────────

    async def authenticate(self, key: str, credential: str) -> AuthTokens:
        try:
            response = await self._call(
                "admin_initiate_auth",
                UserPoolId=self._user_pool_id,
                ClientId=self._client_id,
                AuthFlow=AUTH_FLOW,
                AuthParameters={"USERNAME": key, "PASSWORD": credential},
            )
        except ClientError as exc:
            code = _error_code(exc)
            if code == "UserNotFoundException":
                raise DirectoryNotFoundError("User not found") from exc
            if code == "NotAuthorizedException":
                raise DirectoryUnauthorizedError("Invalid credentials") from exc
            raise _failure("admin_initiate_auth", exc) from exc
        except BotoCoreError as exc:
            raise _failure("admin_initiate_auth", exc) from exc

        result = response.get("AuthenticationResult")
        if not result:
            raise DirectoryFailureError(
                "Authentication result is missing",
                diagnostic=f"admin_initiate_auth: challenge {response.get('ChallengeName', 'none')}",
            )
        return AuthTokens(
            id_token=result.get("IdToken", ""),
            refresh_token=result.get("RefreshToken", ""),
        )
