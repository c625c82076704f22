"""
═══════════════════════════════════════════════════════════════════════════════
CPF Auth — In-memory identity directory (local development and tests)
═══════════════════════════════════════════════════════════════════════════════

Implements the ``IdentityDirectory`` port without any external backend.
Selected by ``cpf_auth.directory.build_directory`` when ``DIRECTORY_BACKEND=memory`` or when
the Cognito pool is not configured outside production.

    • Credentials are stored as bcrypt hashes.
    • A record stays ``pending`` until its credential is finalized; pending
      records cannot authenticate.
    • Tokens are HS256 JWTs signed with ``memory_token_secret``.
    • ``create`` is check-and-insert under a lock, which gives the same native
      key-uniqueness guarantee a real directory provides.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import jwt

from cpf_auth.exceptions import (
    DirectoryAlreadyExistsError,
    DirectoryNotFoundError,
    DirectoryUnauthorizedError,
)
from cpf_auth.masking import mask_national_id
from cpf_auth.models.identity import AuthTokens, Identity

logger = logging.getLogger(__name__)

_now = lambda: datetime.now(timezone.utc)  # noqa: E731

STATUS_PENDING = "FORCE_CHANGE_PASSWORD"
STATUS_CONFIRMED = "CONFIRMED"

TOKEN_ALGORITHM = "HS256"
REFRESH_TOKEN_DAYS = 30


# ═══════════════════════════════════════════════════════════════════════════════
# Password hashing
# ═══════════════════════════════════════════════════════════════════════════════


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


# ═══════════════════════════════════════════════════════════════════════════════
# Directory
# ═══════════════════════════════════════════════════════════════════════════════


class InMemoryDirectory:
    """In-process identity directory. All data is lost on restart."""

    name = "memory"

    def __init__(
        self,
        token_secret: str,
        token_expire_minutes: int = 60,
        issuer: str = "cpf-auth-memory",
        hash_rounds: int = 12,
    ) -> None:
        self._token_secret = token_secret
        self._token_ttl = timedelta(minutes=token_expire_minutes)
        self._issuer = issuer
        self._hash_rounds = hash_rounds
        self._records: dict[str, dict] = {}
        self._lock = asyncio.Lock()

    # ── Lookups ──────────────────────────────────────────────────────────

    async def exists(self, key: str) -> bool:
        return key in self._records

    async def find_by_key(self, key: str) -> Identity | None:
        record = self._records.get(key)
        return record["identity"] if record else None

    async def find_by_attribute(self, attribute: str, value: str) -> Identity | None:
        for record in self._records.values():
            if getattr(record["identity"], attribute, None) == value:
                return record["identity"]
        return None

    # ── Provisioning ─────────────────────────────────────────────────────

    async def create(self, identity: Identity, temporary_credential: str) -> str:
        hashed = await asyncio.to_thread(hash_password, temporary_credential, self._hash_rounds)
        async with self._lock:
            if identity.key in self._records:
                raise DirectoryAlreadyExistsError("User already exists")
            self._records[identity.key] = {
                "identity": identity,
                "password_hash": hashed,
                "status": STATUS_PENDING,
                "created_at": _now(),
            }
        logger.info(
            "Memory directory: created %s identity %s",
            identity.identity_class.value,
            identity.key if identity.is_anonymous else mask_national_id(identity.key),
        )
        return identity.key

    async def finalize_credential(self, key: str, permanent_credential: str) -> None:
        hashed = await asyncio.to_thread(hash_password, permanent_credential, self._hash_rounds)
        record = self._records.get(key)
        if record is None:
            raise DirectoryNotFoundError("User not found")
        record["password_hash"] = hashed
        record["status"] = STATUS_CONFIRMED

    # ── Authentication ───────────────────────────────────────────────────

    async def authenticate(self, key: str, credential: str) -> AuthTokens:
        record = self._records.get(key)
        if record is None:
            raise DirectoryNotFoundError("User not found")
        if record["status"] != STATUS_CONFIRMED:
            raise DirectoryUnauthorizedError("Password change required")
        matches = await asyncio.to_thread(verify_password, credential, record["password_hash"])
        if not matches:
            raise DirectoryUnauthorizedError("Incorrect username or password")
        return AuthTokens(
            id_token=self._create_id_token(record["identity"]),
            refresh_token=self._create_refresh_token(key),
        )

    # ── Tokens ───────────────────────────────────────────────────────────

    def _create_id_token(self, identity: Identity) -> str:
        now = _now()
        payload: dict = {
            "sub": identity.key,
            "iss": self._issuer,
            "iat": now,
            "exp": now + self._token_ttl,
            "token_use": "id",
            "name": identity.display_name,
            "custom:user_type": identity.identity_class.value,
        }
        if identity.email:
            payload["email"] = identity.email
        return jwt.encode(payload, self._token_secret, algorithm=TOKEN_ALGORITHM)

    def _create_refresh_token(self, key: str) -> str:
        now = _now()
        payload = {
            "sub": key,
            "iss": self._issuer,
            "iat": now,
            "exp": now + timedelta(days=REFRESH_TOKEN_DAYS),
            "token_use": "refresh",
        }
        return jwt.encode(payload, self._token_secret, algorithm=TOKEN_ALGORITHM)

    def decode_token(self, token: str) -> dict:
        """Decodes a token issued by this directory."""
        return jwt.decode(token, self._token_secret, algorithms=[TOKEN_ALGORITHM], issuer=self._issuer)

    def status_of(self, key: str) -> str | None:
        """Credential status of a record (``FORCE_CHANGE_PASSWORD`` / ``CONFIRMED``)."""
        record = self._records.get(key)
        return record["status"] if record else None

    @property
    def size(self) -> int:
        return len(self._records)
