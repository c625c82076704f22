"""Global test fixtures."""

import os

# Settings are read when cpf_auth.main is imported; keep tests off NATS and Cognito.
os.environ.setdefault("EVENTS_ENABLED", "false")
os.environ.setdefault("DIRECTORY_BACKEND", "memory")

from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from pydantic import SecretStr  # noqa: E402

from cpf_auth.directory.memory import InMemoryDirectory  # noqa: E402
from cpf_auth.events import EventPublisher  # noqa: E402
from cpf_auth.exceptions import (  # noqa: E402
    DirectoryAlreadyExistsError,
    DirectoryNotFoundError,
    DirectoryUnauthorizedError,
)
from cpf_auth.models.identity import AuthTokens, Identity, ProvisioningCredentials  # noqa: E402
from cpf_auth.services.orchestrator import IdentityOrchestrator  # noqa: E402

VALID_CPF = "11144477735"
VALID_CPF_MASKED = "111.444.777-35"
OTHER_VALID_CPF = "52998224725"
SHARED_PASSWORD = "Shared-Password-123!"
TEMPORARY_PASSWORD = "Temp-Password-456!"


class StubDirectory:
    """Plain dict directory without hashing or JWTs, for high-volume tests."""

    name = "stub"

    def __init__(self) -> None:
        self.records: dict[str, dict] = {}

    async def exists(self, key: str) -> bool:
        return key in self.records

    async def find_by_key(self, key: str) -> Identity | None:
        record = self.records.get(key)
        return record["identity"] if record else None

    async def find_by_attribute(self, attribute: str, value: str) -> Identity | None:
        for record in self.records.values():
            if getattr(record["identity"], attribute, None) == value:
                return record["identity"]
        return None

    async def create(self, identity: Identity, temporary_credential: str) -> str:
        if identity.key in self.records:
            raise DirectoryAlreadyExistsError("User already exists")
        self.records[identity.key] = {"identity": identity, "credential": temporary_credential, "final": False}
        return identity.key

    async def finalize_credential(self, key: str, permanent_credential: str) -> None:
        if key not in self.records:
            raise DirectoryNotFoundError("User not found")
        self.records[key].update(credential=permanent_credential, final=True)

    async def authenticate(self, key: str, credential: str) -> AuthTokens:
        record = self.records.get(key)
        if record is None:
            raise DirectoryNotFoundError("User not found")
        if not record["final"] or record["credential"] != credential:
            raise DirectoryUnauthorizedError("Invalid credentials")
        return AuthTokens(id_token=f"id-{key}", refresh_token=f"refresh-{key}")


@pytest.fixture
def credentials() -> ProvisioningCredentials:
    return ProvisioningCredentials(
        temporary=SecretStr(TEMPORARY_PASSWORD),
        permanent=SecretStr(SHARED_PASSWORD),
    )


@pytest.fixture
def memory_directory() -> InMemoryDirectory:
    """In-memory directory with the cheapest bcrypt cost."""
    return InMemoryDirectory(token_secret="test-memory-secret", hash_rounds=4)


@pytest.fixture
def stub_directory() -> StubDirectory:
    return StubDirectory()


@pytest.fixture
def events() -> AsyncMock:
    return AsyncMock(spec=EventPublisher)


@pytest.fixture
def orchestrator(memory_directory, credentials, events) -> IdentityOrchestrator:
    return IdentityOrchestrator(memory_directory, credentials, events=events)
