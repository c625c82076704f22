"""IdentityDirectory port - the only way the orchestrator reaches the directory."""

from __future__ import annotations

from typing import Protocol

from cpf_auth.models.identity import AuthTokens, Identity


class IdentityDirectory(Protocol):
    """External identity directory holding identity records and credentials.

    Lookups and creation are separate round-trips; nothing here is atomic
    across calls. Adapters translate backend failures into the
    ``cpf_auth.exceptions.Directory*Error`` classes:

    - ``DirectoryAlreadyExistsError`` - key collision on ``create``.
    - ``DirectoryNotFoundError`` - unknown key.
    - ``DirectoryUnauthorizedError`` - credential mismatch.
    - ``DirectoryFailureError`` - anything else.
    """

    name: str

    async def exists(self, key: str) -> bool:
        """Whether an identity with this key exists."""
        ...

    async def find_by_key(self, key: str) -> Identity | None:
        """Look up an identity by its primary key."""
        ...

    async def find_by_attribute(self, attribute: str, value: str) -> Identity | None:
        """Look up an identity by a secondary attribute (e.g. ``email``).

        The directory offers no uniqueness guarantee on secondary attributes.
        """
        ...

    async def create(self, identity: Identity, temporary_credential: str) -> str:
        """Create the identity with a temporary credential.

        Returns:
            The directory's own identifier for the new record.

        Raises:
            DirectoryAlreadyExistsError: ``identity.key`` is taken.
        """
        ...

    async def finalize_credential(self, key: str, permanent_credential: str) -> None:
        """Replace the temporary credential with a permanent one.

        Raises:
            DirectoryNotFoundError: the identity vanished after ``create``.
        """
        ...

    async def authenticate(self, key: str, credential: str) -> AuthTokens:
        """Authenticate and return session tokens.

        Raises:
            DirectoryNotFoundError: no such key.
            DirectoryUnauthorizedError: credential mismatch.
        """
        ...
