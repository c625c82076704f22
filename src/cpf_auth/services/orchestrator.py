"""
cpf_auth/services/orchestrator.py — Registration and login workflows.

``IdentityOrchestrator`` is built once at startup with its collaborators
(directory, provisioning credentials, event publisher) and holds no other
state, so one instance serves any number of concurrent requests.

Uniqueness of the CPF is enforced in two layers:
    1. an optimistic ``find_by_key`` pre-check, for a fast answer;
    2. the directory's own key-collision error on ``create``, which is the
       final arbiter when two registrations race past the pre-check.
Both paths end in ``DuplicateIdentifierError``.

Email uniqueness only has the pre-check. The directory does not enforce it,
so two concurrent registrations with different CPFs and the same email can
both succeed. This is a known limitation.

Provisioning is two-phase (``create`` with the temporary credential, then
``finalize_credential``). A failure between the two leaves the identity in
the directory with only its temporary credential; that state is logged and
published as ``identity.provisioning.incomplete`` but not repaired here.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar
from uuid import uuid4

from cpf_auth.directory.port import IdentityDirectory
from cpf_auth.events import EventPublisher
from cpf_auth.exceptions import (
    AmbiguousRequestError,
    DirectoryAlreadyExistsError,
    DirectoryError,
    DirectoryNotFoundError,
    DirectoryUnauthorizedError,
    DirectoryUnavailableError,
    DuplicateEmailError,
    DuplicateIdentifierError,
    IdentityError,
    MissingIdentifierError,
    UnauthorizedError,
    UserNotFoundError,
)
from cpf_auth.masking import mask_email, mask_national_id
from cpf_auth.models.enums import IdentityClass, ProvisioningStage
from cpf_auth.models.identity import (
    Identity,
    LoginResult,
    ProvisioningCredentials,
    RegisterResult,
    UserSummary,
)
from cpf_auth.services import validators

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorMap = dict[type[DirectoryError], type[IdentityError]]

EMAIL_ATTRIBUTE = "email"


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


def classify_login_request(national_id: str | None = None, name: str | None = None) -> IdentityClass:
    """
    Decides which login flow a request belongs to.

    Exactly one of ``national_id`` / ``name`` must be given; blank strings
    count as absent.
    """
    has_id, has_name = _present(national_id), _present(name)
    if has_id and has_name:
        raise AmbiguousRequestError(stage=ProvisioningStage.RECEIVED)
    if has_id:
        return IdentityClass.AUTHENTICATED
    if has_name:
        return IdentityClass.ANONYMOUS
    raise MissingIdentifierError(stage=ProvisioningStage.RECEIVED)


class IdentityOrchestrator:
    """Registration and login of CPF-identified and anonymous users."""

    def __init__(
        self,
        directory: IdentityDirectory,
        credentials: ProvisioningCredentials,
        *,
        events: EventPublisher | None = None,
        id_factory: Callable[[], object] = uuid4,
    ) -> None:
        self._directory = directory
        self._credentials = credentials
        self._events = events
        self._id_factory = id_factory

    # ═══════════════════════════════════════════════════════════════════════
    # DIRECTORY CALLS
    # ═══════════════════════════════════════════════════════════════════════

    async def _call(
        self,
        stage: ProvisioningStage,
        operation: Awaitable[T],
        errors: ErrorMap | None = None,
    ) -> T:
        """
        Awaits a directory operation and maps its failure onto an error kind.

        ``stage`` is the last stage the request reached. Directory errors not
        listed in ``errors`` become ``DirectoryUnavailableError``.
        """
        try:
            return await operation
        except DirectoryError as exc:
            for directory_error, identity_error in (errors or {}).items():
                if isinstance(exc, directory_error):
                    raise identity_error(stage=stage) from exc
            diagnostic = getattr(exc, "diagnostic", "") or exc.message
            logger.error("Directory failure after stage '%s': %s", stage.value, diagnostic)
            raise DirectoryUnavailableError(stage=stage, diagnostic=diagnostic) from exc

    async def _provision(self, identity: Identity, stage: ProvisioningStage, errors: ErrorMap | None = None) -> None:
        """``create`` with the temporary credential, then ``finalize_credential``."""
        await self._call(
            stage,
            self._directory.create(identity, self._credentials.temporary.get_secret_value()),
            errors,
        )
        await self._finalize(identity)

    async def _finalize(self, identity: Identity) -> None:
        stage = ProvisioningStage.PROVISIONED
        try:
            await self._directory.finalize_credential(
                identity.key, self._credentials.permanent.get_secret_value()
            )
        except DirectoryError as exc:
            diagnostic = getattr(exc, "diagnostic", "") or exc.message
            if isinstance(exc, DirectoryNotFoundError):
                logger.warning(
                    "Identity %s vanished between create and credential finalization",
                    self._log_key(identity),
                )
                raise DirectoryUnavailableError(
                    stage=stage, diagnostic=f"identity vanished before finalize: {diagnostic}"
                ) from exc

            remains = await self._probe_exists(identity.key)
            if remains is not False:
                logger.error(
                    "Identity %s is partially provisioned (temporary credential only): %s",
                    self._log_key(identity),
                    diagnostic,
                )
                if self._events is not None:
                    await self._events.emit_provisioning_incomplete(
                        identity.key, identity.identity_class.value, reason=diagnostic
                    )
            raise DirectoryUnavailableError(stage=stage, diagnostic=diagnostic) from exc

    async def _probe_exists(self, key: str) -> bool | None:
        """One ``exists`` lookup after a failed finalize; ``None`` when unknown."""
        try:
            return await self._directory.exists(key)
        except DirectoryError as exc:
            logger.warning("Could not check identity after failed finalize: %s", exc.message)
            return None

    @staticmethod
    def _log_key(identity: Identity) -> str:
        return identity.key if identity.is_anonymous else mask_national_id(identity.key)

    # ═══════════════════════════════════════════════════════════════════════
    # REGISTRATION
    # ═══════════════════════════════════════════════════════════════════════

    async def register_authenticated_user(
        self, name: str | None, national_id: str | None, email: str | None
    ) -> RegisterResult:
        """Registers a new CPF-identified user."""
        display_name = validators.clean_name(name)
        cpf = validators.clean_national_id(national_id)
        clean_email = validators.clean_email(email)
        stage = ProvisioningStage.VALIDATED

        logger.info("Checking CPF uniqueness for: %s", mask_national_id(cpf))
        existing = await self._call(stage, self._directory.find_by_key(cpf))
        if existing is not None:
            logger.info("CPF already exists: %s", mask_national_id(cpf))
            raise DuplicateIdentifierError(stage=stage)

        logger.info("Checking email uniqueness for: %s", mask_email(clean_email))
        existing = await self._call(
            stage, self._directory.find_by_attribute(EMAIL_ATTRIBUTE, clean_email)
        )
        if existing is not None:
            raise DuplicateEmailError(stage=stage)
        stage = ProvisioningStage.UNIQUENESS_CHECKED

        identity = Identity(
            key=cpf,
            display_name=display_name,
            email=clean_email,
            identity_class=IdentityClass.AUTHENTICATED,
        )
        await self._provision(
            identity, stage, {DirectoryAlreadyExistsError: DuplicateIdentifierError}
        )

        logger.info("User registered successfully (CPF: %s)", mask_national_id(cpf))
        if self._events is not None:
            await self._events.emit_user_registered(cpf, clean_email)
        return RegisterResult(user_id=cpf)

    # ═══════════════════════════════════════════════════════════════════════
    # LOGIN
    # ═══════════════════════════════════════════════════════════════════════

    async def login_authenticated_user(self, national_id: str | None) -> LoginResult:
        """Logs in a registered user by CPF."""
        cpf = validators.clean_national_id(national_id)
        stage = ProvisioningStage.VALIDATED

        identity = await self._call(stage, self._directory.find_by_key(cpf))
        if identity is None:
            raise UserNotFoundError(stage=stage)

        tokens = await self._call(
            stage,
            self._directory.authenticate(cpf, self._credentials.permanent.get_secret_value()),
            {DirectoryNotFoundError: UserNotFoundError, DirectoryUnauthorizedError: UnauthorizedError},
        )

        logger.info("Registered user logged in (CPF: %s)", mask_national_id(cpf))
        if self._events is not None:
            await self._events.emit_user_login(cpf, IdentityClass.AUTHENTICATED.value)
        return LoginResult(
            tokens=tokens,
            user=UserSummary(id=cpf, name=identity.display_name, type=IdentityClass.AUTHENTICATED),
        )

    async def login_anonymous_user(self, name: str | None) -> LoginResult:
        """Creates a fresh anonymous identity and logs it in."""
        display_name = validators.clean_name(name)

        anonymous_id = str(self._id_factory())
        identity = Identity(
            key=anonymous_id,
            display_name=display_name,
            identity_class=IdentityClass.ANONYMOUS,
        )
        await self._provision(identity, ProvisioningStage.VALIDATED)

        tokens = await self._call(
            ProvisioningStage.CREDENTIAL_FINALIZED,
            self._directory.authenticate(anonymous_id, self._credentials.permanent.get_secret_value()),
            {DirectoryNotFoundError: UserNotFoundError, DirectoryUnauthorizedError: UnauthorizedError},
        )

        logger.info("Anonymous user logged in (ID: %s)", anonymous_id)
        if self._events is not None:
            await self._events.emit_user_login(anonymous_id, IdentityClass.ANONYMOUS.value)
        return LoginResult(
            tokens=tokens,
            user=UserSummary(id=anonymous_id, name=display_name, type=IdentityClass.ANONYMOUS),
        )

    async def login(self, national_id: str | None = None, name: str | None = None) -> LoginResult:
        """Classifies the request and runs the matching login flow."""
        if classify_login_request(national_id, name) is IdentityClass.AUTHENTICATED:
            return await self.login_authenticated_user(national_id)
        return await self.login_anonymous_user(name)
