"""
cpf_auth/api/auth.py — Registration and login endpoints.

Handlers only unpack the body and delegate to ``IdentityOrchestrator``;
``IdentityError`` is turned into the error envelope by
``cpf_auth.main:identity_error_handler``.
"""

import logging

from fastapi import APIRouter, Depends, status

from cpf_auth.dependencies import get_orchestrator
from cpf_auth.masking import mask_email, mask_national_id
from cpf_auth.models.identity import LoginRequest, LoginResult, RegisterRequest, RegisterResult
from cpf_auth.services.orchestrator import IdentityOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post(
    "/register",
    response_model=RegisterResult,
    status_code=status.HTTP_201_CREATED,
    summary="Register a CPF-identified user",
)
async def register(
    body: RegisterRequest,
    orchestrator: IdentityOrchestrator = Depends(get_orchestrator),
):
    """Registers ``{name, cpf, email}`` in the identity directory."""
    logger.info(
        "Registration request received: cpf=%s email=%s",
        mask_national_id(body.cpf) if body.cpf else None,
        mask_email(body.email) if body.email else None,
    )
    return await orchestrator.register_authenticated_user(body.name, body.cpf, body.email)


@router.post(
    "/login",
    response_model=LoginResult,
    summary="Log in by CPF or anonymously by name",
)
async def login(
    body: LoginRequest,
    orchestrator: IdentityOrchestrator = Depends(get_orchestrator),
):
    """``{cpf}`` → registered user login; ``{name}`` → anonymous login."""
    logger.info(
        "Login request received: cpf=%s name=%s",
        mask_national_id(body.cpf) if body.cpf else None,
        "present" if body.name else None,
    )
    return await orchestrator.login(national_id=body.cpf, name=body.name)
