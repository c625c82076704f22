"""
═══════════════════════════════════════════════════════════════════════════════
CPF Auth — FastAPI dependencies (Dependency Injection)
═══════════════════════════════════════════════════════════════════════════════

Collaborators are built once in ``cpf_auth.main:lifespan`` and kept on
``app.state``. Route handlers receive them through these dependencies and
never construct clients themselves.
"""

from __future__ import annotations

from fastapi import Request

from cpf_auth.directory.port import IdentityDirectory
from cpf_auth.services.orchestrator import IdentityOrchestrator


def get_orchestrator(request: Request) -> IdentityOrchestrator:
    """Returns the process-wide ``IdentityOrchestrator``."""
    return request.app.state.orchestrator


def get_directory(request: Request) -> IdentityDirectory:
    """Returns the process-wide directory adapter."""
    return request.app.state.directory
