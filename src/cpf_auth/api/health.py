"""
cpf_auth/api/health.py — Health check endpoint.

GET /api/v1/health — reports which directory backend the service runs on.
"""

from fastapi import APIRouter, Depends

from cpf_auth.dependencies import get_directory
from cpf_auth.directory.port import IdentityDirectory

router = APIRouter(tags=["health"])


@router.get("/health", summary="CPF Auth health check")
async def health(directory: IdentityDirectory = Depends(get_directory)):
    degraded = directory.name == "memory"
    return {
        "status": "degraded" if degraded else "healthy",
        "directory": directory.name,
        "service": "cpf-auth",
    }
