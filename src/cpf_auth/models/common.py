"""
cpf_auth/models/common.py — Base types of the identity domain.
"""

from pydantic import BaseModel, ConfigDict


class IdentityBase(BaseModel):
    """Base pydantic model for cpf_auth schemas."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)
