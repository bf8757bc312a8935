"""
ClassJournal Backend - User Request/Response Schemas
=====================================================

The password hash never leaves the service layer: `UserPublic` is the only
projection of a user any response contains.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field

from classjournal.models.user import Role
from classjournal.schemas.common import SuccessResponse


class RegisterRequest(BaseModel):
    name: Optional[str] = Field(default=None, description="Display name")
    email: str = Field(min_length=1, description="Unique login email")
    password: str = Field(min_length=1, description="Plain text password (hashed before storage)")
    role: Optional[str] = Field(
        default=None,
        description="student, teacher or admin (any case). Defaults to STUDENT.",
    )


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserPublic(BaseModel):
    """Sanitized user projection (id, name, email, role)."""
    id: uuid.UUID
    name: Optional[str] = None
    email: str
    role: Role

    model_config = {"from_attributes": True}


class UserEnvelope(SuccessResponse):
    user: UserPublic


class LoginEnvelope(SuccessResponse):
    user: UserPublic
    token: str = Field(description="Signed bearer token for the Authorization header")

