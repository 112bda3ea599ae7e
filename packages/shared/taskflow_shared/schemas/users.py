"""User management schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import UUID4, BaseModel, EmailStr

from .common import Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class UserCreateRequest(BaseModel):
    """Create an identity, profile and role in one call.

    Fields are optional at the schema level so that a missing field is
    reported as a single "Missing required fields" error by the service.
    """
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    username: Optional[str] = None
    role: Optional[Role] = None


class UserUpdateRequest(BaseModel):
    """Any subset of username, role and password. Empty values are ignored."""
    username: Optional[str] = None
    role: Optional[Role] = None
    password: Optional[str] = None


class SetupAdminRequest(BaseModel):
    """First-run admin creation."""
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    username: Optional[str] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserCreateResponse(BaseModel):
    success: bool = True
    userId: UUID4


class UserResponse(BaseModel):
    """A profile joined with its role (missing role row reads as member)."""
    id: UUID4
    username: str
    role: Role = Role.MEMBER
    created_at: datetime


class UserListResponse(BaseModel):
    data: List[UserResponse]


class SetupStatusResponse(BaseModel):
    adminExists: bool


class SetupAdminResponse(BaseModel):
    success: bool = True
    message: str = "Admin created successfully"
    userId: UUID4
