"""Role assignment: at most one row per UID, absence means member."""

import uuid

from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class RoleAssignment(UUIDMixin, SQLModel, table=True):
    __tablename__ = "user_roles"

    user_id: uuid.UUID = Field(nullable=False, unique=True, index=True)
    role: str = Field(nullable=False, default="member")  # admin | member
