"""Profile model: display name keyed by UID."""

import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class Profile(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "profiles"

    # FK to auth.users (ON DELETE CASCADE) lives in the migration.
    user_id: uuid.UUID = Field(nullable=False, unique=True, index=True)
    username: str = Field(nullable=False, unique=True, index=True)
