"""Identity record as returned by the hosted auth service (not a table)."""

from datetime import datetime
from typing import Optional
import uuid

from sqlmodel import Field, SQLModel


class Identity(SQLModel):
    id: uuid.UUID
    email: Optional[str] = None
    user_metadata: dict = Field(default_factory=dict)
    email_confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def username(self) -> Optional[str]:
        return (self.user_metadata or {}).get("username")
