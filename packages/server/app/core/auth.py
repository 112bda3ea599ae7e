"""
Authentication and authorization for TaskFlow.

Callers present a bearer token. Two kinds are accepted:
- an access token issued by the identity store to a signed-in user
- the service-role key itself (the elevated credential), for trusted tooling

Roles come from the ``user_roles`` table; a missing row means member.
"""

from __future__ import annotations

import secrets
import uuid
from typing import Optional

import structlog
from fastapi import Depends
from fastapi.security import APIKeyHeader

from app.core.config import Settings, get_settings
from app.core.errors import AuthorizationError, StoreUnavailableError
from app.core.store import (
    IdentityStore,
    RelationalStore,
    StoreError,
    get_identity_store,
    get_relational_store,
)
from taskflow_shared.schemas.common import Role

log = structlog.get_logger()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


class Caller:
    """Who is making the request and with which role."""

    def __init__(
        self,
        user_id: Optional[uuid.UUID],
        role: Role,
        *,
        email: Optional[str] = None,
        service: bool = False,
    ):
        self.user_id = user_id
        self.role = role
        self.email = email
        self.service = service

    @property
    def is_admin(self) -> bool:
        return self.service or self.role == Role.ADMIN

    @classmethod
    def service_account(cls) -> "Caller":
        return cls(None, Role.ADMIN, service=True)

    def __repr__(self) -> str:
        return f"Caller(user_id={self.user_id}, role={self.role.value}, service={self.service})"


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


async def resolve_role(user_id: uuid.UUID, db: RelationalStore) -> Role:
    try:
        assignment = await db.get_role(user_id)
    except StoreError as exc:
        log.error("auth.role_lookup_failed", user_id=str(user_id), error=exc.message)
        raise StoreUnavailableError("Failed to load user role") from exc
    if assignment is None:
        return Role.MEMBER
    return Role(assignment.role)


async def authenticate_token(
    token: str, identities: IdentityStore, db: RelationalStore
) -> Caller:
    try:
        identity = await identities.get_identity_for_token(token)
    except StoreError as exc:
        log.error("auth.token_lookup_failed", error=exc.message)
        raise StoreUnavailableError("Failed to verify session") from exc
    if identity is None:
        raise AuthorizationError("Invalid token", status_code=401)
    role = await resolve_role(identity.id, db)
    return Caller(identity.id, role, email=identity.email)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

async def get_caller(
    authorization: Optional[str] = Depends(api_key_header),
    identities: IdentityStore = Depends(get_identity_store),
    db: RelationalStore = Depends(get_relational_store),
) -> Caller:
    """Any signed-in user."""
    token = bearer_token(authorization)
    if token is None:
        raise AuthorizationError("Authentication required", status_code=401)
    return await authenticate_token(token, identities, db)


async def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise AuthorizationError("Administrator access required")
    return caller


async def require_elevated(
    authorization: Optional[str] = Depends(api_key_header),
    identities: IdentityStore = Depends(get_identity_store),
    db: RelationalStore = Depends(get_relational_store),
    settings: Settings = Depends(get_settings),
) -> Caller:
    """The service-role key, or an admin user's session."""
    token = bearer_token(authorization)
    if token is None:
        raise AuthorizationError("No authorization header", status_code=401)
    if secrets.compare_digest(token.encode(), settings.supabase_service_role_key.encode()):
        return Caller.service_account()
    caller = await authenticate_token(token, identities, db)
    if not caller.is_admin:
        log.warning("auth.elevated_denied", user_id=str(caller.user_id))
        raise AuthorizationError("Only admins can manage users")
    return caller
