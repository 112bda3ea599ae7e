"""
API Router

Everything here is mounted under /api.
"""

from fastapi import APIRouter, Depends

from app.core.errors import StoreUnavailableError
from app.core.store import RelationalStore, StoreError, get_relational_store
from . import notifications, setup, tasks, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(setup.router, prefix="/setup", tags=["Setup"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])


@router.get("/health", tags=["System"])
async def health_check():
    """Liveness probe. Touches no store."""
    return {"status": "ok", "message": "TaskFlow API is running"}


@router.get("/database-check", tags=["System"])
async def database_check(db: RelationalStore = Depends(get_relational_store)):
    """Readiness probe: one cheap query against the relational store."""
    try:
        await db.ping()
    except StoreError as exc:
        raise StoreUnavailableError(f"Database connection failed: {exc.message}") from exc
    return {"status": "connected"}
