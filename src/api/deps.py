"""
FastAPI dependencies: user identity, history store and mounted shells.
"""

import logging
from uuid import UUID
from typing import Optional

from fastapi import Depends, HTTPException, Header

from src.core.config import StudioConfig
from src.db.engine import get_session_factory
from src.services.history_store import HistoryStore, MemoryHistoryStore, SqlHistoryStore
from src.services.session_registry import ShellNotFoundError, ShellRegistry
from src.services.studio_shell import StudioShell

logger = logging.getLogger(__name__)

# Used when DATABASE_URL is not configured (local development)
_memory_store = MemoryHistoryStore()
_registry: Optional[ShellRegistry] = None


async def get_optional_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[UUID]:
    """
    Extract the signed-in user's ID from the X-User-Id header.

    The auth edge validates the session token and forwards the user ID.
    A missing header means the visitor is anonymous.
    """
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id header")


async def get_current_user_id(
    user_id: Optional[UUID] = Depends(get_optional_user_id),
) -> UUID:
    """Like get_optional_user_id, but anonymous visitors are rejected."""
    if user_id is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Provide X-User-Id header.",
        )
    return user_id


def get_history_store() -> HistoryStore:
    factory = get_session_factory()
    if factory is not None:
        return SqlHistoryStore(factory)
    return _memory_store


def get_shell_registry() -> ShellRegistry:
    global _registry
    if _registry is None:
        _registry = ShellRegistry(store_factory=get_history_store, config=StudioConfig())
    return _registry


def reset_shell_registry() -> Optional[ShellRegistry]:
    """Detach the current registry (app shutdown, tests) and return it."""
    global _registry
    registry, _registry = _registry, None
    return registry


async def get_shell(
    session_id: UUID,
    user_id: Optional[UUID] = Depends(get_optional_user_id),
    registry: ShellRegistry = Depends(get_shell_registry),
) -> StudioShell:
    """Look up a mounted shell and bring its identity in line with the request."""
    try:
        shell = registry.get(session_id)
    except ShellNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    await shell.sync_identity(user_id)
    return shell
