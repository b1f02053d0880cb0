"""
Dedicated history view: every generation of the signed-in user, paged.
"""

import uuid
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from src.api.deps import get_current_user_id, get_history_store
from src.api.schemas import ErrorResponse, HistoryItem, HistoryListResponse, MessageResponse
from src.core.config import DEFAULT_HISTORY_PAGE_SIZE, MAX_HISTORY_PAGE_SIZE
from src.core.errors import PersistenceError
from src.services.history_cache import HistoryCache
from src.services.history_store import HistoryStore
from src.services.notifications import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/history", tags=["History"])


@router.get(
    "",
    response_model=HistoryListResponse,
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def list_history(
    user_id: uuid.UUID = Depends(get_current_user_id),
    store: HistoryStore = Depends(get_history_store),
    limit: int = Query(DEFAULT_HISTORY_PAGE_SIZE, ge=1, le=MAX_HISTORY_PAGE_SIZE),
    offset: int = Query(0, ge=0),
) -> HistoryListResponse:
    """
    List generations for the authenticated user, most recent first.
    """
    cache = HistoryCache(store, Notifier(), limit=limit)
    if not await cache.refresh(user_id, offset=offset):
        raise HTTPException(status_code=503, detail="Failed to load history")

    try:
        total = await store.count(user_id)
    except PersistenceError as e:
        logger.error(f"History count failed: {e}")
        raise HTTPException(status_code=503, detail="Failed to load history")

    return HistoryListResponse(
        items=[HistoryItem.from_entry(e) for e in cache.items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.delete(
    "/{entry_id}",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def delete_history_entry(
    entry_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    store: HistoryStore = Depends(get_history_store),
) -> MessageResponse:
    """
    Permanently delete one of the user's generations.
    """
    try:
        deleted = await store.delete_by_id(entry_id, user_id)
    except PersistenceError as e:
        logger.error(f"History delete failed: {e}")
        raise HTTPException(status_code=503, detail="Failed to delete image")

    if not deleted:
        raise HTTPException(status_code=404, detail="History entry not found")
    return MessageResponse(message=f"Entry {entry_id} deleted successfully")
