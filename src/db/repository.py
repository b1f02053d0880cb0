"""
Repository layer: async CRUD operations for image history.

There is deliberately no update function: history rows are immutable.
"""

import uuid
from typing import Optional

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import ImageHistory


def _owner_clause(user_id: Optional[uuid.UUID]):
    if user_id is None:
        return ImageHistory.user_id.is_(None)
    return ImageHistory.user_id == user_id


async def create_history_entry(
    session: AsyncSession,
    *,
    prompt: str,
    image_url: str,
    user_id: Optional[uuid.UUID] = None,
) -> ImageHistory:
    entry = ImageHistory(
        user_id=user_id,
        prompt=prompt,
        image_url=image_url,
    )
    session.add(entry)
    await session.commit()
    await session.refresh(entry)
    return entry


async def list_history_for_user(
    session: AsyncSession,
    user_id: Optional[uuid.UUID],
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[ImageHistory]:
    """Most recent first. ``limit=None`` returns everything after ``offset``."""
    query = (
        select(ImageHistory)
        .where(_owner_clause(user_id))
        .order_by(ImageHistory.created_at.desc(), ImageHistory.id.desc())
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def delete_history_entry(
    session: AsyncSession,
    entry_id: uuid.UUID,
    user_id: Optional[uuid.UUID],
) -> bool:
    """Delete one of the user's entries. Returns False when nothing matched."""
    result = await session.execute(
        delete(ImageHistory).where(
            ImageHistory.id == entry_id, _owner_clause(user_id)
        )
    )
    await session.commit()
    return (result.rowcount or 0) > 0


async def count_history_for_user(
    session: AsyncSession,
    user_id: Optional[uuid.UUID],
) -> int:
    """Count a user's entries (for pagination)."""
    result = await session.execute(
        select(func.count())
        .select_from(ImageHistory)
        .where(_owner_clause(user_id))
    )
    return result.scalar_one()
