"""
Persistent history stores.

The history cache talks to a store through three operations: insert,
ordered-limited select and delete-by-id. ``SqlHistoryStore`` backs them with
PostgreSQL; ``MemoryHistoryStore`` keeps rows in process for local
development when DATABASE_URL is not configured.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.errors import PersistenceError
from src.db import repository as repo
from src.db.models import ImageHistory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """A persisted generation: prompt as typed, plus the resulting image."""
    id: uuid.UUID
    owner_id: Optional[uuid.UUID]
    prompt: str
    image_ref: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: ImageHistory) -> "HistoryEntry":
        return cls(
            id=row.id,
            owner_id=row.user_id,
            prompt=row.prompt,
            image_ref=row.image_url,
            created_at=row.created_at,
        )


class HistoryStore(Protocol):
    """Owner-scoped record store. Isolation between owners is its job."""

    async def insert(
        self, prompt: str, image_ref: str, owner_id: Optional[uuid.UUID]
    ) -> HistoryEntry:
        ...

    async def select_recent(
        self,
        owner_id: Optional[uuid.UUID],
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[HistoryEntry]:
        ...

    async def delete_by_id(
        self, entry_id: uuid.UUID, owner_id: Optional[uuid.UUID]
    ) -> bool:
        ...

    async def count(self, owner_id: Optional[uuid.UUID]) -> int:
        ...


class SqlHistoryStore:
    """History store on top of the async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def insert(
        self, prompt: str, image_ref: str, owner_id: Optional[uuid.UUID]
    ) -> HistoryEntry:
        try:
            async with self._session_factory() as session:
                row = await repo.create_history_entry(
                    session, prompt=prompt, image_url=image_ref, user_id=owner_id
                )
                return HistoryEntry.from_row(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"insert failed: {e}") from e

    async def select_recent(
        self,
        owner_id: Optional[uuid.UUID],
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[HistoryEntry]:
        try:
            async with self._session_factory() as session:
                rows = await repo.list_history_for_user(
                    session, owner_id, limit=limit, offset=offset
                )
                return [HistoryEntry.from_row(row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"select failed: {e}") from e

    async def delete_by_id(
        self, entry_id: uuid.UUID, owner_id: Optional[uuid.UUID]
    ) -> bool:
        try:
            async with self._session_factory() as session:
                return await repo.delete_history_entry(session, entry_id, owner_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"delete failed: {e}") from e

    async def count(self, owner_id: Optional[uuid.UUID]) -> int:
        try:
            async with self._session_factory() as session:
                return await repo.count_history_for_user(session, owner_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"count failed: {e}") from e


class MemoryHistoryStore:
    """In-process store with the same ordering and scoping rules as SQL."""

    def __init__(self) -> None:
        self._rows: dict[uuid.UUID, HistoryEntry] = {}
        self._last_created: Optional[datetime] = None

    def _next_timestamp(self) -> datetime:
        # Strictly increasing so insertion order is also display order
        now = datetime.now(timezone.utc)
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(microseconds=1)
        self._last_created = now
        return now

    async def insert(
        self, prompt: str, image_ref: str, owner_id: Optional[uuid.UUID]
    ) -> HistoryEntry:
        entry = HistoryEntry(
            id=uuid.uuid4(),
            owner_id=owner_id,
            prompt=prompt,
            image_ref=image_ref,
            created_at=self._next_timestamp(),
        )
        self._rows[entry.id] = entry
        return entry

    async def select_recent(
        self,
        owner_id: Optional[uuid.UUID],
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[HistoryEntry]:
        owned = [row for row in self._rows.values() if row.owner_id == owner_id]
        owned.sort(key=lambda row: row.created_at, reverse=True)
        end = None if limit is None else offset + limit
        return owned[offset:end]

    async def delete_by_id(
        self, entry_id: uuid.UUID, owner_id: Optional[uuid.UUID]
    ) -> bool:
        row = self._rows.get(entry_id)
        if row is None or row.owner_id != owner_id:
            return False
        del self._rows[entry_id]
        return True

    async def count(self, owner_id: Optional[uuid.UUID]) -> int:
        return sum(1 for row in self._rows.values() if row.owner_id == owner_id)
