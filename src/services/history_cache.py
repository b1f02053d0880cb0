"""
History cache: the ordered, size-bounded view of a user's past generations.

The cache is the single source of truth for the gallery. Its ``items`` are
only ever replaced by its own three operations:

- ``refresh`` replaces items wholesale with what the store returns;
- ``append`` writes to the store and then refreshes, so server-assigned
  ids and timestamps are never guessed locally;
- ``remove`` deletes from the store and then drops the entry by id.

Deleted ids are remembered and filtered out of later refreshes, so a
refresh that was already in flight when a delete was acknowledged cannot
bring the entry back. A tombstone is dropped once a refresh issued after the
delete has been applied without that id.
"""

import logging
import uuid
from typing import Optional

from src.core.config import DEFAULT_PREVIEW_LIMIT
from src.core.errors import ErrorKind
from src.services.history_store import HistoryEntry, HistoryStore
from src.services.notifications import Event, Notifier

logger = logging.getLogger(__name__)


class HistoryCache:
    """Owner-keyed, most-recent-first cache over a HistoryStore."""

    def __init__(
        self,
        store: HistoryStore,
        notifier: Notifier,
        limit: Optional[int] = DEFAULT_PREVIEW_LIMIT,
        anonymous_history: bool = False,
    ):
        self._store = store
        self._notifier = notifier
        self.limit = limit
        self.anonymous_history = anonymous_history

        self._items: tuple[HistoryEntry, ...] = ()
        self._owner_id: Optional[uuid.UUID] = None
        # Tombstones: deleted id -> last refresh seq issued before the delete
        self._deleted_ids: dict[uuid.UUID, int] = {}

        # Refresh sequencing: only responses newer than the last applied
        # one may replace items.
        self._issued_seq = 0
        self._applied_seq = 0
        self._outstanding = 0

        self.loaded = False
        self.last_error: Optional[ErrorKind] = None

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def items(self) -> tuple[HistoryEntry, ...]:
        return self._items

    @property
    def owner_id(self) -> Optional[uuid.UUID]:
        return self._owner_id

    @property
    def is_refreshing(self) -> bool:
        return self._outstanding > 0

    @property
    def tombstone_count(self) -> int:
        return len(self._deleted_ids)

    def get(self, entry_id: uuid.UUID) -> Optional[HistoryEntry]:
        for entry in self._items:
            if entry.id == entry_id:
                return entry
        return None

    def can_persist(self, owner_id: Optional[uuid.UUID]) -> bool:
        """Whether generations for this owner are written to history at all."""
        return owner_id is not None or self.anonymous_history

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _rekey(self, owner_id: Optional[uuid.UUID]) -> None:
        if owner_id == self._owner_id:
            return
        logger.info(f"History cache re-keyed to {'anonymous' if owner_id is None else owner_id}")
        self._owner_id = owner_id
        self._items = ()
        self._deleted_ids.clear()
        self.loaded = False
        # Anything still in flight belongs to the previous owner
        self._applied_seq = self._issued_seq

    async def refresh(self, owner_id: Optional[uuid.UUID], offset: int = 0) -> bool:
        """
        Fetch the most recent entries for ``owner_id``.

        Returns:
            True if items now reflect the store (or the response was
            superseded by a newer refresh), False on a store failure.
        """
        self._rekey(owner_id)

        if not self.can_persist(owner_id):
            self._items = ()
            self.loaded = True
            return True

        self._issued_seq += 1
        seq = self._issued_seq
        self._outstanding += 1
        try:
            entries = await self._store.select_recent(owner_id, limit=self.limit, offset=offset)
        except Exception as e:
            logger.error(f"History refresh failed for owner {owner_id}: {e}", exc_info=True)
            self.last_error = ErrorKind.PERSISTENCE_FAILED
            self._notifier.error(Event.HISTORY, ErrorKind.PERSISTENCE_FAILED)
            return False
        finally:
            self._outstanding -= 1

        if owner_id != self._owner_id or seq <= self._applied_seq:
            logger.debug(f"Discarding stale history refresh #{seq}")
            return True

        self._applied_seq = seq
        self._items = tuple(e for e in entries if e.id not in self._deleted_ids)
        self._expire_tombstones(seq, entries)
        self.loaded = True
        self.last_error = None
        return True

    def _expire_tombstones(self, seq: int, entries) -> None:
        returned = {e.id for e in entries}
        for entry_id, deleted_at in list(self._deleted_ids.items()):
            if seq > deleted_at and entry_id not in returned:
                del self._deleted_ids[entry_id]

    async def append(
        self, prompt: str, image_ref: str, owner_id: Optional[uuid.UUID]
    ) -> Optional[HistoryEntry]:
        """
        Persist a new generation, then refresh from the store.

        Failure only means history could not be written; it is reported as
        ``persistence-failed`` and never affects the generated image.
        """
        if not self.can_persist(owner_id):
            logger.warning("Skipping history append: no owner and anonymous history disabled")
            self.last_error = ErrorKind.PERSISTENCE_FAILED
            self._notifier.error(Event.SAVE, ErrorKind.PERSISTENCE_FAILED)
            return None

        try:
            entry = await self._store.insert(prompt, image_ref, owner_id)
        except Exception as e:
            logger.error(f"History append failed: {e}", exc_info=True)
            self.last_error = ErrorKind.PERSISTENCE_FAILED
            self._notifier.error(Event.SAVE, ErrorKind.PERSISTENCE_FAILED)
            return None

        logger.info(f"Saved history entry {entry.id}")
        self._notifier.success(Event.SAVE)

        # The store has confirmed the write, so this refresh observes it
        if owner_id == self._owner_id:
            await self.refresh(owner_id)
        return entry

    async def remove(self, entry_id: uuid.UUID) -> bool:
        """
        Delete an entry by id. Removing an id that is already gone is a
        successful no-op.
        """
        owner_id = self._owner_id
        try:
            existed = await self._store.delete_by_id(entry_id, owner_id)
        except Exception as e:
            logger.error(f"History delete failed for {entry_id}: {e}", exc_info=True)
            self.last_error = ErrorKind.PERSISTENCE_FAILED
            self._notifier.error(Event.DELETE, ErrorKind.PERSISTENCE_FAILED)
            return False

        if owner_id != self._owner_id:
            # Re-keyed while the delete was outstanding; nothing local to drop
            return True

        self._deleted_ids[entry_id] = self._issued_seq
        was_cached = self.get(entry_id) is not None
        self._items = tuple(e for e in self._items if e.id != entry_id)
        if existed or was_cached:
            self._notifier.success(Event.DELETE)
        return True

    def clear(self) -> None:
        self._items = ()
        self.loaded = False
