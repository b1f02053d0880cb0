"""
One-shot user notifications (the toast equivalent).

Components report outcomes to a Notifier; listeners registered with
``subscribe`` are called synchronously, and the shell drains the queued
messages into its responses.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from src.core.errors import ErrorKind
from src.core.i18n import DEFAULT_LANGUAGE, message_for

logger = logging.getLogger(__name__)


class Category(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class Event(str, Enum):
    GENERATE = "generate"
    SAVE = "save"
    DELETE = "delete"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    HISTORY = "history"


@dataclass(frozen=True)
class Notification:
    category: Category
    event: Event
    message: str
    kind: Optional[ErrorKind] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[Notification], None]


class Notifier:
    """Collects notifications and fans them out to listeners."""

    def __init__(self, language: str = DEFAULT_LANGUAGE, max_pending: int = 50):
        self.language = language
        self._pending: deque[Notification] = deque(maxlen=max_pending)
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def success(self, event: Event) -> Notification:
        return self._emit(Category.SUCCESS, event, None)

    def error(self, event: Event, kind: ErrorKind) -> Notification:
        return self._emit(Category.ERROR, event, kind)

    def _emit(self, category: Category, event: Event, kind: Optional[ErrorKind]) -> Notification:
        notification = Notification(
            category=category,
            event=event,
            kind=kind,
            message=message_for(event.value, kind, self.language),
        )
        self._pending.append(notification)
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed")
        return notification

    def drain(self) -> list[Notification]:
        """Return and forget all pending notifications."""
        items = list(self._pending)
        self._pending.clear()
        return items

    @property
    def pending(self) -> tuple[Notification, ...]:
        return tuple(self._pending)
