"""
Current-user identity as an explicit state object.

The authentication provider lives outside this service; all the engine
needs is the current user id (or None for anonymous) and a notification
when that id changes.
"""

import logging
import uuid
from typing import Callable, Optional

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[uuid.UUID], Optional[uuid.UUID]], None]


class IdentityState:
    def __init__(self, user_id: Optional[uuid.UUID] = None):
        self._user_id = user_id
        self._listeners: list[IdentityListener] = []

    @property
    def user_id(self) -> Optional[uuid.UUID]:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Call ``listener(previous, current)`` whenever the id changes."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_user(self, user_id: Optional[uuid.UUID]) -> bool:
        """Update the identity. Returns True if it actually changed."""
        if user_id == self._user_id:
            return False
        previous, self._user_id = self._user_id, user_id
        logger.info(f"Identity changed: {'anonymous' if user_id is None else user_id}")
        for listener in list(self._listeners):
            listener(previous, user_id)
        return True

    def sign_out(self) -> bool:
        return self.set_user(None)
