"""
Registry of mounted studio shells.

Each browser view mounts one shell and addresses it by id for the rest of
its lifetime. The registry is bounded; the least recently used shell with
no generation in flight is closed when the limit is reached.
"""

import logging
import uuid
from collections import OrderedDict
from typing import Callable, Optional

from src.core.config import StudioConfig
from src.core.image_generator import RemoteImageGenerator, create_image_generator
from src.services.history_store import HistoryStore
from src.services.identity import IdentityState
from src.services.studio_shell import StudioShell

logger = logging.getLogger(__name__)

GeneratorFactory = Callable[[], RemoteImageGenerator]
StoreFactory = Callable[[], HistoryStore]


class ShellNotFoundError(KeyError):
    pass


class ShellRegistry:
    def __init__(
        self,
        store_factory: StoreFactory,
        config: Optional[StudioConfig] = None,
        generator_factory: Optional[GeneratorFactory] = None,
        max_shells: int = 1000,
    ):
        self.config = config or StudioConfig()
        self._store_factory = store_factory
        self._generator_factory = generator_factory or (
            lambda: create_image_generator(self.config.generation)
        )
        self._max_shells = max_shells
        self._shells: "OrderedDict[uuid.UUID, StudioShell]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._shells)

    async def mount(
        self,
        user_id: Optional[uuid.UUID],
        language: Optional[str] = None,
        preview_limit: Optional[int] = None,
    ) -> StudioShell:
        """Create a shell, fetch its history and register it."""
        while len(self._shells) >= self._max_shells:
            oldest_id = self._eviction_candidate()
            if oldest_id is None:
                logger.warning(
                    f"All {len(self._shells)} shells are generating; mounting over the limit"
                )
                break
            oldest = self._shells.pop(oldest_id)
            logger.info(f"Evicting idle shell {oldest_id}")
            await oldest.close()

        shell = StudioShell(
            generator=self._generator_factory(),
            store=self._store_factory(),
            config=self.config,
            identity=IdentityState(user_id),
            language=language,
            preview_limit=preview_limit,
        )
        self._shells[shell.id] = shell
        await shell.mount()
        logger.info(f"Mounted shell {shell.id}")
        return shell

    def _eviction_candidate(self) -> Optional[uuid.UUID]:
        for shell_id, shell in self._shells.items():
            if not shell.session.is_in_flight:
                return shell_id
        return None

    def get(self, shell_id: uuid.UUID) -> StudioShell:
        shell = self._shells.get(shell_id)
        if shell is None:
            raise ShellNotFoundError(shell_id)
        self._shells.move_to_end(shell_id)
        return shell

    async def unmount(self, shell_id: uuid.UUID) -> None:
        shell = self._shells.pop(shell_id, None)
        if shell is None:
            raise ShellNotFoundError(shell_id)
        await shell.close()

    async def close_all(self) -> None:
        while self._shells:
            _, shell = self._shells.popitem()
            await shell.close()
