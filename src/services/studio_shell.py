"""
Presentation shell: binds a GenerationSession and a HistoryCache to user
events and derives the view state the page renders.

The shell has no invariants of its own. It forwards events, re-keys the
history when the identity changes, and exposes what the original page
showed: loading spinner, placeholder, result image, error, gallery.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx

from src.core.config import StudioConfig
from src.core.downloads import DownloadedImage, fetch_image
from src.core.errors import DownloadError, ErrorKind
from src.core.i18n import is_rtl, normalize_language
from src.core.image_generator import RemoteImageGenerator
from src.services.generation_session import GenerationSession, SessionStatus, SubmitResult
from src.services.history_cache import HistoryCache
from src.services.history_store import HistoryEntry, HistoryStore
from src.services.identity import IdentityState
from src.services.notifications import Event, Notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewState:
    """Everything the page needs to render, derived from session + cache."""
    shell_id: uuid.UUID
    user_id: Optional[uuid.UUID]
    language: str
    is_rtl: bool
    status: SessionStatus
    prompt: str
    is_loading: bool
    can_submit: bool
    show_placeholder: bool
    result_image_ref: Optional[str]
    error_message: Optional[str]
    error_kind: Optional[ErrorKind]
    has_source_image: bool
    source_image_name: Optional[str]
    history: tuple[HistoryEntry, ...]
    history_loaded: bool


class StudioShell:
    def __init__(
        self,
        generator: RemoteImageGenerator,
        store: HistoryStore,
        config: Optional[StudioConfig] = None,
        identity: Optional[IdentityState] = None,
        language: Optional[str] = None,
        preview_limit: Optional[int] = None,
        download_client: Optional[httpx.AsyncClient] = None,
        shell_id: Optional[uuid.UUID] = None,
    ):
        self.config = config or StudioConfig()
        self.id = shell_id or uuid.uuid4()
        self.identity = identity or IdentityState()
        self.notifier = Notifier(normalize_language(language or self.config.default_language))
        self.history = HistoryCache(
            store,
            self.notifier,
            limit=preview_limit or self.config.history.preview_limit,
            anonymous_history=self.config.history.anonymous_history,
        )
        self.session = GenerationSession(
            generator, self.history, self.identity, self.notifier, self.config.generation
        )
        self._download_client = download_client
        self._background: set[asyncio.Task] = set()
        self._unsubscribe_identity = self.identity.subscribe(self._on_identity_changed)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def mount(self) -> ViewState:
        """Initial fetch; the only reconciliation point besides local edits."""
        await self.history.refresh(self.identity.user_id)
        return self.view_state()

    async def close(self) -> None:
        self._unsubscribe_identity()
        await self.settle()
        await self.session.aclose()

    async def settle(self) -> None:
        """Wait for background refreshes and history writes to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        await self.session.drain()

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_identity_changed(self, previous: Optional[uuid.UUID], current: Optional[uuid.UUID]) -> None:
        self._spawn(self.history.refresh(current))

    async def sync_identity(self, user_id: Optional[uuid.UUID]) -> bool:
        """Apply the identity seen on an incoming request."""
        changed = self.identity.set_user(user_id)
        if changed:
            await self.settle()
        return changed

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_prompt_change(self, text: str) -> None:
        self.session.set_prompt(text)

    async def on_submit(self) -> SubmitResult:
        return await self.session.submit()

    def on_upload(self, content_type: Optional[str], data: bytes, filename: Optional[str] = None) -> bool:
        return self.session.attach_source_image(content_type, data, filename)

    def on_remove_upload(self) -> None:
        self.session.remove_source_image()

    def on_select_history(self, entry_id: uuid.UUID) -> bool:
        entry = self.history.get(entry_id)
        if entry is None:
            return False
        return self.session.select_history_item(entry)

    async def on_delete(self, entry_id: uuid.UUID) -> bool:
        return await self.history.remove(entry_id)

    async def on_download(self, image_ref: Optional[str] = None) -> Optional[DownloadedImage]:
        ref = image_ref or self.session.result_image_ref
        if not ref:
            self.notifier.error(Event.DOWNLOAD, ErrorKind.DOWNLOAD_FAILED)
            return None
        try:
            image = await fetch_image(
                ref,
                client=self._download_client,
                timeout=self.config.generation.download_timeout_seconds,
            )
        except DownloadError:
            self.notifier.error(Event.DOWNLOAD, ErrorKind.DOWNLOAD_FAILED)
            return None
        self.notifier.success(Event.DOWNLOAD)
        return image

    def set_language(self, language: str) -> None:
        self.notifier.language = normalize_language(language)

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def view_state(self) -> ViewState:
        session = self.session
        loading = session.is_in_flight
        source = session.source_image
        return ViewState(
            shell_id=self.id,
            user_id=self.identity.user_id,
            language=self.notifier.language,
            is_rtl=is_rtl(self.notifier.language),
            status=session.status,
            prompt=session.prompt_draft,
            is_loading=loading,
            can_submit=not loading and bool(session.prompt_draft.strip()),
            show_placeholder=not loading and session.result_image_ref is None,
            result_image_ref=session.result_image_ref,
            error_message=session.error_message,
            error_kind=session.last_error,
            has_source_image=source is not None,
            source_image_name=source.filename if source else None,
            history=self.history.items,
            history_loaded=self.history.loaded,
        )
