"""
Generation session: the state machine behind one prompt box.

    idle ──submit──> in-flight ──> succeeded
                         └──────> failed

Only one request may be in flight per session. The guard is a
check-and-set with no suspension point in between, so racing submits
cannot both get through even when the UI fails to disable its button.
Individual requests cannot be cancelled at the transport level; a bounded
timeout around the remote call stops a hung request from pinning the
session in ``in-flight``.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.core.attachments import SourceImage, build_source_image
from src.core.config import GenerationConfig
from src.core.errors import AttachmentError, ErrorKind
from src.core.image_generator import GenerationResponse, RemoteImageGenerator
from src.core.prompts import prepare_prompt
from src.services.history_cache import HistoryCache
from src.services.history_store import HistoryEntry
from src.services.identity import IdentityState
from src.services.notifications import Event, Notifier

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in-flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class SubmitResult:
    """What a call to ``submit`` did."""
    accepted: bool
    status: SessionStatus
    image_url: Optional[str] = None
    error: Optional[ErrorKind] = None
    dispatched_prompt: Optional[str] = None


class GenerationSession:
    """
    Owns the prompt draft, the optional source image and the last result.

    The session never touches history items directly; on success it asks
    the HistoryCache to append, in the background, the prompt exactly as
    the user typed it.
    """

    def __init__(
        self,
        generator: RemoteImageGenerator,
        history: HistoryCache,
        identity: IdentityState,
        notifier: Notifier,
        config: Optional[GenerationConfig] = None,
    ):
        self._generator = generator
        self._history = history
        self._identity = identity
        self._notifier = notifier
        self._config = config or GenerationConfig()

        self._status = SessionStatus.IDLE
        self._prompt_draft = ""
        self._source_image: Optional[SourceImage] = None
        self._result_image_ref: Optional[str] = None
        self._error_message: Optional[str] = None
        self._error_detail: Optional[str] = None
        self._last_error: Optional[ErrorKind] = None

        self._pending_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_in_flight(self) -> bool:
        return self._status is SessionStatus.IN_FLIGHT

    @property
    def prompt_draft(self) -> str:
        return self._prompt_draft

    @property
    def source_image(self) -> Optional[SourceImage]:
        return self._source_image

    @property
    def result_image_ref(self) -> Optional[str]:
        return self._result_image_ref

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def error_detail(self) -> Optional[str]:
        return self._error_detail

    @property
    def last_error(self) -> Optional[ErrorKind]:
        return self._last_error

    # ------------------------------------------------------------------
    # User input
    # ------------------------------------------------------------------

    def set_prompt(self, text: str) -> None:
        self._prompt_draft = text

    def attach_source_image(
        self, content_type: Optional[str], data: bytes, filename: Optional[str] = None
    ) -> bool:
        """
        Attach (or replace) the source image. On a bad file the current
        attachment is kept and an error notification is emitted.
        """
        try:
            image = build_source_image(
                content_type, data, filename=filename,
                max_bytes=self._config.max_upload_bytes,
            )
        except AttachmentError as e:
            logger.info(f"Rejected upload {filename!r}: {e}")
            self._notifier.error(Event.UPLOAD, e.kind)
            return False

        self._source_image = image
        self._notifier.success(Event.UPLOAD)
        return True

    def remove_source_image(self) -> None:
        self._source_image = None

    def select_history_item(self, entry: HistoryEntry) -> bool:
        """
        Reload a past generation: prompt and image are replaced together.
        Ignored while a request is in flight so its result cannot be
        overwritten out of order.
        """
        if self.is_in_flight:
            logger.info("Ignoring history selection while a generation is in flight")
            return False
        self._prompt_draft = entry.prompt
        self._result_image_ref = entry.image_ref
        self._error_message = None
        self._error_detail = None
        self._last_error = None
        return True

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> SubmitResult:
        """Run one generation attempt. Never raises for generation failures."""
        if self._status is SessionStatus.IN_FLIGHT:
            logger.info("Submit ignored: a generation is already in flight")
            return SubmitResult(accepted=False, status=self._status)

        prepared = prepare_prompt(self._prompt_draft)
        if not prepared.original:
            self._notifier.error(Event.GENERATE, ErrorKind.EMPTY_PROMPT)
            return SubmitResult(
                accepted=False, status=self._status, error=ErrorKind.EMPTY_PROMPT
            )

        # Claim the slot before the first await
        self._status = SessionStatus.IN_FLIGHT
        self._error_message = None
        self._error_detail = None
        self._last_error = None

        owner_at_submit = self._identity.user_id
        source = self._source_image
        if prepared.enhanced:
            logger.info("Infographic prompt detected, style directive applied")
        logger.info(f"Generating image (prompt={prepared.original[:50]!r}, source_image={source is not None})")

        try:
            response = await asyncio.wait_for(
                self._generator.generate(
                    prepared.dispatched, source.data_url if source else None
                ),
                timeout=self._config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"Generation timed out after {self._config.timeout_seconds}s")
            return self._fail(ErrorKind.TRANSPORT_ERROR, "timed out", prepared.dispatched)
        except asyncio.CancelledError:
            self._fail(ErrorKind.TRANSPORT_ERROR, "cancelled", prepared.dispatched)
            raise
        except Exception as e:
            logger.error(f"Generation request failed: {e}", exc_info=True)
            return self._fail(ErrorKind.TRANSPORT_ERROR, str(e), prepared.dispatched)

        return self._complete(response, prepared.original, prepared.dispatched, source, owner_at_submit)

    def _complete(
        self,
        response: GenerationResponse,
        original_prompt: str,
        dispatched_prompt: str,
        source: Optional[SourceImage],
        owner_at_submit: Optional[uuid.UUID],
    ) -> SubmitResult:
        if not response.image_url:
            if response.error:
                logger.warning(f"Generation rejected: {response.error}")
                return self._fail(ErrorKind.REQUEST_REJECTED, response.error, dispatched_prompt)
            logger.warning("Generation succeeded without an image URL")
            return self._fail(ErrorKind.NO_IMAGE_RETURNED, None, dispatched_prompt)

        self._result_image_ref = response.image_url
        self._error_message = None
        self._schedule_history_append(original_prompt, response.image_url, owner_at_submit)
        # A file attached while the request was outstanding is kept
        if self._source_image is source:
            self._source_image = None
        self._status = SessionStatus.SUCCEEDED
        self._notifier.success(Event.GENERATE)
        logger.info("Image generated successfully")
        return SubmitResult(
            accepted=True,
            status=self._status,
            image_url=response.image_url,
            dispatched_prompt=dispatched_prompt,
        )

    def _fail(
        self, kind: ErrorKind, detail: Optional[str], dispatched_prompt: Optional[str]
    ) -> SubmitResult:
        # result_image_ref is left alone: a failed retry keeps the old image
        notification = self._notifier.error(Event.GENERATE, kind)
        self._status = SessionStatus.FAILED
        self._last_error = kind
        self._error_message = notification.message
        self._error_detail = detail
        return SubmitResult(
            accepted=True,
            status=self._status,
            error=kind,
            dispatched_prompt=dispatched_prompt,
        )

    # ------------------------------------------------------------------
    # History hand-off
    # ------------------------------------------------------------------

    def _schedule_history_append(
        self, prompt: str, image_ref: str, owner_at_submit: Optional[uuid.UUID]
    ) -> None:
        current_owner = self._identity.user_id
        if owner_at_submit is not None and current_owner != owner_at_submit:
            # Signed out (or switched user) mid-flight: show the image, skip the save
            logger.warning("Identity changed during generation; not saving to history")
            self._notifier.error(Event.SAVE, ErrorKind.PERSISTENCE_FAILED)
            return
        if owner_at_submit is None and not self._history.can_persist(None):
            logger.debug("Anonymous generation; history disabled for anonymous users")
            return

        task = asyncio.create_task(self._history.append(prompt, image_ref, owner_at_submit))
        self._pending_tasks.add(task)
        task.add_done_callback(self._on_append_done)

    def _on_append_done(self, task: asyncio.Task) -> None:
        self._pending_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"History append task crashed: {exc}")

    async def drain(self) -> None:
        """Wait for background history writes started by this session."""
        while self._pending_tasks:
            await asyncio.gather(*list(self._pending_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self._generator.close()
