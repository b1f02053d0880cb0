"""
Pydantic schemas for API request/response models.
"""

from typing import Optional, Literal, List
from pydantic import BaseModel, Field

from src.core.config import MAX_HISTORY_PAGE_SIZE
from src.services.history_store import HistoryEntry
from src.services.notifications import Notification
from src.services.studio_shell import ViewState


# =============================================================================
# SESSION SCHEMAS
# =============================================================================

class SessionCreateRequest(BaseModel):
    """Request schema for mounting a generator view."""

    language: Optional[str] = Field(None, description="UI language code ('en' or 'ar')")
    preview_limit: Optional[int] = Field(
        None, ge=1, le=MAX_HISTORY_PAGE_SIZE,
        description="How many recent generations to show next to the generator",
    )


class PromptUpdateRequest(BaseModel):
    """Keystroke-level update of the prompt draft."""

    prompt: str = Field(..., max_length=4000, description="Current prompt text")


class AttachmentRequest(BaseModel):
    """A reference image selected by the user, base64-encoded."""

    filename: Optional[str] = Field(None, max_length=255)
    content_type: str = Field(..., description="MIME type reported by the browser")
    data: str = Field(..., description="Base64-encoded file content")


class LanguageUpdateRequest(BaseModel):
    language: str = Field(..., description="UI language code ('en' or 'ar')")


class HistoryItem(BaseModel):
    """A single generation in history."""

    id: str
    prompt: str
    image_url: str
    created_at: str

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> "HistoryItem":
        return cls(
            id=str(entry.id),
            prompt=entry.prompt,
            image_url=entry.image_ref,
            created_at=entry.created_at.isoformat() if entry.created_at else "",
        )


class NotificationItem(BaseModel):
    """A one-shot message for the toast area."""

    category: Literal["success", "error"]
    event: str
    kind: Optional[str] = None
    message: str

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationItem":
        return cls(
            category=notification.category.value,
            event=notification.event.value,
            kind=notification.kind.value if notification.kind else None,
            message=notification.message,
        )


class SessionStateResponse(BaseModel):
    """Derived view state of a mounted generator."""

    session_id: str
    user_id: Optional[str] = None
    language: str
    is_rtl: bool
    status: Literal["idle", "in-flight", "succeeded", "failed"]
    prompt: str
    is_loading: bool
    can_submit: bool
    show_placeholder: bool
    image_url: Optional[str] = None
    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    has_source_image: bool = False
    source_image_name: Optional[str] = None
    history: List[HistoryItem] = Field(default_factory=list)
    history_loaded: bool = False
    notifications: List[NotificationItem] = Field(default_factory=list)

    @classmethod
    def from_view(
        cls, view: ViewState, notifications: Optional[List[Notification]] = None
    ) -> "SessionStateResponse":
        return cls(
            session_id=str(view.shell_id),
            user_id=str(view.user_id) if view.user_id else None,
            language=view.language,
            is_rtl=view.is_rtl,
            status=view.status.value,
            prompt=view.prompt,
            is_loading=view.is_loading,
            can_submit=view.can_submit,
            show_placeholder=view.show_placeholder,
            image_url=view.result_image_ref,
            error_message=view.error_message,
            error_kind=view.error_kind.value if view.error_kind else None,
            has_source_image=view.has_source_image,
            source_image_name=view.source_image_name,
            history=[HistoryItem.from_entry(e) for e in view.history],
            history_loaded=view.history_loaded,
            notifications=[NotificationItem.from_notification(n) for n in notifications or []],
        )


class GenerateResponse(BaseModel):
    """Response schema for a generation attempt."""

    accepted: bool = Field(..., description="False when the attempt never reached the service")
    error_kind: Optional[str] = Field(None, description="Failure category, if any")
    state: SessionStateResponse


class NotificationListResponse(BaseModel):
    notifications: List[NotificationItem]


# =============================================================================
# HISTORY VIEW SCHEMAS
# =============================================================================

class HistoryListResponse(BaseModel):
    """Paginated response for GET /history."""

    items: List[HistoryItem]
    total: int
    limit: int
    offset: int


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# COMMON
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str = "1.0.0"
    generation_configured: bool
    database_configured: bool = False


class ErrorResponse(BaseModel):
    """Error response schema."""

    detail: str
