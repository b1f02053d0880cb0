"""
Failure taxonomy shared by the generation session, history cache and shell.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Categories of failure surfaced to the user. None of them are fatal."""

    EMPTY_PROMPT = "empty-prompt"
    INVALID_FILE_TYPE = "invalid-file-type"
    FILE_TOO_LARGE = "file-too-large"
    REQUEST_REJECTED = "request-rejected"
    TRANSPORT_ERROR = "transport-error"
    NO_IMAGE_RETURNED = "no-image-returned"
    PERSISTENCE_FAILED = "persistence-failed"
    DOWNLOAD_FAILED = "download-failed"


class StudioError(Exception):
    """Base error carrying an ErrorKind and an optional technical detail."""

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class AttachmentError(StudioError):
    """Raised when an uploaded file cannot be used as a source image."""
    pass


class PersistenceError(StudioError):
    """Raised when the history store rejects or fails an operation."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(ErrorKind.PERSISTENCE_FAILED, detail)


class DownloadError(StudioError):
    """Raised when image bytes cannot be fetched or decoded."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(ErrorKind.DOWNLOAD_FAILED, detail)
