"""
Source image attachments.

An uploaded image is inlined as a base64 data URL and travels with the
generation request body; there is no separate upload step.
"""

import base64
from dataclasses import dataclass
from typing import Optional

from src.core.errors import AttachmentError, ErrorKind

IMAGE_CONTENT_TYPE_PREFIX = "image/"


@dataclass(frozen=True)
class SourceImage:
    """An uploaded reference image, ready to be sent inline."""
    data_url: str
    content_type: str
    size_bytes: int
    filename: Optional[str] = None


def build_data_url(content_type: str, data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def build_source_image(
    content_type: Optional[str],
    data: bytes,
    filename: Optional[str] = None,
    max_bytes: Optional[int] = None,
) -> SourceImage:
    """
    Validate an uploaded file and turn it into a SourceImage.

    Raises:
        AttachmentError: INVALID_FILE_TYPE when the content type does not
            indicate an image, FILE_TOO_LARGE when over max_bytes.
    """
    normalized = (content_type or "").strip().lower()
    if not normalized.startswith(IMAGE_CONTENT_TYPE_PREFIX):
        raise AttachmentError(
            ErrorKind.INVALID_FILE_TYPE,
            f"Unsupported content type: {content_type or 'unknown'}",
        )

    if max_bytes is not None and len(data) > max_bytes:
        raise AttachmentError(
            ErrorKind.FILE_TOO_LARGE,
            f"{len(data)} bytes exceeds limit of {max_bytes}",
        )

    return SourceImage(
        data_url=build_data_url(normalized, data),
        content_type=normalized,
        size_bytes=len(data),
        filename=filename,
    )


def decode_data_url(data_url: str) -> tuple[str, bytes]:
    """
    Split a base64 data URL into (content_type, bytes).

    Raises:
        ValueError: If the URL is not a base64 data URL.
    """
    if not data_url.startswith("data:") or "," not in data_url:
        raise ValueError("Not a data URL")
    header, encoded = data_url.split(",", 1)
    meta = header[len("data:"):]
    if not meta.endswith(";base64"):
        raise ValueError("Only base64 data URLs are supported")
    content_type = meta[: -len(";base64")] or "application/octet-stream"
    return content_type, base64.b64decode(encoded)
