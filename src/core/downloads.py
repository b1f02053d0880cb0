"""
Fetch generated images for download.

Image references are either remote URLs or inline data URLs. Whatever the
service returned, the bytes handed to the user are re-encoded as PNG.
"""

import io
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx
from PIL import Image

from src.core.attachments import decode_data_url
from src.core.errors import DownloadError

logger = logging.getLogger(__name__)

DOWNLOAD_FILENAME_PREFIX = "abbas"


@dataclass(frozen=True)
class DownloadedImage:
    filename: str
    content: bytes
    content_type: str = "image/png"


def _normalize_image_bytes(raw: bytes) -> bytes:
    """Validate image bytes with PIL and re-encode as PNG."""
    img = Image.open(io.BytesIO(raw))
    img.load()  # force full decode, raises early on corrupt data
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def build_download_filename(now_ms: Optional[int] = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{DOWNLOAD_FILENAME_PREFIX}-{stamp}.png"


async def fetch_image(
    image_ref: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
) -> DownloadedImage:
    """
    Load the bytes behind an image reference and return them as a PNG.

    Raises:
        DownloadError: If the reference cannot be fetched or decoded.
    """
    try:
        if image_ref.startswith("data:"):
            _, raw = decode_data_url(image_ref)
        elif client is not None:
            response = await client.get(image_ref, timeout=timeout)
            response.raise_for_status()
            raw = response.content
        else:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                response = await own_client.get(image_ref)
                response.raise_for_status()
                raw = response.content
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Image fetch failed: {e}")
        raise DownloadError(str(e)) from e

    try:
        content = _normalize_image_bytes(raw)
    except Exception as e:
        logger.error(f"Image validation failed: {e}")
        raise DownloadError(f"Image validation failed: {e}") from e

    return DownloadedImage(filename=build_download_filename(), content=content)
