"""
Configuration settings for the Abbas Image Studio.
"""

from dataclasses import dataclass, field
from typing import Optional
import os

# Default models
DEFAULT_IMAGE_MODEL = "google/gemini-2.5-flash-image"

# History preview shown next to the generator
DEFAULT_PREVIEW_LIMIT = 20
DEFAULT_HISTORY_PAGE_SIZE = 50
MAX_HISTORY_PAGE_SIZE = 100

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class GenerationConfig:
    """Configuration for the remote image generation service."""

    # "edge" posts {prompt, sourceImage} to GENERATION_URL,
    # "openrouter" talks to the chat completions endpoint directly.
    backend: str = field(default_factory=lambda: os.getenv("GENERATION_BACKEND", "edge"))
    endpoint_url: str = field(default_factory=lambda: os.getenv("GENERATION_URL", ""))
    api_key: str = field(
        default_factory=lambda: os.getenv("GENERATION_API_KEY") or os.getenv("OPENROUTER_API_KEY", "")
    )
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    model: str = DEFAULT_IMAGE_MODEL

    # Bound applied at the transport boundary; expiry is a transport error
    timeout_seconds: float = 120.0
    download_timeout_seconds: float = 30.0

    # Attachments travel inline with the request body
    max_upload_bytes: int = 10 * 1024 * 1024

    def validate(self) -> bool:
        """Check that the selected backend has what it needs to make a call."""
        if self.backend == "openrouter":
            return bool(self.api_key)
        return bool(self.endpoint_url)


@dataclass
class HistoryConfig:
    """Configuration for the history cache and the history view."""

    preview_limit: int = DEFAULT_PREVIEW_LIMIT

    # Persist generations made without a signed-in user (owner_id = NULL)
    anonymous_history: bool = field(default_factory=lambda: _env_flag("ANONYMOUS_HISTORY"))


@dataclass
class StudioConfig:
    """Main configuration combining all settings."""

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    default_language: str = field(default_factory=lambda: os.getenv("STUDIO_LANGUAGE", "en"))
    api_key: Optional[str] = field(default_factory=lambda: os.getenv("STUDIO_API_KEY") or None)
