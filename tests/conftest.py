"""Root-level test fixtures."""

import asyncio
import base64
from typing import Optional

import pytest

from src.core.config import GenerationConfig, HistoryConfig, StudioConfig
from src.core.image_generator import GenerationResponse
from src.services.history_store import MemoryHistoryStore


# Minimal valid 1x1 PNG for testing
MINIMAL_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8/5+hHgAHggJ/PchI7wAAAABJRU5ErkJggg=="
)
MINIMAL_PNG_B64 = base64.b64encode(MINIMAL_PNG).decode()
MINIMAL_PNG_DATA_URL = f"data:image/png;base64,{MINIMAL_PNG_B64}"


# Ensure no real API keys or endpoints leak into tests
@pytest.fixture(autouse=True)
def _clear_env_keys(monkeypatch):
    for key in (
        "OPENROUTER_API_KEY",
        "GENERATION_API_KEY",
        "GENERATION_URL",
        "GENERATION_BACKEND",
        "DATABASE_URL",
        "STUDIO_API_KEY",
        "ANONYMOUS_HISTORY",
        "STUDIO_LANGUAGE",
    ):
        monkeypatch.delenv(key, raising=False)


class FakeGenerator:
    """Scripted RemoteImageGenerator that records every call."""

    def __init__(self, responses=None, delay: float = 0.0):
        self.responses = list(responses or [])
        self.delay = delay
        self.calls: list[tuple[str, Optional[str]]] = []
        self.release: Optional[asyncio.Event] = None
        self.closed = False

    def hold(self) -> asyncio.Event:
        """Make the next calls block until the returned event is set."""
        self.release = asyncio.Event()
        return self.release

    async def generate(self, prompt, source_image=None):
        self.calls.append((prompt, source_image))
        if self.release is not None:
            await self.release.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.responses.pop(0) if self.responses else GenerationResponse(
            image_url=f"https://cdn.example.com/{len(self.calls)}.png"
        )
        if isinstance(result, BaseException):
            raise result
        return result

    async def close(self):
        self.closed = True


class FailingStore(MemoryHistoryStore):
    """Memory store whose operations can be made to fail on demand."""

    def __init__(self):
        super().__init__()
        self.fail_insert = False
        self.fail_select = False
        self.fail_delete = False

    async def insert(self, prompt, image_ref, owner_id):
        if self.fail_insert:
            raise RuntimeError("insert unavailable")
        return await super().insert(prompt, image_ref, owner_id)

    async def select_recent(self, owner_id, limit=None, offset=0):
        if self.fail_select:
            raise RuntimeError("select unavailable")
        return await super().select_recent(owner_id, limit=limit, offset=offset)

    async def delete_by_id(self, entry_id, owner_id):
        if self.fail_delete:
            raise RuntimeError("delete unavailable")
        return await super().delete_by_id(entry_id, owner_id)


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def memory_store():
    return FailingStore()


@pytest.fixture
def studio_config():
    return StudioConfig(
        generation=GenerationConfig(
            backend="edge",
            endpoint_url="https://edge.example.com/generate-image",
            api_key="",
            timeout_seconds=1.0,
            max_upload_bytes=1024,
        ),
        history=HistoryConfig(preview_limit=20, anonymous_history=False),
        default_language="en",
        api_key=None,
    )


@pytest.fixture
def make_generator():
    """Factory for scripted generators: make_generator([responses], delay=...)."""
    return FakeGenerator


@pytest.fixture
def png_bytes():
    return MINIMAL_PNG


@pytest.fixture
def png_data_url():
    return MINIMAL_PNG_DATA_URL
