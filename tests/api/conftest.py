"""API-specific test fixtures."""

import pytest
from unittest.mock import AsyncMock, patch

from httpx import AsyncClient, ASGITransport

from src.api import deps
from src.api.app import app
from src.services.history_store import MemoryHistoryStore
from src.services.session_registry import ShellRegistry


@pytest.fixture
def api_store(monkeypatch):
    """Fresh in-memory history store behind the API."""
    store = MemoryHistoryStore()
    monkeypatch.setattr(deps, "_memory_store", store)
    return store


@pytest.fixture
def api_generator(make_generator):
    return make_generator()


@pytest.fixture
async def async_client(api_store, api_generator, studio_config):
    """Async test client for FastAPI with a scripted generator."""
    registry = ShellRegistry(
        store_factory=deps.get_history_store,
        config=studio_config,
        generator_factory=lambda: api_generator,
    )
    deps.reset_shell_registry()
    deps._registry = registry

    # Patch database initialization to avoid real DB connections
    with (
        patch("src.api.app.init_db", new_callable=AsyncMock),
        patch("src.api.app.close_db", new_callable=AsyncMock),
    ):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client

    await registry.close_all()
    deps.reset_shell_registry()
