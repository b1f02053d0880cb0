"""Unit tests for src/services/generation_session.py."""

import asyncio
import uuid

import httpx
import pytest

from src.core.config import GenerationConfig
from src.core.errors import ErrorKind
from src.core.image_generator import EdgeFunctionImageGenerator, GenerationResponse
from src.core.prompts import INFOGRAPHIC_STYLE_DIRECTIVE
from src.services.generation_session import GenerationSession, SessionStatus
from src.services.history_cache import HistoryCache
from src.services.identity import IdentityState
from src.services.notifications import Category, Event, Notifier

USER_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")


async def _make_session(generator, store, user_id=USER_A, anonymous_history=False, timeout=1.0):
    notifier = Notifier()
    identity = IdentityState(user_id)
    cache = HistoryCache(store, notifier, anonymous_history=anonymous_history)
    config = GenerationConfig(
        endpoint_url="https://edge.example.com/generate-image",
        timeout_seconds=timeout,
        max_upload_bytes=1024,
    )
    session = GenerationSession(generator, cache, identity, notifier, config)
    await cache.refresh(user_id)
    return session, cache, identity, notifier


def _events(notifier):
    return [(n.event, n.category) for n in notifier.drain()]


# =============================================================================
# Empty prompts
# =============================================================================


class TestEmptyPrompt:
    @pytest.mark.parametrize("prompt", ["", "   ", "\n\t "])
    async def test_no_remote_call(self, fake_generator, memory_store, prompt):
        session, _, _, notifier = await _make_session(fake_generator, memory_store)
        session.set_prompt(prompt)

        result = await session.submit()

        assert result.accepted is False
        assert result.error is ErrorKind.EMPTY_PROMPT
        assert fake_generator.calls == []
        assert session.status is SessionStatus.IDLE
        [note] = notifier.drain()
        assert note.kind is ErrorKind.EMPTY_PROMPT


# =============================================================================
# Success path
# =============================================================================


class TestSubmitSuccess:
    async def test_result_and_history(self, fake_generator, memory_store):
        session, cache, _, notifier = await _make_session(fake_generator, memory_store)
        session.set_prompt("  a lighthouse at dawn ")

        result = await session.submit()
        await session.drain()

        assert result.accepted is True
        assert session.status is SessionStatus.SUCCEEDED
        assert session.result_image_ref == "https://cdn.example.com/1.png"
        assert fake_generator.calls == [("a lighthouse at dawn", None)]
        assert [e.prompt for e in cache.items] == ["a lighthouse at dawn"]
        assert _events(notifier) == [
            (Event.GENERATE, Category.SUCCESS),
            (Event.SAVE, Category.SUCCESS),
        ]

    async def test_water_cycle_infographic(self, fake_generator, memory_store):
        session, cache, _, _ = await _make_session(fake_generator, memory_store)
        session.set_prompt("Infographic about the water cycle")

        result = await session.submit()
        await session.drain()

        dispatched, _ = fake_generator.calls[0]
        assert dispatched.startswith(INFOGRAPHIC_STYLE_DIRECTIVE)
        assert dispatched.endswith("Infographic about the water cycle")
        assert result.dispatched_prompt == dispatched
        assert cache.items[0].prompt == "Infographic about the water cycle"

    async def test_arabic_infographic_stores_original(self, fake_generator, memory_store):
        session, cache, _, _ = await _make_session(fake_generator, memory_store)
        session.set_prompt("إنفوجرافيك عن دورة الماء")

        await session.submit()
        await session.drain()

        assert INFOGRAPHIC_STYLE_DIRECTIVE in fake_generator.calls[0][0]
        assert cache.items[0].prompt == "إنفوجرافيك عن دورة الماء"

    async def test_prompt_draft_kept_after_success(self, fake_generator, memory_store):
        session, _, _, _ = await _make_session(fake_generator, memory_store)
        session.set_prompt("a cat")
        await session.submit()
        assert session.prompt_draft == "a cat"

    async def test_source_image_sent_then_cleared(self, fake_generator, memory_store, png_bytes):
        session, _, _, _ = await _make_session(fake_generator, memory_store)
        session.set_prompt("make it snowy")
        assert session.attach_source_image("image/png", png_bytes, "photo.png") is True
        data_url = session.source_image.data_url

        await session.submit()

        assert fake_generator.calls[0][1] == data_url
        assert session.source_image is None

    async def test_source_attached_mid_flight_is_kept(self, fake_generator, memory_store, png_bytes):
        session, _, _, _ = await _make_session(fake_generator, memory_store)
        release = fake_generator.hold()
        session.set_prompt("a dog")

        task = asyncio.create_task(session.submit())
        await asyncio.sleep(0)
        session.attach_source_image("image/png", png_bytes, "later.png")
        release.set()
        await task

        assert session.source_image is not None
        assert session.source_image.filename == "later.png"


# =============================================================================
# Re-entrancy
# =============================================================================


class TestReentrancy:
    async def test_two_rapid_submits_one_call(self, fake_generator, memory_store):
        session, _, _, _ = await _make_session(fake_generator, memory_store)
        release = fake_generator.hold()
        session.set_prompt("a tree")

        first = asyncio.create_task(session.submit())
        second = asyncio.create_task(session.submit())
        await asyncio.sleep(0)
        assert session.is_in_flight is True

        release.set()
        results = await asyncio.gather(first, second)

        assert len(fake_generator.calls) == 1
        assert sorted(r.accepted for r in results) == [False, True]
        rejected = next(r for r in results if not r.accepted)
        assert rejected.error is None

    async def test_history_selection_ignored_in_flight(self, fake_generator, memory_store):
        session, cache, _, _ = await _make_session(fake_generator, memory_store)
        entry = await memory_store.insert("old", "https://cdn.example.com/old.png", USER_A)
        release = fake_generator.hold()
        session.set_prompt("new")

        task = asyncio.create_task(session.submit())
        await asyncio.sleep(0)
        assert session.select_history_item(entry) is False
        release.set()
        await task

        assert session.prompt_draft == "new"
        assert session.result_image_ref == "https://cdn.example.com/1.png"

    async def test_submit_again_after_completion(self, fake_generator, memory_store):
        session, _, _, _ = await _make_session(fake_generator, memory_store)
        session.set_prompt("a tree")
        await session.submit()
        await session.submit()
        assert len(fake_generator.calls) == 2


# =============================================================================
# Failures
# =============================================================================


class TestSubmitFailure:
    async def test_failure_keeps_previous_image(self, make_generator, memory_store):
        generator = make_generator([
            GenerationResponse(image_url="https://cdn.example.com/good.png"),
            GenerationResponse(error="Content policy violation"),
        ])
        session, cache, _, _ = await _make_session(generator, memory_store)
        session.set_prompt("a boat")
        await session.submit()
        await session.drain()

        result = await session.submit()
        await session.drain()

        assert result.error is ErrorKind.REQUEST_REJECTED
        assert session.status is SessionStatus.FAILED
        assert session.result_image_ref == "https://cdn.example.com/good.png"
        assert session.error_detail == "Content policy violation"
        assert session.error_message == "Failed to generate image"
        assert len(cache.items) == 1

    async def test_no_image_returned(self, make_generator, memory_store):
        session, cache, _, _ = await _make_session(make_generator([GenerationResponse()]), memory_store)
        session.set_prompt("a boat")

        result = await session.submit()

        assert result.error is ErrorKind.NO_IMAGE_RETURNED
        assert session.result_image_ref is None
        await session.drain()
        assert await memory_store.count(USER_A) == 0

    async def test_transport_error(self, make_generator, memory_store):
        generator = make_generator([ConnectionError("network down")])
        session, _, _, notifier = await _make_session(generator, memory_store)
        session.set_prompt("a boat")

        result = await session.submit()

        assert result.error is ErrorKind.TRANSPORT_ERROR
        assert session.status is SessionStatus.FAILED
        assert "network down" in session.error_detail
        [note] = notifier.drain()
        assert note.event is Event.GENERATE
        assert note.category is Category.ERROR

    async def test_gateway_error_page_is_transport_error(self, memory_store):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(502, text="<html>Bad Gateway</html>"))
        )
        generator = EdgeFunctionImageGenerator(
            GenerationConfig(endpoint_url="https://edge.example.com/generate-image"), client=client
        )
        session, cache, _, _ = await _make_session(generator, memory_store)
        session.set_prompt("a boat")

        result = await session.submit()
        await session.drain()
        await session.aclose()

        assert result.error is ErrorKind.TRANSPORT_ERROR
        assert session.status is SessionStatus.FAILED
        assert cache.items == ()

    async def test_timeout_is_transport_error(self, make_generator, memory_store):
        generator = make_generator(delay=0.5)
        session, _, _, _ = await _make_session(generator, memory_store, timeout=0.05)
        session.set_prompt("a slow boat")

        result = await session.submit()

        assert result.error is ErrorKind.TRANSPORT_ERROR
        assert session.is_in_flight is False

    async def test_session_usable_after_failure(self, make_generator, memory_store):
        generator = make_generator([
            GenerationResponse(error="rate limited"),
            GenerationResponse(image_url="https://cdn.example.com/ok.png"),
        ])
        session, _, _, _ = await _make_session(generator, memory_store)
        session.set_prompt("a boat")
        await session.submit()
        result = await session.submit()

        assert result.error is None
        assert session.status is SessionStatus.SUCCEEDED
        assert session.error_message is None

    async def test_history_failure_does_not_fail_generation(self, fake_generator, memory_store):
        memory_store.fail_insert = True
        session, _, _, notifier = await _make_session(fake_generator, memory_store)
        session.set_prompt("a boat")

        result = await session.submit()
        await session.drain()

        assert result.error is None
        assert session.status is SessionStatus.SUCCEEDED
        assert session.result_image_ref is not None
        events = _events(notifier)
        assert (Event.GENERATE, Category.SUCCESS) in events
        assert (Event.SAVE, Category.ERROR) in events


# =============================================================================
# Attachments
# =============================================================================


class TestAttachments:
    async def test_non_image_upload(self, fake_generator, memory_store):
        session, _, _, notifier = await _make_session(fake_generator, memory_store)

        assert session.attach_source_image("application/pdf", b"%PDF", "doc.pdf") is False

        assert session.source_image is None
        [note] = notifier.drain()
        assert note.event is Event.UPLOAD
        assert note.kind is ErrorKind.INVALID_FILE_TYPE

    async def test_bad_upload_keeps_previous_attachment(self, fake_generator, memory_store, png_bytes):
        session, _, _, _ = await _make_session(fake_generator, memory_store)
        session.attach_source_image("image/png", png_bytes, "first.png")
        session.attach_source_image("text/plain", b"hello", "notes.txt")
        assert session.source_image.filename == "first.png"

    async def test_oversized_upload(self, fake_generator, memory_store):
        session, _, _, notifier = await _make_session(fake_generator, memory_store)
        assert session.attach_source_image("image/png", b"x" * 2048, "huge.png") is False
        assert notifier.drain()[0].kind is ErrorKind.FILE_TOO_LARGE

    async def test_remove_attachment(self, fake_generator, memory_store, png_bytes):
        session, _, _, _ = await _make_session(fake_generator, memory_store)
        session.attach_source_image("image/png", png_bytes)
        session.remove_source_image()
        assert session.source_image is None


# =============================================================================
# Identity
# =============================================================================


class TestIdentity:
    async def test_sign_out_mid_flight_skips_append(self, fake_generator, memory_store):
        session, _, identity, notifier = await _make_session(fake_generator, memory_store)
        release = fake_generator.hold()
        session.set_prompt("a castle")

        task = asyncio.create_task(session.submit())
        await asyncio.sleep(0)
        identity.sign_out()
        release.set()
        result = await task
        await session.drain()

        assert result.error is None
        assert session.result_image_ref is not None
        assert await memory_store.count(USER_A) == 0
        assert await memory_store.count(None) == 0
        assert (Event.SAVE, Category.ERROR) in _events(notifier)

    async def test_anonymous_generation_not_saved(self, fake_generator, memory_store):
        session, _, _, notifier = await _make_session(fake_generator, memory_store, user_id=None)
        session.set_prompt("a castle")

        await session.submit()
        await session.drain()

        assert await memory_store.count(None) == 0
        assert _events(notifier) == [(Event.GENERATE, Category.SUCCESS)]

    async def test_anonymous_generation_saved_when_enabled(self, fake_generator, memory_store):
        session, cache, _, _ = await _make_session(
            fake_generator, memory_store, user_id=None, anonymous_history=True
        )
        session.set_prompt("a castle")

        await session.submit()
        await session.drain()

        assert await memory_store.count(None) == 1
        assert cache.items[0].owner_id is None


class TestSelectHistoryItem:
    async def test_loads_prompt_and_image(self, fake_generator, memory_store):
        session, _, _, _ = await _make_session(fake_generator, memory_store)
        entry = await memory_store.insert("old prompt", "https://cdn.example.com/old.png", USER_A)

        assert session.select_history_item(entry) is True
        assert session.prompt_draft == "old prompt"
        assert session.result_image_ref == "https://cdn.example.com/old.png"


async def test_aclose_closes_generator(fake_generator, memory_store):
    session, _, _, _ = await _make_session(fake_generator, memory_store)
    await session.aclose()
    assert fake_generator.closed is True
