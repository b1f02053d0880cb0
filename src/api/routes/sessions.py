"""
Generator view endpoints.

A browser view mounts a session once and then forwards its input events
(prompt edits, submit, upload, history selection and deletion, download)
to it. Every response carries the freshly derived view state and the
notifications raised while handling the request.
"""

import base64
import binascii
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from src.api.deps import get_optional_user_id, get_shell, get_shell_registry
from src.api.schemas import (
    AttachmentRequest,
    ErrorResponse,
    GenerateResponse,
    LanguageUpdateRequest,
    MessageResponse,
    NotificationItem,
    NotificationListResponse,
    PromptUpdateRequest,
    SessionCreateRequest,
    SessionStateResponse,
)
from src.services.session_registry import ShellNotFoundError, ShellRegistry
from src.services.studio_shell import StudioShell

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


def _state(shell: StudioShell) -> SessionStateResponse:
    return SessionStateResponse.from_view(shell.view_state(), shell.notifier.drain())


@router.post("", response_model=SessionStateResponse)
async def mount_session(
    body: Optional[SessionCreateRequest] = None,
    user_id: Optional[uuid.UUID] = Depends(get_optional_user_id),
    registry: ShellRegistry = Depends(get_shell_registry),
) -> SessionStateResponse:
    """
    Mount a generator view and load its history preview.
    """
    body = body or SessionCreateRequest()
    shell = await registry.mount(
        user_id, language=body.language, preview_limit=body.preview_limit
    )
    return _state(shell)


@router.get(
    "/{session_id}",
    response_model=SessionStateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_session_state(shell: StudioShell = Depends(get_shell)) -> SessionStateResponse:
    return _state(shell)


@router.put(
    "/{session_id}/prompt",
    response_model=SessionStateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_prompt(
    body: PromptUpdateRequest,
    shell: StudioShell = Depends(get_shell),
) -> SessionStateResponse:
    shell.on_prompt_change(body.prompt)
    return _state(shell)


@router.put(
    "/{session_id}/language",
    response_model=SessionStateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_language(
    body: LanguageUpdateRequest,
    shell: StudioShell = Depends(get_shell),
) -> SessionStateResponse:
    shell.set_language(body.language)
    return _state(shell)


@router.post(
    "/{session_id}/generate",
    response_model=GenerateResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def generate_image(shell: StudioShell = Depends(get_shell)) -> GenerateResponse:
    """
    Submit the current prompt (and attached image, if any).

    Generation failures are reported in the body, not as HTTP errors; the
    session stays usable. A submit while another one is outstanding is
    rejected with 409.
    """
    result = await shell.on_submit()
    if not result.accepted and result.error is None:
        raise HTTPException(status_code=409, detail="A generation is already in progress")

    # Let the history write triggered by a success land before answering
    await shell.settle()
    return GenerateResponse(
        accepted=result.accepted,
        error_kind=result.error.value if result.error else None,
        state=_state(shell),
    )


@router.post(
    "/{session_id}/attachment",
    response_model=SessionStateResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def attach_image(
    body: AttachmentRequest,
    shell: StudioShell = Depends(get_shell),
) -> SessionStateResponse:
    """
    Attach a reference image. Non-image files are rejected through the
    notification list, leaving any previous attachment in place.
    """
    try:
        data = base64.b64decode(body.data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Attachment data is not valid base64")

    shell.on_upload(body.content_type, data, body.filename)
    return _state(shell)


@router.delete(
    "/{session_id}/attachment",
    response_model=SessionStateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def remove_attachment(shell: StudioShell = Depends(get_shell)) -> SessionStateResponse:
    shell.on_remove_upload()
    return _state(shell)


@router.post(
    "/{session_id}/history/{entry_id}/select",
    response_model=SessionStateResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def select_history_item(
    entry_id: uuid.UUID,
    shell: StudioShell = Depends(get_shell),
) -> SessionStateResponse:
    """Load a past prompt and its image back into the generator."""
    if shell.history.get(entry_id) is None:
        raise HTTPException(status_code=404, detail="History entry not found")
    if not shell.on_select_history(entry_id):
        raise HTTPException(status_code=409, detail="A generation is already in progress")
    return _state(shell)


@router.delete(
    "/{session_id}/history/{entry_id}",
    response_model=SessionStateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def delete_history_item(
    entry_id: uuid.UUID,
    shell: StudioShell = Depends(get_shell),
) -> SessionStateResponse:
    """
    Delete a generation. Failures leave the gallery untouched and are
    reported through notifications.
    """
    await shell.on_delete(entry_id)
    return _state(shell)


@router.get(
    "/{session_id}/download",
    responses={
        200: {"content": {"image/png": {}}, "description": "PNG image"},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def download_image(
    entry_id: Optional[uuid.UUID] = Query(None, description="History entry to download instead of the current result"),
    shell: StudioShell = Depends(get_shell),
) -> Response:
    """Download the current result (or a history entry) as PNG."""
    if entry_id is not None:
        entry = shell.history.get(entry_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="History entry not found")
        image_ref = entry.image_ref
    else:
        image_ref = shell.session.result_image_ref
        if not image_ref:
            raise HTTPException(status_code=404, detail="No image to download")

    image = await shell.on_download(image_ref)
    if image is None:
        raise HTTPException(status_code=502, detail="Failed to download image")

    return Response(
        content=image.content,
        media_type=image.content_type,
        headers={"Content-Disposition": f'attachment; filename="{image.filename}"'},
    )


@router.get(
    "/{session_id}/notifications",
    response_model=NotificationListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def drain_notifications(shell: StudioShell = Depends(get_shell)) -> NotificationListResponse:
    """Return and clear pending one-shot notifications."""
    return NotificationListResponse(
        notifications=[NotificationItem.from_notification(n) for n in shell.notifier.drain()]
    )


@router.delete(
    "/{session_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}},
)
async def unmount_session(
    session_id: uuid.UUID,
    registry: ShellRegistry = Depends(get_shell_registry),
) -> MessageResponse:
    try:
        await registry.unmount(session_id)
    except ShellNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return MessageResponse(message=f"Session {session_id} closed")
