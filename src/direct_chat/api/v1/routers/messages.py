from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi.responses import Response

from direct_chat.api.deps import CommandsDep, UoWDep
from direct_chat.api.v1.schemas.message import (
    DeletedMessageResponse,
    EditedMessageEnvelope,
    EditMessageRequest,
    MessageEnvelope,
    MessageResponse,
)
from direct_chat.config import settings
from direct_chat.domain.entities.message import ImageAttachment
from direct_chat.services import message_service
from direct_chat.services.deadline import persistence_deadline
from direct_chat.services.images import validate_image

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


async def _read_image(upload: UploadFile | None) -> ImageAttachment | None:
    if upload is None or not upload.filename:
        return None
    # one byte past the limit is enough to know it is too large
    data = await upload.read(settings.MAX_IMAGE_BYTES + 1)
    return validate_image(data, upload.content_type, settings.MAX_IMAGE_BYTES)


@router.post("", response_model=MessageEnvelope, status_code=201)
async def send_message(
    uow: UoWDep,
    commands: CommandsDep,
    chat_id: UUID = Form(...),
    sender_id: str = Form(...),
    text: str | None = Form(None),
    image: UploadFile | None = File(None),
) -> MessageEnvelope:
    attachment = await _read_image(image)
    msg = await commands.send(uow, chat_id, sender_id, text, attachment)
    return MessageEnvelope(message=MessageResponse.from_entity(msg))


@router.patch("/{message_id}", response_model=EditedMessageEnvelope)
async def edit_message(
    message_id: UUID,
    body: EditMessageRequest,
    uow: UoWDep,
    commands: CommandsDep,
) -> EditedMessageEnvelope:
    msg = await commands.edit(uow, message_id, body.editor_id, body.text)
    return EditedMessageEnvelope(message=MessageResponse.from_entity(msg))


@router.delete("/{message_id}", response_model=DeletedMessageResponse)
async def delete_message(
    message_id: UUID,
    uow: UoWDep,
    commands: CommandsDep,
    requester_id: str = Query(...),
) -> DeletedMessageResponse:
    event = await commands.delete(uow, message_id, requester_id)
    return DeletedMessageResponse(deleted_id=event.message_id)


@router.get("/{message_id}/image")
async def get_message_image(message_id: UUID, uow: UoWDep) -> Response:
    async with persistence_deadline(settings.DB_CALL_TIMEOUT_SECONDS):
        image = await message_service.get_message_image(message_id, uow)
    return Response(
        content=image.data,
        media_type=image.content_type,
        headers={"Cache-Control": "private, max-age=86400"},
    )
