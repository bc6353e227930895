from fastapi import APIRouter, Depends, status

from rr_messaging.routers.conversations import get_message_service
from rr_messaging.schemas.message import MessageDeleted, MessagePublic, SendMessageRequest
from rr_messaging.services.message_service import MessageService
from rr_messaging.utils.dependencies import get_current_user


router = APIRouter(prefix="/messages", tags=["chat"])


@router.post("", response_model=MessagePublic, status_code=status.HTTP_201_CREATED)
async def send_message(
    body: SendMessageRequest,
    current_user: dict = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    return await service.send_message(
        current_user["_id"],
        body.content,
        conversation_id=body.conversation_id,
        recipient_id=body.recipient_id,
    )


@router.delete("/{message_id}", response_model=MessageDeleted)
async def delete_message(
    message_id: str,
    current_user: dict = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    return await service.delete_message(message_id, current_user["_id"])
