from typing import Optional

from fastapi import APIRouter, Depends, Query

from rr_messaging.config import get_settings
from rr_messaging.database.connection import mongo_db_dependency
from rr_messaging.repositories.conversation_repository import ConversationRepository
from rr_messaging.repositories.message_repository import MessageRepository
from rr_messaging.repositories.user_repository import UserRepository
from rr_messaging.schemas.conversation import ConversationDeleted, ConversationListResponse
from rr_messaging.schemas.message import MessageListResponse
from rr_messaging.services.conversation_service import ConversationService
from rr_messaging.services.message_service import MessageService
from rr_messaging.utils.dependencies import get_current_user


router = APIRouter(prefix="/conversations", tags=["chat"])


def get_conversation_service(db=Depends(mongo_db_dependency)) -> ConversationService:
    return ConversationService(
        ConversationRepository(db),
        MessageRepository(db),
        UserRepository(db),
        get_settings().conversation_page_max,
    )


def get_message_service(db=Depends(mongo_db_dependency)) -> MessageService:
    convo_repo = ConversationRepository(db)
    msg_repo = MessageRepository(db)
    user_repo = UserRepository(db)
    conversations = ConversationService(convo_repo, msg_repo, user_repo, get_settings().conversation_page_max)
    return MessageService(msg_repo, convo_repo, user_repo, conversations, get_settings().message_max_length)


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    limit: Optional[int] = Query(None, ge=1),
    cursor: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    return await service.list_conversations(current_user["_id"], limit=limit, cursor=cursor)


@router.get("/{conversation_id}/messages", response_model=MessageListResponse)
async def list_messages(
    conversation_id: str,
    current_user: dict = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    return await service.get_messages(conversation_id, current_user["_id"])


@router.delete("/{conversation_id}", response_model=ConversationDeleted)
async def delete_conversation(
    conversation_id: str,
    current_user: dict = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    return await service.delete_conversation(conversation_id, current_user["_id"])
