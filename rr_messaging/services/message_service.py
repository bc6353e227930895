import logging
from typing import Any, Dict, Optional

from rr_messaging.repositories.conversation_repository import ConversationRepository
from rr_messaging.repositories.message_repository import MessageRepository
from rr_messaging.repositories.user_repository import UserRepository
from rr_messaging.schemas.message import MessageDeleted, MessageListResponse, MessagePublic
from rr_messaging.schemas.user import UserSummary
from rr_messaging.services.conversation_service import ConversationService
from rr_messaging.utils.errors import ForbiddenError, InvalidArgumentError, NotFoundError


logger = logging.getLogger(__name__)


class MessageService:
    """Appends, reads and deletes messages; keeps the conversation's last-message pointer current."""

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository,
        conversations: ConversationService,
        max_length: int = 5000,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._conversations = conversations
        self._max_length = max_length

    async def send_message(
        self,
        sender_id: str,
        content: Optional[str],
        conversation_id: Optional[str] = None,
        recipient_id: Optional[str] = None,
    ) -> MessagePublic:
        if not content or not content.strip():
            raise InvalidArgumentError("Message content cannot be empty", field="content")
        content = content.strip()
        if len(content) > self._max_length:
            raise InvalidArgumentError(
                f"Message content exceeds {self._max_length} characters", field="content"
            )
        if not conversation_id and not recipient_id:
            raise InvalidArgumentError("Either conversation_id or recipient_id is required")

        if conversation_id:
            convo = await self._conversations.get_for_participant(conversation_id, sender_id)
        else:
            convo = await self._conversations.resolve_or_create_conversation(sender_id, recipient_id)

        saved = await self._message_repo.save_message(convo["_id"], sender_id, content)
        recorded = await self._conversation_repo.record_new_message(convo["_id"], saved["_id"], saved["created_at"])
        if not recorded:
            # deleted while we were writing
            await self._message_repo.delete(saved["_id"])
            raise NotFoundError("Conversation", convo["_id"])
        logger.debug(
            "Message sent",
            extra={"conversation_id": convo["_id"], "message_id": saved["_id"], "user_id": sender_id},
        )
        profiles = await self._user_repo.get_public_profiles([sender_id])
        return self._to_public(saved, profiles)

    async def get_messages(self, conversation_id: str, requester_id: str) -> MessageListResponse:
        convo = await self._conversations.get_for_participant(conversation_id, requester_id)
        messages = await self._message_repo.get_messages_by_conversation(convo["_id"])
        await self._message_repo.mark_read(convo["_id"], requester_id, [m["_id"] for m in messages])
        for m in messages:
            if requester_id not in m["read_by"]:
                m["read_by"].append(requester_id)
        profiles = await self._user_repo.get_public_profiles({m["sender_id"] for m in messages})
        return MessageListResponse(items=[self._to_public(m, profiles) for m in messages])

    async def delete_message(self, message_id: str, requester_id: str) -> MessageDeleted:
        message = await self._message_repo.get_by_id(message_id)
        if not message:
            raise NotFoundError("Message", message_id)
        if message["sender_id"] != requester_id:
            raise ForbiddenError("Only the author can delete this message")

        await self._message_repo.delete(message["_id"])
        convo = await self._conversation_repo.get_by_id(message["conversation_id"])
        if convo and convo.get("last_message_id") == message["_id"]:
            latest = await self._message_repo.latest_for_conversation(convo["_id"])
            await self._conversation_repo.replace_last_message(convo["_id"], message["_id"], latest)
        logger.debug(
            "Message deleted",
            extra={"conversation_id": message["conversation_id"], "message_id": message["_id"], "user_id": requester_id},
        )
        return MessageDeleted(id=message["_id"])

    @staticmethod
    def _to_public(message: Dict[str, Any], profiles: Dict[str, Any]) -> MessagePublic:
        return MessagePublic(
            id=message["_id"],
            conversation_id=message["conversation_id"],
            sender=UserSummary(**profiles[message["sender_id"]]),
            content=message["content"],
            created_at=message["created_at"],
            read_by=list(message["read_by"]),
        )
