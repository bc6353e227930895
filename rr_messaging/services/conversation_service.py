import logging
from typing import Any, Dict, Optional

from pymongo.errors import PyMongoError

from rr_messaging.repositories.conversation_repository import ConversationRepository
from rr_messaging.repositories.message_repository import MessageRepository
from rr_messaging.repositories.user_repository import UserRepository
from rr_messaging.schemas.conversation import (
    ConversationDeleted,
    ConversationListResponse,
    ConversationPublic,
    LastMessagePreview,
    ReconcileResult,
)
from rr_messaging.schemas.user import UserSummary
from rr_messaging.utils.errors import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    PersistenceError,
)
from rr_messaging.utils.object_ids import to_object_id


logger = logging.getLogger(__name__)


class ConversationService:
    """Maps user pairs to conversations, lists them by recency, deletes them."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        user_repo: UserRepository,
        page_max: int = 100,
    ) -> None:
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo
        self._user_repo = user_repo
        self._page_max = page_max

    async def list_conversations(
        self,
        user_id: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> ConversationListResponse:
        if limit is not None and not 1 <= limit <= self._page_max:
            raise InvalidArgumentError(f"limit must be between 1 and {self._page_max}", field="limit")
        items, next_cursor = await self._conversation_repo.list_for_user(user_id, limit=limit, cursor=cursor)
        if not items:
            return ConversationListResponse(items=[], next_cursor=None)

        ids = [it["_id"] for it in items]
        last_messages = await self._message_repo.get_many(
            it["last_message_id"] for it in items if it.get("last_message_id")
        )
        unread = await self._message_repo.count_unread(ids, user_id)

        user_ids = {p for it in items for p in it["participants"]}
        user_ids.update(m["sender_id"] for m in last_messages.values())
        profiles = await self._user_repo.get_public_profiles(user_ids)

        summaries = []
        for it in items:
            last = last_messages.get(it.get("last_message_id") or "")
            summaries.append(ConversationPublic(
                id=it["_id"],
                participants=[UserSummary(**profiles[p]) for p in it["participants"]],
                last_message=LastMessagePreview(
                    id=last["_id"],
                    sender=UserSummary(**profiles[last["sender_id"]]),
                    content=last["content"],
                    created_at=last["created_at"],
                ) if last else None,
                unread_count=unread.get(it["_id"], 0),
                created_at=it["created_at"],
                updated_at=it["updated_at"],
            ))
        return ConversationListResponse(items=summaries, next_cursor=next_cursor)

    async def resolve_or_create_conversation(self, sender_id: str, recipient_id: str) -> Dict[str, Any]:
        # ObjectId parsing accepts any hex case; compare canonical forms
        recipient_oid = to_object_id(recipient_id)
        canonical = str(recipient_oid) if recipient_oid is not None else str(recipient_id)
        if str(sender_id) == canonical:
            raise InvalidArgumentError("Cannot start a conversation with yourself", field="recipient_id")
        recipient = await self._user_repo.get_user_by_id(recipient_id)
        if not recipient:
            raise NotFoundError("User", recipient_id)
        if recipient["_id"] == str(sender_id):
            raise InvalidArgumentError("Cannot start a conversation with yourself", field="recipient_id")
        convo, created = await self._conversation_repo.get_or_create_one_to_one(sender_id, recipient["_id"])
        if created:
            logger.info(
                "Conversation created",
                extra={"conversation_id": convo["_id"], "user_id": sender_id},
            )
        return convo

    async def get_for_participant(self, conversation_id: str, user_id: str) -> Dict[str, Any]:
        convo = await self._conversation_repo.get_by_id(conversation_id)
        if not convo:
            raise NotFoundError("Conversation", conversation_id)
        if user_id not in convo["participants"]:
            raise ForbiddenError("Not a participant of this conversation")
        return convo

    async def delete_conversation(self, conversation_id: str, requester_id: str) -> ConversationDeleted:
        convo = await self.get_for_participant(conversation_id, requester_id)
        # messages first: a failure here leaves the conversation intact
        deleted = await self._message_repo.delete_for_conversation(convo["_id"])
        try:
            await self._conversation_repo.delete(convo["_id"])
        except PyMongoError as exc:
            logger.error(
                "Conversation delete failed after its messages were removed",
                exc_info=True,
                extra={"conversation_id": convo["_id"], "deleted": deleted},
            )
            raise PersistenceError("delete conversation", type(exc).__name__) from exc
        logger.info(
            "Conversation deleted",
            extra={"conversation_id": convo["_id"], "user_id": requester_id, "deleted": deleted},
        )
        return ConversationDeleted(id=convo["_id"], deleted_messages=deleted)

    async def purge_orphaned_messages(self) -> ReconcileResult:
        """Remove messages whose conversation no longer exists."""
        referenced = await self._message_repo.conversation_ids()
        existing = await self._conversation_repo.existing_ids(referenced)
        orphaned = [c for c in referenced if c not in existing]
        deleted = await self._message_repo.delete_for_conversations(orphaned) if orphaned else 0
        if orphaned:
            logger.info(
                "Purged %d orphaned messages from %d conversations",
                deleted,
                len(orphaned),
                extra={"deleted": deleted},
            )
        return ReconcileResult(orphaned_conversations=len(orphaned), deleted_messages=deleted)
