from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from rr_messaging.schemas.user import UserSummary


class LastMessagePreview(BaseModel):

    id: str
    sender: UserSummary
    content: str
    created_at: datetime


class ConversationPublic(BaseModel):

    id: str
    participants: List[UserSummary]
    last_message: Optional[LastMessagePreview] = None
    unread_count: int = 0
    created_at: datetime
    updated_at: datetime


class ConversationListResponse(BaseModel):

    items: List[ConversationPublic]
    next_cursor: Optional[str] = None


class ConversationDeleted(BaseModel):

    message: str = "Conversation deleted"
    id: str
    deleted_messages: int


class ReconcileResult(BaseModel):

    orphaned_conversations: int
    deleted_messages: int
