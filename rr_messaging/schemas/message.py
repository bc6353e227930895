from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field

from rr_messaging.schemas.user import UserSummary


class SendMessageRequest(BaseModel):

    content: Optional[str] = None
    conversation_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("conversationId", "conversation_id")
    )
    recipient_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("recipientId", "recipient_id")
    )


class MessagePublic(BaseModel):

    id: str
    conversation_id: str
    sender: UserSummary
    content: str
    created_at: datetime
    read_by: List[str]


class MessageListResponse(BaseModel):

    items: List[MessagePublic]


class MessageDeleted(BaseModel):

    message: str = "Message deleted"
    id: str
