from datetime import datetime
from typing import List, Optional, TypedDict


class ConversationDocument(TypedDict, total=False):
    _id: str
    # exactly two user ids, fixed at creation
    participants: List[str]
    # "<smaller id>:<larger id>", unique index
    pair_key: str
    last_message_id: Optional[str]
    last_message_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
