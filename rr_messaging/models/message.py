from datetime import datetime
from typing import List, TypedDict


class MessageDocument(TypedDict, total=False):
    _id: str
    conversation_id: str
    sender_id: str
    content: str
    created_at: datetime
    # only ever grows ($addToSet)
    read_by: List[str]
