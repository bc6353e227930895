from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id coming from a request; None when it cannot be an ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if value is None:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for a two-party conversation."""
    low, high = sorted([str(user_a), str(user_b)])
    return f"{low}:{high}"
