from typing import Optional, TypedDict


class UserDocument(TypedDict, total=False):
    """Owned by the auth service; read-only for messaging."""

    _id: str
    username: str
    email: str
    avatar: Optional[str]


class UserProfile(TypedDict):

    id: str
    username: Optional[str]
    avatar: Optional[str]
