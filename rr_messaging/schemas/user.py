from typing import Optional

from pydantic import BaseModel


class UserSummary(BaseModel):
    """Displayable identity of a participant or sender."""

    id: str
    username: Optional[str] = None
    avatar: Optional[str] = None
