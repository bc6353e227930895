from typing import Dict, Iterable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from rr_messaging.models.user import UserProfile
from rr_messaging.utils.object_ids import to_object_id


PUBLIC_FIELDS = {"username": 1, "avatar": 1}


class UserRepository:
    """Read-only view of the auth service's users collection."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def get_user_by_id(self, user_id: str) -> Optional[dict]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        user = await self._collection.find_one({"_id": oid}, {"password": 0, "hashed_password": 0})
        if user:
            user["_id"] = str(user["_id"])  # normalize to string for API layer
        return user

    async def get_public_profiles(self, user_ids: Iterable[str]) -> Dict[str, UserProfile]:
        wanted = {str(u) for u in user_ids}
        oids = [oid for oid in (to_object_id(u) for u in wanted) if oid is not None]
        profiles: Dict[str, UserProfile] = {}
        if oids:
            async for user in self._collection.find({"_id": {"$in": oids}}, PUBLIC_FIELDS):
                uid = str(user["_id"])
                profiles[uid] = UserProfile(id=uid, username=user.get("username"), avatar=user.get("avatar"))
        # deleted accounts still render
        for uid in wanted - profiles.keys():
            profiles[uid] = UserProfile(id=uid, username=None, avatar=None)
        return profiles
