import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from rr_messaging.models.conversation import ConversationDocument
from rr_messaging.utils.errors import InvalidArgumentError
from rr_messaging.utils.object_ids import pair_key, to_object_id
from rr_messaging.utils.timestamps import utc_now


logger = logging.getLogger(__name__)


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("pair_key", ASCENDING)], unique=True)
        await self.collection.create_index([("participants", ASCENDING)])
        await self.collection.create_index([("updated_at", DESCENDING), ("_id", DESCENDING)])

    async def get_by_id(self, conversation_id: str) -> Optional[ConversationDocument]:
        oid = to_object_id(conversation_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return self._normalize(doc) if doc else None

    async def get_or_create_one_to_one(self, user_a: str, user_b: str) -> Tuple[ConversationDocument, bool]:
        """Find the conversation for {user_a, user_b} or create it atomically.

        Returns (conversation, created). The unique index on pair_key makes the
        upsert safe under concurrent callers; the loser of an upsert race gets
        DuplicateKeyError and reads the winner's document instead.
        """
        key = pair_key(user_a, user_b)
        now = utc_now()
        new_id = ObjectId()
        try:
            doc = await self.collection.find_one_and_update(
                {"pair_key": key},
                {
                    "$setOnInsert": {
                        "_id": new_id,
                        "participants": [user_a, user_b],
                        "pair_key": key,
                        "last_message_id": None,
                        "last_message_at": None,
                        "created_at": now,
                        "updated_at": now,
                    }
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            logger.warning("Lost conversation upsert race for %s; re-reading", key)
            doc = await self.collection.find_one({"pair_key": key})
            return self._normalize(doc), False
        created = doc["_id"] == new_id
        return self._normalize(doc), created

    async def record_new_message(self, conversation_id: str, message_id: str, created_at: datetime) -> bool:
        """Point last_message at message_id unless a newer message already holds it.

        updated_at is bumped with $max so it never moves backwards. Returns
        False when the conversation no longer exists.
        """
        oid = to_object_id(conversation_id)
        now = utc_now()
        result = await self.collection.update_one(
            {
                "_id": oid,
                "$or": [
                    {"last_message_at": None},
                    {"last_message_at": {"$lte": created_at}},
                ],
            },
            {
                "$set": {
                    "last_message_id": to_object_id(message_id),
                    "last_message_at": created_at,
                },
                "$max": {"updated_at": now},
            },
        )
        if result.matched_count:
            return True
        # a newer message owns the pointer; still record the activity
        result = await self.collection.update_one({"_id": oid}, {"$max": {"updated_at": now}})
        return bool(result.matched_count)

    async def replace_last_message(
        self,
        conversation_id: str,
        removed_message_id: str,
        latest: Optional[Dict[str, Any]],
    ) -> bool:
        """Swap the pointer off a deleted message, only if it still points there."""
        update = {
            "last_message_id": to_object_id(latest["_id"]) if latest else None,
            "last_message_at": latest["created_at"] if latest else None,
        }
        result = await self.collection.update_one(
            {"_id": to_object_id(conversation_id), "last_message_id": to_object_id(removed_message_id)},
            {"$set": update},
        )
        return bool(result.modified_count)

    async def list_for_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> Tuple[List[ConversationDocument], Optional[str]]:
        query: Dict[str, Any] = {"participants": user_id}
        sort = [("updated_at", DESCENDING), ("_id", DESCENDING)]
        if cursor:
            # Cursor format: timestamp_ms:object_id_hex
            ts, oid = self._parse_cursor(cursor)
            query["$or"] = [
                {"updated_at": {"$lt": ts}},
                {"updated_at": ts, "_id": {"$lt": oid}},
            ]

        cursor_db = self.collection.find(query).sort(sort)
        if limit:
            cursor_db = cursor_db.limit(limit)
        items = await cursor_db.to_list(length=limit)
        items = [self._normalize(it) for it in items]
        next_cursor = None
        if limit and len(items) == limit:
            last = items[-1]
            last_ts = int(last["updated_at"].timestamp() * 1000)
            next_cursor = f"{last_ts}:{last['_id']}"
        return items, next_cursor

    async def delete(self, conversation_id: str) -> bool:
        result = await self.collection.delete_one({"_id": to_object_id(conversation_id)})
        return bool(result.deleted_count)

    async def existing_ids(self, conversation_ids: Iterable[str]) -> Set[str]:
        oids = [oid for oid in (to_object_id(c) for c in conversation_ids) if oid is not None]
        if not oids:
            return set()
        cursor = self.collection.find({"_id": {"$in": oids}}, {"_id": 1})
        return {str(doc["_id"]) async for doc in cursor}

    def _parse_cursor(self, cursor: str):
        try:
            ts_str, oid_hex = cursor.split(":", 1)
            ts = datetime.fromtimestamp(int(ts_str) / 1000.0, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            raise InvalidArgumentError("Malformed pagination cursor", field="cursor")
        oid = to_object_id(oid_hex)
        if oid is None:
            raise InvalidArgumentError("Malformed pagination cursor", field="cursor")
        return ts, oid

    @staticmethod
    def _normalize(doc: Dict[str, Any]) -> ConversationDocument:
        doc["_id"] = str(doc.get("_id"))
        if doc.get("last_message_id") is not None:
            doc["last_message_id"] = str(doc["last_message_id"])
        return doc
