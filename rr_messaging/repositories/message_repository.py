from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from rr_messaging.models.message import MessageDocument
from rr_messaging.utils.object_ids import to_object_id
from rr_messaging.utils.timestamps import utc_now


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index(
            [("conversation_id", ASCENDING), ("created_at", ASCENDING), ("_id", ASCENDING)]
        )
        await self.collection.create_index([("sender_id", ASCENDING)])

    async def save_message(self, conversation_id: str, sender_id: str, content: str) -> MessageDocument:
        doc: Dict[str, Any] = {
            "conversation_id": to_object_id(conversation_id),
            "sender_id": sender_id,
            "content": content,
            "created_at": utc_now(),
            # the author has read what they wrote
            "read_by": [sender_id],
        }
        result = await self.collection.insert_one(doc)
        return self._normalize(dict(doc, _id=result.inserted_id))

    async def get_by_id(self, message_id: str) -> Optional[MessageDocument]:
        oid = to_object_id(message_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return self._normalize(doc) if doc else None

    async def get_many(self, message_ids: Iterable[str]) -> Dict[str, MessageDocument]:
        oids = [oid for oid in (to_object_id(m) for m in message_ids) if oid is not None]
        if not oids:
            return {}
        items = await self.collection.find({"_id": {"$in": oids}}).to_list(length=None)
        return {it["_id"]: it for it in (self._normalize(doc) for doc in items)}

    async def get_messages_by_conversation(self, conversation_id: str) -> List[MessageDocument]:
        cur = self.collection.find({"conversation_id": to_object_id(conversation_id)}).sort(
            [("created_at", ASCENDING), ("_id", ASCENDING)]
        )
        items = await cur.to_list(length=None)
        return [self._normalize(it) for it in items]

    async def latest_for_conversation(self, conversation_id: str) -> Optional[MessageDocument]:
        cur = (
            self.collection.find({"conversation_id": to_object_id(conversation_id)})
            .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            .limit(1)
        )
        items = await cur.to_list(length=1)
        return self._normalize(items[0]) if items else None

    async def mark_read(self, conversation_id: str, reader_id: str, message_ids: Iterable[str]) -> int:
        """Add reader_id to read_by of the given messages only."""
        oids = [oid for oid in (to_object_id(m) for m in message_ids) if oid is not None]
        if not oids:
            return 0
        result = await self.collection.update_many(
            {
                "conversation_id": to_object_id(conversation_id),
                "_id": {"$in": oids},
                "read_by": {"$ne": reader_id},
            },
            {"$addToSet": {"read_by": reader_id}},
        )
        return result.modified_count or 0

    async def count_unread(self, conversation_ids: Iterable[str], reader_id: str) -> Dict[str, int]:
        oids = [oid for oid in (to_object_id(c) for c in conversation_ids) if oid is not None]
        if not oids:
            return {}
        pipeline = [
            {"$match": {"conversation_id": {"$in": oids}, "read_by": {"$ne": reader_id}}},
            {"$group": {"_id": "$conversation_id", "count": {"$sum": 1}}},
        ]
        counts: Dict[str, int] = {}
        async for row in self.collection.aggregate(pipeline):
            counts[str(row["_id"])] = row["count"]
        return counts

    async def delete(self, message_id: str) -> bool:
        result = await self.collection.delete_one({"_id": to_object_id(message_id)})
        return bool(result.deleted_count)

    async def delete_for_conversation(self, conversation_id: str) -> int:
        result = await self.collection.delete_many({"conversation_id": to_object_id(conversation_id)})
        return result.deleted_count or 0

    async def conversation_ids(self) -> List[str]:
        ids = await self.collection.distinct("conversation_id")
        return [str(i) for i in ids]

    async def delete_for_conversations(self, conversation_ids: Iterable[str]) -> int:
        oids = [oid for oid in (to_object_id(c) for c in conversation_ids) if oid is not None]
        if not oids:
            return 0
        result = await self.collection.delete_many({"conversation_id": {"$in": oids}})
        return result.deleted_count or 0

    @staticmethod
    def _normalize(doc: Dict[str, Any]) -> MessageDocument:
        doc["_id"] = str(doc.get("_id"))
        doc["conversation_id"] = str(doc.get("conversation_id"))
        return doc
