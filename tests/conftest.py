"""Shared fixtures: in-memory stand-ins for the Mongo repositories."""

import asyncio
import os
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

# never reach a real database or a real signing key from tests
os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("MONGO_DB_NAME", "rr_messaging_test")
os.environ.setdefault("JWT_SECRET", "test-secret-0123456789abcdef0123456789")

from rr_messaging.services.conversation_service import ConversationService  # noqa: E402
from rr_messaging.services.message_service import MessageService  # noqa: E402
from rr_messaging.utils.errors import InvalidArgumentError  # noqa: E402
from rr_messaging.utils.object_ids import pair_key  # noqa: E402


class _Clock:
    """Strictly increasing timestamps, one millisecond apart."""

    def __init__(self) -> None:
        self._now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(milliseconds=1)
        return self._now


class _StubUsers:

    def __init__(self) -> None:
        self.docs = {}

    def add(self, username: str, avatar=None) -> str:
        uid = str(ObjectId())
        self.docs[uid] = {"_id": uid, "username": username, "avatar": avatar}
        return uid

    async def get_user_by_id(self, user_id):
        doc = self.docs.get(user_id)
        return dict(doc) if doc else None

    async def get_public_profiles(self, user_ids):
        profiles = {}
        for uid in {str(u) for u in user_ids}:
            doc = self.docs.get(uid, {})
            profiles[uid] = {"id": uid, "username": doc.get("username"), "avatar": doc.get("avatar")}
        return profiles


class _StubConversations:

    def __init__(self, clock) -> None:
        self.docs = {}
        self._clock = clock
        self.fail_on = set()

    async def get_by_id(self, conversation_id):
        doc = self.docs.get(conversation_id)
        return dict(doc) if doc else None

    async def get_or_create_one_to_one(self, user_a, user_b):
        # yield first so concurrent callers interleave like real requests
        await asyncio.sleep(0)
        key = pair_key(user_a, user_b)
        for doc in self.docs.values():
            if doc["pair_key"] == key:
                return dict(doc), False
        now = self._clock()
        cid = str(ObjectId())
        self.docs[cid] = {
            "_id": cid,
            "participants": [user_a, user_b],
            "pair_key": key,
            "last_message_id": None,
            "last_message_at": None,
            "created_at": now,
            "updated_at": now,
        }
        return dict(self.docs[cid]), True

    async def record_new_message(self, conversation_id, message_id, created_at):
        doc = self.docs.get(conversation_id)
        if doc is None:
            return False
        now = self._clock()
        doc["updated_at"] = max(doc["updated_at"], now)
        if doc["last_message_at"] is None or doc["last_message_at"] <= created_at:
            doc["last_message_id"] = message_id
            doc["last_message_at"] = created_at
        return True

    async def replace_last_message(self, conversation_id, removed_message_id, latest):
        doc = self.docs.get(conversation_id)
        if not doc or doc["last_message_id"] != removed_message_id:
            return False
        doc["last_message_id"] = latest["_id"] if latest else None
        doc["last_message_at"] = latest["created_at"] if latest else None
        return True

    async def list_for_user(self, user_id, limit=None, cursor=None):
        if cursor:
            raise InvalidArgumentError("Malformed pagination cursor", field="cursor")
        items = [dict(d) for d in self.docs.values() if user_id in d["participants"]]
        items.sort(key=lambda d: (d["updated_at"], d["_id"]), reverse=True)
        if limit:
            items = items[:limit]
        return items, None

    async def delete(self, conversation_id):
        if "delete" in self.fail_on:
            raise AutoReconnect("connection lost")
        return self.docs.pop(conversation_id, None) is not None

    async def existing_ids(self, conversation_ids):
        return {c for c in conversation_ids if c in self.docs}


class _StubMessages:

    def __init__(self, clock) -> None:
        self.docs = {}
        self._clock = clock
        self.fail_on = set()

    async def save_message(self, conversation_id, sender_id, content):
        mid = str(ObjectId())
        self.docs[mid] = {
            "_id": mid,
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "content": content,
            "created_at": self._clock(),
            "read_by": [sender_id],
        }
        return self._copy(self.docs[mid])

    async def get_by_id(self, message_id):
        doc = self.docs.get(message_id)
        return self._copy(doc) if doc else None

    async def get_many(self, message_ids):
        return {m: self._copy(self.docs[m]) for m in message_ids if m in self.docs}

    def _in(self, conversation_id):
        return sorted(
            (d for d in self.docs.values() if d["conversation_id"] == conversation_id),
            key=lambda d: (d["created_at"], d["_id"]),
        )

    async def get_messages_by_conversation(self, conversation_id):
        return [self._copy(d) for d in self._in(conversation_id)]

    async def latest_for_conversation(self, conversation_id):
        found = self._in(conversation_id)
        return self._copy(found[-1]) if found else None

    async def mark_read(self, conversation_id, reader_id, message_ids):
        wanted = set(message_ids)
        modified = 0
        for d in self._in(conversation_id):
            if d["_id"] in wanted and reader_id not in d["read_by"]:
                d["read_by"].append(reader_id)
                modified += 1
        return modified

    async def count_unread(self, conversation_ids, reader_id):
        counts = {}
        for d in self.docs.values():
            if d["conversation_id"] in conversation_ids and reader_id not in d["read_by"]:
                counts[d["conversation_id"]] = counts.get(d["conversation_id"], 0) + 1
        return counts

    async def delete(self, message_id):
        return self.docs.pop(message_id, None) is not None

    async def delete_for_conversation(self, conversation_id):
        if "delete_for_conversation" in self.fail_on:
            raise AutoReconnect("connection lost")
        doomed = [d["_id"] for d in self._in(conversation_id)]
        for mid in doomed:
            del self.docs[mid]
        return len(doomed)

    async def conversation_ids(self):
        return sorted({d["conversation_id"] for d in self.docs.values()})

    async def delete_for_conversations(self, conversation_ids):
        doomed = [m for m, d in self.docs.items() if d["conversation_id"] in set(conversation_ids)]
        for mid in doomed:
            del self.docs[mid]
        return len(doomed)

    @staticmethod
    def _copy(doc):
        copied = dict(doc)
        copied["read_by"] = list(doc["read_by"])
        return copied


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def users():
    return _StubUsers()


@pytest.fixture
def conversation_repo(clock):
    return _StubConversations(clock)


@pytest.fixture
def message_repo(clock):
    return _StubMessages(clock)


@pytest.fixture
def conversation_service(conversation_repo, message_repo, users):
    return ConversationService(conversation_repo, message_repo, users)


@pytest.fixture
def message_service(conversation_repo, message_repo, users, conversation_service):
    return MessageService(message_repo, conversation_repo, users, conversation_service, max_length=50)


@pytest.fixture
def alice(users):
    return users.add("alice", avatar="https://cdn.example/alice.png")


@pytest.fixture
def bob(users):
    return users.add("bob")


@pytest.fixture
def carol(users):
    return users.add("carol")
