import logging
from typing import AsyncIterator, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from rr_messaging.config import get_settings


logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


async def connect_to_mongo() -> None:
    global _client
    if _client is not None:
        return
    settings = get_settings()
    # tz_aware so stored datetimes come back comparable with datetime.now(timezone.utc)
    _client = AsyncIOMotorClient(settings.mongo_url, tz_aware=True)
    logger.info("Connected to MongoDB database %s", settings.mongo_db_name)


async def close_mongo_connection() -> None:
    global _client
    if _client is None:
        return
    _client.close()
    _client = None
    logger.info("MongoDB connection closed")


def get_database() -> AsyncIOMotorDatabase:
    if _client is None:
        raise RuntimeError("MongoDB client is not connected; call connect_to_mongo() first")
    return _client[get_settings().mongo_db_name]


async def mongo_db_dependency() -> AsyncIterator[AsyncIOMotorDatabase]:
    yield get_database()
