import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rr_messaging.config import get_settings
from rr_messaging.database.connection import close_mongo_connection, connect_to_mongo, get_database
from rr_messaging.repositories.conversation_repository import ConversationRepository
from rr_messaging.repositories.message_repository import MessageRepository
from rr_messaging.repositories.user_repository import UserRepository
from rr_messaging.routers.admin import router as admin_router
from rr_messaging.routers.conversations import router as conversations_router
from rr_messaging.routers.messages import router as messages_router
from rr_messaging.services.conversation_service import ConversationService
from rr_messaging.utils.error_handlers import register_error_handlers
from rr_messaging.utils.observability import setup_logging


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    await connect_to_mongo()
    try:
        db = get_database()
        convo_repo = ConversationRepository(db)
        msg_repo = MessageRepository(db)
        await convo_repo.ensure_indexes()
        await msg_repo.ensure_indexes()
        if settings.reconcile_on_startup:
            await ConversationService(convo_repo, msg_repo, UserRepository(db)).purge_orphaned_messages()
        logger.info("Indexes ensured; serving requests")
        yield
    finally:
        await close_mongo_connection()


app = FastAPI(title="RR Messaging", lifespan=lifespan)

register_error_handlers(app)

app.include_router(conversations_router)
app.include_router(messages_router)
app.include_router(admin_router)


@app.get("/")
async def root():

    db = get_database()
    await db.command("ping")
    return {"message": "Connected to MongoDB!", "database": db.name}
