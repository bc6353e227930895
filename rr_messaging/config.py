"""Application settings, read from the environment (and an optional .env file)."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # MongoDB
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db_name: str = "rr_messaging"

    # Tokens are issued by the auth service; we only verify them.
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"

    # Messaging
    message_max_length: int = 5000
    conversation_page_max: int = 100

    # Maintenance
    reconcile_on_startup: bool = False
    admin_token: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
