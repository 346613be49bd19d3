import logging
import traceback
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie

from .core.config import Settings, get_settings
from .message.models import Message
from .group.models import Group

# 데이터베이스 객체 export
__all__ = ["get_database", "init_db"]

_client: Optional[AsyncIOMotorClient] = None


def get_client(settings: Optional[Settings] = None) -> AsyncIOMotorClient:
    """MongoDB 클라이언트를 반환합니다. (최초 호출 시 생성)"""
    global _client
    if _client is None:
        settings = settings or get_settings()
        _client = AsyncIOMotorClient(settings.MONGODB_URL, **settings.get_mongodb_settings())
    return _client


def get_database(settings: Optional[Settings] = None):
    settings = settings or get_settings()
    return get_client(settings)[settings.DATABASE_NAME]


async def init_db(settings: Optional[Settings] = None):
    """데이터베이스 초기화"""
    try:
        db = get_database(settings)
        await init_beanie(database=db, document_models=[Message, Group])
        logging.info("Database initialized successfully with beanie ODM")

        await db.client.admin.command("ping")
        logging.info("Successfully connected to MongoDB")
        return db
    except Exception as e:
        logging.error(f"Failed to initialize database: {e}")
        logging.error(f"Traceback: {traceback.format_exc()}")
        raise


def close_db() -> None:
    """MongoDB 클라이언트를 닫습니다."""
    global _client
    if _client is not None:
        _client.close()
        _client = None
