"""MongoDB Client - Async connection and index management using Motor"""
from typing import Any, Dict, Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from ..config.settings import Settings, settings as default_settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


def get_client(settings: Optional[Settings] = None) -> AsyncIOMotorClient:
    """Get or create the async MongoDB client"""
    global _client
    settings = settings or default_settings
    if _client is None:
        logger.info(f"Creating async MongoDB client for: {settings.mongo_uri}")
        _client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
            tz_aware=True,
        )
    return _client


def get_database(settings: Optional[Settings] = None) -> AsyncIOMotorDatabase:
    """Get the application database"""
    global _database
    settings = settings or default_settings
    if _database is None:
        _database = get_client(settings)[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


async def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


async def create_indexes(db: AsyncIOMotorDatabase, content_collections: Optional[list] = None) -> None:
    """Create all required indexes"""
    logger.info("Creating MongoDB indexes...")

    # Workflows collection
    workflows = db["workflows"]
    await workflows.create_index("is_active")
    await workflows.create_index("applicable_collections")
    await workflows.create_index([("created_at", ASCENDING), ("id", ASCENDING)])

    # Workflow log collection
    logs = db["workflow_logs"]
    await logs.create_index([
        ("document.collection", ASCENDING),
        ("document.id", ASCENDING),
        ("timestamp", ASCENDING),
        ("sequence", ASCENDING),
    ])
    await logs.create_index([("workflow", ASCENDING), ("timestamp", DESCENDING)])
    await logs.create_index([("user", ASCENDING), ("timestamp", DESCENDING)])
    await logs.create_index([("action", ASCENDING), ("timestamp", ASCENDING)])
    await logs.create_index("metadata.assignees")

    # Users collection
    users = db["users"]
    await users.create_index("role")
    await users.create_index("department")
    await users.create_index("email")

    # Content collections carry workflow progress
    for name in content_collections or []:
        await db[name].create_index("workflow")
        await db[name].create_index("workflow_status.is_completed")

    logger.info("MongoDB indexes created successfully")


async def health_check(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Check MongoDB health"""
    settings = settings or default_settings
    try:
        await get_client(settings).admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }
