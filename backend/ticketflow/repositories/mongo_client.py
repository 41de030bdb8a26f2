"""MongoDB Client - Connection and Collection Management"""
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
        # Test connection
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str, db: Optional[Database] = None) -> Collection:
    """Get a collection from the given database (application database by default)"""
    if db is None:
        db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes(db: Optional[Database] = None) -> None:
    """Create all required indexes"""
    if db is None:
        db = get_database()
    logger.info("Creating MongoDB indexes...")

    # Catalog
    workflows = db["workflows"]
    workflows.create_index("workflow_id", unique=True)
    workflows.create_index("is_default")

    departments = db["departments"]
    departments.create_index("department_id", unique=True)
    departments.create_index("name")

    # Tickets
    tickets = db["tickets"]
    tickets.create_index("ticket_id", unique=True)
    tickets.create_index([("department", ASCENDING), ("status", ASCENDING)])
    tickets.create_index("status")
    tickets.create_index("priority")
    tickets.create_index("created_at", background=True)

    # Append-only audit collections
    history = db["ticket_history"]
    history.create_index("history_id", unique=True)
    history.create_index([("ticket_id", ASCENDING), ("changed_at", DESCENDING)])

    resolutions = db["workflow_resolutions"]
    resolutions.create_index("resolution_id", unique=True)
    resolutions.create_index([("ticket_id", ASCENDING), ("resolved_at", DESCENDING)])

    # Attachments
    attachments = db["attachments"]
    attachments.create_index("attachment_id", unique=True)
    attachments.create_index("ticket_id")

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
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
