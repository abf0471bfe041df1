"""
MongoDB Connection Utility

MongoDB stores:
- Text extracted from uploaded CVs
- Public search events (feeds search analytics)

Both are schema-flexible, append-mostly documents with no joins.
"""
import logging

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.collection import Collection

from jobboard.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=3000)
    return _client


def get_mongo_db() -> Database:
    """Get the jobboard_docs database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def set_mongo_client(client: MongoClient) -> None:
    """Replace the shared client, e.g. with mongomock in tests."""
    global _client, _db
    _client = client
    _db = None


def get_collection(name: str) -> Collection:
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except Exception as e:
        logger.error("MongoDB connection failed: %s", e)
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "cv_documents": "cv_documents",
    "search_events": "search_events",
}


def init_mongo_indexes():
    """
    Create indexes for better query performance.
    Call this once during app startup.
    """
    db = get_mongo_db()

    db[COLLECTIONS["cv_documents"]].create_index("job_seeker_id")
    db[COLLECTIONS["search_events"]].create_index("created_at")

    logger.info("MongoDB indexes created successfully")
