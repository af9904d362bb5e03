import logging
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, TEXT

from config import settings
from errors import ValidationFailed

logger = logging.getLogger(__name__)

USERS = "user"
COURSES = "course"

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def get_db() -> AsyncIOMotorDatabase:
    """FastAPI dependency returning the shared database handle."""
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(settings.DATABASE_URL)
        _db = _client[settings.DATABASE_NAME]
    return _db


def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
    _client = None
    _db = None


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    # Unique email for users
    await db[USERS].create_index([("email", ASCENDING)], unique=True)
    # Newest-first listing and the catalogue text index
    await db[COURSES].create_index([("created_at", DESCENDING)])
    await db[COURSES].create_index(
        [("title", TEXT), ("description", TEXT), ("category", TEXT)],
        name="course_text",
    )
    logger.info("Indexes ensured on %s", db.name)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationFailed("Invalid id")


def to_str_id(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


async def create_document(db: AsyncIOMotorDatabase, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    now = utcnow()
    data_to_insert = {**data, "created_at": now, "updated_at": now}
    result = await db[collection_name].insert_one(data_to_insert)
    inserted = await db[collection_name].find_one({"_id": result.inserted_id})
    return inserted or {}


async def get_documents(
    db: AsyncIOMotorDatabase,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    projection: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    filter_dict = filter_dict or {}
    cursor = db[collection_name].find(filter_dict, projection)
    docs: List[Dict[str, Any]] = []
    async for doc in cursor:
        docs.append(doc)
    return docs
