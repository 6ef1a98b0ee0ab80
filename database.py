import os
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError, WriteError

from errors import StoreFailure, ValidationError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Collection names, one per entity
CATEGORY = "category"
PRODUCT = "product"

db: Optional[Database] = None
if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL, tz_aware=True)
    db = _client[DATABASE_NAME]


def get_db() -> Database:
    """FastAPI dependency returning the long-lived store handle."""
    if db is None:
        raise StoreFailure("Database not configured")
    return db


def ensure_indexes(database: Database) -> None:
    database[CATEGORY].create_index([("name", ASCENDING)], unique=True)
    database[PRODUCT].create_index([("category", ASCENDING)])


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def now() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def store_read():
    """Turn unexpected store errors into a StoreFailure."""
    try:
        yield
    except PyMongoError as e:
        logger.exception("Store read failed")
        raise StoreFailure(str(e)) from e


@contextmanager
def store_write():
    """Like store_read, but a rejected write is the client's fault."""
    try:
        yield
    except WriteError as e:
        message = (e.details or {}).get("errmsg") or str(e)
        logger.warning("Store rejected write: %s", message)
        raise ValidationError(message) from e
    except PyMongoError as e:
        logger.exception("Store write failed")
        raise StoreFailure(str(e)) from e


def create_document(database: Database, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    stamp = now()
    doc = {**data, "createdAt": stamp, "updatedAt": stamp}
    result = database[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
    skip: int = 0,
    limit: int = 0,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Expose ``_id`` as ``id`` and stringify top-level ObjectId values.

    Nested values are returned as stored.
    """
    out = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        elif isinstance(value, ObjectId):
            out[key] = str(value)
        else:
            out[key] = value
    return out
