"""
Database connection

One MongoClient per process, created from DATABASE_URL / DATABASE_NAME.
Every stored document carries `created_at` and `updated_at`; repositories
refresh `updated_at` on each write.
`db` is None when the database is not configured; the health route reports it.
"""
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from config import get_settings
from errors import InternalError

ITEMS_COLLECTION = "items"
CATEGORIES_COLLECTION = "categories"

_client: Optional[MongoClient] = None
db: Optional[Database] = None


def connect() -> Optional[Database]:
    global _client, db

    settings = get_settings()
    if not settings.database_url or not settings.database_name:
        return None

    timeout_ms = int(settings.http_timeout_seconds * 1000)
    _client = MongoClient(
        settings.database_url,
        serverSelectionTimeoutMS=timeout_ms,
        connectTimeoutMS=timeout_ms,
        socketTimeoutMS=timeout_ms,
    )
    db = _client[settings.database_name]
    return db


def close() -> None:
    global _client, db
    if _client is not None:
        _client.close()
    _client = None
    db = None


def get_collection(collection_name: str) -> Collection:
    if db is None:
        raise InternalError(
            "database not available",
            RuntimeError("check DATABASE_URL and DATABASE_NAME environment variables"),
        )
    return db[collection_name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection: Collection, data: Union[BaseModel, dict]) -> Optional[str]:
    """Insert one document, stamping created/updated times; returns the new id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)

    now = utcnow()
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now

    result = collection.insert_one(data_dict)
    if result.inserted_id is None:
        return None
    return str(result.inserted_id)


def get_documents(collection: Collection, filter_dict: Optional[dict] = None):
    return list(collection.find(filter_dict or {}))
