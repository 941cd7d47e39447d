"""
MongoDB access.

The client is created at import time from ``settings.database_url``.
``MongoClient`` connects lazily, so importing this module never blocks;
``check_connection`` is what the application calls at startup to fail
fast when the server is unreachable.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from config import settings

logger = logging.getLogger(__name__)

client: MongoClient = MongoClient(settings.database_url, serverSelectionTimeoutMS=5000)
db: Database = (
    client[settings.database_name]
    if settings.database_name
    else client.get_default_database("crm_db")
)


def check_connection(database: Database) -> None:
    """Ping the server behind ``database``; raises ``PyMongoError`` on failure."""
    database.command("ping")
    logger.info("Connection established to database %s", database.name)


def create_document(collection: Collection, data: Dict[str, Any]) -> ObjectId:
    """Insert ``data`` with a fresh ``createdAt`` stamp and return the new id."""
    doc = dict(data)
    doc["createdAt"] = datetime.now(timezone.utc)
    result = collection.insert_one(doc)
    return result.inserted_id


def get_documents(collection: Collection, filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    return list(collection.find(filter_dict or {}))
