"""
Entity store for Customer and Agent records.

Each ``EntityStore`` wraps one MongoDB collection.  Methods are
coroutines: the blocking pymongo calls run in the threadpool so that a
request handler suspends on store I/O instead of blocking the event
loop.

A missing record is a normal outcome and is reported as ``None`` (or
``False`` for deletes).  Driver errors are not caught here.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi.concurrency import run_in_threadpool
from pymongo import ReturnDocument
from pymongo.collection import Collection

from database import create_document, get_documents

logger = logging.getLogger(__name__)

# Fields owned by the store; never taken from caller input.
PROTECTED_FIELDS = {"_id", "id", "createdAt"}


def parse_id(id_str: str) -> Optional[ObjectId]:
    """Return ``id_str`` as an ``ObjectId``, or ``None`` if it is not one."""
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convert a stored document into its JSON-shaped API form."""
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
        elif isinstance(v, datetime):
            # pymongo hands back naive datetimes that are already UTC
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            d[k] = v.astimezone(timezone.utc).isoformat()
    return d


def _writable(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in PROTECTED_FIELDS}


class EntityStore:
    """CRUD access to one entity kind."""

    def __init__(self, collection: Collection, kind: str):
        self.collection = collection
        self.kind = kind

    async def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new record and return it as stored."""
        return await run_in_threadpool(self._create, fields)

    async def list_all(self) -> List[Dict[str, Any]]:
        return await run_in_threadpool(self._list_all)

    async def get_by_id(self, id_str: str) -> Optional[Dict[str, Any]]:
        return await run_in_threadpool(self._get_by_id, id_str)

    async def get_many(self, ids: List[ObjectId]) -> Dict[str, Dict[str, Any]]:
        """Fetch every record whose id is in ``ids``, keyed by string id."""
        return await run_in_threadpool(self._get_many, ids)

    async def update_by_id(self, id_str: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Merge ``fields`` into the record; omitted fields keep their values.

        Returns the post-merge record, or ``None`` if no record has this id.
        """
        return await run_in_threadpool(self._update_by_id, id_str, fields)

    async def delete_by_id(self, id_str: str) -> bool:
        """Remove the record permanently.  ``False`` means nothing matched."""
        return await run_in_threadpool(self._delete_by_id, id_str)

    def _create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        new_id = create_document(self.collection, _writable(fields))
        doc = self.collection.find_one({"_id": new_id})
        logger.info("Created %s %s", self.kind, new_id)
        return serialize(doc)

    def _list_all(self) -> List[Dict[str, Any]]:
        return [serialize(doc) for doc in get_documents(self.collection)]

    def _get_by_id(self, id_str: str) -> Optional[Dict[str, Any]]:
        oid = parse_id(id_str)
        if oid is None:
            return None
        return serialize(self.collection.find_one({"_id": oid}))

    def _get_many(self, ids: List[ObjectId]) -> Dict[str, Dict[str, Any]]:
        if not ids:
            return {}
        docs = get_documents(self.collection, {"_id": {"$in": list(ids)}})
        return {str(doc["_id"]): serialize(doc) for doc in docs}

    def _update_by_id(self, id_str: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        oid = parse_id(id_str)
        if oid is None:
            return None
        changes = _writable(fields)
        if not changes:
            # Mongo rejects an empty $set
            return serialize(self.collection.find_one({"_id": oid}))
        doc = self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return None
        logger.info("Updated %s %s fields=%s", self.kind, id_str, sorted(changes))
        return serialize(doc)

    def _delete_by_id(self, id_str: str) -> bool:
        oid = parse_id(id_str)
        if oid is None:
            return False
        result = self.collection.delete_one({"_id": oid})
        if result.deleted_count:
            logger.info("Deleted %s %s", self.kind, id_str)
        return result.deleted_count > 0
