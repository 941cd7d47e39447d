import copy
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from main import create_app
from notifier import ConnectionManager
from service import SyncService


def _matches(doc, flt):
    for key, cond in flt.items():
        value = doc.get(key)
        if isinstance(cond, dict) and "$in" in cond:
            if value not in cond["$in"]:
                return False
        elif value != cond:
            return False
    return True


class FakeCollection:
    """In-memory stand-in for the parts of ``pymongo.collection.Collection`` the store uses."""

    def __init__(self, name):
        self.name = name
        self.docs = []

    def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    def find(self, flt=None):
        return [copy.deepcopy(d) for d in self.docs if _matches(d, flt or {})]

    def find_one(self, flt):
        found = self.find(flt)
        return found[0] if found else None

    def find_one_and_update(self, flt, update, return_document=None):
        for doc in self.docs:
            if _matches(doc, flt):
                doc.update(copy.deepcopy(update["$set"]))
                return copy.deepcopy(doc)
        return None

    def delete_one(self, flt):
        for i, doc in enumerate(self.docs):
            if _matches(doc, flt):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FakeDatabase:
    name = "crm_test"

    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection(name))

    def command(self, cmd):
        return {"ok": 1.0}

    def list_collection_names(self):
        return list(self.collections)


class BrokenCollection(FakeCollection):
    def _fail(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("127.0.0.1:27017: connection refused")

    insert_one = find = find_one = find_one_and_update = delete_one = _fail


class BrokenDatabase(FakeDatabase):
    """Reachable at startup, but every collection call fails."""

    def __getitem__(self, name):
        return self.collections.setdefault(name, BrokenCollection(name))


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def broadcast(self, event, payload):
        self.events.append((event, payload))


@pytest.fixture
def database():
    return FakeDatabase()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(database, notifier):
    return SyncService(database, notifier)


@pytest.fixture
def client(database):
    app = create_app(database=database, manager=ConnectionManager())
    with TestClient(app) as test_client:
        yield test_client
