import asyncio

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from resolver import InvalidReference
from service import SyncService
from tests.conftest import BrokenDatabase


def test_create_customer_broadcasts_response_payload(service, notifier) -> None:
    customer = asyncio.run(service.create_customer({"name": "Alice", "status": "new"}))

    assert notifier.events == [("customerAdded", customer)]
    assert customer["assignedAgent"] is None


def test_update_broadcasts_post_merge_record(service, notifier) -> None:
    async def scenario():
        created = await service.create_customer({"name": "A", "status": "new"})
        updated = await service.update_customer(created["id"], {"status": "contacted"})
        return updated

    updated = asyncio.run(scenario())

    assert updated["name"] == "A"
    assert updated["status"] == "contacted"
    assert notifier.events[-1] == ("customerUpdated", updated)
    assert len(notifier.events) == 2


def test_failed_update_does_not_broadcast(service, notifier) -> None:
    assert asyncio.run(service.update_customer(str(ObjectId()), {"status": "x"})) is None
    assert asyncio.run(service.update_agent("nope", {"status": "x"})) is None

    assert notifier.events == []


def test_invalid_reference_does_not_persist_or_broadcast(service, notifier) -> None:
    with pytest.raises(InvalidReference):
        asyncio.run(service.create_customer({"name": "Alice", "assignedAgent": "bob"}))

    assert asyncio.run(service.list_customers()) == []
    assert notifier.events == []


def test_delete_broadcasts_id_once(service, notifier) -> None:
    async def scenario():
        agent = await service.create_agent({"name": "Bob"})
        first = await service.delete_agent(agent["id"])
        second = await service.delete_agent(agent["id"])
        return agent, first, second

    agent, first, second = asyncio.run(scenario())

    assert (first, second) == (True, False)
    assert notifier.events == [("agentAdded", agent), ("agentDeleted", agent["id"])]


def test_agents_are_never_resolved(service) -> None:
    agent = asyncio.run(service.create_agent({"name": "Bob", "activeTickets": 3}))

    assert "assignedAgent" not in agent
    assert agent["activeTickets"] == 3


def test_persistence_failure_skips_broadcast(notifier) -> None:
    broken = SyncService(BrokenDatabase(), notifier)

    with pytest.raises(PyMongoError):
        asyncio.run(broken.create_agent({"name": "Bob"}))

    assert notifier.events == []


def test_dangling_agent_after_delete(service, notifier) -> None:
    async def scenario():
        bob = await service.create_agent({"name": "Bob"})
        alice = await service.create_customer({"name": "Alice", "assignedAgent": bob["id"]})
        await service.delete_agent(bob["id"])
        return bob, alice, await service.get_customer(alice["id"]), await service.list_customers()

    bob, alice, fetched, listed = asyncio.run(scenario())

    assert alice["assignedAgent"] == bob
    assert ("customerAdded", alice) in notifier.events
    assert fetched["assignedAgent"] is None
    assert listed[0]["assignedAgent"] is None
    assert [e for e, _ in notifier.events] == ["agentAdded", "customerAdded", "agentDeleted"]
