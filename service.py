"""
Mutation sequencing for the request handlers.

Every mutating call runs the same four steps in order:

1. apply the change through the ``EntityStore``;
2. for customers, resolve ``assignedAgent`` on the committed result;
3. broadcast that result through the notifier;
4. return the very same object to the caller.

Steps 2-4 are skipped when step 1 reports that nothing matched or raises,
so observers are only told about changes that actually happened.
"""
import logging
from typing import Any, Dict, List, Optional

from pymongo.database import Database

import notifier as events
from resolver import ReferenceResolver
from store import EntityStore

logger = logging.getLogger(__name__)


class SyncService:
    def __init__(self, database: Database, notifier):
        self.customers = EntityStore(database["customer"], "customer")
        self.agents = EntityStore(database["agent"], "agent")
        self.resolver = ReferenceResolver(self.agents)
        self.notifier = notifier

    # Customers

    async def list_customers(self) -> List[Dict[str, Any]]:
        return await self.resolver.resolve_many(await self.customers.list_all())

    async def get_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        return await self.resolver.resolve(await self.customers.get_by_id(customer_id))

    async def create_customer(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        stored = await self.customers.create(self.resolver.validate(fields))
        customer = await self.resolver.resolve(stored)
        await self.notifier.broadcast(events.CUSTOMER_ADDED, customer)
        return customer

    async def update_customer(self, customer_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        stored = await self.customers.update_by_id(customer_id, self.resolver.validate(fields))
        if stored is None:
            return None
        customer = await self.resolver.resolve(stored)
        await self.notifier.broadcast(events.CUSTOMER_UPDATED, customer)
        return customer

    async def delete_customer(self, customer_id: str) -> bool:
        deleted = await self.customers.delete_by_id(customer_id)
        if deleted:
            await self.notifier.broadcast(events.CUSTOMER_DELETED, customer_id)
        return deleted

    # Agents

    async def list_agents(self) -> List[Dict[str, Any]]:
        return await self.agents.list_all()

    async def get_agent(self, agent_id: str) -> Optional[Dict[str, Any]]:
        return await self.agents.get_by_id(agent_id)

    async def create_agent(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        agent = await self.agents.create(fields)
        await self.notifier.broadcast(events.AGENT_ADDED, agent)
        return agent

    async def update_agent(self, agent_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        agent = await self.agents.update_by_id(agent_id, fields)
        if agent is None:
            return None
        await self.notifier.broadcast(events.AGENT_UPDATED, agent)
        return agent

    async def delete_agent(self, agent_id: str) -> bool:
        # Customers that reference this agent are left as they are; their
        # reference resolves to None from now on.
        deleted = await self.agents.delete_by_id(agent_id)
        if deleted:
            await self.notifier.broadcast(events.AGENT_DELETED, agent_id)
        return deleted
