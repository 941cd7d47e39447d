"""
Customer -> Agent reference handling.

``assignedAgent`` is stored as an Agent ``ObjectId``.  The reference is
not enforced: nothing stops an Agent from being deleted while customers
still point at it.  On read such a dangling reference resolves to
``None`` instead of failing.

Every place that reads or writes the reference goes through
``ReferenceResolver`` so stricter integrity rules only need to change
here.
"""
from typing import Any, Dict, List, Optional

from bson import ObjectId

from store import EntityStore, parse_id

REFERENCE_FIELD = "assignedAgent"


class InvalidReference(ValueError):
    """Raised when ``assignedAgent`` is not a well-formed Agent id."""


class ReferenceResolver:
    def __init__(self, agents: EntityStore):
        self.agents = agents

    def validate(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Return ``fields`` with ``assignedAgent`` converted for storage.

        A missing key is left missing so partial updates keep the current
        assignment.  ``None`` or an empty string unassigns.
        """
        if REFERENCE_FIELD not in fields:
            return fields
        value = fields[REFERENCE_FIELD]
        out = dict(fields)
        if value is None or value == "":
            out[REFERENCE_FIELD] = None
            return out
        if isinstance(value, ObjectId):
            return out
        oid = parse_id(value) if isinstance(value, str) else None
        if oid is None:
            raise InvalidReference(f"Invalid {REFERENCE_FIELD} reference: {value!r}")
        out[REFERENCE_FIELD] = oid
        return out

    async def resolve(self, customer: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Embed the current Agent record in place of its id."""
        if customer is None:
            return None
        agent_id = customer.get(REFERENCE_FIELD)
        resolved = dict(customer)
        resolved[REFERENCE_FIELD] = await self.agents.get_by_id(agent_id) if agent_id else None
        return resolved

    async def resolve_many(self, customers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Resolve a batch of customers with a single Agent lookup."""
        wanted = {
            oid
            for oid in (parse_id(c[REFERENCE_FIELD]) for c in customers if c.get(REFERENCE_FIELD))
            if oid is not None
        }
        agents = await self.agents.get_many(list(wanted))
        out = []
        for customer in customers:
            resolved = dict(customer)
            agent_id = customer.get(REFERENCE_FIELD)
            resolved[REFERENCE_FIELD] = agents.get(agent_id) if agent_id else None
            out.append(resolved)
        return out
