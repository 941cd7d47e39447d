"""
Push channel for store changes.

``ConnectionManager`` keeps the list of live WebSocket observers and
fans every change out to all of them as ``{"type": event, "data": payload}``.
Delivery is fire-and-forget: nothing is queued for observers that are
not connected, and an observer whose send fails is dropped.
"""
import logging
import uuid
from typing import Any, Dict, List

from fastapi import WebSocket

logger = logging.getLogger(__name__)

CUSTOMER_ADDED = "customerAdded"
CUSTOMER_UPDATED = "customerUpdated"
CUSTOMER_DELETED = "customerDeleted"
AGENT_ADDED = "agentAdded"
AGENT_UPDATED = "agentUpdated"
AGENT_DELETED = "agentDeleted"

EVENTS = (
    CUSTOMER_ADDED,
    CUSTOMER_UPDATED,
    CUSTOMER_DELETED,
    AGENT_ADDED,
    AGENT_UPDATED,
    AGENT_DELETED,
)


class ConnectionManager:
    def __init__(self):
        self.active: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        client_id = uuid.uuid4().hex
        self.active[client_id] = websocket
        logger.info("Client connected: %s", client_id)
        return client_id

    def disconnect(self, client_id: str) -> None:
        if self.active.pop(client_id, None) is not None:
            logger.info("Client disconnected: %s", client_id)

    async def broadcast(self, event: str, payload: Any) -> None:
        """Send ``payload`` under ``event`` to every connected observer."""
        message = {"type": event, "data": payload}
        for client_id, ws in list(self.active.items()):
            try:
                await ws.send_json(message)
            except Exception:
                logger.warning("Dropping client %s after failed %s delivery", client_id, event, exc_info=True)
                self.disconnect(client_id)

    @property
    def connections(self) -> List[str]:
        return list(self.active)
