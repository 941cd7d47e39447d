import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

import database as mongo
from config import settings
from logging_config import setup_logging
from notifier import ConnectionManager
from resolver import InvalidReference
from schemas import Agent, Customer
from service import SyncService

logger = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None, manager: Optional[ConnectionManager] = None) -> FastAPI:
    """Build the API around an explicit database handle and push channel.

    Both default to the process-wide instances; tests pass their own so
    every app gets an isolated store.
    """
    setup_logging(settings.log_level)

    if database is None:
        database = mongo.db
    if manager is None:
        manager = ConnectionManager()

    app = FastAPI(title=settings.project_name)
    app.state.database = database
    app.state.manager = manager
    app.state.service = SyncService(database, manager)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def check_database() -> None:
        try:
            await run_in_threadpool(mongo.check_connection, database)
        except PyMongoError:
            logger.exception("MongoDB connection failed")
            raise

    @app.exception_handler(PyMongoError)
    async def persistence_error(request: Request, exc: PyMongoError) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(InvalidReference)
    async def invalid_reference(request: Request, exc: InvalidReference) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": "Invalid assignedAgent reference"})

    _register_routes(app)
    return app


def get_service(request: Request) -> SyncService:
    return request.app.state.service


def _register_routes(app: FastAPI) -> None:
    # ----------------------
    # Core endpoints
    # ----------------------
    @app.get("/")
    def read_root():
        return {"message": "CRM sync backend running"}

    @app.get("/test")
    def test_database(request: Request):
        database = request.app.state.database
        response = {
            "backend": "Running",
            "database": "Not Available",
            "database_url": "Set" if os.getenv("DATABASE_URL") else "Not Set",
            "database_name": getattr(database, "name", None),
            "connection_status": "Not Connected",
            "collections": [],
            "observers": len(request.app.state.manager.connections),
        }
        try:
            response["collections"] = database.list_collection_names()[:10]
            response["database"] = "Connected & Working"
            response["connection_status"] = "Connected"
        except PyMongoError as e:
            response["database"] = f"Error: {str(e)[:50]}"
        return response

    # Customers
    @app.get("/api/customers")
    async def list_customers(service: SyncService = Depends(get_service)) -> List[Dict[str, Any]]:
        return await service.list_customers()

    @app.get("/api/customers/{customer_id}")
    async def get_customer(customer_id: str, service: SyncService = Depends(get_service)):
        customer = await service.get_customer(customer_id)
        if customer is None:
            raise HTTPException(status_code=404, detail="Customer not found")
        return customer

    @app.post("/api/customers")
    async def create_customer(payload: Customer, service: SyncService = Depends(get_service)):
        return await service.create_customer(payload.model_dump(exclude_unset=True))

    @app.put("/api/customers/{customer_id}")
    async def update_customer(customer_id: str, payload: Customer, service: SyncService = Depends(get_service)):
        customer = await service.update_customer(customer_id, payload.model_dump(exclude_unset=True))
        if customer is None:
            raise HTTPException(status_code=404, detail="Customer not found")
        return customer

    @app.delete("/api/customers/{customer_id}")
    async def delete_customer(customer_id: str, service: SyncService = Depends(get_service)):
        await service.delete_customer(customer_id)
        return {"message": "Customer deleted successfully"}

    # Agents
    @app.get("/api/agents")
    async def list_agents(service: SyncService = Depends(get_service)) -> List[Dict[str, Any]]:
        return await service.list_agents()

    @app.get("/api/agents/{agent_id}")
    async def get_agent(agent_id: str, service: SyncService = Depends(get_service)):
        agent = await service.get_agent(agent_id)
        if agent is None:
            raise HTTPException(status_code=404, detail="Agent not found")
        return agent

    @app.post("/api/agents")
    async def create_agent(payload: Agent, service: SyncService = Depends(get_service)):
        return await service.create_agent(payload.model_dump(exclude_unset=True))

    @app.put("/api/agents/{agent_id}")
    async def update_agent(agent_id: str, payload: Agent, service: SyncService = Depends(get_service)):
        agent = await service.update_agent(agent_id, payload.model_dump(exclude_unset=True))
        if agent is None:
            raise HTTPException(status_code=404, detail="Agent not found")
        return agent

    @app.delete("/api/agents/{agent_id}")
    async def delete_agent(agent_id: str, service: SyncService = Depends(get_service)):
        await service.delete_agent(agent_id)
        return {"message": "Agent deleted successfully"}

    # WebSocket push channel; clients only listen
    @app.websocket("/ws")
    async def ws_changes(websocket: WebSocket):
        manager = websocket.app.state.manager
        client_id = await manager.connect(websocket)
        try:
            while True:
                # Keep connection alive; clients may send ping
                await websocket.receive_text()
        except WebSocketDisconnect:
            manager.disconnect(client_id)


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
