"""HTTP API over an :class:`RpcNode`: inspection, JSON-RPC and registry commands.

Endpoints:

    GET  /identity                      — this node's public key and addresses
    GET  /tools                         — locally registered tools
    GET  /services                      — active services in the shared registry
    GET  /services/{service_id}         — one active service (404 otherwise)
    GET  /providers/{address}/services  — active services of one provider
    POST /rpc/{channel}                 — run a JSON-RPC envelope through the dispatcher
    POST /commands                      — run a registry command as this node's provider
    GET  /stats                         — registry + dispatcher stats

``POST /rpc`` answers 204 for anything that is not a request (e.g. a
notification), mirroring the dispatcher's ``None``.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response

from agentrpc.node import RpcNode


def create_app(node: RpcNode) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await node.start()
        yield
        await node.stop()

    app = FastAPI(title="agentrpc", version="0.1.0", lifespan=lifespan)
    app.state.node = node

    @app.get("/identity")
    async def get_identity() -> dict:
        return node.describe()

    @app.get("/tools")
    async def list_tools() -> list[dict]:
        return node.dispatcher.list_tools()

    @app.get("/services")
    async def list_services() -> list[dict]:
        return [r.to_wire() for r in await node.registry.list_services()]

    @app.get("/services/{service_id}")
    async def get_service(service_id: str) -> dict:
        record = await node.registry.get_service_by_id(service_id)
        if record is None:
            raise HTTPException(404, f"Service not found or inactive: {service_id}")
        return record.to_wire()

    @app.get("/providers/{address}/services")
    async def provider_services(address: str) -> list[dict]:
        return [r.to_wire() for r in await node.registry.get_provider_services(address)]

    @app.post("/rpc/{channel}")
    async def rpc(channel: str, request: Request):
        body = await request.body()
        response = await node.dispatcher.handle_message(
            channel, body, {"client": request.client.host if request.client else None}
        )
        if response is None:
            return Response(status_code=204)
        return response.to_wire()

    @app.post("/commands")
    async def commands(request: Request) -> dict:
        raw = await request.body()
        try:
            command = json.loads(raw)
        except ValueError:
            command = raw.decode("utf-8", errors="replace").strip()
        result = await node.commands.execute(node.config.provider_address, command)
        return result.model_dump()

    @app.get("/stats")
    async def stats() -> dict:
        return {
            "registry": await node.registry.stats(),
            "tools": len(node.dispatcher.list_tools()),
            "node": node.describe(),
        }

    return app


def run_server(node: RpcNode, host: str = "127.0.0.1", port: int = 9100) -> None:
    """Start the inspection API (blocking)."""
    import uvicorn

    uvicorn.run(create_app(node), host=host, port=port, log_level="warning")
