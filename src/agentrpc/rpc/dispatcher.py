"""Tool Dispatcher — JSON-RPC 2.0 requests in, response envelopes out.

    dispatcher = ToolDispatcher()
    dispatcher.register_tool("calc.add", add, {"priceInTNK": "0.1", "category": "math"})

    await dispatcher.handle_message("rpc", '{"jsonrpc":"2.0","method":"calc.add","params":[5,3],"id":1}')
    # -> RpcResponse(jsonrpc="2.0", result=8, id=1)

Anything that is not a JSON-RPC request (other traffic on the channel,
notifications without ``id``) yields ``None`` so several consumers can
share one transport.  Handlers run concurrently and are not timed out.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

from agentrpc.core.errors import HandlerFailure, MethodNotFound
from agentrpc.core.logging import get_logger
from agentrpc.core.tool import Tool
from agentrpc.core.types import (
    JSONRPC_VERSION,
    RpcError,
    RpcErrorResponse,
    RpcRequest,
    RpcResponse,
    ToolMetadata,
)
from agentrpc.rpc.bridge import RegistryPublisher

logger = get_logger(__name__)


def parse_json_rpc(payload: Any) -> RpcRequest | None:
    """Return the request, or ``None`` when *payload* is not a JSON-RPC request."""
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except ValueError:
            return None
    else:
        data = payload
    if not isinstance(data, dict):
        return None

    if data.get("jsonrpc") != JSONRPC_VERSION:
        return None
    if not isinstance(data.get("method"), str):
        return None
    if "id" not in data:
        return None  # notification
    return RpcRequest(method=data["method"], params=data.get("params") or [], id=data["id"])


def _error(err: MethodNotFound | HandlerFailure, request_id: Any) -> RpcErrorResponse:
    return RpcErrorResponse(error=RpcError(code=err.rpc_code, message=err.message), id=request_id)


class ToolDispatcher:
    def __init__(
        self,
        enabled_channels: list[str] | None = None,
        publisher: RegistryPublisher | None = None,
        auto_publish: bool = True,
    ) -> None:
        self.enabled_channels = list(enabled_channels) if enabled_channels is not None else None
        self.publisher = publisher
        self.auto_publish = auto_publish
        self._tools: dict[str, Tool] = {}
        self._pending: set[asyncio.Task] = set()
        self.running = False

    # ── Registration ─────────────────────────────────────────────────────

    def register_tool(
        self,
        method: str,
        handler: Callable | Tool,
        metadata: ToolMetadata | dict | None = None,
    ) -> Tool:
        """Add or replace *method*; raises ``InvalidHandler`` for unusable handlers."""
        if isinstance(handler, Tool):
            tool = Tool(handler.fn, method=method, metadata=metadata or handler.metadata)
        else:
            tool = Tool(handler, method=method, metadata=metadata)
        self._tools[method] = tool
        logger.debug("tool_registered", method=method, service_id=tool.metadata.service_id)
        self._schedule_publication(tool)
        return tool

    def _schedule_publication(self, tool: Tool) -> None:
        if self.publisher is None or not self.auto_publish:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("publication_skipped", method=tool.method, reason="no running event loop")
            return
        task = loop.create_task(self._publish(tool))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, tool: Tool) -> None:
        try:
            await self.publisher.publish(tool.method, tool.metadata)
        except Exception as e:
            logger.warning("publication_failed", method=tool.method, error=str(e))

    def get_tool(self, method: str) -> Tool | None:
        return self._tools.get(method)

    def list_tools(self) -> list[dict]:
        return [t.info.to_wire() for t in list(self._tools.values())]

    # ── Dispatch ─────────────────────────────────────────────────────────

    async def handle_message(
        self,
        channel: str,
        payload: Any,
        connection: Any = None,
    ) -> RpcResponse | RpcErrorResponse | None:
        if self.enabled_channels is not None and channel not in self.enabled_channels:
            return None

        request = parse_json_rpc(payload)
        if request is None:
            return None
        logger.debug("rpc_request", channel=channel, method=request.method, id=request.id)

        tool = self._tools.get(request.method)
        if tool is None:
            return _error(MethodNotFound(f"Method not found: {request.method}"), request.id)

        try:
            result = await tool.invoke(request.params)
        except Exception as e:
            logger.debug("rpc_handler_failed", channel=channel, method=request.method, error=str(e))
            return _error(HandlerFailure(str(e) or "Internal error"), request.id)

        logger.debug("rpc_executed", channel=channel, method=request.method)
        return RpcResponse(result=result, id=request.id)

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start(self) -> None:
        self.running = True
        logger.info("dispatcher_started", tools=len(self._tools))

    async def drain(self) -> None:
        """Wait for outstanding registry publications."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def stop(self) -> None:
        await self.drain()
        self.running = False
        logger.info("dispatcher_stopped")
