"""MCP server exposing the local tools over SSE."""

import asyncio
import json
from typing import Any

import mcp.types as types
from fastapi import FastAPI, Request
from mcp.server.lowlevel import Server
from mcp.server.sse import SseServerTransport
from starlette.responses import Response

from tool_agent.exceptions import ToolCallFailedError
from tool_agent.models.messages import ToolErrorKind, ToolResult
from tool_agent.tools.registry import ToolsRegistry
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

SERVER_NAME = "tool-agent"
MESSAGES_PATH = "/messages/"


def list_mcp_tools(registry: ToolsRegistry) -> list[types.Tool]:
    """Describe the local tools in MCP terms."""
    return [
        types.Tool(name=spec.name, description=spec.description, inputSchema=spec.parameters)
        for spec in registry.list(local_only=True)
    ]


async def call_mcp_tool(
    registry: ToolsRegistry, lock: asyncio.Lock, name: str, arguments: dict[str, Any] | None
) -> list[types.TextContent]:
    """Run a local tool for a remote client.

    Raises:
        ToolCallFailedError: If the call did not succeed; the MCP server
            reports it to the client as an error result
    """
    if not registry.has_tool(name) or registry.provider_for(name) is not None:
        result = ToolResult.failure(ToolErrorKind.NOT_FOUND, f"Unknown tool '{name}'")
    else:
        async with lock:
            result = await registry.invoke(name, json.dumps(arguments or {}))

    logger.info(f"Served tool call {name}: {'ok' if result.ok else result.error_kind}")
    if not result.ok:
        raise ToolCallFailedError(result.render(), name)
    return [types.TextContent(type="text", text=result.content)]


def create_mcp_server(registry: ToolsRegistry) -> Server:
    """Create the low-level MCP server backed by ``registry``."""
    server = Server(SERVER_NAME)
    lock = asyncio.Lock()

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return list_mcp_tools(registry)

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
        return await call_mcp_tool(registry, lock, name, arguments)

    return server


def mount_mcp_server(app: FastAPI, server: Server) -> None:
    """Add the SSE transport routes (``GET /sse``, ``POST /messages/``) to ``app``."""
    transport = SseServerTransport(MESSAGES_PATH)

    async def handle_sse(request: Request) -> Response:
        async with transport.connect_sse(request.scope, request.receive, request._send) as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
        return Response()

    app.add_api_route("/sse", handle_sse, methods=["GET"], include_in_schema=False)
    app.mount(MESSAGES_PATH, app=transport.handle_post_message)
