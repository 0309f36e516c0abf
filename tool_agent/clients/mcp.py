"""MCP client for tools hosted by remote tool servers."""

import asyncio
from contextlib import AsyncExitStack
from typing import Any

from mcp import ClientSession
from mcp.client.sse import sse_client

from tool_agent.exceptions import TransportError
from tool_agent.models.config import ServerAddress
from tool_agent.models.messages import ToolErrorKind, ToolResult
from tool_agent.models.tools import ToolSpec
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

CLIENT_NAME = "tool-agent"


def content_to_text(content: list[Any]) -> str:
    """Flatten MCP content items into plain text."""
    parts: list[str] = []
    for item in content or []:
        if getattr(item, "text", None) is not None:
            parts.append(item.text)
        elif getattr(item, "data", None) is not None:
            parts.append(f"[Binary data: {len(item.data)} bytes]")
        else:
            parts.append(str(item))
    return "\n".join(parts)


class McpToolProvider:
    """A connected MCP server whose tools the registry can route to."""

    def __init__(self, address: ServerAddress, timeout: float = 5.0):
        self.address = address
        self.name = address.name
        self.timeout = timeout
        self._session: ClientSession | None = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self, stack: AsyncExitStack) -> None:
        """Open the SSE transport and initialize the MCP session.

        The connection lives as long as ``stack``.

        Raises:
            TransportError: If the server cannot be reached or initialized
        """
        logger.info(f"Connecting to tool server {self.name!r} at {self.address.url}")
        try:
            read_stream, write_stream = await stack.enter_async_context(
                sse_client(self.address.url, timeout=self.timeout)
            )
            session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
            await asyncio.wait_for(session.initialize(), timeout=self.timeout)
        except Exception as e:
            raise TransportError(f"Failed to connect to '{self.name}' at {self.address.url}: {e}", self.name) from e
        self._session = session

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise TransportError(f"Tool server '{self.name}' is not connected", self.name)
        return self._session

    async def list_tools(self) -> list[ToolSpec]:
        session = self._require_session()
        try:
            response = await session.list_tools()
        except Exception as e:
            raise TransportError(f"Failed to list tools on '{self.name}': {e}", self.name) from e

        return [
            ToolSpec(name=tool.name, description=tool.description or "", parameters=tool.inputSchema)
            for tool in response.tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        session = self._require_session()
        logger.info(f"Calling tool {name!r} on server {self.name!r}")
        try:
            result = await session.call_tool(name, arguments)
        except Exception as e:
            raise TransportError(f"Call to '{name}' on '{self.name}' failed: {e}", self.name) from e

        text = content_to_text(result.content)
        if result.isError:
            return ToolResult.failure(ToolErrorKind.TRANSPORT_ERROR, text or f"Tool '{name}' reported an error")
        return ToolResult.success(text or "(no output)")


async def connect_providers(
    addresses: list[ServerAddress], stack: AsyncExitStack, timeout: float = 5.0
) -> list[McpToolProvider]:
    """Connect to every reachable server; unreachable ones are logged and skipped."""
    providers = []
    for address in addresses:
        provider = McpToolProvider(address, timeout=timeout)
        try:
            await provider.connect(stack)
        except TransportError as e:
            logger.error(str(e))
            continue
        providers.append(provider)
    return providers
