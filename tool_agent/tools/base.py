"""Base types and definitions for tools."""

import json
from dataclasses import dataclass
from typing import Any, Protocol

from langchain_core.tools import BaseTool

from tool_agent.exceptions import ToolArgumentsError
from tool_agent.models.messages import ToolResult
from tool_agent.models.tools import ToolSpec


class ToolProvider(Protocol):
    """A remote endpoint hosting tools behind the tool-invocation transport."""

    name: str

    async def list_tools(self) -> list[ToolSpec]:
        """Discover the tools the provider hosts.

        Raises:
            TransportError: If the provider cannot be reached
        """
        ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Invoke ``name`` remotely.

        Raises:
            TransportError: If the call could not be delivered or answered
        """
        ...


@dataclass(frozen=True)
class RegisteredTool:
    """A registry entry: the spec plus exactly one way to run it."""

    spec: ToolSpec
    handler: BaseTool | None = None
    provider: ToolProvider | None = None

    @property
    def is_local(self) -> bool:
        return self.handler is not None


def parse_tool_arguments(raw_arguments: str) -> dict[str, Any]:
    """Decode a raw tool-call argument payload.

    An empty payload means "no arguments".

    Raises:
        ToolArgumentsError: If the payload is not a JSON object
    """
    if not raw_arguments or not raw_arguments.strip():
        return {}
    try:
        arguments = json.loads(raw_arguments)
    except json.JSONDecodeError as e:
        raise ToolArgumentsError(f"Malformed JSON arguments: {e}", raw_arguments) from e
    if not isinstance(arguments, dict):
        raise ToolArgumentsError(
            f"Tool arguments must be a JSON object, got {type(arguments).__name__}", raw_arguments
        )
    return arguments
