"""Tools registry for routing tool invocations."""

from __future__ import annotations

from langchain_core.tools import BaseTool
from pydantic import ValidationError

from tool_agent.exceptions import ToolArgumentsError, TransportError
from tool_agent.models.messages import ToolErrorKind, ToolResult
from tool_agent.models.tools import ToolSpec
from tool_agent.services.executor import CommandExecutor
from tool_agent.services.safety import DEFAULT_POLICY, CommandPolicy
from tool_agent.tools.base import RegisteredTool, ToolProvider, parse_tool_arguments
from tool_agent.tools.shell_command import create_shell_command_tool
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)


class ToolsRegistry:
    """Maps tool names to local handlers or remote providers.

    The registry is filled at startup and read-only while the agent loop runs.
    ``invoke`` never raises: every failure comes back as a ``ToolResult``.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(self, spec: ToolSpec, handler_or_provider: BaseTool | ToolProvider) -> None:
        """Register a tool under ``spec.name``.

        Raises:
            ValueError: If the name is already registered
        """
        if spec.name in self._tools:
            raise ValueError(f"Tool '{spec.name}' is already registered")

        if isinstance(handler_or_provider, BaseTool):
            entry = RegisteredTool(spec=spec, handler=handler_or_provider)
        else:
            entry = RegisteredTool(spec=spec, provider=handler_or_provider)

        self._tools[spec.name] = entry
        logger.debug(f"Registered {'local' if entry.is_local else 'remote'} tool {spec.name}")

    def register_tool(self, tool: BaseTool) -> ToolSpec:
        """Register a local LangChain tool, deriving its spec."""
        spec = ToolSpec.from_tool(tool)
        self.register(spec, tool)
        return spec

    async def discover(self, provider: ToolProvider) -> list[ToolSpec]:
        """Register every tool a remote provider offers.

        Names that are already taken are skipped with a warning.

        Raises:
            TransportError: If discovery fails
        """
        registered = []
        for spec in await provider.list_tools():
            if spec.name in self._tools:
                logger.warning(f"Duplicate tool {spec.name!r} from provider {provider.name!r}, skipping")
                continue
            self.register(spec, provider)
            registered.append(spec)

        logger.info(f"Discovered {len(registered)} tools from provider {provider.name!r}")
        return registered

    def list(self, local_only: bool = False) -> list[ToolSpec]:
        """List registered tool specs in registration order."""
        return [entry.spec for entry in self._tools.values() if entry.is_local or not local_only]

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def provider_for(self, name: str) -> ToolProvider | None:
        """Return the remote provider hosting ``name``, if any."""
        entry = self._tools.get(name)
        return entry.provider if entry else None

    async def invoke(self, name: str, arguments_json: str) -> ToolResult:
        """Invoke a tool with a raw JSON argument payload."""
        entry = self._tools.get(name)
        if entry is None:
            logger.error(f"Unknown tool requested: {name}")
            return ToolResult.failure(ToolErrorKind.NOT_FOUND, f"Unknown tool '{name}'")

        try:
            arguments = parse_tool_arguments(arguments_json)
        except ToolArgumentsError as e:
            logger.warning(f"Tool {name} called with bad arguments: {e}")
            return ToolResult.failure(ToolErrorKind.INVALID_ARGUMENTS, str(e))

        if entry.provider is not None:
            try:
                return await entry.provider.call_tool(name, arguments)
            except TransportError as e:
                logger.error(f"Remote tool {name} failed: {e}")
                return ToolResult.failure(ToolErrorKind.TRANSPORT_ERROR, str(e))

        assert entry.handler is not None
        try:
            output = await entry.handler.ainvoke(arguments)
        except ValidationError as e:
            details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            return ToolResult.failure(ToolErrorKind.INVALID_ARGUMENTS, f"Invalid arguments for {name}: {details}")
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}", exc_info=True)
            return ToolResult.failure(ToolErrorKind.HANDLER_ERROR, f"Tool '{name}' failed: {e!s}")

        if isinstance(output, ToolResult):
            return output
        return ToolResult.success(str(output))


def create_default_registry(executor: CommandExecutor, policy: CommandPolicy = DEFAULT_POLICY) -> ToolsRegistry:
    """Create a registry holding the local shell command tool."""
    registry = ToolsRegistry()
    registry.register_tool(create_shell_command_tool(executor, policy))
    return registry
