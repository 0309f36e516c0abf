"""Tools for the conversational agent."""

from tool_agent.tools.registry import ToolsRegistry, create_default_registry

__all__ = ["ToolsRegistry", "create_default_registry"]
