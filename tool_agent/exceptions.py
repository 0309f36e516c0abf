"""Custom exceptions for the tool agent."""


class ToolAgentError(Exception):
    """Base exception for the tool agent."""

    pass


class ConfigError(ToolAgentError):
    """Invalid or missing configuration. Fatal before the loop starts."""

    pass


class ModelLoadError(ToolAgentError):
    """The model or its inference backend could not be loaded."""

    pass


class GenerationError(ToolAgentError):
    """Tokenizing, rendering or decoding failed during a generation cycle."""

    pass


class ToolArgumentsError(ToolAgentError):
    """A tool call carried an argument payload that is not a JSON object."""

    def __init__(self, message: str, raw_arguments: str = ""):
        super().__init__(message)
        self.raw_arguments = raw_arguments


class TransportError(ToolAgentError):
    """A remote tool provider could not be reached or reported a protocol error."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class CommandSpawnError(ToolAgentError):
    """The command executor could not start the process."""

    def __init__(self, command: str, reason: str):
        super().__init__(f"Failed to execute command '{command}': {reason}")
        self.command = command
        self.reason = reason


class ToolCallFailedError(ToolAgentError):
    """A served tool call did not succeed; carries the rendered result."""

    def __init__(self, result_text: str, tool_name: str):
        super().__init__(result_text)
        self.tool_name = tool_name
