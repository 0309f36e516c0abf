"""Shell command tool."""

from langchain_core.tools import BaseTool, tool
from pydantic import BaseModel, Field

from tool_agent.exceptions import CommandSpawnError
from tool_agent.models.messages import ToolErrorKind, ToolResult
from tool_agent.services.executor import CommandExecutor
from tool_agent.services.safety import DEFAULT_POLICY, CommandPolicy
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

SHELL_COMMAND_TOOL = "shell_command"


class ShellCommandInput(BaseModel):
    """Input schema for the shell command tool."""

    command: str = Field(
        ...,
        description="The shell command to execute",
        examples=["ls -l", "pwd"],
    )


def create_shell_command_tool(executor: CommandExecutor, policy: CommandPolicy = DEFAULT_POLICY) -> BaseTool:
    @tool(SHELL_COMMAND_TOOL, args_schema=ShellCommandInput)
    def shell_command_handler(command: str) -> ToolResult:
        """Execute a shell command and return the output"""
        reason = policy.check(command)
        if reason is not None:
            logger.warning(f"Rejected unsafe command {command!r}: {reason}")
            return ToolResult.failure(
                ToolErrorKind.SAFETY_REJECTION,
                f"Command rejected by safety policy ({reason}). It was not executed.",
            )

        try:
            output = executor.run(command)
        except CommandSpawnError as e:
            return ToolResult.failure(ToolErrorKind.EXECUTION_ERROR, str(e))

        if output.truncated:
            return ToolResult.failure(
                ToolErrorKind.OUTPUT_LIMIT,
                f"Output exceeded {executor.max_output_bytes} bytes; showing the first part only:\n{output.stdout}",
            )

        if output.exit_status != 0:
            return ToolResult.failure(
                ToolErrorKind.EXECUTION_ERROR,
                f"Command exited with status {output.exit_status}:\n{output.stdout}".rstrip(),
            )

        return ToolResult.success(output.stdout or "(no output)")

    return shell_command_handler
