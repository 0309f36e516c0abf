"""Interactive client for MCP tool servers."""

import json
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console
from rich.panel import Panel

from tool_agent.cli.prompt import ask_line
from tool_agent.clients.mcp import McpToolProvider
from tool_agent.exceptions import TransportError
from tool_agent.models.config import ServerAddress
from tool_agent.models.messages import ToolErrorKind
from tool_agent.tools.registry import ToolsRegistry
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SERVER = "default-agent=localhost:8889"

INSTRUCTIONS = """[bold]Commands:[/bold]
  tools                      List all available tools.
  tool <name> <json_args>    Execute a tool (e.g. tool shell_command {"command": "ls"}).
  servers                    List all connected servers.
  help                       Show this help message.
  exit                       Quit the client."""


@dataclass(frozen=True)
class ReplCommand:
    """A parsed line of client input."""

    command: str
    tool_name: str = ""
    arguments: dict[str, Any] = field(default_factory=dict)


def parse_repl_command(line: str) -> ReplCommand | None:
    """Parse one line of client input; blank lines give None.

    Raises:
        ValueError: If a ``tool`` command lacks a name or has bad JSON arguments
    """
    parts = line.strip().split(maxsplit=2)
    if not parts:
        return None

    command = parts[0]
    if command != "tool":
        return ReplCommand(command=command)

    if len(parts) < 2:
        raise ValueError("Tool name is required. Usage: tool <name> <json_args>")

    arguments: dict[str, Any] = {}
    if len(parts) == 3:
        try:
            arguments = json.loads(parts[2])
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON arguments: {e}") from e
        if not isinstance(arguments, dict):
            raise ValueError("Invalid JSON arguments: expected an object")

    return ReplCommand(command=command, tool_name=parts[1], arguments=arguments)


class McpClientCLI:
    """Connects to MCP servers and lets the user call their tools by hand."""

    def __init__(
        self,
        addresses: list[ServerAddress],
        timeout: float = 5.0,
        show_instructions: bool = True,
        console: Console | None = None,
    ):
        self.addresses = addresses
        self.timeout = timeout
        self.show_instructions = show_instructions
        self.console = console or Console()
        self.registry = ToolsRegistry()
        self.providers: list[McpToolProvider] = []

    async def run(self) -> int:
        """Connect and run the command loop. Returns the exit status."""
        self.console.print("Starting MCP client...")

        async with AsyncExitStack() as stack:
            for address in self.addresses:
                await self._connect(address, stack)

            if not self.providers:
                self.console.print(
                    "\n[red]Fatal: No servers could be connected. Please check your server configurations.[/red]"
                )
                return 1

            await self._interactive()

        self.console.print("Exiting MCP client.")
        return 0

    async def _connect(self, address: ServerAddress, stack: AsyncExitStack) -> None:
        provider = McpToolProvider(address, timeout=self.timeout)
        try:
            await provider.connect(stack)
            specs = await self.registry.discover(provider)
        except TransportError as e:
            self.console.print(f"[red]Error: {e}[/red]")
            return

        self.providers.append(provider)
        self.console.print(f"[green]Successfully connected to '{provider.name}' ({len(specs)} tools found)[/green]")

    async def _interactive(self) -> None:
        if self.show_instructions:
            self._show_help()

        try:
            while True:
                line = await ask_line("\n[bold]mcp[/bold]", self.console)
                try:
                    parsed = parse_repl_command(line)
                except ValueError as e:
                    self.console.print(f"[red]Error: {e}[/red]")
                    continue

                if parsed is None:
                    continue
                if parsed.command in ["exit", "quit"]:
                    break
                elif parsed.command == "tools":
                    self._show_tools()
                elif parsed.command == "servers":
                    self._show_servers()
                elif parsed.command == "tool":
                    await self._execute_tool(parsed.tool_name, parsed.arguments)
                elif parsed.command == "help":
                    self._show_help()
                else:
                    self.console.print(
                        f"[red]Unknown command: '{parsed.command}'. Type 'help' for a list of commands.[/red]"
                    )
        except (KeyboardInterrupt, EOFError):
            pass

    async def _execute_tool(self, name: str, arguments: dict[str, Any]) -> None:
        provider = self.registry.provider_for(name)
        if provider is None:
            self.console.print(f"[red]Error: Tool '{name}' not found on any connected server.[/red]")
            return

        self.console.print(f"Executing tool '{name}' on server '{provider.name}'...")
        result = await self.registry.invoke(name, json.dumps(arguments))
        if result.error_kind == ToolErrorKind.TRANSPORT_ERROR:
            self.console.print(f"[red]Error: {result.content}[/red]")
            return
        self.console.print("\n[bold]Result:[/bold]")
        self.console.print(result.render(), markup=False, highlight=False)

    def _show_tools(self) -> None:
        self.console.print("\n[bold]--- Available Tools ---[/bold]")
        specs = self.registry.list()
        if not specs:
            self.console.print("No tools found on any connected servers.")
            return

        for provider in self.providers:
            owned = [s for s in specs if self.registry.provider_for(s.name) is provider]
            if owned:
                self.console.print(f"\nFrom server '{provider.name}' ({provider.address.type}):")
                for spec in owned:
                    self.console.print(f"  - {spec.name}: {spec.description}", markup=False)

    def _show_servers(self) -> None:
        self.console.print("\n[bold]--- Connected Servers ---[/bold]")
        for provider in self.providers:
            address = provider.address
            self.console.print(f"- {provider.name} ({address.type}) at {address.host}:{address.port}", markup=False)

    def _show_help(self) -> None:
        self.console.print(Panel(INSTRUCTIONS, title="[cyan]MCP Client Interactive Mode[/cyan]", border_style="cyan"))
