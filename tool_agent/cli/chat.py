"""Interactive chat with the local model and its tools."""

from contextlib import AsyncExitStack

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tool_agent.cli.prompt import ask_line
from tool_agent.clients.llama import LlamaEngine
from tool_agent.clients.mcp import connect_providers
from tool_agent.exceptions import TransportError
from tool_agent.graphs.agent import AgentLoop, TurnResult
from tool_agent.graphs.nodes import AgentCallbacks
from tool_agent.main import start_background_server
from tool_agent.models.config import AgentConfig
from tool_agent.models.messages import ToolCallRequest, ToolResult
from tool_agent.services.chat_template import ChatTemplate
from tool_agent.services.confirmation import ConsoleConfirmer
from tool_agent.services.executor import CommandExecutor
from tool_agent.services.generation import GenerationDriver
from tool_agent.tools.registry import ToolsRegistry, create_default_registry
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

PREVIEW_LINES = 20


class ChatCLI:
    """Console front end for the agent loop."""

    def __init__(self, config: AgentConfig, engine: LlamaEngine, console: Console | None = None):
        self.config = config
        self.engine = engine
        self.console = console or Console()
        self._streamed = ""

    async def run(self) -> None:
        """Set up tools, then run one prompt or the interactive loop."""
        registry = create_default_registry(CommandExecutor(max_output_bytes=self.config.max_output_bytes))

        async with AsyncExitStack() as stack:
            await self._discover_remote_tools(registry, stack)

            if self.config.port:
                start_background_server(registry, self.config.port)

            loop = self._create_loop(registry)
            self._show_config(registry)

            if self.config.prompt:
                self.console.print(f"\n[bold cyan]You:[/bold cyan] {self.config.prompt}")
                await self._run_turn(loop, self.config.prompt)
                return

            await self._interactive(loop, registry)

    async def _discover_remote_tools(self, registry: ToolsRegistry, stack: AsyncExitStack) -> None:
        providers = await connect_providers(self.config.connect, stack, timeout=self.config.connect_timeout)
        for provider in providers:
            try:
                specs = await registry.discover(provider)
            except TransportError as e:
                self.console.print(f"[red]❌ {e}[/red]")
                continue
            self.console.print(f"[green]✅ Connected to '{provider.name}' ({len(specs)} tools found)[/green]")

        for address in self.config.connect:
            if address.name not in {p.name for p in providers}:
                self.console.print(f"[red]❌ Could not connect to '{address.name}' at {address.host}:{address.port}[/red]")

    def _create_loop(self, registry: ToolsRegistry) -> AgentLoop:
        template = ChatTemplate(
            self.config.read_chat_template() or self.engine.chat_template,
            bos_token=self.engine.bos_token,
            eos_token=self.engine.eos_token,
        )
        return AgentLoop(
            driver=GenerationDriver(self.engine, max_new_tokens=self.config.max_new_tokens),
            template=template,
            registry=registry,
            confirmer=ConsoleConfirmer(self.console) if self.config.confirm_commands else None,
            system_prompt=self.config.system_prompt,
            max_tool_rounds=self.config.max_tool_rounds,
            callbacks=AgentCallbacks(
                on_text=self._echo_text,
                on_tool_call=self._show_tool_call,
                on_tool_result=self._show_tool_result,
            ),
        )

    async def _interactive(self, loop: AgentLoop, registry: ToolsRegistry) -> None:
        self.console.print(
            Panel.fit(
                "[bold blue]🦙 Tool Agent - Interactive Chat[/bold blue]\n"
                "Type your messages to chat with the model.\n"
                "Commands: /help, /tools, /clear, /quit",
                border_style="blue",
            )
        )

        try:
            while True:
                user_input = await ask_line("\n[bold cyan]You[/bold cyan]", self.console)
                command = user_input.strip().lower()

                if command in ["/quit", "/exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                    continue
                elif command == "/tools":
                    self._show_tools(registry)
                    continue
                elif command == "/clear":
                    loop.reset()
                    self.console.print("[yellow]🔄 Conversation cleared[/yellow]")
                    continue
                elif command == "":
                    continue

                await self._run_turn(loop, user_input)

        except (KeyboardInterrupt, EOFError):
            pass
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")

    async def _run_turn(self, loop: AgentLoop, text: str) -> TurnResult:
        self._streamed = ""
        self.console.print("\n[bold green]🤖 Assistant:[/bold green] ", end="")
        result = await loop.run_turn(text)
        self.console.print()

        if result.outcome == "answered" and result.answer and result.answer.strip() != self._streamed.strip():
            self.console.print(Panel(Text(result.answer), title="[bold green]Response[/bold green]", border_style="green"))
        elif result.outcome == "generation_error":
            self.console.print(f"[red]❌ Generation failed: {result.error}[/red]")
        elif result.outcome == "round_limit":
            self.console.print(
                f"[yellow]⚠️ Stopped after {result.rounds} tool-call rounds without a final answer[/yellow]"
            )
        return result

    def _echo_text(self, text: str) -> None:
        self._streamed += text
        self.console.print(text, end="", markup=False, highlight=False, soft_wrap=True)

    def _show_tool_call(self, call: ToolCallRequest) -> None:
        self._streamed = ""
        self.console.print(f"\n[bold magenta]🔧 {call.name}[/bold magenta] [dim]{call.arguments}[/dim]")

    def _show_tool_result(self, call: ToolCallRequest, result: ToolResult) -> None:
        lines = result.render().splitlines() or [""]
        preview = "\n".join(lines[:PREVIEW_LINES])
        if len(lines) > PREVIEW_LINES:
            preview += f"\n... ({len(lines) - PREVIEW_LINES} more lines)"

        self.console.print(
            Panel(
                Text(preview),
                title=f"[bold]{call.name}[/bold] ({call.id})",
                border_style="green" if result.ok else "red",
            )
        )

    def _show_config(self, registry: ToolsRegistry) -> None:
        table = Table(show_header=False, box=None)
        table.add_row("Model", str(self.config.model_path))
        table.add_row("Context size", str(self.engine.context_size))
        table.add_row("Max new tokens", str(self.config.max_new_tokens))
        table.add_row("Confirm tool calls", "yes" if self.config.confirm_commands else "no")
        table.add_row("Max tool rounds", str(self.config.max_tool_rounds))
        table.add_row("Tools", ", ".join(registry.get_tool_names()) or "none")
        if self.config.port:
            table.add_row("Tool server", f"port {self.config.port}")

        self.console.print(Panel(table, title="[yellow]⚙️ Configuration[/yellow]", border_style="yellow"))

    def _show_tools(self, registry: ToolsRegistry) -> None:
        table = Table(title="Available Tools")
        table.add_column("Name", style="cyan")
        table.add_column("Where")
        table.add_column("Description")
        for spec in registry.list():
            provider = registry.provider_for(spec.name)
            table.add_row(spec.name, provider.name if provider else "local", spec.description)
        self.console.print(table)

    def _show_help(self) -> None:
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /tools - List the tools the model can call
• /clear - Clear the conversation and start over
• /quit or /exit - Exit the chat

[bold]Example Conversation:[/bold]
1. "List the files in this directory"
2. "How much disk space is free?"
3. "Who am I logged in as?"

[bold]Tips:[/bold]
• Only read-only commands are allowed; anything else is rejected before it runs
• Start with --confirm to approve each tool call yourself
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))
