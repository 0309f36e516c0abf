"""Confirmation gate for tool calls."""

import inspect
from collections.abc import Awaitable, Callable

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm

from tool_agent.models.messages import ToolCallRequest

Confirmer = Callable[[ToolCallRequest], bool | Awaitable[bool]]


async def ask(confirmer: Confirmer, call: ToolCallRequest) -> bool:
    """Run a confirmer, awaiting it when it is asynchronous."""
    answer = confirmer(call)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


class ConsoleConfirmer:
    """Asks the operator on the console before each tool call.

    Anything but an explicit yes declines the call.
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def __call__(self, call: ToolCallRequest) -> bool:
        self.console.print(f"\n[bold yellow]Tool call:[/bold yellow] {call.name} {escape(call.arguments)}")
        return Confirm.ask("Execute this tool call?", default=False, console=self.console)
