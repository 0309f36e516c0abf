"""
Command line for the tool agent.

Commands:
    chat   : Chat with a local GGUF model that can call tools.
    serve  : Serve the local tools to MCP clients.
    client : Call tools on MCP servers by hand.

Usage:
    tool-agent chat -m model.gguf
    tool-agent chat -m model.gguf --confirm --port 8889
    tool-agent chat -m model.gguf -p "What is in this directory?"
    tool-agent serve --port 8889
    tool-agent client --add-server tools=localhost:8889
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from tool_agent import __version__
from tool_agent.cli.chat import ChatCLI
from tool_agent.cli.mcp_client import DEFAULT_SERVER, McpClientCLI
from tool_agent.clients.llama import LlamaConfig, LlamaEngine
from tool_agent.exceptions import ConfigError, ModelLoadError
from tool_agent.main import DEFAULT_HOST, DEFAULT_PORT, serve as run_server
from tool_agent.models.config import DEFAULT_SYSTEM_PROMPT, ServerAddress, load_config
from tool_agent.services.executor import CommandExecutor
from tool_agent.tools.registry import create_default_registry
from tool_agent.utils.logging import LogConfig, setup_logging

app = typer.Typer(help="Tool-calling agent for local llama.cpp models", add_completion=False)
console = Console()


def _version_cb(value: bool) -> None:
    if value:
        console.print(f"tool-agent {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging."),
    version: bool = typer.Option(
        False, "--version",
        help="Show version and exit.",
        callback=_version_cb,
        is_eager=True,
    ),
) -> None:
    """Tool-calling agent for local llama.cpp models."""
    setup_logging(LogConfig(level="DEBUG") if verbose else LogConfig())


@app.command()
def chat(
    model: Path = typer.Option(..., "--model", "-m", help="Path to the GGUF model file."),
    prompt: str = typer.Option(None, "--prompt", "-p", help="Run a single prompt and exit."),
    max_new_tokens: int = typer.Option(256, "--max-new-tokens", "-n", help="Tokens to generate per cycle."),
    ctx_size: int = typer.Option(2048, "--ctx-size", "-c", help="Context window size."),
    batch_size: int = typer.Option(512, "--batch-size", "-b", help="Prompt batch size."),
    n_gpu_layers: int = typer.Option(99, "--n-gpu-layers", "-g", help="Layers to offload to the GPU."),
    confirm: bool = typer.Option(False, "--confirm", help="Ask before running each tool call."),
    chat_template_file: Path = typer.Option(None, "--chat-template-file", help="Jinja chat template override."),
    port: int = typer.Option(None, "--port", help="Also serve the local tools over MCP on this port."),
    connect: list[str] = typer.Option(None, "--connect", help="MCP server to use tools from, [name=]host:port."),
    max_tool_rounds: int = typer.Option(8, "--max-tool-rounds", help="Tool-call rounds allowed per message."),
    max_output_bytes: int = typer.Option(65536, "--max-output-bytes", help="Cap on captured command output."),
    system_prompt: str = typer.Option(DEFAULT_SYSTEM_PROMPT, "--system-prompt", help="System prompt."),
    connect_timeout: float = typer.Option(5.0, "--connect-timeout", help="MCP connection timeout in seconds."),
):
    """Chat with a local model that can run shell commands and remote tools."""
    try:
        config = load_config(
            model_path=model,
            prompt=prompt,
            max_new_tokens=max_new_tokens,
            context_size=ctx_size,
            batch_size=batch_size,
            n_gpu_layers=n_gpu_layers,
            confirm_commands=confirm,
            chat_template_file=chat_template_file,
            port=port,
            connect=connect,
            max_tool_rounds=max_tool_rounds,
            max_output_bytes=max_output_bytes,
            system_prompt=system_prompt,
            connect_timeout=connect_timeout,
        )
    except ConfigError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=2) from e

    try:
        with console.status("[dim]Loading model...[/dim]"):
            engine = LlamaEngine.load(
                LlamaConfig(
                    model_path=str(config.model_path),
                    context_size=config.context_size,
                    batch_size=config.batch_size,
                    n_gpu_layers=config.n_gpu_layers,
                )
            )
    except ModelLoadError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1) from e

    try:
        asyncio.run(ChatCLI(config, engine, console).run())
    except KeyboardInterrupt:
        pass


@app.command()
def serve(
    port: int = typer.Option(DEFAULT_PORT, "--port", help="Port to listen on."),
    host: str = typer.Option(DEFAULT_HOST, "--host", help="Interface to bind."),
    max_output_bytes: int = typer.Option(65536, "--max-output-bytes", help="Cap on captured command output."),
):
    """Serve the local tools to MCP clients."""
    if not 1 <= port <= 65535:
        console.print(f"[red]❌ Invalid port: {port}[/red]")
        raise typer.Exit(code=2)

    run_server(create_default_registry(CommandExecutor(max_output_bytes=max_output_bytes)), host=host, port=port)


@app.command()
def client(
    add_server: list[str] = typer.Option(None, "--add-server", help="Server to connect to, [name=]host:port."),
    hide_instructions: bool = typer.Option(False, "--hide-instructions", help="Do not print the command list."),
    timeout: float = typer.Option(5.0, "--timeout", help="Connection timeout in seconds."),
):
    """Connect to MCP servers and call their tools interactively."""
    try:
        addresses = [ServerAddress.parse(value) for value in [DEFAULT_SERVER, *(add_server or [])]]
    except ConfigError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=2) from e

    cli = McpClientCLI(addresses, timeout=timeout, show_instructions=not hide_instructions, console=console)
    try:
        code = asyncio.run(cli.run())
    except KeyboardInterrupt:
        code = 0
    if code:
        raise typer.Exit(code=code)


if __name__ == "__main__":
    app()
