"""Node implementations for the agent graph."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from langchain_core.runnables import RunnableConfig

from tool_agent.exceptions import GenerationError, ToolArgumentsError
from tool_agent.graphs.state import AgentState
from tool_agent.models.messages import ConversationMessage, ToolCallRequest, ToolErrorKind, ToolResult
from tool_agent.services.chat_template import ChatTemplate
from tool_agent.services.confirmation import Confirmer, ask
from tool_agent.services.generation import GenerationDriver
from tool_agent.services.parser import ResponseParser
from tool_agent.tools.base import parse_tool_arguments
from tool_agent.tools.registry import ToolsRegistry
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AgentCallbacks:
    """Hooks for showing a turn's progress as it happens."""

    on_text: Callable[[str], None] | None = None
    on_tool_call: Callable[[ToolCallRequest], None] | None = None
    on_tool_result: Callable[[ToolCallRequest, ToolResult], None] | None = None


@dataclass
class AgentRuntime:
    """Collaborators the graph nodes work with."""

    driver: GenerationDriver
    template: ChatTemplate
    registry: ToolsRegistry
    parser: ResponseParser = field(default_factory=ResponseParser)
    confirmer: Confirmer | None = None
    max_tool_rounds: int = 8
    tool_choice: str = "auto"
    callbacks: AgentCallbacks = field(default_factory=AgentCallbacks)


def get_runtime(config: RunnableConfig) -> AgentRuntime:
    """Fetch the runtime passed in the graph's configurable settings."""
    return config["configurable"]["runtime"]


async def generate_node(state: AgentState, config: RunnableConfig) -> dict[str, Any]:
    """Render the conversation, tokenize it and run one generation cycle.

    A generation error aborts the turn; the conversation is left as it is.
    """
    runtime = get_runtime(config)
    logger.debug(f"Generating from {len(state.messages)} messages")

    try:
        rendered = runtime.template.render(
            state.messages,
            tools=runtime.registry.list(),
            tool_choice=runtime.tool_choice,
            add_generation_prompt=True,
        )
        tokens = runtime.driver.tokenize(rendered.prompt, add_bos=not rendered.added_special)
        result = await asyncio.to_thread(runtime.driver.generate, tokens, runtime.callbacks.on_text)
    except GenerationError as e:
        logger.error(f"Generation failed: {e}", exc_info=True)
        return {"error": str(e), "outcome": "generation_error", "next_step": "end"}

    return {
        "raw_output": result.text,
        "chat_format": rendered.format,
        "error": None,
        "next_step": "parse",
    }


async def parse_node(state: AgentState, config: RunnableConfig) -> dict[str, Any]:
    """Split the generated text into content and tool calls and record it."""
    runtime = get_runtime(config)
    parsed = runtime.parser.parse(state.raw_output, state.chat_format)
    message = ConversationMessage.assistant(parsed.content, parsed.tool_calls)

    if parsed.is_final:
        return {
            "messages": [message],
            "pending_tool_calls": [],
            "final_answer": parsed.content,
            "outcome": "answered",
            "next_step": "end",
        }

    return {"messages": [message], "pending_tool_calls": parsed.tool_calls, "next_step": "dispatch"}


async def dispatch_node(state: AgentState, config: RunnableConfig) -> dict[str, Any]:
    """Run the pending tool calls one after another, in the order requested.

    Every call gets exactly one tool message, whatever happens to it.
    """
    runtime = get_runtime(config)

    if state.rounds >= runtime.max_tool_rounds:
        logger.warning(f"Tool-call round limit of {runtime.max_tool_rounds} reached, ending turn")
        result = ToolResult.failure(
            ToolErrorKind.ROUND_LIMIT,
            f"Tool-call round limit of {runtime.max_tool_rounds} reached for this turn. It was not executed.",
        )
        return {
            "messages": [ConversationMessage.tool(call, result) for call in state.pending_tool_calls],
            "pending_tool_calls": [],
            "outcome": "round_limit",
            "next_step": "end",
        }

    messages = []
    for call in state.pending_tool_calls:
        if runtime.callbacks.on_tool_call:
            runtime.callbacks.on_tool_call(call)

        result = await _dispatch_call(runtime, call)
        logger.info(f"Tool call {call.id} ({call.name}): {'ok' if result.ok else result.error_kind}")

        if runtime.callbacks.on_tool_result:
            runtime.callbacks.on_tool_result(call, result)
        messages.append(ConversationMessage.tool(call, result))

    return {
        "messages": messages,
        "pending_tool_calls": [],
        "rounds": state.rounds + 1,
        "next_step": "generate",
    }


async def _dispatch_call(runtime: AgentRuntime, call: ToolCallRequest) -> ToolResult:
    """Confirm a call when required, then invoke it through the registry."""
    if runtime.confirmer is not None and _needs_confirmation(runtime.registry, call):
        if not await ask(runtime.confirmer, call):
            logger.info(f"Tool call {call.id} declined")
            return ToolResult.failure(
                ToolErrorKind.CANCELLED, "Tool call was declined by the operator. It was not executed."
            )

    return await runtime.registry.invoke(call.name, call.arguments)


def _needs_confirmation(registry: ToolsRegistry, call: ToolCallRequest) -> bool:
    """Only calls that could actually run are put to the operator."""
    if not registry.has_tool(call.name):
        return False
    try:
        parse_tool_arguments(call.arguments)
    except ToolArgumentsError:
        return False
    return True
