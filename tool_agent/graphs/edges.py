"""Routing between the agent graph nodes."""

from typing import Literal

from tool_agent.graphs.state import AgentState
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)


def route_generate_output(state: AgentState) -> Literal["parse", "end"]:
    """Parse the generated text unless generation failed."""
    if state.error or state.next_step == "end":
        logger.debug(f"Ending turn after generation: {state.error}")
        return "end"
    return "parse"


def route_parse_output(state: AgentState) -> Literal["dispatch", "end"]:
    """Dispatch pending tool calls; a reply without any ends the turn."""
    if state.pending_tool_calls and state.next_step == "dispatch":
        return "dispatch"
    return "end"


def route_dispatch_output(state: AgentState) -> Literal["generate", "end"]:
    """Give the model another cycle to react to the tool results.

    Ends the turn once the round limit has been hit.
    """
    if state.next_step == "end":
        return "end"
    return "generate"
