"""State definitions for the agent graph."""

import operator
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from tool_agent.models.messages import ConversationMessage, ToolCallRequest
from tool_agent.services.chat_template import ChatFormat

TurnOutcome = Literal["answered", "generation_error", "round_limit"]


class AgentState(BaseModel):
    """State of one user turn as it moves through the graph.

    ``messages`` holds the whole conversation; nodes only ever append to it.
    """

    # Conversation
    messages: Annotated[list[ConversationMessage], operator.add] = Field(default_factory=list)

    # Current generation cycle
    raw_output: str = ""
    chat_format: ChatFormat = ChatFormat.CONTENT_ONLY
    pending_tool_calls: list[ToolCallRequest] = Field(default_factory=list)

    # Turn bookkeeping
    rounds: int = 0
    final_answer: str | None = None

    # Control flow
    next_step: Literal["generate", "parse", "dispatch", "end"] | None = None
    error: str | None = None
    outcome: TurnOutcome | None = None
