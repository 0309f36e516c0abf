"""Conversation message and tool-call data models."""

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant", "tool"]


class ToolErrorKind(StrEnum):
    """Why a tool invocation did not succeed."""

    NOT_FOUND = "not_found"
    INVALID_ARGUMENTS = "invalid_arguments"
    SAFETY_REJECTION = "safety_rejection"
    EXECUTION_ERROR = "execution_error"
    OUTPUT_LIMIT = "output_limit"
    TRANSPORT_ERROR = "transport_error"
    CANCELLED = "cancelled"
    ROUND_LIMIT = "round_limit"
    HANDLER_ERROR = "handler_error"


class ToolCallRequest(BaseModel):
    """A tool call parsed from generated text.

    ``arguments`` is the raw JSON text the model produced; it is only decoded
    at dispatch time.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: str = "{}"


class ToolResult(BaseModel):
    """Outcome of a single tool invocation."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    content: str
    error_kind: ToolErrorKind | None = None

    @classmethod
    def success(cls, content: str) -> "ToolResult":
        """Create a successful result."""
        return cls(ok=True, content=content)

    @classmethod
    def failure(cls, kind: ToolErrorKind, detail: str) -> "ToolResult":
        """Create a failed result carrying an error kind and detail."""
        return cls(ok=False, content=detail, error_kind=kind)

    def render(self) -> str:
        """Text shown to the model in the correlated tool message."""
        if self.ok:
            return self.content
        return f"Error ({self.error_kind}): {self.content}"


class ConversationMessage(BaseModel):
    """A message in a conversation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None

    @classmethod
    def system(cls, content: str) -> "ConversationMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "ConversationMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: list[ToolCallRequest] | None = None) -> "ConversationMessage":
        return cls(role="assistant", content=content, tool_calls=tool_calls or [])

    @classmethod
    def tool(cls, call: ToolCallRequest, result: ToolResult) -> "ConversationMessage":
        """Create the tool message answering ``call``."""
        return cls(role="tool", content=result.render(), tool_call_id=call.id, name=call.name)
