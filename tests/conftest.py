"""Shared fixtures and fakes for the test suite."""

from typing import Any

import pytest

from tool_agent.exceptions import GenerationError, TransportError
from tool_agent.models.messages import ConversationMessage, ToolResult
from tool_agent.models.tools import ToolSpec
from tool_agent.services.executor import CommandExecutor
from tool_agent.tools.registry import ToolsRegistry, create_default_registry

EOG_TOKEN = 0


class ScriptedEngine:
    """Inference engine fake that replays canned replies, one byte per token.

    The first sample after a ``reset`` starts the next reply; once the script runs out the model
    answers with an immediate end-of-generation.
    """

    def __init__(self, replies: list[str] | None = None, context_size: int = 8192, fail_on_decode: bool = False):
        self.replies = list(replies or [])
        self._context_size = context_size
        self.fail_on_decode = fail_on_decode
        self.prompts: list[str] = []
        self.decode_calls = 0
        self._reply: list[int] | None = None

    @property
    def context_size(self) -> int:
        return self._context_size

    def tokenize(self, text: str, add_bos: bool = True) -> list[int]:
        self.prompts.append(text)
        tokens = [1] * len(text.split())
        return [1, *tokens] if add_bos else tokens

    def reset(self) -> None:
        self._reply = None

    def decode(self, tokens) -> None:
        if self.fail_on_decode:
            raise GenerationError("llama_decode failed")
        self.decode_calls += 1

    def sample(self) -> int:
        if self._reply is None:
            reply = self.replies.pop(0) if self.replies else ""
            self._reply = [b + 1 for b in reply.encode("utf-8")]
        return self._reply.pop(0) if self._reply else EOG_TOKEN

    def is_end_of_generation(self, token: int) -> bool:
        return token == EOG_TOKEN

    def token_to_bytes(self, token: int) -> bytes:
        return bytes([token - 1])


class FakeProvider:
    """Remote tool provider fake."""

    def __init__(self, name: str = "remote", tools: list[ToolSpec] | None = None, fail: bool = False):
        self.name = name
        self.tools = tools if tools is not None else [
            ToolSpec(
                name="get_weather",
                description="Current weather for a city",
                parameters={"type": "object", "properties": {"city": {"type": "string"}}, "required": ["city"]},
            )
        ]
        self.fail = fail
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def list_tools(self) -> list[ToolSpec]:
        return list(self.tools)

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        self.calls.append((name, arguments))
        if self.fail:
            raise TransportError("Connection refused", self.name)
        return ToolResult.success(f"Sunny in {arguments.get('city', 'nowhere')}")


def tool_call_reply(name: str, arguments: str) -> str:
    """A Hermes-style reply requesting one tool call."""
    return f'<tool_call>\n{{"name": "{name}", "arguments": {arguments}}}\n</tool_call>'


def assert_every_call_answered(messages: list[ConversationMessage]) -> None:
    """Each requested tool call has exactly one correlated tool message."""
    requested = [call.id for m in messages if m.role == "assistant" for call in m.tool_calls]
    answered = [m.tool_call_id for m in messages if m.role == "tool"]
    assert sorted(requested) == sorted(answered)
    assert len(set(answered)) == len(answered)


@pytest.fixture
def workdir(tmp_path):
    """A directory with a known file in it."""
    (tmp_path / "notes.txt").write_text("remember the milk\n")
    return tmp_path


@pytest.fixture
def executor(workdir):
    """Executor running commands inside the work directory."""
    return CommandExecutor(max_output_bytes=4096, cwd=workdir)


@pytest.fixture
def registry(executor) -> ToolsRegistry:
    """Registry holding the local shell command tool."""
    return create_default_registry(executor)
