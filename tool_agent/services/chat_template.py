"""Chat template rendering for tool-calling prompts."""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from jinja2 import TemplateError
from jinja2.sandbox import ImmutableSandboxedEnvironment

from tool_agent.exceptions import GenerationError
from tool_agent.models.messages import ConversationMessage
from tool_agent.models.tools import ToolSpec
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

# ChatML with Hermes-style <tool_call> blocks. Used when neither an override
# file nor the model metadata provides a template.
DEFAULT_CHAT_TEMPLATE = """
{%- if tools %}
{{- '<|im_start|>system\\n' }}
{%- if messages[0].role == 'system' %}
{{- messages[0].content + '\\n\\n' }}
{%- endif %}
{{- '# Tools\\n\\nYou may call one or more functions to assist with the user query.\\n\\n' }}
{{- 'You are provided with function signatures within <tools></tools> XML tags:\\n<tools>' }}
{%- for tool in tools %}
{{- '\\n' + (tool | tojson) }}
{%- endfor %}
{{- '\\n</tools>\\n\\nFor each function call, return a json object with function name and arguments ' }}
{{- 'within <tool_call></tool_call> XML tags:\\n<tool_call>\\n' }}
{{- '{"name": <function-name>, "arguments": <args-json-object>}\\n</tool_call><|im_end|>\\n' }}
{%- elif messages[0].role == 'system' %}
{{- '<|im_start|>system\\n' + messages[0].content + '<|im_end|>\\n' }}
{%- endif %}
{%- for message in messages %}
{%- if message.role == 'user' or (message.role == 'system' and not loop.first) %}
{{- '<|im_start|>' + message.role + '\\n' + message.content + '<|im_end|>\\n' }}
{%- elif message.role == 'assistant' %}
{{- '<|im_start|>assistant' }}
{%- if message.content %}
{{- '\\n' + message.content }}
{%- endif %}
{%- for tool_call in message.tool_calls %}
{{- '\\n<tool_call>\\n{"name": "' + tool_call.function.name + '", "arguments": ' }}
{%- if tool_call.function.arguments is string %}
{{- tool_call.function.arguments }}
{%- else %}
{{- tool_call.function.arguments | tojson }}
{%- endif %}
{{- '}\\n</tool_call>' }}
{%- endfor %}
{{- '<|im_end|>\\n' }}
{%- elif message.role == 'tool' %}
{{- '<|im_start|>user\\n<tool_response>\\n' + message.content + '\\n</tool_response><|im_end|>\\n' }}
{%- endif %}
{%- endfor %}
{%- if add_generation_prompt %}
{{- '<|im_start|>assistant\\n' }}
{%- endif %}
"""


class ChatFormat(StrEnum):
    """How tool calls are written in generated text."""

    CONTENT_ONLY = "content-only"
    HERMES = "hermes"
    MISTRAL = "mistral"
    LLAMA3_JSON = "llama3-json"
    GENERIC = "generic"


@dataclass(frozen=True)
class RenderedPrompt:
    """A rendered prompt and the format its reply should be parsed with."""

    prompt: str
    format: ChatFormat
    added_special: bool = False


def detect_format(source: str) -> ChatFormat:
    """Infer the tool-call format from a template's source."""
    if "<tool_call>" in source:
        return ChatFormat.HERMES
    if "[TOOL_CALLS]" in source:
        return ChatFormat.MISTRAL
    if "<|python_tag|>" in source or "ipython" in source:
        return ChatFormat.LLAMA3_JSON
    return ChatFormat.GENERIC


def _raise_exception(message: str) -> None:
    raise TemplateError(message)


def _strftime_now(fmt: str) -> str:
    return datetime.now().strftime(fmt)


def _tojson(value: Any, indent: int | None = None) -> str:
    return json.dumps(value, ensure_ascii=False, indent=indent)


def _template_arguments(raw: str) -> Any:
    """Hand templates decoded arguments when possible, the raw text otherwise."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def message_to_dict(message: ConversationMessage) -> dict[str, Any]:
    """Convert a message to the dict shape chat templates iterate over."""
    data: dict[str, Any] = {
        "role": message.role,
        "content": message.content,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": _template_arguments(call.arguments)},
            }
            for call in message.tool_calls
        ],
    }
    if message.role == "tool":
        data["tool_call_id"] = message.tool_call_id
        data["name"] = message.name
    return data


class ChatTemplate:
    """Renders conversations through a Jinja2 chat template."""

    def __init__(self, source: str | None = None, bos_token: str = "", eos_token: str = ""):
        """Compile the template.

        Args:
            source: Jinja2 template text, or None for the bundled ChatML template
            bos_token: Text of the model's beginning-of-sequence token
            eos_token: Text of the model's end-of-sequence token
        """
        self.source = source or DEFAULT_CHAT_TEMPLATE
        self.bos_token = bos_token
        self.eos_token = eos_token
        self.tool_format = detect_format(self.source)

        env = ImmutableSandboxedEnvironment(trim_blocks=True, lstrip_blocks=True)
        env.filters["tojson"] = _tojson
        env.globals["raise_exception"] = _raise_exception
        env.globals["strftime_now"] = _strftime_now
        self._template = env.from_string(self.source)

        logger.debug(f"Chat template loaded, tool-call format: {self.tool_format}")

    def render(
        self,
        messages: list[ConversationMessage],
        tools: list[ToolSpec] | None = None,
        tool_choice: str = "auto",
        add_generation_prompt: bool = True,
    ) -> RenderedPrompt:
        """Render a conversation and its declared tools into a prompt.

        Raises:
            GenerationError: If the template fails to render
        """
        try:
            prompt = self._template.render(
                messages=[message_to_dict(m) for m in messages],
                tools=[t.as_function() for t in tools] if tools else None,
                tool_choice=tool_choice,
                add_generation_prompt=add_generation_prompt,
                bos_token=self.bos_token,
                eos_token=self.eos_token,
            )
        except TemplateError as e:
            raise GenerationError(f"Failed to render chat template: {e}") from e

        return RenderedPrompt(
            prompt=prompt,
            format=self.tool_format if tools else ChatFormat.CONTENT_ONLY,
            added_special=bool(self.bos_token) and prompt.startswith(self.bos_token),
        )
