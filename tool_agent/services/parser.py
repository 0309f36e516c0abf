"""Response parsing: generated text to content plus tool-call requests."""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from cuid2 import cuid_wrapper

from tool_agent.models.messages import ToolCallRequest
from tool_agent.services.chat_template import ChatFormat
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()

HERMES_BLOCK = re.compile(r"<tool_call>\s*(.*?)\s*(?:</tool_call>|\Z)", re.DOTALL)
MISTRAL_MARKER = "[TOOL_CALLS]"
PYTHON_TAG = "<|python_tag|>"
NAME_FIELD = re.compile(r'"name"\s*:\s*"([^"]+)"')
ARGUMENTS_FIELD = re.compile(r'"(?:arguments|parameters)"\s*:\s*(.*)\Z', re.DOTALL)
ARGUMENT_KEYS = ("arguments", "parameters")


def new_call_id() -> str:
    """Generate a correlation id for a tool call that arrived without one."""
    return f"call_{cuid()}"


@dataclass
class ParsedResponse:
    """Structured view of one generation cycle's output.

    With tool calls present, ``content`` is preamble and not the final answer.
    """

    content: str
    tool_calls: list[ToolCallRequest] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


def _raw_arguments(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def _call_from_object(data: Any) -> ToolCallRequest | None:
    """Build a request from a decoded ``{"name": ..., "arguments": ...}`` object."""
    if not isinstance(data, dict):
        return None
    if isinstance(data.get("function"), dict):
        data = {**data["function"], "id": data.get("id")}
    name = data.get("name")
    if not isinstance(name, str) or not name:
        return None
    arguments = next((data[key] for key in ARGUMENT_KEYS if key in data), {})
    return ToolCallRequest(id=str(data.get("id") or new_call_id()), name=name, arguments=_raw_arguments(arguments))


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return False
    return True


def _recover_call(body: str) -> ToolCallRequest | None:
    """Salvage the name and raw argument text from a malformed call body.

    The malformed payload is kept verbatim so that dispatch reports it to the
    model instead of the turn stalling here.
    """
    name_match = NAME_FIELD.search(body)
    if name_match is None:
        return None
    raw = ""
    args_match = ARGUMENTS_FIELD.search(body)
    if args_match:
        raw = args_match.group(1).strip()
        if raw.endswith("}") and not _is_json(raw) and _is_json(raw[:-1]):
            raw = raw[:-1].rstrip()
    logger.debug(f"Recovered malformed tool call {name_match.group(1)!r}")
    return ToolCallRequest(id=new_call_id(), name=name_match.group(1), arguments=raw)


def _parse_call_body(body: str) -> ToolCallRequest | None:
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return _recover_call(body)
    return _call_from_object(data) or _recover_call(body)


def parse_hermes(text: str) -> ParsedResponse:
    """``<tool_call>{...}</tool_call>`` blocks anywhere in the text."""
    calls = []
    leftovers = []
    for match in HERMES_BLOCK.finditer(text):
        call = _parse_call_body(match.group(1))
        if call is None:
            leftovers.append(match.group(0))
        else:
            calls.append(call)
    content = HERMES_BLOCK.sub("", text).strip()
    if leftovers:
        content = "\n".join([content, *leftovers]).strip()
    return ParsedResponse(content=content, tool_calls=calls)


def parse_mistral(text: str) -> ParsedResponse:
    """Content followed by ``[TOOL_CALLS]`` and a JSON array of calls."""
    content, marker, payload = text.partition(MISTRAL_MARKER)
    if not marker:
        return ParsedResponse(content=text.strip())

    try:
        data = json.loads(payload.strip())
    except json.JSONDecodeError:
        call = _recover_call(payload)
        if call is None:
            return ParsedResponse(content=text.strip())
        return ParsedResponse(content=content.strip(), tool_calls=[call])

    items = data if isinstance(data, list) else [data]
    calls = [call for call in (_call_from_object(item) for item in items) if call is not None]
    return ParsedResponse(content=content.strip(), tool_calls=calls)


def parse_llama3_json(text: str) -> ParsedResponse:
    """A whole-message JSON object, optionally after ``<|python_tag|>``."""
    stripped = text.replace(PYTHON_TAG, "").strip()
    if not stripped.startswith("{"):
        return ParsedResponse(content=text.strip())
    call = _parse_call_body(stripped)
    if call is None:
        return ParsedResponse(content=text.strip())
    return ParsedResponse(content="", tool_calls=[call])


def parse_generic(text: str) -> ParsedResponse:
    """A JSON object with ``tool_calls``, ``tool_call``, ``response`` or a single call."""
    stripped = text.strip()
    if not stripped.startswith("{"):
        return ParsedResponse(content=stripped)
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        call = _recover_call(stripped)
        return ParsedResponse(content="", tool_calls=[call]) if call else ParsedResponse(content=stripped)
    if not isinstance(data, dict):
        return ParsedResponse(content=stripped)

    if isinstance(data.get("tool_calls"), list):
        calls = [c for c in (_call_from_object(item) for item in data["tool_calls"]) if c is not None]
        return ParsedResponse(content=str(data.get("content") or ""), tool_calls=calls)
    if isinstance(data.get("tool_call"), dict):
        call = _call_from_object(data["tool_call"])
        return ParsedResponse(content="", tool_calls=[call] if call else [])
    if "response" in data:
        return ParsedResponse(content=str(data["response"]))
    call = _call_from_object(data)
    if call is not None:
        return ParsedResponse(content="", tool_calls=[call])
    return ParsedResponse(content=stripped)


_PARSERS = {
    ChatFormat.HERMES: parse_hermes,
    ChatFormat.MISTRAL: parse_mistral,
    ChatFormat.LLAMA3_JSON: parse_llama3_json,
    ChatFormat.GENERIC: parse_generic,
}


class ResponseParser:
    """Turns raw generated text into content and tool-call requests.

    Parsing is best-effort and never fails: text that matches no tool-call
    syntax is treated as content.
    """

    def parse(self, raw_text: str, chat_format: ChatFormat) -> ParsedResponse:
        parse_format = _PARSERS.get(chat_format)
        if parse_format is None:
            return ParsedResponse(content=raw_text.strip())

        parsed = parse_format(raw_text)
        if parsed.tool_calls:
            logger.info(f"Parsed {len(parsed.tool_calls)} tool calls ({chat_format})")
        return parsed
