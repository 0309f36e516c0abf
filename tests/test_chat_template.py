"""Tests for chat template rendering."""

import pytest

from tool_agent.exceptions import GenerationError
from tool_agent.models.messages import ConversationMessage, ToolCallRequest, ToolResult
from tool_agent.models.tools import ToolSpec
from tool_agent.services.chat_template import ChatFormat, ChatTemplate, detect_format, message_to_dict

SHELL_SPEC = ToolSpec(
    name="shell_command",
    description="Execute a shell command and return the output",
    parameters={"type": "object", "properties": {"command": {"type": "string"}}, "required": ["command"]},
)


@pytest.fixture
def conversation():
    """A conversation with one completed tool round."""
    call = ToolCallRequest(id="call_1", name="shell_command", arguments='{"command": "ls"}')
    return [
        ConversationMessage.system("You are helpful."),
        ConversationMessage.user("list files"),
        ConversationMessage.assistant("", [call]),
        ConversationMessage.tool(call, ToolResult.success("notes.txt")),
    ]


class TestDefaultTemplate:
    """Tests for the bundled ChatML template."""

    def test_renders_tools_and_history(self, conversation):
        """Test that tools, tool calls and tool responses all reach the prompt."""
        rendered = ChatTemplate().render(conversation, tools=[SHELL_SPEC])

        assert rendered.format == ChatFormat.HERMES
        assert "<tools>" in rendered.prompt
        assert '"name": "shell_command"' in rendered.prompt
        assert "You are helpful." in rendered.prompt
        assert '<tool_call>\n{"name": "shell_command", "arguments": {"command": "ls"}}\n</tool_call>' in rendered.prompt
        assert "<tool_response>\nnotes.txt\n</tool_response>" in rendered.prompt
        assert rendered.prompt.endswith("<|im_start|>assistant\n")

    def test_without_tools_is_content_only(self):
        """Test that a conversation without tools is parsed as plain content."""
        rendered = ChatTemplate().render([ConversationMessage.system("Hi."), ConversationMessage.user("Hello")])

        assert rendered.format == ChatFormat.CONTENT_ONLY
        assert "<tools>" not in rendered.prompt
        assert "<|im_start|>user\nHello<|im_end|>" in rendered.prompt

    def test_no_generation_prompt(self):
        """Test that the assistant header can be left off."""
        rendered = ChatTemplate().render([ConversationMessage.user("Hello")], add_generation_prompt=False)
        assert not rendered.prompt.endswith("<|im_start|>assistant\n")

    def test_malformed_arguments_rendered_verbatim(self):
        """Test that unparseable arguments are shown to the model as written."""
        call = ToolCallRequest(id="call_2", name="shell_command", arguments='{"command": "ls"')
        rendered = ChatTemplate().render([ConversationMessage.assistant("", [call])], tools=[SHELL_SPEC])

        assert '"arguments": {"command": "ls"}' in rendered.prompt

    def test_failed_result_rendered_as_error(self):
        """Test that a failed tool result is shown with its error kind."""
        call = ToolCallRequest(id="call_3", name="nope")
        message = ConversationMessage.tool(call, ToolResult.failure("not_found", "Unknown tool 'nope'"))

        rendered = ChatTemplate().render([message])

        assert "Error (not_found): Unknown tool 'nope'" in rendered.prompt


class TestCustomTemplates:
    """Tests for templates supplied by the model or the user."""

    def test_bos_token_detection(self):
        """Test that a template emitting the BOS token is flagged."""
        template = ChatTemplate("{{ bos_token }}{% for m in messages %}{{ m.content }}{% endfor %}", bos_token="<s>")

        rendered = template.render([ConversationMessage.user("hi")])

        assert rendered.prompt == "<s>hi"
        assert rendered.added_special is True

    def test_raise_exception_becomes_generation_error(self):
        """Test that template errors are generation errors."""
        template = ChatTemplate("{{ raise_exception('roles must alternate') }}")

        with pytest.raises(GenerationError, match="roles must alternate"):
            template.render([ConversationMessage.user("hi")])

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{{ '<tool_call>' }}", ChatFormat.HERMES),
            ("{{ '[TOOL_CALLS]' }}", ChatFormat.MISTRAL),
            ("{{ '<|python_tag|>' }}", ChatFormat.LLAMA3_JSON),
            ("{% for m in messages %}{{ m.content }}{% endfor %}", ChatFormat.GENERIC),
        ],
    )
    def test_detect_format(self, source, expected):
        """Test that the tool-call format follows the template source."""
        assert detect_format(source) == expected
        assert ChatTemplate(source).tool_format == expected


class TestMessageToDict:
    """Tests for the message shape templates iterate over."""

    def test_tool_message_fields(self, conversation):
        """Test that tool messages carry their correlation fields."""
        data = message_to_dict(conversation[3])
        assert data == {
            "role": "tool",
            "content": "notes.txt",
            "tool_calls": [],
            "tool_call_id": "call_1",
            "name": "shell_command",
        }

    def test_assistant_arguments_decoded(self, conversation):
        """Test that valid arguments are handed to templates decoded."""
        data = message_to_dict(conversation[2])
        assert data["tool_calls"][0]["function"]["arguments"] == {"command": "ls"}
