"""Tests for data models and configuration."""

import pytest
from pydantic import ValidationError

from tool_agent.exceptions import ConfigError
from tool_agent.models.config import DEFAULT_SYSTEM_PROMPT, AgentConfig, ServerAddress, load_config
from tool_agent.models.messages import ConversationMessage, ToolCallRequest, ToolErrorKind, ToolResult
from tool_agent.models.tools import ToolSpec


@pytest.fixture
def model_file(tmp_path):
    """A stand-in model file."""
    path = tmp_path / "model.gguf"
    path.write_bytes(b"GGUF")
    return path


class TestMessageModels:
    """Tests for conversation messages and tool results."""

    def test_tool_message_correlates_with_call(self):
        """Test that a tool message carries the id and name of its call."""
        call = ToolCallRequest(id="call_1", name="shell_command", arguments='{"command": "ls"}')

        message = ConversationMessage.tool(call, ToolResult.success("notes.txt"))

        assert message.role == "tool"
        assert message.tool_call_id == "call_1"
        assert message.name == "shell_command"
        assert message.content == "notes.txt"

    def test_failure_rendering(self):
        """Test that failures show their kind and detail."""
        result = ToolResult.failure(ToolErrorKind.SAFETY_REJECTION, "Command rejected")

        assert result.ok is False
        assert result.render() == "Error (safety_rejection): Command rejected"

    def test_messages_are_immutable(self):
        """Test that a message cannot be changed once created."""
        message = ConversationMessage.user("Hello")
        with pytest.raises(ValidationError):
            message.content = "changed"

    def test_assistant_defaults(self):
        """Test that an assistant message without calls has an empty list."""
        message = ConversationMessage.assistant("Hi")
        assert message.tool_calls == []
        assert message.tool_call_id is None

    def test_tool_call_default_arguments(self):
        """Test that arguments default to an empty object."""
        assert ToolCallRequest(id="1", name="x").arguments == "{}"

    def test_tool_spec_function_format(self):
        """Test the function format handed to chat templates."""
        spec = ToolSpec(name="shell_command", description="Run a command")

        assert spec.as_function() == {
            "type": "function",
            "function": {
                "name": "shell_command",
                "description": "Run a command",
                "parameters": {"type": "object", "properties": {}},
            },
        }

    def test_tool_spec_requires_name(self):
        """Test that a spec needs a non-empty name."""
        with pytest.raises(ValidationError):
            ToolSpec(name="")


class TestServerAddress:
    """Tests for MCP server addresses."""

    def test_named(self):
        """Test the ``name=host:port`` form."""
        address = ServerAddress.parse("tools=localhost:8889")

        assert address.name == "tools"
        assert address.host == "localhost"
        assert address.port == 8889
        assert address.url == "http://localhost:8889/sse"

    def test_unnamed(self):
        """Test that the name defaults to ``host:port``."""
        address = ServerAddress.parse("10.0.0.5:9000")
        assert address.name == "10.0.0.5:9000"

    @pytest.mark.parametrize("value", ["localhost", "localhost:", ":8889", "host:port", "host:70000", "x=host:0"])
    def test_invalid(self, value):
        """Test that malformed addresses are configuration errors."""
        with pytest.raises(ConfigError):
            ServerAddress.parse(value)


class TestAgentConfig:
    """Tests for loading the agent configuration."""

    def test_defaults(self, model_file):
        """Test the documented defaults."""
        config = load_config(model_path=model_file)

        assert config.max_new_tokens == 256
        assert config.context_size == 2048
        assert config.batch_size == 512
        assert config.n_gpu_layers == 99
        assert config.confirm_commands is False
        assert config.port is None
        assert config.connect == []
        assert config.max_tool_rounds == 8
        assert config.max_output_bytes == 65536
        assert config.system_prompt == DEFAULT_SYSTEM_PROMPT

    def test_none_values_use_defaults(self, model_file):
        """Test that options left unset on the command line fall back to defaults."""
        config = load_config(model_path=model_file, prompt=None, port=None, connect=None)
        assert config.prompt is None
        assert config.connect == []

    def test_connect_parsed(self, model_file):
        """Test that server strings become addresses."""
        config = load_config(model_path=model_file, connect=["a=localhost:1", "example.com:2"])
        assert [c.name for c in config.connect] == ["a", "example.com:2"]

    def test_missing_model_file(self, tmp_path):
        """Test that a missing model file is a configuration error."""
        with pytest.raises(ConfigError, match="Model file not found"):
            load_config(model_path=tmp_path / "missing.gguf")

    def test_missing_model_path(self):
        """Test that the model path is required."""
        with pytest.raises(ConfigError, match="model_path"):
            load_config()

    @pytest.mark.parametrize(
        "field",
        ["max_new_tokens", "context_size", "batch_size", "max_tool_rounds", "max_output_bytes"],
    )
    def test_positive_sizes(self, model_file, field):
        """Test that sizes must be positive."""
        with pytest.raises(ConfigError, match=field):
            load_config(model_path=model_file, **{field: 0})

    def test_invalid_port(self, model_file):
        """Test that the tool-server port must be valid."""
        with pytest.raises(ConfigError, match="port"):
            load_config(model_path=model_file, port=70000)

    def test_blank_prompt(self, model_file):
        """Test that a one-shot prompt cannot be blank."""
        with pytest.raises(ConfigError, match="Prompt cannot be empty"):
            load_config(model_path=model_file, prompt="   ")

    def test_chat_template_file(self, model_file, tmp_path):
        """Test that a template override is read from disk."""
        template = tmp_path / "template.jinja"
        template.write_text("{{ messages[0].content }}")

        config = load_config(model_path=model_file, chat_template_file=template)

        assert config.read_chat_template() == "{{ messages[0].content }}"

    def test_missing_chat_template_file(self, model_file, tmp_path):
        """Test that a missing template override is a configuration error."""
        with pytest.raises(ConfigError, match="Chat template file not found"):
            load_config(model_path=model_file, chat_template_file=tmp_path / "nope.jinja")

    def test_no_template_override(self, model_file):
        """Test that without an override there is no template text."""
        assert AgentConfig(model_path=model_file).read_chat_template() is None
