"""Agent configuration models."""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from tool_agent.exceptions import ConfigError

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that can execute shell commands. When the user asks for something "
    "that requires a command, generate and execute the appropriate shell command. "
    "Be careful and only execute safe commands."
)


class ServerAddress(BaseModel):
    """Location of an MCP tool server."""

    name: str
    host: str
    port: int = Field(..., ge=1, le=65535)
    type: str = "mcp"

    @property
    def url(self) -> str:
        """SSE endpoint of the server."""
        return f"http://{self.host}:{self.port}/sse"

    @classmethod
    def parse(cls, value: str) -> "ServerAddress":
        """Parse ``[name=]host:port``.

        Raises:
            ConfigError: If the value is not in that form
        """
        name, sep, location = value.partition("=")
        if not sep:
            name, location = "", value
        host, colon, port = location.rpartition(":")
        if not colon or not host or not port.isdigit():
            raise ConfigError(f"Invalid server address '{value}', expected [name=]host:port")
        try:
            return cls(name=name or f"{host}:{port}", host=host, port=int(port))
        except ValidationError as e:
            raise ConfigError(f"Invalid server address '{value}': {e.errors()[0]['msg']}") from e


class AgentConfig(BaseModel):
    """Configuration for a chat session, built from command line options."""

    model_path: Path
    prompt: str | None = None
    max_new_tokens: int = Field(256, gt=0)
    context_size: int = Field(2048, gt=0)
    batch_size: int = Field(512, gt=0)
    n_gpu_layers: int = Field(99, ge=0)
    confirm_commands: bool = False
    chat_template_file: Path | None = None
    port: int | None = Field(None, ge=1, le=65535)
    connect: list[ServerAddress] = Field(default_factory=list)
    max_tool_rounds: int = Field(8, gt=0)
    max_output_bytes: int = Field(65536, gt=0)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    connect_timeout: float = Field(5.0, gt=0)

    @field_validator("model_path")
    @classmethod
    def validate_model_path(cls, v: Path) -> Path:
        """Model file must exist."""
        if not v.is_file():
            raise ValueError(f"Model file not found: {v}")
        return v

    @field_validator("chat_template_file")
    @classmethod
    def validate_chat_template_file(cls, v: Path | None) -> Path | None:
        """Template override must exist when given."""
        if v is not None and not v.is_file():
            raise ValueError(f"Chat template file not found: {v}")
        return v

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str | None) -> str | None:
        """A one-shot prompt cannot be blank."""
        if v is not None and not v.strip():
            raise ValueError("Prompt cannot be empty")
        return v

    def read_chat_template(self) -> str | None:
        """Return the override template text, if configured."""
        if self.chat_template_file is None:
            return None
        return self.chat_template_file.read_text(encoding="utf-8")


def load_config(**values: Any) -> AgentConfig:
    """Validate raw option values into an AgentConfig.

    Raises:
        ConfigError: If any value is missing or invalid
    """
    connect = values.pop("connect", None) or []
    try:
        values["connect"] = [ServerAddress.parse(c) if isinstance(c, str) else c for c in connect]
        return AgentConfig.model_validate({k: v for k, v in values.items() if v is not None})
    except ValidationError as e:
        details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise ConfigError(f"Invalid configuration: {details}") from e
