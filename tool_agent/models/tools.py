"""Tool specification model."""

from typing import Any

from langchain_core.tools import BaseTool
from pydantic import BaseModel, ConfigDict, Field


class ToolSpec(BaseModel):
    """Declared signature of a tool, as presented to the model."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})

    @classmethod
    def from_tool(cls, tool: BaseTool) -> "ToolSpec":
        """Build a spec from a LangChain tool and its argument schema."""
        schema = tool.get_input_schema().model_json_schema()
        schema.pop("title", None)
        return cls(name=tool.name, description=tool.description, parameters=schema)

    def as_function(self) -> dict[str, Any]:
        """Render in the OpenAI-style function format chat templates expect."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
