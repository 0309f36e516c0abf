"""Response models for the tool server API."""

from datetime import datetime

from pydantic import BaseModel

from tool_agent.models.tools import ToolSpec


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
    tools: int


class ToolsResponse(BaseModel):
    """Tools served by this process."""

    tools: list[ToolSpec]
