"""API endpoints for the tool server."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request

from tool_agent import __version__
from tool_agent.models.api import HealthResponse, ToolsResponse
from tool_agent.tools.registry import ToolsRegistry

router = APIRouter()


def get_registry(request: Request) -> ToolsRegistry:
    """The registry the application was created with."""
    return request.app.state.registry


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(registry: ToolsRegistry = Depends(get_registry)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
        tools=len(registry.list(local_only=True)),
    )


@router.get("/tools", response_model=ToolsResponse, tags=["Tools"])
async def list_tools(registry: ToolsRegistry = Depends(get_registry)) -> ToolsResponse:
    """List the tools this server exposes over MCP."""
    return ToolsResponse(tools=registry.list(local_only=True))
