"""Tool server application."""

import threading

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tool_agent import __version__
from tool_agent.api.endpoints import router
from tool_agent.api.mcp_server import create_mcp_server, mount_mcp_server
from tool_agent.tools.registry import ToolsRegistry
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8889


def create_app(registry: ToolsRegistry) -> FastAPI:
    """Create the FastAPI application serving the local tools of ``registry``."""
    app = FastAPI(
        title="Tool Agent",
        description="Serves the agent's local tools to MCP clients over SSE.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        tags_metadata=[
            {
                "name": "Tools",
                "description": "Tools available to MCP clients.",
            },
            {
                "name": "Health",
                "description": "Service health monitoring and status checks.",
            },
        ],
    )
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    mount_mcp_server(app, create_mcp_server(registry))
    return app


def serve(registry: ToolsRegistry, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """Run the tool server until interrupted."""
    logger.info(f"Serving {len(registry.list(local_only=True))} tools on {host}:{port}")
    uvicorn.run(create_app(registry), host=host, port=port, log_level="info")


def start_background_server(
    registry: ToolsRegistry, port: int, host: str = DEFAULT_HOST
) -> tuple[uvicorn.Server, threading.Thread]:
    """Run the tool server in a daemon thread next to the chat loop."""
    server = uvicorn.Server(uvicorn.Config(create_app(registry), host=host, port=port, log_level="warning"))
    thread = threading.Thread(target=server.run, name="tool-server", daemon=True)
    thread.start()
    logger.info(f"Tool server started on {host}:{port}")
    return server, thread
