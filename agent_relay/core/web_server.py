"""
Web Server - FastAPI app relaying one WebSocket client to one agent stream.

Endpoints:
- /ws: duplex channel (JSON frames in both directions)
- POST /config, GET /config: agent configuration
- anything else: 404

The agent stream session is created lazily by the first accepted WebSocket
and keeps running across reconnects.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.websockets import WebSocketDisconnect

from agent_relay import __version__
from agent_relay.config import ServerSettings, load_server_settings
from agent_relay.core.relay_state import RelayState
from agent_relay.core.routes import create_config_router
from agent_relay.core.websocket.message_handler import MessageHandler
from agent_relay.shared.agent_protocol import (
    AgentStreamFactory,
    default_claude_stream_factory,
)

logger = logging.getLogger(__name__)


class RelayServer:
    """
    FastAPI server for the agent relay.

    Features:
    - Single active WebSocket client, further clients are rejected
    - One agent stream session shared by successive clients
    - Runtime agent configuration over HTTP
    """

    def __init__(
        self,
        settings: Optional[ServerSettings] = None,
        stream_factory: Optional[AgentStreamFactory] = None,
    ):
        """
        Initialize relay server.

        Args:
            settings: Process settings. If None, loaded from the environment.
            stream_factory: Factory for agent streams (injected for testing)
        """
        self.settings = settings or load_server_settings()
        self.state = RelayState(
            settings=self.settings,
            stream_factory=stream_factory or default_claude_stream_factory,
        )
        self.message_handler = MessageHandler(self.state)

        self.app = self._create_app()
        self._register_routes()

    def _create_app(self) -> FastAPI:
        """Create and configure FastAPI application."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            logger.info(
                f"📁 [SERVER] Agent workspace: {self.settings.workspace_directory}"
            )
            yield
            logger.info("🛑 [SERVER] Shutting down agent stream")
            await self.state.shutdown()
            logger.info(f"📊 [SERVER] Final relay stats: {self.state.get_stats()}")

        app = FastAPI(
            title="Agent Relay", version=__version__, lifespan=lifespan
        )

        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        async def not_found(request, exc):
            return PlainTextResponse("Not Found", status_code=404)

        # Unsupported methods on known paths are reported like unknown paths
        app.add_exception_handler(404, not_found)
        app.add_exception_handler(405, not_found)
        return app

    def _register_routes(self):
        self.app.include_router(create_config_router(self.state.config_store))

        @self.app.websocket("/ws")
        async def websocket_endpoint(websocket: WebSocket):
            await self._handle_websocket(websocket)

    async def _handle_websocket(self, websocket: WebSocket):
        """Handle one WebSocket from accept to disconnect."""
        registry = self.state.registry
        if not await registry.accept(websocket):
            return

        try:
            self.state.ensure_agent_session()

            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                if raw is None:
                    continue
                await self.message_handler.handle(websocket, raw)
        except WebSocketDisconnect:
            pass
        finally:
            await registry.release(websocket)

    async def run(self):
        """Run the web server."""
        import uvicorn

        logger.info(
            f"🚀 WebSocket server running on http://{self.settings.host}:{self.settings.port}"
        )
        logger.info(
            f"   Config endpoint: http://{self.settings.host}:{self.settings.port}/config"
        )
        logger.info(
            f"   WebSocket endpoint: ws://{self.settings.host}:{self.settings.port}/ws"
        )

        config = uvicorn.Config(
            self.app,
            host=self.settings.host,
            port=self.settings.port,
            log_level=self.settings.log_level.lower(),
        )
        server = uvicorn.Server(config)
        await server.serve()


async def start_relay_server(
    settings: Optional[ServerSettings] = None,
    stream_factory: Optional[AgentStreamFactory] = None,
):
    """Start the relay server."""
    server = RelayServer(settings=settings, stream_factory=stream_factory)
    await server.run()


def create_server(
    settings: Optional[ServerSettings] = None,
    stream_factory: Optional[AgentStreamFactory] = None,
) -> RelayServer:
    """Create relay server instance."""
    return RelayServer(settings=settings, stream_factory=stream_factory)


def get_app() -> FastAPI:
    """Factory function for ``uvicorn --factory``."""
    return RelayServer().app
