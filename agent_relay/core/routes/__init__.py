"""
Routes package for the relay web server.
"""

from agent_relay.core.routes.config_routes import create_config_router

__all__ = ["create_config_router"]
