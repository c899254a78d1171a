"""
WebSocket package for the relay web server.

Contains the connection registry and inbound message handling.
"""

from agent_relay.core.websocket.connection_registry import ConnectionRegistry
from agent_relay.core.websocket.message_handler import MessageHandler

__all__ = ["ConnectionRegistry", "MessageHandler"]
