"""
Agent relay core - WebSocket front end for a streaming Claude agent.
"""

from .agent_session import AgentStreamSession, SessionState
from .config_store import ConfigStore
from .message_queue import MessageQueue
from .message_source import MessageSource
from .relay_state import RelayState
from .web_server import RelayServer, create_server, start_relay_server

__all__ = [
    "AgentStreamSession",
    "SessionState",
    "ConfigStore",
    "MessageQueue",
    "MessageSource",
    "RelayState",
    "RelayServer",
    "create_server",
    "start_relay_server",
]
