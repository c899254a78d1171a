"""
Shared modules for agent_relay

Logging setup and the agent stream protocol used by the web layer.
"""

from agent_relay.shared.logging_config import configure_logging

__all__ = [
    "configure_logging",
]
