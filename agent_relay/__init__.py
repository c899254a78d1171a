"""
agent_relay - WebSocket relay in front of a streaming Claude agent.

One client at a time talks to one long-lived Agent SDK session over /ws.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
