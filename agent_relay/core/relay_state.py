"""
Relay State - the process-wide mutable state in one place.

The message queue, the active connection (inside the registry), the stored
configuration and the agent session reference are shared by the WebSocket
endpoint, the message handler and the /config routes.  They are only safe
without locks because everything runs on one event loop.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from agent_relay.config import ServerSettings
from agent_relay.core.agent_session import AgentStreamSession, SessionState
from agent_relay.core.config_store import ConfigStore
from agent_relay.core.message_converter import info_envelope
from agent_relay.core.message_queue import MessageQueue
from agent_relay.core.message_source import MessageSource
from agent_relay.core.websocket.connection_registry import ConnectionRegistry
from agent_relay.shared.agent_protocol import (
    AgentStreamFactory,
    default_claude_stream_factory,
    resolve_agent_options,
)

logger = logging.getLogger(__name__)


@dataclass
class RelayState:
    """Queue, connection registry, configuration and agent session."""

    settings: ServerSettings = field(default_factory=ServerSettings)
    stream_factory: AgentStreamFactory = default_claude_stream_factory
    queue: MessageQueue = field(default_factory=MessageQueue)
    registry: ConnectionRegistry = field(default_factory=ConnectionRegistry)
    config_store: ConfigStore = field(default_factory=ConfigStore)
    agent_session: Optional[AgentStreamSession] = None
    sessions_created: int = 0

    def ensure_agent_session(self) -> AgentStreamSession:
        """
        Return the agent session, starting one if needed.

        A running or failed session is returned as is.  Only a session whose
        output stream finished normally is replaced, with a fresh message
        source over the same queue.  Must be called from the event loop.
        """
        session = self.agent_session
        if session is not None and not session.finished:
            return session

        if session is not None:
            logger.info("♻️ [AGENT] Previous agent stream finished, starting a new one")

        options = resolve_agent_options(
            self.config_store.get(),
            workspace_dir=self.settings.workspace_directory,
            stderr=self.forward_stderr,
        )
        session = AgentStreamSession(
            options=options,
            source=MessageSource(self.queue, self.settings.poll_interval),
            publish=self.registry.publish,
            stream_factory=self.stream_factory,
        )
        self.agent_session = session
        self.sessions_created += 1
        session.start()
        return session

    def forward_stderr(self, data: str) -> None:
        """Agent diagnostic output goes to the client as ``info``."""
        self.registry.publish(info_envelope(data))

    async def interrupt(self) -> None:
        if self.agent_session is None:
            logger.debug("[AGENT] Interrupt ignored: no agent session yet")
            return
        await self.agent_session.interrupt()

    async def shutdown(self) -> None:
        if self.agent_session is not None:
            await self.agent_session.stop()

    def get_stats(self) -> dict:
        session = self.agent_session
        return {
            "queued_messages": len(self.queue),
            "sessions_created": self.sessions_created,
            "agent_state": (
                session.state.value if session else SessionState.PENDING.value
            ),
            **self.registry.get_stats(),
        }
