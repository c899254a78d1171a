"""
Agent Stream Session - one long-lived Agent SDK stream.

The session connects an agent client with a MessageSource as its prompt and
forwards every message the agent produces to the output sink as an
``sdk_message`` envelope.  The sink is ConnectionRegistry.publish, which drops
envelopes while no client is connected.

Lifecycle:
    PENDING -> RUNNING -> FINISHED   (output stream ended normally)
                       -> FAILED     (exception while starting or iterating)
                       -> STOPPED    (server shutdown)

Errors end the output loop; nothing restarts it automatically.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional

from agent_relay.core.errors import SessionAlreadyStartedError
from agent_relay.core.message_converter import (
    error_envelope,
    sdk_message_envelope,
)
from agent_relay.core.message_source import MessageSource
from agent_relay.shared.agent_protocol import (
    AgentStream,
    AgentStreamFactory,
    default_claude_stream_factory,
    redact_options,
)

logger = logging.getLogger(__name__)

Publish = Callable[[dict[str, Any]], None]


class SessionState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    STOPPED = "stopped"


class AgentStreamSession:
    """
    Owns exactly one agent stream and pumps its output to the client.

    Example:
        ```python
        session = AgentStreamSession(
            options=resolve_agent_options(store.get(), workspace_dir=home),
            source=MessageSource(queue),
            publish=registry.publish,
        )
        session.start()
        ...
        await session.interrupt()
        ```
    """

    def __init__(
        self,
        options: dict[str, Any],
        source: MessageSource,
        publish: Publish,
        stream_factory: Optional[AgentStreamFactory] = None,
    ):
        """
        Args:
            options: Resolved agent options (see resolve_agent_options)
            source: Prompt stream handed to the agent on connect
            publish: Sink for outbound envelopes
            stream_factory: Builds the agent stream; defaults to the real SDK
        """
        self.options = options
        self.source = source
        self.publish = publish
        self.stream_factory: AgentStreamFactory = (
            stream_factory or default_claude_stream_factory
        )

        # Live stream reference, set while RUNNING
        self.stream: Optional[AgentStream] = None
        self.state = SessionState.PENDING
        self.messages_forwarded = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def finished(self) -> bool:
        """True once the agent's output stream ended without an error."""
        return self.state is SessionState.FINISHED

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def start(self) -> asyncio.Task:
        """Schedule run() on the current event loop."""
        if self._task is not None:
            raise SessionAlreadyStartedError("Agent stream already started")
        self._task = asyncio.create_task(self.run(), name="agent-stream")
        return self._task

    async def run(self) -> None:
        """Connect the agent and forward its output until it ends or fails."""
        self.state = SessionState.RUNNING
        stream: Optional[AgentStream] = None
        try:
            logger.info(
                "🤖 [AGENT] Starting agent stream with options %s",
                redact_options(self.options),
            )
            stream = self.stream_factory(self.options)
            await stream.connect(self.source)
            # Published only once connected; interrupts before that are no-ops
            self.stream = stream

            async for message in stream.receive_messages():
                self.messages_forwarded += 1
                self.publish(sdk_message_envelope(message))
        except Exception as e:
            logger.error(f"❌ [AGENT] Error processing messages: {e}", exc_info=True)
            self.state = SessionState.FAILED
            self.publish(error_envelope(str(e) or "Unknown error"))
        else:
            logger.info(
                "🏁 [AGENT] Agent stream finished after %d messages",
                self.messages_forwarded,
            )
            self.state = SessionState.FINISHED
        finally:
            self.stream = None
            await self._disconnect(stream)

    async def interrupt(self) -> None:
        """
        Interrupt the agent's current turn.

        No-op when no stream is live.
        """
        if self.stream is None:
            logger.debug("[AGENT] Interrupt ignored: no live stream")
            return
        logger.info("⏹️ [AGENT] Interrupting current turn")
        await self.stream.interrupt()

    async def set_permission_mode(self, mode: str) -> None:
        """Change the permission mode of the live stream, if any."""
        if self.stream is None:
            logger.warning("⚠️ Cannot set permission mode: no live stream")
            return
        logger.info(f"🔐 [AGENT] Setting permission mode to: {mode}")
        await self.stream.set_permission_mode(mode)

    async def stop(self) -> None:
        """Cancel the output loop and disconnect the agent (shutdown)."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        stream, self.stream = self.stream, None
        await self._disconnect(stream)
        if self.state in (SessionState.PENDING, SessionState.RUNNING):
            self.state = SessionState.STOPPED

    async def _disconnect(self, stream: Optional[AgentStream]) -> None:
        if stream is None:
            return
        try:
            await stream.disconnect()
        except Exception as e:
            logger.warning(f"⚠️ [AGENT] Disconnect failed: {e}")
