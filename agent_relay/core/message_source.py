"""
Message Source - the prompt stream fed to the agent.

The Agent SDK consumes its input as an async iterable.  MessageSource turns
the MessageQueue into one: it yields queued messages oldest first and idles
for at most ``poll_interval`` seconds whenever the queue is empty.  An
enqueue wakes it early.  It never finishes on its own.
"""

import logging
from typing import Any, AsyncIterator

from agent_relay.config import MESSAGE_POLL_INTERVAL
from agent_relay.core.message_queue import MessageQueue

logger = logging.getLogger(__name__)


class MessageSource:
    """Single-use infinite async iterator over a MessageQueue."""

    def __init__(
        self, queue: MessageQueue, poll_interval: float = MESSAGE_POLL_INTERVAL
    ):
        self.queue = queue
        self.poll_interval = poll_interval
        self.yielded = 0
        self._iterated = False

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        if self._iterated:
            raise RuntimeError(
                "MessageSource is single-use; create a new one per session"
            )
        self._iterated = True
        return self._generate()

    async def _generate(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            while self.queue:
                message = self.queue.popleft()
                self.yielded += 1
                logger.debug(
                    "📤 [SOURCE] Handing message #%d to agent", self.yielded
                )
                yield message

            await self.queue.wait_for_items(self.poll_interval)
