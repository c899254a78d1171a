"""
Message Queue - ordered in-memory buffer of pending user messages.

BLACK BOX INTERFACE:
- enqueue(message) -> Append, never blocks, wakes a waiting consumer
- drain() -> Remove and return everything queued, oldest first
- popleft() -> Remove and return the oldest message
- wait_for_items(timeout) -> Suspend until something is queued or timeout
"""

import asyncio
from collections import deque
from typing import Any, Deque, Optional


class MessageQueue:
    """FIFO of SDK user messages awaiting consumption by the agent."""

    def __init__(self) -> None:
        self._items: Deque[dict[str, Any]] = deque()
        self._not_empty = asyncio.Event()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def enqueue(self, message: dict[str, Any]) -> None:
        self._items.append(message)
        self._not_empty.set()

    def popleft(self) -> dict[str, Any]:
        """Remove the oldest message. Raises IndexError when empty."""
        message = self._items.popleft()
        if not self._items:
            self._not_empty.clear()
        return message

    def drain(self) -> list[dict[str, Any]]:
        messages = list(self._items)
        self._items.clear()
        self._not_empty.clear()
        return messages

    async def wait_for_items(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the queue is non-empty.

        Returns:
            True if messages are available, False if the timeout elapsed.
        """
        if self._items:
            return True
        try:
            await asyncio.wait_for(self._not_empty.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return bool(self._items)
