"""
Connection Registry - the single active WebSocket connection.

BLACK BOX INTERFACE:
- accept(websocket) -> Accept the socket; reject it if one is already active
- release(websocket) -> Forget the socket when it disconnects
- publish(envelope) -> Queue an envelope for the active client, or drop it
- send_to(websocket, envelope) -> Reply to one specific socket
- flush() -> Wait until the active outbox has been delivered

Every accepted connection gets an outbox and a sender task, so envelopes
reach the client in the order they were published, including envelopes
published from synchronous callbacks such as the agent's stderr hook.
Nothing is buffered while no client is connected.
"""

import asyncio
import logging
import uuid
from typing import Any, Optional

from fastapi import WebSocket

from agent_relay.core.message_converter import (
    connected_envelope,
    error_envelope,
)

logger = logging.getLogger(__name__)

# WebSocket close code: "Try Again Later"
CLOSE_CODE_OCCUPIED = 1013


class Connection:
    """One accepted WebSocket plus its ordered outbox."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.connection_id = uuid.uuid4().hex[:8]
        self.outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._sender: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._sender = asyncio.create_task(
            self._deliver(), name=f"ws-sender-{self.connection_id}"
        )

    async def _deliver(self) -> None:
        while True:
            envelope = await self.outbox.get()
            try:
                await self.websocket.send_json(envelope)
            except Exception as e:
                logger.warning(
                    f"⚠️ [WS] Dropping {envelope.get('type')} envelope for "
                    f"{self.connection_id}: {e}"
                )
            finally:
                self.outbox.task_done()

    async def close(self) -> None:
        if self._sender is None:
            return
        self._sender.cancel()
        try:
            await self._sender
        except asyncio.CancelledError:
            pass
        self._sender = None
        dropped = self.outbox.qsize()
        if dropped:
            logger.info(
                f"🔷 [WS] Dropped {dropped} undelivered envelopes for "
                f"{self.connection_id}"
            )


class ConnectionRegistry:
    """Enforces the one-active-connection rule and routes outbound traffic."""

    REJECTION_MESSAGE = "Server already has an active connection"

    def __init__(self) -> None:
        self._active: Optional[Connection] = None
        self.rejected_count = 0

    @property
    def active(self) -> Optional[Connection]:
        return self._active

    @property
    def is_occupied(self) -> bool:
        return self._active is not None

    def is_active(self, websocket: WebSocket) -> bool:
        return self._active is not None and self._active.websocket is websocket

    async def accept(self, websocket: WebSocket) -> bool:
        """
        Accept a new WebSocket.

        Returns:
            True if it became the active connection, False if it was rejected
            (the rejected socket gets one error envelope and is closed).
        """
        await websocket.accept()

        if self._active is not None:
            self.rejected_count += 1
            logger.warning(
                f"🚫 [WS] Rejecting connection: {self._active.connection_id} "
                "is still active"
            )
            try:
                await websocket.send_json(
                    error_envelope(self.REJECTION_MESSAGE)
                )
                await websocket.close(code=CLOSE_CODE_OCCUPIED)
            except Exception as e:
                logger.warning(f"⚠️ [WS] Could not notify rejected client: {e}")
            return False

        connection = Connection(websocket)
        self._active = connection
        connection.start()
        connection.outbox.put_nowait(connected_envelope())
        logger.info(f"🔷 [WS] Connection {connection.connection_id} accepted")
        return True

    async def release(self, websocket: WebSocket) -> None:
        """Clear the active reference if it belongs to ``websocket``."""
        if not self.is_active(websocket):
            return
        connection, self._active = self._active, None
        await connection.close()
        logger.info(f"🔷 [WS] Connection {connection.connection_id} closed")

    def publish(self, envelope: dict[str, Any]) -> None:
        """Queue ``envelope`` for the active client; drop it if there is none."""
        if self._active is None:
            logger.debug(
                f"[WS] No active connection, dropping {envelope.get('type')}"
            )
            return
        self._active.outbox.put_nowait(envelope)

    async def send_to(
        self, websocket: WebSocket, envelope: dict[str, Any]
    ) -> None:
        """Send ``envelope`` to one socket, keeping outbox order if it is active."""
        if self.is_active(websocket):
            self.publish(envelope)
            return
        try:
            await websocket.send_json(envelope)
        except Exception as e:
            logger.warning(f"⚠️ [WS] Could not send {envelope.get('type')}: {e}")

    async def flush(self) -> None:
        """Wait until everything queued for the active client was sent."""
        if self._active is not None:
            await self._active.outbox.join()

    def get_stats(self) -> dict[str, Any]:
        return {
            "active_connection": (
                self._active.connection_id if self._active else None
            ),
            "rejected_connections": self.rejected_count,
        }
