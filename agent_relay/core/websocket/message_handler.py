"""
Message Handler - Routes incoming WebSocket frames to type-specific processors.

BLACK BOX INTERFACE:
- handle(websocket, raw) -> Parse one frame and dispatch it

Frame types:
- user_message: {"type": "user_message", "data": <text | message | SDK user message>}
- interrupt: {"type": "interrupt"}
- set_permission_mode: {"type": "set_permission_mode", "mode": "<mode>"}

Problems are reported to the sender as error envelopes; handle() never raises.
"""

import logging
from typing import TYPE_CHECKING, Any

from fastapi import WebSocket

from agent_relay.core.errors import InvalidFrameError
from agent_relay.core.message_converter import (
    build_user_message,
    error_envelope,
    parse_frame,
)

if TYPE_CHECKING:
    from agent_relay.core.relay_state import RelayState

logger = logging.getLogger(__name__)


class MessageHandler:
    """Routes WebSocket frames to the queue or the agent session."""

    def __init__(self, state: "RelayState"):
        self.state = state
        self.processors = {
            "user_message": self._process_user_message,
            "interrupt": self._process_interrupt,
            "set_permission_mode": self._process_permission_mode,
        }

    async def handle(self, websocket: WebSocket, raw: str | bytes) -> None:
        try:
            frame = parse_frame(raw)
        except InvalidFrameError as e:
            logger.warning(f"⚠️ [WS] Malformed frame ignored: {e}")
            await self._reply_error(websocket, str(e))
            return

        msg_type = frame.get("type")
        processor = self.processors.get(msg_type)
        if not processor:
            logger.warning(f"No processor registered for message type: {msg_type}")
            await self._reply_error(websocket, f"Unknown message type: {msg_type}")
            return

        try:
            await processor(frame)
        except InvalidFrameError as e:
            logger.warning(f"⚠️ [WS] Rejected {msg_type} frame: {e}")
            await self._reply_error(websocket, str(e))
        except Exception as e:
            logger.error(
                f"Error processing {msg_type} message: {e}", exc_info=True
            )
            await self._reply_error(
                websocket, f"Error processing message: {str(e)}"
            )

    async def _process_user_message(self, frame: dict[str, Any]) -> None:
        message = build_user_message(frame.get("data"))
        self.state.queue.enqueue(message)
        logger.debug(
            f"📥 [WS] Queued user message ({len(self.state.queue)} pending)"
        )

    async def _process_interrupt(self, frame: dict[str, Any]) -> None:
        await self.state.interrupt()

    async def _process_permission_mode(self, frame: dict[str, Any]) -> None:
        mode = frame.get("mode")
        if not isinstance(mode, str) or not mode:
            raise InvalidFrameError("set_permission_mode requires a mode")
        if self.state.agent_session is None:
            logger.debug("[WS] Permission mode ignored: no agent session yet")
            return
        await self.state.agent_session.set_permission_mode(mode)

    async def _reply_error(self, websocket: WebSocket, message: str) -> None:
        await self.state.registry.send_to(websocket, error_envelope(message))
