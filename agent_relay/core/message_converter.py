"""
Message Converter - Agent SDK messages and relay envelopes.

Outbound frames are JSON objects tagged by ``type``:

    {"type": "connected"}
    {"type": "info", "data": "<diagnostic text>"}
    {"type": "sdk_message", "data": <agent message>}
    {"type": "error", "error": "<message text>"}

The Agent SDK yields typed dataclasses, so ``serialize_sdk_message`` turns
them into plain JSON data tagged the way the SDK's own wire format tags them
(``assistant``, ``user``, ``result``, ``text``, ``tool_use``...).
"""

import dataclasses
import json
from enum import Enum
from pathlib import PurePath
from typing import Any

from claude_agent_sdk.types import (
    AssistantMessage,
    ResultMessage,
    StreamEvent,
    SystemMessage,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
)

from agent_relay.core.errors import InvalidFrameError

_TYPE_TAGS: dict[type, str] = {
    AssistantMessage: "assistant",
    UserMessage: "user",
    SystemMessage: "system",
    ResultMessage: "result",
    StreamEvent: "stream_event",
    TextBlock: "text",
    ThinkingBlock: "thinking",
    ToolUseBlock: "tool_use",
    ToolResultBlock: "tool_result",
}


# ========== Outbound envelopes ==========


def connected_envelope() -> dict[str, Any]:
    return {"type": "connected"}


def info_envelope(data: str) -> dict[str, Any]:
    return {"type": "info", "data": data}


def sdk_message_envelope(message: Any) -> dict[str, Any]:
    return {"type": "sdk_message", "data": serialize_sdk_message(message)}


def error_envelope(error: str) -> dict[str, Any]:
    return {"type": "error", "error": error}


def serialize_sdk_message(value: Any) -> Any:
    """
    Convert an Agent SDK message (or anything nested in it) to JSON data.

    Dataclasses become dicts with a leading ``type`` tag when the class is a
    known SDK message or content block.  Dicts and lists are converted
    recursively, paths and enums become strings, anything else unknown falls
    back to ``str()``.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        data: dict[str, Any] = {}
        tag = _TYPE_TAGS.get(type(value))
        if tag:
            data["type"] = tag
        for f in dataclasses.fields(value):
            data[f.name] = serialize_sdk_message(getattr(value, f.name))
        return data
    if isinstance(value, dict):
        return {str(k): serialize_sdk_message(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_sdk_message(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, PurePath):
        return str(value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


# ========== Inbound frames ==========


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def loads_strict(raw: str | bytes) -> Any:
    """
    ``json.loads`` without the ``NaN`` / ``Infinity`` extensions.

    Raises:
        ValueError: If ``raw`` is not strict JSON
    """
    return json.loads(raw, parse_constant=_reject_constant)


def parse_frame(raw: str | bytes) -> dict[str, Any]:
    """
    Parse one inbound WebSocket frame.

    Raises:
        InvalidFrameError: If the frame is not a JSON object
    """
    try:
        frame = loads_strict(raw)
    except ValueError as e:
        raise InvalidFrameError("Invalid message format") from e

    if not isinstance(frame, dict):
        raise InvalidFrameError("Invalid message format")
    return frame


def build_user_message(
    data: Any, session_id: str = "default"
) -> dict[str, Any]:
    """
    Build a well-formed SDK user message from the client's payload.

    Accepts plain text, a ``{"role": "user", "content": ...}`` message, or a
    complete SDK user message, in which case missing fields are filled in.

    Raises:
        InvalidFrameError: If the payload cannot be turned into a user message
    """
    if isinstance(data, str):
        message: Any = {"role": "user", "content": data}
        parent_tool_use_id = None
    elif isinstance(data, dict) and data.get("type") == "user":
        message = data.get("message")
        parent_tool_use_id = data.get("parent_tool_use_id")
        session_id = data.get("session_id") or session_id
    elif isinstance(data, dict) and "content" in data:
        message = data
        parent_tool_use_id = None
    else:
        raise InvalidFrameError("Invalid user message")

    if not isinstance(message, dict) or message.get("content") in (None, "", []):
        raise InvalidFrameError("User message has no content")
    if message.get("role", "user") != "user":
        raise InvalidFrameError(
            f"Unsupported message role: {message.get('role')}"
        )

    return {
        "type": "user",
        "message": {**message, "role": "user"},
        "parent_tool_use_id": parent_tool_use_id,
        "session_id": session_id,
    }
