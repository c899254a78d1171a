"""
Agent stream abstraction and default Claude SDK factory.

The relay talks to the Claude Agent SDK through ``ClaudeSDKClient`` in
streaming-input mode: the client is connected once with an async iterable of
user messages and its output is read with ``receive_messages()``.  This module
defines the small protocol the rest of the package depends on, the adapter
around the real client, and the option resolution that turns the stored
configuration into ``ClaudeAgentOptions``.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Callable,
    Mapping,
    Optional,
    Protocol,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AgentStream",
    "AgentStreamFactory",
    "ClaudeAgentStream",
    "DEFAULT_PERMISSION_MODE",
    "DEFAULT_SETTING_SOURCES",
    "build_claude_agent_options",
    "default_claude_stream_factory",
    "normalize_option_key",
    "redact_options",
    "resolve_agent_options",
]

DEFAULT_PERMISSION_MODE = "bypassPermissions"
DEFAULT_SETTING_SOURCES = ["project"]

# Stored configuration keys that carry the Anthropic credential
CREDENTIAL_KEYS = ("anthropic_api_key",)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class AgentStream(Protocol):
    """Protocol describing the subset of SDK client features we rely on."""

    async def connect(self, prompt: AsyncIterable[dict[str, Any]]) -> None: ...

    def receive_messages(self) -> AsyncIterator[Any]: ...

    async def interrupt(self) -> None: ...

    async def set_permission_mode(self, mode: str) -> None: ...

    async def disconnect(self) -> None: ...


AgentStreamFactory = Callable[[dict[str, Any]], AgentStream]


@dataclass
class ClaudeAgentStream:
    """
    Adapter that wraps ``ClaudeSDKClient`` behind the :class:`AgentStream`
    protocol.
    """

    sdk_client: Any

    async def connect(self, prompt: AsyncIterable[dict[str, Any]]) -> None:
        await self.sdk_client.connect(prompt)

    async def receive_messages(self) -> AsyncIterator[Any]:
        async for message in self.sdk_client.receive_messages():
            yield message

    async def interrupt(self) -> None:
        await self.sdk_client.interrupt()

    async def set_permission_mode(self, mode: str) -> None:
        await self.sdk_client.set_permission_mode(mode)

    async def disconnect(self) -> None:
        await self.sdk_client.disconnect()


def normalize_option_key(key: str) -> str:
    """Map a client-side camelCase option name onto the SDK's snake_case."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def resolve_agent_options(
    stored: Mapping[str, Any],
    *,
    workspace_dir: Path | str,
    stderr: Optional[Callable[[str], None]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> dict[str, Any]:
    """
    Merge the stored configuration over the server defaults.

    Precedence, lowest first:

    1. Server defaults: ``permission_mode``, ``setting_sources`` and ``cwd``
       pointing at the workspace directory.
    2. Stored configuration. Keys are normalised to snake_case, so both
       ``permissionMode`` and ``permission_mode`` override the default.
    3. Credential rule. A stored ``anthropicApiKey`` is removed from the
       options and replaces ``env`` with the inherited ``PATH`` plus
       ``ANTHROPIC_API_KEY``. Without a credential ``env`` is left alone.
    4. The ``stderr`` callback is owned by the server and always wins.

    Args:
        stored: Snapshot from the configuration store.
        workspace_dir: Default working directory for the agent.
        stderr: Callback receiving the agent's diagnostic output lines.
        environ: Environment to inherit ``PATH`` from (defaults to os.environ).

    Returns:
        Plain dict of resolved option values, keyed by SDK field name.
    """
    environ = os.environ if environ is None else environ

    options: dict[str, Any] = {
        "permission_mode": DEFAULT_PERMISSION_MODE,
        "setting_sources": list(DEFAULT_SETTING_SOURCES),
        "cwd": str(workspace_dir),
    }

    credential: Optional[str] = None
    for key, value in stored.items():
        name = normalize_option_key(key)
        if name in CREDENTIAL_KEYS:
            credential = value or None
            continue
        options[name] = value

    if credential:
        options["env"] = {
            "PATH": environ.get("PATH", ""),
            "ANTHROPIC_API_KEY": credential,
        }

    if stderr is not None:
        options["stderr"] = stderr

    return options


def redact_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``options`` that is safe to write to the log."""
    redacted = {k: v for k, v in options.items() if k != "stderr"}
    env = redacted.get("env")
    if isinstance(env, Mapping) and "ANTHROPIC_API_KEY" in env:
        redacted["env"] = {**env, "ANTHROPIC_API_KEY": "***"}
    return redacted


def build_claude_agent_options(options: Mapping[str, Any]):
    """Construct ``ClaudeAgentOptions`` from resolved option values."""

    from claude_agent_sdk import ClaudeAgentOptions

    known = {f.name for f in dataclasses.fields(ClaudeAgentOptions)}
    unknown = sorted(set(options) - known)
    if unknown:
        logger.warning(
            "⚠️ [AGENT] Ignoring options unknown to the Agent SDK: %s",
            ", ".join(unknown),
        )

    return ClaudeAgentOptions(
        **{k: v for k, v in options.items() if k in known}
    )


def default_claude_stream_factory(options: dict[str, Any]) -> AgentStream:
    """
    Build a real Claude SDK client from resolved options.

    Importing ``claude_agent_sdk`` is delayed until this function is called so
    that the web layer can be imported and tested with an injected factory.
    """

    from claude_agent_sdk import ClaudeSDKClient

    sdk_client = ClaudeSDKClient(options=build_claude_agent_options(options))
    return ClaudeAgentStream(sdk_client=sdk_client)
