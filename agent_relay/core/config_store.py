"""
Configuration Store - agent options posted by the client.

Last write wins: set() replaces the stored mapping wholesale.  The store is
read once when an agent stream session is created, so updates never reach a
session that is already running.
"""

import copy
import logging
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


class ConfigStore:
    """In-memory holder for the current agent configuration."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._config: dict[str, Any] = copy.deepcopy(dict(initial or {}))

    def set(self, config: Mapping[str, Any]) -> None:
        self._config = copy.deepcopy(dict(config))
        logger.info(
            "⚙️ [CONFIG] Stored configuration (keys: %s)",
            ", ".join(sorted(self._config)) or "none",
        )

    def get(self) -> dict[str, Any]:
        """Return a snapshot; mutating it does not touch the store."""
        return copy.deepcopy(self._config)
