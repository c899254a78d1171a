#!/usr/bin/env python
"""
CLI entry point for agent-relay

Starts the WebSocket relay on the configured host and port.
"""

import asyncio
import logging
import sys

from agent_relay.config import load_server_settings
from agent_relay.core.web_server import start_relay_server
from agent_relay.shared.logging_config import (
    configure_logging,
    resolve_log_level,
)

logger = logging.getLogger(__name__)


def main():
    """Main entry point for the agent-relay command"""
    settings = load_server_settings()
    configure_logging(
        level=resolve_log_level(settings.log_level),
        log_file=settings.log_file,
        include_console=True,
    )

    logger.info("🚀 Starting agent relay (Claude Agent SDK)")
    logger.info(f"📁 Agent workspace: {settings.workspace_directory}")

    try:
        asyncio.run(start_relay_server(settings=settings))
    except KeyboardInterrupt:
        logger.info("👋 Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
