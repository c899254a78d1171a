"""
Configuration management for agent_relay

Process-level settings are read once at startup from the environment and an
optional .env file. Agent options posted to /config live in
agent_relay.core.config_store instead.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

SERVER_PORT = 3000
WORKSPACE_DIR_NAME = "agent-workspace"
MESSAGE_POLL_INTERVAL = 0.01

# ServerSettings field -> environment variable
ENV_VARS = {
    "host": "AGENT_RELAY_HOST",
    "port": "AGENT_RELAY_PORT",
    "workspace_dir_name": "AGENT_RELAY_WORKSPACE_DIR_NAME",
    "log_level": "AGENT_RELAY_LOG_LEVEL",
    "log_file": "AGENT_RELAY_LOG_FILE",
}


class ServerSettings(BaseModel):
    """Configuration model for the relay process"""

    host: str = Field(default="0.0.0.0", description="Interface to bind")
    port: int = Field(
        default=SERVER_PORT, ge=1, le=65535, description="Listening port"
    )
    workspace_dir_name: str = Field(
        default=WORKSPACE_DIR_NAME,
        description="Agent working directory, relative to the user's home",
    )
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING)"
    )
    log_file: Optional[str] = Field(
        default=None, description="Optional log file path"
    )
    poll_interval: float = Field(
        default=MESSAGE_POLL_INTERVAL,
        gt=0,
        description="Seconds the message source idles between queue checks",
    )

    @property
    def workspace_directory(self) -> Path:
        """Default working directory handed to the agent."""
        return Path.home() / self.workspace_dir_name


def load_server_settings(env_file: Optional[Path] = None) -> ServerSettings:
    """
    Load settings from the environment.

    Values in ``env_file`` (default: ./.env) never override variables that are
    already set in the process environment.
    """
    load_dotenv(dotenv_path=env_file or Path.cwd() / ".env")

    values = {}
    for field_name, env_name in ENV_VARS.items():
        value = os.getenv(env_name)
        if value:
            values[field_name] = value
    return ServerSettings(**values)
