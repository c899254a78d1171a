"""
Pytest configuration and fixtures for agent_relay tests

Provides reusable fixtures, including:
- Isolated HOME so the agent workspace never points at a real directory
- Mock agent streams instead of the Claude Agent SDK
- A relay server with its FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from agent_relay.config import ServerSettings
from agent_relay.core.web_server import RelayServer
from tests.fixtures.mock_agent_stream import MockStreamFactory


@pytest.fixture(autouse=True)
def test_environment(monkeypatch, tmp_path):
    """
    Set up isolated test environment for all tests

    - HOME points at a temporary directory
    - Mock API key is set (won't hit real API)
    - AGENT_RELAY_* variables from the developer's shell are cleared
    """
    test_home = tmp_path / "home"
    test_home.mkdir()
    monkeypatch.setenv("HOME", str(test_home))
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key-12345-mock-testing")
    for name in (
        "AGENT_RELAY_HOST",
        "AGENT_RELAY_PORT",
        "AGENT_RELAY_WORKSPACE_DIR_NAME",
        "AGENT_RELAY_LOG_LEVEL",
        "AGENT_RELAY_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)

    yield tmp_path


@pytest.fixture
def settings() -> ServerSettings:
    """Server settings with a short poll interval."""
    return ServerSettings(poll_interval=0.005)


@pytest.fixture
def stream_factory() -> MockStreamFactory:
    """Echoing mock agent stream factory."""
    return MockStreamFactory()


@pytest.fixture
def relay_server(settings, stream_factory) -> RelayServer:
    """Create RelayServer instance backed by mock agent streams."""
    return RelayServer(settings=settings, stream_factory=stream_factory)


@pytest.fixture
def test_client(relay_server):
    """
    FastAPI test client.

    Used as a context manager so every request and WebSocket shares one
    event loop, which the agent session task lives on.
    """
    with TestClient(relay_server.app) as client:
        yield client
