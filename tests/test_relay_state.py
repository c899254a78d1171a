"""Tests for relay_state.py - lazy agent session creation and shared state."""

import asyncio

import pytest

from agent_relay.core.agent_session import SessionState
from agent_relay.core.relay_state import RelayState
from tests.fixtures.mock_agent_stream import MockStreamFactory


@pytest.fixture
def state(settings):
    return RelayState(settings=settings, stream_factory=MockStreamFactory())


class TestEnsureAgentSession:
    @pytest.mark.asyncio
    async def test_creates_session_once(self, state):
        first = state.ensure_agent_session()
        second = state.ensure_agent_session()

        assert first is second
        assert state.sessions_created == 1
        await state.shutdown()

    @pytest.mark.asyncio
    async def test_uses_stored_config_and_workspace(self, state):
        state.config_store.set({"permissionMode": "plan"})

        session = state.ensure_agent_session()

        assert session.options["permission_mode"] == "plan"
        assert session.options["cwd"] == str(state.settings.workspace_directory)
        assert session.options["stderr"] == state.forward_stderr
        await state.shutdown()

    @pytest.mark.asyncio
    async def test_finished_session_is_replaced(self, settings):
        state = RelayState(
            settings=settings, stream_factory=MockStreamFactory(finish_after=1)
        )
        first = state.ensure_agent_session()
        state.queue.enqueue(
            {"type": "user", "message": {"role": "user", "content": "hi"}}
        )
        await asyncio.wait_for(first.task, timeout=1.0)

        second = state.ensure_agent_session()

        assert first.state is SessionState.FINISHED
        assert second is not first
        assert second.source is not first.source
        assert second.source.queue is state.queue
        assert state.sessions_created == 2
        await state.shutdown()

    @pytest.mark.asyncio
    async def test_failed_session_is_kept(self, settings):
        state = RelayState(
            settings=settings,
            stream_factory=MockStreamFactory(fail_with=RuntimeError("boom")),
        )
        first = state.ensure_agent_session()
        await asyncio.wait_for(first.task, timeout=1.0)

        assert first.state is SessionState.FAILED
        assert state.ensure_agent_session() is first
        assert state.sessions_created == 1


class TestStateOperations:
    @pytest.mark.asyncio
    async def test_interrupt_without_session_is_noop(self, state):
        await state.interrupt()

        assert state.agent_session is None

    @pytest.mark.asyncio
    async def test_shutdown_without_session(self, state):
        await state.shutdown()

        assert state.agent_session is None

    def test_forward_stderr_without_client_is_dropped(self, state):
        state.forward_stderr("nobody listening")

        assert state.registry.active is None

    def test_stats_before_session(self, state):
        assert state.get_stats() == {
            "queued_messages": 0,
            "sessions_created": 0,
            "agent_state": "pending",
            "active_connection": None,
            "rejected_connections": 0,
        }

    def test_stats_count_queued_messages(self, state):
        state.queue.enqueue({"type": "user"})
        state.queue.enqueue({"type": "user"})

        assert state.get_stats()["queued_messages"] == 2
