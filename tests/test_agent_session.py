"""
Unit tests for AgentStreamSession.

Tests cover:
- Output forwarding as sdk_message envelopes
- stderr side channel
- Error handling (no auto-restart)
- Interrupt guarding
- Shutdown
"""

import asyncio

import pytest

from agent_relay.core.agent_session import AgentStreamSession, SessionState
from agent_relay.core.errors import SessionAlreadyStartedError
from agent_relay.core.message_queue import MessageQueue
from agent_relay.core.message_source import MessageSource
from tests.fixtures.mock_agent_stream import MockAgentStream, MockStreamFactory


def _user(text):
    return {
        "type": "user",
        "message": {"role": "user", "content": text},
        "parent_tool_use_id": None,
        "session_id": "default",
    }


async def _wait_until(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def queue():
    return MessageQueue()


@pytest.fixture
def published():
    return []


def _session(queue, published, factory, options=None):
    return AgentStreamSession(
        options=options or {},
        source=MessageSource(queue, poll_interval=0.001),
        publish=published.append,
        stream_factory=factory,
    )


class TestAgentStreamSession:
    """Test AgentStreamSession lifecycle"""

    def test_initial_state(self, queue, published):
        session = _session(queue, published, MockStreamFactory())

        assert session.state is SessionState.PENDING
        assert session.stream is None
        assert session.task is None
        assert session.finished is False

    @pytest.mark.asyncio
    async def test_forwards_output_in_order(self, queue, published):
        factory = MockStreamFactory()
        session = _session(queue, published, factory)
        session.start()

        queue.enqueue(_user("one"))
        queue.enqueue(_user("two"))
        await _wait_until(lambda: len(published) == 2)

        assert published == [
            {"type": "sdk_message", "data": {"type": "assistant", "echo": "one"}},
            {"type": "sdk_message", "data": {"type": "assistant", "echo": "two"}},
        ]
        assert session.state is SessionState.RUNNING
        assert factory.streams[0].received == [_user("one"), _user("two")]
        await session.stop()

    @pytest.mark.asyncio
    async def test_stream_receives_resolved_options(self, queue, published):
        factory = MockStreamFactory()
        options = {"cwd": "/tmp/x", "permission_mode": "default"}
        session = _session(queue, published, factory, options)
        session.start()
        await _wait_until(lambda: session.stream is not None)

        assert factory.streams[0].options == options
        assert factory.streams[0].connected is True
        await session.stop()

    @pytest.mark.asyncio
    async def test_stderr_forwarded_through_options_callback(self, queue, published):
        factory = MockStreamFactory(stderr_lines=["booting", "ready"])

        def stderr(line):
            published.append({"type": "info", "data": line})

        session = _session(queue, published, factory, {"stderr": stderr})
        session.start()
        await _wait_until(lambda: len(published) == 2)

        assert published == [
            {"type": "info", "data": "booting"},
            {"type": "info", "data": "ready"},
        ]
        await session.stop()

    @pytest.mark.asyncio
    async def test_error_published_and_loop_ends(self, queue, published):
        factory = MockStreamFactory(fail_with=RuntimeError("agent exploded"))
        session = _session(queue, published, factory)

        await session.start()

        assert published == [{"type": "error", "error": "agent exploded"}]
        assert session.state is SessionState.FAILED
        assert session.finished is False
        assert session.stream is None
        assert factory.streams[0].disconnect_count == 1

    @pytest.mark.asyncio
    async def test_error_without_message_uses_fallback(self, queue, published):
        factory = MockStreamFactory(fail_with=RuntimeError())
        session = _session(queue, published, factory)

        await session.start()

        assert published == [{"type": "error", "error": "Unknown error"}]

    @pytest.mark.asyncio
    async def test_factory_error_is_reported(self, queue, published):
        def broken_factory(options):
            raise ValueError("bad option")

        session = _session(queue, published, broken_factory)
        await session.start()

        assert session.state is SessionState.FAILED
        assert published == [{"type": "error", "error": "bad option"}]

    @pytest.mark.asyncio
    async def test_normal_completion_marks_finished(self, queue, published):
        factory = MockStreamFactory(finish_after=1)
        session = _session(queue, published, factory)
        task = session.start()

        queue.enqueue(_user("only"))
        await asyncio.wait_for(task, timeout=1)

        assert session.state is SessionState.FINISHED
        assert session.finished is True
        assert session.messages_forwarded == 1
        assert factory.streams[0].disconnect_count == 1

    @pytest.mark.asyncio
    async def test_start_twice_raises(self, queue, published):
        session = _session(queue, published, MockStreamFactory())
        session.start()

        with pytest.raises(SessionAlreadyStartedError):
            session.start()
        await session.stop()

    @pytest.mark.asyncio
    async def test_interrupt_without_stream_is_noop(self, queue, published):
        session = _session(queue, published, MockStreamFactory())

        await session.interrupt()

        assert published == []

    @pytest.mark.asyncio
    async def test_interrupt_reaches_live_stream(self, queue, published):
        factory = MockStreamFactory()
        session = _session(queue, published, factory)
        session.start()
        await _wait_until(lambda: session.stream is not None)

        await session.interrupt()
        await session.interrupt()

        assert factory.streams[0].interrupt_count == 2
        await session.stop()

    @pytest.mark.asyncio
    async def test_interrupt_while_connecting_is_noop(self, queue, published):
        gate = asyncio.Event()
        stream = MockAgentStream()
        connect = stream.connect

        async def slow_connect(prompt):
            await gate.wait()
            await connect(prompt)

        stream.connect = slow_connect
        session = _session(queue, published, lambda options: stream)
        session.start()
        await _wait_until(lambda: session.state is SessionState.RUNNING)

        await session.interrupt()

        assert session.stream is None
        assert stream.interrupt_count == 0

        gate.set()
        await _wait_until(lambda: session.stream is stream)
        await session.interrupt()

        assert stream.interrupt_count == 1
        await session.stop()
        assert stream.disconnect_count == 1

    @pytest.mark.asyncio
    async def test_set_permission_mode(self, queue, published):
        factory = MockStreamFactory()
        session = _session(queue, published, factory)

        # No stream yet: ignored
        await session.set_permission_mode("plan")

        session.start()
        await _wait_until(lambda: session.stream is not None)
        await session.set_permission_mode("acceptEdits")

        assert factory.streams[0].permission_modes == ["acceptEdits"]
        await session.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_and_disconnects(self, queue, published):
        factory = MockStreamFactory()
        session = _session(queue, published, factory)
        task = session.start()
        await _wait_until(lambda: session.stream is not None)

        await session.stop()

        assert task.cancelled()
        assert session.state is SessionState.STOPPED
        assert session.stream is None
        assert factory.streams[0].disconnect_count == 1

    @pytest.mark.asyncio
    async def test_stop_before_start(self, queue, published):
        session = _session(queue, published, MockStreamFactory())

        await session.stop()

        assert session.state is SessionState.STOPPED

    @pytest.mark.asyncio
    async def test_queue_survives_interrupt(self, queue, published):
        """Interrupt only affects the agent turn, not queued input"""
        factory = MockStreamFactory()
        session = _session(queue, published, factory)
        session.start()
        await _wait_until(lambda: session.stream is not None)

        await session.interrupt()
        queue.enqueue(_user("after interrupt"))
        await _wait_until(lambda: len(published) == 1)

        assert published[0]["data"]["echo"] == "after interrupt"
        await session.stop()


class TestMockAgentStream:
    """Sanity check of the test double"""

    @pytest.mark.asyncio
    async def test_disconnect_counts(self):
        stream = MockAgentStream()
        await stream.disconnect()
        assert stream.disconnect_count == 1
        assert stream.connected is False
