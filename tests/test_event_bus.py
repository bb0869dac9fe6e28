"""Tests for EventBus."""

import json
import threading
import time

import pytest

from vault_agent.services.event_bus import (
    AGENT_TASK_DISCARDED,
    AGENT_TASK_UPDATED,
    Event,
    EventBus,
    get_event_bus,
    reset_event_bus,
)


@pytest.fixture
def event_bus():
    """Create an EventBus with a small buffer."""
    return EventBus(buffer_size=5)


class TestEvent:
    def test_to_sse(self):
        event = Event(event_type=AGENT_TASK_DISCARDED, data={"task_id": "abc"}, id="7")

        sse = event.to_sse()

        assert sse.startswith("event: agent_task_discarded\n")
        assert 'data: {"task_id": "abc"}' in sse
        assert "id: 7" in sse
        assert sse.endswith("\n\n")

    def test_to_sse_without_id(self):
        sse = Event(event_type="ping", data={}).to_sse()

        assert "id:" not in sse


class TestSubscribers:
    """Tests for in-process subscribers."""

    def test_typed_and_wildcard_subscribers(self, event_bus):
        updates, everything = [], []
        event_bus.subscribe(AGENT_TASK_UPDATED, updates.append)
        event_bus.subscribe("*", everything.append)

        event_bus.emit(AGENT_TASK_UPDATED, {"task": {}})
        event_bus.emit(AGENT_TASK_DISCARDED, {"task_id": "abc"})

        assert [e.event_type for e in updates] == [AGENT_TASK_UPDATED]
        assert len(everything) == 2

    def test_unsubscribe(self, event_bus):
        events = []
        event_bus.subscribe(AGENT_TASK_UPDATED, events.append)
        event_bus.unsubscribe(AGENT_TASK_UPDATED, events.append)

        event_bus.emit(AGENT_TASK_UPDATED, {})

        assert events == []

    def test_failing_subscriber_is_logged(self, event_bus, caplog):
        """A subscriber error doesn't stop delivery to the others."""
        events = []

        def broken(event):
            raise RuntimeError("boom")

        event_bus.subscribe(AGENT_TASK_UPDATED, broken)
        event_bus.subscribe(AGENT_TASK_UPDATED, events.append)

        event_bus.emit(AGENT_TASK_UPDATED, {})

        assert len(events) == 1
        assert "Subscriber for agent_task_updated failed" in caplog.text

    def test_subscriber_may_emit(self, event_bus):
        """Callbacks run outside the lock, so they can emit themselves."""
        event_bus.subscribe(
            AGENT_TASK_DISCARDED, lambda e: event_bus.emit("followup", {"of": e.id})
        )

        event_bus.emit(AGENT_TASK_DISCARDED, {"task_id": "abc"})

        assert [e.event_type for e in event_bus.get_buffered_events()] == [
            AGENT_TASK_DISCARDED,
            "followup",
        ]


class TestBuffer:
    def test_ids_are_sequential(self, event_bus):
        first = event_bus.emit("a", {})
        second = event_bus.emit("a", {})

        assert int(first.id) + 1 == int(second.id)

    def test_buffer_keeps_most_recent(self, event_bus):
        for i in range(8):
            event_bus.emit("n", {"n": i})

        assert [e.data["n"] for e in event_bus.get_buffered_events()] == [3, 4, 5, 6, 7]

    def test_filter_by_type(self, event_bus):
        event_bus.emit(AGENT_TASK_UPDATED, {})
        event_bus.emit(AGENT_TASK_DISCARDED, {})

        assert len(event_bus.get_buffered_events(AGENT_TASK_DISCARDED)) == 1


class TestSSEStream:
    """Tests for SSE streaming."""

    def test_replays_buffer(self, event_bus):
        event_bus.emit(AGENT_TASK_UPDATED, {"n": 1})

        stream = event_bus.get_sse_stream(include_buffer=True, timeout=0.1)

        assert '"n": 1' in next(stream)

    def test_keep_alive(self, event_bus):
        stream = event_bus.get_sse_stream(timeout=0.05)

        assert next(stream) == ": keep-alive\n\n"

    def test_receives_live_events(self, event_bus):
        stream = event_bus.get_sse_stream(timeout=0.05)
        next(stream)

        def emit_later():
            time.sleep(0.05)
            event_bus.emit(AGENT_TASK_DISCARDED, {"task_id": "abc"})

        thread = threading.Thread(target=emit_later)
        thread.start()

        for message in stream:
            if not message.startswith(":"):
                data_line = message.splitlines()[1]
                assert json.loads(data_line[len("data: ") :]) == {"task_id": "abc"}
                break
        thread.join()

    def test_closing_stream_unsubscribes(self, event_bus):
        stream = event_bus.get_sse_stream(timeout=0.05)
        next(stream)
        assert event_bus.subscriber_count == 1

        stream.close()

        assert event_bus.subscriber_count == 0


class TestGlobalEventBus:
    def test_singleton_and_reset(self):
        bus = get_event_bus()
        assert get_event_bus() is bus

        reset_event_bus()

        assert get_event_bus() is not bus
