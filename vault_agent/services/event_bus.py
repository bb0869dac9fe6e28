"""EventBus for SSE (Server-Sent Events) broadcasting.

Pushes agent task progress to subscribers and HTTP clients without polling.
Events: agent_task_updated, agent_task_discarded
"""

import json
import logging
import queue
import threading
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)

AGENT_TASK_UPDATED = "agent_task_updated"
AGENT_TASK_DISCARDED = "agent_task_discarded"


@dataclass
class Event:
    """An event to be broadcast via SSE."""

    event_type: str
    data: dict
    timestamp: datetime = field(default_factory=datetime.now)
    id: str | None = None

    def to_sse(self) -> str:
        """Format the event as an SSE message.

        SSE format:
        event: <event_type>
        data: <json_data>
        id: <optional_id>

        """
        lines = [f"event: {self.event_type}", f"data: {json.dumps(self.data)}"]
        if self.id:
            lines.append(f"id: {self.id}")
        lines.append("")
        return "\n".join(lines) + "\n"


class EventBus:
    """Central event bus for task progress.

    Subscribers are called on the emitting thread, so callbacks must be quick.
    SSE clients each get a bounded queue; a client that stops reading is
    dropped once its queue fills.
    """

    def __init__(self, buffer_size: int = 50):
        """Initialize the EventBus.

        Args:
            buffer_size: Number of recent events replayed to new SSE clients.
        """
        self._buffer_size = buffer_size
        self._event_buffer: list[Event] = []
        self._subscribers: dict[str, list[Callable[[Event], None]]] = {}
        self._sse_queues: list[queue.Queue] = []
        self._lock = threading.Lock()
        self._event_counter = 0

    def subscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        """Subscribe to an event type, or "*" for all events."""
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        with self._lock:
            if event_type in self._subscribers:
                self._subscribers[event_type] = [
                    cb for cb in self._subscribers[event_type] if cb != callback
                ]

    def emit(self, event_type: str, data: dict) -> Event:
        """Emit an event to all subscribers and SSE clients.

        A failing subscriber is logged and does not stop delivery to others.

        Returns:
            The created Event object.
        """
        with self._lock:
            self._event_counter += 1
            event = Event(event_type=event_type, data=data, id=str(self._event_counter))

            self._event_buffer.append(event)
            if len(self._event_buffer) > self._buffer_size:
                self._event_buffer = self._event_buffer[-self._buffer_size :]

            callbacks = self._subscribers.get(event_type, []) + self._subscribers.get("*", [])

            dead_queues = []
            for q in self._sse_queues:
                try:
                    q.put_nowait(event)
                except queue.Full:
                    dead_queues.append(q)
            for q in dead_queues:
                self._sse_queues.remove(q)

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Subscriber for {event_type} failed")

        return event

    def get_sse_stream(
        self,
        include_buffer: bool = False,
        timeout: float = 30.0,
    ) -> Generator[str, None, None]:
        """Get an SSE event stream generator for Flask's streaming response.

        Args:
            include_buffer: Whether to replay buffered events first.
            timeout: Seconds to wait for events before sending a keep-alive.

        Yields:
            SSE-formatted event strings.
        """
        event_queue: queue.Queue = queue.Queue(maxsize=100)

        with self._lock:
            self._sse_queues.append(event_queue)
            buffered = list(self._event_buffer) if include_buffer else []

        try:
            for event in buffered:
                yield event.to_sse()
            while True:
                try:
                    event = event_queue.get(timeout=timeout)
                    yield event.to_sse()
                except queue.Empty:
                    yield ": keep-alive\n\n"
        finally:
            with self._lock:
                if event_queue in self._sse_queues:
                    self._sse_queues.remove(event_queue)

    def get_buffered_events(self, event_type: str | None = None) -> list[Event]:
        """Get buffered events, optionally filtered by type."""
        with self._lock:
            events = self._event_buffer.copy()
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events

    @property
    def subscriber_count(self) -> int:
        """Get the number of active SSE subscribers."""
        with self._lock:
            return len(self._sse_queues)


# Singleton instance for the application
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the global EventBus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the global EventBus (for testing)."""
    global _event_bus
    _event_bus = None
