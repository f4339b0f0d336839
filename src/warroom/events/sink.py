"""
Event sink -- one-way, fan-out notifications to deliberation observers.

Every notification is a DeliberationEvent carrying a type tag and a session
id. The core only calls `sink.emit(event)`; it never waits on observers.

EventHub is the in-process implementation: each observer (a WebSocket
connection, a CLI printer, a test) subscribes and gets its own bounded
asyncio.Queue. A slow observer whose queue is full misses events -- there is
no delivery guarantee.

Usage:
    hub = EventHub()
    queue = hub.subscribe()
    hub.emit(DeliberationEvent(EventType.PHASE_CHANGE, "a1b2c3d4e5", {...}))
    event = await queue.get()
    hub.unsubscribe(queue)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000


class EventType:
    """Notification type tags."""

    SESSION_CREATED = "session-created"
    PHASE_CHANGE = "phase-change"
    AGENT_STATE = "agent-state"
    MESSAGE = "message"
    ESCALATION = "escalation"
    WAITING_FOR_HUMAN = "waiting-for-human"
    ESCALATION_TIMEOUT = "escalation-timeout"
    ESCALATION_ANSWERED = "escalation-answered"
    HUMAN_MESSAGE = "human-message"
    SEARCH_STARTED = "search-started"
    SEARCH_COMPLETE = "search-complete"
    ERROR = "error"
    DELIBERATION_COMPLETE = "deliberation-complete"
    SESSION_STOPPED = "session-stopped"
    SESSION_DELETED = "session-deleted"


@dataclass
class DeliberationEvent:
    """A single notification."""

    type: str
    session_id: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "session_id": self.session_id, **self.data}


@runtime_checkable
class EventSink(Protocol):
    """Fan-out notification channel."""

    def emit(self, event: DeliberationEvent) -> None: ...


class EventHub:
    """In-process EventSink with per-subscriber queues and optional listeners."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self._queue_size = queue_size
        self._queues: set[asyncio.Queue] = set()
        self._listeners: list[Callable[[DeliberationEvent], None]] = []

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._queues.add(queue)
        logger.debug(f"[EventHub] Subscriber added ({len(self._queues)} total)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)
        logger.debug(f"[EventHub] Subscriber removed ({len(self._queues)} total)")

    def add_listener(self, listener: Callable[[DeliberationEvent], None]) -> None:
        """Register a synchronous callback invoked for every event."""
        self._listeners.append(listener)

    def emit(self, event: DeliberationEvent) -> None:
        logger.debug(f"[EventHub] {event.type} session={event.session_id}")
        for queue in list(self._queues):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    f"[EventHub] Subscriber queue full -- dropped {event.type}"
                )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"[EventHub] Listener failed on {event.type}: {e}")

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)
