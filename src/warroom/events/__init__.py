"""Real-time notifications to deliberation observers."""
from .sink import DeliberationEvent, EventHub, EventSink, EventType
