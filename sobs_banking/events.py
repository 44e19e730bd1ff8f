"""
Event System Module

In-process publish/subscribe for domain events. Money movement operations
publish one event per posted or rejected movement after the ledger change is
final; notifications and other read-side consumers subscribe.
"""

from enum import Enum
from typing import Callable, Dict, List, Any, Optional
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import uuid
import logging
from threading import RLock

from .storage import to_plain


class DomainEvent(Enum):
    MOVEMENT_POSTED = "movement.posted"
    MOVEMENT_REJECTED = "movement.rejected"


@dataclass
class EventPayload:
    """What happened, to which entity, with event-specific ``data``"""
    event_type: DomainEvent
    entity_type: str
    entity_id: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(asdict(self))


Handler = Callable[[EventPayload], Any]


class EventDispatcher:
    """
    Thread-safe event dispatcher

    Handlers registered with ``subscribe_all`` live under the ``None`` key and
    run after the handlers of the specific event type. A failing handler is
    logged and skipped; it never affects the publisher or other handlers.
    """

    def __init__(self):
        self._handlers: Dict[Optional[DomainEvent], List[Handler]] = {}
        self._lock = RLock()
        self.logger = logging.getLogger("sobs.events")

    def subscribe(self, event_type: DomainEvent, handler: Handler) -> None:
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
        self.logger.debug(f"{_name(handler)} subscribed to {event_type.value}")

    def subscribe_all(self, handler: Handler) -> None:
        with self._lock:
            self._handlers.setdefault(None, []).append(handler)

    def unsubscribe(self, event_type: DomainEvent, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                return
        self.logger.warning(f"{_name(handler)} was not subscribed to {event_type.value}")

    def publish(self, event: EventPayload) -> None:
        with self._lock:
            handlers = self._handlers.get(event.event_type, []) + self._handlers.get(None, [])

        self.logger.debug(f"Publishing {event.event_type.value} for {event.entity_type}:{event.entity_id}")
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                self.logger.exception(f"Handler {_name(handler)} failed on {event.event_type.value}")

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def get_handler_count(self, event_type: Optional[DomainEvent] = None) -> int:
        """Handlers for one event type, or every registered handler"""
        with self._lock:
            if event_type is not None:
                return len(self._handlers.get(event_type, []))
            return sum(len(handlers) for handlers in self._handlers.values())


def _name(handler: Handler) -> str:
    return getattr(handler, "__name__", repr(handler))
