"""
Event System Module

Publish/subscribe dispatcher for consortium domain events. Events are
published only after the operation that produced them has committed.
"""

from enum import Enum
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid
import logging
from threading import RLock


class DomainEvent(Enum):
    """Domain events that can occur in the consortium"""

    # Bank events
    BANK_ADDED = "bank.added"
    BANK_REMOVED = "bank.removed"
    BANK_ELIGIBILITY_CHANGED = "bank.eligibility_changed"
    BANK_REPORTED = "bank.reported"

    # Customer events
    CUSTOMER_CREATED = "customer.created"
    CUSTOMER_MODIFIED = "customer.modified"
    CUSTOMER_APPROVAL_CHANGED = "customer.approval_changed"

    # Verification events
    KYC_REQUEST_ADDED = "kyc_request.added"
    KYC_REQUEST_REMOVED = "kyc_request.removed"
    VOTE_CAST = "vote.cast"


@dataclass
class EventPayload:
    """Payload for domain events"""
    event_type: DomainEvent
    entity_type: str
    entity_id: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'data': self.data,
            'timestamp': self.timestamp.isoformat(),
            'event_id': self.event_id
        }


class EventDispatcher:
    """Central event dispatcher, publish/subscribe pattern"""

    def __init__(self):
        self._handlers: Dict[DomainEvent, List[Callable]] = {}
        self._global_handlers: List[Callable] = []
        self._lock = RLock()
        self.logger = logging.getLogger("kyc_consortium.events")

    def subscribe(self, event_type: DomainEvent, handler: Callable) -> None:
        """Subscribe to a specific event type"""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            self.logger.debug(f"Subscribed handler {getattr(handler, '__name__', repr(handler))} to {event_type.value}")

    def subscribe_all(self, handler: Callable) -> None:
        """Subscribe to ALL events"""
        with self._lock:
            self._global_handlers.append(handler)

    def unsubscribe(self, event_type: DomainEvent, handler: Callable) -> None:
        """Unsubscribe from a specific event type"""
        with self._lock:
            try:
                self._handlers.get(event_type, []).remove(handler)
            except ValueError:
                self.logger.warning(f"Handler {getattr(handler, '__name__', repr(handler))} was not subscribed to {event_type.value}")

    def publish(self, event: EventPayload) -> None:
        """Publish event to all subscribers"""
        with self._lock:
            handlers = list(self._handlers.get(event.event_type, [])) + list(self._global_handlers)

        self.logger.debug(f"Publishing event {event.event_type.value} for {event.entity_type}:{event.entity_id}")
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                # Log but don't break the main operation
                self.logger.error(f"Error in event handler {getattr(handler, '__name__', repr(handler))} for {event.event_type.value}: {e}")

    def clear(self) -> None:
        """Clear all handlers"""
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()

    def get_handler_count(self, event_type: Optional[DomainEvent] = None) -> int:
        """Get count of handlers for a specific event type or all"""
        with self._lock:
            if event_type:
                return len(self._handlers.get(event_type, []))
            total = sum(len(handlers) for handlers in self._handlers.values())
            return total + len(self._global_handlers)


class EventOutbox:
    """
    Holds events raised while an operation is in flight.

    The consortium flushes the outbox to the dispatcher after the operation
    commits and discards it when the operation is rejected, so subscribers
    never see effects that were rolled back.
    """

    def __init__(self, dispatcher: Optional[EventDispatcher] = None):
        self.dispatcher = dispatcher
        self._pending: List[EventPayload] = []

    def stage(self, event_type: DomainEvent, entity_type: str, entity_id: str,
              data: Dict[str, Any]) -> None:
        if self.dispatcher is None:
            return
        self._pending.append(EventPayload(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            data=data
        ))

    def flush(self) -> int:
        pending, self._pending = self._pending, []
        for event in pending:
            self.dispatcher.publish(event)
        return len(pending)

    def discard(self) -> None:
        self._pending = []
