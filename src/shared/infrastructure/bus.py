"""In-memory event bus implementation."""

from __future__ import annotations

from typing import Dict, Generic, List, Protocol, Type, TypeVar

import structlog

from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[E]):
    """Handler interface for domain events."""

    def handle(self, event: E) -> None: ...


class InMemoryEventBus:
    """In-process event bus.

    Handlers run synchronously in subscription order.  Events are published
    after the state they describe has been persisted, so a failing handler
    is logged and never undoes the change.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(type(event), []):
            try:
                handler.handle(event)
            except Exception:
                logger.exception(
                    "event_bus.handler_failed",
                    event_name=event.event_name,
                    aggregate_id=event.aggregate_id,
                    handler=type(handler).__name__,
                )


# Global bus instance (singleton)

event_bus = InMemoryEventBus()
