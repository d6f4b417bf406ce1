"""Application event bus: dispatches domain events to handlers."""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Coroutine, Iterable

import structlog

from eco_compliance.domain.entities.base import DomainEvent

logger = structlog.get_logger(__name__)

EventHandler = Callable[[DomainEvent], Coroutine[Any, Any, None]]


class EventBus:
    """In-process async event bus.

    Handler failures are logged and isolated; they never reach the
    publisher.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)
        logger.debug("event_handler_registered", event_type=event_type, handler=handler.__name__)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        if event_type in self._handlers:
            self._handlers[event_type] = [h for h in self._handlers[event_type] if h != handler]

    async def publish(self, event: DomainEvent) -> None:
        event_type = event.event_type
        handlers = list(self._handlers.get(event_type, []))
        logger.debug("event_published", event_type=event_type, event_id=event.event_id, handler_count=len(handlers))

        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    event_type=event_type,
                    event_id=event.event_id,
                    handler=handler.__name__,
                    error=str(e),
                )

    async def publish_all(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            await self.publish(event)


def register_audit_trail_handlers(bus: EventBus) -> None:
    """Log every lifecycle event of the aggregates at info level."""

    async def log_application_event(event: DomainEvent) -> None:
        logger.info(
            "application_event",
            event_type=event.event_type,
            application_id=event.aggregate_id,
            payload=event.payload,
        )

    async def log_evaluation_completed(event: DomainEvent) -> None:
        logger.info(
            "compliance_evaluation_recorded",
            evaluation_id=event.aggregate_id,
            allowed=event.payload.get("allowed"),
            environment=event.payload.get("environment"),
        )

    for event_type in (
        "application.registered",
        "application.environment_added",
        "application.environment_updated",
        "application.owner_changed",
        "application.deactivated",
        "application.reactivated",
    ):
        bus.subscribe(event_type, log_application_event)
    bus.subscribe("compliance.evaluation_completed", log_evaluation_completed)


__all__ = ["EventBus", "EventHandler", "register_audit_trail_handlers"]
