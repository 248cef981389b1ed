"""Application service: Publish Event use case."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from polimarket.domain.exceptions import ValidationError
from polimarket.domain.gateways import EventPublisher
from polimarket.domain.model.events import DomainEvent

logger = structlog.get_logger(__name__)


class PublishEventHandler:

    def __init__(self, publisher: EventPublisher) -> None:
        self._publisher = publisher

    def handle(
        self,
        event_type: str,
        source_component: str,
        data: Mapping[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> DomainEvent:
        if not event_type or not event_type.strip():
            raise ValidationError("Event type is required")
        if not source_component or not source_component.strip():
            raise ValidationError("Source component is required")

        event = DomainEvent(
            event_type=event_type.strip(),
            source_component=source_component.strip(),
            data=dict(data or {}),
            correlation_id=correlation_id,
        )
        self._publisher.publish(event)
        logger.info("event_published", event_id=event.event_id, event_type=event.event_type)
        return event
