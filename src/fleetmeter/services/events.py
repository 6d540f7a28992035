"""Outbound side effects (audit log, notifications) of domain operations."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from fleetmeter.core.repositories.audit import AuditLogRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    """Something that happened, described for side-effect handlers."""

    action: str
    entity_type: str
    entity_id: str | None = None
    user_id: UUID | None = None
    details: dict[str, Any] = field(default_factory=dict)


class EventSink(Protocol):
    async def handle(self, event: DomainEvent) -> None: ...


@dataclass
class DispatchReport:
    """Outcome of the side effects of one event, kept apart from the operation."""

    event: DomainEvent
    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class EventDispatcher:
    """
    Hands events to every registered sink.

    A failing sink is logged and recorded in the report; it never fails the
    operation that published the event.
    """

    def __init__(self, sinks: Iterable[EventSink] = ()):
        self._sinks: list[EventSink] = list(sinks)

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    async def publish(self, event: DomainEvent) -> DispatchReport:
        report = DispatchReport(event=event)
        for sink in self._sinks:
            name = type(sink).__name__
            try:
                await sink.handle(event)
            except Exception as e:
                logger.error(
                    f"Side effect {name} failed for {event.action} "
                    f"{event.entity_type} {event.entity_id}: {e}",
                    exc_info=True,
                )
                report.failed.append(name)
            else:
                report.delivered.append(name)
        return report


class AuditLogSink:
    """Writes every event to the audit log."""

    def __init__(self, audit_repo: AuditLogRepository):
        self._audit_repo = audit_repo

    async def handle(self, event: DomainEvent) -> None:
        await self._audit_repo.create(
            user_id=event.user_id,
            action=event.action,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            details=event.details or None,
        )
