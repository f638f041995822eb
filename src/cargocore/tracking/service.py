"""Shipment and tracking-event services.

Provides:
- ``TrackingService`` — event intake with explicit status projection,
  event amendment, scoped event listing and status history.
- ``ShipmentService`` — scoped reads, administrative status updates,
  cancellation and totals.

Every operation takes the caller's ``Principal`` explicitly. Status writes
go through the store's compare-and-set and are retried against a fresh read
when another writer got there first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

from ..config import CargoConfig
from ..exceptions import ConcurrentUpdateConflict, ForbiddenError, NotFoundError, TerminalStateViolation
from ..logging import RequestLoggerAdapter, get_request_logger
from ..permissions.constants import Permission, ResourceKind
from ..permissions.scope import OwnedBy, ResourceScopeFilter, Scope
from ..principal import Principal
from ..security.gate import AuthorizationGate
from .models import (
    EventMetadata,
    Location,
    Shipment,
    ShipmentStatus,
    StatusTransition,
    TERMINAL_STATUSES,
    TrackingEvent,
)
from .state_machine import NO_CHANGE, ensure_projectable, project

if TYPE_CHECKING:
    from ..storage.base import ShipmentStore

T = TypeVar("T")


@dataclass(frozen=True)
class RecordedEvent:
    """Outcome of event intake: the stored event, the shipment after the
    write and the transition it caused (None when status was unchanged)."""

    event: TrackingEvent
    shipment: Shipment
    transition: Optional[StatusTransition] = None


@dataclass(frozen=True)
class ShipmentStats:
    total: int = 0
    active: int = 0
    delivered: int = 0
    on_hold: int = 0


async def _retry_on_conflict(
    attempt: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    log: RequestLoggerAdapter,
    shipment_id: str,
) -> T:
    """Run ``attempt`` until it stops losing compare-and-set races.

    Each attempt re-reads the shipment, so the projection is recomputed
    against the fresh status.
    """
    last: ConcurrentUpdateConflict | None = None
    for n in range(1, attempts + 1):
        try:
            return await attempt()
        except ConcurrentUpdateConflict as e:
            last = e
            log.info("tracking.cas_retry shipment_id=%s attempt=%d/%d", shipment_id, n, attempts)
    log.warning("tracking.cas_exhausted shipment_id=%s attempts=%d", shipment_id, attempts)
    if last is None:
        raise ValueError(f"attempts must be at least 1, got {attempts}")
    raise last


class _ServiceBase:
    def __init__(
        self,
        store: ShipmentStore,
        *,
        gate: Optional[AuthorizationGate] = None,
        scope_filter: Optional[ResourceScopeFilter] = None,
        config: Optional[CargoConfig] = None,
    ) -> None:
        self._store = store
        self._gate = gate or AuthorizationGate()
        self._scope = scope_filter or ResourceScopeFilter(self._gate.resolver)
        self._config = config or CargoConfig()

    def _log(self, principal: Principal, request_id: str | None) -> RequestLoggerAdapter:
        return get_request_logger(__name__, request_id=request_id, principal_id=principal.user_id)

    async def _require_shipment(self, shipment_id: str) -> Shipment:
        shipment = await self._store.get_shipment(shipment_id)
        if shipment is None:
            raise NotFoundError(f"shipment not found: {shipment_id}", shipment_id=shipment_id)
        return shipment

    @staticmethod
    def _check_scope(scope: Scope, principal: Principal, shipment: Shipment) -> None:
        if not scope.permits(shipment):
            raise ForbiddenError(
                "record outside caller scope",
                user_id=principal.user_id,
                shipment_id=shipment.shipment_id,
            )


# ── Tracking ─────────────────────────────────────────────────────


class TrackingService(_ServiceBase):
    """Single write path for tracking events."""

    async def record_event(
        self,
        principal: Principal,
        event: TrackingEvent,
        *,
        request_id: str | None = None,
    ) -> RecordedEvent:
        """Persist ``event`` and apply its status effect in one atomic write.

        Raises:
            ForbiddenError: Caller lacks ``tracking:write``.
            NotFoundError: Unknown shipment.
            TerminalStateViolation: Shipment is delivered or cancelled.
            ConcurrentUpdateConflict: Still racing after the configured retries.
        """
        self._gate.require_all(principal, Permission.TRACKING_WRITE)
        log = self._log(principal, request_id)

        if event.created_by is None:
            event = event.model_copy(update={"created_by": principal.user_id})

        async def attempt() -> RecordedEvent:
            shipment = await self._require_shipment(event.shipment_id)
            try:
                ensure_projectable(shipment.status, shipment_id=shipment.shipment_id)
            except TerminalStateViolation:
                log.warning(
                    "tracking.rejected_terminal shipment_id=%s status=%s event=%s",
                    shipment.shipment_id,
                    shipment.status.value,
                    event.event_code.value,
                )
                raise

            target = project(shipment.status, event.event_code)
            transition = None
            if target is not NO_CHANGE:
                transition = StatusTransition(
                    shipment_id=shipment.shipment_id,
                    from_status=shipment.status,
                    to_status=target,
                    event_id=event.event_id,
                    actor_id=principal.user_id,
                    reason=f"tracking event {event.event_code.value}",
                    version=shipment.version + 1,
                )

            updated = await self._store.record_event(
                event, expected_version=shipment.version, transition=transition
            )
            if transition is not None:
                log.info(
                    "tracking.projected shipment_id=%s event_id=%s %s->%s",
                    shipment.shipment_id,
                    event.event_id,
                    transition.from_status.value,
                    transition.to_status.value,
                )
            else:
                log.debug("tracking.recorded shipment_id=%s event_id=%s no status change", shipment.shipment_id, event.event_id)
            return RecordedEvent(event=event, shipment=updated, transition=transition)

        return await _retry_on_conflict(
            attempt,
            attempts=self._config.projection_max_retries,
            log=log,
            shipment_id=event.shipment_id,
        )

    async def amend_event(
        self,
        principal: Principal,
        event_id: str,
        *,
        location: Optional[Location] = None,
        description: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        is_public: Optional[bool] = None,
        metadata: Optional[EventMetadata] = None,
        request_id: str | None = None,
    ) -> TrackingEvent:
        """Edit descriptive fields of a recorded event.

        The event code is fixed once recorded and the shipment status is
        never recomputed from an edit.
        """
        self._gate.require_all(principal, Permission.TRACKING_WRITE)
        current = await self._store.get_event(event_id)
        if current is None:
            raise NotFoundError(f"tracking event not found: {event_id}", event_id=event_id)

        changes: dict = {}
        if location is not None:
            changes["location"] = location
        if description is not None:
            changes["description"] = description
        if timestamp is not None:
            changes["timestamp"] = timestamp
        if is_public is not None:
            changes["is_public"] = is_public
        if metadata is not None:
            changes["metadata"] = metadata
        if not changes:
            return current

        amended = await self._store.replace_event(current.model_copy(update=changes))
        self._log(principal, request_id).info(
            "tracking.amended event_id=%s fields=%s", event_id, ",".join(sorted(changes))
        )
        return amended

    async def delete_event(
        self,
        principal: Principal,
        event_id: str,
        *,
        request_id: str | None = None,
    ) -> TrackingEvent:
        """Remove a recorded event.

        Status changes the event already caused stay in place, together
        with their transitions; nothing is recomputed from the remaining
        events.

        Raises:
            ForbiddenError: Caller lacks ``tracking:write``.
            NotFoundError: Unknown event.
        """
        self._gate.require_all(principal, Permission.TRACKING_WRITE)
        deleted = await self._store.delete_event(event_id)
        self._log(principal, request_id).info(
            "tracking.deleted event_id=%s shipment_id=%s code=%s",
            event_id,
            deleted.shipment_id,
            deleted.event_code.value,
        )
        return deleted

    async def _scoped_shipment(self, principal: Principal, shipment_id: str) -> tuple[Shipment, Scope]:
        self._gate.require_any(principal, Permission.TRACKING_READ, Permission.TRACKING_READ_OWN)
        shipment = await self._require_shipment(shipment_id)
        scope = self._scope.scope_for(principal, ResourceKind.TRACKING)
        self._check_scope(scope, principal, shipment)
        return shipment, scope

    async def list_events(self, principal: Principal, shipment_id: str) -> list[TrackingEvent]:
        """Events of one shipment, newest first. Own-scoped readers only
        see public events of their own shipments."""
        _, scope = await self._scoped_shipment(principal, shipment_id)
        events = await self._store.list_events(shipment_id)
        if isinstance(scope, OwnedBy):
            events = [e for e in events if e.is_public]
        return events

    async def status_history(self, principal: Principal, shipment_id: str) -> list[StatusTransition]:
        """Audit trail of status changes, oldest first."""
        await self._scoped_shipment(principal, shipment_id)
        return await self._store.list_transitions(shipment_id)

    async def track_by_number(self, tracking_number: str) -> tuple[Shipment, list[TrackingEvent]]:
        """Public lookup by tracking number: shipment plus its public events."""
        found = await self._store.find_shipments({"tracking_number": tracking_number})
        if not found:
            raise NotFoundError("tracking number not found", tracking_number=tracking_number)
        shipment = found[0]
        events = await self._store.list_events(shipment.shipment_id)
        return shipment, [e for e in events if e.is_public]


# ── Shipments ────────────────────────────────────────────────────


class ShipmentService(_ServiceBase):
    """Scoped shipment reads and administrative status changes."""

    async def create_shipment(self, principal: Principal, shipment: Shipment) -> Shipment:
        self._gate.require_all(principal, Permission.SHIPMENTS_WRITE)
        created = await self._store.add_shipment(shipment)
        self._log(principal, None).info("shipments.created shipment_id=%s", shipment.shipment_id)
        return created

    async def list_shipments(
        self,
        principal: Principal,
        *,
        status: ShipmentStatus | str | None = None,
    ) -> list[Shipment]:
        self._gate.require_any(principal, Permission.SHIPMENTS_READ, Permission.SHIPMENTS_READ_OWN)
        filters = self._scope.scope_for(principal, ResourceKind.SHIPMENTS).to_filter()
        if status is not None:
            filters["status"] = ShipmentStatus(status).value
        shipments = await self._store.find_shipments(filters)
        return sorted(shipments, key=lambda s: s.created_at, reverse=True)

    async def get_shipment(self, principal: Principal, shipment_id: str) -> Shipment:
        self._gate.require_any(principal, Permission.SHIPMENTS_READ, Permission.SHIPMENTS_READ_OWN)
        shipment = await self._require_shipment(shipment_id)
        self._check_scope(self._scope.scope_for(principal, ResourceKind.SHIPMENTS), principal, shipment)
        return shipment

    async def _transition(
        self,
        principal: Principal,
        shipment_id: str,
        decide: Callable[[Shipment], Optional[ShipmentStatus]],
        reason: str,
        request_id: str | None,
    ) -> Shipment:
        log = self._log(principal, request_id)

        async def attempt() -> Shipment:
            shipment = await self._require_shipment(shipment_id)
            target = decide(shipment)
            if target is None:
                return shipment
            transition = StatusTransition(
                shipment_id=shipment_id,
                from_status=shipment.status,
                to_status=target,
                actor_id=principal.user_id,
                reason=reason,
                version=shipment.version + 1,
            )
            updated = await self._store.update_status(
                shipment_id, expected_version=shipment.version, transition=transition
            )
            log.info(
                "shipments.status_updated shipment_id=%s %s->%s",
                shipment_id,
                transition.from_status.value,
                transition.to_status.value,
            )
            return updated

        return await _retry_on_conflict(
            attempt,
            attempts=self._config.projection_max_retries,
            log=log,
            shipment_id=shipment_id,
        )

    async def update_status(
        self,
        principal: Principal,
        shipment_id: str,
        new_status: ShipmentStatus | str,
        *,
        reason: str = "",
        request_id: str | None = None,
    ) -> Shipment:
        """Administrative status change; delivered and cancelled shipments are final."""
        self._gate.require_all(principal, Permission.SHIPMENTS_WRITE)
        new_status = ShipmentStatus(new_status)

        def decide(shipment: Shipment) -> Optional[ShipmentStatus]:
            if shipment.status in TERMINAL_STATUSES:
                raise TerminalStateViolation(
                    f"cannot update a {shipment.status.value} shipment",
                    shipment_id=shipment_id,
                    status=shipment.status.value,
                )
            return None if shipment.status == new_status else new_status

        return await self._transition(principal, shipment_id, decide, reason or "administrative update", request_id)

    async def cancel(
        self,
        principal: Principal,
        shipment_id: str,
        *,
        reason: str = "",
        request_id: str | None = None,
    ) -> Shipment:
        self._gate.require_all(principal, Permission.SHIPMENTS_WRITE)

        def decide(shipment: Shipment) -> Optional[ShipmentStatus]:
            if shipment.status == ShipmentStatus.DELIVERED:
                raise TerminalStateViolation("cannot cancel a delivered shipment", shipment_id=shipment_id)
            if shipment.status == ShipmentStatus.CANCELLED:
                raise TerminalStateViolation("shipment is already cancelled", shipment_id=shipment_id)
            return ShipmentStatus.CANCELLED

        return await self._transition(principal, shipment_id, decide, reason or "cancelled", request_id)

    async def stats(self, principal: Principal) -> ShipmentStats:
        self._gate.require_any(principal, Permission.SHIPMENTS_READ, Permission.SHIPMENTS_READ_OWN)
        filters = self._scope.scope_for(principal, ResourceKind.SHIPMENTS).to_filter()
        shipments = await self._store.find_shipments(filters)
        return ShipmentStats(
            total=len(shipments),
            active=sum(1 for s in shipments if s.status not in TERMINAL_STATUSES),
            delivered=sum(1 for s in shipments if s.status == ShipmentStatus.DELIVERED),
            on_hold=sum(1 for s in shipments if s.status == ShipmentStatus.ON_HOLD),
        )


__all__ = [
    "RecordedEvent",
    "ShipmentService",
    "ShipmentStats",
    "TrackingService",
]
