"""In-process shipment store.

Used by tests and single-process deployments. One ``asyncio.Lock`` guards
every write so the version check and the write happen as one step.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

from ..exceptions import ConcurrentUpdateConflict, NotFoundError
from ..tracking.models import Shipment, StatusTransition, TrackingEvent
from .base import matches


class InMemoryShipmentStore:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._shipments: dict[str, Shipment] = {}
        self._events: dict[str, TrackingEvent] = {}
        self._events_by_shipment: dict[str, list[str]] = {}
        self._transitions: dict[str, list[StatusTransition]] = {}

    async def get_shipment(self, shipment_id: str) -> Optional[Shipment]:
        return self._shipments.get(shipment_id)

    async def add_shipment(self, shipment: Shipment) -> Shipment:
        async with self._lock:
            if shipment.shipment_id in self._shipments:
                raise ValueError(f"shipment already exists: {shipment.shipment_id}")
            self._shipments[shipment.shipment_id] = shipment
        return shipment

    async def find_shipments(self, filters: Mapping[str, Any]) -> list[Shipment]:
        return [s for s in self._shipments.values() if matches(s, filters)]

    def _check_version(self, shipment_id: str, expected_version: int) -> Shipment:
        current = self._shipments.get(shipment_id)
        if current is None:
            raise NotFoundError(f"shipment not found: {shipment_id}", shipment_id=shipment_id)
        if current.version != expected_version:
            raise ConcurrentUpdateConflict(
                shipment_id=shipment_id,
                expected_version=expected_version,
                actual_version=current.version,
            )
        return current

    @staticmethod
    def _apply(current: Shipment, transition: StatusTransition) -> Shipment:
        return current.model_copy(
            update={
                "status": transition.to_status,
                "version": transition.version,
                "updated_at": transition.at,
            }
        )

    async def record_event(
        self,
        event: TrackingEvent,
        *,
        expected_version: int,
        transition: Optional[StatusTransition] = None,
    ) -> Shipment:
        async with self._lock:
            current = self._check_version(event.shipment_id, expected_version)
            if event.event_id in self._events:
                raise ValueError(f"event already exists: {event.event_id}")

            updated = self._apply(current, transition) if transition is not None else current

            self._events[event.event_id] = event
            self._events_by_shipment.setdefault(event.shipment_id, []).append(event.event_id)
            if transition is not None:
                self._shipments[event.shipment_id] = updated
                self._transitions.setdefault(event.shipment_id, []).append(transition)
        return updated

    async def update_status(
        self,
        shipment_id: str,
        *,
        expected_version: int,
        transition: StatusTransition,
    ) -> Shipment:
        async with self._lock:
            current = self._check_version(shipment_id, expected_version)
            updated = self._apply(current, transition)
            self._shipments[shipment_id] = updated
            self._transitions.setdefault(shipment_id, []).append(transition)
        return updated

    async def get_event(self, event_id: str) -> Optional[TrackingEvent]:
        return self._events.get(event_id)

    async def replace_event(self, event: TrackingEvent) -> TrackingEvent:
        async with self._lock:
            if event.event_id not in self._events:
                raise NotFoundError(f"tracking event not found: {event.event_id}", event_id=event.event_id)
            self._events[event.event_id] = event
        return event

    async def delete_event(self, event_id: str) -> TrackingEvent:
        async with self._lock:
            event = self._events.pop(event_id, None)
            if event is None:
                raise NotFoundError(f"tracking event not found: {event_id}", event_id=event_id)
            ids = self._events_by_shipment.get(event.shipment_id, [])
            if event_id in ids:
                ids.remove(event_id)
        return event

    async def list_events(self, shipment_id: str) -> list[TrackingEvent]:
        events = [self._events[eid] for eid in self._events_by_shipment.get(shipment_id, [])]
        return sorted(events, key=lambda e: e.timestamp, reverse=True)

    async def list_transitions(self, shipment_id: str) -> list[StatusTransition]:
        return list(self._transitions.get(shipment_id, []))


__all__ = ["InMemoryShipmentStore"]
