"""Shipment store contract.

Every status-affecting write is a single conditional operation keyed on
``Shipment.version``. Implementations raise ``ConcurrentUpdateConflict``
when the stored version no longer matches ``expected_version`` and must
leave no partial write behind.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from ..tracking.models import Shipment, StatusTransition, TrackingEvent


@runtime_checkable
class ShipmentStore(Protocol):
    async def get_shipment(self, shipment_id: str) -> Optional[Shipment]: ...

    async def add_shipment(self, shipment: Shipment) -> Shipment:
        """Insert a new shipment. Raises ValueError on duplicate id."""
        ...

    async def find_shipments(self, filters: Mapping[str, Any]) -> list[Shipment]:
        """Shipments whose fields equal every entry of ``filters`` (``{}`` = all)."""
        ...

    async def record_event(
        self,
        event: TrackingEvent,
        *,
        expected_version: int,
        transition: Optional[StatusTransition] = None,
    ) -> Shipment:
        """Append ``event`` and, when given, apply ``transition`` atomically.

        The shipment's version is bumped only when the status changes.
        """
        ...

    async def update_status(
        self,
        shipment_id: str,
        *,
        expected_version: int,
        transition: StatusTransition,
    ) -> Shipment: ...

    async def get_event(self, event_id: str) -> Optional[TrackingEvent]: ...

    async def replace_event(self, event: TrackingEvent) -> TrackingEvent:
        """Overwrite descriptive fields of a stored event. Status is untouched."""
        ...

    async def delete_event(self, event_id: str) -> TrackingEvent:
        """Remove an event and its per-shipment index entry.

        Shipment status, version and transitions are left as they are.
        Raises NotFoundError for an unknown event.
        """
        ...

    async def list_events(self, shipment_id: str) -> list[TrackingEvent]:
        """Events of a shipment, newest first."""
        ...

    async def list_transitions(self, shipment_id: str) -> list[StatusTransition]:
        """Status history of a shipment, oldest first."""
        ...


def matches(record: Shipment, filters: Mapping[str, Any]) -> bool:
    """Equality match of a shipment against a scope filter."""
    data = record.model_dump(mode="json")
    return all(data.get(key) == (getattr(value, "value", value)) for key, value in filters.items())


__all__ = ["ShipmentStore", "matches"]
