"""Projection of tracking events onto the shipment lifecycle.

Provides:
- ``EVENT_STATUS_MAP`` — event code → shipment status.
- ``NO_CHANGE`` — sentinel for events with no status effect.
- ``project()`` — pure, total projection function.
- ``ensure_projectable()`` — rejects writes against terminal shipments.

The projection is invoked explicitly by the event write path, never from a
persistence hook.
"""

from __future__ import annotations

from typing import Final, Union

from ..exceptions import TerminalStateViolation
from .models import TERMINAL_STATUSES, ShipmentStatus, TrackingEventCode


class _NoChange:
    """Singleton marker: the event leaves the shipment status as it is."""

    _instance: "_NoChange | None" = None

    def __new__(cls) -> "_NoChange":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_CHANGE"

    def __bool__(self) -> bool:
        return False


NO_CHANGE: Final = _NoChange()

Projection = Union[ShipmentStatus, _NoChange]

# Progress milestones collapse onto confirmed / in_transit. Arrival at the
# destination port is still transit; customs starts with customs_clearance.
EVENT_STATUS_MAP: Final[dict[TrackingEventCode, ShipmentStatus]] = {
    TrackingEventCode.ORDER_CONFIRMED: ShipmentStatus.CONFIRMED,
    TrackingEventCode.PICKED_UP: ShipmentStatus.IN_TRANSIT,
    TrackingEventCode.IN_TRANSIT: ShipmentStatus.IN_TRANSIT,
    TrackingEventCode.AT_ORIGIN_PORT: ShipmentStatus.IN_TRANSIT,
    TrackingEventCode.DEPARTED_ORIGIN: ShipmentStatus.IN_TRANSIT,
    TrackingEventCode.AT_SEA: ShipmentStatus.IN_TRANSIT,
    TrackingEventCode.ARRIVED_DESTINATION_PORT: ShipmentStatus.IN_TRANSIT,
    TrackingEventCode.CUSTOMS_CLEARANCE: ShipmentStatus.CUSTOMS,
    TrackingEventCode.OUT_FOR_DELIVERY: ShipmentStatus.OUT_FOR_DELIVERY,
    TrackingEventCode.DELIVERED: ShipmentStatus.DELIVERED,
    TrackingEventCode.EXCEPTION: ShipmentStatus.ON_HOLD,
    # delayed: informational only
}


def is_terminal(status: ShipmentStatus | str) -> bool:
    return ShipmentStatus(status) in TERMINAL_STATUSES


def project(status: ShipmentStatus | str, event_code: TrackingEventCode | str) -> Projection:
    """Target status for ``event_code`` applied to a shipment in ``status``.

    Returns ``NO_CHANGE`` when the event has no mapped effect, when the
    target equals the current status, or when the shipment is terminal.
    Same inputs always give the same answer, so retries are safe.
    """
    status = ShipmentStatus(status)
    if status in TERMINAL_STATUSES:
        return NO_CHANGE

    target = EVENT_STATUS_MAP.get(TrackingEventCode(event_code))
    if target is None or target == status:
        return NO_CHANGE
    return target


def ensure_projectable(status: ShipmentStatus | str, *, shipment_id: str | None = None) -> None:
    """Raise TerminalStateViolation for delivered or cancelled shipments."""
    status = ShipmentStatus(status)
    if status in TERMINAL_STATUSES:
        raise TerminalStateViolation(
            f"shipment is {status.value}; no further tracking events accepted",
            shipment_id=shipment_id,
            status=status.value,
        )


__all__ = [
    "EVENT_STATUS_MAP",
    "NO_CHANGE",
    "Projection",
    "ensure_projectable",
    "is_terminal",
    "project",
]
