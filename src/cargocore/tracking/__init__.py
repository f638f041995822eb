"""Shipment lifecycle, tracking events and the status projection."""

from .models import (
    TERMINAL_STATUSES,
    EventMetadata,
    Location,
    Shipment,
    ShipmentStatus,
    StatusTransition,
    TrackingEvent,
    TrackingEventCode,
)
from .service import RecordedEvent, ShipmentService, ShipmentStats, TrackingService
from .state_machine import EVENT_STATUS_MAP, NO_CHANGE, ensure_projectable, is_terminal, project

__all__ = [
    "EVENT_STATUS_MAP",
    "NO_CHANGE",
    "TERMINAL_STATUSES",
    "EventMetadata",
    "Location",
    "RecordedEvent",
    "Shipment",
    "ShipmentService",
    "ShipmentStats",
    "ShipmentStatus",
    "StatusTransition",
    "TrackingEvent",
    "TrackingEventCode",
    "TrackingService",
    "ensure_projectable",
    "is_terminal",
    "project",
]
