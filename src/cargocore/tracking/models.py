"""Shipment, tracking event and status-transition models.

These are Pydantic models shared by the state machine, the services and
the store adapters.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ShipmentStatus(str, Enum):
    """Coarse shipment lifecycle, in lifecycle order."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_TRANSIT = "in_transit"
    CUSTOMS = "customs"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED})


class TrackingEventCode(str, Enum):
    """Fine-grained tracking milestones reported by operators and carriers."""

    ORDER_CONFIRMED = "order_confirmed"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    AT_ORIGIN_PORT = "at_origin_port"
    DEPARTED_ORIGIN = "departed_origin"
    AT_SEA = "at_sea"
    ARRIVED_DESTINATION_PORT = "arrived_destination_port"
    CUSTOMS_CLEARANCE = "customs_clearance"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    DELAYED = "delayed"
    EXCEPTION = "exception"

    def __str__(self) -> str:
        return self.value


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    country: str
    city: Optional[str] = None


class EventMetadata(BaseModel):
    """Optional measurements and notes attached to an event."""

    model_config = ConfigDict(frozen=True)

    temperature: Optional[float] = None  # refrigerated containers
    humidity: Optional[float] = None
    customs_status: Optional[str] = None
    delay_reason: Optional[str] = None


class Shipment(BaseModel):
    """Shipment record as seen by the authorization core.

    ``version`` increases by one on every status write and is the
    compare-and-set key for concurrent updates.
    """

    model_config = ConfigDict(frozen=True)

    shipment_id: str
    tracking_number: str
    client_id: str
    status: ShipmentStatus = ShipmentStatus.PENDING
    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class TrackingEvent(BaseModel):
    """One tracking milestone. Belongs to exactly one shipment."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    shipment_id: str
    event_code: TrackingEventCode
    location: Location
    description: str
    timestamp: datetime = Field(default_factory=_now)
    is_public: bool = True
    metadata: EventMetadata = Field(default_factory=EventMetadata)
    created_by: Optional[str] = None


class StatusTransition(BaseModel):
    """Audit record of one status change.

    ``event_id`` is set when a tracking event caused the change and is None
    for administrative updates.
    """

    model_config = ConfigDict(frozen=True)

    shipment_id: str
    from_status: ShipmentStatus
    to_status: ShipmentStatus
    event_id: Optional[str] = None
    actor_id: Optional[str] = None
    reason: str = ""
    at: datetime = Field(default_factory=_now)
    version: int


__all__ = [
    "EventMetadata",
    "Location",
    "Shipment",
    "ShipmentStatus",
    "StatusTransition",
    "TERMINAL_STATUSES",
    "TrackingEvent",
    "TrackingEventCode",
]
