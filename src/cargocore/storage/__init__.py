"""Shipment store contract and adapters."""

from .base import ShipmentStore, matches
from .memory import InMemoryShipmentStore
from .redis_store import RedisShipmentStore

__all__ = [
    "InMemoryShipmentStore",
    "RedisShipmentStore",
    "ShipmentStore",
    "matches",
]
