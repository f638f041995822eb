"""Shared fixtures: roles, principals and a seeded in-memory store."""

from __future__ import annotations

from typing import Iterable, Optional

import pytest
import pytest_asyncio

from cargocore.permissions import Role, UserType, default_catalog
from cargocore.principal import Principal
from cargocore.storage import InMemoryShipmentStore
from cargocore.tracking import Location, Shipment, ShipmentStatus, TrackingEvent, TrackingEventCode


def _principal(
    permissions: Iterable[str] = (),
    *,
    user_id: str = "user-1",
    role_name: str = "custom",
    user_type: UserType = UserType.CLIENT,
    override: Iterable[str] = (),
    blocked: Iterable[str] = (),
    owned_entity_id: Optional[str] = "client-1",
    role_missing: bool = False,
) -> Principal:
    role = None
    if not role_missing:
        role = Role(name=role_name, user_type=user_type, permissions=tuple(permissions))
    return Principal.build(
        user_id=user_id,
        role=role,
        role_name=role_name,
        user_type=user_type,
        override=override,
        blocked=blocked,
        owned_entity_id=owned_entity_id,
    )


@pytest.fixture
def make_principal():
    """Factory for principals with an inline role."""
    return _principal


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def principal_for(catalog):
    """Factory for principals bound to a system role."""

    def _build(role_name: str, **kwargs) -> Principal:
        role = catalog.get(role_name)
        return Principal.build(
            user_id=kwargs.pop("user_id", f"{role_name}-user"),
            role=role,
            role_name=role_name,
            **kwargs,
        )

    return _build


@pytest.fixture
def staff(principal_for):
    return principal_for("staff")


@pytest.fixture
def client_user(principal_for):
    return principal_for("client", owned_entity_id="client-1", user_id="portal-1")


@pytest.fixture
def other_client_user(principal_for):
    return principal_for("client", owned_entity_id="client-2", user_id="portal-2")


@pytest.fixture
def make_event():
    def _build(shipment_id: str, code: TrackingEventCode | str, **kwargs) -> TrackingEvent:
        return TrackingEvent(
            shipment_id=shipment_id,
            event_code=code,
            location=kwargs.pop("location", Location(name="Port of Mombasa", country="Kenya", city="Mombasa")),
            description=kwargs.pop("description", f"{code} reported"),
            **kwargs,
        )

    return _build


@pytest_asyncio.fixture
async def store():
    store = InMemoryShipmentStore()
    await store.add_shipment(Shipment(shipment_id="SHP-001", tracking_number="CCT2026001", client_id="client-1"))
    await store.add_shipment(Shipment(shipment_id="SHP-002", tracking_number="CCT2026002", client_id="client-2"))
    await store.add_shipment(
        Shipment(
            shipment_id="SHP-003",
            tracking_number="CCT2026003",
            client_id="client-1",
            status=ShipmentStatus.DELIVERED,
        )
    )
    return store
