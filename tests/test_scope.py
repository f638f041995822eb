"""Tests for ResourceScopeFilter and Scope values."""

from __future__ import annotations

import pytest

from cargocore.exceptions import ForbiddenError, InvalidConfigurationError, public_message
from cargocore.permissions import (
    UNRESTRICTED,
    OwnedBy,
    ResourceKind,
    ResourceScopeFilter,
    Unrestricted,
    UserType,
)
from cargocore.tracking import Shipment

scope_filter = ResourceScopeFilter()


class TestScopeFor:
    def test_client_with_only_own_read_is_owned(self, make_principal) -> None:
        p = make_principal(["shipments:read:own"], owned_entity_id="client-7")
        scope = scope_filter.scope_for(p, ResourceKind.SHIPMENTS)
        assert scope == OwnedBy(entity_id="client-7", field="client_id")
        assert scope.to_filter() == {"client_id": "client-7"}

    def test_client_with_full_read_is_unrestricted(self, make_principal) -> None:
        p = make_principal(["shipments:read", "shipments:read:own"], owned_entity_id="client-7")
        scope = scope_filter.scope_for(p, ResourceKind.SHIPMENTS)
        assert scope is UNRESTRICTED
        assert scope.to_filter() == {}

    def test_client_without_any_read_defaults_to_owned(self, make_principal) -> None:
        p = make_principal([], owned_entity_id="client-7")
        assert scope_filter.scope_for(p, "invoices") == OwnedBy(entity_id="client-7")

    def test_blocked_full_read_falls_back_to_owned(self, make_principal) -> None:
        p = make_principal(["tracking:read"], blocked=["tracking:read"], owned_entity_id="client-7")
        assert scope_filter.scope_for(p, ResourceKind.TRACKING) == OwnedBy(entity_id="client-7")

    def test_overridden_full_read_is_unrestricted(self, make_principal) -> None:
        p = make_principal(["invoices:read:own"], override=["invoices:read"])
        assert isinstance(scope_filter.scope_for(p, ResourceKind.INVOICES), Unrestricted)

    def test_admin_is_never_scoped(self, make_principal) -> None:
        p = make_principal(["shipments:read:own"], user_type=UserType.ADMIN, owned_entity_id=None)
        assert scope_filter.scope_for(p, ResourceKind.SHIPMENTS) is UNRESTRICTED

    def test_support_tickets_scoped_by_creator(self, make_principal) -> None:
        p = make_principal(["support:read:own"], user_id="portal-9", owned_entity_id="client-7")
        scope = scope_filter.scope_for(p, ResourceKind.SUPPORT)
        assert scope.to_filter() == {"created_by": "portal-9"}

    @pytest.mark.parametrize("kind", [ResourceKind.SHIPMENTS, ResourceKind.INVOICES, ResourceKind.TRACKING])
    def test_missing_owned_entity_is_configuration_error(self, make_principal, kind) -> None:
        p = make_principal([kind.read_own], owned_entity_id=None)
        with pytest.raises(InvalidConfigurationError) as exc_info:
            scope_filter.scope_for(p, kind)
        # Surfaces to callers as an ordinary deny.
        assert isinstance(exc_info.value, ForbiddenError)
        assert public_message(exc_info.value) == "not permitted"

    def test_unknown_kind_rejected(self, make_principal) -> None:
        with pytest.raises(ValueError):
            scope_filter.scope_for(make_principal([]), "containers")


class TestScopePermits:
    def test_owned_by_checks_models(self) -> None:
        scope = OwnedBy(entity_id="client-1")
        mine = Shipment(shipment_id="SHP-1", tracking_number="T1", client_id="client-1")
        theirs = Shipment(shipment_id="SHP-2", tracking_number="T2", client_id="client-2")
        assert scope.permits(mine) is True
        assert scope.permits(theirs) is False

    def test_owned_by_checks_mappings(self) -> None:
        scope = OwnedBy(entity_id="portal-9", field="created_by")
        assert scope.permits({"created_by": "portal-9"}) is True
        assert scope.permits({"created_by": "portal-1"}) is False
        assert scope.permits({}) is False

    def test_unrestricted_permits_everything(self) -> None:
        assert UNRESTRICTED.permits({"client_id": "anyone"}) is True
        assert UNRESTRICTED.permits(object()) is True
