"""Tests for PrincipalLoader."""

from __future__ import annotations

import logging

import pytest

from cargocore.exceptions import ForbiddenError, UnauthenticatedError
from cargocore.permissions import Permission, PermissionResolver, UserType
from cargocore.principal import AccountStatus, IdentityRecord, PrincipalLoader


class TestPrincipalLoader:
    def test_no_identity(self, catalog) -> None:
        with pytest.raises(UnauthenticatedError):
            PrincipalLoader(catalog).load(None)

    @pytest.mark.parametrize("status", [AccountStatus.INACTIVE, AccountStatus.SUSPENDED])
    def test_inactive_account(self, catalog, status: AccountStatus) -> None:
        identity = IdentityRecord(user_id="staff-7", role="staff", status=status)
        with pytest.raises(ForbiddenError, match="account is not active"):
            PrincipalLoader(catalog).load(identity)

    def test_resolves_role_and_normalizes_grants(self, catalog) -> None:
        identity = IdentityRecord(
            user_id="portal-1",
            role="client",
            override=["invoices:read", "invoices:read"],
            blocked=["support:write"],
            owned_entity_id="client-1",
        )

        principal = PrincipalLoader(catalog).load(identity)

        assert principal.role == catalog.get("client")
        assert principal.role_resolved
        assert principal.is_client
        assert principal.override_grants == frozenset({"invoices:read"})
        assert principal.blocked_grants == frozenset({"support:write"})
        assert principal.owned_entity_id == "client-1"

    def test_unknown_role_yields_deny_all_principal(self, catalog, caplog: pytest.LogCaptureFixture) -> None:
        identity = IdentityRecord(user_id="admin-9", role="ghost", user_type=UserType.ADMIN)

        with caplog.at_level(logging.ERROR, logger="cargocore.principal"):
            principal = PrincipalLoader(catalog).load(identity)

        assert principal.role is None
        assert principal.role_name == "ghost"
        assert principal.user_type == UserType.ADMIN
        assert "principal.role_unresolved" in caplog.text
        assert not PermissionResolver().resolve(principal, Permission.SHIPMENTS_READ)

    def test_override_survives_missing_role(self, catalog) -> None:
        identity = IdentityRecord(user_id="staff-2", role="ghost", override=["tracking:read"])
        principal = PrincipalLoader(catalog).load(identity)
        assert PermissionResolver().resolve(principal, "tracking:read")
