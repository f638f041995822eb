"""Permission vocabulary, user types and scoped resource kinds.

Provides:
- ``Permission`` — the closed vocabulary of capability strings
  (``resource:action`` or ``resource:action:own``) plus the ``*`` wildcard.
- ``UserType`` — admin (back office) or client (portal).
- ``ResourceKind`` — resources that have an own-scoped read variant.
"""

from __future__ import annotations

from enum import Enum

# Bump when a capability is added or retired. Roles persisted against an
# older version keep working: unknown strings are simply never granted.
PERMISSION_VOCABULARY_VERSION = 3


class Permission(str, Enum):
    """Canonical capability strings.

    Format: ``{resource}:{action}`` or ``{resource}:{action}:own``.

    Members compare equal to their string value, so role documents loaded
    from storage can hold plain strings::

        Permission.SHIPMENTS_READ == "shipments:read"   # True
    """

    # ── Wildcard ────────────────────────────────────────
    ALL = "*"  # Every permission, present and future

    # ── Users & roles ───────────────────────────────────
    USERS_READ = "users:read"
    USERS_WRITE = "users:write"
    USERS_PERMISSIONS = "users:permissions"
    ROLES_READ = "roles:read"
    ROLES_WRITE = "roles:write"

    # ── Shipments ───────────────────────────────────────
    SHIPMENTS_READ = "shipments:read"
    SHIPMENTS_WRITE = "shipments:write"
    SHIPMENTS_READ_OWN = "shipments:read:own"

    # ── Tracking ────────────────────────────────────────
    TRACKING_READ = "tracking:read"
    TRACKING_WRITE = "tracking:write"
    TRACKING_READ_OWN = "tracking:read:own"

    # ── Invoices ────────────────────────────────────────
    INVOICES_READ = "invoices:read"
    INVOICES_WRITE = "invoices:write"
    INVOICES_READ_OWN = "invoices:read:own"

    # ── Support ─────────────────────────────────────────
    SUPPORT_READ = "support:read"
    SUPPORT_WRITE = "support:write"
    SUPPORT_READ_OWN = "support:read:own"

    # ── Operations ──────────────────────────────────────
    CONTAINERS_READ = "containers:read"
    CONTAINERS_WRITE = "containers:write"
    CLIENTS_READ = "clients:read"
    CLIENTS_WRITE = "clients:write"
    SUPPLIERS_READ = "suppliers:read"
    SUPPLIERS_WRITE = "suppliers:write"
    FINANCIALS_READ = "financials:read"
    FINANCIALS_WRITE = "financials:write"
    REPORTS_READ = "reports:read"
    REPORTS_WRITE = "reports:write"

    # ── Account ─────────────────────────────────────────
    SETTINGS_READ = "settings:read"
    SETTINGS_WRITE = "settings:write"
    PROFILE_READ = "profile:read"
    PROFILE_WRITE = "profile:write"

    def __str__(self) -> str:
        return self.value

    @property
    def is_own_scoped(self) -> bool:
        return self.value.endswith(":own")


WILDCARD = Permission.ALL.value


class UserType(str, Enum):
    """Kind of account. Client accounts are subject to own-record scoping."""

    ADMIN = "admin"
    CLIENT = "client"

    def __str__(self) -> str:
        return self.value


class ResourceKind(str, Enum):
    """Resources whose reads come in an unrestricted and an own-scoped variant."""

    SHIPMENTS = "shipments"
    INVOICES = "invoices"
    TRACKING = "tracking"
    SUPPORT = "support"

    def __str__(self) -> str:
        return self.value

    @property
    def read(self) -> str:
        """Unrestricted read capability, e.g. ``shipments:read``."""
        return f"{self.value}:read"

    @property
    def read_own(self) -> str:
        """Own-scoped read capability, e.g. ``shipments:read:own``."""
        return f"{self.value}:read:own"


def permission_key(permission: Permission | str) -> str:
    """Normalize a vocabulary member or raw string to its canonical string."""
    if isinstance(permission, Enum):
        return str(permission.value)
    return permission


def all_permissions() -> tuple[str, ...]:
    """Every assignable capability, excluding the wildcard, in declaration order."""
    return tuple(p.value for p in Permission if p is not Permission.ALL)


def is_known_permission(permission: Permission | str) -> bool:
    """Check membership in the closed vocabulary (wildcard included)."""
    return permission_key(permission) in _KNOWN


_KNOWN = frozenset(p.value for p in Permission)


__all__ = [
    "PERMISSION_VOCABULARY_VERSION",
    "Permission",
    "ResourceKind",
    "UserType",
    "WILDCARD",
    "all_permissions",
    "is_known_permission",
    "permission_key",
]
