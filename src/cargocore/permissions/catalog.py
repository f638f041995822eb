"""Role catalog and the default system roles.

Provides:
- ``SYSTEM_ROLES`` — seed definitions (super_admin, admin, manager, staff, client).
- ``RoleCatalog`` — thread-safe registry with administrative edits.
- ``default_catalog()`` — catalog pre-loaded with the system roles.

Roles are immutable values; ``update`` swaps in a new ``Role``.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Iterable, Optional

from ..exceptions import NotFoundError, ProtectedRoleError
from .constants import WILDCARD, Permission as P, UserType, all_permissions
from .models import Role
from .resolver import PermissionResolver

if TYPE_CHECKING:
    from ..principal import Principal
    from ..security.gate import AuthorizationGate

logger = logging.getLogger(__name__)


# ── System roles ────────────────────────────────────────

_ADMIN_PERMISSIONS = tuple(p for p in all_permissions() if not p.endswith(":own"))

SYSTEM_ROLES: tuple[Role, ...] = (
    Role(
        name="super_admin",
        display_name="Super Admin",
        description="Unrestricted access, including system role edits",
        user_type=UserType.ADMIN,
        permissions=(WILDCARD,),
        is_system=True,
    ),
    Role(
        name="admin",
        display_name="Administrator",
        description="Full back-office access",
        user_type=UserType.ADMIN,
        permissions=_ADMIN_PERMISSIONS,
        is_system=True,
    ),
    Role(
        name="manager",
        display_name="Manager",
        description="Operations management",
        user_type=UserType.ADMIN,
        permissions=(
            P.USERS_READ,
            P.SHIPMENTS_READ, P.SHIPMENTS_WRITE,
            P.CONTAINERS_READ, P.CONTAINERS_WRITE,
            P.CLIENTS_READ, P.CLIENTS_WRITE,
            P.SUPPLIERS_READ,
            P.TRACKING_READ, P.TRACKING_WRITE,
            P.REPORTS_READ,
            P.INVOICES_READ, P.INVOICES_WRITE,
            P.SUPPORT_READ, P.SUPPORT_WRITE,
            P.PROFILE_READ, P.PROFILE_WRITE,
        ),
        is_system=True,
    ),
    Role(
        name="staff",
        display_name="Staff",
        description="Day-to-day shipment handling",
        user_type=UserType.ADMIN,
        permissions=(
            P.SHIPMENTS_READ, P.SHIPMENTS_WRITE,
            P.CONTAINERS_READ,
            P.CLIENTS_READ,
            P.TRACKING_READ, P.TRACKING_WRITE,
            P.SUPPORT_READ, P.SUPPORT_WRITE,
            P.PROFILE_READ, P.PROFILE_WRITE,
        ),
        is_system=True,
    ),
    Role(
        name="client",
        display_name="Client",
        description="Customer portal access to own records",
        user_type=UserType.CLIENT,
        permissions=(
            P.SHIPMENTS_READ_OWN,
            P.INVOICES_READ_OWN,
            P.TRACKING_READ_OWN,
            P.SUPPORT_READ_OWN, P.SUPPORT_WRITE,
            P.PROFILE_READ, P.PROFILE_WRITE,
        ),
        is_system=True,
    ),
)


class RoleCatalog:
    """In-process registry of roles keyed by name.

    Reads are lock-free snapshots of an immutable value; writes take the lock.
    Every write requires ``roles:write`` from the acting principal.
    """

    def __init__(
        self,
        roles: Iterable[Role] = (),
        resolver: Optional[PermissionResolver] = None,
        gate: Optional[AuthorizationGate] = None,
    ) -> None:
        # Local import: security depends on this package.
        from ..security.gate import AuthorizationGate

        self._lock = threading.Lock()
        self._roles: dict[str, Role] = {}
        self._resolver = resolver or (gate.resolver if gate is not None else PermissionResolver())
        self._gate = gate or AuthorizationGate(self._resolver)
        for role in roles:
            self._roles[role.name] = role

    def _can_edit_system_roles(self, actor: Principal) -> bool:
        # Only a wildcard carried by the role counts; an overridden "*" is a literal grant.
        return self._resolver.has_wildcard(actor) and WILDCARD not in actor.blocked_grants

    def __contains__(self, name: str) -> bool:
        return name in self._roles

    def __len__(self) -> int:
        return len(self._roles)

    def get(self, name: str) -> Role | None:
        return self._roles.get(name)

    def require(self, name: str) -> Role:
        role = self.get(name)
        if role is None:
            raise NotFoundError(f"role not found: {name}", role=name)
        return role

    def list(self, user_type: UserType | str | None = None, search: str | None = None) -> list[Role]:
        """Roles, optionally filtered by user type and a case-insensitive
        substring of name or display name."""
        roles = list(self._roles.values())
        if user_type is not None:
            roles = [r for r in roles if r.user_type == UserType(user_type)]
        if search:
            needle = search.lower()
            roles = [r for r in roles if needle in r.name or needle in r.display_name.lower()]
        return roles

    def create(self, role: Role, *, actor: Principal) -> Role:
        """Add a custom role. Roles created here are never system roles."""
        self._gate.require_all(actor, P.ROLES_WRITE)
        if role.is_system:
            role = role.model_copy(update={"is_system": False})
        with self._lock:
            if role.name in self._roles:
                raise ValueError(f"role already exists: {role.name}")
            self._roles[role.name] = role
        logger.info(
            "roles.created name=%s permissions=%d actor=%s", role.name, len(role.permissions), actor.user_id
        )
        return role

    def update(
        self,
        name: str,
        *,
        actor: Principal,
        display_name: str | None = None,
        description: str | None = None,
        permissions: Iterable[str] | None = None,
    ) -> Role:
        """Replace editable fields of a role.

        System roles can only be edited by a principal whose role holds ``*``.

        Raises:
            ForbiddenError: The actor lacks ``roles:write``.
            NotFoundError: Unknown role.
            ProtectedRoleError: System role edited without the wildcard.
        """
        self._gate.require_all(actor, P.ROLES_WRITE)
        with self._lock:
            current = self.require(name)
            if current.is_system and not self._can_edit_system_roles(actor):
                raise ProtectedRoleError(
                    "only a wildcard holder may modify system roles",
                    role=name,
                    actor=actor.user_id,
                )

            data = current.model_dump()
            if display_name:
                data["display_name"] = display_name
            if description is not None:
                data["description"] = description
            if permissions is not None:
                data["permissions"] = tuple(permissions)
            updated = Role.model_validate(data)
            self._roles[name] = updated

        logger.info("roles.updated name=%s actor=%s", name, actor.user_id)
        return updated

    def delete(self, name: str, *, actor: Principal, assigned_users: int = 0) -> None:
        """Remove a custom role.

        Raises:
            ForbiddenError: The actor lacks ``roles:write``.
            NotFoundError: Unknown role.
            ProtectedRoleError: System role, or the role is still assigned.
        """
        self._gate.require_all(actor, P.ROLES_WRITE)
        with self._lock:
            role = self.require(name)
            if role.is_system:
                raise ProtectedRoleError(role=name, actor=actor.user_id)
            if assigned_users > 0:
                raise ProtectedRoleError(
                    f"role is assigned to {assigned_users} user(s)",
                    role=name,
                    actor=actor.user_id,
                )
            del self._roles[name]
        logger.info("roles.deleted name=%s actor=%s", name, actor.user_id)

    @staticmethod
    def all_permissions() -> tuple[str, ...]:
        """Assignable vocabulary, as offered by role editors."""
        return all_permissions()


def default_catalog(
    resolver: Optional[PermissionResolver] = None,
    gate: Optional[AuthorizationGate] = None,
) -> RoleCatalog:
    return RoleCatalog(SYSTEM_ROLES, resolver=resolver, gate=gate)


__all__ = [
    "SYSTEM_ROLES",
    "RoleCatalog",
    "default_catalog",
]
