"""Permission resolution for a loaded Principal.

Provides:
- ``PermissionResolver.resolve()`` — allow/deny for one capability.
- ``PermissionResolver.effective_permissions()`` — the full granted set.

This is the only module that interprets the ``*`` wildcard. Every other
call site asks the resolver instead of inspecting role permissions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .constants import WILDCARD, Permission, permission_key

if TYPE_CHECKING:
    from ..principal import Principal

logger = logging.getLogger(__name__)


class PermissionResolver:
    """Evaluates capabilities against role, overrides and blocks.

    Resolution order (first match wins):

    1. ``blocked`` — deny, even when overridden or covered by ``*``
    2. ``override`` — allow
    3. role missing — deny (configuration error, logged, never raised)
    4. role carries ``*`` — allow
    5. exact membership in the role's permissions

    Example::

        resolver = PermissionResolver()
        resolver.resolve(principal, Permission.SHIPMENTS_READ_OWN)  # True
        resolver.resolve(principal, "tracking:read:own")            # False (blocked)
    """

    def resolve(self, principal: Principal, permission: Permission | str) -> bool:
        perm = permission_key(permission)

        if perm in principal.blocked_grants:
            return False

        if perm in principal.override_grants:
            return True

        role = principal.role
        if role is None:
            logger.error(
                "authz.role_unresolved user_id=%s role=%s permission=%s",
                principal.user_id,
                principal.role_name,
                perm,
            )
            return False

        if WILDCARD in role.permissions:
            return True

        return perm in role.permissions

    def has_wildcard(self, principal: Principal) -> bool:
        """True when the principal's role grants every permission.

        Blocked entries still apply to individual checks through
        :meth:`resolve`.
        """
        return principal.role is not None and WILDCARD in principal.role.permissions

    def effective_permissions(self, principal: Principal) -> frozenset[str]:
        """Full set of capabilities the principal holds.

        Returns ``{"*"}`` for a wildcard role, otherwise
        ``(role ∪ override) \\ blocked``. A principal whose role does not
        resolve keeps only its non-blocked overrides.
        """
        if self.has_wildcard(principal):
            return frozenset({WILDCARD})

        granted: set[str] = set(principal.override_grants)
        if principal.role is not None:
            granted.update(principal.role.permissions)
        return frozenset(granted - principal.blocked_grants)


__all__ = ["PermissionResolver"]
