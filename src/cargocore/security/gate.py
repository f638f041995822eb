"""Authorization gate — "require all of" / "require any of" checks.

Provides:
- ``GateResult`` — outcome of a non-raising check.
- ``AuthorizationGate`` — composes PermissionResolver answers at the boundary
  of each operation.

The gate never mutates the principal or its role.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..exceptions import ForbiddenError, InvalidConfigurationError, UnauthenticatedError
from ..permissions.constants import Permission, permission_key
from ..permissions.resolver import PermissionResolver

if TYPE_CHECKING:
    from ..principal import Principal

logger = logging.getLogger(__name__)

NONE_GRANTED = "none of the required permissions granted"


# ── Gate Result ──────────────────────────────────────────────────


@dataclass(frozen=True)
class GateResult:
    """Result of an authorization check.

    Attributes:
        allowed: Whether the check passed.
        reason: Internal denial reason (empty when allowed).
        permission: First failing permission for ``all`` checks.
        unauthenticated: No principal was supplied.
        misconfigured: Denied while the principal's role does not resolve.
    """

    allowed: bool = True
    reason: str = ""
    permission: Optional[str] = None
    unauthenticated: bool = False
    misconfigured: bool = False

    @property
    def denied(self) -> bool:
        return not self.allowed

    def raise_for_denial(self, principal: Principal | None = None) -> None:
        """Raise the matching error when the check failed."""
        if self.allowed:
            return
        if self.unauthenticated:
            raise UnauthenticatedError()
        user_id = principal.user_id if principal is not None else None
        if self.misconfigured:
            raise InvalidConfigurationError(
                f"{self.reason} (role unresolved)",
                permission=self.permission,
                user_id=user_id,
                role=principal.role_name if principal is not None else None,
            )
        raise ForbiddenError(self.reason, permission=self.permission, user_id=user_id)


_UNAUTHENTICATED = GateResult(allowed=False, reason="not authenticated", unauthenticated=True)


# ── Gate ─────────────────────────────────────────────────────────


class AuthorizationGate:
    """Boundary check over a PermissionResolver.

    ``require_all`` evaluates every permission, since a blocked entry may
    sit anywhere in the list. ``require_any`` stops at the first allow.

    Usage::

        gate = AuthorizationGate()
        gate.require_all(principal, Permission.TRACKING_WRITE)
        gate.require_any(principal, Permission.SHIPMENTS_READ, Permission.SHIPMENTS_READ_OWN)
    """

    def __init__(self, resolver: Optional[PermissionResolver] = None) -> None:
        self.resolver = resolver or PermissionResolver()

    def check_all(self, principal: Principal | None, *permissions: Permission | str) -> GateResult:
        if principal is None:
            return _UNAUTHENTICATED

        results = [(permission_key(p), self.resolver.resolve(principal, p)) for p in permissions]
        first_failing = next((perm for perm, ok in results if not ok), None)
        if first_failing is None:
            return GateResult()

        return GateResult(
            allowed=False,
            reason=f"missing permission: {first_failing}",
            permission=first_failing,
            misconfigured=not principal.role_resolved,
        )

    def check_any(self, principal: Principal | None, *permissions: Permission | str) -> GateResult:
        if principal is None:
            return _UNAUTHENTICATED

        for perm in permissions:
            if self.resolver.resolve(principal, perm):
                return GateResult()

        return GateResult(
            allowed=False,
            reason=NONE_GRANTED,
            misconfigured=not principal.role_resolved,
        )

    def require_all(self, principal: Principal | None, *permissions: Permission | str) -> None:
        """Raise unless every permission is granted.

        Raises:
            UnauthenticatedError: ``principal`` is None.
            InvalidConfigurationError: Denied and the role does not resolve.
            ForbiddenError: ``missing permission: <first failing>``.
        """
        result = self.check_all(principal, *permissions)
        if result.denied:
            self._log_denial("all", principal, result)
            result.raise_for_denial(principal)

    def require_any(self, principal: Principal | None, *permissions: Permission | str) -> None:
        """Raise unless at least one permission is granted."""
        result = self.check_any(principal, *permissions)
        if result.denied:
            self._log_denial("any", principal, result)
            result.raise_for_denial(principal)

    @staticmethod
    def _log_denial(kind: str, principal: Principal | None, result: GateResult) -> None:
        if result.unauthenticated:
            logger.info("authz.unauthenticated require=%s", kind)
            return
        logger.debug(
            "authz.gate_denied require=%s user_id=%s reason=%s",
            kind,
            principal.user_id if principal is not None else None,
            result.reason,
        )


__all__ = [
    "NONE_GRANTED",
    "AuthorizationGate",
    "GateResult",
]
