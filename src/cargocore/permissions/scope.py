"""Resource scoping: "all records" versus "own records only".

Provides:
- ``Scope`` / ``Unrestricted`` / ``OwnedBy`` — query-shape decisions.
- ``ResourceScopeFilter.scope_for()`` — picks the scope for a principal.

Data-access code calls ``scope_for`` before listing or reading a scoped
resource and applies the result through ``Scope.to_filter()`` (queries) or
``Scope.permits()`` (single fetched records). Ownership is never filtered
ad hoc elsewhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional

from ..exceptions import InvalidConfigurationError
from .constants import ResourceKind
from .resolver import PermissionResolver

if TYPE_CHECKING:
    from ..principal import Principal

logger = logging.getLogger(__name__)


class Scope:
    """Base class for scope decisions."""

    def to_filter(self) -> dict[str, Any]:
        raise NotImplementedError

    def permits(self, record: Any) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Unrestricted(Scope):
    """No ownership restriction."""

    def to_filter(self) -> dict[str, Any]:
        return {}

    def permits(self, record: Any) -> bool:
        return True


@dataclass(frozen=True)
class OwnedBy(Scope):
    """Restrict to records whose ``field`` equals ``entity_id``."""

    entity_id: str
    field: str = "client_id"

    def to_filter(self) -> dict[str, Any]:
        return {self.field: self.entity_id}

    def permits(self, record: Any) -> bool:
        if isinstance(record, Mapping):
            value = record.get(self.field)
        else:
            value = getattr(record, self.field, None)
        return value is not None and value == self.entity_id


UNRESTRICTED = Unrestricted()

# Support tickets belong to the user who opened them; everything else to the client.
_OWNER_FIELD: dict[ResourceKind, str] = {
    ResourceKind.SHIPMENTS: "client_id",
    ResourceKind.INVOICES: "client_id",
    ResourceKind.TRACKING: "client_id",
    ResourceKind.SUPPORT: "created_by",
}


class ResourceScopeFilter:
    """Decides the ownership scope of reads for a principal.

    A client principal that cannot ``<kind>:read`` is limited to its own
    records, whether or not it holds ``<kind>:read:own``; having neither is
    an authorization concern handled by the gate. Admin principals are
    never scoped.
    """

    def __init__(self, resolver: Optional[PermissionResolver] = None) -> None:
        self._resolver = resolver or PermissionResolver()

    def scope_for(self, principal: Principal, kind: ResourceKind | str) -> Scope:
        kind = ResourceKind(kind)

        if not principal.is_client:
            return UNRESTRICTED

        if self._resolver.resolve(principal, kind.read):
            return UNRESTRICTED

        field = _OWNER_FIELD[kind]
        owner_id = principal.user_id if field == "created_by" else principal.owned_entity_id
        if not owner_id:
            raise InvalidConfigurationError(
                f"client principal has no owner id for {kind.value}",
                user_id=principal.user_id,
                resource=kind.value,
            )

        logger.debug("scope.owned user_id=%s kind=%s field=%s", principal.user_id, kind.value, field)
        return OwnedBy(entity_id=owner_id, field=field)


__all__ = [
    "OwnedBy",
    "ResourceScopeFilter",
    "Scope",
    "UNRESTRICTED",
    "Unrestricted",
]
