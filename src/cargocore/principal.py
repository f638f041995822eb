"""Principal — the fully resolved identity and permission context of one request.

The token-verification collaborator hands over an ``IdentityRecord``;
``PrincipalLoader`` resolves the role reference once and produces an
immutable ``Principal`` that is passed explicitly through the call chain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

from pydantic import BaseModel, Field

from .exceptions import ForbiddenError, UnauthenticatedError
from .permissions.constants import UserType, permission_key
from .permissions.models import Role

if TYPE_CHECKING:
    from .permissions.catalog import RoleCatalog

logger = logging.getLogger(__name__)


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class IdentityRecord(BaseModel):
    """Verified identity as delivered by the token-verification collaborator."""

    user_id: str
    role: str
    user_type: UserType = UserType.CLIENT
    override: list[str] = Field(default_factory=list)
    blocked: list[str] = Field(default_factory=list)
    owned_entity_id: Optional[str] = None
    status: AccountStatus = AccountStatus.ACTIVE


@dataclass(frozen=True)
class Principal:
    """Authenticated caller.

    Attributes:
        user_id: Identity of the user.
        role_name: Role reference as stored on the account.
        role: Resolved role, or None when the reference does not resolve
              (the resolver then denies everything not explicitly overridden).
        user_type: admin or client.
        override_grants: Permissions explicitly allowed regardless of role.
        blocked_grants: Permissions explicitly denied regardless of role or overrides.
        owned_entity_id: Client the principal belongs to (client accounts).
    """

    user_id: str
    role_name: str
    role: Role | None = None
    user_type: UserType = UserType.CLIENT
    override_grants: frozenset[str] = field(default_factory=frozenset)
    blocked_grants: frozenset[str] = field(default_factory=frozenset)
    owned_entity_id: str | None = None

    @property
    def role_resolved(self) -> bool:
        return self.role is not None

    @property
    def is_client(self) -> bool:
        return self.user_type == UserType.CLIENT

    @classmethod
    def build(
        cls,
        *,
        user_id: str,
        role: Role | None,
        role_name: str | None = None,
        user_type: UserType | str | None = None,
        override: Iterable[str] = (),
        blocked: Iterable[str] = (),
        owned_entity_id: str | None = None,
    ) -> Principal:
        """Convenience constructor normalizing grant collections."""
        if user_type is None:
            user_type = role.user_type if role is not None else UserType.CLIENT
        return cls(
            user_id=user_id,
            role_name=role_name or (role.name if role is not None else ""),
            role=role,
            user_type=UserType(user_type),
            override_grants=frozenset(permission_key(p) for p in override),
            blocked_grants=frozenset(permission_key(p) for p in blocked),
            owned_entity_id=owned_entity_id,
        )


class PrincipalLoader:
    """Builds Principals from identity records against a RoleCatalog."""

    def __init__(self, catalog: RoleCatalog) -> None:
        self._catalog = catalog

    def load(self, identity: IdentityRecord | None) -> Principal:
        """Resolve an identity into a Principal.

        Raises:
            UnauthenticatedError: No identity was established.
            ForbiddenError: The account is not active.
        """
        if identity is None:
            raise UnauthenticatedError()

        if identity.status != AccountStatus.ACTIVE:
            logger.info("principal.inactive user_id=%s status=%s", identity.user_id, identity.status.value)
            raise ForbiddenError("account is not active", user_id=identity.user_id)

        role = self._catalog.get(identity.role)
        if role is None:
            # Deny-all principal; the resolver reports it on every check.
            logger.error(
                "principal.role_unresolved user_id=%s role=%s",
                identity.user_id,
                identity.role,
            )

        return Principal.build(
            user_id=identity.user_id,
            role=role,
            role_name=identity.role,
            user_type=identity.user_type,
            override=identity.override,
            blocked=identity.blocked,
            owned_entity_id=identity.owned_entity_id,
        )


__all__ = [
    "AccountStatus",
    "IdentityRecord",
    "Principal",
    "PrincipalLoader",
]
