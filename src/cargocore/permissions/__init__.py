"""Permission vocabulary, roles, resolution and resource scoping.

Defines:
- Permission: closed capability vocabulary (``resource:action[:own]`` and ``*``)
- Role / RoleCatalog: named permission bundles and the system roles
- PermissionResolver: blocked → override → role → wildcard → exact match
- ResourceScopeFilter: Unrestricted vs OwnedBy scoping for client reads
"""

from .catalog import SYSTEM_ROLES, RoleCatalog, default_catalog
from .constants import (
    PERMISSION_VOCABULARY_VERSION,
    WILDCARD,
    Permission,
    ResourceKind,
    UserType,
    all_permissions,
    is_known_permission,
    permission_key,
)
from .models import Role
from .resolver import PermissionResolver
from .scope import UNRESTRICTED, OwnedBy, ResourceScopeFilter, Scope, Unrestricted

__all__ = [
    "PERMISSION_VOCABULARY_VERSION",
    "SYSTEM_ROLES",
    "UNRESTRICTED",
    "WILDCARD",
    "OwnedBy",
    "Permission",
    "PermissionResolver",
    "ResourceKind",
    "ResourceScopeFilter",
    "Role",
    "RoleCatalog",
    "Scope",
    "Unrestricted",
    "UserType",
    "all_permissions",
    "default_catalog",
    "is_known_permission",
    "permission_key",
]
