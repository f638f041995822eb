"""Role data model."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import UserType, is_known_permission, permission_key

_ROLE_NAME = re.compile(r"^[a-z_]+$")


class Role(BaseModel):
    """Named bundle of permissions.

    ``permissions`` keeps assignment order and drops duplicates. Every entry
    must belong to the permission vocabulary; ``*`` is allowed.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str = ""
    description: str = ""
    user_type: UserType = UserType.CLIENT
    permissions: tuple[str, ...] = Field(default_factory=tuple)
    is_system: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        if not isinstance(v, str):
            raise ValueError("role name must be a string")
        name = v.strip().lower()
        if not _ROLE_NAME.match(name):
            raise ValueError("role name must contain only lowercase letters and underscores")
        return name

    @field_validator("permissions", mode="before")
    @classmethod
    def normalize_permissions(cls, v) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for raw in v or ():
            perm = permission_key(raw).strip()
            if not is_known_permission(perm):
                raise ValueError(f"unknown permission: {perm}")
            seen.setdefault(perm, None)
        return tuple(seen)

    def __str__(self) -> str:
        return self.name


__all__ = ["Role"]
