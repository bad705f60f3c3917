# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Role Hierarchy — Total order over tenancy roles.

    OWNER (4) > ADMIN (3) > MEMBER (2) > VIEWER (1)

Roles travel as UPPERCASE string tokens and are matched exactly. Anything
else ranks at level 0 and fails every check, including "owner" or " ADMIN ";
nothing here raises on bad input, so a corrupted stored role means "no access".
Only parse_role, used for configuration and request input, folds case.
"""

from __future__ import annotations

import enum
from types import MappingProxyType
from typing import Mapping, Optional, Union


class Role(str, enum.Enum):
    OWNER = "OWNER"    # creator / ultimate authority
    ADMIN = "ADMIN"    # manages members, workspaces, settings
    MEMBER = "MEMBER"  # creates and edits projects and tasks
    VIEWER = "VIEWER"  # read-only


ROLE_LEVELS: Mapping[str, int] = MappingProxyType({
    Role.OWNER.value: 4,
    Role.ADMIN.value: 3,
    Role.MEMBER.value: 2,
    Role.VIEWER.value: 1,
})

RoleLike = Union[Role, str, None]


def _token(role: RoleLike) -> str:
    if isinstance(role, Role):
        return role.value
    if not isinstance(role, str):
        return ""
    return role


def level(role: RoleLike) -> int:
    """Privilege level of a role token; unknown tokens are level 0."""
    return ROLE_LEVELS.get(_token(role), 0)


def satisfies(actual: RoleLike, required: RoleLike) -> bool:
    """True if `actual` ranks at or above `required`."""
    actual_level = level(actual)
    if actual_level == 0:
        return False
    return actual_level >= level(required)


def parse_role(token: RoleLike) -> Optional[Role]:
    """Return the Role for a token, or None if it is not a known role."""
    normalized = _token(token).strip().upper()
    if normalized not in ROLE_LEVELS:
        return None
    return Role(normalized)
