# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Tenant Context — Multi-tenancy identity values.

Every tenant-scoped operation receives an AuthorizedContext explicitly.
It is built by the guard after authentication, tenant resolution and
membership authorization succeed, and lives for one request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flowdesk.core.roles import Role


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller as supplied by the authentication collaborator."""

    id: str
    name: str = ""
    email: str = ""

    def __post_init__(self):
        if not self.id:
            raise ValueError("caller id must not be empty")


@dataclass(frozen=True)
class Membership:
    """A caller's role within one tenant. Role is kept as the raw token."""

    tenant_id: str
    role: str


@dataclass(frozen=True)
class AuthorizedContext:
    """Immutable per-request context produced by a successful guard."""

    caller_id: str
    tenant_id: str
    role: Role
    caller: Optional[CallerIdentity] = None

    def __post_init__(self):
        if not self.tenant_id:
            raise ValueError("tenant_id must not be empty")
        if not self.caller_id:
            raise ValueError("caller_id must not be empty")

    def __repr__(self) -> str:
        return (
            f"AuthorizedContext(tenant={self.tenant_id!r}, "
            f"caller={self.caller_id!r}, role={self.role.value})"
        )
