# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Tenant Guard — Authentication + tenant resolution + membership check.

Applied uniformly to every tenant-scoped operation. Steps run in a fixed
order and stop at the first failure:

  1. authenticated caller          else Unauthenticated
  2. tenant id from the payload    else MissingTenantContext
  3. membership / minimum role     else NotMember | InsufficientRole
  4. AuthorizedContext handed to the wrapped operation

The guard holds only immutable configuration (minimum role, resolver), so
guards with different minimum roles never affect each other. Memberships
come through the request's loader; the guard itself touches no storage.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from flowdesk.auth.authorizer import MembershipSet, authorize
from flowdesk.auth.errors import AuthorizationError, Unauthenticated
from flowdesk.auth.resolver import TenantResolver
from flowdesk.core.metrics import service_metrics
from flowdesk.core.roles import Role, RoleLike, parse_role
from flowdesk.core.tenant import AuthorizedContext, CallerIdentity, Membership

logger = logging.getLogger("flowdesk.guard")

MembershipLoader = Callable[[str], Awaitable[Iterable[Membership]]]


@dataclass(frozen=True)
class GuardRequest:
    """Everything the guard needs to know about one incoming operation."""

    caller: Optional[CallerIdentity]
    payload: Any
    load_memberships: MembershipLoader
    bound_tenant_id: Optional[str] = None


class TenantGuard:
    """Reusable guard parameterized by an optional minimum role."""

    def __init__(
        self,
        min_role: RoleLike = None,
        resolver: Optional[TenantResolver] = None,
    ) -> None:
        if min_role is not None:
            parsed = parse_role(min_role)
            if parsed is None:
                raise ValueError(
                    f"Unknown tenant role: {min_role!r}. "
                    f"Allowed: {', '.join(r.value for r in Role)}"
                )
            min_role = parsed
        self._min_role: Optional[Role] = min_role
        self._resolver = resolver or TenantResolver()

    @property
    def min_role(self) -> Optional[Role]:
        return self._min_role

    async def authorize(self, request: GuardRequest) -> AuthorizedContext:
        try:
            if request.caller is None:
                raise Unauthenticated()

            tenant_id = self._resolver.resolve(request.payload, request.bound_tenant_id)

            memberships = MembershipSet(await request.load_memberships(request.caller.id))
            membership = authorize(tenant_id, memberships, self._min_role)
        except AuthorizationError as exc:
            service_metrics.inc(f"authz_denied:{exc.kind.lower()}")
            logger.info(
                "Guard denied: %s (%s)", exc.kind, exc,
                extra={
                    "tenant_id": exc.tenant_id,
                    "caller_id": request.caller.id if request.caller else None,
                },
            )
            raise

        return AuthorizedContext(
            caller_id=request.caller.id,
            tenant_id=tenant_id,
            role=parse_role(membership.role),
            caller=request.caller,
        )

    def wrap(self, operation: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        """
        Wrap `operation(ctx, *args, **kwargs)` so it only runs once authorized.

        The wrapped callable takes a GuardRequest as its first argument.
        """

        @functools.wraps(operation)
        async def _guarded(request: GuardRequest, *args, **kwargs):
            ctx = await self.authorize(request)
            return await operation(ctx, *args, **kwargs)

        return _guarded

    def __repr__(self) -> str:
        role = self._min_role.value if self._min_role else "ANY"
        return f"TenantGuard(min_role={role})"
