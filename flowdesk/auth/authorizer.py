# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Membership Authorizer — allow/deny for one (caller, tenant, required role).
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, Optional

from flowdesk.auth.errors import InsufficientRole, NotMember
from flowdesk.core.roles import Role, RoleLike, level, satisfies
from flowdesk.core.tenant import Membership

logger = logging.getLogger("flowdesk.authorizer")


class MembershipSet:
    """
    A caller's memberships, indexed by tenant id.

    Loaded once per request and read-only afterwards. If the store ever
    returns two rows for one tenant, the lower-privileged row is kept.
    """

    def __init__(self, memberships: Iterable[Membership] = ()) -> None:
        index: Dict[str, Membership] = {}
        for m in memberships:
            existing = index.get(m.tenant_id)
            if existing is not None:
                logger.warning(
                    "Duplicate membership rows for tenant %s (%s, %s)",
                    m.tenant_id, existing.role, m.role,
                )
                if level(existing.role) <= level(m.role):
                    continue
            index[m.tenant_id] = m
        self._index = index

    def get(self, tenant_id: str) -> Optional[Membership]:
        return self._index.get(tenant_id)

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self._index

    def __iter__(self) -> Iterator[Membership]:
        return iter(self._index.values())

    def __len__(self) -> int:
        return len(self._index)


def authorize(
    tenant_id: str,
    memberships: MembershipSet,
    required: RoleLike = None,
) -> Membership:
    """
    Return the caller's membership in `tenant_id`.

    Raises NotMember when there is no exact match, InsufficientRole when the
    membership's role ranks below `required`. No required role means any
    recognized role suffices; an unrecognized role token never passes.
    """
    membership = memberships.get(tenant_id)
    if membership is None:
        raise NotMember(tenant_id)

    effective = Role.VIEWER if required is None else required
    if not satisfies(membership.role, effective):
        required_token = getattr(effective, "value", effective)
        raise InsufficientRole(tenant_id, membership.role, str(required_token))

    return membership
