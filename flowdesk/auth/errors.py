# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Authorization errors raised by the tenant guard.

`kind` distinguishes failures internally (logs, metrics). The HTTP layer
collapses NotMember and InsufficientRole into one "forbidden" response.
"""

from __future__ import annotations

from typing import Optional


class AuthorizationError(Exception):
    """Base class for terminal, non-retryable authorization failures."""

    kind = "AUTHORIZATION"

    def __init__(self, message: str, tenant_id: Optional[str] = None):
        self.tenant_id = tenant_id
        super().__init__(message)


class Unauthenticated(AuthorizationError):
    kind = "UNAUTHENTICATED"

    def __init__(self):
        super().__init__("No authenticated caller")


class MissingTenantContext(AuthorizationError):
    kind = "MISSING_TENANT_CONTEXT"

    def __init__(self, tried: tuple = ()):
        self.tried = tuple(tried)
        super().__init__(
            f"Tenant id not found (tried: {', '.join(self.tried) or 'nothing'})"
        )


class NotMember(AuthorizationError):
    kind = "NOT_MEMBER"

    def __init__(self, tenant_id: str):
        super().__init__(f"Caller is not a member of tenant '{tenant_id}'", tenant_id)


class InsufficientRole(AuthorizationError):
    kind = "INSUFFICIENT_ROLE"

    def __init__(self, tenant_id: str, actual: str, required: str):
        self.actual = actual
        self.required = required
        super().__init__(
            f"Role {actual!r} does not satisfy {required!r} in tenant '{tenant_id}'",
            tenant_id,
        )
