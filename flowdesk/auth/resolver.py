# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Tenant Context Resolver — Find the tenant an operation claims to act upon.

Resolution walks an ordered list of named strategies and takes the first
non-empty string:

    top_level        payload["tenantId"]
    envelope:json    payload["json"]["tenantId"]   (one level only)
    bound_context    tenant already bound to the session / connection

If nothing matches, MissingTenantContext is raised. The resolver never
falls back to "some tenant the caller belongs to".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence

from flowdesk.auth.errors import MissingTenantContext

logger = logging.getLogger("flowdesk.resolver")


@dataclass(frozen=True)
class ResolutionInput:
    payload: Any
    bound_tenant_id: Optional[str] = None


def _as_tenant_id(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass(frozen=True)
class ExtractionStrategy:
    """A named, total, side-effect-free tenant extractor."""

    name: str
    extract: Callable[[ResolutionInput], Optional[str]]


def top_level(field: str) -> ExtractionStrategy:
    def _extract(inp: ResolutionInput) -> Optional[str]:
        if not isinstance(inp.payload, Mapping):
            return None
        return _as_tenant_id(inp.payload.get(field))

    return ExtractionStrategy("top_level", _extract)


def envelope(key: str, field: str) -> ExtractionStrategy:
    def _extract(inp: ResolutionInput) -> Optional[str]:
        if not isinstance(inp.payload, Mapping):
            return None
        inner = inp.payload.get(key)
        if not isinstance(inner, Mapping):
            return None
        return _as_tenant_id(inner.get(field))

    return ExtractionStrategy(f"envelope:{key}", _extract)


def bound_context() -> ExtractionStrategy:
    return ExtractionStrategy("bound_context", lambda inp: _as_tenant_id(inp.bound_tenant_id))


def default_strategies(
    field: str = "tenantId",
    envelope_keys: Sequence[str] = ("json",),
) -> tuple:
    return (
        top_level(field),
        *(envelope(key, field) for key in envelope_keys),
        bound_context(),
    )


class TenantResolver:
    """Ordered tenant extraction over heterogeneous payload shapes."""

    def __init__(self, strategies: Optional[Sequence[ExtractionStrategy]] = None) -> None:
        self._strategies = tuple(strategies) if strategies else default_strategies()

    @classmethod
    def from_settings(cls, settings) -> TenantResolver:
        return cls(default_strategies(settings.TENANT_FIELD, settings.TENANT_ENVELOPE_KEYS))

    @property
    def strategy_names(self) -> tuple:
        return tuple(s.name for s in self._strategies)

    def resolve(self, payload: Any, bound_tenant_id: Optional[str] = None) -> str:
        inp = ResolutionInput(payload=payload, bound_tenant_id=bound_tenant_id)
        for strategy in self._strategies:
            tenant_id = strategy.extract(inp)
            if tenant_id:
                logger.debug("Tenant resolved via %s: %s", strategy.name, tenant_id)
                return tenant_id
        raise MissingTenantContext(self.strategy_names)
