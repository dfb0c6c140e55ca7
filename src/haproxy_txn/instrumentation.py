"""Instrumentation hooks around Data Plane API calls.

Every request sent by :class:`~haproxy_txn.client.DataPlaneClient` runs
through the hooks whose filters match it. The operation name is
``dataplane.<verb>.<area>`` (``dataplane.get.version``,
``dataplane.put.transaction``, ...) and the attributes are those of
:class:`RequestAttributes`, including the transaction phase the request
belongs to.
"""

from __future__ import annotations

import fnmatch
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

PHASE_ATTRIBUTE = "dataplane.phase"

# Phases a request can belong to; writes scoped to a transaction are "mutate".
REQUEST_PHASES: frozenset[str] = frozenset(
    {"version_read", "create", "mutate", "commit", "rollback"}
)


@runtime_checkable
class InstrumentationHook(Protocol):
    """Wraps one Data Plane request (tracing, metrics, auditing)."""

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any: ...


@dataclass(frozen=True)
class RequestAttributes:
    """What a hook is told about the request it wraps."""

    method: str
    path: str
    area: str
    api_version: str
    phase: str | None = None
    transaction_id: str | None = None
    correlation_id: str | None = None

    @property
    def operation(self) -> str:
        return f"dataplane.{self.method.lower()}.{self.area}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "http.method": self.method,
            "http.path": self.path,
            "dataplane.api_version": self.api_version,
            PHASE_ATTRIBUTE: self.phase,
            "transaction_id": self.transaction_id,
            "correlation_id": self.correlation_id,
        }


class HookRegistration:
    """A hook plus the operations and phases it applies to."""

    def __init__(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: list[str] | None = None,
        phases: list[str] | None = None,
        enabled: bool = True,
    ) -> None:
        unknown = set(phases or ()) - REQUEST_PHASES
        if unknown:
            raise ValueError(f"unknown request phase(s): {sorted(unknown)}")
        self.hook = hook
        self.priority = priority
        self.operations = operations or []
        self.phases = frozenset(phases or ())
        self.enabled = enabled

    def matches(self, operation: str, attributes: dict[str, Any]) -> bool:
        if not self.enabled:
            return False
        if self.phases and attributes.get(PHASE_ATTRIBUTE) not in self.phases:
            return False
        if not self.operations:
            return True
        return any(fnmatch.fnmatch(operation, pattern) for pattern in self.operations)


class HookRegistry:
    """Ordered hooks, executed as a nested pipeline around each request.

    Lower ``priority`` runs further out.
    """

    def __init__(self) -> None:
        self._registrations: list[HookRegistration] = []

    def register(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: list[str] | None = None,
        phases: list[str] | None = None,
        enabled: bool = True,
    ) -> HookRegistration:
        registration = HookRegistration(
            hook,
            priority=priority,
            operations=operations,
            phases=phases,
            enabled=enabled,
        )
        self._registrations.append(registration)
        self._registrations.sort(key=lambda r: r.priority)
        return registration

    async def execute_all(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        matching = [r.hook for r in self._registrations if r.matches(operation, attributes)]

        async def call(index: int) -> Any:
            if index == len(matching):
                return await next_handler()
            return await matching[index](operation, attributes, lambda: call(index + 1))

        return await call(0)

    async def wrap(
        self,
        request: RequestAttributes,
        send: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run ``send`` inside the hooks matching ``request``."""
        return await self.execute_all(request.operation, request.as_dict(), send)

    def clear(self) -> None:
        self._registrations.clear()


_hook_registry_var: ContextVar[HookRegistry | None] = ContextVar(
    "haproxy_txn_hook_registry", default=None
)


def get_hook_registry() -> HookRegistry:
    """Registry for the current context, created on first use."""
    registry = _hook_registry_var.get()
    if registry is None:
        registry = HookRegistry()
        _hook_registry_var.set(registry)
    return registry


def set_hook_registry(registry: HookRegistry) -> None:
    _hook_registry_var.set(registry)
