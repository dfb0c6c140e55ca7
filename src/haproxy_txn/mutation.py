"""Mutation functions — the caller's writes inside a transaction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .exceptions import APIError, HAProxyTxnError, MutationFailedError
from .models import error_from_response

if TYPE_CHECKING:
    import httpx

MUTATION_SUCCESS_CODES: frozenset[int] = frozenset({200, 201, 202, 204})


@dataclass(frozen=True)
class MutationOutcome:
    """Tagged result of a mutation function.

    ``code`` (when set) lets the failure be classified like a structured API
    error; ``cause`` keeps an underlying exception for chaining.
    """

    ok: bool
    value: Any = None
    error: str | None = None
    code: int | None = None
    cause: BaseException | None = None

    @classmethod
    def success(cls, value: Any = None) -> MutationOutcome:
        return cls(ok=True, value=value)

    @classmethod
    def failure(
        cls,
        error: str,
        *,
        code: int | None = None,
        cause: BaseException | None = None,
    ) -> MutationOutcome:
        return cls(ok=False, error=error, code=code, cause=cause)

    def to_error(self, transaction_id: str) -> HAProxyTxnError:
        if self.ok:
            raise ValueError("a successful outcome has no error")
        if isinstance(self.cause, HAProxyTxnError):
            return self.cause
        message = self.error or "mutation failed"
        if self.code is not None:
            return APIError(self.code, message, summary="Mutation failed")
        return MutationFailedError(transaction_id, message)


def outcome_from_response(response: httpx.Response) -> MutationOutcome:
    """Map a write's response to an outcome (2xx success, else structured failure)."""
    if response.status_code in MUTATION_SUCCESS_CODES:
        return MutationOutcome.success(response)
    error = error_from_response(response, "Mutation request failed")
    code = error.code if isinstance(error, APIError) else None
    return MutationOutcome.failure(str(error), code=code, cause=error)


@runtime_checkable
class MutationFunction(Protocol):
    """Stages writes scoped to ``transaction_id``.

    Returns a :class:`MutationOutcome` (``None`` counts as success) or raises.
    It may be invoked more than once with different ids when the coordinator
    restarts a cycle, so it must not keep state between calls.
    """

    async def __call__(self, transaction_id: str) -> MutationOutcome | None: ...
