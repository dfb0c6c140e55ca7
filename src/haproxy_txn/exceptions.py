"""Exception hierarchy for haproxy-txn."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .sanitization import safe_error_message

if TYPE_CHECKING:
    from .classifier import RetryClass


class HAProxyTxnError(Exception):
    """Root exception for the transaction coordinator."""


class TransportError(HAProxyTxnError):
    """Network, decoding or unexpected-status failure talking to the Data Plane API.

    Never retried by the coordinator: a persistent transport problem is not a
    concurrency race.
    """


class ParseError(TransportError):
    """Raised when a response body matches none of the accepted shapes."""

    def __init__(self, message: str, body: str | None = None) -> None:
        self.body = body
        super().__init__(message)


class UnexpectedStatusError(TransportError):
    """Non-success status whose body is not a structured API error."""

    def __init__(self, status_code: int, body: str, summary: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.summary = summary
        prefix = f"{summary}: " if summary else ""
        super().__init__(f"{prefix}unexpected status code {status_code}: {body}")


class APIError(HAProxyTxnError):
    """Structured rejection returned by the Data Plane API.

    Carries the ``code``/``message`` pair from the JSON error body; this pair
    is what the :class:`~haproxy_txn.classifier.ErrorClassifier` inspects.
    """

    def __init__(
        self,
        code: int,
        message: str,
        *,
        status_code: int | None = None,
        summary: str = "",
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code if status_code is not None else code
        self.summary = summary
        super().__init__(f"API Error {code}: {message}")


class MutationFailedError(HAProxyTxnError):
    """A mutation function reported failure through its outcome."""

    def __init__(self, transaction_id: str, message: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(message)


class TransactionFailedError(HAProxyTxnError):
    """Non-retryable failure, wrapped with the phase and transaction id it hit.

    The original error is always available as ``__cause__`` and ``error``;
    the message itself never repeats credentials the server echoed back.
    """

    def __init__(
        self,
        phase: str,
        error: BaseException,
        *,
        transaction_id: str | None = None,
        retry_class: RetryClass | None = None,
    ) -> None:
        self.phase = phase
        self.transaction_id = transaction_id
        self.retry_class = retry_class
        self.error = error
        msg = f"{phase} failed: {safe_error_message(str(error))}"
        if transaction_id:
            msg += f" (transaction_id={transaction_id})"
        super().__init__(msg)


class RetryExhaustedError(HAProxyTxnError):
    """A bounded retry loop ran out of attempts (or time)."""

    def __init__(
        self,
        phase: str,
        attempts: int,
        last_error: BaseException | None = None,
        *,
        transaction_id: str | None = None,
    ) -> None:
        self.phase = phase
        self.attempts = attempts
        self.last_error = last_error
        self.transaction_id = transaction_id
        msg = f"{phase} failed after {attempts} attempts"
        if transaction_id:
            msg += f" (transaction_id={transaction_id})"
        if last_error is not None:
            msg += f": {last_error}"
        super().__init__(msg)
