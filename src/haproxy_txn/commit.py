"""CommitCoordinator — finalizes transactions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .classifier import ErrorClassifier, default_classifier
from .client import transaction_path
from .exceptions import HAProxyTxnError, RetryExhaustedError, TransactionFailedError
from .models import error_from_response
from .retry import RetryPolicy

if TYPE_CHECKING:
    import httpx

    from .client import DataPlaneClient

logger = logging.getLogger("haproxy_txn.commit")

COMMIT_SUCCESS_CODES: frozenset[int] = frozenset({200, 202})


class CommitCoordinator:
    """
    Commits transactions, either once or with an in-place bounded retry.

    The whole-cycle variant, which abandons the transaction and restarts
    from a fresh version, lives in
    :class:`~haproxy_txn.coordinator.TransactionCoordinator`.
    """

    def __init__(
        self,
        client: DataPlaneClient,
        *,
        classifier: ErrorClassifier | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._client = client
        self._classifier = classifier or default_classifier
        self.policy = policy or RetryPolicy.create_default()

    async def commit_once(self, transaction_id: str) -> httpx.Response:
        """PUT the commit endpoint once. 200 and 202 are success.

        Raises:
            APIError: Structured rejection (e.g. 406 outdated transaction).
            UnexpectedStatusError: Any other non-success status.
            TransportError: Network failure.
        """
        logger.info(
            "Committing transaction %s",
            transaction_id,
            extra={"transaction_id": transaction_id},
        )
        response = await self._client.request(
            "PUT",
            transaction_path(transaction_id),
            area="transaction",
            phase="commit",
        )
        if response.status_code not in COMMIT_SUCCESS_CODES:
            logger.info(
                "Commit of transaction %s returned %d: %s",
                transaction_id,
                response.status_code,
                self._client.loggable_body(response),
                extra={"transaction_id": transaction_id},
            )
            raise error_from_response(response, "Transaction commit failed")

        logger.info(
            "Transaction %s committed with status %d",
            transaction_id,
            response.status_code,
            extra={"transaction_id": transaction_id},
        )
        return response

    async def commit_with_bounded_retry(
        self,
        transaction_id: str,
        policy: RetryPolicy | None = None,
    ) -> httpx.Response:
        """Retry the commit of the *same* transaction on retryable errors.

        Only meaningful when the caller knows the version baseline is still
        valid; a stale baseline will just fail every attempt.

        Raises:
            TransactionFailedError: First non-retryable failure.
            RetryExhaustedError: Retryable failures on every attempt.
        """
        policy = policy or self.policy
        attempt = 1
        while True:
            logger.debug(
                "Commit attempt %d/%d for %s",
                attempt,
                policy.max_attempts,
                transaction_id,
            )
            try:
                return await self.commit_once(transaction_id)
            except HAProxyTxnError as exc:
                retry_class = self._classifier.classify(exc)
                if not retry_class.retryable:
                    raise TransactionFailedError(
                        "commit",
                        exc,
                        transaction_id=transaction_id,
                        retry_class=retry_class,
                    ) from exc
                if not policy.should_retry(attempt):
                    raise RetryExhaustedError(
                        "commit", attempt, exc, transaction_id=transaction_id
                    ) from exc
                logger.warning(
                    "Retryable error committing transaction %s (attempt %d/%d): %s",
                    transaction_id,
                    attempt,
                    policy.max_attempts,
                    exc,
                    extra={
                        "transaction_id": transaction_id,
                        "attempt": attempt,
                        "retry_class": retry_class.value,
                    },
                )
                await policy.wait_before_retry(attempt)
                attempt += 1
