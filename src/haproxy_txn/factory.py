"""TransactionFactory — opens transactions bound to a configuration version."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from .classifier import ErrorClassifier, RetryClass, default_classifier
from .client import TRANSACTIONS_PATH
from .exceptions import HAProxyTxnError, ParseError, RetryExhaustedError
from .models import Transaction, TransactionBody, error_from_response
from .retry import RetryPolicy

if TYPE_CHECKING:
    from .client import DataPlaneClient
    from .version import VersionOracle

logger = logging.getLogger("haproxy_txn.factory")


class TransactionFactory:
    """
    Creates transactions, healing version races on the way.

    ``create`` is a single POST. ``open_transaction`` wraps it in a bounded
    retry that only reacts to ``VERSION_MISMATCH``: the version is re-read
    and creation retried with the fresh value. Every other failure
    propagates untouched.
    """

    def __init__(
        self,
        client: DataPlaneClient,
        oracle: VersionOracle,
        *,
        classifier: ErrorClassifier | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._client = client
        self._oracle = oracle
        self._classifier = classifier or default_classifier
        self.policy = policy or RetryPolicy.create_default()

    async def create(self, base_version: str) -> str:
        """POST a new transaction against ``base_version`` and return its id.

        Raises:
            APIError: Structured rejection (e.g. 409 version mismatch).
            UnexpectedStatusError: Non-201 without a structured body.
            ParseError: 201 whose body carries no transaction id.
        """
        response = await self._client.request(
            "POST",
            TRANSACTIONS_PATH,
            params={"version": base_version},
            area="transaction",
            phase="create",
        )
        if response.status_code != 201:
            logger.info(
                "Transaction creation against version %s returned %d: %s",
                base_version,
                response.status_code,
                self._client.loggable_body(response),
            )
            raise error_from_response(response, "Failed to create transaction")

        try:
            body = TransactionBody.model_validate_json(response.text)
        except PydanticValidationError as exc:
            raise ParseError(
                f"transaction response has no id: {exc}",
                self._client.loggable_body(response),
            ) from exc
        return body.id

    async def open_transaction(self, base_version: str | None = None) -> Transaction:
        """Open a transaction, re-reading the version on a mismatch.

        Reads the version first when ``base_version`` is not given. A failed
        re-read is not retried.

        Raises:
            RetryExhaustedError: Still mismatching after ``policy.max_attempts``.
            HAProxyTxnError: Any non-mismatch failure, unchanged.
        """
        version = base_version or await self._oracle.get_current_version()
        attempt = 1
        while True:
            try:
                transaction_id = await self.create(version)
            except HAProxyTxnError as exc:
                retry_class = self._classifier.classify(exc)
                if retry_class is not RetryClass.VERSION_MISMATCH:
                    raise
                if not self.policy.should_retry(attempt):
                    logger.warning(
                        "Version mismatch persisted after %d attempts",
                        attempt,
                        extra={"version": version, "attempt": attempt},
                    )
                    raise RetryExhaustedError("create transaction", attempt, exc) from exc
                logger.info(
                    "Version mismatch creating transaction against %s, "
                    "retrying with fresh version (attempt %d/%d)",
                    version,
                    attempt,
                    self.policy.max_attempts,
                    extra={"version": version, "attempt": attempt},
                )
                await self.policy.wait_before_retry(attempt)
                version = await self._oracle.get_current_version()
                attempt += 1
                continue

            transaction = Transaction(id=transaction_id, base_version=version)
            logger.info(
                "Opened transaction %s",
                transaction,
                extra={"transaction_id": transaction_id, "version": version},
            )
            return transaction
