"""RollbackAgent — discards uncommitted transactions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .client import transaction_path
from .exceptions import HAProxyTxnError
from .models import error_from_response

if TYPE_CHECKING:
    from .client import DataPlaneClient

logger = logging.getLogger("haproxy_txn.rollback")

ROLLBACK_SUCCESS_CODES: frozenset[int] = frozenset({200, 204})


class RollbackAgent:
    """
    Deletes a transaction to throw away its staged writes.

    The Data Plane API has no rollback endpoint. Staged writes never touch
    the committed configuration, so deleting the transaction is enough.
    """

    def __init__(self, client: DataPlaneClient) -> None:
        self._client = client

    async def delete(self, transaction_id: str) -> None:
        """DELETE the transaction, raising on anything but 200/204."""
        response = await self._client.request(
            "DELETE",
            transaction_path(transaction_id),
            area="transaction",
            phase="rollback",
        )
        if response.status_code not in ROLLBACK_SUCCESS_CODES:
            raise error_from_response(
                response, f"Failed to rollback transaction {transaction_id}"
            )

    async def rollback(self, transaction_id: str) -> bool:
        """Best-effort delete. Never raises; returns whether it succeeded.

        Used as failure cleanup, where the error that triggered the rollback
        is what the caller needs to see. Unknown or already deleted ids
        simply log and return False.
        """
        logger.info(
            "Rolling back transaction %s",
            transaction_id,
            extra={"transaction_id": transaction_id},
        )
        try:
            await self.delete(transaction_id)
        except HAProxyTxnError as exc:
            logger.warning(
                "Failed to rollback transaction %s: %s",
                transaction_id,
                self._client.sanitizer.sanitize(str(exc)),
                extra={"transaction_id": transaction_id},
            )
            return False

        logger.info(
            "Transaction %s rolled back",
            transaction_id,
            extra={"transaction_id": transaction_id},
        )
        return True
