"""Tests for the exception hierarchy."""

from __future__ import annotations

from haproxy_txn.classifier import RetryClass
from haproxy_txn.exceptions import (
    APIError,
    HAProxyTxnError,
    MutationFailedError,
    ParseError,
    RetryExhaustedError,
    TransactionFailedError,
    TransportError,
    UnexpectedStatusError,
)


def test_hierarchy() -> None:
    assert issubclass(ParseError, TransportError)
    assert issubclass(UnexpectedStatusError, TransportError)
    for cls in (TransportError, APIError, MutationFailedError, TransactionFailedError):
        assert issubclass(cls, HAProxyTxnError)
    assert issubclass(RetryExhaustedError, HAProxyTxnError)


def test_api_error_message() -> None:
    err = APIError(409, "version mismatch", summary="Failed to create transaction")
    assert str(err) == "API Error 409: version mismatch"
    assert err.status_code == 409


def test_api_error_keeps_http_status() -> None:
    assert APIError(500, "boom", status_code=502).status_code == 502


def test_unexpected_status_message() -> None:
    err = UnexpectedStatusError(503, "unavailable", "failed to get configuration version")
    assert str(err) == (
        "failed to get configuration version: unexpected status code 503: unavailable"
    )
    assert str(UnexpectedStatusError(500, "")) == "unexpected status code 500: "


def test_parse_error_keeps_body() -> None:
    assert ParseError("bad", "<html>").body == "<html>"


def test_transaction_failed_error() -> None:
    cause = APIError(500, "boom")
    err = TransactionFailedError(
        "commit", cause, transaction_id="txn-1", retry_class=RetryClass.FATAL
    )
    assert err.error is cause
    assert str(err) == "commit failed: API Error 500: boom (transaction_id=txn-1)"
    assert str(TransactionFailedError("version_read", cause)) == (
        "version_read failed: API Error 500: boom"
    )


def test_retry_exhausted_error() -> None:
    last = APIError(409, "version mismatch")
    err = RetryExhaustedError("transaction", 10, last, transaction_id="txn-10")
    assert str(err) == (
        "transaction failed after 10 attempts (transaction_id=txn-10): "
        "API Error 409: version mismatch"
    )
    assert str(RetryExhaustedError("commit", 3)) == "commit failed after 3 attempts"


def test_transaction_failed_error_hides_echoed_credentials() -> None:
    cause = APIError(401, "invalid password: hunter2")

    err = TransactionFailedError("version_read", cause)

    assert "hunter2" not in str(err)
    assert "Sensitive details have been hidden" in str(err)
    assert err.error is cause
