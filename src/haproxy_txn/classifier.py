"""ErrorClassifier — collapses Data Plane API failures into retry classes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from .exceptions import APIError

logger = logging.getLogger("haproxy_txn.classifier")


class RetryClass(str, Enum):
    """Semantic category of a failure, as far as the retry loops care."""

    VERSION_MISMATCH = "version_mismatch"
    TRANSACTION_NOT_FOUND = "transaction_not_found"
    TRANSACTION_OUTDATED = "transaction_outdated"
    VERSION_OR_TRANSACTION_UNSPECIFIED = "version_or_transaction_unspecified"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        return self is not RetryClass.FATAL


@dataclass(frozen=True)
class _Rule:
    retry_class: RetryClass
    code: int
    fragments: tuple[str, ...]

    def matches_text(self, text: str) -> bool:
        return all(fragment in text for fragment in self.fragments)

    def matches(self, code: int, message: str) -> bool:
        return code == self.code and self.matches_text(message)


_RULES: tuple[_Rule, ...] = (
    _Rule(RetryClass.VERSION_MISMATCH, 409, ("version mismatch",)),
    _Rule(RetryClass.TRANSACTION_NOT_FOUND, 400, ("transaction does not exist",)),
    _Rule(
        RetryClass.TRANSACTION_OUTDATED,
        406,
        ("transaction", "is outdated and cannot be committed"),
    ),
    _Rule(
        RetryClass.VERSION_OR_TRANSACTION_UNSPECIFIED,
        400,
        ("version or transaction not specified",),
    ),
)


def _find_api_error(error: BaseException) -> APIError | None:
    """Walk the explicit wrapping chain looking for a structured API error.

    Only ``.error`` and ``__cause__`` are followed: an error raised while an
    unrelated ``APIError`` was being handled keeps it in ``__context__`` and
    must not inherit its class.
    """
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        if isinstance(current, APIError):
            return current
        seen.add(id(current))
        wrapped = getattr(current, "error", None)
        if isinstance(wrapped, BaseException):
            current = wrapped
            continue
        current = current.__cause__
    return None


class ErrorClassifier:
    """
    Maps any raised error to a :class:`RetryClass`.

    Structured errors are matched on ``(code, message substring)``. Errors
    that never got a parsed body fall back to substring matching over
    ``str(error)``. Anything unrecognised is ``FATAL``.

    Stateless; a single instance can be shared by every component.
    """

    def classify(self, error: BaseException) -> RetryClass:
        if isinstance(error, asyncio.CancelledError):
            return RetryClass.FATAL

        api_error = _find_api_error(error)
        if api_error is not None:
            result = self.classify_api_error(api_error.code, api_error.message)
        else:
            result = self.classify_text(str(error))

        logger.debug(
            "Classified %s as %s",
            type(error).__name__,
            result.value,
            extra={"retry_class": result.value},
        )
        return result

    def classify_api_error(self, code: int, message: str) -> RetryClass:
        for rule in _RULES:
            if rule.matches(code, message):
                return rule.retry_class
        return RetryClass.FATAL

    def classify_text(self, text: str) -> RetryClass:
        for rule in _RULES:
            if rule.matches_text(text):
                return rule.retry_class
        return RetryClass.FATAL

    def is_retryable(self, error: BaseException) -> bool:
        return self.classify(error).retryable


default_classifier = ErrorClassifier()
