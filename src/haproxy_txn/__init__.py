"""haproxy-txn — transaction coordinator for the HAProxy Data Plane API.

Stages writes in version-stamped transactions, commits them, and recovers
from races with other writers by restarting the cycle.
"""

from __future__ import annotations

from .classifier import ErrorClassifier, RetryClass, default_classifier
from .client import DataPlaneClient
from .commit import CommitCoordinator
from .config import DataPlaneConfig
from .coordinator import CommitResult, CyclePhase, TransactionCoordinator
from .correlation import correlation_scope, get_correlation_id, set_correlation_id
from .exceptions import (
    APIError,
    HAProxyTxnError,
    MutationFailedError,
    ParseError,
    RetryExhaustedError,
    TransactionFailedError,
    TransportError,
    UnexpectedStatusError,
)
from .factory import TransactionFactory
from .instrumentation import (
    HookRegistry,
    InstrumentationHook,
    RequestAttributes,
    get_hook_registry,
    set_hook_registry,
)
from .locking import ConcurrencySerializer
from .models import Transaction, TransactionState
from .mutation import MutationFunction, MutationOutcome, outcome_from_response
from .retry import RetryPolicy
from .rollback import RollbackAgent
from .sanitization import ResponseSanitizer, safe_error_message, sanitize_body
from .unit_of_work import DataPlaneUnitOfWork
from .version import VersionOracle

__version__ = "0.1.0"

__all__ = [
    # Errors
    "APIError",
    "HAProxyTxnError",
    "MutationFailedError",
    "ParseError",
    "RetryExhaustedError",
    "TransactionFailedError",
    "TransportError",
    "UnexpectedStatusError",
    # Classification
    "ErrorClassifier",
    "RetryClass",
    "default_classifier",
    # Components
    "CommitCoordinator",
    "ConcurrencySerializer",
    "RollbackAgent",
    "TransactionFactory",
    "VersionOracle",
    # Coordinator
    "CommitResult",
    "CyclePhase",
    "DataPlaneUnitOfWork",
    "MutationFunction",
    "MutationOutcome",
    "Transaction",
    "TransactionCoordinator",
    "TransactionState",
    "outcome_from_response",
    # Transport & config
    "DataPlaneClient",
    "DataPlaneConfig",
    "RetryPolicy",
    # Ambient
    "HookRegistry",
    "InstrumentationHook",
    "RequestAttributes",
    "ResponseSanitizer",
    "correlation_scope",
    "get_correlation_id",
    "get_hook_registry",
    "safe_error_message",
    "sanitize_body",
    "set_correlation_id",
    "set_hook_registry",
]
