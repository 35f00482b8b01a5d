"""
Infrastructure exceptions for Rankboard.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
ranking backend failures, configuration errors, and other engineering-level
issues that require technical attention rather than caller correction.

Design Notes
------------
- All infrastructure exceptions inherit from `RankboardInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried by the caller
  - `error_code`: short, stable identifier for programmatic use
  - `kind`: the `ErrorKind` the service facade maps onto a status signal
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.
- The core never retries on its own; `is_retryable` is a hint for callers.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Log level a handler should use; ERROR and CRITICAL alert."""

    DEBUG = "debug"
    INFO = "info"  # caller mistakes, unranked identities
    WARNING = "warning"
    ERROR = "error"  # backend failures
    CRITICAL = "critical"  # bad configuration


class ErrorKind(Enum):
    """Error taxonomy reported by every ranking operation."""

    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    EMPTY_SCOPE = "EmptyScope"
    BACKEND_FAILURE = "BackendFailure"


class RankboardInfrastructureException(Exception):
    """
    Root of the infrastructure errors; subclasses set the class defaults.

    Args:
        message: Text shown in logs and API error bodies
        details: Structured context merged into log records
        severity: Overrides `DEFAULT_SEVERITY`
        is_retryable: Overrides `DEFAULT_RETRYABLE`
        error_code: Stable code; the class name when omitted
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False
    KIND: ErrorKind = ErrorKind.BACKEND_FAILURE

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.severity = severity if severity is not None else self.DEFAULT_SEVERITY
        self.is_retryable = self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or type(self).__name__

    @property
    def kind(self) -> ErrorKind:
        return self.KIND

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        text = f"[{self.error_code}] {self.message}"
        return f"{text} | Details: {self.details}" if self.details else text

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.error_code!r}, kind={self.kind.value!r})"


class ConfigurationError(RankboardInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        error_message = f"Configuration error for {config_key}: {message}"
        super().__init__(
            error_message,
            details={
                "config_key": config_key,
                "message": message,
            },
            error_code="CONFIG_ERROR",
        )


class BackendFailureError(RankboardInfrastructureException):
    """
    Raised when the ranking backend cannot execute a batch or a read.

    A failed batch leaves no consistency guarantee for the namespace until a
    corrective write succeeds. The core performs no repair and no retry.

    Args:
        operation: Logical ranking operation that failed (e.g. "add_identity")
        original_error: The underlying backend exception
        namespace: Leaderboard namespace the operation targeted
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True
    KIND = ErrorKind.BACKEND_FAILURE

    def __init__(
        self,
        operation: str,
        original_error: Exception,
        namespace: Optional[str] = None,
    ) -> None:
        self.operation = operation
        self.original_error = original_error
        self.namespace = namespace
        message = f"Ranking backend failed during {operation}: {original_error}"
        super().__init__(
            message,
            details={
                "operation": operation,
                "namespace": namespace,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="BACKEND_FAILURE",
        )


def is_transient_error(exc: Exception) -> bool:
    """True when the caller may retry `exc`; the core itself never does."""
    return isinstance(exc, RankboardInfrastructureException) and exc.is_retryable


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity carried by a Rankboard exception, ERROR for anything else."""
    severity = getattr(exc, "severity", None)
    return severity if isinstance(severity, ErrorSeverity) else ErrorSeverity.ERROR


_ALERT_SEVERITIES = frozenset({ErrorSeverity.ERROR, ErrorSeverity.CRITICAL})


def should_alert(exc: Exception) -> bool:
    return get_error_severity(exc) in _ALERT_SEVERITIES


__all__ = [
    "ErrorSeverity",
    "ErrorKind",
    "RankboardInfrastructureException",
    "ConfigurationError",
    "BackendFailureError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
]
