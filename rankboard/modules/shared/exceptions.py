"""
Domain exceptions for Rankboard.

Purpose
-------
Define the structured, domain-specific exception hierarchy for ranking logic.
These exceptions are raised by services for caller mistakes and for queries
whose preconditions do not hold. The service facade translates them into
transport status codes.

Design Notes
------------
- All domain exceptions inherit from `RankboardDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
  - `kind`: the `ErrorKind` reported to the facade
- Backend failures are infrastructure concerns and live in
  `rankboard.core.exceptions.BackendFailureError`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from rankboard.core.exceptions import ErrorKind, ErrorSeverity


class RankboardDomainException(Exception):
    """
    Base exception for all Rankboard domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False
    KIND: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    @property
    def kind(self) -> ErrorKind:
        return self.KIND

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class InvalidInputError(RankboardDomainException):
    """
    Raised when caller input fails domain validation.

    Covers empty identifiers, negative or non-finite scores, zero deltas and
    empty group tags on calls that require one.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False
    KIND = ErrorKind.INVALID_INPUT

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        error_message = f"Invalid input for {field}: {message}"
        super().__init__(
            error_message,
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"INVALID_{field.upper()}",
        )


class NotFoundError(RankboardDomainException):
    """
    Raised when an operation requires an existing identity and none exists.

    Args:
        resource_type: Type of resource (e.g., "Identity")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False
    KIND = ErrorKind.NOT_FOUND

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": identifier,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class EmptyScopeError(RankboardDomainException):
    """
    Raised when a top-K query targets a scope with zero members.

    Args:
        scope: "global" or the group tag that was queried
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False
    KIND = ErrorKind.EMPTY_SCOPE

    def __init__(self, scope: str) -> None:
        self.scope = scope
        if scope == "global":
            message = "No identities in global leaderboard"
        else:
            message = f"No identities in group {scope}"
        super().__init__(
            message,
            details={"scope": scope},
            error_code="EMPTY_SCOPE",
        )


__all__ = [
    "RankboardDomainException",
    "InvalidInputError",
    "NotFoundError",
    "EmptyScopeError",
]
