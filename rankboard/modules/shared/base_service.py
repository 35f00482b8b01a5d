"""
Base Service Foundation

Purpose
-------
Provides the foundational class for Rankboard domain services. Services
implement ranking logic, enforce input rules and raise domain exceptions.

Design Notes
------------
This base class provides structured logging with operation context.
Settings reach a service through its constructor, not through this class.

What this class does NOT do:
- Talk to Redis directly (that's the ranking backend's job)
- Retry failed operations

Usage
-----
    class RankingCoordinator(BaseService):
        def __init__(self, backend, settings, logger):
            super().__init__(logger)
            self._backend = backend
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from logging import Logger


class BaseService:
    """
    Base class for all domain services.

    Args:
        logger: Structured logger instance
    """

    def __init__(self, logger: Logger) -> None:
        self.log = logger

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log a service operation with structured context.

        Args:
            operation: Name of the operation being performed
            **context: Additional context data
        """
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        **context: Any,
    ) -> None:
        """
        Log a service error with full context.

        Args:
            operation: Name of the operation that failed
            error: The exception that occurred
            **context: Additional context data
        """
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )
