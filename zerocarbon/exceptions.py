"""ZeroCarbon Custom Exception Hierarchy.

This module provides the exception hierarchy for the ZeroCarbon emission
summary engine with rich error context for debugging, monitoring, and user
feedback.

Exception Hierarchy:
    ZeroCarbonException (base)
    ├── ConfigurationError
    ├── AllocationException
    │   └── AllocationValidationError
    └── DataException
        ├── InvalidPeriodError
        ├── MalformedEntryError
        └── DataAccessError

All exceptions include rich context:
- error_code: Unique error identifier
- context: Dictionary with error-specific details
- timestamp: When the error occurred

Note that ``EmissionAggregationEngine.compute_summary`` never lets any of
these escape; they surface there as ``metadata.errors`` strings. They are
raised directly by the lower level helpers (period resolution, store
loaders, strict allocation gating) and by the CLI.

Example:
    >>> from zerocarbon.exceptions import InvalidPeriodError
    >>> raise InvalidPeriodError(
    ...     message="Monthly period requires a month",
    ...     period_type="monthly",
    ...     context={"year": 2024},
    ... )

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class ZeroCarbonException(Exception):
    """Base exception for all ZeroCarbon errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "ZC_DATA_INVALID_PERIOD_ERROR")
        context: Dictionary with error-specific details
        timestamp: When the error occurred
    """

    ERROR_PREFIX = "ZC"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize ZeroCarbon exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.timestamp = datetime.now()

    def _generate_error_code(self) -> str:
        """Generate error code based on exception class.

        Returns:
            Error code like "ZC_DATA_MALFORMED_ENTRY_ERROR"
        """
        class_name = self.__class__.__name__
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', class_name).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary with all error details
        """
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


class ConfigurationError(ZeroCarbonException):
    """Engine configuration is invalid.

    Example:
        >>> raise ConfigurationError(
        ...     message="rounding_decimals must be between 0 and 8",
        ...     config_key="rounding_decimals",
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        config_key: Optional[str] = None,
    ):
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        super().__init__(message, context=context)


# ==============================================================================
# Allocation Exceptions
# ==============================================================================

class AllocationException(ZeroCarbonException):
    """Base exception for allocation-related errors."""
    ERROR_PREFIX = "ZC_ALLOCATION"


class AllocationValidationError(AllocationException):
    """Allocation percentages of shared scope identifiers do not conserve 100%.

    Raised only where a caller asked for hard gating (strict mode, the
    ``verify-allocations`` CLI); the aggregation engine itself converts it
    into an error-shaped summary.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        context = context or {}
        if errors:
            context["errors"] = errors
            context["scope_identifiers"] = [e.get("scope_identifier") for e in errors]
        super().__init__(message, context=context)


# ==============================================================================
# Data Exceptions
# ==============================================================================

class DataException(ZeroCarbonException):
    """Base exception for data-related errors."""
    ERROR_PREFIX = "ZC_DATA"


class InvalidPeriodError(DataException):
    """Period descriptor cannot be resolved to a date interval."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        period_type: Optional[str] = None,
    ):
        context = context or {}
        if period_type:
            context["period_type"] = period_type
        super().__init__(message, context=context)


class MalformedEntryError(DataException):
    """A raw emission entry or hierarchy document is malformed.

    Example:
        >>> raise MalformedEntryError(
        ...     message="Entry is missing a timestamp",
        ...     entry_id="6651f0c2",
        ...     missing_fields=["timestamp"],
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        entry_id: Optional[str] = None,
        missing_fields: Optional[list] = None,
    ):
        context = context or {}
        if entry_id:
            context["entry_id"] = entry_id
        if missing_fields:
            context["missing_fields"] = missing_fields
        super().__init__(message, context=context)


class DataAccessError(DataException):
    """A collaborator store could not be read."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        data_source: Optional[str] = None,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        context = context or {}
        if data_source:
            context["data_source"] = data_source
        if operation:
            context["operation"] = operation
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, context=context)


# ==============================================================================
# Exception Utilities
# ==============================================================================

def format_exception_chain(exc: Exception) -> str:
    """Format exception chain for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with full exception chain
    """
    lines = []
    current = exc

    while current is not None:
        if isinstance(current, ZeroCarbonException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")

        current = getattr(current, "__cause__", None)

    return "\n".join(lines)


def is_retriable(exc: Exception) -> bool:
    """Check if exception is retriable.

    Store access failures are transient; bad data and bad configuration
    are not.

    Args:
        exc: Exception to check

    Returns:
        True if operation should be retried
    """
    if isinstance(exc, DataAccessError):
        return True
    return False


__all__ = [
    "ZeroCarbonException",
    "ConfigurationError",
    "AllocationException",
    "AllocationValidationError",
    "DataException",
    "InvalidPeriodError",
    "MalformedEntryError",
    "DataAccessError",
    "format_exception_chain",
    "is_retriable",
]
