"""Exception classes for postcheck.

This module defines the error taxonomy used throughout the harness:
configuration errors that abort a scenario before any request is made,
infrastructure errors raised by the transport, and contract violations
produced by the assertion evaluator.
"""

from typing import Optional, Dict, Any


class PostCheckError(Exception):
    """Base exception class for all postcheck errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PostCheckError):
    """Exception raised for malformed scenarios, steps or profiles."""
    pass


class InfrastructureError(PostCheckError):
    """Exception raised when a request fails below the HTTP layer."""

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        url: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            method: HTTP method of the failed request
            url: URL of the failed request
            **kwargs: Additional arguments passed to parent class
        """
        super().__init__(message, **kwargs)
        self.method = method
        self.url = url


class RequestTimeoutError(InfrastructureError):
    """Exception raised when a request exceeds its timeout."""

    def __init__(
        self,
        message: str,
        timeout: Optional[float] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)
        self.timeout = timeout


class ConnectionFailedError(InfrastructureError):
    """Exception raised when the server cannot be reached."""
    pass


class MaxRetriesExceededError(PostCheckError):
    """Exception raised when maximum retry attempts are exceeded."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_exception: Optional[Exception] = None
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            attempts: Number of attempts made
            last_exception: The last exception that caused the failure
        """
        if last_exception is not None:
            message = f"{message}: {type(last_exception).__name__}: {last_exception}"
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


class ContractViolation(PostCheckError):
    """Base class for a response that does not satisfy an expectation.

    Violations are collected by the assertion evaluator rather than raised,
    so a single response can report several of them.
    """

    kind = "contract_violation"

    def __init__(
        self,
        message: str,
        expected: Any = None,
        actual: Any = None,
        path: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """Initialize the violation.

        Args:
            message: Human-readable description of the failed expectation
            expected: Value the expectation required
            actual: Value observed in the response
            path: Body path or header name the expectation inspected
            **kwargs: Additional arguments passed to parent class
        """
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual
        self.path = path

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the violation for reports."""
        return {
            "kind": self.kind,
            "message": self.message,
            "path": self.path,
            "expected": self.expected,
            "actual": self.actual,
        }


class StatusMismatch(ContractViolation):
    """Response status code differs from the expected one."""
    kind = "status_mismatch"


class HeaderMismatch(ContractViolation):
    """Header is absent or does not contain the expected substring."""
    kind = "header_mismatch"


class FieldMismatch(ContractViolation):
    """Body field is absent or not equal to the expected value."""
    kind = "field_mismatch"


class MissingField(ContractViolation):
    """Body field required to be present is absent."""
    kind = "missing_field"


class MembershipMismatch(ContractViolation):
    """Value is absent from a projected collection."""
    kind = "membership_mismatch"


class OrderingMismatch(ContractViolation):
    """Sequence element does not match its positional expectation."""
    kind = "ordering_mismatch"


def format_error_for_user(error: Exception, debug: bool = False) -> str:
    """Format an error message for user display.

    Args:
        error: The exception to format
        debug: Whether to include debug information

    Returns:
        Formatted error message
    """
    if isinstance(error, ContractViolation):
        message = f"Contract violation: {error.message}"
        message += f"\nExpected: {error.expected!r}\nActual: {error.actual!r}"
        return message

    if isinstance(error, RequestTimeoutError):
        message = f"Request timeout: {error.message}"
        if error.timeout:
            message += f"\nTimeout duration: {error.timeout}s"
        return message

    if isinstance(error, InfrastructureError):
        message = f"Infrastructure error: {error.message}"
        if error.method and error.url:
            message += f"\nRequest: {error.method} {error.url}"
        return message

    if isinstance(error, ConfigurationError):
        message = f"Configuration error: {error.message}"
        if error.details and debug:
            message += f"\nDetails: {error.details}"
        return message

    if debug:
        return f"Error: {str(error)}\nType: {type(error).__name__}"
    return f"Error: {str(error)}"
