"""Domain-specific exceptions for Retail Core.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from RetailAPIError for easy catching.
"""

from __future__ import annotations

from typing import Any


class RetailAPIError(Exception):
    """Base exception for all Retail Core errors.

    Users can catch this exception to handle any error raised by the
    package, whether it comes from configuration, the data store or a
    business operation.
    """

    pass


class ConfigError(RetailAPIError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - The data store URL is missing or malformed
    - Timeout or retry settings cannot be parsed
    """

    pass


class DataQualityError(RetailAPIError):
    """Raised when report input data is unusable.

    This exception is raised when:
    - Required columns are missing from an input DataFrame
    - A record kind is unknown
    """

    pass


class ValidationError(RetailAPIError):
    """Raised when a business operation is rejected before submission.

    Attributes:
        errors: List of human-readable messages, one per failed rule.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class StoreError(RetailAPIError):
    """Raised when the external data store fails a request.

    This exception is raised when:
    - The HTTP connection fails or times out
    - The store answers with a non-2xx status

    Attributes:
        status_code: HTTP status, or None for connection failures.
        details: Parsed error body returned by the store, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ProcedureError(StoreError):
    """Raised when a stored procedure rejects a business operation.

    The procedure answered successfully at the transport level but its
    response payload carried ``status: "error"``. The message is the one
    provided by the server.
    """

    pass
