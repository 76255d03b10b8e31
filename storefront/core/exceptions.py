"""Custom exceptions for the storefront."""
from __future__ import annotations


class StorefrontException(Exception):
    """Base exception for all storefront errors."""

    def __init__(self, message: str, *args: object) -> None:
        super().__init__(message, *args)
        self.message = message


class DataStoreError(StorefrontException):
    """Data store operation failed."""

    def __init__(self, message: str, *, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class TransportError(DataStoreError):
    """Remote store unreachable or returned a server-side failure."""

    pass


class ConstraintViolation(DataStoreError):
    """Insert/update rejected by a uniqueness or integrity constraint."""

    pass


class ValidationException(StorefrontException):
    """Input validation errors."""

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or {}


class AuthenticationRequired(StorefrontException):
    """Operation needs an authenticated identity."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class PartialCommitError(StorefrontException):
    """Checkout left rows behind that could not be compensated."""

    def __init__(self, order_id: str | None, message: str | None = None) -> None:
        super().__init__(message or f"Order {order_id} was only partially written")
        self.order_id = order_id


class ConfigurationException(StorefrontException):
    """Configuration errors."""

    pass
