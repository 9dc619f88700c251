"""Domain exceptions.

Services raise these; the API layer turns them into ``{"error": message}``
responses with the matching status code.
"""


class StoreError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(StoreError):
    status_code = 400


class NotFoundError(StoreError):
    status_code = 404


class ConflictError(StoreError):
    """Uniqueness clash. Most admin endpoints answer 400; bundles use 409."""

    status_code = 400


class InsufficientStockError(StoreError):
    status_code = 400


class AuthenticationError(StoreError):
    status_code = 401


class PermissionDenied(StoreError):
    status_code = 403


class ServiceUnavailable(StoreError):
    """An integration (Stripe, store settings) is not configured."""

    status_code = 500
