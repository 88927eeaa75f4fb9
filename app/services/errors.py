"""Exceptions raised by the service layer.

Route handlers translate them into HTTP responses using ``status_code``.
"""


class ServiceError(Exception):
    """Base class for domain errors reported back to the caller."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Input failed validation."""

    status_code = 400


class NotFoundError(ServiceError):
    """The requested record does not exist (or belongs to someone else)."""

    status_code = 404


class ConflictError(ServiceError):
    """The operation would duplicate an existing record."""

    status_code = 409
