"""Domain error taxonomy.

Every error carries the machine-readable ``code`` and HTTP status used by the
exception handler in ``app.main`` to render the standard error envelope.
"""

from fastapi import status


class ProfileError(Exception):
    """Base class for errors surfaced to API clients."""

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict[str, str]:
        body = {"code": self.code, "message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(ProfileError):
    """A required input is missing or malformed."""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class AuthorizationError(ProfileError):
    """The acting principal does not own the target profile."""

    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class UnauthenticatedError(AuthorizationError):
    """No principal is signed in."""

    code = "UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(ProfileError):
    """A referenced profile, section or field no longer exists."""

    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class StoreError(ProfileError):
    """An underlying read or write failed."""

    code = "STORE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConflictError(ProfileError):
    """The request clashes with the current state of a resource."""

    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT
