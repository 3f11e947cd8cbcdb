"""Application exceptions.

Each subclass fixes its HTTP status; ``app_exception_handler`` renders the
class name as the ``error`` field.
"""


class AppException(Exception):
    """Base application exception."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        """Initialize with a message, falling back to the class default."""
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class BadRequestException(AppException):
    status_code = 400
    default_message = "Bad request"


class UnauthorizedException(AppException):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenException(AppException):
    status_code = 403
    default_message = "Forbidden"


class NotFoundException(AppException):
    status_code = 404
    default_message = "Resource not found"


class ConflictException(AppException):
    """Slot already taken, or any other write that collides with stored data."""

    status_code = 409
    default_message = "Conflict"


class ValidationException(AppException):
    """Semantic rule broken, e.g. a disallowed status transition."""

    status_code = 422
    default_message = "Validation error"


class RateLimitException(AppException):
    status_code = 429
    default_message = "Rate limit exceeded"


class DependencyException(AppException):
    """Downstream collaborator (email transport) failed."""

    status_code = 502
    default_message = "Upstream service unavailable"
