"""Service-level error taxonomy.

Every failure that leaves a service method is one of these. The HTTP layer
maps ``kind`` to a status code; nothing below the service boundary raises
HTTP exceptions.
"""


class ServiceError(Exception):
    """Base error carrying a kind tag and a user-safe message."""

    kind = "internal_error"
    default_message = "Internal error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AlreadyExists(ServiceError):
    kind = "already_exists"
    default_message = "Resource already exists"


class NotFound(ServiceError):
    kind = "not_found"
    default_message = "Resource not found"


class Unauthorized(ServiceError):
    kind = "unauthorized"
    default_message = "Unauthorized"


class InvalidCredentials(Unauthorized):
    """Signin failure. Never says which factor failed."""

    default_message = "Invalid credentials"


class AccountDeactivated(Unauthorized):
    default_message = "Account is deactivated. Contact support for reactivation."


class InvalidToken(Unauthorized):
    """Bad signature, expired or malformed token: one kind on purpose."""

    default_message = "Invalid or expired token"


class PreconditionFailed(ServiceError):
    kind = "precondition_failed"
    default_message = "Operation not allowed in the current state"


class RateLimited(ServiceError):
    kind = "rate_limited"
    default_message = "Too many requests, please wait and retry"


class DependencyUnavailable(ServiceError):
    kind = "dependency_unavailable"
    default_message = "A required service is temporarily unavailable"


class Forbidden(ServiceError):
    kind = "forbidden"
    default_message = "Insufficient permissions"
