"""Domain errors raised by services; routers map them to HTTP status codes."""


class ServiceError(Exception):
    """Base class for expected, user-facing service failures."""

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ServiceError):
    """Referenced entity does not exist (or is outside the caller's company)."""

    status_code = 404


class PermissionDeniedError(ServiceError):
    """Caller's role or clearance does not allow the operation."""

    status_code = 403


class ConflictError(ServiceError):
    """Operation collides with current state (active task exists, terminal status)."""

    status_code = 409


class ValidationFailedError(ServiceError):
    status_code = 422
