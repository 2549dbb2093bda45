"""Service-layer exceptions.

Services raise these; routes turn them into JSON through
api_helpers.safe_error_response().
"""


class ServiceError(Exception):
    """Business rule violation with an HTTP status attached."""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class ForbiddenError(ServiceError):
    status_code = 403


class TransitionError(ServiceError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, current, requested, allowed=None):
        allowed = list(allowed or [])
        if allowed:
            message = (f"Cannot change status from '{current}' to '{requested}'. "
                       f"Allowed: {', '.join(allowed)}")
        else:
            message = f"Cannot change status from '{current}': it is final"
        super().__init__(message)
        self.current = current
        self.requested = requested
        self.allowed = allowed


class ValidationError(ServiceError):
    """Field-level validation failure. `errors` is a list of {field, message}."""

    def __init__(self, errors, message='Validation failed'):
        super().__init__(message)
        self.errors = errors
