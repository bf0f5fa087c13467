class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors

    def to_dict(self):
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class BadRequestError(ApiError):
    status_code = 400
    default_message = "Bad request"


class ValidationError(BadRequestError):
    default_message = "Validation failed"


class MissingFieldsError(ValidationError):
    def __init__(self, fields, message=None):
        super().__init__(
            message or f"Missing required fields: {', '.join(fields)}", errors=fields
        )
        self.fields = fields


class UnauthorizedError(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(ApiError):
    status_code = 403
    default_message = "Access denied. Insufficient permissions."


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Resource already exists"


class RegistrationExistsError(ConflictError):
    default_message = "You are already registered for this event"


class ClosedError(ApiError):
    status_code = 400
    default_message = "Action not allowed in the current state"


class RegistrationClosedError(ClosedError):
    default_message = "Registration is closed for this event"
