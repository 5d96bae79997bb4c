"""Error kinds raised by the telemetry cache service."""


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


class StoreError(Exception):
    """Raised when the key-value store cannot be reached, read or written."""


class ApiError(Exception):
    """Base class for errors reported to the caller as a JSON response."""

    status_code = 500
    error = "Internal error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ApiError):
    """Malformed or out-of-range request payload."""

    status_code = 400
    error = "Invalid payload"


class AuthError(ApiError):
    """Missing or incorrect API token."""

    status_code = 401
    error = "Unauthorized"


class MethodError(ApiError):
    """HTTP verb not supported by the endpoint."""

    status_code = 405
    error = "Method not allowed"


class InternalError(ApiError):
    """Generic failure that hides the underlying cause from the caller."""

    status_code = 500
    error = "Internal error"
