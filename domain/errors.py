from typing import Any, Dict, List, Optional


class ApiError(Exception):
    """Base for errors that map onto a ``{"message": ...}`` response."""

    status_code = 500
    message = "Internal server error"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidId(ApiError):
    status_code = 400
    message = "Failed to fetch - invalid ID format"


class InvalidQuery(ApiError):
    status_code = 400
    message = "Failed to fetch - invalid query"


class NotAuthenticated(ApiError):
    status_code = 401
    message = "Could not validate credentials"
    headers = {"WWW-Authenticate": "Bearer"}


class NotFound(ApiError):
    status_code = 404
    message = "Failed to fetch - no resource with that ID"


class Conflict(ApiError):
    status_code = 409
    message = "Resource already exists"


class PartialUpdateFailure(ApiError):
    status_code = 500
    message = "Error updating database"


class ValidationFailed(Exception):
    """Field-level errors. Rendered with status 200 and an ``errors`` array."""

    status_code = 200

    def __init__(self, errors: List[Dict[str, Any]]):
        self.errors = errors
        super().__init__(f"{len(errors)} field(s) failed validation")
