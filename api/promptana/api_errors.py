"""
API Errors - Standardized error type raised by service modules
"""

from typing import Any, Dict, Optional, Tuple

from promptana.config.search_config import SEARCH_FAILED_MESSAGE

BAD_REQUEST = "BAD_REQUEST"
INTERNAL_ERROR = "INTERNAL_ERROR"


class ApiError(Exception):
    """
    Error carrying an HTTP status and a machine-readable code.
    The HTTP layer converts it into an error response with to_response().
    """

    def __init__(self, status: int, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status = status
        self.code = code
        self.message = message
        self.details = details

    def to_response(self) -> Tuple[Dict[str, Any], int]:
        """Return (body, status) for an error response"""
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"error": error}, self.status

    def __repr__(self):
        return f"ApiError(status={self.status}, code={self.code!r}, message={self.message!r})"


def internal_error(message: str = SEARCH_FAILED_MESSAGE) -> ApiError:
    """The single failure kind raised when persistence fails"""
    return ApiError(500, INTERNAL_ERROR, message)


def bad_request(message: str, field_errors: Dict[str, list]) -> ApiError:
    return ApiError(400, BAD_REQUEST, message, {"fieldErrors": field_errors})
