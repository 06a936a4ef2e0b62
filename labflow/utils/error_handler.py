"""
Error types and structured error responses
"""

import uuid
import logging
from typing import Optional
from datetime import datetime, timezone
from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorContext:
    """Context object for tracking error information across the request lifecycle"""

    def __init__(self, request: Request):
        self.request_id = str(uuid.uuid4())
        self.request = request
        self.endpoint = str(request.url.path)
        self.method = request.method
        self.client_ip = self._get_client_ip()
        self.user_agent = request.headers.get("user-agent")
        self.timestamp = datetime.now(timezone.utc)

    def _get_client_ip(self) -> Optional[str]:
        """Extract client IP from request headers"""
        if "x-forwarded-for" in self.request.headers:
            return self.request.headers["x-forwarded-for"].split(",")[0].strip()
        elif "x-real-ip" in self.request.headers:
            return self.request.headers["x-real-ip"]
        elif self.request.client:
            return self.request.client.host
        return None


class DatabaseError(Exception):
    """Raised when a database read or write fails"""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class StorageError(Exception):
    """Raised when an order file cannot be stored or read"""
    def __init__(self, message: str, error_code: str = "STORAGE_ERROR", original_error: Optional[Exception] = None):
        self.message = message
        self.error_code = error_code
        self.original_error = original_error
        super().__init__(self.message)


# StorageError codes caused by the request rather than the server
STORAGE_ERROR_STATUS = {
    "INVALID_PATH": 400,
    "INVALID_SIGNATURE": 403,
}


class ErrorHandler:
    """Centralized error response builder"""

    @staticmethod
    def create_error_response(
        error_context: ErrorContext,
        error: Exception,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None
    ) -> JSONResponse:
        """Create a standardized error response and log it with the request context"""
        status_code = status_code or ErrorHandler._get_status_code(error)

        error_data = {
            "error": {
                "code": error_code or ErrorHandler._get_error_code(error),
                "message": ErrorHandler._get_user_friendly_message(error),
                "error_id": error_context.request_id,
                "timestamp": error_context.timestamp.isoformat(),
                "endpoint": error_context.endpoint,
                "method": error_context.method
            }
        }

        ErrorHandler._log_error(error_context, error, status_code)

        return JSONResponse(
            status_code=status_code,
            content=error_data
        )

    @staticmethod
    def _get_status_code(error: Exception) -> int:
        if isinstance(error, StorageError):
            return STORAGE_ERROR_STATUS.get(error.error_code, 500)
        return 500

    @staticmethod
    def _get_error_code(error: Exception) -> str:
        if isinstance(error, DatabaseError):
            return "DATABASE_ERROR"
        elif isinstance(error, StorageError):
            return error.error_code
        return "INTERNAL_ERROR"

    @staticmethod
    def _get_user_friendly_message(error: Exception) -> str:
        if isinstance(error, DatabaseError):
            return "A database error occurred. Please try again later."
        elif isinstance(error, StorageError):
            return error.message
        return "An unexpected error occurred. Please try again later."

    @staticmethod
    def _log_error(error_context: ErrorContext, error: Exception, status_code: int):
        """Log error with request context; server-side failures include the traceback"""
        message = f"Error {error_context.request_id}: {type(error).__name__} in {error_context.method} {error_context.endpoint}"
        extra = {
            "request_id": error_context.request_id,
            "endpoint": error_context.endpoint,
            "method": error_context.method,
            "status_code": status_code,
            "client_ip": error_context.client_ip,
            "user_agent": error_context.user_agent,
            "error_type": type(error).__name__,
            "error_message": str(error),
        }
        if status_code >= 500:
            logger.error(message, extra=extra, exc_info=error)
        else:
            logger.warning(message, extra=extra)
