"""
Error types and error response rendering for the order workflow
"""

import uuid
import traceback
import logging
from typing import Optional
from datetime import datetime
from fastapi import HTTPException, Request
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
        self.timestamp = datetime.utcnow()

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
    """Custom exception for database-related errors"""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)

class WorkflowError(Exception):
    """Base class for rejected order, home-visit and report operations"""
    status_code = 400
    error_code = "WORKFLOW_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class NotFound(WorkflowError):
    """Referenced order, home visit, report or agent does not exist"""
    status_code = 404
    error_code = "NOT_FOUND"

class InvalidTransition(WorkflowError):
    """Requested status edge is not in the adjacency table"""
    error_code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot move from {current} to {target}")

class Conflict(WorkflowError):
    """Another writer changed the record before this write landed"""
    status_code = 409
    error_code = "CONFLICT"

class AgentRequired(WorkflowError):
    error_code = "AGENT_REQUIRED"

class AlreadyAssigned(WorkflowError):
    status_code = 409
    error_code = "ALREADY_ASSIGNED"

class ReportAlreadyDelivered(WorkflowError):
    error_code = "REPORT_ALREADY_DELIVERED"

class UnknownTemplate(Exception):
    """No template is configured for a notification event (misconfiguration)"""
    def __init__(self, event):
        self.event = event
        super().__init__(f"No notification template configured for {event}")

class ErrorHandler:
    """Centralized error handling service"""

    @staticmethod
    def create_error_response(
        error_context: ErrorContext,
        error: Exception,
        status_code: int = 500,
        error_code: Optional[str] = None,
        include_details: bool = False
    ) -> JSONResponse:
        """Create a standardized error response"""

        error_data = {
            "error": {
                "code": error_code or ErrorHandler._get_error_code(error),
                "message": ErrorHandler._get_user_friendly_message(error),
                "request_id": error_context.request_id,
                "timestamp": error_context.timestamp.isoformat(),
                "endpoint": error_context.endpoint,
                "method": error_context.method
            }
        }

        # Include detailed error information in development
        if include_details:
            error_data["error"]["details"] = {
                "original_error": str(error),
                "error_type": type(error).__name__,
                "stack_trace": traceback.format_exc()
            }

        ErrorHandler._log_error(error_context, error, status_code)

        return JSONResponse(
            status_code=status_code,
            content=error_data
        )

    @staticmethod
    def _get_error_code(error: Exception) -> str:
        """Generate appropriate error codes based on exception type"""
        if isinstance(error, HTTPException):
            return f"HTTP_{error.status_code}"
        elif isinstance(error, WorkflowError):
            return error.error_code
        elif isinstance(error, DatabaseError):
            return "DATABASE_ERROR"
        elif isinstance(error, UnknownTemplate):
            return "CONFIGURATION_ERROR"
        elif isinstance(error, ValueError):
            return "VALIDATION_ERROR"
        else:
            return "INTERNAL_ERROR"

    @staticmethod
    def _get_user_friendly_message(error: Exception) -> str:
        """Generate user-friendly error messages"""
        if isinstance(error, HTTPException):
            return error.detail
        elif isinstance(error, WorkflowError):
            return error.message
        elif isinstance(error, DatabaseError):
            return "A database error occurred. Please try again later."
        elif isinstance(error, ValueError):
            return "Invalid input provided. Please check your data and try again."
        else:
            return "An unexpected error occurred. Please try again later."

    @staticmethod
    def _log_error(error_context: ErrorContext, error: Exception, status_code: int):
        """Log error with comprehensive context"""
        log = logger.warning if status_code < 500 else logger.error
        log(
            f"Error {error_context.request_id}: {type(error).__name__} in {error_context.method} {error_context.endpoint}",
            extra={
                "request_id": error_context.request_id,
                "endpoint": error_context.endpoint,
                "method": error_context.method,
                "status_code": status_code,
                "client_ip": error_context.client_ip,
                "user_agent": error_context.user_agent,
                "error_type": type(error).__name__,
                "error_message": str(error),
            }
        )

async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Exception handler turning rejected workflow operations into error envelopes"""
    return ErrorHandler.create_error_response(
        ErrorContext(request), exc, status_code=exc.status_code, error_code=exc.error_code
    )
