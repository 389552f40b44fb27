"""
Domain exceptions and exception handlers with request ID support
Standardized error response format: { code, message, details?, request_id }
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import traceback
from typing import Optional, Dict, Any

from .logging_config import get_request_id

logger = logging.getLogger(__name__)


# ============================================================================
# Domain exceptions
# ============================================================================

class ReminderError(Exception):
    """Base class for reminder pipeline errors"""
    code = "REMINDER_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class PermanentDeliveryError(ReminderError):
    """Delivery can never succeed for this job; retrying has no value"""
    code = "PERMANENT_DELIVERY_ERROR"


class ReminderNotFoundError(PermanentDeliveryError):
    """Reminder id does not exist (deleted or invalid)"""
    code = "REMINDER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    
    def __init__(self, reminder_id):
        self.reminder_id = reminder_id
        super().__init__(f"Reminder not found: {reminder_id}")


class UnsupportedChannelError(PermanentDeliveryError):
    """Reminder channel has no dispatcher"""
    code = "UNSUPPORTED_CHANNEL"
    status_code = status.HTTP_400_BAD_REQUEST
    
    def __init__(self, channel):
        self.channel = channel
        super().__init__(f"Unsupported channel: {channel}")


class EmailDeliveryError(ReminderError):
    """Email provider failed to hand off the message"""
    code = "EMAIL_DELIVERY_FAILED"
    status_code = status.HTTP_502_BAD_GATEWAY


class ContractNotFoundError(ReminderError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    
    def __init__(self, contract_id):
        self.contract_id = contract_id
        super().__init__("Contract not found")


class ContractAccessDeniedError(ReminderError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN
    
    def __init__(self, contract_id):
        self.contract_id = contract_id
        super().__init__("Forbidden")


class QueueUnavailableError(ReminderError):
    """Queue backend rejected or could not accept the job"""
    code = "SERVICE_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


# ============================================================================
# Response format
# ============================================================================

class ErrorResponse:
    """
    Standard error response format
    
    Schema: { code, message, details?, request_id }
    """
    
    @staticmethod
    def create(
        message: str,
        code: str,
        status_code: int,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        use_legacy_format: bool = False
    ) -> dict:
        """
        Create standardized error response
        
        Args:
            message: Human-readable error message
            code: Error code (e.g., "VALIDATION_ERROR", "NOT_FOUND")
            status_code: HTTP status code
            request_id: Request ID from context (auto-fetched if None)
            details: Optional additional error details
            use_legacy_format: If True, use the { success, detail } shape of /api routes
        
        Returns:
            Dictionary with error details
        """
        if request_id is None:
            request_id = get_request_id()
        
        if use_legacy_format:
            response = {
                "success": False,
                "detail": message,
                "status_code": status_code,
            }
            if request_id:
                response["request_id"] = request_id
            if code:
                response["error_code"] = code
            if details:
                response.update(details)
        else:
            response = {
                "code": code,
                "message": message,
                "status_code": status_code,
            }
            
            if request_id:
                response["request_id"] = request_id
            
            if details:
                response["details"] = details
        
        return response


def _use_legacy_format(request: Request) -> bool:
    return request.url.path.startswith("/api/")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with request ID"""
    request_id = get_request_id()
    
    error_code_map = {
        400: "BAD_REQUEST",
        401: "AUTH_ERROR",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_ERROR",
        503: "SERVICE_UNAVAILABLE"
    }
    error_code = error_code_map.get(exc.status_code, "HTTP_ERROR")
    
    detail = exc.detail
    error_message = str(detail) if detail else f"HTTP {exc.status_code} error"
    error_details = None
    
    if isinstance(detail, dict):
        error_message = detail.get("message", str(detail))
        error_code = detail.get("error", error_code)
        error_details = {k: v for k, v in detail.items() if k not in ["error", "message", "code"]}
    
    error_response = ErrorResponse.create(
        message=error_message,
        code=error_code,
        status_code=exc.status_code,
        request_id=request_id,
        details=error_details,
        use_legacy_format=_use_legacy_format(request)
    )
    
    logger.warning(
        f"HTTP {exc.status_code}: {detail}",
        extra={"path": request.url.path}
    )
    
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response,
        headers=getattr(exc, "headers", None)
    )


async def reminder_exception_handler(request: Request, exc: ReminderError) -> JSONResponse:
    """Handle domain errors raised by the reminder services"""
    error_response = ErrorResponse.create(
        message=str(exc),
        code=exc.code,
        status_code=exc.status_code,
        use_legacy_format=_use_legacy_format(request)
    )
    
    logger.warning(
        f"{type(exc).__name__}: {exc}",
        extra={"path": request.url.path}
    )
    
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation exceptions with request ID"""
    errors = exc.errors()
    error_messages = [f"{err['loc']}: {err['msg']}" for err in errors]
    detail = "; ".join(error_messages)
    
    error_response = ErrorResponse.create(
        message=f"Validation error: {detail}",
        code="VALIDATION_ERROR",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in errors]},
        use_legacy_format=_use_legacy_format(request)
    )
    
    logger.warning(
        f"Validation error: {detail}",
        extra={"path": request.url.path}
    )
    
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions with request ID"""
    # Don't expose internal error details in production
    from .config import config
    error_message = "Internal server error"
    error_details = None
    
    if config.exposes_error_details:
        error_message = f"Internal server error: {str(exc)}"
        error_details = {
            "exception_type": type(exc).__name__,
            "stack": traceback.format_exception(type(exc), exc, exc.__traceback__),
        }
    
    error_response = ErrorResponse.create(
        message=error_message,
        code="INTERNAL_ERROR",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        details=error_details,
        use_legacy_format=_use_legacy_format(request)
    )
    
    logger.error(
        f"Unhandled exception: {str(exc)}",
        exc_info=True,
        extra={"path": request.url.path}
    )
    
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response
    )
