"""
Error Handling Module for Ledgerline

This module provides centralized error handling with:
- Custom exception hierarchy carrying i18n message keys
- Standardized, localized error envelopes
- Error logging
- Database integrity error mapping
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.utils.i18n import language_from_request, t

# Configure logging
logger = logging.getLogger("ledgerline.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_AMOUNT = "INVALID_AMOUNT"

    # Authentication/Authorization Errors (401/403)
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Business Logic Errors (409)
    CANNOT_MODIFY = "CANNOT_MODIFY"
    CANNOT_DELETE = "CANNOT_DELETE"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class AppException(Exception):
    """
    Base exception for all application exceptions.

    ``message`` is a key of the message catalogue; ``details`` doubles as
    the placeholder values used when the key is rendered.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = datetime.utcnow()
        super().__init__(self.message)

    def to_dict(self, lang: str = "en") -> Dict[str, Any]:
        """Convert exception to the error envelope"""
        text = t(self.message, lang, **self.details)
        result: Dict[str, Any] = {
            "ok": False,
            "error": text,
            "message": text,
            "code": self.message,
            "error_code": self.code.value,
        }
        details = dict(self.details)
        if self.field:
            details["field"] = self.field
        if details:
            result["details"] = _jsonable(details)
        return result


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
            field=field,
        )


class InvalidDateRangeException(ValidationException):
    """Invalid date range"""

    def __init__(self, start_date: Any, end_date: Any):
        super().__init__(
            message="invalidRange",
            code=ErrorCode.INVALID_DATE_RANGE,
            details={"start_date": str(start_date), "end_date": str(end_date)},
        )


class InvalidAmountException(ValidationException):
    """Invalid monetary amount"""

    def __init__(self, message: str = "invalidAmount", field: str = "amount", amount: Any = None):
        super().__init__(
            message=message,
            field=field,
            code=ErrorCode.INVALID_AMOUNT,
            details={"provided_amount": str(amount)} if amount is not None else None,
        )


# ============================================================================
# Authorization Exceptions
# ============================================================================

class ForbiddenException(AppException):
    """Operation is not allowed on this resource"""

    def __init__(self, message: str = "forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ErrorCode.FORBIDDEN,
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: str = "notFound",
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={
                "resource": resource_type,
                "resource_id": str(resource_id) if resource_id else None,
            },
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


class DuplicateEntryException(ConflictException):
    """Duplicate entry exception"""

    def __init__(
        self,
        resource_type: str,
        field: str,
        value: str,
        message: str = "duplicateEntry",
    ):
        super().__init__(
            message=message,
            resource_type=resource_type,
            code=ErrorCode.DUPLICATE_ENTRY,
            details={"field": field, field: value},
        )


# ============================================================================
# Configuration Exceptions
# ============================================================================

class ConfigurationException(AppException):
    """Server-side configuration is incomplete"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ErrorCode.CONFIGURATION_ERROR,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


class MissingCodeMappingError(ConfigurationException):
    """No account code could be resolved for a treasury mapping"""

    def __init__(self, name: str):
        super().__init__(message="missingCodeMapping", details={"name": name})


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    request: Request,
    message_key: str,
    status_code: int,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    details: Optional[Dict[str, Any]] = None,
    exc: Optional[BaseException] = None,
) -> JSONResponse:
    """Create a standardized, localized error response"""
    lang = language_from_request(request)
    text = t(message_key, lang, **(details or {}))
    content: Dict[str, Any] = {
        "ok": False,
        "error": text,
        "message": text,
        "code": message_key,
        "error_code": code.value,
    }
    if details:
        content["details"] = _jsonable(details)
    if exc is not None and not settings.is_production:
        content["debug"] = str(exc)
    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )

    content = exc.to_dict(language_from_request(request))
    if exc.original_error is not None and not settings.is_production:
        content["debug"] = str(exc.original_error)
    return JSONResponse(status_code=exc.status_code, content=content)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTPException"""
    key_map = {
        400: ("invalidInput", ErrorCode.INVALID_INPUT),
        401: ("unauthorized", ErrorCode.UNAUTHORIZED),
        403: ("forbidden", ErrorCode.FORBIDDEN),
        404: ("notFound", ErrorCode.NOT_FOUND),
        405: ("invalidInput", ErrorCode.INVALID_INPUT),
        409: ("duplicateEntry", ErrorCode.RESOURCE_CONFLICT),
    }
    message_key, error_code = key_map.get(exc.status_code, ("generic", ErrorCode.INTERNAL_ERROR))
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {detail}",
        extra={"path": request.url.path, "method": request.method},
    )

    response = create_error_response(
        request,
        message_key,
        exc.status_code,
        code=error_code,
        details={"resource": "Resource"} if exc.status_code == 404 else None,
    )
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )

    return create_error_response(
        request,
        "invalidInput",
        status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.VALIDATION_ERROR,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    message_key = "databaseError"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_str = str(exc.orig).lower() if exc.orig else str(exc).lower()
        if "unique" in error_str or "duplicate" in error_str:
            status_code = status.HTTP_409_CONFLICT
            error_code = ErrorCode.DUPLICATE_ENTRY
            message_key = "duplicateEntry"
            # PostgreSQL names the constraint, SQLite names the columns.
            if "uq_journals_fiscal_year_ref_no" in error_str or "journals.ref_no" in error_str:
                message_key = "duplicateRefNo"
        elif "foreign key" in error_str:
            status_code = status.HTTP_409_CONFLICT
            error_code = ErrorCode.RESOURCE_CONFLICT
            message_key = "linkedExists"
    elif isinstance(exc, OperationalError):
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        message_key = "invalidInput"
        error_code = ErrorCode.INVALID_INPUT
        status_code = status.HTTP_400_BAD_REQUEST

    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=status_code >= 500,
    )

    return create_error_response(request, message_key, status_code, code=error_code, exc=exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        request,
        "generic",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        code=ErrorCode.INTERNAL_ERROR,
        exc=exc,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "ErrorCode",
    "AppException",
    "ValidationException",
    "InvalidDateRangeException",
    "InvalidAmountException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "DuplicateEntryException",
    "ConfigurationException",
    "MissingCodeMappingError",
    "setup_exception_handlers",
]
