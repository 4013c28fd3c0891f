"""
Standardized error responses for the CellarClub API.

Every endpoint reports failures in the same shape:
{
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE"
    }
}

Usage:
    from cellarclub.utils.errors import error_response, ErrorCode

    return error_response("Tier not found", ErrorCode.TIER_NOT_FOUND, 404)
"""
import logging
from enum import Enum
from typing import Optional

from flask import Flask, jsonify, request

from .exceptions import (
    CellarClubError,
    ConfigurationError,
    DraftIncomplete,
    DuplicateError,
    FatalSetupError,
    NotFoundError,
    RemoteCallError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication (401)
    AUTH_REQUIRED = "AUTH_REQUIRED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"

    # Validation Errors (400)
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DRAFT_INCOMPLETE = "DRAFT_INCOMPLETE"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"
    TENANT_NOT_FOUND = "TENANT_NOT_FOUND"
    TIER_NOT_FOUND = "TIER_NOT_FOUND"

    # Conflict (409)
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # External Service Errors (502)
    REMOTE_CALL_ERROR = "REMOTE_CALL_ERROR"

    # Server Errors (500)
    FATAL_SETUP_ERROR = "FATAL_SETUP_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[dict] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum (or a raw code string)
        status_code: HTTP status code
        log_error: Whether to log the error
        details: Optional extra fields returned alongside message and code

    Returns:
        Tuple of (response, status_code) for Flask
    """
    if log_error and status_code >= 500:
        logger.error(f"API Error [{code}]: {message}", extra={"details": details})
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code}]: {message}", extra={"details": details})

    error = {
        "message": message,
        "code": code.value if isinstance(code, ErrorCode) else code
    }
    if details:
        error.update(details)

    return jsonify({"error": error}), status_code


def bad_request(message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST) -> tuple:
    """400 Bad Request error."""
    return error_response(message, code, 400, log_error=False)


def json_object(required: bool = False) -> dict:
    """The request's JSON body, which must be an object. A missing body is {} unless required."""
    data = request.get_json(silent=True)
    if data is None and not required:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", field='body')
    return data


def unauthorized(message: str = "Authentication required", code: ErrorCode = ErrorCode.AUTH_REQUIRED) -> tuple:
    """401 Unauthorized error."""
    return error_response(message, code, 401, log_error=False)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def internal_error(message: str = "An unexpected error occurred", details: Optional[dict] = None) -> tuple:
    """500 Internal Server Error."""
    return error_response(message, ErrorCode.INTERNAL_ERROR, 500, log_error=True, details=details)


def register_error_handlers(app: Flask) -> None:
    """Map CellarClub exceptions and HTTP errors onto the JSON error shape."""

    @app.errorhandler(DraftIncomplete)
    def handle_draft_incomplete(error):
        return error_response(error.message, ErrorCode.DRAFT_INCOMPLETE, 400,
                              log_error=False, details={'missing': error.missing})

    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        details = {'field': error.field} if error.field else None
        return error_response(error.message, error.code, 400, log_error=False, details=details)

    @app.errorhandler(NotFoundError)
    def handle_not_found(error):
        return error_response(error.message, error.code, 404, log_error=False)

    @app.errorhandler(DuplicateError)
    def handle_duplicate(error):
        return error_response(error.message, ErrorCode.DUPLICATE_ENTRY, 409, log_error=False)

    @app.errorhandler(RemoteCallError)
    def handle_remote_call_error(error):
        return error_response(error.message, ErrorCode.REMOTE_CALL_ERROR, 502,
                              details={'platform': error.platform})

    @app.errorhandler(FatalSetupError)
    def handle_fatal_setup_error(error):
        details = {'orphans': error.orphans} if error.orphans else None
        return error_response(error.message, ErrorCode.FATAL_SETUP_ERROR, 500, details=details)

    @app.errorhandler(ConfigurationError)
    def handle_configuration_error(error):
        return error_response(error.message, ErrorCode.CONFIGURATION_ERROR, 500)

    @app.errorhandler(CellarClubError)
    def handle_cellarclub_error(error):
        return error_response(error.message, error.code, 400)

    @app.errorhandler(400)
    def handle_bad_request(error):
        return bad_request(getattr(error, 'description', str(error)))

    @app.errorhandler(404)
    def handle_404(error):
        return not_found('Resource not found')

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response('Method not allowed', ErrorCode.INVALID_REQUEST, 405, log_error=False)

    @app.errorhandler(500)
    def handle_internal_error(error):
        return internal_error()
