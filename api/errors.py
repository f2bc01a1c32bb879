"""
Uniform response envelope and global error handlers.

    success: {"result": "success", "data": ...}
    failure: {"result": "error", "error": {"code": ..., "message": ..., "details"?: ...}}
"""
import logging

from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError

from utils.exceptions import AppError, ErrorCode

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


def success_response(data, status: int = 200):
    return jsonify({"result": "success", "data": data}), status


def error_response(code: ErrorCode, message: str, status: int, details: dict | None = None):
    error = {"code": ErrorCode(code).value, "message": message}
    if details:
        error["details"] = details
    return jsonify({"result": "error", "error": error}), status


def register_error_handlers(app):
    # Domain errors raised by services and interceptors
    @app.errorhandler(AppError)
    def handle_app_error(err: AppError):
        if err.status >= 500:
            logger.error("%s: %s", err.code.value, err.message)
        return error_response(err.code, err.message, err.status)

    # Marshmallow validation errors map to 400 with field-level details
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        return error_response(ErrorCode.VALIDATION_ERROR, "Invalid input", 400, details=err.messages)

    # Unique constraint lost to a concurrent writer after the pre-checks passed
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        message = str(getattr(err, "orig", err))
        lower_msg = message.lower()
        logger.warning("Integrity error: %s", message)
        if "unique" in lower_msg or "duplicate" in lower_msg:
            return error_response(ErrorCode.CONFLICT, "Unique constraint violated.", 409)
        return error_response(ErrorCode.BAD_REQUEST, "Integrity error.", 400)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = err.code or 400
        code = _STATUS_CODES.get(status, ErrorCode.BAD_REQUEST if status < 500 else ErrorCode.INTERNAL_ERROR)
        return error_response(code, err.description or err.name, status)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred", 500, details=details)
