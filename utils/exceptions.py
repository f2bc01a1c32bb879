"""
Domain error taxonomy.

Errors are raised where they are detected and translated once, at the HTTP
boundary (api/errors.py), into the uniform envelope:
    {"result": "error", "error": {"code": ..., "message": ...}}

ErrorCode values are a wire contract: the client refresh logic keys on
TOKEN_EXPIRED, so members must never be renamed.
"""
from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    BAD_REQUEST = "BAD_REQUEST"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppError(Exception):
    """Base class for errors that map onto an HTTP status and error code."""

    status = 500
    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: ErrorCode | None = None, status: int | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status


class ConflictError(AppError):
    status = 409
    code = ErrorCode.CONFLICT


class UnauthorizedError(AppError):
    """Any credential, token or session failure.

    Messages stay coarse so callers cannot tell which check failed.
    """

    status = 401
    code = ErrorCode.UNAUTHORIZED


class InternalError(AppError):
    status = 500
    code = ErrorCode.INTERNAL_ERROR


class TokenError(Exception):
    """Raised by the token codec when a token cannot be accepted."""


class TokenExpiredError(TokenError):
    pass


class TokenInvalidError(TokenError):
    pass
