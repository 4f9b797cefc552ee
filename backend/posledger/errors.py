# Overview: Error taxonomy shared by services and routes.

"""
Every failure a caller can see is a PosError subclass.

Routes render PosError.to_dict() with PosError.status_code. Anything that is
not a PosError is an unexpected failure: it is logged with the stack and
rendered as InternalError without detail.
"""

from __future__ import annotations

from flask import jsonify
from werkzeug.exceptions import HTTPException


class PosError(Exception):
    """Base class for classified service errors."""

    status_code = 500
    classification = "InternalError"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {
            "success": False,
            "error": self.classification,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PosError):
    """400-level input problem (bad shape, type or business rule on input)."""

    status_code = 400
    classification = "ValidationError"


class InvalidArgument(PosError):
    """400-level unknown enumerated value (e.g. transaction type)."""

    status_code = 400
    classification = "InvalidArgument"


class AuthError(PosError):
    status_code = 401
    classification = "AuthError"


class NotFound(PosError):
    status_code = 404
    classification = "NotFound"


class PriceMismatch(PosError):
    """Submitted total disagrees with authoritative prices."""

    status_code = 409
    classification = "PriceMismatch"


class InsufficientStock(PosError):
    """A write would leave on-hand stock negative."""

    status_code = 409
    classification = "InsufficientStock"


class InternalError(PosError):
    status_code = 500
    classification = "InternalError"


def error_response(exc: PosError):
    return jsonify(exc.to_dict()), exc.status_code


def internal_error_response(message: str = "Internal server error"):
    return error_response(InternalError(message))


def register_error_handlers(app) -> None:
    @app.errorhandler(PosError)
    def handle_pos_error(exc: PosError):
        return error_response(exc)

    @app.errorhandler(404)
    def handle_not_found(exc):
        return error_response(NotFound("Route not found"))

    @app.errorhandler(405)
    def handle_method_not_allowed(exc):
        return jsonify({
            "success": False,
            "error": "ValidationError",
            "message": "Method not allowed",
        }), 405

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        if isinstance(exc, HTTPException):
            return jsonify({
                "success": False,
                "error": "ValidationError" if exc.code < 500 else "InternalError",
                "message": exc.description,
            }), exc.code
        app.logger.exception("Unhandled error")
        return internal_error_response()
