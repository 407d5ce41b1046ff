"""
Error types for the study hub and the Flask handlers that render them.

API paths (``/api/...``) answer with a JSON body, pages keep Flask's
default HTML error pages.
"""

import logging

from flask import jsonify, request

logger = logging.getLogger(__name__)


class StudyError(Exception):
    """Base exception for the study hub."""

    def __init__(self, message: str, code: str = "STUDY_ERROR", status_code: int = 500, details=None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self):
        body = {"success": False, "message": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class DocumentNotFound(StudyError):
    """No document backs the requested slug."""

    def __init__(self, slug, message: str = "Document not found"):
        if isinstance(slug, (list, tuple)):
            slug = "/".join(slug)
        self.slug = slug
        super().__init__(message, code="NOT_FOUND", status_code=404, details={"slug": slug})


class InvalidInput(StudyError):
    def __init__(self, message: str = "Invalid input", field: str = None):
        super().__init__(
            message,
            code="INVALID_INPUT",
            status_code=400,
            details={"field": field} if field else None,
        )


def error_response(message: str, code: str = "ERROR", status_code: int = 400):
    return jsonify({"success": False, "message": message, "code": code}), status_code


def register_error_handlers(app):
    @app.errorhandler(StudyError)
    def handle_study_error(error):
        if error.status_code >= 500:
            logger.error("%s: %s", error.code, error.message)
        if request.path.startswith("/api/"):
            return jsonify(error.to_dict()), error.status_code
        return error.message, error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        if request.path.startswith("/api/"):
            return error_response("Not found", "NOT_FOUND", 404)
        return error

    @app.errorhandler(500)
    def handle_internal_error(error):
        original = getattr(error, "original_exception", None)
        logger.error("Internal server error: %s", original or error, exc_info=original)
        if request.path.startswith("/api/"):
            return error_response("Internal server error", "SERVER_ERROR", 500)
        return error
