# Overview: Shared JSON failure rendering for the document blueprints.

from flask import current_app, jsonify, request

from ..extensions import db
from ..validation import DocumentError


def error_response(exc: DocumentError):
    """Render a service-layer failure as {"error", "code"} with its HTTP status."""
    db.session.rollback()
    return jsonify({"error": str(exc), "code": type(exc).__name__}), exc.http_status


def unexpected_error(action: str):
    """Log the active exception with its traceback and answer 500."""
    db.session.rollback()
    current_app.logger.exception("Failed to %s (%s %s)", action, request.method, request.path)
    return jsonify({"error": "Internal server error", "code": "InternalError"}), 500


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
