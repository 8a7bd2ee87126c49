# Overview: Flask API routes for the unified document index; parses input and returns JSON responses.

"""
Unified Documents Routes

One index over invoices, variations, tickets and approval packets, plus
lookup by formatted number (e.g. GET /api/documents/by-number/INV-2026-0001).
"""

from flask import Blueprint, jsonify, request

from ..services import sequence_service
from ..services.document_service import DOCUMENT_TYPES, find_by_number, get_document, list_documents
from ..validation import DocumentError
from .errors import error_response, unexpected_error
from firelynx.time_utils import parse_iso_datetime


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


@documents_bp.get("")
def list_documents_route():
    project_id = request.args.get("project_id", type=int)
    kind = request.args.get("kind")
    status = request.args.get("status")
    from_date = request.args.get("from_date")
    to_date = request.args.get("to_date")
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    if kind and kind not in DOCUMENT_TYPES:
        return jsonify({
            "error": f"Invalid kind. Must be one of: {', '.join(DOCUMENT_TYPES.keys())}",
            "code": "ValidationError",
        }), 400

    try:
        from_dt = parse_iso_datetime(from_date) if from_date else None
        to_dt = parse_iso_datetime(to_date) if to_date else None
    except ValueError:
        return jsonify({"error": "Invalid from_date or to_date", "code": "ValidationError"}), 400

    try:
        rows, total = list_documents(
            project_id=project_id,
            kind=kind,
            status=status,
            from_date=from_dt,
            to_date=to_dt,
            limit=limit,
            offset=offset,
        )
        return jsonify({"items": rows, "count": total, "limit": limit, "offset": offset})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("list documents")


@documents_bp.get("/by-number/<number>")
def find_by_number_route(number: str):
    try:
        kind, doc = find_by_number(number)
        return jsonify({"kind": kind, "document": doc.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("find document by number")


@documents_bp.get("/counters")
def list_counters_route():
    try:
        return jsonify({"counters": sequence_service.list_counters()})
    except Exception:
        return unexpected_error("list document counters")


@documents_bp.get("/<kind>/<int:doc_id>")
def get_document_route(kind: str, doc_id: int):
    try:
        return jsonify({"kind": kind, "document": get_document(kind.lower(), doc_id)})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("load document")
