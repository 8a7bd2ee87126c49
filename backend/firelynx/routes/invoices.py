# Overview: Flask API routes for invoices; parses input and returns JSON responses.

"""Invoice API routes"""

from flask import Blueprint, jsonify, request

from ..services import invoice_service
from ..validation import DocumentError
from .errors import error_response, json_body, unexpected_error


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
def list_invoices_route():
    try:
        invoices = invoice_service.list_invoices(
            project_id=request.args.get("project_id", type=int),
            status=request.args.get("status"),
        )
        return jsonify({"invoices": [inv.to_dict() for inv in invoices], "count": len(invoices)})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("list invoices")


@invoices_bp.post("")
def create_invoice_route():
    """
    Create a Draft invoice.

    Request body:
    {
        "project_id": int,
        "issue_date": "YYYY-MM-DD",
        "due_date": "YYYY-MM-DD",
        "currency": str (optional),
        "line_items": [{"description", "quantity", "rate", "tax_percent"}],
        "notes": str (optional)
    }

    Client-sent subtotal / tax_total / total are ignored.
    """
    data = json_body()
    try:
        invoice = invoice_service.create_invoice(
            data.get("project_id"),
            data.get("issue_date"),
            data.get("due_date"),
            currency=data.get("currency"),
            line_items=data.get("line_items"),
            notes=data.get("notes"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 201
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("create invoice")


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        return jsonify({"invoice": invoice_service.get_invoice(invoice_id).to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("load invoice")


@invoices_bp.patch("/<int:invoice_id>")
def update_invoice_route(invoice_id: int):
    data = json_body()
    # Aggregates are always derived
    for key in ("subtotal", "tax_total", "total", "taxTotal"):
        data.pop(key, None)
    try:
        invoice = invoice_service.update_invoice(invoice_id, data)
        return jsonify({"invoice": invoice.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("update invoice")


@invoices_bp.post("/<int:invoice_id>/send")
def send_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.send_invoice(invoice_id)
        return jsonify({"invoice": invoice.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("send invoice")


@invoices_bp.post("/<int:invoice_id>/payment")
def record_payment_route(invoice_id: int):
    data = json_body()
    try:
        invoice = invoice_service.record_payment(invoice_id, paid_at=data.get("paid_at"))
        return jsonify({"invoice": invoice.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("record invoice payment")


@invoices_bp.delete("/<int:invoice_id>")
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.delete_invoice(invoice_id)
        return jsonify({"deleted": True})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("delete invoice")
