# Overview: Flask API routes for variation requests; parses input and returns JSON responses.

"""
Variation request API routes.

Staff actions (disposition) and client actions (approve / decline) are
separate endpoints; the returned status is always the derived one.
"""

from flask import Blueprint, jsonify, request

from ..services import variation_service
from ..validation import DocumentError
from .errors import error_response, json_body, unexpected_error


variations_bp = Blueprint("variations", __name__, url_prefix="/api/variations")


@variations_bp.get("/options")
def variation_options_route():
    return jsonify(variation_service.variation_options())


@variations_bp.get("")
def list_variations_route():
    try:
        variations = variation_service.list_variations(
            project_id=request.args.get("project_id", type=int),
            status=request.args.get("status"),
        )
        return jsonify({"variations": [v.to_dict() for v in variations], "count": len(variations)})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("list variations")


@variations_bp.post("")
def create_variation_route():
    """
    Create a variation request.

    Accepts either the change_* field set or title / description / category /
    justification, in snake_case or camelCase.
    """
    data = json_body()
    try:
        variation = variation_service.create_variation(
            data.get("project_id", data.get("projectId")), data
        )
        return jsonify({"variation": variation.to_dict()}), 201
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("create variation")


@variations_bp.get("/<int:variation_id>")
def get_variation_route(variation_id: int):
    try:
        return jsonify({"variation": variation_service.get_variation(variation_id).to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("load variation")


@variations_bp.patch("/<int:variation_id>")
def update_variation_route(variation_id: int):
    try:
        variation = variation_service.update_variation(variation_id, json_body())
        return jsonify({"variation": variation.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("update variation")


@variations_bp.post("/<int:variation_id>/submit")
def submit_variation_route(variation_id: int):
    try:
        variation = variation_service.submit_variation(variation_id)
        return jsonify({"variation": variation.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("submit variation")


@variations_bp.post("/<int:variation_id>/disposition")
def set_disposition_route(variation_id: int):
    """
    Staff decision.

    Request body:
    {
        "disposition": "Approve" | "Reject" | "Defer",
        "reason": str (optional),
        "staff_user_id": int (optional)
    }
    """
    data = json_body()
    try:
        variation = variation_service.set_disposition(
            variation_id,
            data.get("disposition"),
            reason=data.get("reason"),
            staff_user_id=data.get("staff_user_id"),
        )
        return jsonify({"variation": variation.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("set variation disposition")


@variations_bp.post("/<int:variation_id>/client-approve")
def client_approve_route(variation_id: int):
    data = json_body()
    try:
        variation = variation_service.client_approve(variation_id, comment=data.get("comment"))
        return jsonify({"variation": variation.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("approve variation")


@variations_bp.post("/<int:variation_id>/client-decline")
def client_decline_route(variation_id: int):
    data = json_body()
    try:
        variation = variation_service.client_decline(variation_id, data.get("comment"))
        return jsonify({"variation": variation.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("decline variation")


@variations_bp.post("/<int:variation_id>/bill")
def bill_variation_route(variation_id: int):
    """Create a Draft invoice from an Approved variation."""
    data = json_body()
    try:
        invoice = variation_service.bill_variation(
            variation_id,
            issue_date=data.get("issue_date"),
            due_date=data.get("due_date"),
            tax_percent=data.get("tax_percent", 0),
        )
        variation = variation_service.get_variation(variation_id)
        return jsonify({"invoice": invoice.to_dict(), "variation": variation.to_dict()}), 201
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("bill variation")


@variations_bp.delete("/<int:variation_id>")
def delete_variation_route(variation_id: int):
    try:
        variation_service.delete_variation(variation_id)
        return jsonify({"deleted": True})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("delete variation")
