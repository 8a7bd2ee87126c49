# Overview: Flask API routes for client approval packets; parses input and returns JSON responses.

"""Approval packet API routes"""

from flask import Blueprint, jsonify, request

from ..services import approval_service
from ..validation import DocumentError
from .errors import error_response, json_body, unexpected_error


approvals_bp = Blueprint("approvals", __name__, url_prefix="/api/approvals")


@approvals_bp.get("")
def list_approvals_route():
    try:
        packets = approval_service.list_approval_packets(
            project_id=request.args.get("project_id", type=int),
            status=request.args.get("status"),
        )
        return jsonify({"approvals": [p.to_dict() for p in packets], "count": len(packets)})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("list approval packets")


@approvals_bp.post("")
def create_approval_route():
    """
    Create a Pending approval packet.

    Request body:
    {
        "project_id": int,
        "title": str,
        "due_date": "YYYY-MM-DD",
        "description": str (optional),
        "file_asset_ids": [int]
    }
    """
    data = json_body()
    try:
        packet = approval_service.create_approval_packet(
            data.get("project_id"),
            data.get("title"),
            data.get("due_date"),
            file_asset_ids=data.get("file_asset_ids"),
            description=data.get("description"),
        )
        return jsonify({"approval": packet.to_dict()}), 201
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("create approval packet")


@approvals_bp.get("/<int:packet_id>")
def get_approval_route(packet_id: int):
    try:
        return jsonify({"approval": approval_service.get_approval_packet(packet_id).to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("load approval packet")


@approvals_bp.post("/<int:packet_id>/send")
def send_approval_route(packet_id: int):
    try:
        packet = approval_service.send_approval_packet(packet_id)
        return jsonify({"approval": packet.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("send approval packet")


@approvals_bp.post("/<int:packet_id>/decision")
def decide_approval_route(packet_id: int):
    """
    Client decision on the whole packet.

    Request body:
    {
        "decision": "Approved" | "Declined",
        "comment": str (required when declining),
        "signature_name": str (optional)
    }
    """
    data = json_body()
    try:
        packet = approval_service.decide_approval_packet(
            packet_id,
            data.get("decision"),
            comment=data.get("comment"),
            signature_name=data.get("signature_name"),
        )
        return jsonify({"approval": packet.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("decide approval packet")


@approvals_bp.post("/<int:packet_id>/items/<int:item_id>/decision")
def decide_approval_item_route(packet_id: int, item_id: int):
    data = json_body()
    try:
        item = approval_service.decide_approval_item(
            packet_id, item_id, data.get("decision"), comment=data.get("comment")
        )
        return jsonify({"item": item.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("decide approval item")


@approvals_bp.post("/<int:packet_id>/close")
def close_approval_route(packet_id: int):
    data = json_body()
    try:
        packet = approval_service.close_approval_packet(packet_id, signature_name=data.get("signature_name"))
        return jsonify({"approval": packet.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("close approval packet")


@approvals_bp.delete("/<int:packet_id>")
def delete_approval_route(packet_id: int):
    try:
        approval_service.delete_approval_packet(packet_id)
        return jsonify({"deleted": True})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("delete approval packet")
