# Overview: Flask API routes for support tickets; parses input and returns JSON responses.

"""Ticket API routes"""

from flask import Blueprint, jsonify, request

from ..services import ticket_service
from ..validation import DocumentError
from .errors import error_response, json_body, unexpected_error


tickets_bp = Blueprint("tickets", __name__, url_prefix="/api/tickets")


@tickets_bp.get("/priorities")
def ticket_priorities_route():
    return jsonify({"priorities": ticket_service.ticket_reference_data()["priorities"]})


@tickets_bp.get("/categories")
def ticket_categories_route():
    return jsonify({"categories": ticket_service.ticket_reference_data()["categories"]})


@tickets_bp.get("")
def list_tickets_route():
    try:
        tickets = ticket_service.list_tickets(
            project_id=request.args.get("project_id", type=int),
            status=request.args.get("status"),
        )
        return jsonify({"tickets": [t.to_dict() for t in tickets], "count": len(tickets)})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("list tickets")


@tickets_bp.post("")
def create_ticket_route():
    """
    Open a ticket.

    Request body:
    {
        "project_id": int,
        "subject": str,
        "description": str,
        "category": str,
        "requester_user_id": int,
        "priority": str (optional, default "Medium"),
        "assignee_user_id": int (optional),
        "attachments": [file_asset_id] (optional)
    }
    """
    data = json_body()
    try:
        ticket = ticket_service.create_ticket(
            data.get("project_id"),
            data.get("subject"),
            data.get("description"),
            data.get("category"),
            data.get("requester_user_id"),
            priority=data.get("priority"),
            assignee_user_id=data.get("assignee_user_id"),
            attachments=data.get("attachments"),
        )
        return jsonify({"ticket": ticket.to_dict()}), 201
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("create ticket")


@tickets_bp.get("/<int:ticket_id>")
def get_ticket_route(ticket_id: int):
    try:
        return jsonify({"ticket": ticket_service.get_ticket(ticket_id).to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("load ticket")


@tickets_bp.patch("/<int:ticket_id>")
def update_ticket_route(ticket_id: int):
    try:
        ticket = ticket_service.update_ticket(ticket_id, json_body())
        return jsonify({"ticket": ticket.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("update ticket")


@tickets_bp.post("/<int:ticket_id>/status")
def set_ticket_status_route(ticket_id: int):
    data = json_body()
    try:
        ticket = ticket_service.set_ticket_status(ticket_id, data.get("status"))
        return jsonify({"ticket": ticket.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("change ticket status")


@tickets_bp.post("/<int:ticket_id>/assign")
def assign_ticket_route(ticket_id: int):
    data = json_body()
    try:
        ticket = ticket_service.assign_ticket(ticket_id, data.get("assignee_user_id"))
        return jsonify({"ticket": ticket.to_dict()})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("assign ticket")


@tickets_bp.post("/<int:ticket_id>/attachments")
def add_ticket_attachments_route(ticket_id: int):
    data = json_body()
    try:
        ticket = ticket_service.add_ticket_attachments(ticket_id, data.get("file_asset_ids"))
        return jsonify({"ticket": ticket.to_dict()}), 201
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("attach files to ticket")


@tickets_bp.delete("/<int:ticket_id>")
def delete_ticket_route(ticket_id: int):
    try:
        ticket_service.delete_ticket(ticket_id)
        return jsonify({"deleted": True})
    except DocumentError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("delete ticket")
