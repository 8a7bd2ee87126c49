# Overview: Service-layer operations for project support tickets.

"""
Ticket Service

LIFECYCLE:
    Open <-> In Progress -> Resolved -> Closed, Closed -> Open (reopen)

- resolved_at is stamped on entering Resolved and cleared on reopen
- closed_at is stamped on entering Closed and cleared on reopen
- assign_ticket() never changes status
- The requester is fixed at creation
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Ticket
from ..validation import ModelValidationPolicy, ValidationError, require_fields, validate_payload
from . import sequence_service
from .concurrency import commit_or_conflict, get_or_404
from .lifecycle_service import LifecycleError, require_transition, validate_status
from .project_service import require_project, require_project_files, require_user
from firelynx.time_utils import utcnow


TICKET_STATUS_OPEN = "Open"
TICKET_STATUS_IN_PROGRESS = "In Progress"
TICKET_STATUS_RESOLVED = "Resolved"
TICKET_STATUS_CLOSED = "Closed"

TICKET_PRIORITIES = [
    {"value": "Low", "label": "Low", "description": "Minor issues that can be addressed in the next release"},
    {"value": "Medium", "label": "Medium", "description": "Standard priority issues requiring attention"},
    {"value": "High", "label": "High", "description": "Important issues that should be resolved quickly"},
    {"value": "Critical", "label": "Critical", "description": "Urgent issues requiring immediate attention"},
]

TICKET_CATEGORIES = [
    {"value": "Technical", "label": "Technical Issue", "description": "Software bugs, system errors, or technical problems"},
    {"value": "Design", "label": "Design Request", "description": "Changes to visual design, layout, or styling"},
    {"value": "Content", "label": "Content Update", "description": "Text changes, image updates, or content modifications"},
    {"value": "Feature", "label": "Feature Request", "description": "New functionality or feature additions"},
    {"value": "Support", "label": "General Support", "description": "Questions, guidance, or general assistance"},
    {"value": "Access", "label": "Access Issue", "description": "Login problems, permissions, or account access"},
    {"value": "Performance", "label": "Performance Issue", "description": "Speed, loading, or system performance problems"},
    {"value": "Other", "label": "Other", "description": "Issues that don't fit into other categories"},
]

PRIORITY_VALUES = tuple(p["value"] for p in TICKET_PRIORITIES)
CATEGORY_VALUES = tuple(c["value"] for c in TICKET_CATEGORIES)

# requester_user_id and status are deliberately absent
TICKET_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"subject", "description", "category", "priority"},
)


def ticket_reference_data() -> dict:
    return {"priorities": list(TICKET_PRIORITIES), "categories": list(TICKET_CATEGORIES)}


def _check_reference(category: str | None, priority: str | None) -> None:
    if category is not None and category not in CATEGORY_VALUES:
        raise ValidationError(f"Invalid category '{category}'. Must be one of: {', '.join(CATEGORY_VALUES)}")
    if priority is not None and priority not in PRIORITY_VALUES:
        raise ValidationError(f"Invalid priority '{priority}'. Must be one of: {', '.join(PRIORITY_VALUES)}")


def create_ticket(
    project_id,
    subject: str,
    description: str,
    category: str,
    requester_user_id,
    priority: str | None = None,
    assignee_user_id=None,
    attachments=None,
) -> Ticket:
    """
    Open a ticket with a freshly allocated TK number.

    Raises:
        ValidationError: missing fields, unknown category/priority
        NotFoundError: unknown project, requester, assignee or file asset
    """
    require_fields(
        {
            "project_id": project_id,
            "subject": subject,
            "description": description,
            "category": category,
            "requester_user_id": requester_user_id,
        },
        ["project_id", "subject", "description", "category", "requester_user_id"],
    )
    priority = priority or "Medium"
    _check_reference(category, priority)

    subject = str(subject).strip()
    if len(subject) > 255:
        raise ValidationError("subject exceeds max length 255")

    project = require_project(project_id)
    requester = require_user(requester_user_id, "requester_user_id")
    assignee = require_user(assignee_user_id, "assignee_user_id") if assignee_user_id is not None else None
    attachment_ids = require_project_files(project.id, attachments)

    number = sequence_service.allocate_document_number("ticket")
    ticket = Ticket(
        project_id=project.id,
        number=number,
        subject=subject,
        description=str(description).strip(),
        category=category,
        priority=priority,
        status=TICKET_STATUS_OPEN,
        requester_user_id=requester.id,
        assignee_user_id=assignee.id if assignee else None,
        attachments=attachment_ids,
    )
    db.session.add(ticket)
    commit_or_conflict(f"ticket {number}")
    current_app.logger.info("Opened ticket %s (%s, %s)", number, category, priority)
    return ticket


def update_ticket(ticket_id: int, patch: dict) -> Ticket:
    """Edit subject, description, category or priority. Status has its own operation."""
    ticket = get_or_404(Ticket, ticket_id, "Ticket")
    cleaned = validate_payload(model=Ticket, payload=patch, policy=TICKET_UPDATE_POLICY, partial=True)
    _check_reference(cleaned.get("category"), cleaned.get("priority"))

    for key, value in cleaned.items():
        setattr(ticket, key, value)

    commit_or_conflict(f"ticket {ticket.number}")
    return ticket


def set_ticket_status(ticket_id: int, status: str) -> Ticket:
    """
    Move a ticket along its lifecycle.

    Same-state requests are no-ops. Illegal moves (e.g. Open -> Closed)
    raise LifecycleError; unknown statuses raise ValidationError.
    """
    validate_status("ticket", status)
    ticket = get_or_404(Ticket, ticket_id, "Ticket")
    require_transition("ticket", f"ticket {ticket.number}", ticket.status, status)

    if ticket.status == status:
        return ticket

    previous = ticket.status
    now = utcnow()
    ticket.status = status
    if status == TICKET_STATUS_RESOLVED:
        ticket.resolved_at = now
    elif status == TICKET_STATUS_CLOSED:
        ticket.closed_at = now
    elif status == TICKET_STATUS_OPEN and previous == TICKET_STATUS_CLOSED:
        ticket.resolved_at = None
        ticket.closed_at = None

    commit_or_conflict(f"ticket {ticket.number}")
    current_app.logger.info("Ticket %s %s -> %s", ticket.number, previous, status)
    return ticket


def assign_ticket(ticket_id: int, assignee_user_id) -> Ticket:
    """Set or clear (None) the assignee. Status is unchanged."""
    ticket = get_or_404(Ticket, ticket_id, "Ticket")
    if assignee_user_id is None:
        ticket.assignee_user_id = None
    else:
        ticket.assignee_user_id = require_user(assignee_user_id, "assignee_user_id").id

    commit_or_conflict(f"ticket {ticket.number}")
    current_app.logger.info("Ticket %s assigned to %s", ticket.number, ticket.assignee_user_id)
    return ticket


def add_ticket_attachments(ticket_id: int, file_asset_ids) -> Ticket:
    """Link existing file assets of the ticket's project. Already linked ids are skipped."""
    ticket = get_or_404(Ticket, ticket_id, "Ticket")
    ids = require_project_files(ticket.project_id, file_asset_ids)
    if not ids:
        raise ValidationError("No file assets provided")

    current = list(ticket.attachments or [])
    added = [asset_id for asset_id in ids if asset_id not in current]
    if added:
        ticket.attachments = current + added
        commit_or_conflict(f"ticket {ticket.number}")
        current_app.logger.info("Linked %d attachment(s) to ticket %s", len(added), ticket.number)
    return ticket


def get_ticket(ticket_id: int) -> Ticket:
    return get_or_404(Ticket, ticket_id, "Ticket")


def list_tickets(project_id: int | None = None, status: str | None = None) -> list[Ticket]:
    query = db.session.query(Ticket)
    if project_id is not None:
        query = query.filter(Ticket.project_id == project_id)
    if status:
        validate_status("ticket", status)
        query = query.filter(Ticket.status == status)
    return query.order_by(Ticket.created_at.desc(), Ticket.id.desc()).all()


def delete_ticket(ticket_id: int) -> None:
    """Delete an Open ticket. Worked tickets stay for the project history."""
    ticket = get_or_404(Ticket, ticket_id, "Ticket")
    if ticket.status != TICKET_STATUS_OPEN:
        raise LifecycleError(f"Only Open tickets can be deleted; {ticket.number} is {ticket.status}")
    db.session.delete(ticket)
    commit_or_conflict(f"ticket {ticket.number}")
    current_app.logger.info("Deleted ticket %s", ticket.number)
