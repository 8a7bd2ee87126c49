# Overview: Service-layer operations for lifecycle; legal-transition tables for every document kind.

"""
FireLynx Document Lifecycle Rules

================================================================================
PURPOSE: One place that knows which status moves are legal for each document
================================================================================

STATE MACHINES:
    Invoice:          Draft -> Sent -> Paid
    Ticket:           Open <-> In Progress -> Resolved -> Closed, Closed -> Open
    Approval packet:  Pending -> Sent -> Approved | Declined
    Variation:        Draft | Pending -> Submitted  (decisions: variation_service)

RULES:
1. A status outside the kind's enum is a ValidationError (bad input)
2. A legal status that cannot be reached from the current one is a
   LifecycleError (business rule conflict)
3. Same-state moves are no-ops and always allowed
4. There are no reverse transitions except the ones listed above

Variation decisions are not a plain table: the staff disposition and the
client decision are composed into a status by
variation_service.resolve_variation_status().
================================================================================
"""

from __future__ import annotations

from ..validation import ConflictError, ValidationError


class LifecycleError(ConflictError):
    """
    Raised when an invalid lifecycle transition is attempted.

    This is a domain error, not a technical error. It indicates
    that the caller attempted an operation that violates business rules.
    """
    pass


INVOICE_STATUSES = ("Draft", "Sent", "Paid")
TICKET_STATUSES = ("Open", "In Progress", "Resolved", "Closed")
APPROVAL_STATUSES = ("Pending", "Sent", "Approved", "Declined")
VARIATION_WORKFLOW_STATUSES = ("Draft", "Pending", "Submitted")

TRANSITIONS: dict[str, dict[str, set[str]]] = {
    "invoice": {
        "Draft": {"Sent"},
        "Sent": {"Paid"},
        "Paid": set(),
    },
    "ticket": {
        "Open": {"In Progress"},
        "In Progress": {"Open", "Resolved"},
        "Resolved": {"Closed"},
        "Closed": {"Open"},
    },
    "approval": {
        "Pending": {"Sent"},
        "Sent": {"Approved", "Declined"},
        "Approved": set(),
        "Declined": set(),
    },
    "variation": {
        "Draft": {"Submitted"},
        "Pending": {"Submitted"},
        "Submitted": set(),
    },
}


def validate_status(kind: str, status: str) -> None:
    """
    Validate that a status value is one of the kind's allowed states.

    Raises:
        ValidationError: If status is not in the kind's enum
    """
    table = TRANSITIONS.get(kind)
    if table is None:
        raise ValidationError(f"Unknown document kind '{kind}'")
    if status not in table:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(table)}"
        )


def can_transition(kind: str, from_status: str, to_status: str) -> bool:
    """
    Check if a state transition is valid according to the kind's table.

    Same-state transitions are reported as valid; callers treat them as no-ops.
    """
    validate_status(kind, from_status)
    validate_status(kind, to_status)

    if from_status == to_status:
        return True

    return to_status in TRANSITIONS[kind][from_status]


def require_transition(kind: str, label: str, from_status: str, to_status: str) -> None:
    """
    Raise LifecycleError unless from_status -> to_status is legal.

    `label` names the document in the message (usually its number).
    """
    if not can_transition(kind, from_status, to_status):
        allowed = sorted(TRANSITIONS[kind][from_status])
        hint = f"allowed: {', '.join(allowed)}" if allowed else f"'{from_status}' is final"
        raise LifecycleError(
            f"Cannot move {label} from '{from_status}' to '{to_status}' ({hint})"
        )
