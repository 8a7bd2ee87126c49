"""
Invoice Service

WHY: Invoices are the only document that moves money, so totals must be
derived server-side on every write and the issued number must be unique.

DESIGN PRINCIPLES:
- Number allocated from the per-year registry in the same transaction as the insert
- subtotal / tax_total / total always recomputed from line_items
- Status only changes through send_invoice() and record_payment()
- Paid invoices are immutable

LIFECYCLE:
1. create_invoice()   -> Draft
2. send_invoice()     Draft -> Sent   (sent_at)
3. record_payment()   Sent -> Paid    (paid_at)

Paying a Draft invoice is rejected: it must be sent first.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Invoice, Project, VariationRequest
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_datetime,
    coerce_id,
    validate_payload,
)
from . import sequence_service
from .concurrency import commit_or_conflict, get_or_404
from .lifecycle_service import LifecycleError, require_transition
from .totals_service import recalculate_line_items
from firelynx.time_utils import utcnow


INVOICE_STATUS_DRAFT = "Draft"
INVOICE_STATUS_SENT = "Sent"
INVOICE_STATUS_PAID = "Paid"

INVOICE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"issue_date", "due_date", "currency", "line_items", "notes"},
)

# Fields that may still change once the invoice has been sent
SENT_EDITABLE_FIELDS = {"due_date", "notes"}


def _apply_totals(invoice: Invoice, line_items) -> None:
    totals = recalculate_line_items(line_items)
    invoice.line_items = totals.items
    strings = totals.as_strings()
    invoice.subtotal = strings["subtotal"]
    invoice.tax_total = strings["tax_total"]
    invoice.total = strings["total"]


def _check_dates(issue_date, due_date) -> None:
    if due_date < issue_date:
        raise ValidationError("due_date cannot be before issue_date")


# =============================================================================
# INVOICE CREATION
# =============================================================================

def create_invoice(
    project_id,
    issue_date,
    due_date,
    currency: str | None = None,
    line_items=None,
    notes: str | None = None,
    *,
    commit: bool = True,
) -> Invoice:
    """
    Create a Draft invoice with a freshly allocated INV number.

    Args:
        project_id: Owning project (required)
        issue_date, due_date: ISO-8601 dates (required)
        currency: Defaults to DEFAULT_INVOICE_CURRENCY
        line_items: [{description, quantity, rate, tax_percent}]
        notes: Free text
        commit: False when the caller composes this into a larger transaction

    Raises:
        ValidationError: missing/malformed fields
        NotFoundError: unknown project
        SequenceExhaustionError: number could not be allocated
        ConflictError: number collision on insert
    """
    if project_id is None or issue_date in (None, "") or due_date in (None, ""):
        raise ValidationError("Missing required fields: project_id, issue_date, due_date")

    project_id = coerce_id("project_id", project_id)
    issue_dt = coerce_datetime("issue_date", issue_date)
    due_dt = coerce_datetime("due_date", due_date)
    _check_dates(issue_dt, due_dt)

    if line_items is not None and not isinstance(line_items, (list, tuple)):
        raise ValidationError("line_items must be a list")

    get_or_404(Project, project_id, "Project")

    if currency is not None and not isinstance(currency, str):
        raise ValidationError("currency must be a string")
    currency = (currency or current_app.config["DEFAULT_INVOICE_CURRENCY"]).strip().upper()
    if len(currency) > 10:
        raise ValidationError("currency exceeds max length 10")

    number = sequence_service.allocate_document_number("invoice")

    invoice = Invoice(
        project_id=project_id,
        number=number,
        issue_date=issue_dt,
        due_date=due_dt,
        currency=currency,
        status=INVOICE_STATUS_DRAFT,
        notes=notes,
    )
    _apply_totals(invoice, line_items or [])

    db.session.add(invoice)
    if commit:
        commit_or_conflict(f"invoice {number}")
        current_app.logger.info("Created invoice %s (total %s %s)", number, invoice.total, currency)
    return invoice


# =============================================================================
# INVOICE UPDATES
# =============================================================================

def update_invoice(invoice_id: int, patch: dict) -> Invoice:
    """
    Apply a partial update.

    Draft invoices accept every writable field; Sent invoices only due_date
    and notes; Paid invoices nothing. status is never writable here.
    Any line_items in the patch trigger a full totals recomputation.
    """
    invoice = get_or_404(Invoice, invoice_id, "Invoice")
    cleaned = validate_payload(model=Invoice, payload=patch, policy=INVOICE_UPDATE_POLICY, partial=True)

    if invoice.status == INVOICE_STATUS_PAID:
        raise LifecycleError(f"Invoice {invoice.number} is paid and can no longer be edited")
    if invoice.status == INVOICE_STATUS_SENT:
        locked = sorted(set(cleaned) - SENT_EDITABLE_FIELDS)
        if locked:
            raise LifecycleError(
                f"Invoice {invoice.number} has been sent; cannot change: {', '.join(locked)}"
            )

    line_items = cleaned.pop("line_items", None)
    if "currency" in cleaned:
        cleaned["currency"] = cleaned["currency"].upper()

    for key, value in cleaned.items():
        setattr(invoice, key, value)
    _check_dates(invoice.issue_date, invoice.due_date)

    if line_items is not None:
        _apply_totals(invoice, line_items)

    commit_or_conflict(f"invoice {invoice.number}")
    return invoice


# =============================================================================
# INVOICE TRANSITIONS
# =============================================================================

def send_invoice(invoice_id: int) -> Invoice:
    """Issue a Draft invoice to the client (Draft -> Sent)."""
    invoice = get_or_404(Invoice, invoice_id, "Invoice")
    require_transition("invoice", f"invoice {invoice.number}", invoice.status, INVOICE_STATUS_SENT)

    if invoice.status != INVOICE_STATUS_SENT:
        invoice.status = INVOICE_STATUS_SENT
        invoice.sent_at = utcnow()
        commit_or_conflict(f"invoice {invoice.number}")
        current_app.logger.info("Invoice %s sent", invoice.number)
    return invoice


def record_payment(invoice_id: int, paid_at=None) -> Invoice:
    """
    Record payment for a Sent invoice (Sent -> Paid).

    Draft invoices are rejected with LifecycleError rather than being sent
    implicitly, so an invoice is never marked paid without having been issued.
    """
    invoice = get_or_404(Invoice, invoice_id, "Invoice")
    if invoice.status == INVOICE_STATUS_DRAFT:
        raise LifecycleError(f"Invoice {invoice.number} must be sent before payment can be recorded")
    require_transition("invoice", f"invoice {invoice.number}", invoice.status, INVOICE_STATUS_PAID)

    paid_dt = coerce_datetime("paid_at", paid_at) if paid_at not in (None, "") else utcnow()

    if invoice.status != INVOICE_STATUS_PAID:
        invoice.status = INVOICE_STATUS_PAID
        invoice.paid_at = paid_dt
        commit_or_conflict(f"invoice {invoice.number}")
        current_app.logger.info("Payment recorded for invoice %s", invoice.number)
    return invoice


# =============================================================================
# QUERIES / DELETION
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice:
    return get_or_404(Invoice, invoice_id, "Invoice")


def list_invoices(project_id: int | None = None, status: str | None = None) -> list[Invoice]:
    query = db.session.query(Invoice)
    if project_id is not None:
        query = query.filter(Invoice.project_id == project_id)
    if status:
        query = query.filter(Invoice.status == status)
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def delete_invoice(invoice_id: int) -> None:
    """
    Delete a Draft invoice.

    Issued invoices keep their number for audit. Any variation billed to the
    invoice loses its link and can be billed again.
    """
    invoice = get_or_404(Invoice, invoice_id, "Invoice")
    if invoice.status != INVOICE_STATUS_DRAFT:
        raise LifecycleError(f"Only Draft invoices can be deleted; {invoice.number} is {invoice.status}")

    for variation in db.session.query(VariationRequest).filter_by(invoice_id=invoice.id).all():
        variation.invoice_id = None

    db.session.delete(invoice)
    commit_or_conflict(f"invoice {invoice.number}")
    current_app.logger.info("Deleted draft invoice %s", invoice.number)
