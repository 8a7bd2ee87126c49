"""
Variation Request Service

WHY: A variation (change order) is decided on two independent tracks: the
internal staff disposition and the client's own sign-off. Storing both and
deriving the visible status from them means neither party can silently
overwrite the other's decision.

STATUS PRECEDENCE (resolve_variation_status):
1. client_decision, when present (Approved / Declined)
2. disposition Approve -> Approved, Reject -> Declined
3. workflow_status (Draft / Pending / Submitted); Defer falls through here

RULES:
- A client decision is final: no second client decision, no later disposition
- A client cannot approve a variation staff rejected, but can decline one
  staff approved
- Draft variations are not visible to the client and cannot be client-decided
- Declining requires a comment
- Client decisions clear decided_by_user_id; staff decisions record the user

BILLING:
    bill_variation() turns an Approved variation's cost breakdown into a Draft
    invoice and links it (variation.invoice_id). With
    AUTO_INVOICE_APPROVED_VARIATIONS on, a client approval bills immediately.
    Once billed, the decision can no longer be reversed.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal, localcontext

from flask import current_app

from ..extensions import db
from ..models import Invoice, VariationRequest
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    coerce_datetime,
    validate_payload,
)
from . import invoice_service, sequence_service
from .concurrency import commit_or_conflict, get_or_404
from .lifecycle_service import LifecycleError, require_transition
from .project_service import require_project, require_project_files, require_user
from .totals_service import MAX_INPUT, MONEY_CONTEXT, money_str, recalculate_cost_breakdown, safe_decimal
from firelynx.time_utils import utcnow


WORKFLOW_DRAFT = "Draft"
WORKFLOW_PENDING = "Pending"
WORKFLOW_SUBMITTED = "Submitted"

STATUS_APPROVED = "Approved"
STATUS_DECLINED = "Declined"
DECIDED_STATUSES = (STATUS_APPROVED, STATUS_DECLINED)

DISPOSITION_APPROVE = "Approve"
DISPOSITION_REJECT = "Reject"
DISPOSITION_DEFER = "Defer"
DISPOSITIONS = (DISPOSITION_APPROVE, DISPOSITION_REJECT, DISPOSITION_DEFER)

CLIENT_DECISIONS = (STATUS_APPROVED, STATUS_DECLINED)

WORK_TYPES = [
    "Joinery", "Electrical", "Plumbing", "Flooring", "Painting",
    "Demolition", "Structural", "HVAC", "Lighting", "Tiling",
]
VARIATION_CATEGORIES = [
    "Scope", "Cost", "Quality", "Timeline", "Resources",
    "Materials", "Design", "Safety", "Compliance",
]

# camelCase keys sent by the legacy browser UI
_CAMEL_KEYS = {
    "projectId": "project_id",
    "changeRequestor": "change_requestor",
    "changeReference": "change_reference",
    "changeArea": "change_area",
    "workTypes": "work_types",
    "changeDescription": "change_description",
    "reasonDescription": "reason_description",
    "technicalChanges": "technical_changes",
    "resourcesAndCosts": "resources_and_costs",
    "materialCosts": "material_costs",
    "laborCosts": "labor_costs",
    "additionalCosts": "additional_costs",
    "priceImpact": "price_impact",
    "timeImpact": "time_impact",
}

_BREAKDOWN_FIELDS = ("material_costs", "labor_costs", "additional_costs")

VARIATION_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "change_requestor", "change_reference", "change_area", "title", "priority",
        "work_types", "categories", "change_description", "reason_description",
        "technical_changes", "resources_and_costs", "material_costs", "labor_costs",
        "additional_costs", "attachments", "currency", "price_impact", "time_impact",
    },
)


def resolve_variation_status(workflow_status: str, disposition: str | None, client_decision: str | None) -> str:
    """Derive the visible status from the three decision fields."""
    if client_decision in CLIENT_DECISIONS:
        return client_decision
    if disposition == DISPOSITION_APPROVE:
        return STATUS_APPROVED
    if disposition == DISPOSITION_REJECT:
        return STATUS_DECLINED
    return workflow_status


def variation_options() -> dict:
    return {"work_types": list(WORK_TYPES), "categories": list(VARIATION_CATEGORIES)}


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================

def _normalize_keys(payload) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    normalized = {}
    for key, value in payload.items():
        normalized[_CAMEL_KEYS.get(key, key)] = value
    return normalized


def _text(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _tags(field: str, value) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list")
    tags: list[str] = []
    for raw in value:
        tag = str(raw).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _time_impact(value) -> int:
    return int(safe_decimal(value))


def _costs_narrative(currency: str, breakdown) -> str:
    def fmt(amount) -> str:
        return f"{currency} {Decimal(money_str(amount)):,.2f}"

    return (
        f"Material Costs: {fmt(breakdown.material_total)}, "
        f"Labor Costs: {fmt(breakdown.labor_total)}, "
        f"Additional Costs: {fmt(breakdown.additional_total)}, "
        f"Total: {fmt(breakdown.price_impact)}"
    )


def _apply_breakdown(variation: VariationRequest, material, labor, additional, client_price_impact):
    breakdown = recalculate_cost_breakdown(material, labor, additional)
    variation.material_costs = breakdown.material_costs
    variation.labor_costs = breakdown.labor_costs
    variation.additional_costs = breakdown.additional_costs
    if breakdown.has_lines:
        variation.price_impact = money_str(breakdown.price_impact)
    else:
        variation.price_impact = money_str(client_price_impact)
    return breakdown


def _require_undecided(variation: VariationRequest, action: str) -> None:
    if variation.status in DECIDED_STATUSES:
        raise LifecycleError(
            f"Variation {variation.number} is {variation.status}; cannot {action}"
        )


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def create_variation(project_id, payload: dict) -> VariationRequest:
    """
    Create a variation request with a freshly allocated VR number.

    Two payload shapes are accepted:
        old: change_requestor, change_area, change_description, reason_description
        new: title, description, category, justification

    Missing old-format fields are derived from the new ones (requestor
    "Manager", area from category or "General", reference = number).
    price_impact is derived from the cost breakdown when one is supplied.
    """
    data = _normalize_keys(payload)
    if project_id is None:
        project_id = data.get("project_id")
    if project_id is None:
        raise ValidationError("Missing required field: project_id")

    has_old = all(_text(data, k) for k in ("change_requestor", "change_area", "change_description", "reason_description"))
    has_new = all(_text(data, k) for k in ("title", "description", "category", "justification"))
    if not has_old and not has_new:
        raise ValidationError(
            "Missing required fields. Provide either change_requestor, change_area, "
            "change_description, reason_description or title, description, category, justification"
        )

    project = require_project(project_id)

    workflow_status = _text(data, "status") or WORKFLOW_PENDING
    if workflow_status not in (WORKFLOW_DRAFT, WORKFLOW_PENDING):
        raise ValidationError("status must be Draft or Pending on create")

    date = coerce_datetime("date", data["date"]) if data.get("date") not in (None, "") else utcnow()
    currency = (_text(data, "currency") or current_app.config["DEFAULT_VARIATION_CURRENCY"]).upper()
    if len(currency) > 10:
        raise ValidationError("currency exceeds max length 10")

    work_types = _tags("work_types", data.get("work_types"))
    categories = _tags("categories", data.get("categories"))
    attachments = require_project_files(project.id, data.get("attachments"))

    number = sequence_service.allocate_document_number("variation")
    change_description = _text(data, "change_description") or _text(data, "description")

    variation = VariationRequest(
        project_id=project.id,
        number=number,
        date=date,
        change_requestor=_text(data, "change_requestor") or "Manager",
        change_reference=_text(data, "change_reference") or number,
        change_area=_text(data, "change_area") or _text(data, "category") or "General",
        title=(_text(data, "title") or change_description)[:255],
        priority=(_text(data, "priority") or "medium").lower(),
        work_types=work_types,
        categories=categories,
        change_description=change_description,
        reason_description=_text(data, "reason_description") or _text(data, "justification"),
        technical_changes=_text(data, "technical_changes") or "",
        attachments=attachments,
        currency=currency,
        time_impact=_time_impact(data.get("time_impact")),
        workflow_status=workflow_status,
    )
    breakdown = _apply_breakdown(
        variation,
        data.get("material_costs"),
        data.get("labor_costs"),
        data.get("additional_costs"),
        data.get("price_impact"),
    )
    variation.resources_and_costs = _text(data, "resources_and_costs") or _costs_narrative(currency, breakdown)
    variation.status = resolve_variation_status(workflow_status, None, None)

    db.session.add(variation)
    commit_or_conflict(f"variation {number}")
    current_app.logger.info("Created variation %s (price impact %s %s)", number, variation.price_impact, currency)
    return variation


def update_variation(variation_id: int, patch: dict) -> VariationRequest:
    """
    Edit an undecided variation.

    Any cost-breakdown list in the patch re-derives price_impact and, unless
    the patch carries its own narrative, resources_and_costs.
    """
    variation = get_or_404(VariationRequest, variation_id, "Variation")
    _require_undecided(variation, "edit")

    cleaned = validate_payload(
        model=VariationRequest,
        payload=_normalize_keys(patch),
        policy=VARIATION_UPDATE_POLICY,
        partial=True,
    )

    for field in ("work_types", "categories"):
        if field in cleaned:
            cleaned[field] = _tags(field, cleaned[field])
    if "attachments" in cleaned:
        cleaned["attachments"] = require_project_files(variation.project_id, cleaned["attachments"])
    if "currency" in cleaned:
        cleaned["currency"] = cleaned["currency"].upper()
    if "priority" in cleaned:
        cleaned["priority"] = cleaned["priority"].lower()
    if "time_impact" in cleaned:
        cleaned["time_impact"] = _time_impact(cleaned["time_impact"])

    breakdown_changed = any(f in cleaned for f in _BREAKDOWN_FIELDS) or "price_impact" in cleaned
    material = cleaned.pop("material_costs", variation.material_costs)
    labor = cleaned.pop("labor_costs", variation.labor_costs)
    additional = cleaned.pop("additional_costs", variation.additional_costs)
    client_price_impact = cleaned.pop("price_impact", variation.price_impact)

    for key, value in cleaned.items():
        setattr(variation, key, value)

    if breakdown_changed:
        breakdown = _apply_breakdown(variation, material, labor, additional, client_price_impact)
        if "resources_and_costs" not in cleaned:
            variation.resources_and_costs = _costs_narrative(variation.currency, breakdown)

    commit_or_conflict(f"variation {variation.number}")
    return variation


# =============================================================================
# DECISIONS
# =============================================================================

def _refresh_status(variation: VariationRequest) -> str:
    variation.status = resolve_variation_status(
        variation.workflow_status, variation.disposition, variation.client_decision
    )
    return variation.status


def submit_variation(variation_id: int) -> VariationRequest:
    """Send a Draft or Pending variation for decision (-> Submitted)."""
    variation = get_or_404(VariationRequest, variation_id, "Variation")
    if variation.client_decision is not None:
        raise LifecycleError(f"Variation {variation.number} has already been decided by the client")
    require_transition("variation", f"variation {variation.number}", variation.workflow_status, WORKFLOW_SUBMITTED)

    if variation.workflow_status != WORKFLOW_SUBMITTED:
        variation.workflow_status = WORKFLOW_SUBMITTED
        variation.submitted_at = utcnow()
        _refresh_status(variation)
        commit_or_conflict(f"variation {variation.number}")
        current_app.logger.info("Variation %s submitted", variation.number)
    return variation


def set_disposition(variation_id: int, disposition: str, reason: str | None = None, staff_user_id=None) -> VariationRequest:
    """
    Record the internal staff decision (Approve, Reject or Defer).

    Defer withdraws any earlier staff decision: the status falls back to the
    workflow status and decided_at / decided_by_user_id are cleared.
    """
    if disposition not in DISPOSITIONS:
        raise ValidationError(f"Invalid disposition '{disposition}'. Must be one of: {', '.join(DISPOSITIONS)}")

    variation = get_or_404(VariationRequest, variation_id, "Variation")
    if variation.client_decision is not None:
        raise LifecycleError(
            f"Variation {variation.number} was {variation.client_decision.lower()} by the client; "
            "the staff disposition can no longer change"
        )

    _require_unbilled(variation)

    staff_user = require_user(staff_user_id, "staff_user_id") if staff_user_id is not None else None

    now = utcnow()
    variation.disposition = disposition
    variation.disposition_reason = (reason or "").strip() or None
    variation.disposition_at = now
    variation.disposition_by_user_id = staff_user.id if staff_user else None

    if _refresh_status(variation) in DECIDED_STATUSES:
        variation.decided_at = now
        variation.decided_by_user_id = staff_user.id if staff_user else None
    else:
        variation.decided_at = None
        variation.decided_by_user_id = None

    commit_or_conflict(f"variation {variation.number}")
    current_app.logger.info("Variation %s disposition %s -> %s", variation.number, disposition, variation.status)
    return variation


def _require_unbilled(variation: VariationRequest) -> None:
    if variation.invoice_id is not None:
        raise LifecycleError(f"Variation {variation.number} has been billed; its decision can no longer change")


def _require_client_decidable(variation: VariationRequest) -> None:
    if variation.client_decision is not None:
        raise LifecycleError(
            f"Variation {variation.number} was already {variation.client_decision.lower()} by the client"
        )
    if variation.workflow_status == WORKFLOW_DRAFT:
        raise LifecycleError(f"Variation {variation.number} is a draft and cannot be decided by the client")


def client_approve(variation_id: int, comment: str | None = None) -> VariationRequest:
    """Client sign-off. Rejected when staff already rejected the variation."""
    variation = get_or_404(VariationRequest, variation_id, "Variation")
    _require_client_decidable(variation)
    if variation.disposition == DISPOSITION_REJECT:
        raise LifecycleError(f"Variation {variation.number} was rejected and cannot be approved by the client")

    variation.client_decision = STATUS_APPROVED
    variation.client_comment = (comment or "").strip()
    variation.decided_at = utcnow()
    variation.decided_by_user_id = None
    _refresh_status(variation)
    _auto_bill(variation)

    commit_or_conflict(f"variation {variation.number}")
    current_app.logger.info("Variation %s approved by client", variation.number)
    return variation


def client_decline(variation_id: int, comment: str) -> VariationRequest:
    """Client rejection; a comment explaining the decline is required."""
    if comment is None or not str(comment).strip():
        raise ValidationError("A comment is required when declining a variation")

    variation = get_or_404(VariationRequest, variation_id, "Variation")
    _require_client_decidable(variation)
    _require_unbilled(variation)

    variation.client_decision = STATUS_DECLINED
    variation.client_comment = str(comment).strip()
    variation.decided_at = utcnow()
    variation.decided_by_user_id = None
    _refresh_status(variation)

    commit_or_conflict(f"variation {variation.number}")
    current_app.logger.info("Variation %s declined by client", variation.number)
    return variation


# =============================================================================
# BILLING
# =============================================================================

def _cost_line(description: str, quantity, rate, line_total, tax_percent) -> dict:
    """
    Invoice line for one breakdown entry.

    Variation line totals are rounded per line, invoices round only the
    subtotal. An entry with sub-cent digits bills as quantity 1 at its rounded
    total so the invoice subtotal matches price_impact.
    """
    with localcontext(MONEY_CONTEXT):
        exact = safe_decimal(quantity) * safe_decimal(rate)
        rounded = safe_decimal(line_total)
        if exact == rounded or abs(exact) > MAX_INPUT:
            return {"description": description, "quantity": quantity, "rate": rate, "tax_percent": tax_percent}
    return {
        "description": f"{description} ({quantity} x {rate})",
        "quantity": 1,
        "rate": line_total,
        "tax_percent": tax_percent,
    }


def _invoice_lines(variation: VariationRequest, tax_percent) -> list[dict]:
    lines: list[dict] = []
    for item in variation.material_costs or []:
        lines.append(_cost_line(
            item.get("description") or "Materials",
            item.get("quantity"),
            item.get("unit_rate"),
            item.get("total"),
            tax_percent,
        ))
    for item in variation.labor_costs or []:
        lines.append(_cost_line(
            f"{item.get('description') or 'Labor'} (labor)",
            item.get("hours"),
            item.get("hourly_rate"),
            item.get("total"),
            tax_percent,
        ))
    for item in variation.additional_costs or []:
        label = ": ".join(part for part in (item.get("category"), item.get("description")) if part)
        lines.append({
            "description": label or "Additional costs",
            "quantity": 1,
            "rate": item.get("amount"),
            "tax_percent": tax_percent,
        })
    if not lines:
        lines.append({
            "description": f"{variation.number}: {variation.title or variation.change_description}",
            "quantity": 1,
            "rate": variation.price_impact,
            "tax_percent": tax_percent,
        })
    return lines


def _create_variation_invoice(variation: VariationRequest, issue_date=None, due_date=None, tax_percent=0) -> Invoice:
    issue_dt = coerce_datetime("issue_date", issue_date) if issue_date not in (None, "") else utcnow()
    if due_date in (None, ""):
        due_dt = issue_dt + timedelta(days=current_app.config["INVOICE_PAYMENT_TERMS_DAYS"])
    else:
        due_dt = coerce_datetime("due_date", due_date)

    invoice = invoice_service.create_invoice(
        variation.project_id,
        issue_dt,
        due_dt,
        currency=variation.currency,
        line_items=_invoice_lines(variation, tax_percent),
        notes=f"Billed from variation {variation.number}",
        commit=False,
    )
    db.session.flush()
    variation.invoice_id = invoice.id
    return invoice


def _auto_bill(variation: VariationRequest) -> None:
    if not current_app.config.get("AUTO_INVOICE_APPROVED_VARIATIONS"):
        return
    if variation.invoice_id is not None:
        return
    invoice = _create_variation_invoice(variation)
    current_app.logger.info("Auto-billed variation %s as invoice %s", variation.number, invoice.number)


def bill_variation(variation_id: int, issue_date=None, due_date=None, tax_percent=0) -> Invoice:
    """
    Create a Draft invoice from an Approved variation and link it.

    One invoice line per cost entry; a single summary line at price_impact
    when the variation has no breakdown. The invoice number and the link are
    committed together.
    """
    variation = get_or_404(VariationRequest, variation_id, "Variation")
    if variation.status != STATUS_APPROVED:
        raise LifecycleError(f"Variation {variation.number} is {variation.status}; only Approved variations can be billed")
    if variation.invoice_id is not None:
        raise ConflictError(f"Variation {variation.number} has already been billed")

    invoice = _create_variation_invoice(variation, issue_date, due_date, tax_percent)
    commit_or_conflict(f"invoice for variation {variation.number}")
    current_app.logger.info("Billed variation %s as invoice %s (%s)", variation.number, invoice.number, invoice.total)
    return invoice


# =============================================================================
# QUERIES / DELETION
# =============================================================================

def get_variation(variation_id: int) -> VariationRequest:
    return get_or_404(VariationRequest, variation_id, "Variation")


def list_variations(project_id: int | None = None, status: str | None = None) -> list[VariationRequest]:
    query = db.session.query(VariationRequest)
    if project_id is not None:
        query = query.filter(VariationRequest.project_id == project_id)
    if status:
        query = query.filter(VariationRequest.status == status)
    return query.order_by(VariationRequest.created_at.desc(), VariationRequest.id.desc()).all()


def delete_variation(variation_id: int) -> None:
    """Delete an undecided variation. Decided ones are kept for the record."""
    variation = get_or_404(VariationRequest, variation_id, "Variation")
    _require_undecided(variation, "delete")
    db.session.delete(variation)
    commit_or_conflict(f"variation {variation.number}")
    current_app.logger.info("Deleted variation %s", variation.number)
