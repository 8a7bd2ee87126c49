# Overview: Service-layer operations for the unified document index across all four kinds.

from __future__ import annotations

from ..extensions import db
from ..models import ApprovalPacket, Invoice, Ticket, VariationRequest
from ..validation import NotFoundError, ValidationError
from firelynx.time_utils import to_utc_z


# kind -> (model, number prefix)
DOCUMENT_TYPES = {
    "invoice": (Invoice, "INV"),
    "variation": (VariationRequest, "VR"),
    "ticket": (Ticket, "TK"),
    "approval": (ApprovalPacket, "AP"),
}

_KIND_BY_PREFIX = {prefix: kind for kind, (_, prefix) in DOCUMENT_TYPES.items()}


def _title_of(kind: str, doc) -> str | None:
    if kind == "invoice":
        return f"{doc.currency} {doc.total}"
    if kind == "variation":
        return doc.title or doc.change_description
    if kind == "ticket":
        return doc.subject
    return doc.title


def _document_to_index_row(kind: str, doc) -> dict:
    return {
        "id": doc.id,
        "kind": kind,
        "number": doc.number,
        "project_id": doc.project_id,
        "status": doc.status,
        "title": _title_of(kind, doc),
        "created_at": to_utc_z(doc.created_at),
        "_sort": doc.created_at,
    }


def kind_for_number(number: str) -> str:
    """Map 'INV-2026-0001' to 'invoice'. Unknown prefixes are a ValidationError."""
    prefix = (number or "").strip().split("-", 1)[0].upper()
    kind = _KIND_BY_PREFIX.get(prefix)
    if kind is None:
        raise ValidationError(f"Unrecognized document number '{number}'")
    return kind


def find_by_number(number: str):
    """
    Resolve a formatted document number to its row.

    Returns (kind, document). Raises NotFoundError when no document carries
    the number.
    """
    kind = kind_for_number(number)
    model, _ = DOCUMENT_TYPES[kind]
    normalized = number.strip().upper()
    doc = db.session.query(model).filter(model.number == normalized).first()
    if doc is None:
        raise NotFoundError(f"Document {normalized} not found")
    return kind, doc


def list_documents(
    *,
    project_id: int | None = None,
    kind: str | None = None,
    status: str | None = None,
    from_date=None,
    to_date=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[dict], int]:
    """
    List documents across kinds with common filters, newest first.
    """
    if kind is not None and kind not in DOCUMENT_TYPES:
        raise ValidationError(f"Unknown document kind '{kind}'. Must be one of: {', '.join(DOCUMENT_TYPES)}")

    kinds = [kind] if kind else list(DOCUMENT_TYPES.keys())
    rows: list[dict] = []

    for dkind in kinds:
        model, _ = DOCUMENT_TYPES[dkind]
        query = db.session.query(model)
        if project_id is not None:
            query = query.filter(model.project_id == project_id)
        if status:
            query = query.filter(model.status == status)
        if from_date:
            query = query.filter(model.created_at >= from_date)
        if to_date:
            query = query.filter(model.created_at <= to_date)

        docs = query.order_by(model.id.desc()).all()
        rows.extend(_document_to_index_row(dkind, doc) for doc in docs)

    rows.sort(key=lambda r: (r["_sort"] is not None, r["_sort"], r["id"]), reverse=True)
    for row in rows:
        row.pop("_sort")
    total = len(rows)

    if offset < 0:
        offset = 0
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    return rows[offset: offset + limit], total


def get_document(kind: str, doc_id: int) -> dict:
    entry = DOCUMENT_TYPES.get(kind)
    if not entry:
        raise ValidationError(f"Unknown document kind '{kind}'")

    model, _ = entry
    doc = db.session.get(model, doc_id)
    if doc is None:
        raise NotFoundError(f"{kind.capitalize()} {doc_id} not found")
    return doc.to_dict()
