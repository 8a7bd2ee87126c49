from __future__ import annotations

from ..extensions import db
from firelynx.time_utils import to_utc_z


class SequenceCounter(db.Model):
    """
    Atomic per-year document sequences.

    WHY: Document numbers (INV-2026-0001, VR-2026-0001, ...) must be unique
    across the whole system and monotonic within a calendar year. One row per
    year carries an independent counter for each document kind.

    RULES:
    - Exactly one row per year (unique key on year)
    - Row created lazily by the first document of the year
    - Counters only ever increase; issued values are never reused
    - Rows are never deleted in normal operation
    """
    __tablename__ = "document_counters"
    __table_args__ = (
        db.UniqueConstraint("year", name="uq_document_counters_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    invoice_counter = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    variation_counter = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    ticket_counter = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    approval_counter = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "invoice_counter": self.invoice_counter,
            "variation_counter": self.variation_counter,
            "ticket_counter": self.ticket_counter,
            "approval_counter": self.approval_counter,
            "updated_at": to_utc_z(self.updated_at),
        }


class Invoice(db.Model):
    """
    Client invoice for a project.

    LIFECYCLE:
    1. Draft: editable, line items and dates may change
    2. Sent: issued to the client (sent_at stamped)
    3. Paid: payment recorded (paid_at stamped), immutable

    MONEY: subtotal, tax_total and total are fixed-point decimal strings
    derived from line_items on every write. Client-submitted aggregates are
    never stored.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("number", name="uq_invoices_number"),
        db.Index("ix_invoices_project_status", "project_id", "status"),
        db.Index("ix_invoices_due_date", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)

    # Human-readable document number (e.g., "INV-2026-0001")
    number = db.Column(db.String(50), nullable=False)

    issue_date = db.Column(db.DateTime(timezone=True), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="USD")

    # [{description, quantity, rate, tax_percent, amount}]
    line_items = db.Column(db.JSON, nullable=False, default=list)

    subtotal = db.Column(db.String(64), nullable=False, default="0.00")
    tax_total = db.Column(db.String(64), nullable=False, default="0.00")
    total = db.Column(db.String(64), nullable=False, default="0.00")

    status = db.Column(db.String(16), nullable=False, default="Draft", index=True)  # Draft, Sent, Paid
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    project = db.relationship("Project", backref=db.backref("invoices", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "number": self.number,
            "issue_date": to_utc_z(self.issue_date),
            "due_date": to_utc_z(self.due_date),
            "currency": self.currency,
            "line_items": list(self.line_items or []),
            "subtotal": self.subtotal,
            "tax_total": self.tax_total,
            "total": self.total,
            "status": self.status,
            "sent_at": to_utc_z(self.sent_at),
            "paid_at": to_utc_z(self.paid_at),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class VariationRequest(db.Model):
    """
    Change-order ("variation") request raised against a project.

    DECISION MODEL:
    - workflow_status: Draft, Pending or Submitted (before anyone decides)
    - disposition: internal staff decision (Approve, Reject, Defer)
    - client_decision: the client's own sign-off (Approved, Declined)

    status is never written directly; it is recomputed from the three fields
    above by variation_service.resolve_variation_status() so that the staff and
    client tracks cannot overwrite each other.

    decided_by_user_id is NULL when the client made the deciding call.
    """
    __tablename__ = "variation_requests"
    __table_args__ = (
        db.UniqueConstraint("number", name="uq_variation_requests_number"),
        db.Index("ix_variation_requests_project_status", "project_id", "status"),
        db.Index("ix_variation_requests_submitted_at", "submitted_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)

    # Human-readable document number (e.g., "VR-2026-0001")
    number = db.Column(db.String(50), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    change_requestor = db.Column(db.String(255), nullable=False)
    change_reference = db.Column(db.String(255), nullable=True)
    change_area = db.Column(db.String(255), nullable=False)
    title = db.Column(db.String(255), nullable=True)
    priority = db.Column(db.String(50), nullable=False, default="medium", index=True)

    work_types = db.Column(db.JSON, nullable=False, default=list)
    categories = db.Column(db.JSON, nullable=False, default=list)

    change_description = db.Column(db.Text, nullable=False)
    reason_description = db.Column(db.Text, nullable=False)
    technical_changes = db.Column(db.Text, nullable=True)
    resources_and_costs = db.Column(db.Text, nullable=True)

    # Cost breakdown
    material_costs = db.Column(db.JSON, nullable=False, default=list)    # [{description, quantity, unit_rate, total}]
    labor_costs = db.Column(db.JSON, nullable=False, default=list)       # [{description, hours, hourly_rate, total}]
    additional_costs = db.Column(db.JSON, nullable=False, default=list)  # [{category, description, amount}]
    attachments = db.Column(db.JSON, nullable=False, default=list)       # file asset ids
    currency = db.Column(db.String(10), nullable=False, default="AED")
    price_impact = db.Column(db.String(64), nullable=False, default="0.00")
    time_impact = db.Column(db.Integer, nullable=False, default=0)  # days

    # Decision tracks
    workflow_status = db.Column(db.String(16), nullable=False, default="Pending")  # Draft, Pending, Submitted
    disposition = db.Column(db.String(16), nullable=True)  # Approve, Reject, Defer
    disposition_reason = db.Column(db.Text, nullable=True)
    disposition_at = db.Column(db.DateTime(timezone=True), nullable=True)
    disposition_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    client_decision = db.Column(db.String(16), nullable=True)  # Approved, Declined
    status = db.Column(db.String(16), nullable=False, default="Pending", index=True)

    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    client_comment = db.Column(db.Text, nullable=True)

    # Set when an approved variation has been billed
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    project = db.relationship("Project", backref=db.backref("variation_requests", lazy=True))
    invoice = db.relationship("Invoice", foreign_keys=[invoice_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "number": self.number,
            "date": to_utc_z(self.date),
            "change_requestor": self.change_requestor,
            "change_reference": self.change_reference,
            "change_area": self.change_area,
            "title": self.title,
            "priority": self.priority,
            "work_types": list(self.work_types or []),
            "categories": list(self.categories or []),
            "change_description": self.change_description,
            "reason_description": self.reason_description,
            "technical_changes": self.technical_changes,
            "resources_and_costs": self.resources_and_costs,
            "material_costs": list(self.material_costs or []),
            "labor_costs": list(self.labor_costs or []),
            "additional_costs": list(self.additional_costs or []),
            "attachments": list(self.attachments or []),
            "currency": self.currency,
            "price_impact": self.price_impact,
            "time_impact": self.time_impact,
            "workflow_status": self.workflow_status,
            "disposition": self.disposition,
            "disposition_reason": self.disposition_reason,
            "disposition_at": to_utc_z(self.disposition_at),
            "disposition_by_user_id": self.disposition_by_user_id,
            "client_decision": self.client_decision,
            "status": self.status,
            "submitted_at": to_utc_z(self.submitted_at),
            "decided_at": to_utc_z(self.decided_at),
            "decided_by_user_id": self.decided_by_user_id,
            "client_comment": self.client_comment,
            "invoice_id": self.invoice_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Ticket(db.Model):
    """
    Support ticket raised on a project.

    LIFECYCLE: Open <-> In Progress -> Resolved -> Closed, Closed -> Open (reopen).
    The requester is fixed at creation; the assignee can change at any time.
    """
    __tablename__ = "tickets"
    __table_args__ = (
        db.UniqueConstraint("number", name="uq_tickets_number"),
        db.Index("ix_tickets_project_status", "project_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)

    # Human-readable document number (e.g., "TK-2026-0001")
    number = db.Column(db.String(50), nullable=False)

    subject = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(100), nullable=False, index=True)
    priority = db.Column(db.String(50), nullable=False, default="Medium", index=True)
    status = db.Column(db.String(16), nullable=False, default="Open", index=True)

    requester_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    assignee_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    attachments = db.Column(db.JSON, nullable=False, default=list)  # file asset ids

    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    project = db.relationship("Project", backref=db.backref("tickets", lazy=True))
    requester = db.relationship("User", foreign_keys=[requester_user_id])
    assignee = db.relationship("User", foreign_keys=[assignee_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "number": self.number,
            "subject": self.subject,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "requester_user_id": self.requester_user_id,
            "requester_name": self.requester.name if self.requester else None,
            "assignee_user_id": self.assignee_user_id,
            "assignee_name": self.assignee.name if self.assignee else None,
            "attachments": list(self.attachments or []),
            "resolved_at": to_utc_z(self.resolved_at),
            "closed_at": to_utc_z(self.closed_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class ApprovalPacket(db.Model):
    """
    Bundle of files sent to the client for sign-off.

    LIFECYCLE: Pending -> Sent -> Approved | Declined

    status is set by packet-level actions only (send, client decision,
    aggregate-and-close). Individual ApprovalItem decisions are authoritative
    for their file and do not move the packet status on their own.
    """
    __tablename__ = "approval_packets"
    __table_args__ = (
        db.UniqueConstraint("number", name="uq_approval_packets_number"),
        db.Index("ix_approval_packets_project_status", "project_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)

    # Human-readable document number (e.g., "AP-2026-0001")
    number = db.Column(db.String(50), nullable=False)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="Pending", index=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    client_comment = db.Column(db.Text, nullable=True)
    signature_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    project = db.relationship("Project", backref=db.backref("approval_packets", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "project_id": self.project_id,
            "number": self.number,
            "title": self.title,
            "description": self.description,
            "due_date": to_utc_z(self.due_date),
            "status": self.status,
            "sent_at": to_utc_z(self.sent_at),
            "decided_at": to_utc_z(self.decided_at),
            "client_comment": self.client_comment,
            "signature_name": self.signature_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in sorted(self.items, key=lambda i: i.id)]
        return data


class ApprovalItem(db.Model):
    """One file's individual accept/decline decision within an approval packet."""
    __tablename__ = "approval_items"
    __table_args__ = (
        db.UniqueConstraint("packet_id", "file_asset_id", name="uq_approval_items_packet_file"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    packet_id = db.Column(db.Integer, db.ForeignKey("approval_packets.id"), nullable=False, index=True)
    file_asset_id = db.Column(db.Integer, db.ForeignKey("file_assets.id"), nullable=False, index=True)

    decision = db.Column(db.String(16), nullable=False, default="Pending")  # Pending, Accepted, Declined
    comment = db.Column(db.Text, nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    packet = db.relationship(
        "ApprovalPacket",
        backref=db.backref("items", lazy=True, cascade="all, delete-orphan"),
    )
    file_asset = db.relationship("FileAsset")

    def to_dict(self) -> dict:
        asset = self.file_asset
        return {
            "id": self.id,
            "packet_id": self.packet_id,
            "file_asset_id": self.file_asset_id,
            "decision": self.decision,
            "comment": self.comment,
            "decided_at": to_utc_z(self.decided_at),
            "filename": asset.filename if asset else None,
            "original_name": asset.original_name if asset else None,
            "url": asset.url if asset else None,
            "content_type": asset.content_type if asset else None,
        }
