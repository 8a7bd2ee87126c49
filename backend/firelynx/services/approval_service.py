"""
Approval Packet Service

A packet bundles project files the client must sign off. Each file gets an
ApprovalItem with its own decision.

PACKET STATUS vs ITEM DECISIONS:
    Packet status is an independently-set field. It moves only through
    packet-level actions:

        send_approval_packet()    Pending -> Sent
        decide_approval_packet()  Sent -> Approved | Declined  (client decision)
        close_approval_packet()   Sent -> Approved | Declined  (aggregate of items)

    decide_approval_item() records one file's decision and never touches the
    packet status. A packet with one Accepted and one Declined item stays Sent
    until someone closes or decides it.

    A packet-level decision marks only items that are still Pending; decisions
    already made per item are kept.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import ApprovalItem, ApprovalPacket
from ..validation import NotFoundError, ValidationError, coerce_datetime, require_fields
from . import sequence_service
from .concurrency import commit_or_conflict, get_or_404
from .lifecycle_service import LifecycleError, require_transition, validate_status
from .project_service import require_project, require_project_files
from firelynx.time_utils import utcnow


PACKET_STATUS_PENDING = "Pending"
PACKET_STATUS_SENT = "Sent"
PACKET_STATUS_APPROVED = "Approved"
PACKET_STATUS_DECLINED = "Declined"

ITEM_PENDING = "Pending"
ITEM_ACCEPTED = "Accepted"
ITEM_DECLINED = "Declined"

# Accepted decision spellings for a single item
_ITEM_DECISIONS = {
    "Accepted": ITEM_ACCEPTED,
    "Approved": ITEM_ACCEPTED,
    "Declined": ITEM_DECLINED,
}

# Packet decision -> item decision
_PACKET_TO_ITEM = {
    PACKET_STATUS_APPROVED: ITEM_ACCEPTED,
    PACKET_STATUS_DECLINED: ITEM_DECLINED,
}


def create_approval_packet(project_id, title: str, due_date, file_asset_ids=None, description: str | None = None) -> ApprovalPacket:
    """
    Create a Pending packet with one Pending item per file asset.

    Every file must belong to the packet's project. The packet, its items and
    its AP number are committed together.
    """
    require_fields({"project_id": project_id, "title": title, "due_date": due_date}, ["project_id", "title", "due_date"])

    title = str(title).strip()
    if len(title) > 255:
        raise ValidationError("title exceeds max length 255")
    due_dt = coerce_datetime("due_date", due_date)

    project = require_project(project_id)
    ids = require_project_files(project.id, file_asset_ids)

    number = sequence_service.allocate_document_number("approval")
    packet = ApprovalPacket(
        project_id=project.id,
        number=number,
        title=title,
        description=(description or "").strip() or None,
        due_date=due_dt,
        status=PACKET_STATUS_PENDING,
    )
    for asset_id in ids:
        packet.items.append(ApprovalItem(file_asset_id=asset_id, decision=ITEM_PENDING))

    db.session.add(packet)
    commit_or_conflict(f"approval packet {number}")
    current_app.logger.info("Created approval packet %s with %d item(s)", number, len(ids))
    return packet


def send_approval_packet(packet_id: int) -> ApprovalPacket:
    """Issue the packet to the client (Pending -> Sent)."""
    packet = get_or_404(ApprovalPacket, packet_id, "Approval packet")
    require_transition("approval", f"approval packet {packet.number}", packet.status, PACKET_STATUS_SENT)

    if packet.status != PACKET_STATUS_SENT:
        packet.status = PACKET_STATUS_SENT
        packet.sent_at = utcnow()
        commit_or_conflict(f"approval packet {packet.number}")
        current_app.logger.info("Approval packet %s sent", packet.number)
    return packet


def _close(packet: ApprovalPacket, status: str, comment: str | None, signature_name: str | None) -> None:
    packet.status = status
    packet.decided_at = utcnow()
    packet.client_comment = comment
    packet.signature_name = signature_name


def decide_approval_packet(packet_id: int, decision: str, comment: str | None = None, signature_name: str | None = None) -> ApprovalPacket:
    """
    Record the client's decision on the packet as a whole.

    Declining requires a comment. Items still Pending take the packet decision.
    """
    if decision not in _PACKET_TO_ITEM:
        raise ValidationError("Invalid decision. Must be 'Approved' or 'Declined'")
    comment = (comment or "").strip() or None
    if decision == PACKET_STATUS_DECLINED and not comment:
        raise ValidationError("A comment is required when declining an approval")

    packet = get_or_404(ApprovalPacket, packet_id, "Approval packet")
    require_transition("approval", f"approval packet {packet.number}", packet.status, decision)
    if packet.status == decision:
        return packet

    now = utcnow()
    item_decision = _PACKET_TO_ITEM[decision]
    for item in packet.items:
        if item.decision == ITEM_PENDING:
            item.decision = item_decision
            item.comment = comment
            item.decided_at = now

    _close(packet, decision, comment, (signature_name or "").strip() or None)
    commit_or_conflict(f"approval packet {packet.number}")
    current_app.logger.info("Approval packet %s %s by client", packet.number, decision.lower())
    return packet


def decide_approval_item(packet_id: int, item_id: int, decision: str, comment: str | None = None) -> ApprovalItem:
    """
    Record one file's decision (Accepted or Declined; 'Approved' is read as Accepted).

    Only while the packet is Sent. Items may be re-decided until the packet
    closes. Packet status is not changed.
    """
    normalized = _ITEM_DECISIONS.get(decision)
    if normalized is None:
        raise ValidationError("Invalid decision. Must be 'Accepted' or 'Declined'")

    packet = get_or_404(ApprovalPacket, packet_id, "Approval packet")
    if packet.status != PACKET_STATUS_SENT:
        raise LifecycleError(
            f"Approval packet {packet.number} is {packet.status}; items can only be decided while it is Sent"
        )

    item = db.session.get(ApprovalItem, item_id)
    if item is None or item.packet_id != packet.id:
        raise NotFoundError(f"Approval item {item_id} not found in packet {packet.number}")

    item.decision = normalized
    item.comment = (comment or "").strip() or None
    item.decided_at = utcnow()
    commit_or_conflict(f"approval item {item_id}")
    current_app.logger.info("Approval packet %s item %s %s", packet.number, item_id, normalized.lower())
    return item


def close_approval_packet(packet_id: int, signature_name: str | None = None) -> ApprovalPacket:
    """
    Aggregate item decisions and close the packet.

    Every item must be decided. Approved when all items are Accepted,
    Declined otherwise. A packet without items cannot be closed this way.
    """
    packet = get_or_404(ApprovalPacket, packet_id, "Approval packet")
    if packet.status != PACKET_STATUS_SENT:
        raise LifecycleError(f"Approval packet {packet.number} is {packet.status}; only Sent packets can be closed")
    if not packet.items:
        raise LifecycleError(f"Approval packet {packet.number} has no items to aggregate")

    pending = [item.id for item in packet.items if item.decision == ITEM_PENDING]
    if pending:
        raise LifecycleError(
            f"Approval packet {packet.number} has undecided items: {', '.join(str(i) for i in sorted(pending))}"
        )

    declined = [item for item in packet.items if item.decision == ITEM_DECLINED]
    status = PACKET_STATUS_DECLINED if declined else PACKET_STATUS_APPROVED
    comment = f"{len(declined)} of {len(packet.items)} item(s) declined" if declined else None

    _close(packet, status, comment, (signature_name or "").strip() or None)
    commit_or_conflict(f"approval packet {packet.number}")
    current_app.logger.info("Approval packet %s closed as %s", packet.number, status)
    return packet


def get_approval_packet(packet_id: int) -> ApprovalPacket:
    return get_or_404(ApprovalPacket, packet_id, "Approval packet")


def list_approval_packets(project_id: int | None = None, status: str | None = None) -> list[ApprovalPacket]:
    query = db.session.query(ApprovalPacket)
    if project_id is not None:
        query = query.filter(ApprovalPacket.project_id == project_id)
    if status:
        validate_status("approval", status)
        query = query.filter(ApprovalPacket.status == status)
    return query.order_by(ApprovalPacket.created_at.desc(), ApprovalPacket.id.desc()).all()


def delete_approval_packet(packet_id: int) -> None:
    """Delete a packet that has not been sent. Its items go with it."""
    packet = get_or_404(ApprovalPacket, packet_id, "Approval packet")
    if packet.status != PACKET_STATUS_PENDING:
        raise LifecycleError(f"Only Pending approval packets can be deleted; {packet.number} is {packet.status}")
    db.session.delete(packet)
    commit_or_conflict(f"approval packet {packet.number}")
    current_app.logger.info("Deleted approval packet %s", packet.number)
