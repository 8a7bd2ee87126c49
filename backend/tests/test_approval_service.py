# Overview: Pytest coverage for approval packets (packet status vs per-file decisions).

"""
Approval Packet Tests

Proves that:
1. A packet gets one Pending item per project file
2. Item decisions never move the packet status on their own
3. A packet decision only fills in items that are still Pending
4. Closing aggregates item decisions into Approved or Declined
"""

import pytest

from firelynx.models import ApprovalItem
from firelynx.services import approval_service
from firelynx.services.lifecycle_service import LifecycleError
from firelynx.time_utils import current_year
from firelynx.validation import NotFoundError, ValidationError


def _packet(project, files, **overrides):
    params = {
        "title": "Kitchen drawings round 2",
        "due_date": "2026-06-30",
        "file_asset_ids": [f.id for f in files],
    }
    params.update(overrides)
    return approval_service.create_approval_packet(project.id, **params)


def _sent_packet(project, files):
    packet = _packet(project, files)
    return approval_service.send_approval_packet(packet.id)


class TestCreatePacket:
    def test_items_per_file(self, db_session, project, project_files):
        packet = _packet(project, project_files, description="Please review the elevations")

        assert packet.number == f"AP-{current_year()}-0001"
        assert packet.status == "Pending"
        assert sorted(i.file_asset_id for i in packet.items) == sorted(f.id for f in project_files)
        assert {i.decision for i in packet.items} == {"Pending"}

    def test_foreign_file_rejected_and_nothing_saved(self, db_session, project, project_files, foreign_file):
        with pytest.raises(ValidationError):
            _packet(project, project_files + [foreign_file])
        assert db_session.query(ApprovalItem).count() == 0

    def test_due_date_required(self, db_session, project, project_files):
        with pytest.raises(ValidationError):
            _packet(project, project_files, due_date=None)

    def test_to_dict_includes_file_metadata(self, db_session, project, project_files):
        data = _packet(project, project_files).to_dict()
        assert data["items"][0]["original_name"] == "floor-plan.pdf"


class TestPacketDecision:
    def test_approve_marks_pending_items(self, db_session, project, project_files):
        packet = _sent_packet(project, project_files)
        decided = approval_service.decide_approval_packet(packet.id, "Approved", signature_name="Layla")

        assert decided.status == "Approved"
        assert decided.signature_name == "Layla"
        assert decided.decided_at is not None
        assert {i.decision for i in decided.items} == {"Accepted"}

    def test_decision_keeps_individual_item_decisions(self, db_session, project, project_files):
        packet = _sent_packet(project, project_files)
        declined_item = packet.items[0]
        approval_service.decide_approval_item(packet.id, declined_item.id, "Declined", "Wrong finish")

        approval_service.decide_approval_packet(packet.id, "Approved")
        decisions = {i.id: i.decision for i in approval_service.get_approval_packet(packet.id).items}
        assert decisions[declined_item.id] == "Declined"
        assert sorted(decisions.values()) == ["Accepted", "Declined"]

    def test_decline_requires_comment(self, db_session, project, project_files):
        packet = _sent_packet(project, project_files)
        with pytest.raises(ValidationError):
            approval_service.decide_approval_packet(packet.id, "Declined")

        declined = approval_service.decide_approval_packet(packet.id, "Declined", comment="Redo lighting")
        assert declined.client_comment == "Redo lighting"
        assert {i.decision for i in declined.items} == {"Declined"}

    def test_pending_packet_cannot_be_decided(self, db_session, project, project_files):
        packet = _packet(project, project_files)
        with pytest.raises(LifecycleError):
            approval_service.decide_approval_packet(packet.id, "Approved")

    def test_decided_packet_is_final(self, db_session, project, project_files):
        packet = _sent_packet(project, project_files)
        approval_service.decide_approval_packet(packet.id, "Approved")
        with pytest.raises(LifecycleError):
            approval_service.decide_approval_packet(packet.id, "Declined", comment="Too late")

    def test_invalid_decision(self, db_session, project, project_files):
        packet = _sent_packet(project, project_files)
        with pytest.raises(ValidationError):
            approval_service.decide_approval_packet(packet.id, "Accepted")


class TestItemDecisions:
    def test_item_decision_leaves_packet_sent(self, db_session, project, project_files):
        packet = _sent_packet(project, project_files)
        first, second = packet.items

        approval_service.decide_approval_item(packet.id, first.id, "Accepted")
        approval_service.decide_approval_item(packet.id, second.id, "Declined", "Change tiles")

        reloaded = approval_service.get_approval_packet(packet.id)
        assert reloaded.status == "Sent"
        assert reloaded.decided_at is None

    def test_approved_is_read_as_accepted(self, db_session, project, project_files):
        packet = _sent_packet(project, project_files)
        item = approval_service.decide_approval_item(packet.id, packet.items[0].id, "Approved")
        assert item.decision == "Accepted"

    def test_item_of_another_packet(self, db_session, project, project_files):
        first = _sent_packet(project, project_files)
        second = _sent_packet(project, project_files)
        with pytest.raises(NotFoundError):
            approval_service.decide_approval_item(first.id, second.items[0].id, "Accepted")

    def test_only_while_sent(self, db_session, project, project_files):
        packet = _packet(project, project_files)
        with pytest.raises(LifecycleError):
            approval_service.decide_approval_item(packet.id, packet.items[0].id, "Accepted")


class TestClosePacket:
    def test_all_accepted_closes_approved(self, db_session, project, project_files):
        packet = _sent_packet(project, project_files)
        for item in packet.items:
            approval_service.decide_approval_item(packet.id, item.id, "Accepted")

        closed = approval_service.close_approval_packet(packet.id, signature_name="Layla")
        assert closed.status == "Approved"
        assert closed.client_comment is None

    def test_any_declined_closes_declined(self, db_session, project, project_files):
        packet = _sent_packet(project, project_files)
        first, second = packet.items
        approval_service.decide_approval_item(packet.id, first.id, "Accepted")
        approval_service.decide_approval_item(packet.id, second.id, "Declined", "Wrong grout")

        closed = approval_service.close_approval_packet(packet.id)
        assert closed.status == "Declined"
        assert closed.client_comment == "1 of 2 item(s) declined"

    def test_undecided_items_block_close(self, db_session, project, project_files):
        packet = _sent_packet(project, project_files)
        approval_service.decide_approval_item(packet.id, packet.items[0].id, "Accepted")
        with pytest.raises(LifecycleError):
            approval_service.close_approval_packet(packet.id)

    def test_empty_packet_cannot_close(self, db_session, project):
        packet = approval_service.create_approval_packet(project.id, "Empty", "2026-06-30")
        approval_service.send_approval_packet(packet.id)
        with pytest.raises(LifecycleError):
            approval_service.close_approval_packet(packet.id)


class TestPacketQueries:
    def test_list_and_delete(self, db_session, project, project_files):
        pending = _packet(project, project_files)
        sent = _sent_packet(project, project_files)

        assert len(approval_service.list_approval_packets(project_id=project.id)) == 2
        assert [p.id for p in approval_service.list_approval_packets(status="Sent")] == [sent.id]

        approval_service.delete_approval_packet(pending.id)
        assert db_session.query(ApprovalItem).filter_by(packet_id=pending.id).count() == 0
        with pytest.raises(LifecycleError):
            approval_service.delete_approval_packet(sent.id)
