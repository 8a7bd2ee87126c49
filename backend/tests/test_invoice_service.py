# Overview: Pytest coverage for the invoice lifecycle (create, edit, send, pay, delete).

import pytest

from firelynx.models import Invoice
from firelynx.services import invoice_service
from firelynx.services.lifecycle_service import LifecycleError
from firelynx.time_utils import current_year
from firelynx.validation import ConflictError, NotFoundError, ValidationError


HAPPY_LINES = [
    {"description": "Concept design", "quantity": 1, "rate": 2500, "tax_percent": 8.25},
    {"description": "Site supervision", "quantity": 8, "rate": 150, "tax_percent": 8.25},
]


def _create(project, **overrides):
    params = {
        "issue_date": "2026-03-01",
        "due_date": "2026-03-31",
        "line_items": HAPPY_LINES,
    }
    params.update(overrides)
    return invoice_service.create_invoice(project.id, **params)


class TestCreateInvoice:
    def test_happy_path(self, db_session, project):
        invoice = _create(project)

        assert invoice.number == f"INV-{current_year()}-0001"
        assert invoice.status == "Draft"
        assert invoice.subtotal == "3700.00"
        assert invoice.tax_total == "305.25"
        assert invoice.total == "4005.25"
        assert invoice.currency == "USD"
        assert [item["amount"] for item in invoice.line_items] == ["2500.00", "1200.00"]

    def test_numbers_increase(self, db_session, project):
        first = _create(project)
        second = _create(project)
        year = current_year()
        assert (first.number, second.number) == (f"INV-{year}-0001", f"INV-{year}-0002")

    @pytest.mark.parametrize("missing", ["project_id", "issue_date", "due_date"])
    def test_required_fields(self, db_session, project, missing):
        args = {"project_id": project.id, "issue_date": "2026-03-01", "due_date": "2026-03-31"}
        args[missing] = None
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(args["project_id"], args["issue_date"], args["due_date"])
        assert db_session.query(Invoice).count() == 0

    def test_unknown_project(self, db_session):
        with pytest.raises(NotFoundError):
            invoice_service.create_invoice(9999, "2026-03-01", "2026-03-31")

    def test_due_before_issue_rejected(self, db_session, project):
        with pytest.raises(ValidationError):
            _create(project, issue_date="2026-04-01", due_date="2026-03-01")

    def test_failed_create_does_not_burn_number(self, db_session, project):
        with pytest.raises(ValidationError):
            _create(project, due_date="not-a-date")
        invoice = _create(project)
        assert invoice.number.endswith("-0001")

    def test_currency_defaults_from_config_and_uppercases(self, db_session, project):
        assert _create(project, currency="aed").currency == "AED"


class TestUpdateInvoice:
    def test_draft_line_items_recomputed(self, db_session, project):
        invoice = _create(project)
        updated = invoice_service.update_invoice(invoice.id, {
            "line_items": [{"description": "Revised", "quantity": 2, "rate": "100", "tax_percent": 10}],
        })
        assert (updated.subtotal, updated.tax_total, updated.total) == ("200.00", "20.00", "220.00")

    def test_status_is_not_writable(self, db_session, project):
        invoice = _create(project)
        with pytest.raises(ValidationError):
            invoice_service.update_invoice(invoice.id, {"status": "Paid"})

    def test_sent_invoice_only_due_date_and_notes(self, db_session, project):
        invoice = _create(project)
        invoice_service.send_invoice(invoice.id)

        updated = invoice_service.update_invoice(invoice.id, {"notes": "Net 45 agreed", "due_date": "2026-04-15"})
        assert updated.notes == "Net 45 agreed"

        with pytest.raises(LifecycleError):
            invoice_service.update_invoice(invoice.id, {"line_items": []})

    def test_paid_invoice_is_immutable(self, db_session, project):
        invoice = _create(project)
        invoice_service.send_invoice(invoice.id)
        invoice_service.record_payment(invoice.id)
        with pytest.raises(LifecycleError):
            invoice_service.update_invoice(invoice.id, {"notes": "late edit"})


class TestInvoiceTransitions:
    def test_send_then_pay(self, db_session, project):
        invoice = _create(project)

        sent = invoice_service.send_invoice(invoice.id)
        assert sent.status == "Sent"
        assert sent.sent_at is not None

        paid = invoice_service.record_payment(invoice.id, paid_at="2026-03-20T10:00:00Z")
        assert paid.status == "Paid"
        assert paid.paid_at.year == 2026 and paid.paid_at.day == 20

    def test_paying_a_draft_is_rejected(self, db_session, project):
        invoice = _create(project)
        with pytest.raises(LifecycleError):
            invoice_service.record_payment(invoice.id)
        assert invoice_service.get_invoice(invoice.id).status == "Draft"

    def test_no_reverse_transitions(self, db_session, project):
        invoice = _create(project)
        invoice_service.send_invoice(invoice.id)
        invoice_service.record_payment(invoice.id)
        with pytest.raises(LifecycleError):
            invoice_service.send_invoice(invoice.id)

    def test_send_is_idempotent(self, db_session, project):
        invoice = _create(project)
        first = invoice_service.send_invoice(invoice.id).sent_at
        assert invoice_service.send_invoice(invoice.id).sent_at == first

    def test_lifecycle_error_is_a_conflict(self):
        assert issubclass(LifecycleError, ConflictError)
        assert LifecycleError.http_status == 409


class TestInvoiceQueries:
    def test_list_by_project_and_status(self, db_session, project, other_project):
        a = _create(project)
        _create(project)
        _create(other_project)
        invoice_service.send_invoice(a.id)

        assert len(invoice_service.list_invoices()) == 3
        assert len(invoice_service.list_invoices(project_id=project.id)) == 2
        sent = invoice_service.list_invoices(project_id=project.id, status="Sent")
        assert [inv.id for inv in sent] == [a.id]

    def test_delete_draft_only(self, db_session, project):
        draft = _create(project)
        sent = _create(project)
        invoice_service.send_invoice(sent.id)

        invoice_service.delete_invoice(draft.id)
        with pytest.raises(NotFoundError):
            invoice_service.get_invoice(draft.id)

        with pytest.raises(LifecycleError):
            invoice_service.delete_invoice(sent.id)
