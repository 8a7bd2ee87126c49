# Overview: Pytest coverage for variation requests (two decision tracks and billing).

"""
Variation Request Tests

Proves that:
1. Both payload formats create a numbered variation with derived price impact
2. Status is derived from client decision > staff disposition > workflow
3. Client decisions are final and clear decided_by_user_id
4. Approved variations bill into a linked Draft invoice
"""

import pytest

from firelynx.models import Invoice
from firelynx.services import variation_service
from firelynx.services.lifecycle_service import LifecycleError
from firelynx.services.variation_service import resolve_variation_status
from firelynx.time_utils import current_year
from firelynx.validation import ConflictError, ValidationError


NEW_FORMAT = {
    "title": "Upgrade kitchen joinery",
    "description": "Replace laminate fronts with solid oak",
    "category": "Materials",
    "justification": "Client requested premium finish",
}

OLD_FORMAT_CAMEL = {
    "changeRequestor": "Layla",
    "changeArea": "Master bathroom",
    "changeDescription": "Add rainfall shower",
    "reasonDescription": "Client preference",
    "workTypes": ["Plumbing", "Tiling", "Plumbing"],
    "materialCosts": [{"description": "Shower set", "quantity": 1, "unitRate": 4200, "total": 1}],
    "laborCosts": [{"description": "Plumber", "hours": 8, "hourlyRate": 100}],
    "additionalCosts": [{"category": "Waste", "description": "Skip hire", "amount": 300}],
}


def _variation(project, payload=None, **extra):
    data = dict(payload or NEW_FORMAT)
    data.update(extra)
    return variation_service.create_variation(project.id, data)


class TestResolveVariationStatus:
    @pytest.mark.parametrize("workflow,disposition,client,expected", [
        ("Pending", None, None, "Pending"),
        ("Submitted", None, None, "Submitted"),
        ("Submitted", "Approve", None, "Approved"),
        ("Submitted", "Reject", None, "Declined"),
        ("Submitted", "Defer", None, "Submitted"),
        ("Submitted", "Approve", "Declined", "Declined"),
        ("Submitted", None, "Approved", "Approved"),
        ("Draft", "Defer", None, "Draft"),
    ])
    def test_precedence(self, workflow, disposition, client, expected):
        assert resolve_variation_status(workflow, disposition, client) == expected


class TestCreateVariation:
    def test_new_format_defaults(self, db_session, project):
        variation = _variation(project, price_impact="1250.5", time_impact="3")

        assert variation.number == f"VR-{current_year()}-0001"
        assert variation.status == "Pending"
        assert variation.change_requestor == "Manager"
        assert variation.change_reference == variation.number
        assert variation.change_area == "Materials"
        assert variation.change_description == NEW_FORMAT["description"]
        assert variation.reason_description == NEW_FORMAT["justification"]
        assert variation.title == NEW_FORMAT["title"]
        assert variation.currency == "AED"
        assert variation.price_impact == "1250.50"
        assert variation.time_impact == 3

    def test_old_format_camel_case_with_breakdown(self, db_session, project):
        variation = _variation(project, OLD_FORMAT_CAMEL, priceImpact="1")

        assert variation.change_requestor == "Layla"
        assert variation.title == "Add rainfall shower"
        assert variation.work_types == ["Plumbing", "Tiling"]
        assert variation.material_costs[0]["total"] == "4200.00"
        assert variation.labor_costs[0]["total"] == "800.00"
        # Breakdown wins over the client value
        assert variation.price_impact == "5300.00"
        assert variation.resources_and_costs == (
            "Material Costs: AED 4,200.00, Labor Costs: AED 800.00, "
            "Additional Costs: AED 300.00, Total: AED 5,300.00"
        )

    def test_non_numeric_price_impact_is_zero(self, db_session, project):
        assert _variation(project, price_impact="lots").price_impact == "0.00"

    def test_missing_both_formats(self, db_session, project):
        with pytest.raises(ValidationError):
            variation_service.create_variation(project.id, {"title": "Only a title"})

    def test_initial_status_limited_to_draft_or_pending(self, db_session, project):
        assert _variation(project, status="Draft").status == "Draft"
        with pytest.raises(ValidationError):
            _variation(project, status="Approved")

    def test_attachments_must_belong_to_project(self, db_session, project, project_files, foreign_file):
        variation = _variation(project, attachments=[project_files[0].id])
        assert variation.attachments == [project_files[0].id]
        with pytest.raises(ValidationError):
            _variation(project, attachments=[foreign_file.id])


class TestUpdateVariation:
    def test_breakdown_change_recomputes_price_impact(self, db_session, project):
        variation = _variation(project)
        updated = variation_service.update_variation(variation.id, {
            "materialCosts": [{"description": "Oak", "quantity": 2, "unit_rate": 500}],
        })
        assert updated.price_impact == "1000.00"
        assert updated.resources_and_costs.endswith("Total: AED 1,000.00")

    def test_decided_variation_is_locked(self, db_session, project):
        variation = _variation(project)
        variation_service.set_disposition(variation.id, "Reject", reason="Out of budget")
        with pytest.raises(LifecycleError):
            variation_service.update_variation(variation.id, {"title": "Try again"})

    def test_status_not_writable(self, db_session, project):
        variation = _variation(project)
        with pytest.raises(ValidationError):
            variation_service.update_variation(variation.id, {"status": "Approved"})


class TestDecisions:
    def test_submit(self, db_session, project):
        variation = _variation(project, status="Draft")
        submitted = variation_service.submit_variation(variation.id)
        assert submitted.status == "Submitted"
        assert submitted.submitted_at is not None

    def test_staff_approve_then_client_decline(self, db_session, project, staff_user):
        variation = _variation(project)
        variation_service.submit_variation(variation.id)

        approved = variation_service.set_disposition(variation.id, "Approve", staff_user_id=staff_user.id)
        assert approved.status == "Approved"
        assert approved.decided_by_user_id == staff_user.id

        declined = variation_service.client_decline(variation.id, "Too expensive after all")
        assert declined.status == "Declined"
        assert declined.disposition == "Approve"
        assert declined.client_decision == "Declined"
        assert declined.decided_by_user_id is None
        assert declined.client_comment == "Too expensive after all"

    def test_defer_falls_back_to_workflow(self, db_session, project, staff_user):
        variation = _variation(project)
        variation_service.submit_variation(variation.id)
        variation_service.set_disposition(variation.id, "Approve", staff_user_id=staff_user.id)

        deferred = variation_service.set_disposition(variation.id, "Defer", reason="Awaiting quote")
        assert deferred.status == "Submitted"
        assert deferred.decided_at is None
        assert deferred.decided_by_user_id is None

    def test_client_cannot_approve_staff_rejection(self, db_session, project):
        variation = _variation(project)
        variation_service.set_disposition(variation.id, "Reject")
        with pytest.raises(LifecycleError):
            variation_service.client_approve(variation.id)

    def test_client_decision_is_final(self, db_session, project):
        variation = _variation(project)
        variation_service.client_approve(variation.id, comment="Go ahead")
        with pytest.raises(LifecycleError):
            variation_service.client_decline(variation.id, "Changed my mind")
        with pytest.raises(LifecycleError):
            variation_service.set_disposition(variation.id, "Reject")

    def test_decline_requires_comment(self, db_session, project):
        variation = _variation(project)
        with pytest.raises(ValidationError):
            variation_service.client_decline(variation.id, "   ")

    def test_draft_cannot_be_client_decided(self, db_session, project):
        variation = _variation(project, status="Draft")
        with pytest.raises(LifecycleError):
            variation_service.client_approve(variation.id)

    def test_invalid_disposition(self, db_session, project):
        variation = _variation(project)
        with pytest.raises(ValidationError):
            variation_service.set_disposition(variation.id, "Maybe")


class TestBilling:
    def test_bill_approved_variation(self, db_session, project):
        variation = _variation(project, OLD_FORMAT_CAMEL)
        variation_service.client_approve(variation.id)

        invoice = variation_service.bill_variation(
            variation.id, issue_date="2026-05-01", due_date="2026-05-31", tax_percent=5
        )
        assert invoice.status == "Draft"
        assert invoice.currency == "AED"
        assert len(invoice.line_items) == 3
        assert invoice.subtotal == "5300.00"
        assert invoice.tax_total == "265.00"
        assert variation_service.get_variation(variation.id).invoice_id == invoice.id

        with pytest.raises(ConflictError):
            variation_service.bill_variation(variation.id)

    def test_bill_without_breakdown_uses_price_impact(self, db_session, project):
        variation = _variation(project, price_impact=750)
        variation_service.client_approve(variation.id)
        invoice = variation_service.bill_variation(variation.id)
        assert len(invoice.line_items) == 1
        assert invoice.total == "750.00"

    def test_sub_cent_lines_bill_at_price_impact(self, db_session, project):
        fixings = [{"description": f"Fixing {n}", "quantity": 1, "unit_rate": "0.005"} for n in range(3)]
        variation = _variation(project, material_costs=fixings)
        assert variation.price_impact == "0.03"

        variation_service.client_approve(variation.id)
        invoice = variation_service.bill_variation(variation.id)
        assert invoice.subtotal == "0.03"
        assert invoice.line_items[0]["description"] == "Fixing 0 (1 x 0.005)"

    def test_only_approved_variations_bill(self, db_session, project):
        variation = _variation(project)
        with pytest.raises(LifecycleError):
            variation_service.bill_variation(variation.id)
        assert db_session.query(Invoice).count() == 0

    def test_billed_decision_is_locked(self, db_session, project):
        variation = _variation(project)
        variation_service.set_disposition(variation.id, "Approve")
        variation_service.bill_variation(variation.id)
        with pytest.raises(LifecycleError):
            variation_service.client_decline(variation.id, "No thanks")

    def test_auto_invoice_on_client_approval(self, app, db_session, project):
        app.config["AUTO_INVOICE_APPROVED_VARIATIONS"] = True
        variation = _variation(project, price_impact=1000)

        approved = variation_service.client_approve(variation.id)
        assert approved.invoice_id is not None
        invoice = db_session.get(Invoice, approved.invoice_id)
        assert invoice.total == "1000.00"
        assert invoice.number == f"INV-{current_year()}-0001"

    def test_no_auto_invoice_by_default(self, db_session, project):
        variation = _variation(project)
        approved = variation_service.client_approve(variation.id)
        assert approved.status == "Approved"
        assert approved.invoice_id is None


class TestVariationQueries:
    def test_options(self):
        options = variation_service.variation_options()
        assert "Joinery" in options["work_types"]
        assert "Compliance" in options["categories"]

    def test_list_and_delete(self, db_session, project):
        pending = _variation(project)
        decided = _variation(project)
        variation_service.client_approve(decided.id)

        assert len(variation_service.list_variations(project_id=project.id)) == 2
        assert [v.id for v in variation_service.list_variations(status="Approved")] == [decided.id]

        variation_service.delete_variation(pending.id)
        with pytest.raises(LifecycleError):
            variation_service.delete_variation(decided.id)
