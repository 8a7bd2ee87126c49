# Overview: Pytest coverage for document numbering (per-year counters and number formatting).

"""
Sequence Registry Tests

Proves that:
1. Numbers start at 1 per kind per year and increase by one
2. Kinds and years never share a counter
3. Concurrent allocations never hand out the same number
4. A failed document insert rolls its counter back with it
"""

import threading

import pytest

from firelynx import create_app
from firelynx.extensions import db
from firelynx.models import SequenceCounter
from firelynx.services import sequence_service
from firelynx.services.sequence_service import (
    allocate_document_number,
    current_counters,
    format_document_number,
    next_number,
)
from firelynx.time_utils import current_year
from firelynx.validation import ValidationError


class TestFormatDocumentNumber:
    """Pure number rendering."""

    def test_pads_to_four_digits(self):
        assert format_document_number("INV", 2026, 1) == "INV-2026-0001"
        assert format_document_number("VR", 2026, 42) == "VR-2026-0042"
        assert format_document_number("AP", 2025, 9999) == "AP-2025-9999"

    def test_widens_past_9999(self):
        assert format_document_number("TK", 2026, 10000) == "TK-2026-10000"

    @pytest.mark.parametrize("bad", [-1, 1.5, "7", None, True])
    def test_rejects_invalid_sequence_values(self, bad):
        with pytest.raises(ValidationError):
            format_document_number("INV", 2026, bad)

    def test_rejects_missing_prefix(self):
        with pytest.raises(ValidationError):
            format_document_number("", 2026, 1)


class TestNextNumber:
    """Counter increments against the store."""

    def test_first_call_of_year_returns_one(self, db_session):
        assert next_number("invoice", 2026) == 1
        db_session.commit()
        assert next_number("invoice", 2026) == 2
        db_session.commit()

        row = db_session.query(SequenceCounter).filter_by(year=2026).one()
        assert row.invoice_counter == 2

    def test_kinds_are_independent(self, db_session):
        assert next_number("invoice", 2026) == 1
        assert next_number("invoice", 2026) == 2
        assert next_number("ticket", 2026) == 1
        assert next_number("approval", 2026) == 1
        assert next_number("variation", 2026) == 1
        db_session.commit()

        counters = current_counters(2026)
        assert counters["invoice_counter"] == 2
        assert counters["ticket_counter"] == 1

    def test_years_are_isolated(self, db_session):
        for _ in range(3):
            next_number("invoice", 2025)
        db_session.commit()

        assert next_number("invoice", 2026) == 1
        db_session.commit()
        assert current_counters(2025)["invoice_counter"] == 3
        assert db_session.query(SequenceCounter).count() == 2

    def test_unknown_kind_rejected(self, db_session):
        with pytest.raises(ValidationError):
            next_number("receipt", 2026)

    def test_invalid_year_rejected(self, db_session):
        with pytest.raises(ValidationError):
            next_number("invoice", 0)

    def test_rollback_discards_increment(self, db_session):
        assert next_number("ticket", 2026) == 1
        db_session.rollback()
        assert next_number("ticket", 2026) == 1
        db_session.commit()

    def test_current_counters_does_not_increment(self, db_session):
        assert current_counters(2030) is None
        next_number("approval", 2030)
        db_session.commit()
        assert current_counters(2030)["approval_counter"] == 1
        assert current_counters(2030)["approval_counter"] == 1

    def test_allocate_uses_current_year_and_prefix(self, db_session):
        number = allocate_document_number("variation")
        db_session.commit()
        assert number == f"VR-{current_year()}-0001"

    def test_store_failure_raises_sequence_exhaustion(self, db_session, monkeypatch):
        from sqlalchemy.exc import OperationalError

        def broken(*args, **kwargs):
            raise OperationalError("UPDATE document_counters", {}, Exception("database is locked"))

        monkeypatch.setattr(sequence_service, "_upsert_increment", broken)
        with pytest.raises(sequence_service.SequenceExhaustionError):
            next_number("invoice", 2026)


class TestConcurrentAllocation:
    """Many writers against one file-backed store."""

    def test_concurrent_callers_get_unique_numbers(self, tmp_path):
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'counters.sqlite3'}",
            'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
            'LOG_LEVEL': 'WARNING',
        })
        with app.app_context():
            db.create_all()

        threads_count = 8
        per_thread = 10
        issued: list[int] = []
        errors: list[Exception] = []
        lock = threading.Lock()
        barrier = threading.Barrier(threads_count)

        def worker():
            barrier.wait()
            for _ in range(per_thread):
                with app.app_context():
                    try:
                        value = next_number("invoice", 2026)
                        db.session.commit()
                    except Exception as exc:  # collected and asserted below
                        db.session.rollback()
                        with lock:
                            errors.append(exc)
                        continue
                    finally:
                        db.session.remove()
                    with lock:
                        issued.append(value)

        threads = [threading.Thread(target=worker) for _ in range(threads_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(issued) == threads_count * per_thread
        assert len(set(issued)) == len(issued)
        assert sorted(issued) == list(range(1, threads_count * per_thread + 1))

        with app.app_context():
            assert current_counters(2026)["invoice_counter"] == threads_count * per_thread
            db.session.remove()
            db.engine.dispose()
