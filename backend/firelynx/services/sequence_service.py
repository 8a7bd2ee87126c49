# Overview: Service-layer operations for document numbering; encapsulates the per-year counter store.

"""
Sequence Registry + Number Formatter

Every invoice, variation request, ticket and approval packet carries a
human-readable number such as INV-2026-0007. The integer part comes from a
per-calendar-year counter row (document_counters) with one independent column
per document kind.

CONCURRENCY:
    The increment is a single atomic statement against the store:

        INSERT INTO document_counters (year, <kind>_counter, ...) VALUES (:year, 1, ...)
        ON CONFLICT (year) DO UPDATE SET <kind>_counter = <kind>_counter + 1
        RETURNING <kind>_counter

    Two concurrent callers can never read the same value, so the application
    needs no locks. A read-then-write in two round trips is NOT acceptable.

    next_number() does not commit. The caller inserts the document in the same
    transaction, so a failed insert rolls the counter back with it.

FAILURE:
    Any store error while incrementing is raised as SequenceExhaustionError
    and the caller's create fails. Nothing is retried.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import SequenceCounter
from ..validation import DocumentError, ValidationError
from firelynx.time_utils import current_year


class SequenceExhaustionError(DocumentError):
    """Raised when the counter increment cannot complete (store unavailable)."""
    http_status = 503


# kind -> (number prefix, counter column)
DOCUMENT_KINDS = {
    "invoice": ("INV", "invoice_counter"),
    "variation": ("VR", "variation_counter"),
    "ticket": ("TK", "ticket_counter"),
    "approval": ("AP", "approval_counter"),
}

COUNTER_COLUMNS = tuple(column for _, column in DOCUMENT_KINDS.values())

NUMBER_PAD = 4

# Dialects whose INSERT supports ON CONFLICT ... RETURNING
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def format_document_number(prefix: str, year: int, n: int) -> str:
    """
    Render the canonical display number: PREFIX-YYYY-NNNN.

    Numbers above 9999 keep all their digits (INV-2026-10000).
    """
    if not prefix:
        raise ValidationError("prefix is required")
    if isinstance(year, bool) or not isinstance(year, int) or year < 1:
        raise ValidationError("year must be a positive integer")
    if isinstance(n, bool) or not isinstance(n, int):
        raise ValidationError("sequence number must be an integer")
    if n < 0:
        raise ValidationError("sequence number must be >= 0")
    return f"{prefix}-{year}-{n:0{NUMBER_PAD}d}"


def _counter_column_for(kind: str) -> str:
    try:
        return DOCUMENT_KINDS[kind][1]
    except KeyError:
        raise ValidationError(
            f"Unknown document kind '{kind}'. Must be one of: {', '.join(sorted(DOCUMENT_KINDS))}"
        )


def _upsert_increment(insert, year: int, column_name: str) -> int:
    values = {column: 0 for column in COUNTER_COLUMNS}
    values[column_name] = 1
    column = getattr(SequenceCounter, column_name)

    stmt = (
        insert(SequenceCounter)
        .values(year=year, **values)
        .on_conflict_do_update(
            index_elements=[SequenceCounter.year],
            set_={column_name: column + 1, "updated_at": func.now()},
        )
        .returning(column)
    )
    return db.session.execute(stmt).scalar_one()


def _update_then_insert(year: int, column_name: str) -> int:
    """
    Portable path for dialects without ON CONFLICT.

    The UPDATE is itself an atomic increment and locks the row until the
    transaction ends; the unique year key arbitrates the first-insert race.
    """
    column = getattr(SequenceCounter, column_name)
    stmt = (
        update(SequenceCounter)
        .where(SequenceCounter.year == year)
        .values({column_name: column + 1, "updated_at": func.now()})
    )

    def _read_back() -> int:
        return db.session.execute(
            select(column).where(SequenceCounter.year == year)
        ).scalar_one()

    if db.session.execute(stmt).rowcount:
        return _read_back()

    values = {c: 0 for c in COUNTER_COLUMNS}
    values[column_name] = 1
    savepoint = db.session.begin_nested()
    try:
        db.session.add(SequenceCounter(year=year, **values))
        db.session.flush()
        savepoint.commit()
        return 1
    except IntegrityError:
        # Another transaction created the year row first
        savepoint.rollback()
        db.session.execute(stmt)
        return _read_back()


def next_number(kind: str, year: int) -> int:
    """
    Atomically issue the next integer for (kind, year).

    Integers start at 1 for every kind in every year and are never reused.
    Does not commit; the caller owns the transaction.

    Raises:
        ValidationError: unknown kind or invalid year
        SequenceExhaustionError: the store could not complete the increment
    """
    column_name = _counter_column_for(kind)
    if isinstance(year, bool) or not isinstance(year, int) or year < 1:
        raise ValidationError("year must be a positive integer")

    try:
        dialect = db.session.get_bind(mapper=SequenceCounter.__mapper__).dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is not None:
            value = _upsert_increment(insert, year, column_name)
        else:
            value = _update_then_insert(year, column_name)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Sequence increment failed for %s/%s: %s", kind, year, exc)
        raise SequenceExhaustionError(f"Failed to allocate {kind} number for {year}") from exc

    current_app.logger.debug("Issued %s sequence %s for %s", kind, value, year)
    return value


def allocate_document_number(kind: str, year: int | None = None) -> str:
    """Issue the next formatted number for a document kind (current UTC year by default)."""
    if year is None:
        year = current_year()
    prefix = DOCUMENT_KINDS.get(kind, (None, None))[0]
    value = next_number(kind, year)
    return format_document_number(prefix, year, value)


def current_counters(year: int) -> dict | None:
    """Read a year's counters without incrementing (None if no document exists yet)."""
    row = db.session.execute(
        select(SequenceCounter)
        .where(SequenceCounter.year == year)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    return row.to_dict() if row else None


def list_counters() -> list[dict]:
    rows = db.session.execute(
        select(SequenceCounter)
        .order_by(SequenceCounter.year.desc())
        .execution_options(populate_existing=True)
    ).scalars().all()
    return [row.to_dict() for row in rows]
