# Overview: Service-layer helpers for loading and committing documents under concurrent writers.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError, NotFoundError


def get_or_404(model, object_id, label: str):
    """Load a row by primary key or raise NotFoundError."""
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(f"{label} {object_id} not found")
    return obj


def commit_or_conflict(label: str) -> None:
    """
    Commit the current session; surface concurrency failures as ConflictError.

    IntegrityError: a unique document number (or another constraint) collided.
    StaleDataError: the row's version_id moved under us (optimistic lock).

    Nothing is retried. The session is rolled back before raising so no
    partial document survives.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning("Integrity conflict while saving %s: %s", label, exc.orig)
        raise ConflictError(f"Could not save {label}: conflicting record") from exc
    except StaleDataError as exc:
        db.session.rollback()
        current_app.logger.warning("Concurrent modification of %s", label)
        raise ConflictError(f"{label} was modified concurrently; reload and try again") from exc
