from __future__ import annotations
from datetime import datetime
from firelynx.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


class DocumentError(Exception):
    """Base class for failures surfaced to API callers."""
    http_status = 500


class ValidationError(DocumentError, ValueError):
    """400-level input problem. Nothing is persisted."""
    http_status = 400


class NotFoundError(DocumentError, LookupError):
    """404-level: the operation targets an unknown id."""
    http_status = 404


class ConflictError(DocumentError, ValueError):
    """409-level business rule conflict (e.g., duplicate document number)."""
    http_status = 409


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # JSON list columns (tags, attachments, cost lines)
    if isinstance(coltype, JSON):
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"{col.key} must be a list")
        return list(value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def coerce_datetime(field: str, value: Any) -> datetime:
    """Parse a required date/datetime field or raise ValidationError."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date")
        if dt is not None:
            return dt
    raise ValidationError(f"{field} must be an ISO-8601 date")


def coerce_id(field: str, value: Any) -> int:
    """Row ids arrive as JSON ints or digit strings; anything else is a ValidationError."""
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    raise ValidationError(f"{field} must be a positive integer id")


def require_fields(payload: dict, fields: list[str]) -> None:
    """Reject payloads missing any of `fields` (None and blank strings count as missing)."""
    missing = [
        f for f in fields
        if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = [f for f in sorted(required) if f not in payload]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch
