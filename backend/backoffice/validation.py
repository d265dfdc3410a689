from __future__ import annotations
from datetime import date, datetime
from backoffice.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Date, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum money value: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """
    400-level input problem.

    fields maps a field name to an actionable message so callers can show
    one message per form field instead of a single generic error.
    """

    def __init__(self, message: str | None = None, fields: dict[str, str] | None = None):
        self.fields = dict(fields or {})
        if message is None:
            message = "; ".join(f"{k}: {v}" for k, v in self.fields.items()) or "Invalid input"
        super().__init__(message)


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, name: str) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(fields={name: "must be an integer"})
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(fields={name: "must be a plain integer (scientific notation not allowed)"})
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(fields={name: "must be an integer (no decimals)"})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(fields={name: "must be an integer"})
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(fields={name: "must be an integer, not a decimal"})
    raise ValidationError(fields={name: "must be an integer"})


def coerce_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off"}:
            return False
    if isinstance(value, int):
        return bool(value)
    raise ValidationError(fields={name: "must be true or false"})


def coerce_date(value: Any, name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            d = parse_iso_date(value)
        except ValueError:
            raise ValidationError(fields={name: "must be a date (YYYY-MM-DD)"})
        if d is None:
            raise ValidationError(fields={name: "must be a date (YYYY-MM-DD)"})
        return d
    raise ValidationError(fields={name: "must be a date (YYYY-MM-DD)"})


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Boolean):
        return coerce_bool(value, col.key)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(fields={col.key: "must be an ISO-8601 datetime"})
            if dt is None:
                raise ValidationError(fields={col.key: "must be an ISO-8601 datetime"})
            return dt
        raise ValidationError(fields={col.key: "must be a datetime"})

    if isinstance(coltype, Date):
        return coerce_date(value, col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool = False,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)

    Returns a cleaned patch dict with only writable fields. Every problem is
    collected and raised together as one ValidationError keyed by field.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: dict[str, str] = {}

    if not partial:
        for f in sorted(policy.required_on_create):
            raw = payload.get(f)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                errors[f] = "is required"

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            errors[k] = "field not allowed"
        elif k not in cols:
            errors[k] = "unknown field"

    patch: dict = {}

    for k, raw in payload.items():
        if k in errors:
            continue
        col = cols[k]

        if raw is None:
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as exc:
            errors.update(exc.fields)
            continue

        # Blank strings become None; required checks above already caught required fields
        if isinstance(val, str) and val == "":
            patch[k] = None
            continue

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors[k] = f"exceeds max length {col.type.length}"
                continue

        patch[k] = val

    if errors:
        raise ValidationError(fields=errors)

    return patch


def enforce_amount_cents(patch: dict, name: str, *, allow_zero: bool = False) -> None:
    """Money amounts are integer cents within [0|1, MAX_AMOUNT_CENTS]."""
    amount = patch.get(name)
    if amount is None:
        return
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(fields={name: "must be greater than zero" if not allow_zero else "must be >= 0"})
    if amount > MAX_AMOUNT_CENTS:
        raise ValidationError(fields={name: f"cannot exceed {MAX_AMOUNT_CENTS}"})
