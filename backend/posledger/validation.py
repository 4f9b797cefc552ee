from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .money import to_decimal
from .time_utils import parse_iso_date, utctoday

# Largest money amount a Numeric(12, 2) column can hold
MAX_PRICE = Decimal("9999999999.99")

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: model columns clients are allowed to set
    - required_on_create: fields required for POST
    - extra_fields: non-column inputs the service handles itself
    - aliases: legacy client names mapped onto column names
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    extra_fields: set[str] = field(default_factory=set)
    aliases: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class OrderLine:
    """A requested (product, quantity) pair after validation."""
    product_id: int
    qty: int


def merge_order_lines(lines) -> list[OrderLine]:
    """Sum quantities of lines naming the same product, keeping first-appearance order."""
    merged: dict[int, int] = {}
    for line in lines:
        merged[line.product_id] = merged.get(line.product_id, 0) + line.qty
    return [OrderLine(product_id=pid, qty=qty) for pid, qty in merged.items()]


def parse_int(value: Any, name: str, *, minimum: int | None = None) -> int:
    """
    Strict integer coercion: rejects bools, floats, decimals and scientific
    notation; plain digit strings are accepted.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{name} must be an integer")

    if minimum is not None and result < minimum:
        if minimum == 1:
            raise ValidationError(f"{name} must be a positive number")
        raise ValidationError(f"{name} must be >= {minimum}")
    return result


def parse_money(value: Any, name: str) -> Decimal:
    """Positive 2-place amount."""
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number")
    if amount <= 0:
        raise ValidationError(f"{name} must be a positive number")
    if amount > MAX_PRICE:
        raise ValidationError(f"{name} cannot exceed {MAX_PRICE}")
    return amount


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> tuple[dict, dict]:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields + extra_fields)
    - required_on_create (if partial=False)

    Returns (patch, extras): patch holds cleaned column values, extras the
    raw values of policy.extra_fields for the service to validate.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = {policy.aliases.get(k, k): v for k, v in payload.items()}

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", {"missing": missing})

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k in policy.extra_fields:
            continue
        if k not in policy.writable_fields or k not in cols:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}
    extras: dict = {}

    for k, raw in payload.items():
        if k in policy.extra_fields:
            extras[k] = raw
            continue

        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch, extras


def parse_order_lines(
    raw: Any,
    *,
    id_key: str = "id",
    qty_key: str = "qty",
    min_qty: int = 1,
    merge: bool = True,
) -> list[OrderLine]:
    """
    Validate a list of {id_key, qty_key} objects.

    Duplicate products are merged (quantities summed) unless merge=False,
    in which case a duplicate is rejected. Order of first appearance is kept.
    """
    if not isinstance(raw, list) or not raw:
        raise ValidationError("At least one product is required")

    merged: dict[int, int] = {}
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"Item {index} must be an object")
        if id_key not in entry:
            raise ValidationError(f"Item {index}: {id_key} is required")
        if qty_key not in entry:
            raise ValidationError(f"Item {index}: {qty_key} is required")
        product_id = parse_int(entry[id_key], id_key, minimum=1)
        qty = parse_int(entry[qty_key], qty_key, minimum=min_qty)
        if product_id in merged:
            if not merge:
                raise ValidationError(f"Duplicate product in items: {product_id}", {"product_id": product_id})
            merged[product_id] += qty
        else:
            merged[product_id] = qty

    return [OrderLine(product_id=pid, qty=qty) for pid, qty in merged.items()]


def parse_id_list(raw: Any, name: str = "ids") -> list[int]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError(f"{name} must be a non-empty array")
    return list(dict.fromkeys(parse_int(v, name, minimum=1) for v in raw))


def parse_pagination(args) -> tuple[int, int]:
    """page/limit query params; limit is capped at MAX_PAGE_LIMIT."""
    page = args.get("page")
    limit = args.get("limit")
    page = parse_int(page, "page", minimum=1) if page not in (None, "") else 1
    limit = parse_int(limit, "limit", minimum=1) if limit not in (None, "") else DEFAULT_PAGE_LIMIT
    return page, min(limit, MAX_PAGE_LIMIT)


def parse_choice(value: Any, name: str, choices, default=None, *, upper: bool = False):
    if value in (None, ""):
        return default
    normalized = str(value).strip()
    normalized = normalized.upper() if upper else normalized
    if normalized not in choices:
        raise ValidationError(
            f"{name} must be one of: {', '.join(choices)}",
            {"allowed": list(choices)},
        )
    return normalized


def parse_date_param(value: Any, name: str) -> date | None:
    if value is None:
        return None
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{name} must be in YYYY-MM-DD format")


def parse_date_range(start: Any, end: Any) -> tuple[date, date]:
    """
    Both or neither. Neither means today (UTC). end must not precede start.
    """
    start_date = parse_date_param(start, "start_date")
    end_date = parse_date_param(end, "end_date")

    if (start_date is None) != (end_date is None):
        raise ValidationError("Both start_date and end_date must be provided together")
    if start_date is None:
        today = utctoday()
        return today, today
    if end_date < start_date:
        raise ValidationError("end_date must be >= start_date")
    ensure_previous_period(start_date, end_date)
    return start_date, end_date


def ensure_previous_period(start_date: date, end_date: date) -> None:
    """Reports compare against the preceding period of the same length; it must be a real date range."""
    span = (end_date - start_date).days + 1
    if (start_date - date.min).days < span:
        raise ValidationError(
            "Date range has no previous period to compare with",
            {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )
