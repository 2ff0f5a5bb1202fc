from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from stockdesk.models.base import camelize
from stockdesk.money import MAX_MONEY


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate stock code)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(LookupError):
    """404-level: an id referenced by the request does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: column keys clients are allowed to set (security boundary)
    - required_on_create: column keys required for POST
    - choices: column keys restricted to a fixed set of values
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    choices: dict[str, tuple] = field(default_factory=dict)


def _columns_by_wire_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {camelize(c.key): c for c in mapper.columns}


def parse_money(name: str, value: Any) -> Decimal:
    """
    Money arrives as a decimal string ("12.50") or an integer.
    Floats are refused so binary rounding never reaches stored amounts.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{name} must be a decimal string like \"12.50\"")
    if isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be a decimal amount")
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain decimal (scientific notation not allowed)")
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{name} must be a decimal amount")
    else:
        raise ValidationError(f"{name} must be a decimal amount")

    if not amount.is_finite():
        raise ValidationError(f"{name} must be a decimal amount")
    if amount.as_tuple().exponent < -2:
        raise ValidationError(f"{name} cannot have more than 2 decimal places")
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{name} cannot exceed {MAX_MONEY}")
    return amount.quantize(Decimal("0.01"))


def parse_int(name: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def _coerce_value(name: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(name, value)

    if isinstance(coltype, Numeric):
        return parse_money(name, value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise ValidationError(f"{name} must be a string")
        return str(value).strip()

    # Default: leave as-is
    return value


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
    - a policy allowlist (writable_fields) and enum choices
    - required_on_create (if partial=False)

    Payload keys are wire names (camelCase). Returns a cleaned patch dict
    keyed by column attribute (snake_case) with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    cols = _columns_by_wire_key(model)
    writable_wire = {camelize(k) for k in policy.writable_fields}

    if not partial:
        missing = sorted(camelize(k) for k in policy.required_on_create if camelize(k) not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")
        if k not in writable_wire:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[col.key] = None
            continue

        val = _coerce_value(k, col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)):
            if isinstance(val, str) and val == "":
                if not col.nullable:
                    raise ValidationError(f"{k} cannot be blank")
                val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        allowed = policy.choices.get(col.key)
        if allowed is not None and val not in allowed:
            raise ValidationError(f"{k} must be one of: {', '.join(allowed)}")

        patch[col.key] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for key, label in (("buying_price", "buyingPrice"), ("selling_price", "sellingPrice")):
        if key in patch and patch[key] is not None and patch[key] < 0:
            raise ValidationError(f"{label} must be >= 0")

    if "quantity" in patch and patch["quantity"] is not None and patch["quantity"] < 0:
        raise ValidationError("quantity must be >= 0")


def parse_query_int(name: str, raw: str | None, *, default: int, minimum: int = 1, maximum: int | None = None) -> int:
    """Query-string integers (?limit=, ?threshold=) with bounds."""
    if raw is None or raw == "":
        return default
    value = parse_int(name, raw)
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{name} must be <= {maximum}")
    return value
