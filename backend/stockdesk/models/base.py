from __future__ import annotations

import uuid

from sqlalchemy import DateTime, Numeric

from stockdesk.money import format_money, to_money
from stockdesk.time_utils import parse_iso_datetime, to_utc_z


def new_id() -> str:
    return str(uuid.uuid4())


def camelize(key: str) -> str:
    """Column key -> wire field name (stock_code -> stockCode)."""
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


class WireMixin:
    """
    JSON shape shared by both storage backends.

    The SQL backend serializes rows through to_dict(); the file backend stores
    the output of wire_fields() directly, so both produce identical documents.
    """

    @classmethod
    def column_keys(cls) -> list[str]:
        return [c.key for c in cls.__mapper__.columns]

    @classmethod
    def wire_value(cls, key: str, value):
        coltype = cls.__mapper__.columns[key].type
        if isinstance(coltype, Numeric):
            return format_money(value)
        if isinstance(coltype, DateTime):
            return to_utc_z(value)
        return value

    @classmethod
    def wire_fields(cls, fields: dict) -> dict:
        return {camelize(k): cls.wire_value(k, v) for k, v in fields.items()}

    @classmethod
    def from_wire(cls, row: dict) -> dict:
        """Inverse of wire_fields for one document row (used by imports)."""
        fields = {}
        for col in cls.__mapper__.columns:
            raw = row.get(camelize(col.key))
            if raw is None:
                fields[col.key] = None
            elif isinstance(col.type, Numeric):
                fields[col.key] = to_money(raw)
            elif isinstance(col.type, DateTime):
                fields[col.key] = parse_iso_datetime(raw)
            else:
                fields[col.key] = raw
        return fields

    def to_dict(self) -> dict:
        return {
            camelize(key): self.wire_value(key, getattr(self, key))
            for key in self.column_keys()
        }
