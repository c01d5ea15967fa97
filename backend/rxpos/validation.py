from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from .errors import ValidationError
from rxpos.time_utils import parse_date_only


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_NOTE_LENGTH = 255
MAX_PAYMENT_METHOD_LENGTH = 32


def _coerce_int(value: Any, field: str, *, code: str = "invalid-field") -> int:
    """
    Strict integer check for JSON numbers.

    Accepts ints only: bools, floats, decimals and numeric strings are
    rejected so "5" and 5.0 never pass as quantities.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ValidationError(f"{field} must be an integer", code=code, details={"field": field})


def _positive_int(value: Any, field: str, *, code: str) -> int:
    number = _coerce_int(value, field, code=code)
    if number <= 0:
        raise ValidationError(f"{field} must be a positive integer", code=code, details={"field": field})
    return number


def _optional_str(value: Any, field: str, max_length: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={"field": field})
    value = value.strip()
    if not value:
        return None
    if len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", details={"field": field})
    return value


def _items_list(payload: dict, code: str) -> list:
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError(code, code=code)
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object", details={"index": index})
    return items


# =============================================================================
# Sale commands
# =============================================================================

@dataclass(frozen=True)
class SaleLineCommand:
    product_id: int
    qty: int


@dataclass(frozen=True)
class SaleCommand:
    items: tuple[SaleLineCommand, ...]
    payment_method: str | None = None
    note: str | None = None

    @classmethod
    def build(
        cls,
        items: Iterable,
        payment_method: str | None = None,
        note: str | None = None,
    ) -> "SaleCommand":
        """
        Normalize (product_id, qty) pairs, dicts or SaleLineCommands.

        Raises ValidationError on the first violation.
        """
        lines = []
        for raw in items:
            if isinstance(raw, SaleLineCommand):
                product_id, qty = raw.product_id, raw.qty
            elif isinstance(raw, dict):
                product_id, qty = raw.get("product_id"), raw.get("qty")
            else:
                product_id, qty = raw
            lines.append(SaleLineCommand(
                product_id=_positive_int(product_id, "product_id", code="invalid-field"),
                qty=_positive_int(qty, "qty", code="invalid-qty"),
            ))
        if not lines:
            raise ValidationError("sale-items-required", code="sale-items-required")
        return cls(
            items=tuple(lines),
            payment_method=_optional_str(payment_method, "payment_method", MAX_PAYMENT_METHOD_LENGTH),
            note=_optional_str(note, "note", MAX_NOTE_LENGTH),
        )


def parse_sale_payload(payload: Any) -> SaleCommand:
    """Validate a sale request body: {items: [{product_id, qty}], payment_method?, note?}."""
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    items = _items_list(payload, "sale-items-required")
    return SaleCommand.build(items, payload.get("payment_method"), payload.get("note"))


# =============================================================================
# Stock-in commands
# =============================================================================

@dataclass(frozen=True)
class StockInLineCommand:
    product_id: int
    qty_added: int
    unit_cost_cents: int
    expiry_date: date


@dataclass(frozen=True)
class StockInCommand:
    items: tuple[StockInLineCommand, ...]
    note: str | None = None

    @classmethod
    def build(cls, items: Iterable, note: str | None = None) -> "StockInCommand":
        lines = []
        for raw in items:
            if isinstance(raw, StockInLineCommand):
                lines.append(raw)
                continue
            if isinstance(raw, dict):
                product_id = raw.get("product_id")
                qty_added = raw.get("qty_added")
                unit_cost_cents = raw.get("unit_cost_cents")
                expiry = raw.get("expiry_date")
            else:
                product_id, qty_added, unit_cost_cents, expiry = raw
            lines.append(StockInLineCommand(
                product_id=_positive_int(product_id, "product_id", code="invalid-field"),
                qty_added=_positive_int(qty_added, "qty_added", code="invalid-qty"),
                unit_cost_cents=_positive_int(unit_cost_cents, "unit_cost_cents", code="invalid-unit-cost"),
                expiry_date=_expiry_date(expiry),
            ))
        if not lines:
            raise ValidationError("stock-in-items-required", code="stock-in-items-required")
        return cls(items=tuple(lines), note=_optional_str(note, "note", MAX_NOTE_LENGTH))


def _expiry_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_date_only(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValidationError("invalid-date", code="invalid-date", details={"field": "expiry_date"})


def parse_stock_in_payload(payload: Any) -> StockInCommand:
    """Validate a stock-in body: {items: [{product_id, qty_added, unit_cost_cents, expiry_date}], note?}."""
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    items = _items_list(payload, "stock-in-items-required")
    return StockInCommand.build(items, payload.get("note"))


# =============================================================================
# Product payloads
# =============================================================================

PRODUCT_WRITABLE_FIELDS = {"name", "selling_price_cents", "reorder_level", "is_active"}
PRODUCT_REQUIRED_ON_CREATE = {"name", "selling_price_cents"}


def validate_product_payload(payload: Any, *, partial: bool) -> dict:
    """
    Validates + normalizes a product body.

    partial=False: create semantics (name and selling_price_cents required)
    partial=True: update semantics (at least one writable field required)
    Unknown fields are rejected rather than ignored.
    """
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")

    unknown = set(payload) - PRODUCT_WRITABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"unknown fields: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    if not partial:
        missing = PRODUCT_REQUIRED_ON_CREATE - set(payload)
        if missing:
            raise ValidationError(
                f"missing required fields: {', '.join(sorted(missing))}",
                details={"fields": sorted(missing)},
            )
    elif not payload:
        raise ValidationError("nothing-to-update", code="nothing-to-update")

    patch: dict = {}
    if "name" in payload:
        name = payload["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name must be a non-empty string", details={"field": "name"})
        if len(name.strip()) > 255:
            raise ValidationError("name must be at most 255 characters", details={"field": "name"})
        patch["name"] = name.strip()

    if "selling_price_cents" in payload:
        price = _positive_int(payload["selling_price_cents"], "selling_price_cents", code="invalid-field")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(
                f"selling_price_cents cannot exceed {MAX_PRICE_CENTS}",
                details={"field": "selling_price_cents"},
            )
        patch["selling_price_cents"] = price

    if "reorder_level" in payload:
        level = payload["reorder_level"]
        if level is not None:
            level = _coerce_int(level, "reorder_level")
            if level < 0:
                raise ValidationError("reorder_level cannot be negative", details={"field": "reorder_level"})
        patch["reorder_level"] = level

    if "is_active" in payload:
        if not isinstance(payload["is_active"], bool):
            raise ValidationError("is_active must be a boolean", details={"field": "is_active"})
        patch["is_active"] = payload["is_active"]

    return patch
