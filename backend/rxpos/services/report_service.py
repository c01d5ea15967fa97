# Overview: Read-only reports over committed lots and sales (low stock, expiry, top sellers).

from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, Sale, SaleItem, StockLot
from .inventory_service import available_quantities
from rxpos.time_utils import business_today, to_date_str


def _today(today: date | None) -> date:
    if today is not None:
        return today
    return business_today(current_app.config.get("BUSINESS_TIMEZONE"))


def low_stock_products() -> list[dict]:
    """Active products with a reorder level whose sellable stock is at or below it."""
    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.reorder_level.isnot(None))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    totals = available_quantities(p.id for p in products)

    result = []
    for product in products:
        total_qty = totals.get(product.id, 0)
        if total_qty <= product.reorder_level:
            row = product.to_dict()
            row["total_qty"] = total_qty
            result.append(row)
    return result


def _lot_row(lot: StockLot) -> dict:
    return {
        "id": lot.id,
        "lot_ref_no": lot.lot_ref_no,
        "expiry_date": to_date_str(lot.expiry_date),
        "qty_remaining": lot.qty_remaining,
        "product": {"id": lot.product.id, "name": lot.product.name},
    }


def expiring_lots(days: int, today: date | None = None) -> list[dict]:
    """Lots with stock expiring between today and today + days (inclusive)."""
    if days <= 0:
        raise ValueError("days must be positive")
    start = _today(today)
    cutoff = start + timedelta(days=days)
    lots = (
        db.session.query(StockLot)
        .filter(
            StockLot.qty_remaining > 0,
            StockLot.expiry_date >= start,
            StockLot.expiry_date <= cutoff,
        )
        .order_by(StockLot.expiry_date.asc(), StockLot.id.asc())
        .all()
    )
    result = []
    for lot in lots:
        row = _lot_row(lot)
        row["days_until_expiry"] = (lot.expiry_date - start).days
        result.append(row)
    return result


def expired_lots(today: date | None = None) -> list[dict]:
    """Lots still holding stock whose expiry date has passed."""
    start = _today(today)
    lots = (
        db.session.query(StockLot)
        .filter(StockLot.qty_remaining > 0, StockLot.expiry_date < start)
        .order_by(StockLot.expiry_date.asc(), StockLot.id.asc())
        .all()
    )
    result = []
    for lot in lots:
        row = _lot_row(lot)
        row["days_expired"] = (start - lot.expiry_date).days
        result.append(row)
    return result


def top_products(
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = 10,
) -> list[dict]:
    """Best sellers by quantity over sold_at in [date_from, date_to]."""
    qty_sum = func.sum(SaleItem.qty)
    query = (
        db.session.query(
            SaleItem.product_id,
            Product.name,
            qty_sum.label("total_qty"),
            func.sum(SaleItem.line_total_cents).label("total_sales_cents"),
        )
        .join(Sale, Sale.id == SaleItem.sale_id)
        .join(Product, Product.id == SaleItem.product_id)
    )
    if date_from is not None:
        query = query.filter(Sale.sold_at >= date_from)
    if date_to is not None:
        query = query.filter(Sale.sold_at <= date_to)

    rows = (
        query.group_by(SaleItem.product_id, Product.name)
        .order_by(qty_sum.desc(), SaleItem.product_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "total_qty": int(row.total_qty or 0),
            "total_sales_cents": int(row.total_sales_cents or 0),
        }
        for row in rows
    ]
