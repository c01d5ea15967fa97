# Overview: Service-layer operations for the lot store; stock levels and FEFO lot queries.

# backend/rxpos/services/inventory_service.py

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..models import Product, StockLot, SaleLotAllocation
from .concurrency import lock_for_update
from rxpos.time_utils import to_date_str
"""
RxPOS Lot Store Invariants (authoritative)

Stock model:
- Sellable stock of a product is SUM(qty_remaining) over its lots with qty_remaining > 0.
- Lots are created only by stock-in and decremented only by sale allocation.
- Per lot: 0 <= qty_remaining <= qty_received.
- Conservation, per product:
    SUM(qty_remaining) == SUM(qty_received) - SUM(qty_taken over its allocations)

FEFO order:
- expiry_date ASC, then created_at ASC, then id ASC (creation order).
"""


def fefo_order():
    return (StockLot.expiry_date.asc(), StockLot.created_at.asc(), StockLot.id.asc())


def eligible_lots(product_id: int, *, lock: bool = False) -> list[StockLot]:
    """Lots of product_id that still hold stock, in FEFO order."""
    query = (
        db.session.query(StockLot)
        .filter(StockLot.product_id == product_id, StockLot.qty_remaining > 0)
        .order_by(*fefo_order())
    )
    if lock:
        query = lock_for_update(query)
    return query.all()


def available_quantities(product_ids: Iterable[int]) -> dict[int, int]:
    """
    Sellable stock per product.

    Products without eligible lots are present with 0.
    """
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return {}
    rows = (
        db.session.query(StockLot.product_id, func.coalesce(func.sum(StockLot.qty_remaining), 0))
        .filter(StockLot.product_id.in_(ids), StockLot.qty_remaining > 0)
        .group_by(StockLot.product_id)
        .all()
    )
    totals = {product_id: 0 for product_id in ids}
    for product_id, total in rows:
        totals[product_id] = int(total or 0)
    return totals


def get_quantity_on_hand(product_id: int) -> int:
    return available_quantities([product_id])[product_id]


def get_inventory(include_inactive: bool = False) -> list[dict]:
    """Products by name with their total sellable quantity and non-empty lots in FEFO order."""
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    products = query.order_by(Product.name.asc(), Product.id.asc()).all()
    if not products:
        return []

    lots = (
        db.session.query(StockLot)
        .filter(
            StockLot.product_id.in_([p.id for p in products]),
            StockLot.qty_remaining > 0,
        )
        .order_by(*fefo_order())
        .all()
    )
    lots_by_product: dict[int, list[StockLot]] = {p.id: [] for p in products}
    for lot in lots:
        lots_by_product[lot.product_id].append(lot)

    result = []
    for product in products:
        product_lots = lots_by_product[product.id]
        row = product.to_dict()
        row["total_qty"] = sum(lot.qty_remaining for lot in product_lots)
        row["lots"] = [
            {
                "id": lot.id,
                "lot_ref_no": lot.lot_ref_no,
                "expiry_date": to_date_str(lot.expiry_date),
                "qty_remaining": lot.qty_remaining,
            }
            for lot in product_lots
        ]
        result.append(row)
    return result


def check_stock_invariants() -> list[dict]:
    """
    Verify lot bounds and the conservation law for every product.

    Returns a list of violations (empty when the lot store is consistent).
    """
    violations = []

    bad_lots = (
        db.session.query(StockLot)
        .filter((StockLot.qty_remaining < 0) | (StockLot.qty_remaining > StockLot.qty_received))
        .all()
    )
    for lot in bad_lots:
        violations.append({
            "kind": "lot-bounds",
            "stock_lot_id": lot.id,
            "product_id": lot.product_id,
            "qty_received": lot.qty_received,
            "qty_remaining": lot.qty_remaining,
        })

    lot_rows = (
        db.session.query(
            StockLot.product_id,
            func.coalesce(func.sum(StockLot.qty_received), 0),
            func.coalesce(func.sum(StockLot.qty_remaining), 0),
        )
        .group_by(StockLot.product_id)
        .all()
    )
    taken_rows = (
        db.session.query(StockLot.product_id, func.coalesce(func.sum(SaleLotAllocation.qty_taken), 0))
        .join(SaleLotAllocation, SaleLotAllocation.stock_lot_id == StockLot.id)
        .group_by(StockLot.product_id)
        .all()
    )
    taken = {product_id: int(total or 0) for product_id, total in taken_rows}

    for product_id, received, remaining in lot_rows:
        expected = int(received) - taken.get(product_id, 0)
        if int(remaining) != expected:
            violations.append({
                "kind": "conservation",
                "product_id": product_id,
                "qty_received": int(received),
                "qty_taken": taken.get(product_id, 0),
                "qty_remaining": int(remaining),
                "expected_remaining": expected,
            })

    return violations
