# Overview: FEFO allocation of a sale line's quantity across a product's stock lots.

"""
FEFO Allocator

Greedy by expiry: walk the product's lots earliest-expiry first (creation
order on ties) and take as much as each lot holds until the request is met.
Not an optimization problem; the walk is fixed so identical inputs always
produce identical allocations.

Runs inside an already-open unit of work. On insufficient stock it raises
and the caller rolls back, so decrements already issued never persist.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..errors import ConcurrencyConflictError, InsufficientStockError
from ..models import SaleItem, SaleLotAllocation, StockLot
from .inventory_service import eligible_lots


@dataclass(frozen=True)
class LotTake:
    lot_id: int
    qty_taken: int


def _decrement_lot(lot: StockLot, take: int) -> None:
    # Guarded: never drives a lot below zero even if our snapshot is stale
    result = db.session.execute(
        update(StockLot)
        .where(StockLot.id == lot.id, StockLot.qty_remaining >= take)
        .values(qty_remaining=StockLot.qty_remaining - take)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrencyConflictError(
            "concurrency-conflict",
            details={"resource": "stock_lot", "stock_lot_id": lot.id},
        )
    db.session.expire(lot, ["qty_remaining"])


def allocate(product_id: int, qty_needed: int) -> list[LotTake]:
    """
    Deduct qty_needed units of product_id from its lots in FEFO order.

    Returns the (lot_id, qty_taken) list in the order lots were drawn.

    Raises:
        ValueError: qty_needed is not a positive integer (caller bug)
        InsufficientStockError: the eligible lots hold less than qty_needed
        ConcurrencyConflictError: a guarded decrement matched no row
    """
    if isinstance(qty_needed, bool) or not isinstance(qty_needed, int) or qty_needed <= 0:
        raise ValueError(f"qty_needed must be a positive integer, got {qty_needed!r}")

    lots = eligible_lots(product_id, lock=True)
    current_app.logger.debug(
        "Allocating %d of product %s across %d eligible lots", qty_needed, product_id, len(lots)
    )

    takes: list[LotTake] = []
    remaining = qty_needed
    for lot in lots:
        if remaining <= 0:
            break
        take = min(remaining, lot.qty_remaining)
        if take <= 0:
            continue
        current_app.logger.debug(
            "Lot %s (%s, expires %s): taking %d of %d",
            lot.id, lot.lot_ref_no, lot.expiry_date, take, lot.qty_remaining,
        )
        _decrement_lot(lot, take)
        takes.append(LotTake(lot_id=lot.id, qty_taken=take))
        remaining -= take

    if remaining > 0:
        raise InsufficientStockError(product_id, requested=qty_needed, available=qty_needed - remaining)

    return takes


def allocate_for_sale_item(item: SaleItem) -> list[SaleLotAllocation]:
    """Allocate a persisted sale line and record one SaleLotAllocation per lot drawn."""
    allocations = []
    for take in allocate(item.product_id, item.qty):
        allocation = SaleLotAllocation(
            sale_id=item.sale_id,
            sale_item_id=item.id,
            stock_lot_id=take.lot_id,
            qty_taken=take.qty_taken,
        )
        db.session.add(allocation)
        allocations.append(allocation)
    db.session.flush()
    return allocations
