# Overview: Service-layer operations for stock receiving; each line becomes one new stock lot.

"""
Stock-In Service

WHY: Receiving is the only way stock enters the lot store. One batch gets
one STK-YYYYMMDD-NNNN reference, shared as lot_ref_no by every lot it
creates, and the whole batch commits or rolls back together.

IMMUTABLE: Stock-ins and their lots are never edited; lots only lose
quantity through sale allocation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..errors import NotFoundError, ProductInactiveError, ProductNotFoundError, ValidationError
from ..models import Product, StockIn, StockInItem, StockLot, User
from ..validation import StockInCommand
from .concurrency import begin_serializable, run_with_retry
from .sequence_service import SEQ_STOCK_IN, next_reference_number


def _create_stock_in_locked(actor_id: int, command: StockInCommand, moment: datetime | None) -> StockIn:
    user = db.session.get(User, actor_id) if actor_id is not None else None
    if user is None or not user.is_active:
        raise ValidationError("actor-not-found", code="actor-not-found", details={"user_id": actor_id})

    ids = {line.product_id for line in command.items}
    products = {p.id: p for p in db.session.query(Product).filter(Product.id.in_(ids)).all()}
    for line in command.items:
        product = products.get(line.product_id)
        if product is None:
            raise ProductNotFoundError(line.product_id)
        if not product.is_active:
            raise ProductInactiveError(product.id, product.name)

    ref_no = next_reference_number(SEQ_STOCK_IN, moment)

    stock_in = StockIn(ref_no=ref_no, created_by_user_id=actor_id, note=command.note)
    db.session.add(stock_in)
    db.session.flush()

    items = []
    for line in command.items:
        item = StockInItem(
            stock_in_id=stock_in.id,
            product_id=line.product_id,
            qty_added=line.qty_added,
            unit_cost_cents=line.unit_cost_cents,
            expiry_date=line.expiry_date,
        )
        db.session.add(item)
        items.append(item)
    db.session.flush()

    for item in items:
        db.session.add(StockLot(
            product_id=item.product_id,
            stock_in_item_id=item.id,
            lot_ref_no=ref_no,
            expiry_date=item.expiry_date,
            qty_received=item.qty_added,
            qty_remaining=item.qty_added,
            created_by_user_id=actor_id,
        ))
    db.session.flush()

    return stock_in


def create_stock_in(
    actor_id: int,
    items: Iterable | StockInCommand,
    note: str | None = None,
    *,
    moment: datetime | None = None,
) -> StockIn:
    """
    Record a stock-in batch and create one lot per line.

    Args:
        actor_id: User receiving the stock
        items: (product_id, qty_added, unit_cost_cents, expiry_date) tuples,
            dicts, or a validated StockInCommand
        note: Optional free text
        moment: Business time used for the reference date key (default: now)

    Raises:
        ValidationError, ProductNotFoundError, ProductInactiveError,
        ConcurrencyConflictError (retries exhausted)
    """
    if isinstance(items, StockInCommand):
        command = items
    else:
        command = StockInCommand.build(items, note)

    def _op():
        begin_serializable()
        stock_in = _create_stock_in_locked(actor_id, command, moment)
        db.session.commit()
        return stock_in.id

    stock_in_id = run_with_retry(_op)
    stock_in = get_stock_in(stock_in_id)
    current_app.logger.info(
        "Stock-in %s committed: %d lot(s), user_id=%s",
        stock_in.ref_no, len(stock_in.items), actor_id,
    )
    return stock_in


def _stock_in_query():
    return db.session.query(StockIn).options(
        selectinload(StockIn.created_by),
        selectinload(StockIn.items).selectinload(StockInItem.product),
        selectinload(StockIn.items).selectinload(StockInItem.stock_lots),
    )


def get_stock_in(stock_in_id: int) -> StockIn:
    stock_in = _stock_in_query().filter(StockIn.id == stock_in_id).first()
    if stock_in is None:
        raise NotFoundError("stock-in-not-found", code="stock-in-not-found", details={"stock_in_id": stock_in_id})
    return stock_in


def list_stock_ins() -> list[StockIn]:
    return _stock_in_query().order_by(StockIn.created_at.desc(), StockIn.id.desc()).all()
