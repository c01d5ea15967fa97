"""
Sales Service - atomic sale creation with FEFO lot allocation

WHY: A sale is the only thing that consumes stock. Header, lines, lot
decrements and the receipt number are written in one serializable unit of
work so a sale is either fully committed or never happened.

FLOW (create_sale):
1. Validate the command (no transaction yet)
2. BEGIN at the strongest isolation level
3. Products exist, are active, and have enough aggregate stock
4. Receipt number RCPT-YYYYMMDD-NNNN from the daily sequence
5. Snapshot unit prices, persist Sale + SaleItems in submitted order
6. FEFO-allocate each line (sees earlier lines' decrements)
7. COMMIT; any failure rolls everything back

Transient conflicts are retried a bounded number of times
(SALE_RETRY_ATTEMPTS); business errors are raised immediately.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..errors import (
    InsufficientStockError,
    NotFoundError,
    ProductInactiveError,
    ProductNotFoundError,
    ValidationError,
)
from ..models import Product, Sale, SaleItem, SaleLotAllocation, StockLot, User
from ..validation import SaleCommand
from rxpos.time_utils import to_utc_z, utcnow
from .allocation_service import allocate_for_sale_item
from .concurrency import begin_serializable, run_with_retry
from .inventory_service import available_quantities
from .sequence_service import SEQ_RECEIPT, next_reference_number


def _require_actor(actor_id: int) -> User:
    user = db.session.get(User, actor_id) if actor_id is not None else None
    if user is None or not user.is_active:
        raise ValidationError("actor-not-found", code="actor-not-found", details={"user_id": actor_id})
    return user


def _load_products(command: SaleCommand) -> dict[int, Product]:
    """Existence and activity checks, in submitted line order."""
    ids = {line.product_id for line in command.items}
    products = {p.id: p for p in db.session.query(Product).filter(Product.id.in_(ids)).all()}
    for line in command.items:
        product = products.get(line.product_id)
        if product is None:
            raise ProductNotFoundError(line.product_id)
        if not product.is_active:
            raise ProductInactiveError(product.id, product.name)
    return products


def _validate_stock(command: SaleCommand) -> None:
    """
    Fast-fail: sum of requested qty per product vs sum of remaining lot qty.

    The allocator re-checks per line; this only avoids writing a sale that
    is bound to fail.
    """
    requested: dict[int, int] = {}
    for line in command.items:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.qty

    available = available_quantities(requested)
    for product_id, qty in requested.items():
        if available[product_id] < qty:
            raise InsufficientStockError(product_id, requested=qty, available=available[product_id])


def _create_sale_locked(actor_id: int, command: SaleCommand, moment: datetime | None) -> Sale:
    _require_actor(actor_id)
    products = _load_products(command)
    _validate_stock(command)

    receipt_no = next_reference_number(SEQ_RECEIPT, moment)

    lines = []
    total_amount_cents = 0
    for line in command.items:
        unit_price_cents = products[line.product_id].selling_price_cents
        line_total_cents = unit_price_cents * line.qty
        total_amount_cents += line_total_cents
        lines.append((line, unit_price_cents, line_total_cents))

    sale = Sale(
        receipt_no=receipt_no,
        sold_by_user_id=actor_id,
        sold_at=utcnow(),
        total_amount_cents=total_amount_cents,
        payment_method=command.payment_method,
        note=command.note,
    )
    db.session.add(sale)
    db.session.flush()

    items = []
    for line, unit_price_cents, line_total_cents in lines:
        item = SaleItem(
            sale_id=sale.id,
            product_id=line.product_id,
            qty=line.qty,
            unit_price_cents=unit_price_cents,
            line_total_cents=line_total_cents,
        )
        db.session.add(item)
        items.append(item)
    db.session.flush()

    for item in items:
        allocate_for_sale_item(item)

    return sale


def create_sale(
    actor_id: int,
    items: Iterable | SaleCommand,
    payment_method: str | None = None,
    note: str | None = None,
    *,
    moment: datetime | None = None,
) -> Sale:
    """
    Create and commit a sale.

    Args:
        actor_id: Authenticated user making the sale
        items: (product_id, qty) pairs, dicts, or a validated SaleCommand
        payment_method: Optional tender label (e.g. CASH)
        note: Optional free text
        moment: Business time used for the receipt date key (default: now)

    Returns:
        The committed Sale (items/allocations load on access)

    Raises:
        ValidationError, ProductNotFoundError, ProductInactiveError,
        InsufficientStockError, ConcurrencyConflictError (retries exhausted)
    """
    if isinstance(items, SaleCommand):
        command = items
    else:
        command = SaleCommand.build(items, payment_method, note)

    def _op():
        begin_serializable()
        sale = _create_sale_locked(actor_id, command, moment)
        db.session.commit()
        return sale.id

    sale_id = run_with_retry(_op)
    sale = get_sale(sale_id)
    current_app.logger.info(
        "Sale %s committed: %d line(s), total_cents=%d, user_id=%s",
        sale.receipt_no, len(sale.items), sale.total_amount_cents, actor_id,
    )
    return sale


def _sale_query():
    return db.session.query(Sale).options(
        selectinload(Sale.items).selectinload(SaleItem.product),
        selectinload(Sale.items)
        .selectinload(SaleItem.allocations)
        .selectinload(SaleLotAllocation.stock_lot)
        .selectinload(StockLot.stock_in_item),
    )


def get_sale(sale_id: int) -> Sale:
    sale = _sale_query().filter(Sale.id == sale_id).first()
    if sale is None:
        raise NotFoundError("sale-not-found", code="sale-not-found", details={"sale_id": sale_id})
    return sale


def list_sales(
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    sold_by_user_id: int | None = None,
    product_id: int | None = None,
    receipt_no: str | None = None,
) -> list[Sale]:
    """Sales newest first; date bounds are inclusive and compare against sold_at (UTC)."""
    query = _sale_query()
    if date_from is not None:
        query = query.filter(Sale.sold_at >= date_from)
    if date_to is not None:
        query = query.filter(Sale.sold_at <= date_to)
    if sold_by_user_id is not None:
        query = query.filter(Sale.sold_by_user_id == sold_by_user_id)
    if product_id is not None:
        query = query.filter(Sale.items.any(SaleItem.product_id == product_id))
    if receipt_no:
        query = query.filter(Sale.receipt_no == receipt_no)
    return query.order_by(Sale.sold_at.desc(), Sale.id.desc()).all()


def sale_summary(sale: Sale) -> dict:
    """
    Net total, cost of goods and profit for one sale.

    Cost comes from each allocation's lot -> stock-in item unit cost, so
    profit reflects exactly which batches were sold.
    """
    net_total = sum(item.line_total_cents for item in sale.items)
    total_cost = 0
    for item in sale.items:
        for allocation in item.allocations:
            stock_in_item = allocation.stock_lot.stock_in_item
            unit_cost = stock_in_item.unit_cost_cents if stock_in_item else 0
            total_cost += unit_cost * allocation.qty_taken
    return {
        "id": sale.id,
        "receipt_no": sale.receipt_no,
        "sold_at": to_utc_z(sale.sold_at),
        "payment_method": sale.payment_method,
        "sold_by": {
            "id": sale.sold_by.id,
            "name": sale.sold_by.name,
            "username": sale.sold_by.username,
        } if sale.sold_by else None,
        "net_total_cents": net_total,
        "total_cost_cents": total_cost,
        "profit_cents": net_total - total_cost,
        "items": [
            {
                "id": item.id,
                "product_name": item.product.name if item.product else None,
                "qty": item.qty,
                "unit_price_cents": item.unit_price_cents,
                "line_total_cents": item.line_total_cents,
            }
            for item in sale.items
        ],
    }
