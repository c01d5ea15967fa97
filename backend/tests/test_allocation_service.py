"""
FEFO allocator tests.

Verifies:
- Earliest expiry drawn first, creation order on equal expiry
- Exact-sufficient stock drains lots to zero
- Insufficient stock raises without leaving decrements behind
- Guarded decrements detect stale lot snapshots
"""

from datetime import date, timedelta

import pytest
from sqlalchemy import update

from rxpos.errors import ConcurrencyConflictError, InsufficientStockError
from rxpos.extensions import db
from rxpos.models import StockLot
from rxpos.services.allocation_service import LotTake, allocate


def _as_pairs(takes):
    return [(t.lot_id, t.qty_taken) for t in takes]


def test_earliest_expiry_first_regardless_of_creation_order(db_session, make_product, make_lot, remaining):
    product = make_product()
    lot_b = make_lot(product, date(2026, 3, 1), 5)
    lot_a = make_lot(product, date(2026, 2, 1), 5)

    takes = allocate(product.id, 7)
    db_session.commit()

    assert _as_pairs(takes) == [(lot_a.id, 5), (lot_b.id, 2)]
    assert remaining(lot_a, lot_b) == [0, 3]


def test_relative_expiry_example(db_session, make_product, make_lot, remaining):
    product = make_product()
    today = date.today()
    lot_a = make_lot(product, today + timedelta(days=10), 2)
    lot_b = make_lot(product, today + timedelta(days=20), 5)

    takes = allocate(product.id, 6)
    db_session.commit()

    assert _as_pairs(takes) == [(lot_a.id, 2), (lot_b.id, 4)]
    assert remaining(lot_a, lot_b) == [0, 1]


def test_equal_expiry_uses_creation_order(db_session, make_product, make_lot):
    product = make_product()
    first = make_lot(product, date(2026, 5, 1), 3)
    second = make_lot(product, date(2026, 5, 1), 3)

    takes = allocate(product.id, 4)
    db_session.commit()

    assert _as_pairs(takes) == [(first.id, 3), (second.id, 1)]


def test_exhausted_lots_are_skipped(db_session, make_product, make_lot, remaining):
    product = make_product()
    empty = make_lot(product, date(2026, 1, 1), 4)
    db_session.execute(update(StockLot).where(StockLot.id == empty.id).values(qty_remaining=0))
    db_session.commit()
    later = make_lot(product, date(2026, 6, 1), 4)

    takes = allocate(product.id, 2)
    db_session.commit()

    assert takes == [LotTake(lot_id=later.id, qty_taken=2)]
    assert remaining(empty, later) == [0, 2]


def test_exactly_sufficient_stock_drains_every_lot(db_session, make_product, make_lot, remaining):
    product = make_product()
    lots = [
        make_lot(product, date(2026, 2, 1), 3),
        make_lot(product, date(2026, 4, 1), 1),
        make_lot(product, date(2026, 3, 1), 6),
    ]

    takes = allocate(product.id, 10)
    db_session.commit()

    assert sum(t.qty_taken for t in takes) == 10
    assert remaining(*lots) == [0, 0, 0]


def test_one_more_than_available_raises(db_session, make_product, make_lot, remaining):
    product = make_product()
    lot_a = make_lot(product, date(2026, 2, 1), 3)
    lot_b = make_lot(product, date(2026, 3, 1), 4)

    with pytest.raises(InsufficientStockError) as excinfo:
        allocate(product.id, 8)
    db_session.rollback()

    assert excinfo.value.code == "stock-too-low"
    assert excinfo.value.product_id == product.id
    assert excinfo.value.details["available"] == 7
    assert remaining(lot_a, lot_b) == [3, 4]


def test_product_without_lots_is_insufficient(db_session, make_product):
    product = make_product()

    with pytest.raises(InsufficientStockError):
        allocate(product.id, 1)
    db_session.rollback()


def test_other_products_lots_are_untouched(db_session, make_product, make_lot, remaining):
    aspirin = make_product(name="Aspirin")
    ibuprofen = make_product(name="Ibuprofen")
    aspirin_lot = make_lot(aspirin, date(2026, 2, 1), 5)
    ibuprofen_lot = make_lot(ibuprofen, date(2026, 1, 1), 5)

    allocate(aspirin.id, 5)
    db_session.commit()

    assert remaining(aspirin_lot, ibuprofen_lot) == [0, 5]


@pytest.mark.parametrize("qty", [0, -1, True, 1.5])
def test_non_positive_or_non_integer_quantity_is_a_contract_violation(db_session, make_product, qty):
    product = make_product()
    with pytest.raises(ValueError):
        allocate(product.id, qty)


def test_stale_lot_snapshot_is_a_concurrency_conflict(db_session, make_product, make_lot):
    product = make_product()
    lot = make_lot(product, date(2026, 2, 1), 5)
    assert lot.qty_remaining == 5  # loaded into the identity map

    # Another writer drains the lot behind the session's back
    db_session.execute(
        update(StockLot)
        .where(StockLot.id == lot.id)
        .values(qty_remaining=1)
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(ConcurrencyConflictError):
        allocate(product.id, 3)
    db.session.rollback()
