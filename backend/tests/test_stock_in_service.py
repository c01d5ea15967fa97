"""
Stock-in tests.

Verifies:
- One lot per line, sharing the batch reference number
- Lots start full and carry the line's expiry date
- Failed batches leave no header, items, lots or reference number behind
"""

from datetime import date, datetime

import pytest

from rxpos.errors import NotFoundError, ProductInactiveError, ProductNotFoundError, ValidationError
from rxpos.models import DailySequence, StockIn, StockInItem, StockLot
from rxpos.services import inventory_service
from rxpos.services.stock_in_service import create_stock_in, get_stock_in, list_stock_ins


RECEIVE_DAY = datetime(2026, 1, 29, 8, 30)


def test_each_line_becomes_one_full_lot(db_session, owner, make_product):
    aspirin = make_product(name="Aspirin")
    syrup = make_product(name="Syrup")

    stock_in = create_stock_in(
        owner.id,
        [
            {"product_id": aspirin.id, "qty_added": 10, "unit_cost_cents": 90, "expiry_date": "2026-08-31"},
            {"product_id": syrup.id, "qty_added": 4, "unit_cost_cents": 450, "expiry_date": "2027-01-15"},
            {"product_id": aspirin.id, "qty_added": 6, "unit_cost_cents": 95, "expiry_date": "2026-05-31"},
        ],
        note="Weekly delivery",
        moment=RECEIVE_DAY,
    )

    assert stock_in.ref_no == "STK-20260129-0001"
    assert stock_in.note == "Weekly delivery"
    assert stock_in.created_by_user_id == owner.id
    assert len(stock_in.items) == 3

    for item in stock_in.items:
        [lot] = item.stock_lots
        assert lot.lot_ref_no == stock_in.ref_no
        assert lot.product_id == item.product_id
        assert lot.expiry_date == item.expiry_date
        assert lot.qty_received == item.qty_added
        assert lot.qty_remaining == item.qty_added

    assert inventory_service.get_quantity_on_hand(aspirin.id) == 16
    assert inventory_service.get_quantity_on_hand(syrup.id) == 4
    assert inventory_service.check_stock_invariants() == []


def test_lots_from_one_batch_are_sold_fefo(db_session, owner, make_product):
    product = make_product()
    create_stock_in(
        owner.id,
        [(product.id, 5, 100, date(2026, 9, 1)), (product.id, 5, 100, date(2026, 4, 1))],
        moment=RECEIVE_DAY,
    )

    lots = inventory_service.eligible_lots(product.id)
    assert [lot.expiry_date for lot in lots] == [date(2026, 4, 1), date(2026, 9, 1)]


def test_reference_numbers_increment_per_day(db_session, owner, make_product):
    product = make_product()

    first = create_stock_in(owner.id, [(product.id, 1, 100, date(2026, 9, 1))], moment=RECEIVE_DAY)
    second = create_stock_in(owner.id, [(product.id, 1, 100, date(2026, 9, 1))], moment=RECEIVE_DAY)

    assert first.ref_no == "STK-20260129-0001"
    assert second.ref_no == "STK-20260129-0002"


def _assert_nothing_received(db_session):
    assert db_session.query(StockIn).count() == 0
    assert db_session.query(StockInItem).count() == 0
    assert db_session.query(StockLot).count() == 0
    assert db_session.query(DailySequence).filter_by(seq_type="STK").count() == 0


def test_inactive_product_rolls_back_whole_batch(db_session, owner, make_product):
    active = make_product(name="Active")
    retired = make_product(name="Retired", is_active=False)

    with pytest.raises(ProductInactiveError):
        create_stock_in(
            owner.id,
            [(active.id, 5, 100, date(2026, 9, 1)), (retired.id, 5, 100, date(2026, 9, 1))],
            moment=RECEIVE_DAY,
        )

    _assert_nothing_received(db_session)


def test_unknown_product_rolls_back_whole_batch(db_session, owner, make_product):
    product = make_product()

    with pytest.raises(ProductNotFoundError):
        create_stock_in(
            owner.id,
            [(product.id, 5, 100, date(2026, 9, 1)), (product.id + 500, 5, 100, date(2026, 9, 1))],
            moment=RECEIVE_DAY,
        )

    _assert_nothing_received(db_session)


@pytest.mark.parametrize(
    "line,code",
    [
        ({"qty_added": 0, "unit_cost_cents": 100, "expiry_date": "2026-09-01"}, "invalid-qty"),
        ({"qty_added": 3, "unit_cost_cents": 0, "expiry_date": "2026-09-01"}, "invalid-unit-cost"),
        ({"qty_added": 3, "unit_cost_cents": 100, "expiry_date": "01/09/2026"}, "invalid-date"),
        ({"qty_added": 3, "unit_cost_cents": 100, "expiry_date": "2026-02-30"}, "invalid-date"),
        ({"qty_added": 3, "unit_cost_cents": 100}, "invalid-date"),
    ],
)
def test_invalid_lines_are_rejected(db_session, owner, make_product, line, code):
    product = make_product()

    with pytest.raises(ValidationError) as excinfo:
        create_stock_in(owner.id, [{"product_id": product.id, **line}], moment=RECEIVE_DAY)

    assert excinfo.value.code == code
    _assert_nothing_received(db_session)


def test_empty_batch_is_rejected(db_session, owner):
    with pytest.raises(ValidationError) as excinfo:
        create_stock_in(owner.id, [], moment=RECEIVE_DAY)
    assert excinfo.value.code == "stock-in-items-required"


def test_get_and_list_stock_ins(db_session, owner, make_product):
    product = make_product()
    first = create_stock_in(owner.id, [(product.id, 1, 100, date(2026, 9, 1))], moment=RECEIVE_DAY)
    second = create_stock_in(owner.id, [(product.id, 2, 100, date(2026, 9, 1))], moment=RECEIVE_DAY)

    assert get_stock_in(first.id).ref_no == first.ref_no
    assert [s.id for s in list_stock_ins()] == [second.id, first.id]

    with pytest.raises(NotFoundError) as excinfo:
        get_stock_in(99999)
    assert excinfo.value.code == "stock-in-not-found"
