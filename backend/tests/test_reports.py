"""
Catalog, inventory and report tests.

Verifies:
- Product listing carries sellable totals and hides inactive products
- Inventory view lists only lots that still hold stock, in FEFO order
- Low-stock, expiring, expired and top-seller reports
"""

from datetime import date, datetime, timedelta

import pytest

from rxpos.errors import NotFoundError, ValidationError
from rxpos.services import inventory_service, product_service, report_service
from rxpos.services.sales_service import create_sale


TODAY = date(2026, 1, 29)
SALE_DAY = datetime(2026, 1, 29, 10, 0)


# =============================================================================
# Products
# =============================================================================

def test_list_products_with_totals(db_session, make_product, make_lot):
    syrup = make_product(name="Syrup")
    aspirin = make_product(name="Aspirin")
    make_product(name="Retired", is_active=False)
    make_lot(aspirin, date(2026, 6, 1), 4)
    make_lot(aspirin, date(2026, 7, 1), 6)

    rows = product_service.list_products()

    assert [(r["name"], r["total_qty"]) for r in rows] == [("Aspirin", 10), ("Syrup", 0)]
    assert len(product_service.list_products(include_inactive=True)) == 3
    assert syrup.id in {r["id"] for r in rows}


def test_update_product_changes_only_given_fields(db_session, make_product):
    product = make_product(name="Aspirin", price_cents=300, reorder_level=5)

    updated = product_service.update_product(product.id, {"selling_price_cents": 325})

    assert updated.selling_price_cents == 325
    assert updated.name == "Aspirin"
    assert updated.reorder_level == 5


def test_update_product_requires_a_change(db_session, make_product):
    product = make_product()
    with pytest.raises(ValidationError):
        product_service.update_product(product.id, {})


def test_get_missing_product(db_session):
    with pytest.raises(NotFoundError) as excinfo:
        product_service.get_product(777)
    assert excinfo.value.status == 404


# =============================================================================
# Inventory
# =============================================================================

def test_inventory_lists_non_empty_lots_fefo(db_session, owner, make_product, make_lot):
    product = make_product(name="Aspirin")
    later = make_lot(product, date(2026, 9, 1), 5)
    sooner = make_lot(product, date(2026, 3, 1), 2)
    create_sale(owner.id, [(product.id, 2)], moment=SALE_DAY)

    [row] = inventory_service.get_inventory()

    assert row["total_qty"] == 5
    assert [lot["id"] for lot in row["lots"]] == [later.id]
    assert row["lots"][0]["expiry_date"] == "2026-09-01"
    assert sooner.id not in [lot["id"] for lot in row["lots"]]


def test_available_quantities_defaults_to_zero(db_session, make_product):
    product = make_product()
    assert inventory_service.available_quantities([product.id]) == {product.id: 0}
    assert inventory_service.available_quantities([]) == {}


# =============================================================================
# Reports
# =============================================================================

def test_low_stock_includes_products_at_or_below_reorder_level(db_session, make_product, make_lot):
    at_level = make_product(name="At Level", reorder_level=5)
    below = make_product(name="Below", reorder_level=5)
    above = make_product(name="Above", reorder_level=5)
    make_product(name="No Level")
    make_lot(at_level, date(2026, 6, 1), 5)
    make_lot(below, date(2026, 6, 1), 1)
    make_lot(above, date(2026, 6, 1), 6)

    rows = report_service.low_stock_products()

    assert [(r["name"], r["total_qty"]) for r in rows] == [("At Level", 5), ("Below", 1)]
    assert above.id not in [r["id"] for r in rows]


def test_expiring_lots_window(db_session, make_product, make_lot):
    product = make_product()
    make_lot(product, TODAY - timedelta(days=1), 3)
    today_lot = make_lot(product, TODAY, 3)
    edge_lot = make_lot(product, TODAY + timedelta(days=30), 3)
    make_lot(product, TODAY + timedelta(days=31), 3)

    rows = report_service.expiring_lots(30, today=TODAY)

    assert [r["id"] for r in rows] == [today_lot.id, edge_lot.id]
    assert [r["days_until_expiry"] for r in rows] == [0, 30]
    assert rows[0]["product"]["name"] == product.name


def test_expiring_lots_rejects_non_positive_window(db_session):
    with pytest.raises(ValueError):
        report_service.expiring_lots(0, today=TODAY)


def test_expired_lots_still_holding_stock(db_session, make_product, make_lot):
    product = make_product()
    stale = make_lot(product, TODAY - timedelta(days=10), 2)
    make_lot(product, TODAY, 2)

    rows = report_service.expired_lots(today=TODAY)

    assert [(r["id"], r["days_expired"]) for r in rows] == [(stale.id, 10)]


def test_top_products_by_quantity(db_session, owner, make_product, make_lot):
    aspirin = make_product(name="Aspirin", price_cents=100)
    syrup = make_product(name="Syrup", price_cents=500)
    make_lot(aspirin, date(2026, 6, 1), 20)
    make_lot(syrup, date(2026, 6, 1), 20)

    create_sale(owner.id, [(aspirin.id, 4), (syrup.id, 1)], moment=SALE_DAY)
    create_sale(owner.id, [(aspirin.id, 3), (syrup.id, 2)], moment=SALE_DAY)

    rows = report_service.top_products()

    assert rows == [
        {"product_id": aspirin.id, "name": "Aspirin", "total_qty": 7, "total_sales_cents": 700},
        {"product_id": syrup.id, "name": "Syrup", "total_qty": 3, "total_sales_cents": 1500},
    ]
    assert report_service.top_products(limit=1)[0]["product_id"] == aspirin.id
    assert report_service.top_products(date_from=datetime(2100, 1, 1)) == []
