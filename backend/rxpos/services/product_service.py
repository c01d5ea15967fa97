# backend/rxpos/services/product_service.py
"""
Product catalog service.

Products are soft-deactivated, never deleted: lots and sale lines keep
pointing at them. Price edits only affect future sales.
"""
from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Product
from .inventory_service import available_quantities

PRODUCT_MUTABLE_FIELDS = {"name", "selling_price_cents", "reorder_level", "is_active"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(
            f"product-not-found:{product_id}",
            code="product-not-found",
            details={"product_id": product_id},
        )
    return product


def list_products(include_inactive: bool = False) -> list[dict]:
    """Products ordered by name, each with its current sellable total_qty."""
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    products = query.order_by(Product.name.asc(), Product.id.asc()).all()

    totals = available_quantities(p.id for p in products)
    items = []
    for product in products:
        row = product.to_dict()
        row["total_qty"] = totals.get(product.id, 0)
        items.append(row)
    return items


def create_product(
    name: str,
    selling_price_cents: int,
    reorder_level: int | None = None,
    is_active: bool = True,
) -> Product:
    product = Product(
        name=name,
        selling_price_cents=selling_price_cents,
        reorder_level=reorder_level,
        is_active=is_active,
    )
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, patch: dict) -> Product:
    if not patch:
        raise ValidationError("nothing-to-update", code="nothing-to-update")
    product = get_product(product_id)
    apply_product_patch(product, patch)
    db.session.commit()
    return product
