from __future__ import annotations

from ..extensions import db
from rxpos.time_utils import to_utc_z, to_date_str


class Sale(db.Model):
    """
    Committed sale. There is no draft state: a sale row exists only once
    its items and lot allocations have been written in the same transaction.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_sold_at", "sold_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable receipt number (e.g., "RCPT-20260129-0001")
    receipt_no = db.Column(db.String(32), nullable=False, unique=True, index=True)

    sold_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    total_amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    sold_by = db.relationship("User")
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
        lazy="selectin",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "receipt_no": self.receipt_no,
            "sold_by_user_id": self.sold_by_user_id,
            "sold_by": self.sold_by.to_dict() if self.sold_by else None,
            "sold_at": to_utc_z(self.sold_at),
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "note": self.note,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_sale_items_qty_pos"),
        db.CheckConstraint("line_total_cents = unit_price_cents * qty", name="ck_sale_items_line_total"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    qty = db.Column(db.Integer, nullable=False)

    # Price snapshot at sale time
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")
    allocations = db.relationship(
        "SaleLotAllocation",
        back_populates="sale_item",
        order_by="SaleLotAllocation.id",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "allocations": [a.to_dict() for a in self.allocations],
        }


class SaleLotAllocation(db.Model):
    """How much of a sale line was drawn from one lot. Append-only."""
    __tablename__ = "sale_lot_allocations"
    __table_args__ = (
        db.CheckConstraint("qty_taken > 0", name="ck_sale_lot_allocations_qty_pos"),
        db.UniqueConstraint("sale_item_id", "stock_lot_id", name="uq_sale_lot_allocations_item_lot"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=False, index=True)
    stock_lot_id = db.Column(db.Integer, db.ForeignKey("stock_lots.id"), nullable=False, index=True)
    qty_taken = db.Column(db.Integer, nullable=False)

    sale_item = db.relationship("SaleItem", back_populates="allocations")
    stock_lot = db.relationship("StockLot", lazy="joined")

    def to_dict(self) -> dict:
        lot = self.stock_lot
        return {
            "id": self.id,
            "stock_lot_id": self.stock_lot_id,
            "qty_taken": self.qty_taken,
            "lot_ref_no": lot.lot_ref_no if lot else None,
            "expiry_date": to_date_str(lot.expiry_date) if lot else None,
        }
