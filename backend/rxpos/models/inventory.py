from __future__ import annotations

from ..extensions import db
from rxpos.time_utils import to_utc_z, to_date_str


class StockIn(db.Model):
    """
    Stock receiving batch.

    ref_no is STK-YYYYMMDD-NNNN and doubles as the lot_ref_no of every
    lot created by the batch.
    """
    __tablename__ = "stock_ins"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    ref_no = db.Column(db.String(32), nullable=False, unique=True, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    created_by = db.relationship("User")
    items = db.relationship(
        "StockInItem",
        back_populates="stock_in",
        order_by="StockInItem.id",
        lazy="selectin",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "ref_no": self.ref_no,
            "created_by_user_id": self.created_by_user_id,
            "created_by": self.created_by.to_dict() if self.created_by else None,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class StockInItem(db.Model):
    __tablename__ = "stock_in_items"
    __table_args__ = (
        db.CheckConstraint("qty_added > 0", name="ck_stock_in_items_qty_pos"),
        db.CheckConstraint("unit_cost_cents > 0", name="ck_stock_in_items_cost_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_in_id = db.Column(db.Integer, db.ForeignKey("stock_ins.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    qty_added = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    expiry_date = db.Column(db.Date, nullable=False)

    stock_in = db.relationship("StockIn", back_populates="items")
    product = db.relationship("Product")
    stock_lots = db.relationship("StockLot", back_populates="stock_in_item", order_by="StockLot.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_in_id": self.stock_in_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "qty_added": self.qty_added,
            "unit_cost_cents": self.unit_cost_cents,
            "expiry_date": to_date_str(self.expiry_date),
            "stock_lots": [lot.to_dict() for lot in self.stock_lots],
        }


class StockLot(db.Model):
    """
    A physical batch of one product with its own expiry date.

    INVARIANTS:
    - 0 <= qty_remaining <= qty_received (CHECK constraints below)
    - qty_remaining only decreases, and only through sale allocation
    - lots are never merged, split or deleted; exhausted lots stay at 0

    FEFO order is (expiry_date, created_at, id) ascending; id breaks ties
    between lots created in the same second.
    """
    __tablename__ = "stock_lots"
    __table_args__ = (
        db.CheckConstraint("qty_remaining >= 0", name="ck_stock_lots_remaining_nonneg"),
        db.CheckConstraint("qty_remaining <= qty_received", name="ck_stock_lots_remaining_le_received"),
        db.Index("ix_stock_lots_product_fefo", "product_id", "expiry_date", "created_at", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    stock_in_item_id = db.Column(db.Integer, db.ForeignKey("stock_in_items.id"), nullable=True, index=True)
    lot_ref_no = db.Column(db.String(32), nullable=False, index=True)
    expiry_date = db.Column(db.Date, nullable=False, index=True)
    qty_received = db.Column(db.Integer, nullable=False)
    qty_remaining = db.Column(db.Integer, nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("stock_lots", lazy=True))
    stock_in_item = db.relationship("StockInItem", back_populates="stock_lots")

    def __repr__(self) -> str:
        return (
            f"<StockLot id={self.id} product_id={self.product_id} "
            f"expiry={self.expiry_date} remaining={self.qty_remaining}/{self.qty_received}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "stock_in_item_id": self.stock_in_item_id,
            "lot_ref_no": self.lot_ref_no,
            "expiry_date": to_date_str(self.expiry_date),
            "qty_received": self.qty_received,
            "qty_remaining": self.qty_remaining,
            "created_at": to_utc_z(self.created_at),
        }


class DailySequence(db.Model):
    """
    Per-(day, type) counter behind receipt and stock-in reference numbers.

    WHY: One row per partition, updated inside the business transaction,
    so concurrent sales serialize on the row rather than on a process lock.
    """
    __tablename__ = "daily_sequences"
    __table_args__ = (
        db.UniqueConstraint("date_key", "seq_type", name="uq_daily_sequences_date_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date_key = db.Column(db.String(8), nullable=False)
    seq_type = db.Column(db.String(16), nullable=False)
    last_seq = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date_key": self.date_key,
            "seq_type": self.seq_type,
            "last_seq": self.last_seq,
        }
