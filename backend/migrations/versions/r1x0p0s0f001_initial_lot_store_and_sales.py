"""initial lot store and sales schema

Revision ID: r1x0p0s0f001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete RxPOS schema:
- users, products: actors and catalog
- stock_ins, stock_in_items, stock_lots: receiving batches and expiry-dated lots
- sales, sale_items, sale_lot_allocations: committed sales and FEFO draws
- daily_sequences: per-(day, type) counters behind RCPT/STK numbers
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'r1x0p0s0f001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, index: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'), index=index)


def upgrade():
    # ============================================================================
    # users, products
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False),
        sa.Column('reorder_level', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('selling_price_cents >= 0', name='ck_products_price_nonneg'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_active_name', 'products', ['is_active', 'name'])

    # ============================================================================
    # stock_ins, stock_in_items, stock_lots
    # ============================================================================
    op.create_table(
        'stock_ins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ref_no', sa.String(length=32), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_ins_ref_no', 'stock_ins', ['ref_no'], unique=True)
    op.create_index('ix_stock_ins_created_by_user_id', 'stock_ins', ['created_by_user_id'])
    op.create_index('ix_stock_ins_created_at', 'stock_ins', ['created_at'])

    op.create_table(
        'stock_in_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('stock_in_id', sa.Integer(), sa.ForeignKey('stock_ins.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('qty_added', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.CheckConstraint('qty_added > 0', name='ck_stock_in_items_qty_pos'),
        sa.CheckConstraint('unit_cost_cents > 0', name='ck_stock_in_items_cost_pos'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_in_items_stock_in_id', 'stock_in_items', ['stock_in_id'])
    op.create_index('ix_stock_in_items_product_id', 'stock_in_items', ['product_id'])

    op.create_table(
        'stock_lots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('stock_in_item_id', sa.Integer(), sa.ForeignKey('stock_in_items.id'), nullable=True),
        sa.Column('lot_ref_no', sa.String(length=32), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('qty_received', sa.Integer(), nullable=False),
        sa.Column('qty_remaining', sa.Integer(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        _timestamp('created_at'),
        sa.CheckConstraint('qty_remaining >= 0', name='ck_stock_lots_remaining_nonneg'),
        sa.CheckConstraint('qty_remaining <= qty_received', name='ck_stock_lots_remaining_le_received'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_lots_product_id', 'stock_lots', ['product_id'])
    op.create_index('ix_stock_lots_stock_in_item_id', 'stock_lots', ['stock_in_item_id'])
    op.create_index('ix_stock_lots_lot_ref_no', 'stock_lots', ['lot_ref_no'])
    op.create_index('ix_stock_lots_expiry_date', 'stock_lots', ['expiry_date'])
    op.create_index('ix_stock_lots_product_fefo', 'stock_lots', ['product_id', 'expiry_date', 'created_at', 'id'])

    # ============================================================================
    # sales, sale_items, sale_lot_allocations
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('receipt_no', sa.String(length=32), nullable=False),
        sa.Column('sold_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        _timestamp('sold_at'),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_receipt_no', 'sales', ['receipt_no'], unique=True)
    op.create_index('ix_sales_sold_by_user_id', 'sales', ['sold_by_user_id'])
    op.create_index('ix_sales_sold_at', 'sales', ['sold_at'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.CheckConstraint('qty > 0', name='ck_sale_items_qty_pos'),
        sa.CheckConstraint('line_total_cents = unit_price_cents * qty', name='ck_sale_items_line_total'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_product_id', 'sale_items', ['product_id'])

    op.create_table(
        'sale_lot_allocations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id'), nullable=False),
        sa.Column('sale_item_id', sa.Integer(), sa.ForeignKey('sale_items.id'), nullable=False),
        sa.Column('stock_lot_id', sa.Integer(), sa.ForeignKey('stock_lots.id'), nullable=False),
        sa.Column('qty_taken', sa.Integer(), nullable=False),
        sa.CheckConstraint('qty_taken > 0', name='ck_sale_lot_allocations_qty_pos'),
        sa.UniqueConstraint('sale_item_id', 'stock_lot_id', name='uq_sale_lot_allocations_item_lot'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_lot_allocations_sale_id', 'sale_lot_allocations', ['sale_id'])
    op.create_index('ix_sale_lot_allocations_sale_item_id', 'sale_lot_allocations', ['sale_item_id'])
    op.create_index('ix_sale_lot_allocations_stock_lot_id', 'sale_lot_allocations', ['stock_lot_id'])

    # ============================================================================
    # daily_sequences
    # ============================================================================
    op.create_table(
        'daily_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('date_key', sa.String(length=8), nullable=False),
        sa.Column('seq_type', sa.String(length=16), nullable=False),
        sa.Column('last_seq', sa.Integer(), nullable=False),
        sa.UniqueConstraint('date_key', 'seq_type', name='uq_daily_sequences_date_type'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('daily_sequences')
    op.drop_table('sale_lot_allocations')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('stock_lots')
    op.drop_table('stock_in_items')
    op.drop_table('stock_ins')
    op.drop_table('products')
    op.drop_table('users')
