"""initial pos schema

Revision ID: 4f1a2b3c5d6e
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f1a2b3c5d6e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUS = sa.Enum("pending", "processing", "completed", "cancelled", name="order_status")
REQUISITION_STATUS = sa.Enum("pending", "approved", "rejected", "completed", name="requisition_status")
MOVEMENT_TYPE = sa.Enum("SALE", "RETURN", "TRANSFER_OUT", "TRANSFER_IN", name="movement_type")


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "stores",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("sku", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint("price >= 0", name="ck_product_price_nonneg"),
    )
    op.create_table(
        "customers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("phone", sa.String(50)),
        sa.Column("balance", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("credit_limit", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text()),
        _timestamp("created_at"),
        _timestamp("deleted_at", nullable=True),
    )

    # ---------- INVENTORY ----------
    op.create_table(
        "inventory",
        sa.Column("store_id", sa.BigInteger(), sa.ForeignKey("stores.id", ondelete="RESTRICT"), primary_key=True),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), primary_key=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("updated_at"),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_nonneg"),
    )
    op.create_table(
        "stock_movements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("store_id", sa.BigInteger(), sa.ForeignKey("stores.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("movement_type", MOVEMENT_TYPE, nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("reference_type", sa.String(32)),
        sa.Column("reference_id", sa.BigInteger()),
        _timestamp("created_at"),
        sa.CheckConstraint("delta <> 0", name="ck_stock_movement_delta_nonzero"),
    )
    op.create_index("ix_stock_movements_store_product", "stock_movements", ["store_id", "product_id"])
    op.create_index("ix_stock_movements_reference", "stock_movements", ["reference_type", "reference_id"])

    # ---------- SALES ----------
    op.create_table(
        "orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("store_id", sa.BigInteger(), sa.ForeignKey("stores.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("customer_id", sa.BigInteger(), sa.ForeignKey("customers.id", ondelete="SET NULL")),
        sa.Column("status", ORDER_STATUS, nullable=False, server_default="pending"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_table(
        "order_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_order_item_qty_pos"),
        sa.CheckConstraint("unit_price >= 0", name="ck_order_item_unit_price_nonneg"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    # ---------- TRANSFERS ----------
    op.create_table(
        "stock_requisitions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("from_store_id", sa.BigInteger(), sa.ForeignKey("stores.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("to_store_id", sa.BigInteger(), sa.ForeignKey("stores.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", REQUISITION_STATUS, nullable=False, server_default="pending"),
        sa.Column("approved_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("stock_moved", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("from_store_id <> to_store_id", name="ck_requisition_stores_differ"),
    )
    op.create_table(
        "stock_requisition_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "requisition_id",
            sa.BigInteger(),
            sa.ForeignKey("stock_requisitions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_requisition_item_qty_pos"),
    )
    op.create_index("ix_stock_requisition_items_requisition_id", "stock_requisition_items", ["requisition_id"])


def downgrade() -> None:
    op.drop_index("ix_stock_requisition_items_requisition_id", table_name="stock_requisition_items")
    op.drop_table("stock_requisition_items")
    op.drop_table("stock_requisitions")
    op.drop_index("ix_order_items_order_id", table_name="order_items")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_index("ix_stock_movements_reference", table_name="stock_movements")
    op.drop_index("ix_stock_movements_store_product", table_name="stock_movements")
    op.drop_table("stock_movements")
    op.drop_table("inventory")
    op.drop_table("customers")
    op.drop_table("products")
    op.drop_table("users")
    op.drop_table("stores")

    bind = op.get_bind()
    MOVEMENT_TYPE.drop(bind, checkfirst=True)
    REQUISITION_STATUS.drop(bind, checkfirst=True)
    ORDER_STATUS.drop(bind, checkfirst=True)
