"""Procurement engine schema.

- items
- bom_lines
- sales_orders
- sales_order_lines
- stock_requirements
- purchase_requisitions (partial unique index on open context)
- requisition_sequences
- audit_entries
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1e5a7d2b90"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sku", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("product_family", sa.Text(), nullable=True),
        sa.Column("unit", sa.Text(), server_default="pcs", nullable=False),
        sa.Column("on_hand_quantity", sa.Integer(), server_default="0", nullable=False),
        sa.Column("reorder_level", sa.Integer(), server_default="0", nullable=False),
        sa.Column("unit_price", sa.Numeric(18, 6), nullable=True),
        sa.Column("is_assembly", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_items"),
        sa.UniqueConstraint("sku", name="uq_items_sku"),
    )

    op.create_table(
        "bom_lines",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("parent_item_id", sa.Uuid(), nullable=False),
        sa.Column("component_item_id", sa.Uuid(), nullable=False),
        sa.Column("qty_per", sa.Integer(), nullable=False),
        sa.Column("version", sa.Text(), server_default="v1.0", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_bom_lines"),
        sa.ForeignKeyConstraint(
            ["parent_item_id"], ["items.id"], name="fk_bom_lines_parent_item_id_items", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["component_item_id"], ["items.id"], name="fk_bom_lines_component_item_id_items", ondelete="RESTRICT"
        ),
        sa.UniqueConstraint("parent_item_id", "component_item_id", name="uq_bom_lines_parent_component"),
        sa.CheckConstraint("qty_per > 0", name="ck_bom_lines_qty_per_positive"),
    )
    op.create_index("ix_bom_lines_parent_item_id", "bom_lines", ["parent_item_id"])
    op.create_index("ix_bom_lines_component_item_id", "bom_lines", ["component_item_id"])

    op.create_table(
        "sales_orders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("so_number", sa.Text(), nullable=False),
        sa.Column("customer_name", sa.Text(), nullable=False),
        sa.Column("customer_reference", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("order_date", sa.Date(), nullable=True),
        sa.Column("installation_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_sales_orders"),
        sa.UniqueConstraint("so_number", name="uq_sales_orders_so_number"),
    )

    op.create_table(
        "sales_order_lines",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sales_order_id", sa.Uuid(), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_sales_order_lines"),
        sa.ForeignKeyConstraint(
            ["sales_order_id"],
            ["sales_orders.id"],
            name="fk_sales_order_lines_sales_order_id_sales_orders",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["item_id"], ["items.id"], name="fk_sales_order_lines_item_id_items", ondelete="RESTRICT"
        ),
    )
    op.create_index("ix_sales_order_lines_sales_order_id", "sales_order_lines", ["sales_order_id"])

    op.create_table(
        "stock_requirements",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sales_order_id", sa.Uuid(), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("required_quantity", sa.Integer(), nullable=False),
        sa.Column("available_quantity", sa.Integer(), nullable=False),
        sa.Column("shortfall_quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_stock_requirements"),
        sa.ForeignKeyConstraint(
            ["sales_order_id"],
            ["sales_orders.id"],
            name="fk_stock_requirements_sales_order_id_sales_orders",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["item_id"], ["items.id"], name="fk_stock_requirements_item_id_items", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("sales_order_id", "item_id", name="uq_stock_requirements_order_item"),
    )
    op.create_index("ix_stock_requirements_sales_order_id", "stock_requirements", ["sales_order_id"])

    op.create_table(
        "purchase_requisitions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("number", sa.Text(), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("sales_order_id", sa.Uuid(), nullable=True),
        sa.Column("source_type", sa.Text(), nullable=False),
        sa.Column("source_key", sa.Text(), nullable=False),
        sa.Column("required_quantity", sa.Integer(), nullable=False),
        sa.Column("requested_by", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("urgency", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("approved_by", sa.Text(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.Text(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("converted_by", sa.Text(), nullable=True),
        sa.Column("converted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("purchase_order_ref", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_purchase_requisitions"),
        sa.ForeignKeyConstraint(
            ["item_id"], ["items.id"], name="fk_purchase_requisitions_item_id_items", ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(
            ["sales_order_id"],
            ["sales_orders.id"],
            name="fk_purchase_requisitions_sales_order_id_sales_orders",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("number", name="uq_purchase_requisitions_number"),
    )
    op.create_index("ix_purchase_requisitions_item_id", "purchase_requisitions", ["item_id"])
    # At most one pending/approved requisition per item and context.
    op.create_index(
        "uq_purchase_requisitions_open_context",
        "purchase_requisitions",
        ["item_id", "source_type", "source_key"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'approved')"),
        sqlite_where=sa.text("status IN ('pending', 'approved')"),
    )

    op.create_table(
        "requisition_sequences",
        sa.Column("year", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("year", name="pk_requisition_sequences"),
    )

    op.create_table(
        "audit_entries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("module", sa.Text(), nullable=False),
        sa.Column("action_type", sa.Text(), nullable=False),
        sa.Column("requisition_id", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_audit_entries"),
    )
    op.create_index("ix_audit_entries_requisition_id", "audit_entries", ["requisition_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_entries_requisition_id", table_name="audit_entries")
    op.drop_table("audit_entries")
    op.drop_table("requisition_sequences")
    op.drop_index("uq_purchase_requisitions_open_context", table_name="purchase_requisitions")
    op.drop_index("ix_purchase_requisitions_item_id", table_name="purchase_requisitions")
    op.drop_table("purchase_requisitions")
    op.drop_index("ix_stock_requirements_sales_order_id", table_name="stock_requirements")
    op.drop_table("stock_requirements")
    op.drop_index("ix_sales_order_lines_sales_order_id", table_name="sales_order_lines")
    op.drop_table("sales_order_lines")
    op.drop_table("sales_orders")
    op.drop_index("ix_bom_lines_component_item_id", table_name="bom_lines")
    op.drop_index("ix_bom_lines_parent_item_id", table_name="bom_lines")
    op.drop_table("bom_lines")
    op.drop_table("items")
