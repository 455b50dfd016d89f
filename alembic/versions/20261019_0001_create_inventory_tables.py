"""create catalog, warehouse, document and stock movement tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("sku", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("unit_of_measure", sa.String(length=30), server_default="unit", nullable=False),
        sa.Column("reorder_level", sa.Integer(), server_default="0", nullable=False),
        sa.Column("cost_price", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("selling_price", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("on_hand_qty", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ux_products_sku_lower", "products", [sa.text("lower(sku)")], unique=True)
    op.create_index("ix_products_active_name", "products", ["is_active", "name"], unique=False)
    op.create_index("ix_products_reorder_level", "products", ["reorder_level"], unique=False)

    op.create_table(
        "warehouses",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_warehouses_code"),
    )
    op.create_index("ix_warehouses_active_created_at", "warehouses", ["is_active", "created_at"], unique=False)

    op.create_table(
        "stock_documents",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("reference", sa.String(length=80), nullable=False),
        sa.Column("counterparty", sa.String(length=255), nullable=False),
        sa.Column("warehouse_id", sa.String(length=36), nullable=False),
        sa.Column("document_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="draft", nullable=False),
        sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["warehouse_id"], ["warehouses.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("kind", "reference", name="uq_stock_documents_kind_reference"),
    )
    op.create_index(op.f("ix_stock_documents_warehouse_id"), "stock_documents", ["warehouse_id"], unique=False)
    op.create_index(
        "ix_stock_documents_kind_status_date",
        "stock_documents",
        ["kind", "status", "document_date"],
        unique=False,
    )

    op.create_table(
        "stock_document_lines",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("document_id", sa.String(length=36), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["stock_documents.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_id", "line_no", name="uq_stock_document_lines_document_line_no"),
    )
    op.create_index(op.f("ix_stock_document_lines_document_id"), "stock_document_lines", ["document_id"], unique=False)
    op.create_index(op.f("ix_stock_document_lines_product_id"), "stock_document_lines", ["product_id"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("warehouse_id", sa.String(length=36), nullable=False),
        sa.Column("qty_delta", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("document_id", sa.String(length=36), nullable=True),
        sa.Column("document_line_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["warehouse_id"], ["warehouses.id"]),
        sa.ForeignKeyConstraint(["document_id"], ["stock_documents.id"]),
        sa.ForeignKeyConstraint(["document_line_id"], ["stock_document_lines.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_stock_movements_product_id"), "stock_movements", ["product_id"], unique=False)
    op.create_index(op.f("ix_stock_movements_warehouse_id"), "stock_movements", ["warehouse_id"], unique=False)
    op.create_index(op.f("ix_stock_movements_document_id"), "stock_movements", ["document_id"], unique=False)
    op.create_index(
        "ix_stock_movements_product_created_at",
        "stock_movements",
        ["product_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_stock_movements_warehouse_created_at",
        "stock_movements",
        ["warehouse_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_stock_movements_kind_created_at",
        "stock_movements",
        ["kind", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_stock_movements_kind_created_at", table_name="stock_movements")
    op.drop_index("ix_stock_movements_warehouse_created_at", table_name="stock_movements")
    op.drop_index("ix_stock_movements_product_created_at", table_name="stock_movements")
    op.drop_index(op.f("ix_stock_movements_document_id"), table_name="stock_movements")
    op.drop_index(op.f("ix_stock_movements_warehouse_id"), table_name="stock_movements")
    op.drop_index(op.f("ix_stock_movements_product_id"), table_name="stock_movements")
    op.drop_table("stock_movements")

    op.drop_index(op.f("ix_stock_document_lines_product_id"), table_name="stock_document_lines")
    op.drop_index(op.f("ix_stock_document_lines_document_id"), table_name="stock_document_lines")
    op.drop_table("stock_document_lines")

    op.drop_index("ix_stock_documents_kind_status_date", table_name="stock_documents")
    op.drop_index(op.f("ix_stock_documents_warehouse_id"), table_name="stock_documents")
    op.drop_table("stock_documents")

    op.drop_index("ix_warehouses_active_created_at", table_name="warehouses")
    op.drop_table("warehouses")

    op.drop_index("ix_products_reorder_level", table_name="products")
    op.drop_index("ix_products_active_name", table_name="products")
    op.drop_index("ux_products_sku_lower", table_name="products")
    op.drop_table("products")
