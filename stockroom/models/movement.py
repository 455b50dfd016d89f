from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stockroom.db.base import Base

MOVEMENT_KINDS = ("receipt", "delivery", "adjustment")


class StockMovement(Base):
    """
    One row per stock movement. Positive = stock in. Negative = stock out.
    Rows are append-only; corrections are new "adjustment" rows.
    """
    __tablename__ = "stock_movements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id: Mapped[str] = mapped_column(String(36), ForeignKey("warehouses.id"), nullable=False, index=True)

    qty_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # "receipt", "delivery", "adjustment"
    note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    document_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("stock_documents.id"), nullable=True, index=True)
    document_line_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("stock_document_lines.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_stock_movements_product_created_at", "product_id", "created_at"),
        Index("ix_stock_movements_warehouse_created_at", "warehouse_id", "created_at"),
        Index("ix_stock_movements_kind_created_at", "kind", "created_at"),
    )
