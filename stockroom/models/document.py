from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockroom.db.base import Base

DOCUMENT_KINDS = ("receipt", "delivery")
DOCUMENT_STATUSES = ("draft", "validated", "cancelled")


class StockDocument(Base):
    """A receipt (stock in from a supplier) or a delivery (stock out to a customer)."""
    __tablename__ = "stock_documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    reference: Mapped[str] = mapped_column(String(80), nullable=False)
    counterparty: Mapped[str] = mapped_column(String(255), nullable=False)
    warehouse_id: Mapped[str] = mapped_column(String(36), ForeignKey("warehouses.id"), nullable=False, index=True)
    document_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft", server_default="draft")

    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    lines: Mapped[list["StockDocumentLine"]] = relationship(
        back_populates="document",
        order_by="StockDocumentLine.line_no",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("kind", "reference", name="uq_stock_documents_kind_reference"),
        Index("ix_stock_documents_kind_status_date", "kind", "status", "document_date"),
    )


class StockDocumentLine(Base):
    __tablename__ = "stock_document_lines"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    document_id: Mapped[str] = mapped_column(String(36), ForeignKey("stock_documents.id"), nullable=False, index=True)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    document: Mapped[StockDocument] = relationship(back_populates="lines")

    __table_args__ = (
        UniqueConstraint("document_id", "line_no", name="uq_stock_document_lines_document_line_no"),
    )
