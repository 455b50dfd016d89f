from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stockroom.schemas.common import PaginationMeta


class DocumentLineIn(BaseModel):
    product_id: str
    qty: int = Field(gt=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)


class DocumentCreateIn(BaseModel):
    reference: str = Field(min_length=1, max_length=80)
    counterparty: str = Field(min_length=1, max_length=255)
    warehouse_id: str
    document_date: date = Field(default_factory=date.today)
    notes: str | None = None
    # Empty line lists are rejected by the workflow with a typed error.
    lines: list[DocumentLineIn] = Field(default_factory=list)

    @field_validator("reference", "counterparty")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "reference": "REC-001",
                "counterparty": "Supplier Inc.",
                "warehouse_id": "warehouse-id-here",
                "document_date": "2026-10-19",
                "notes": "Quarterly restock",
                "lines": [
                    {"product_id": "product-id-here", "qty": 10, "unit_price": 2.0},
                ],
            }
        }
    )


class DocumentUpdateIn(BaseModel):
    counterparty: str | None = Field(default=None, min_length=1, max_length=255)
    document_date: date | None = None
    notes: str | None = None
    lines: list[DocumentLineIn] | None = None

    @model_validator(mode="after")
    def validate_any_field_present(self) -> "DocumentUpdateIn":
        if (
            self.counterparty is None
            and self.document_date is None
            and self.notes is None
            and self.lines is None
        ):
            raise ValueError("At least one field must be provided")
        return self


class DocumentLineOut(BaseModel):
    id: str
    line_no: int
    product_id: str
    qty: int
    unit_price: float
    line_total: float


class DocumentOut(BaseModel):
    id: str
    kind: str
    reference: str
    counterparty: str
    warehouse_id: str
    document_date: date
    notes: str | None = None
    status: str
    total: float
    lines: list[DocumentLineOut]
    validated_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime


class DocumentListOut(BaseModel):
    items: list[DocumentOut]
    pagination: PaginationMeta
