from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stockroom.schemas.common import PaginationMeta
from stockroom.schemas.product import ProductOut


class StockLevelOut(BaseModel):
    product_id: str
    on_hand_qty: int
    ledger_qty: int
    reorder_level: int
    is_low_stock: bool


class StockMovementOut(BaseModel):
    id: str
    product_id: str
    warehouse_id: str
    qty_delta: int
    kind: str
    note: str | None = None
    document_id: str | None = None
    document_line_id: str | None = None
    created_at: datetime


class StockMovementListOut(BaseModel):
    items: list[StockMovementOut]
    pagination: PaginationMeta


class StockAdjustIn(BaseModel):
    product_id: str
    warehouse_id: str
    qty_delta: int = Field(
        ..., description="Positive adds stock, negative removes stock. Cannot be zero."
    )
    reason: str = Field(..., min_length=3, max_length=50)
    note: str | None = Field(default=None, max_length=200)

    @field_validator("qty_delta")
    @classmethod
    def validate_non_zero_qty_delta(cls, value: int) -> int:
        if value == 0:
            raise ValueError("qty_delta cannot be zero")
        return value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "product_id": "product-id-here",
                "warehouse_id": "warehouse-id-here",
                "qty_delta": -2,
                "reason": "damaged_stock",
                "note": "2 pieces damaged during packaging",
            }
        }
    )


class LowStockListOut(BaseModel):
    items: list[ProductOut]
    pagination: PaginationMeta


class StockDiscrepancyOut(BaseModel):
    product_id: str
    sku: str
    cached_qty: int
    ledger_qty: int


class ReconcileOut(BaseModel):
    ok: bool
    discrepancies: list[StockDiscrepancyOut]
