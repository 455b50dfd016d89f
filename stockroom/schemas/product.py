from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from stockroom.schemas.common import PaginationMeta


class ProductCreate(BaseModel):
    sku: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    unit_of_measure: str = Field(default="unit", min_length=1, max_length=30)
    reorder_level: Optional[int] = Field(default=None, ge=0)
    cost_price: Decimal = Field(default=Decimal("0"), ge=0)
    selling_price: Decimal = Field(default=Decimal("0"), ge=0)
    is_active: bool = Field(default=True, validation_alias=AliasChoices("is_active", "isActive"))

    @field_validator("sku", "name", "unit_of_measure")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value is required")
        return cleaned

    @field_validator("description")
    @classmethod
    def normalize_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "sku": "CHR-OAK-01",
                "name": "Oak Chair",
                "unit_of_measure": "pcs",
                "reorder_level": 10,
                "cost_price": 45.0,
                "selling_price": 80.0,
            }
        },
    )


class ProductUpdate(BaseModel):
    """Catalog edits. On-hand quantity is not editable; it follows the ledger."""

    sku: Optional[str] = Field(default=None, min_length=1, max_length=100)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    unit_of_measure: Optional[str] = Field(default=None, min_length=1, max_length=30)
    reorder_level: Optional[int] = Field(default=None, ge=0)
    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    selling_price: Optional[Decimal] = Field(default=None, ge=0)
    is_active: Optional[bool] = Field(default=None, validation_alias=AliasChoices("is_active", "isActive"))

    @model_validator(mode="after")
    def validate_any_field_present(self) -> "ProductUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ProductOut(BaseModel):
    id: str
    sku: str
    name: str
    description: str | None = None
    unit_of_measure: str
    reorder_level: int
    cost_price: float
    selling_price: float
    on_hand_qty: int
    is_low_stock: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ProductListOut(BaseModel):
    items: list[ProductOut]
    pagination: PaginationMeta
