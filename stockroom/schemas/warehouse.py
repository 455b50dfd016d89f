from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from stockroom.schemas.common import PaginationMeta


class WarehouseCreateIn(BaseModel):
    code: str = Field(min_length=2, max_length=30)
    name: str = Field(min_length=2, max_length=120)
    address: str | None = Field(default=None, max_length=255)
    is_active: bool = Field(default=True, validation_alias=AliasChoices("is_active", "isActive"))

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "code": "WH-MAIN",
                "name": "Main Warehouse",
                "address": "12 Dock Road",
            }
        },
    )


class WarehouseUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=120)
    address: str | None = Field(default=None, max_length=255)
    is_active: bool | None = Field(default=None, validation_alias=AliasChoices("is_active", "isActive"))

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name cannot be empty")
        return cleaned

    @model_validator(mode="after")
    def validate_any_field_present(self) -> "WarehouseUpdateIn":
        if self.name is None and self.address is None and self.is_active is None:
            raise ValueError("At least one field must be provided")
        return self

    model_config = ConfigDict(populate_by_name=True)


class WarehouseOut(BaseModel):
    id: str
    code: str
    name: str
    address: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class WarehouseListOut(BaseModel):
    items: list[WarehouseOut]
    pagination: PaginationMeta
