from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, model_validator

ItemStatus = Literal["available", "rented", "maintenance", "retired"]
ItemCondition = Literal["new", "excellent", "good", "fair", "poor"]


class InventoryItemCreate(BaseModel):
    product_template_id: Optional[str] = None
    accessory_id: Optional[str] = None
    serial_number: Optional[str] = Field(default=None, max_length=255)
    color: Optional[str] = Field(default=None, max_length=100)
    status: ItemStatus = "available"
    condition: ItemCondition = "excellent"
    purchase_date: Optional[date] = None
    purchase_price: Optional[float] = Field(default=None, ge=0)
    retail_price: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _one_target(self) -> "InventoryItemCreate":
        if bool(self.product_template_id) == bool(self.accessory_id):
            raise ValueError("Exactly one of product_template_id or accessory_id is required")
        return self


class InventoryItemUpdate(BaseModel):
    serial_number: Optional[str] = Field(default=None, max_length=255)
    color: Optional[str] = Field(default=None, max_length=100)
    status: Optional[ItemStatus] = None
    condition: Optional[ItemCondition] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[float] = Field(default=None, ge=0)
    retail_price: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class BulkInventoryCreate(BaseModel):
    # Items stay loose here; each one is validated on its own so a bad row
    # is reported by index instead of failing the whole request.
    items: list[dict[str, Any]] = Field(..., min_length=1, max_length=100)


class InventoryItemOut(BaseModel):
    id: str
    product_template_id: Optional[str] = None
    accessory_id: Optional[str] = None
    serial_number: Optional[str] = None
    color: Optional[str] = None
    status: str
    condition: str
    purchase_date: Optional[date] = None
    purchase_price: Optional[float] = None
    retail_price: Optional[float] = None
    notes: Optional[str] = None
    product_name: Optional[str] = None
    accessory_name: Optional[str] = None
    category_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RentalHistoryEntry(BaseModel):
    id: str
    user_id: str
    status: str
    start_date: date
    end_date: date
    user_name: Optional[str] = None

    model_config = {"from_attributes": True}


class InventoryItemDetail(InventoryItemOut):
    rental_history: list[RentalHistoryEntry] = Field(default_factory=list)
