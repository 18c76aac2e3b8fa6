from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

EquipmentStatus = Literal["available", "rented", "maintenance", "retired"]


class EquipmentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=100)
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    daily_rate: float = Field(..., ge=0)
    image_url: Optional[str] = None
    specs: Optional[dict[str, Any]] = None
    status: EquipmentStatus = "available"
    condition: str = "excellent"
    purchase_date: Optional[date] = None
    notes: Optional[str] = None


class EquipmentCreate(EquipmentBase):
    pass


class EquipmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    daily_rate: Optional[float] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    specs: Optional[dict[str, Any]] = None
    status: Optional[EquipmentStatus] = None
    condition: Optional[str] = None
    purchase_date: Optional[date] = None
    notes: Optional[str] = None


class EquipmentOut(EquipmentBase):
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
