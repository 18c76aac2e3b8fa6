"""Pydantic schemas for both rental flows and the pricing modifiers."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

RentalStatus = Literal["pending", "confirmed", "active", "completed", "cancelled", "overdue"]
PricingPeriod = Literal["weekly", "monthly"]


class _DateRange(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _ordered(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class RentalCreate(_DateRange):
    equipment_id: str
    user_id: Optional[str] = None
    notes: Optional[str] = None


class RentalUpdate(BaseModel):
    status: Optional[RentalStatus] = None
    notes: Optional[str] = None
    cancelled_reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class AccessorySelection(BaseModel):
    accessory_id: str
    selected_color: Optional[str] = None


class EnhancedRentalCreate(_DateRange):
    product_template_id: str
    user_id: Optional[str] = None
    selected_color: str = Field(..., min_length=1, max_length=100)
    pricing_period: PricingPeriod
    accessories: list[AccessorySelection] = Field(default_factory=list)
    notes: Optional[str] = None


class AddAccessoryRequest(BaseModel):
    accessory_id: str
    selected_color: Optional[str] = None
    inventory_item_id: Optional[str] = None


class AccessoryAssignment(BaseModel):
    rental_accessory_id: str
    inventory_item_id: str


class AssignInventoryRequest(BaseModel):
    inventory_item_id: Optional[str] = None
    accessory_inventory_assignments: list[AccessoryAssignment] = Field(default_factory=list)


class ReleaseDepositRequest(BaseModel):
    notes: Optional[str] = None


class RentalAccessoryOut(BaseModel):
    id: str
    accessory_id: str
    accessory_name: Optional[str] = None
    accessory_image_url: Optional[str] = None
    inventory_item_id: Optional[str] = None
    inventory_serial_number: Optional[str] = None
    selected_color: Optional[str] = None
    weekly_rate: float
    monthly_rate: float
    deposit_amount: float
    deposit_status: str

    model_config = {"from_attributes": True}


class RentalOut(BaseModel):
    id: str
    user_id: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    equipment_id: Optional[str] = None
    equipment_name: Optional[str] = None
    equipment_category: Optional[str] = None
    equipment_image_url: Optional[str] = None
    product_template_id: Optional[str] = None
    product_name: Optional[str] = None
    product_image_url: Optional[str] = None
    inventory_item_id: Optional[str] = None
    inventory_serial_number: Optional[str] = None
    selected_color: Optional[str] = None
    pricing_period: Optional[str] = None
    start_date: date
    end_date: date
    daily_rate: Optional[float] = None
    weekly_rate: Optional[float] = None
    monthly_rate: Optional[float] = None
    deposit_amount: float = 0
    student_discount_applied: bool = False
    new_equipment_fee_applied: bool = False
    discount_amount: float = 0
    fee_amount: float = 0
    final_total: Optional[float] = None
    total_amount: float
    status: str
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None
    pickup_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    deposit_status: str = "held"
    deposit_released_at: Optional[datetime] = None
    deposit_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RentalDetail(RentalOut):
    accessories: list[RentalAccessoryOut] = Field(default_factory=list)


class PricingModifierOut(BaseModel):
    id: str
    name: str
    display_name: str
    type: str
    percentage: float
    applies_to: str
    requires_verification: bool
    description: Optional[str] = None

    model_config = {"from_attributes": True}
