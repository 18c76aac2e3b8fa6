from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import ColorIn, ColorOut


class AccessoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    weekly_rate: float = Field(..., ge=0)
    monthly_rate: float = Field(..., ge=0)
    deposit_amount: float = Field(default=0, ge=0)
    image_url: Optional[str] = None
    is_active: bool = True
    display_order: int = 0


class AccessoryCreate(AccessoryBase):
    colors: list[ColorIn] = Field(default_factory=list)


class AccessoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    weekly_rate: Optional[float] = Field(default=None, ge=0)
    monthly_rate: Optional[float] = Field(default=None, ge=0)
    deposit_amount: Optional[float] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None
    display_order: Optional[int] = None


class AccessoryOut(AccessoryBase):
    id: str
    colors: list[ColorOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LinkCreate(BaseModel):
    accessory_id: str
    product_template_id: Optional[str] = None
    category_id: Optional[str] = None
    screen_size_filter: Optional[str] = None


class LinkOut(BaseModel):
    id: str
    accessory_id: str
    product_template_id: Optional[str] = None
    category_id: Optional[str] = None
    screen_size_filter: Optional[str] = None
    is_active: bool
    accessory_name: Optional[str] = None
    product_name: Optional[str] = None
    category_name: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


def accessory_out(accessory, *, active_colors_only: bool = True) -> AccessoryOut:
    out = AccessoryOut.model_validate(accessory)
    if active_colors_only:
        out.colors = [color for color in out.colors if color.is_active]
    return out
