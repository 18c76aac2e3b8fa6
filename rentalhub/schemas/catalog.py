"""Pydantic schemas for product categories, product templates and their colors."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from .common import ColorIn, ColorOut


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    display_order: int = 0
    is_active: bool = True


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryOut(CategoryBase):
    id: str
    slug: str
    created_at: datetime
    updated_at: datetime
    product_count: Optional[int] = None

    model_config = {"from_attributes": True}


class ProductBase(BaseModel):
    category_id: str
    name: str = Field(..., min_length=1, max_length=255)
    subtitle: Optional[str] = None
    description: Optional[str] = None
    weekly_rate: float = Field(..., ge=0)
    monthly_rate: float = Field(..., ge=0)
    deposit_amount: float = Field(default=0, ge=0)
    specs: Optional[dict[str, Any]] = None
    screen_size: Optional[str] = None
    highlights: Optional[list[str]] = None
    includes: Optional[list[str]] = None
    image_url: Optional[str] = None
    is_popular: bool = False
    has_accessories: bool = False
    is_new: bool = False
    is_active: bool = True
    display_order: int = 0


class ProductCreate(ProductBase):
    colors: list[ColorIn] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    category_id: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    subtitle: Optional[str] = None
    description: Optional[str] = None
    weekly_rate: Optional[float] = Field(default=None, ge=0)
    monthly_rate: Optional[float] = Field(default=None, ge=0)
    deposit_amount: Optional[float] = Field(default=None, ge=0)
    specs: Optional[dict[str, Any]] = None
    screen_size: Optional[str] = None
    highlights: Optional[list[str]] = None
    includes: Optional[list[str]] = None
    image_url: Optional[str] = None
    is_popular: Optional[bool] = None
    has_accessories: Optional[bool] = None
    is_new: Optional[bool] = None
    is_active: Optional[bool] = None
    display_order: Optional[int] = None


class ProductOut(ProductBase):
    id: str
    category_name: Optional[str] = None
    category_slug: Optional[str] = None
    category_icon: Optional[str] = None
    category_color: Optional[str] = None
    colors: list[ColorOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CompatibleAccessory(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    weekly_rate: float
    monthly_rate: float
    deposit_amount: float
    image_url: Optional[str] = None
    display_order: int = 0
    colors: list[ColorOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ProductDetail(ProductOut):
    accessories: list[CompatibleAccessory] = Field(default_factory=list)


class CategoryDetail(CategoryOut):
    products: list[ProductOut] = Field(default_factory=list)


def product_out(product, *, active_colors_only: bool = True) -> ProductOut:
    out = ProductOut.model_validate(product)
    if active_colors_only:
        out.colors = [color for color in out.colors if color.is_active]
    return out
