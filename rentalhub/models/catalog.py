from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..db.session import Base, generate_uuid, utcnow


class ProductCategory(Base):
    __tablename__ = "product_categories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)
    color = Column(String(50), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    products = relationship("ProductTemplate", back_populates="category")


class ProductTemplate(Base):
    """A rentable model (e.g. "14-inch laptop"); physical units live in inventory."""

    __tablename__ = "product_templates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    category_id = Column(
        String(36), ForeignKey("product_categories.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    subtitle = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    weekly_rate = Column(Float, nullable=False, default=0.0)
    monthly_rate = Column(Float, nullable=False, default=0.0)
    deposit_amount = Column(Float, nullable=False, default=0.0)
    specs = Column(JSON, nullable=True)
    screen_size = Column(String(50), nullable=True)
    highlights = Column(JSON, nullable=True)
    includes = Column(JSON, nullable=True)
    image_url = Column(Text, nullable=True)
    is_popular = Column(Boolean, nullable=False, default=False)
    has_accessories = Column(Boolean, nullable=False, default=False)
    is_new = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    category = relationship("ProductCategory", back_populates="products", lazy="joined")
    colors = relationship(
        "ProductColor",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductColor.display_order",
    )

    @property
    def category_name(self) -> str | None:
        return self.category.name if self.category else None

    @property
    def category_slug(self) -> str | None:
        return self.category.slug if self.category else None

    @property
    def category_icon(self) -> str | None:
        return self.category.icon if self.category else None

    @property
    def category_color(self) -> str | None:
        return self.category.color if self.category else None

    @property
    def active_colors(self) -> list["ProductColor"]:
        return [color for color in self.colors if color.is_active]

    def rate_for(self, pricing_period: str) -> float:
        return float(self.weekly_rate if pricing_period == "weekly" else self.monthly_rate)


class ProductColor(Base):
    __tablename__ = "product_colors"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_template_id = Column(
        String(36), ForeignKey("product_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    color_name = Column(String(100), nullable=False)
    hex_code = Column(String(20), nullable=True)
    text_color = Column(String(20), nullable=True)
    border_color = Column(String(20), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    product = relationship("ProductTemplate", back_populates="colors")
