from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..db.session import Base, generate_uuid, utcnow


class Accessory(Base):
    __tablename__ = "accessories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    weekly_rate = Column(Float, nullable=False, default=0.0)
    monthly_rate = Column(Float, nullable=False, default=0.0)
    deposit_amount = Column(Float, nullable=False, default=0.0)
    image_url = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    colors = relationship(
        "AccessoryColor",
        back_populates="accessory",
        cascade="all, delete-orphan",
        order_by="AccessoryColor.display_order",
    )
    links = relationship("ProductAccessoryLink", back_populates="accessory", cascade="all, delete-orphan")

    @property
    def active_colors(self) -> list["AccessoryColor"]:
        return [color for color in self.colors if color.is_active]

    def rate_for(self, pricing_period: str) -> float:
        return float(self.weekly_rate if pricing_period == "weekly" else self.monthly_rate)


class AccessoryColor(Base):
    __tablename__ = "accessory_colors"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    accessory_id = Column(String(36), ForeignKey("accessories.id", ondelete="CASCADE"), nullable=False, index=True)
    color_name = Column(String(100), nullable=False)
    hex_code = Column(String(20), nullable=True)
    text_color = Column(String(20), nullable=True)
    border_color = Column(String(20), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    accessory = relationship("Accessory", back_populates="colors")


class ProductAccessoryLink(Base):
    """Compatibility rule: an accessory fits one product, or a whole category.

    Category links may narrow themselves to one ``screen_size``.
    """

    __tablename__ = "product_accessory_links"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    accessory_id = Column(String(36), ForeignKey("accessories.id", ondelete="CASCADE"), nullable=False, index=True)
    product_template_id = Column(
        String(36), ForeignKey("product_templates.id", ondelete="CASCADE"), nullable=True, index=True
    )
    category_id = Column(
        String(36), ForeignKey("product_categories.id", ondelete="CASCADE"), nullable=True, index=True
    )
    screen_size_filter = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    accessory = relationship("Accessory", back_populates="links", lazy="joined")
    product = relationship("ProductTemplate", lazy="joined")
    category = relationship("ProductCategory", lazy="joined")

    @property
    def accessory_name(self) -> str | None:
        return self.accessory.name if self.accessory else None

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product else None

    @property
    def category_name(self) -> str | None:
        return self.category.name if self.category else None
