"""Beginner-friendly overview for this module.

WHAT: Physical, serialized units (``inventory_items``) of either a product
template or an accessory.
WHEN: Created by admins (one by one or in bulk) and picked automatically when
a rental is booked.
WHY: Templates describe *what* can be rented; inventory rows are the actual
boxes on the shelf, each with its own status and condition.
HOW: Exactly one of ``product_template_id`` / ``accessory_id`` is set. The
``condition`` column is ranked via ``CONDITION_RANK`` so the best unit is
handed out first.
"""

from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, String, Text, case
from sqlalchemy.orm import relationship

from ..db.session import Base, generate_uuid, utcnow

ITEM_STATUSES = ("available", "rented", "maintenance", "retired")
ITEM_CONDITIONS = ("new", "excellent", "good", "fair", "poor")
CONDITION_RANK = {name: rank for rank, name in enumerate(ITEM_CONDITIONS)}


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_template_id = Column(
        String(36), ForeignKey("product_templates.id", ondelete="CASCADE"), nullable=True, index=True
    )
    accessory_id = Column(String(36), ForeignKey("accessories.id", ondelete="CASCADE"), nullable=True, index=True)
    serial_number = Column(String(255), nullable=True, unique=True)
    color = Column(String(100), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="available", index=True)
    condition = Column(String(20), nullable=False, default="excellent")
    purchase_date = Column(Date, nullable=True)
    purchase_price = Column(Float, nullable=True)
    retail_price = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = relationship("ProductTemplate", lazy="joined")
    accessory = relationship("Accessory", lazy="joined")

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product else None

    @property
    def accessory_name(self) -> str | None:
        return self.accessory.name if self.accessory else None

    @property
    def category_name(self) -> str | None:
        if self.product is None or self.product.category is None:
            return None
        return self.product.category.name


def condition_rank():
    """SQL expression ordering ``new`` first and ``poor`` last."""

    return case(CONDITION_RANK, value=InventoryItem.condition, else_=len(ITEM_CONDITIONS))
