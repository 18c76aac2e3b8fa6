"""Beginner-friendly overview for this module.

WHAT: Bookings (``rentals``) and the accessories attached to them
(``rental_accessories``).
WHEN: Written when a customer books, and updated as staff confirm, hand over
and take back the equipment.
WHY: One table serves both the legacy per-day equipment flow and the
product/accessory flow with weekly or monthly pricing.
HOW: Legacy rows set ``equipment_id`` and ``daily_rate``; product rows set
``product_template_id``, ``pricing_period`` and the pricing breakdown columns.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from ..db.session import Base, generate_uuid, utcnow

RENTAL_STATUSES = ("pending", "confirmed", "active", "completed", "cancelled", "overdue")
ACTIVE_RENTAL_STATUSES = ("pending", "confirmed", "active")
EDITABLE_RENTAL_STATUSES = ("pending", "confirmed")
PRICING_PERIODS = ("weekly", "monthly")


class Rental(Base):
    __tablename__ = "rentals"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_id = Column(String(36), ForeignKey("equipment.id", ondelete="RESTRICT"), nullable=True, index=True)
    product_template_id = Column(
        String(36), ForeignKey("product_templates.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    inventory_item_id = Column(
        String(36), ForeignKey("inventory_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    selected_color = Column(String(100), nullable=True)
    pricing_period = Column(String(20), nullable=True)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    daily_rate = Column(Float, nullable=True)
    weekly_rate = Column(Float, nullable=True)
    monthly_rate = Column(Float, nullable=True)
    deposit_amount = Column(Float, nullable=False, default=0.0)
    student_discount_applied = Column(Boolean, nullable=False, default=False)
    new_equipment_fee_applied = Column(Boolean, nullable=False, default=False)
    discount_amount = Column(Float, nullable=False, default=0.0)
    fee_amount = Column(Float, nullable=False, default=0.0)
    final_total = Column(Float, nullable=True)
    total_amount = Column(Float, nullable=False, default=0.0)
    status = Column(String(20), nullable=False, default="pending", index=True)
    notes = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_reason = Column(Text, nullable=True)
    pickup_date = Column(DateTime(timezone=True), nullable=True)
    return_date = Column(DateTime(timezone=True), nullable=True)
    deposit_status = Column(String(20), nullable=False, default="held")
    deposit_released_at = Column(DateTime(timezone=True), nullable=True)
    deposit_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", lazy="joined")
    equipment = relationship("Equipment", lazy="joined")
    product = relationship("ProductTemplate", lazy="joined")
    inventory_item = relationship("InventoryItem", lazy="joined")
    accessories = relationship(
        "RentalAccessory",
        back_populates="rental",
        cascade="all, delete-orphan",
        order_by="RentalAccessory.created_at",
    )

    @property
    def user_name(self) -> str | None:
        return self.user.name if self.user else None

    @property
    def user_email(self) -> str | None:
        return self.user.email if self.user else None

    @property
    def equipment_name(self) -> str | None:
        return self.equipment.name if self.equipment else None

    @property
    def equipment_category(self) -> str | None:
        return self.equipment.category if self.equipment else None

    @property
    def equipment_image_url(self) -> str | None:
        return self.equipment.image_url if self.equipment else None

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product else None

    @property
    def product_image_url(self) -> str | None:
        return self.product.image_url if self.product else None

    @property
    def inventory_serial_number(self) -> str | None:
        return self.inventory_item.serial_number if self.inventory_item else None

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1


class RentalAccessory(Base):
    __tablename__ = "rental_accessories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    rental_id = Column(String(36), ForeignKey("rentals.id", ondelete="CASCADE"), nullable=False, index=True)
    accessory_id = Column(String(36), ForeignKey("accessories.id", ondelete="RESTRICT"), nullable=False, index=True)
    inventory_item_id = Column(
        String(36), ForeignKey("inventory_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    selected_color = Column(String(100), nullable=True)
    weekly_rate = Column(Float, nullable=False, default=0.0)
    monthly_rate = Column(Float, nullable=False, default=0.0)
    deposit_amount = Column(Float, nullable=False, default=0.0)
    deposit_status = Column(String(20), nullable=False, default="held")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    rental = relationship("Rental", back_populates="accessories")
    accessory = relationship("Accessory", lazy="joined")
    inventory_item = relationship("InventoryItem", lazy="joined")

    @property
    def accessory_name(self) -> str | None:
        return self.accessory.name if self.accessory else None

    @property
    def accessory_image_url(self) -> str | None:
        return self.accessory.image_url if self.accessory else None

    @property
    def inventory_serial_number(self) -> str | None:
        return self.inventory_item.serial_number if self.inventory_item else None
