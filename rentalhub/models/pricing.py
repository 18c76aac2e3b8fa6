from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Float, String, Text

from ..db.session import Base, generate_uuid, utcnow

STUDENT_DISCOUNT = "student_discount"
NEW_EQUIPMENT_FEE = "new_equipment_fee"
APPLIES_TO = ("all", "rental_only", "deposit_only")


class PricingModifier(Base):
    """Named percentage adjustment applied to a rental subtotal and/or deposit."""

    __tablename__ = "pricing_modifiers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False, unique=True)
    display_name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)  # discount | fee
    percentage = Column(Float, nullable=False, default=0.0)
    applies_to = Column(String(20), nullable=False, default="rental_only")
    requires_verification = Column(Boolean, nullable=False, default=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


DEFAULT_MODIFIERS = (
    {
        "name": STUDENT_DISCOUNT,
        "display_name": "Student Discount",
        "type": "discount",
        "percentage": 15.0,
        "applies_to": "rental_only",
        "requires_verification": True,
        "description": "15% off the rental price for verified students",
    },
    {
        "name": NEW_EQUIPMENT_FEE,
        "display_name": "New Equipment Fee",
        "type": "fee",
        "percentage": 10.0,
        "applies_to": "rental_only",
        "requires_verification": False,
        "description": "10% surcharge for brand-new equipment",
    },
)
