from __future__ import annotations

from sqlalchemy import JSON, Column, Date, DateTime, Float, String, Text

from ..db.session import Base, generate_uuid, utcnow

EQUIPMENT_STATUSES = ("available", "rented", "maintenance", "retired")


class Equipment(Base):
    """Legacy single-item catalog rented by the day."""

    __tablename__ = "equipment"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False, index=True)
    brand = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    serial_number = Column(String(255), nullable=True, unique=True)
    daily_rate = Column(Float, nullable=False, default=0.0)
    image_url = Column(Text, nullable=True)
    specs = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="available", index=True)
    condition = Column(String(20), nullable=False, default="excellent")
    purchase_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
