"""CRUD helpers for the legacy per-day equipment catalog."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.errors import BadRequestError, ConflictError, NotFoundError
from ..db.session import search_filter
from ..models.equipment import Equipment
from ..models.rental import ACTIVE_RENTAL_STATUSES, Rental
from .catalog import _apply_changes

UNAVAILABLE_STATUSES = ("retired", "maintenance")


def list_equipment(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    min_rate: Optional[float] = None,
    max_rate: Optional[float] = None,
) -> tuple[list[Equipment], int]:
    filters = []
    if category:
        filters.append(Equipment.category == category)
    if status:
        filters.append(Equipment.status == status)
    if search:
        filters.append(search_filter(search.strip(), Equipment.name, Equipment.brand, Equipment.model))
    if min_rate is not None:
        filters.append(Equipment.daily_rate >= min_rate)
    if max_rate is not None:
        filters.append(Equipment.daily_rate <= max_rate)
    total = db.execute(select(func.count()).select_from(Equipment).where(*filters)).scalar_one()
    stmt = (
        select(Equipment)
        .where(*filters)
        .order_by(Equipment.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(db.execute(stmt).scalars()), total


def get_equipment(db: Session, equipment_id: str) -> Equipment:
    equipment = db.get(Equipment, equipment_id)
    if equipment is None:
        raise NotFoundError("Equipment not found")
    return equipment


def conflicting_rentals(
    db: Session, equipment_id: str, start_date: date, end_date: date, *, exclude_id: Optional[str] = None
) -> list[Rental]:
    stmt = select(Rental).where(
        Rental.equipment_id == equipment_id,
        Rental.status.in_(ACTIVE_RENTAL_STATUSES),
        Rental.start_date <= end_date,
        Rental.end_date >= start_date,
    )
    if exclude_id:
        stmt = stmt.where(Rental.id != exclude_id)
    return list(db.execute(stmt.order_by(Rental.start_date)).unique().scalars())


def check_availability(db: Session, equipment_id: str, start_date: date, end_date: date) -> dict[str, Any]:
    if end_date < start_date:
        raise BadRequestError("end_date must be on or after start_date")
    equipment = get_equipment(db, equipment_id)
    if equipment.status in UNAVAILABLE_STATUSES:
        return {"available": False, "reason": f"Equipment is currently {equipment.status}"}
    conflicts = conflicting_rentals(db, equipment_id, start_date, end_date)
    if not conflicts:
        return {"available": True}
    return {
        "available": False,
        "conflicting_rentals": [
            {"start_date": rental.start_date, "end_date": rental.end_date} for rental in conflicts
        ],
    }


def _serial_taken(db: Session, serial_number: Optional[str], exclude_id: Optional[str] = None) -> bool:
    if not serial_number:
        return False
    stmt = select(Equipment.id).where(Equipment.serial_number == serial_number)
    if exclude_id:
        stmt = stmt.where(Equipment.id != exclude_id)
    return db.execute(stmt).first() is not None


def create_equipment(db: Session, payload: dict[str, Any]) -> Equipment:
    if _serial_taken(db, payload.get("serial_number")):
        raise ConflictError("Equipment with this serial number already exists")
    equipment = Equipment(**payload)
    db.add(equipment)
    db.commit()
    db.refresh(equipment)
    return equipment


def update_equipment(db: Session, equipment_id: str, changes: dict[str, Any]) -> Equipment:
    equipment = get_equipment(db, equipment_id)
    if _serial_taken(db, changes.get("serial_number"), exclude_id=equipment_id):
        raise ConflictError("Equipment with this serial number already exists")
    _apply_changes(equipment, changes)
    db.commit()
    db.refresh(equipment)
    return equipment


def delete_equipment(db: Session, equipment_id: str) -> None:
    equipment = get_equipment(db, equipment_id)
    active = db.execute(
        select(func.count(Rental.id)).where(
            Rental.equipment_id == equipment_id, Rental.status.in_(ACTIVE_RENTAL_STATUSES)
        )
    ).scalar_one()
    if active:
        raise BadRequestError(
            "Cannot delete equipment with active rentals. Please cancel or complete all rentals first."
        )
    db.delete(equipment)
    db.commit()
