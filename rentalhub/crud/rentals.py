"""Beginner-friendly overview for this module.

WHAT: Everything that creates or moves a rental through its lifecycle, for
both the legacy per-day equipment flow and the product/accessory flow.
WHEN: Called by the ``/v1/rentals`` routers.
WHY: The status rules (who may cancel, which transitions are allowed, what
happens to the physical stock) live here so every endpoint enforces them the
same way.
HOW: Each function loads the rental, checks the rule, mutates inside the
request's session and commits once. Pickup/return lock the row first.

Status flow: pending -> confirmed -> active -> completed, with cancelled
reachable from pending or confirmed.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ..db.session import utcnow
from ..models.accessory import Accessory
from ..models.catalog import ProductColor, ProductTemplate
from ..models.equipment import Equipment
from ..models.inventory import InventoryItem
from ..models.pricing import PricingModifier
from ..models.rental import EDITABLE_RENTAL_STATUSES, Rental, RentalAccessory
from ..models.user import User
from ..schemas.rental import AddAccessoryRequest, AssignInventoryRequest, EnhancedRentalCreate, RentalCreate
from ..services.pricing import billing_periods, calculate_rental_pricing, rental_duration_days
from .equipment import conflicting_rentals
from .inventory import auto_assign_accessory_item, auto_assign_product_item, is_item_free

logger = logging.getLogger(__name__)


def _log_transition(rental: Rental, action: str) -> None:
    logger.info(
        f"rental.{action}",
        extra={"extra_data": {"rental_id": rental.id, "status": rental.status, "user_id": rental.user_id}},
    )


# ---------- Lookups ----------


def get_rental(db: Session, rental_id: str) -> Rental:
    rental = db.get(Rental, rental_id)
    if rental is None:
        raise NotFoundError("Rental not found")
    return rental


def get_rental_for(
    db: Session,
    rental_id: str,
    actor_id: str,
    is_admin: bool,
    *,
    message: str = "You can only view your own rentals",
) -> Rental:
    rental = get_rental(db, rental_id)
    if not is_admin and rental.user_id != actor_id:
        raise ForbiddenError(message)
    return rental


def _locked_rental(db: Session, rental_id: str) -> Rental:
    stmt = select(Rental).where(Rental.id == rental_id).with_for_update(of=Rental)
    rental = db.execute(stmt).unique().scalars().first()
    if rental is None:
        raise NotFoundError("Rental not found")
    return rental


def list_rentals(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    equipment_id: Optional[str] = None,
    start_date_from: Optional[date] = None,
    start_date_to: Optional[date] = None,
) -> tuple[list[Rental], int]:
    filters = []
    if user_id:
        filters.append(Rental.user_id == user_id)
    if status:
        filters.append(Rental.status == status)
    if equipment_id:
        filters.append(Rental.equipment_id == equipment_id)
    if start_date_from:
        filters.append(Rental.start_date >= start_date_from)
    if start_date_to:
        filters.append(Rental.start_date <= start_date_to)
    total = db.execute(select(func.count()).select_from(Rental).where(*filters)).scalar_one()
    stmt = (
        select(Rental)
        .where(*filters)
        .order_by(Rental.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(db.execute(stmt).unique().scalars()), total


# ---------- Legacy equipment rentals ----------


def create_rental(db: Session, data: RentalCreate, actor_id: str, is_admin: bool) -> Rental:
    equipment = db.get(Equipment, data.equipment_id)
    if equipment is None:
        raise NotFoundError("Equipment not found")
    if equipment.status == "retired":
        raise BadRequestError("Equipment is retired and not available for rent")
    if equipment.status == "maintenance":
        raise BadRequestError("Equipment is under maintenance and not available for rent")
    if conflicting_rentals(db, equipment.id, data.start_date, data.end_date):
        raise ConflictError("Equipment is not available for the selected dates")

    days = rental_duration_days(data.start_date, data.end_date)
    daily_rate = float(equipment.daily_rate)
    rental = Rental(
        user_id=data.user_id if is_admin and data.user_id else actor_id,
        equipment_id=equipment.id,
        start_date=data.start_date,
        end_date=data.end_date,
        daily_rate=daily_rate,
        total_amount=round(daily_rate * days, 2),
        notes=data.notes,
    )
    db.add(rental)
    db.commit()
    db.refresh(rental)
    _log_transition(rental, "created")
    return rental


def update_rental(db: Session, rental_id: str, changes: dict[str, Any], actor_id: str, is_admin: bool) -> Rental:
    rental = get_rental_for(db, rental_id, actor_id, is_admin, message="You can only update your own rentals")
    if "status" in changes and not is_admin:
        raise ForbiddenError("Only admins can update rental status")
    if not changes:
        raise BadRequestError("No fields to update")
    for key, value in changes.items():
        setattr(rental, key, value)
    db.commit()
    db.refresh(rental)
    return rental


def cancel_rental(db: Session, rental_id: str, reason: Optional[str], actor_id: str, is_admin: bool) -> Rental:
    rental = get_rental_for(db, rental_id, actor_id, is_admin, message="You can only cancel your own rentals")
    if rental.status not in EDITABLE_RENTAL_STATUSES:
        raise BadRequestError(f"Cannot cancel a rental with status '{rental.status}'")
    rental.status = "cancelled"
    rental.cancelled_at = utcnow()
    rental.cancelled_reason = reason
    db.commit()
    db.refresh(rental)
    _log_transition(rental, "cancelled")
    return rental


def confirm_rental(db: Session, rental_id: str) -> Rental:
    rental = _locked_rental(db, rental_id)
    if rental.status != "pending":
        raise BadRequestError("Only pending rentals can be confirmed")
    rental.status = "confirmed"
    db.commit()
    db.refresh(rental)
    _log_transition(rental, "confirmed")
    return rental


def _held_items(rental: Rental) -> list[InventoryItem]:
    items = [rental.inventory_item] if rental.inventory_item is not None else []
    items.extend(ra.inventory_item for ra in rental.accessories if ra.inventory_item is not None)
    return items


def pickup_rental(db: Session, rental_id: str) -> Rental:
    rental = _locked_rental(db, rental_id)
    if rental.status != "confirmed":
        raise BadRequestError("Only confirmed rentals can be marked as picked up")
    rental.status = "active"
    rental.pickup_date = utcnow()
    if rental.equipment is not None:
        rental.equipment.status = "rented"
    for item in _held_items(rental):
        item.status = "rented"
    db.commit()
    db.refresh(rental)
    _log_transition(rental, "picked_up")
    return rental


def return_rental(db: Session, rental_id: str) -> Rental:
    rental = _locked_rental(db, rental_id)
    if rental.status != "active":
        raise BadRequestError("Only active rentals can be marked as returned")
    rental.status = "completed"
    rental.return_date = utcnow()
    if rental.equipment is not None:
        rental.equipment.status = "available"
    for item in _held_items(rental):
        if item.status == "rented":
            item.status = "available"
    db.commit()
    db.refresh(rental)
    _log_transition(rental, "returned")
    return rental


# ---------- Product / accessory rentals ----------


def _color_offered(db: Session, product_id: str, color: Optional[str]) -> bool:
    if not color:
        return False
    stmt = select(ProductColor.id).where(
        ProductColor.product_template_id == product_id,
        ProductColor.color_name == color,
        ProductColor.is_active.is_(True),
    )
    return db.execute(stmt).first() is not None


def create_enhanced_rental(
    db: Session, data: EnhancedRentalCreate, actor_id: str, is_admin: bool
) -> tuple[Rental, dict[str, Any]]:
    """Book a product (plus accessories) and reserve physical units for it.

    The whole booking is one transaction: if no unit of the product is free,
    nothing is written.
    """

    try:
        product = db.get(ProductTemplate, data.product_template_id)
        if product is None or not product.is_active:
            raise NotFoundError("Product not found")
        if not _color_offered(db, product.id, data.selected_color):
            raise BadRequestError("Selected color is not available for this product")

        rental_user_id = data.user_id if is_admin and data.user_id else actor_id
        renter = db.get(User, rental_user_id)
        if renter is None:
            raise NotFoundError("User not found")
        is_student = bool(renter.is_student)

        item = auto_assign_product_item(db, product.id, data.selected_color, data.start_date, data.end_date)
        if item is None:
            raise ConflictError("No inventory available for the selected product and color")

        pricing = calculate_rental_pricing(
            db,
            product.id,
            data.pricing_period,
            data.start_date,
            data.end_date,
            [selection.accessory_id for selection in data.accessories],
            apply_student_discount=is_student,
            is_new_equipment=bool(product.is_new),
        )

        rental = Rental(
            user_id=rental_user_id,
            product_template_id=product.id,
            inventory_item_id=item.id,
            selected_color=data.selected_color,
            pricing_period=data.pricing_period,
            start_date=data.start_date,
            end_date=data.end_date,
            weekly_rate=product.weekly_rate,
            monthly_rate=product.monthly_rate,
            deposit_amount=product.deposit_amount,
            student_discount_applied=is_student,
            new_equipment_fee_applied=bool(product.is_new),
            discount_amount=pricing["student_discount"],
            fee_amount=pricing["new_equipment_fee"],
            final_total=pricing["final_total"],
            total_amount=pricing["final_total"],
            notes=data.notes,
        )
        db.add(rental)
        db.flush()

        seen: set[str] = set()
        for selection in data.accessories:
            accessory = db.get(Accessory, selection.accessory_id)
            if accessory is None or not accessory.is_active or accessory.id in seen:
                continue
            seen.add(accessory.id)
            accessory_item = None
            if selection.selected_color:
                accessory_item = auto_assign_accessory_item(
                    db, accessory.id, selection.selected_color, data.start_date, data.end_date
                )
            db.add(
                RentalAccessory(
                    rental_id=rental.id,
                    accessory_id=accessory.id,
                    inventory_item_id=accessory_item.id if accessory_item else None,
                    selected_color=selection.selected_color,
                    weekly_rate=accessory.weekly_rate,
                    monthly_rate=accessory.monthly_rate,
                    deposit_amount=accessory.deposit_amount,
                )
            )
            # Later selections must not pick the unit just reserved.
            db.flush()
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(rental)
    _log_transition(rental, "created")
    return rental, pricing


def _editable_rental(db: Session, rental_id: str, message: str) -> Rental:
    rental = get_rental(db, rental_id)
    if rental.status not in EDITABLE_RENTAL_STATUSES:
        raise BadRequestError(message)
    return rental


def _free_accessory_item(db: Session, rental: Rental, accessory_id: str, item_id: str) -> InventoryItem:
    item = db.get(InventoryItem, item_id)
    if item is None or item.status != "available" or not is_item_free(
        db, item.id, rental.start_date, rental.end_date, ignore_rental_id=rental.id
    ):
        raise BadRequestError("Inventory item not available")
    if item.accessory_id != accessory_id:
        raise BadRequestError("Inventory item does not match rental accessory")
    return item


def add_rental_accessory(db: Session, rental_id: str, data: AddAccessoryRequest) -> RentalAccessory:
    rental = _editable_rental(db, rental_id, "Can only add accessories to pending or confirmed rentals")
    if any(ra.accessory_id == data.accessory_id for ra in rental.accessories):
        raise ConflictError("Accessory already added to this rental")
    accessory = db.get(Accessory, data.accessory_id)
    if accessory is None or not accessory.is_active:
        raise NotFoundError("Accessory not found")

    item_id = data.inventory_item_id
    if item_id is not None:
        item_id = _free_accessory_item(db, rental, accessory.id, item_id).id
    elif data.selected_color:
        item = auto_assign_accessory_item(db, accessory.id, data.selected_color, rental.start_date, rental.end_date)
        item_id = item.id if item else None

    rental_accessory = RentalAccessory(
        rental_id=rental.id,
        accessory_id=accessory.id,
        inventory_item_id=item_id,
        selected_color=data.selected_color,
        weekly_rate=accessory.weekly_rate,
        monthly_rate=accessory.monthly_rate,
        deposit_amount=accessory.deposit_amount,
    )
    db.add(rental_accessory)

    period = rental.pricing_period or "weekly"
    periods = billing_periods(rental_duration_days(rental.start_date, rental.end_date), period)
    extra = round(accessory.rate_for(period) * periods, 2)
    rental.total_amount = round(float(rental.total_amount or 0) + extra, 2)
    rental.final_total = round(float(rental.final_total or 0) + extra, 2)
    db.commit()
    db.refresh(rental_accessory)
    return rental_accessory


def assign_inventory(db: Session, rental_id: str, data: AssignInventoryRequest) -> Rental:
    rental = _editable_rental(db, rental_id, "Can only assign inventory to pending or confirmed rentals")
    if data.inventory_item_id:
        item = db.get(InventoryItem, data.inventory_item_id)
        if item is None or item.status != "available" or not is_item_free(
            db, item.id, rental.start_date, rental.end_date, ignore_rental_id=rental.id
        ):
            raise BadRequestError("Inventory item not available")
        if item.product_template_id != rental.product_template_id:
            raise BadRequestError("Inventory item does not match rental product")
        rental.inventory_item_id = item.id

    by_id = {ra.id: ra for ra in rental.accessories}
    for assignment in data.accessory_inventory_assignments:
        rental_accessory = by_id.get(assignment.rental_accessory_id)
        if rental_accessory is None:
            raise NotFoundError("Rental accessory not found")
        item = _free_accessory_item(db, rental, rental_accessory.accessory_id, assignment.inventory_item_id)
        rental_accessory.inventory_item_id = item.id
    db.commit()
    db.refresh(rental)
    return rental


def release_deposit(db: Session, rental_id: str, notes: Optional[str]) -> Rental:
    rental = get_rental(db, rental_id)
    if rental.status != "completed":
        raise BadRequestError("Can only release deposit for completed rentals")
    if rental.deposit_status != "held":
        raise BadRequestError("Deposit has already been processed")
    rental.deposit_status = "released"
    rental.deposit_released_at = utcnow()
    rental.deposit_notes = notes
    for rental_accessory in rental.accessories:
        rental_accessory.deposit_status = "released"
    db.commit()
    db.refresh(rental)
    _log_transition(rental, "deposit_released")
    return rental


def list_pricing_modifiers(db: Session) -> list[PricingModifier]:
    stmt = (
        select(PricingModifier)
        .where(PricingModifier.is_active.is_(True))
        .order_by(PricingModifier.type, PricingModifier.name)
    )
    return list(db.execute(stmt).scalars())
