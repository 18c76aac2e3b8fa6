"""Beginner-friendly overview for this module.

WHAT: Every ``/v1/rentals`` endpoint: the legacy per-day equipment bookings,
the product/accessory bookings with period pricing, and the admin lifecycle
actions (confirm, pickup, return, deposit release).
WHEN: Called by renters from the booking pages and by staff from the admin
rental screens.
WHY: Both booking flows share one table and one status machine, so they share
one router and one ownership rule: renters see their own rentals, admins see
all of them.
HOW: Handlers resolve the caller with ``require_auth``, delegate to
``crud.rentals`` and wrap the result in the standard envelope. Fixed paths
(``/my``, ``/enhanced``, ``/calculate-pricing``) are declared before
``/{rental_id}`` so they are not swallowed by it.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.errors import BadRequestError
from ..crud import rentals as crud
from ..crud.catalog import get_product
from ..crud.users import get_user
from ..db.session import get_db
from ..deps.auth import CurrentUser, require_admin, require_auth
from ..schemas.common import created, ok, paginate
from ..schemas.rental import (
    AddAccessoryRequest,
    AssignInventoryRequest,
    CancelRequest,
    EnhancedRentalCreate,
    PricingModifierOut,
    PricingPeriod,
    ReleaseDepositRequest,
    RentalAccessoryOut,
    RentalCreate,
    RentalDetail,
    RentalOut,
    RentalStatus,
    RentalUpdate,
)
from ..services.pricing import calculate_rental_pricing

router = APIRouter(prefix="/v1/rentals", tags=["rentals"])
modifiers_router = APIRouter(prefix="/v1/pricing-modifiers", tags=["rentals"])


def _accessory_ids(raw: Optional[str]) -> list[str]:
    """Decode the ``accessories`` query value: a JSON list of ids or of objects."""
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except ValueError as exc:
        raise BadRequestError("accessories must be a JSON array", error="ValidationError") from exc
    if not isinstance(decoded, list):
        raise BadRequestError("accessories must be a JSON array", error="ValidationError")
    ids = []
    for entry in decoded:
        if isinstance(entry, str):
            ids.append(entry)
        elif isinstance(entry, dict) and isinstance(entry.get("accessory_id"), str):
            ids.append(entry["accessory_id"])
        else:
            raise BadRequestError("Each accessory needs an accessory_id", error="ValidationError")
    return ids


# ---------- Listing ----------


@router.get("")
def api_list_rentals(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: Optional[RentalStatus] = Query(default=None),
    user_id: Optional[str] = Query(default=None),
    equipment_id: Optional[str] = Query(default=None),
    start_date_from: Optional[date] = Query(default=None),
    start_date_to: Optional[date] = Query(default=None),
    current: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    rentals, total = crud.list_rentals(
        db,
        page=page,
        limit=limit,
        user_id=user_id if current.is_admin else current.user_id,
        status=status,
        equipment_id=equipment_id,
        start_date_from=start_date_from,
        start_date_to=start_date_to,
    )
    return ok({"rentals": [RentalOut.model_validate(r) for r in rentals], "pagination": paginate(page, limit, total)})


@router.get("/my")
def api_my_rentals(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: Optional[RentalStatus] = Query(default=None),
    current: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    rentals, total = crud.list_rentals(db, page=page, limit=limit, user_id=current.user_id, status=status)
    return ok({"rentals": [RentalOut.model_validate(r) for r in rentals], "pagination": paginate(page, limit, total)})


# ---------- Product bookings ----------


@router.get("/calculate-pricing")
def api_calculate_pricing(
    product_template_id: str = Query(...),
    pricing_period: PricingPeriod = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    accessories: Optional[str] = Query(default=None),
    apply_student_discount: bool = Query(default=False),
    current: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    product = get_product(db, product_template_id)
    is_student = False
    if apply_student_discount:
        user = get_user(db, current.user_id)
        is_student = bool(user and user.is_student)
    pricing = calculate_rental_pricing(
        db,
        product.id,
        pricing_period,
        start_date,
        end_date,
        _accessory_ids(accessories),
        apply_student_discount=apply_student_discount and is_student,
        is_new_equipment=bool(product.is_new),
    )
    return ok({"pricing": {**pricing, "student_discount_eligible": is_student, "pricing_period": pricing_period}})


@router.post("/enhanced", status_code=status.HTTP_201_CREATED)
def api_create_enhanced_rental(
    payload: EnhancedRentalCreate,
    current: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    rental, pricing = crud.create_enhanced_rental(db, payload, current.user_id, current.is_admin)
    body = RentalDetail.model_validate(rental).model_dump(mode="json")
    body["pricing"] = pricing
    return created({"rental": body})


@router.get("/{rental_id}/details")
def api_rental_details(
    rental_id: str,
    current: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    rental = crud.get_rental_for(db, rental_id, current.user_id, current.is_admin)
    return ok({"rental": RentalDetail.model_validate(rental)})


@router.post("/{rental_id}/accessories", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def api_add_rental_accessory(rental_id: str, payload: AddAccessoryRequest, db: Session = Depends(get_db)):
    rental_accessory = crud.add_rental_accessory(db, rental_id, payload)
    return created({"rental_accessory": RentalAccessoryOut.model_validate(rental_accessory)})


@router.post("/{rental_id}/assign-inventory", dependencies=[Depends(require_admin)])
def api_assign_inventory(rental_id: str, payload: AssignInventoryRequest, db: Session = Depends(get_db)):
    crud.assign_inventory(db, rental_id, payload)
    return ok({"message": "Inventory assigned successfully"})


@router.post("/{rental_id}/release-deposit", dependencies=[Depends(require_admin)])
def api_release_deposit(
    rental_id: str, payload: Optional[ReleaseDepositRequest] = None, db: Session = Depends(get_db)
):
    rental = crud.release_deposit(db, rental_id, payload.notes if payload else None)
    return ok({"rental": RentalDetail.model_validate(rental)})


# ---------- Equipment bookings and lifecycle ----------


@router.post("", status_code=status.HTTP_201_CREATED)
def api_create_rental(
    payload: RentalCreate,
    current: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    rental = crud.create_rental(db, payload, current.user_id, current.is_admin)
    return created({"rental": RentalOut.model_validate(rental)})


@router.get("/{rental_id}")
def api_get_rental(
    rental_id: str,
    current: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    rental = crud.get_rental_for(db, rental_id, current.user_id, current.is_admin)
    return ok({"rental": RentalDetail.model_validate(rental)})


@router.put("/{rental_id}")
def api_update_rental(
    rental_id: str,
    payload: RentalUpdate,
    current: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    rental = crud.update_rental(
        db, rental_id, payload.model_dump(exclude_unset=True), current.user_id, current.is_admin
    )
    return ok({"rental": RentalOut.model_validate(rental)})


@router.post("/{rental_id}/cancel")
def api_cancel_rental(
    rental_id: str,
    payload: Optional[CancelRequest] = None,
    current: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    rental = crud.cancel_rental(db, rental_id, reason, current.user_id, current.is_admin)
    return ok({"rental": RentalOut.model_validate(rental)})


@router.post("/{rental_id}/confirm", dependencies=[Depends(require_admin)])
def api_confirm_rental(rental_id: str, db: Session = Depends(get_db)):
    return ok({"rental": RentalOut.model_validate(crud.confirm_rental(db, rental_id))})


@router.post("/{rental_id}/pickup", dependencies=[Depends(require_admin)])
def api_pickup_rental(rental_id: str, db: Session = Depends(get_db)):
    return ok({"rental": RentalOut.model_validate(crud.pickup_rental(db, rental_id))})


@router.post("/{rental_id}/return", dependencies=[Depends(require_admin)])
def api_return_rental(rental_id: str, db: Session = Depends(get_db)):
    return ok({"rental": RentalOut.model_validate(crud.return_rental(db, rental_id))})


@modifiers_router.get("")
def api_pricing_modifiers(db: Session = Depends(get_db)):
    return ok({"modifiers": [PricingModifierOut.model_validate(m) for m in crud.list_pricing_modifiers(db)]})
