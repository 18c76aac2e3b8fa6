"""Beginner-friendly overview for this module.

WHAT: Physical stock endpoints. Admins manage serialized units under
``/v1/admin/inventory``; signed-in users ask ``/v1/inventory/availability``
whether a product or accessory can be booked for some dates.
WHEN: Used by the admin stock screens and by the booking form.
WHY: Rentals reserve real units, so the booking UI needs to know how many
are free (and in which colors) before it submits.
HOW: Thin handlers over ``crud.inventory``; the overlap query lives there.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..crud import inventory as crud
from ..db.session import get_db
from ..deps.auth import require_admin, require_auth
from ..schemas.common import created, ok, paginate
from ..schemas.inventory import (
    BulkInventoryCreate,
    InventoryItemCreate,
    InventoryItemDetail,
    InventoryItemOut,
    InventoryItemUpdate,
    ItemCondition,
    ItemStatus,
    RentalHistoryEntry,
)

admin_router = APIRouter(prefix="/v1/admin/inventory", tags=["inventory"], dependencies=[Depends(require_admin)])
router = APIRouter(prefix="/v1/inventory", tags=["inventory"])


@router.get("/availability", dependencies=[Depends(require_auth)])
def api_availability(
    product_template_id: Optional[str] = Query(default=None),
    accessory_id: Optional[str] = Query(default=None),
    color: Optional[str] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
):
    result = crud.check_availability(
        db,
        product_template_id=product_template_id,
        accessory_id=accessory_id,
        color=color,
        start_date=start_date,
        end_date=end_date,
    )
    result["items"] = [InventoryItemOut.model_validate(item) for item in result["items"]]
    return ok(result)


@admin_router.get("")
def api_list_inventory(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    product_template_id: Optional[str] = Query(default=None),
    accessory_id: Optional[str] = Query(default=None),
    status: Optional[ItemStatus] = Query(default=None),
    condition: Optional[ItemCondition] = Query(default=None),
    color: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    items, total = crud.list_items(
        db,
        page=page,
        limit=limit,
        product_template_id=product_template_id,
        accessory_id=accessory_id,
        status=status,
        condition=condition,
        color=color,
        search=search,
    )
    return ok(
        {
            "inventory": [InventoryItemOut.model_validate(item) for item in items],
            "pagination": paginate(page, limit, total),
        }
    )


# Fixed paths are registered before "/{item_id}" so they are not captured by it.
@admin_router.get("/summary")
def api_inventory_summary(db: Session = Depends(get_db)):
    return ok(crud.inventory_summary(db))


@admin_router.post("/bulk", status_code=status.HTTP_201_CREATED)
def api_bulk_create(payload: BulkInventoryCreate, db: Session = Depends(get_db)):
    result = crud.bulk_create_items(db, payload.items)
    result["items"] = [InventoryItemOut.model_validate(item) for item in result["items"]]
    return created(result)


@admin_router.get("/{item_id}")
def api_get_item(item_id: str, db: Session = Depends(get_db)):
    detail = InventoryItemDetail.model_validate(crud.get_item(db, item_id))
    detail.rental_history = [RentalHistoryEntry.model_validate(r) for r in crud.rental_history(db, item_id)]
    return ok({"item": detail})


@admin_router.post("", status_code=status.HTTP_201_CREATED)
def api_create_item(payload: InventoryItemCreate, db: Session = Depends(get_db)):
    return created({"item": InventoryItemOut.model_validate(crud.create_item(db, payload))})


@admin_router.put("/{item_id}")
def api_update_item(item_id: str, payload: InventoryItemUpdate, db: Session = Depends(get_db)):
    item = crud.update_item(db, item_id, payload.model_dump(exclude_unset=True))
    return ok({"item": InventoryItemOut.model_validate(item)})


@admin_router.delete("/{item_id}")
def api_delete_item(item_id: str, db: Session = Depends(get_db)):
    crud.delete_item(db, item_id)
    return ok(message="Inventory item deleted successfully")
