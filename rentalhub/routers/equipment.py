from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..crud import equipment as crud
from ..db.session import get_db
from ..deps.auth import require_admin, require_auth
from ..schemas.common import created, ok, paginate
from ..schemas.equipment import EquipmentCreate, EquipmentOut, EquipmentStatus, EquipmentUpdate

router = APIRouter(prefix="/v1/equipment", tags=["equipment"], dependencies=[Depends(require_auth)])


@router.get("")
def api_list_equipment(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    category: Optional[str] = Query(default=None),
    status: Optional[EquipmentStatus] = Query(default=None),
    search: Optional[str] = Query(default=None),
    min_rate: Optional[float] = Query(default=None, ge=0),
    max_rate: Optional[float] = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    items, total = crud.list_equipment(
        db,
        page=page,
        limit=limit,
        category=category,
        status=status,
        search=search,
        min_rate=min_rate,
        max_rate=max_rate,
    )
    return ok({"equipment": [EquipmentOut.model_validate(e) for e in items], "pagination": paginate(page, limit, total)})


@router.get("/{equipment_id}")
def api_get_equipment(equipment_id: str, db: Session = Depends(get_db)):
    return ok({"equipment": EquipmentOut.model_validate(crud.get_equipment(db, equipment_id))})


@router.get("/{equipment_id}/availability")
def api_equipment_availability(
    equipment_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
):
    return ok(crud.check_availability(db, equipment_id, start_date, end_date))


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def api_create_equipment(payload: EquipmentCreate, db: Session = Depends(get_db)):
    return created({"equipment": EquipmentOut.model_validate(crud.create_equipment(db, payload.model_dump()))})


@router.put("/{equipment_id}", dependencies=[Depends(require_admin)])
def api_update_equipment(equipment_id: str, payload: EquipmentUpdate, db: Session = Depends(get_db)):
    equipment = crud.update_equipment(db, equipment_id, payload.model_dump(exclude_unset=True))
    return ok({"equipment": EquipmentOut.model_validate(equipment)})


@router.delete("/{equipment_id}", dependencies=[Depends(require_admin)])
def api_delete_equipment(equipment_id: str, db: Session = Depends(get_db)):
    crud.delete_equipment(db, equipment_id)
    return ok(message="Equipment deleted successfully")
