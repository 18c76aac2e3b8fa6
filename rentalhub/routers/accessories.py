from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..crud import accessories as crud
from ..db.session import get_db
from ..deps.auth import require_admin
from ..schemas.accessory import AccessoryCreate, AccessoryUpdate, LinkCreate, LinkOut, accessory_out
from ..schemas.common import ColorIn, ColorOut, created, ok, paginate

public_router = APIRouter(prefix="/v1/catalog/accessories", tags=["catalog"])
admin_router = APIRouter(prefix="/v1/admin", tags=["admin-accessories"], dependencies=[Depends(require_admin)])


@public_router.get("")
def api_public_accessories(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    search: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    accessories, total = crud.list_accessories(db, page=page, limit=limit, is_active=True, search=search)
    return ok({"accessories": [accessory_out(a) for a in accessories], "pagination": paginate(page, limit, total)})


@public_router.get("/{accessory_id}")
def api_public_accessory(accessory_id: str, db: Session = Depends(get_db)):
    return ok({"accessory": accessory_out(crud.get_accessory(db, accessory_id, active_only=True))})


@admin_router.get("/accessories")
def api_admin_accessories(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    is_active: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    accessories, total = crud.list_accessories(db, page=page, limit=limit, is_active=is_active, search=search)
    return ok(
        {
            "accessories": [accessory_out(a, active_colors_only=False) for a in accessories],
            "pagination": paginate(page, limit, total),
        }
    )


@admin_router.get("/accessories/{accessory_id}")
def api_admin_accessory(accessory_id: str, db: Session = Depends(get_db)):
    return ok({"accessory": accessory_out(crud.get_accessory(db, accessory_id), active_colors_only=False)})


@admin_router.post("/accessories", status_code=status.HTTP_201_CREATED)
def api_create_accessory(payload: AccessoryCreate, db: Session = Depends(get_db)):
    accessory = crud.create_accessory(db, payload.model_dump())
    return created({"accessory": accessory_out(accessory, active_colors_only=False)})


@admin_router.put("/accessories/{accessory_id}")
def api_update_accessory(accessory_id: str, payload: AccessoryUpdate, db: Session = Depends(get_db)):
    accessory = crud.update_accessory(db, accessory_id, payload.model_dump(exclude_unset=True))
    return ok({"accessory": accessory_out(accessory, active_colors_only=False)})


@admin_router.delete("/accessories/{accessory_id}")
def api_delete_accessory(accessory_id: str, db: Session = Depends(get_db)):
    crud.delete_accessory(db, accessory_id)
    return ok(message="Accessory deleted successfully")


@admin_router.post("/accessories/{accessory_id}/colors", status_code=status.HTTP_201_CREATED)
def api_add_accessory_color(accessory_id: str, payload: ColorIn, db: Session = Depends(get_db)):
    color = crud.add_accessory_color(db, accessory_id, payload.model_dump())
    return created({"color": ColorOut.model_validate(color)})


@admin_router.delete("/accessories/{accessory_id}/colors/{color_id}")
def api_delete_accessory_color(accessory_id: str, color_id: str, db: Session = Depends(get_db)):
    crud.delete_accessory_color(db, accessory_id, color_id)
    return ok(message="Color deleted successfully")


# ---------- Links ----------


@admin_router.get("/accessory-links")
def api_list_links(
    accessory_id: Optional[str] = Query(default=None),
    product_template_id: Optional[str] = Query(default=None),
    category_id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    links = crud.list_links(
        db, accessory_id=accessory_id, product_template_id=product_template_id, category_id=category_id
    )
    return ok({"links": [LinkOut.model_validate(link) for link in links]})


@admin_router.post("/accessory-links", status_code=status.HTTP_201_CREATED)
def api_create_link(payload: LinkCreate, db: Session = Depends(get_db)):
    return created({"link": LinkOut.model_validate(crud.create_link(db, payload.model_dump()))})


@admin_router.delete("/accessory-links/{link_id}")
def api_delete_link(link_id: str, db: Session = Depends(get_db)):
    crud.delete_link(db, link_id)
    return ok(message="Accessory link deleted successfully")
