"""Product catalog endpoints: the public storefront and the admin editor."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..crud import catalog as crud
from ..db.session import get_db
from ..deps.auth import require_admin
from ..schemas.catalog import (
    CategoryCreate,
    CategoryDetail,
    CategoryOut,
    CategoryUpdate,
    CompatibleAccessory,
    ProductCreate,
    ProductDetail,
    ProductUpdate,
    product_out,
)
from ..schemas.common import ColorIn, ColorOut, created, ok, paginate

public_router = APIRouter(prefix="/v1/catalog", tags=["catalog"])
admin_router = APIRouter(prefix="/v1/admin", tags=["admin-catalog"], dependencies=[Depends(require_admin)])


# ---------- Public ----------


@public_router.get("/categories")
def api_public_categories(db: Session = Depends(get_db)):
    return ok({"categories": [CategoryOut.model_validate(c) for c in crud.list_public_categories(db)]})


@public_router.get("/categories/{slug}")
def api_public_category(slug: str, db: Session = Depends(get_db)):
    category = crud.get_active_category_by_slug(db, slug)
    detail = CategoryDetail.model_validate(category)
    detail.products = [product_out(p) for p in crud.list_category_products(db, category.id)]
    return ok({"category": detail})


@public_router.get("/products")
def api_public_products(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    category_id: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    products, total = crud.list_products(db, page=page, limit=limit, category_id=category_id, search=search)
    return ok({"products": [product_out(p) for p in products], "pagination": paginate(page, limit, total)})


@public_router.get("/products/{product_id}")
def api_public_product(product_id: str, db: Session = Depends(get_db)):
    product = crud.get_product(db, product_id, active_only=True)
    detail = ProductDetail(**product_out(product).model_dump())
    accessories = []
    for accessory in crud.compatible_accessories(db, product):
        item = CompatibleAccessory.model_validate(accessory)
        item.colors = [color for color in item.colors if color.is_active]
        accessories.append(item)
    detail.accessories = accessories
    return ok({"product": detail})


# ---------- Admin: categories ----------


@admin_router.get("/categories")
def api_admin_categories(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    is_active: Optional[bool] = Query(default=None),
    db: Session = Depends(get_db),
):
    rows, total = crud.list_categories(db, page=page, limit=limit, is_active=is_active)
    categories = []
    for category, product_count in rows:
        out = CategoryOut.model_validate(category)
        out.product_count = product_count
        categories.append(out)
    return ok({"categories": categories, "pagination": paginate(page, limit, total)})


@admin_router.post("/categories", status_code=status.HTTP_201_CREATED)
def api_create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    category = crud.create_category(db, payload.model_dump())
    return created({"category": CategoryOut.model_validate(category)})


@admin_router.put("/categories/{category_id}")
def api_update_category(category_id: str, payload: CategoryUpdate, db: Session = Depends(get_db)):
    category = crud.update_category(db, category_id, payload.model_dump(exclude_unset=True))
    return ok({"category": CategoryOut.model_validate(category)})


@admin_router.delete("/categories/{category_id}")
def api_delete_category(category_id: str, db: Session = Depends(get_db)):
    crud.delete_category(db, category_id)
    return ok(message="Category deleted successfully")


# ---------- Admin: products ----------


@admin_router.get("/products")
def api_admin_products(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    category_id: Optional[str] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    products, total = crud.list_products(
        db, page=page, limit=limit, category_id=category_id, is_active=is_active, search=search
    )
    return ok(
        {
            "products": [product_out(p, active_colors_only=False) for p in products],
            "pagination": paginate(page, limit, total),
        }
    )


@admin_router.get("/products/{product_id}")
def api_admin_product(product_id: str, db: Session = Depends(get_db)):
    return ok({"product": product_out(crud.get_product(db, product_id), active_colors_only=False)})


@admin_router.post("/products", status_code=status.HTTP_201_CREATED)
def api_create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    product = crud.create_product(db, payload.model_dump())
    return created({"product": product_out(product, active_colors_only=False)})


@admin_router.put("/products/{product_id}")
def api_update_product(product_id: str, payload: ProductUpdate, db: Session = Depends(get_db)):
    product = crud.update_product(db, product_id, payload.model_dump(exclude_unset=True))
    return ok({"product": product_out(product, active_colors_only=False)})


@admin_router.delete("/products/{product_id}")
def api_delete_product(product_id: str, db: Session = Depends(get_db)):
    crud.delete_product(db, product_id)
    return ok(message="Product deleted successfully")


@admin_router.post("/products/{product_id}/colors", status_code=status.HTTP_201_CREATED)
def api_add_product_color(product_id: str, payload: ColorIn, db: Session = Depends(get_db)):
    color = crud.add_product_color(db, product_id, payload.model_dump())
    return created({"color": ColorOut.model_validate(color)})


@admin_router.delete("/products/{product_id}/colors/{color_id}")
def api_delete_product_color(product_id: str, color_id: str, db: Session = Depends(get_db)):
    crud.delete_product_color(db, product_id, color_id)
    return ok(message="Color deleted successfully")