"""CRUD helpers for accessories, their colors and product/category links."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ..core.errors import BadRequestError, ConflictError, NotFoundError
from ..db.session import search_filter
from ..models.accessory import Accessory, AccessoryColor, ProductAccessoryLink
from ..models.catalog import ProductCategory, ProductTemplate
from ..models.rental import ACTIVE_RENTAL_STATUSES, Rental, RentalAccessory
from .catalog import _apply_changes


def list_accessories(
    db: Session,
    *,
    page: int = 1,
    limit: int = 50,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> tuple[list[Accessory], int]:
    filters = []
    if is_active is not None:
        filters.append(Accessory.is_active.is_(is_active))
    if search:
        filters.append(search_filter(search.strip(), Accessory.name, Accessory.description))
    total = db.execute(select(func.count()).select_from(Accessory).where(*filters)).scalar_one()
    stmt = (
        select(Accessory)
        .options(selectinload(Accessory.colors))
        .where(*filters)
        .order_by(Accessory.display_order, Accessory.name)
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(db.execute(stmt).scalars()), total


def get_accessory(db: Session, accessory_id: str, *, active_only: bool = False) -> Accessory:
    accessory = db.get(Accessory, accessory_id)
    if accessory is None or (active_only and not accessory.is_active):
        raise NotFoundError("Accessory not found")
    return accessory


def create_accessory(db: Session, payload: dict[str, Any]) -> Accessory:
    data = dict(payload)
    colors = data.pop("colors", None) or []
    accessory = Accessory(**data)
    accessory.colors = [AccessoryColor(**color) for color in colors]
    db.add(accessory)
    db.commit()
    db.refresh(accessory)
    return accessory


def update_accessory(db: Session, accessory_id: str, changes: dict[str, Any]) -> Accessory:
    accessory = get_accessory(db, accessory_id)
    _apply_changes(accessory, changes)
    db.commit()
    db.refresh(accessory)
    return accessory


def delete_accessory(db: Session, accessory_id: str) -> None:
    accessory = get_accessory(db, accessory_id)
    in_use = db.execute(
        select(func.count(RentalAccessory.id))
        .join(Rental, Rental.id == RentalAccessory.rental_id)
        .where(RentalAccessory.accessory_id == accessory_id, Rental.status.in_(ACTIVE_RENTAL_STATUSES))
    ).scalar_one()
    if in_use:
        raise BadRequestError("Cannot delete accessory with active rentals")
    db.delete(accessory)
    db.commit()


def add_accessory_color(db: Session, accessory_id: str, payload: dict[str, Any]) -> AccessoryColor:
    get_accessory(db, accessory_id)
    color = AccessoryColor(accessory_id=accessory_id, **payload)
    db.add(color)
    db.commit()
    db.refresh(color)
    return color


def delete_accessory_color(db: Session, accessory_id: str, color_id: str) -> None:
    color = db.get(AccessoryColor, color_id)
    if color is None or color.accessory_id != accessory_id:
        raise NotFoundError("Color not found")
    db.delete(color)
    db.commit()


# ---------- Links ----------


def create_link(db: Session, payload: dict[str, Any]) -> ProductAccessoryLink:
    product_id = payload.get("product_template_id")
    category_id = payload.get("category_id")
    if bool(product_id) == bool(category_id):
        raise BadRequestError("Provide exactly one of product_template_id or category_id")
    if db.get(Accessory, payload["accessory_id"]) is None:
        raise BadRequestError("Invalid accessory ID")
    target = db.get(ProductTemplate, product_id) if product_id else db.get(ProductCategory, category_id)
    if target is None:
        raise BadRequestError("Invalid product or category ID")

    screen_size_filter = payload.get("screen_size_filter") if category_id else None
    stmt = select(ProductAccessoryLink.id).where(
        ProductAccessoryLink.accessory_id == payload["accessory_id"],
        ProductAccessoryLink.product_template_id.is_(None)
        if not product_id
        else ProductAccessoryLink.product_template_id == product_id,
        ProductAccessoryLink.category_id.is_(None)
        if not category_id
        else ProductAccessoryLink.category_id == category_id,
        ProductAccessoryLink.screen_size_filter.is_(None)
        if screen_size_filter is None
        else ProductAccessoryLink.screen_size_filter == screen_size_filter,
    )
    if db.execute(stmt).first() is not None:
        raise ConflictError("This accessory link already exists")

    link = ProductAccessoryLink(
        accessory_id=payload["accessory_id"],
        product_template_id=product_id or None,
        category_id=category_id or None,
        screen_size_filter=screen_size_filter,
    )
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


def delete_link(db: Session, link_id: str) -> None:
    link = db.get(ProductAccessoryLink, link_id)
    if link is None:
        raise NotFoundError("Link not found")
    db.delete(link)
    db.commit()


def list_links(
    db: Session,
    *,
    accessory_id: Optional[str] = None,
    product_template_id: Optional[str] = None,
    category_id: Optional[str] = None,
) -> list[ProductAccessoryLink]:
    filters = [ProductAccessoryLink.is_active.is_(True)]
    if accessory_id:
        filters.append(ProductAccessoryLink.accessory_id == accessory_id)
    if product_template_id:
        filters.append(ProductAccessoryLink.product_template_id == product_template_id)
    if category_id:
        filters.append(ProductAccessoryLink.category_id == category_id)
    stmt = select(ProductAccessoryLink).where(*filters).order_by(ProductAccessoryLink.created_at.desc())
    return list(db.execute(stmt).unique().scalars())
