"""CRUD helpers for product categories, product templates and product colors."""

from __future__ import annotations

import re
from typing import Any, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session, selectinload

from ..core.errors import BadRequestError, ConflictError, NotFoundError
from ..db.session import search_filter
from ..models.accessory import Accessory, ProductAccessoryLink
from ..models.catalog import ProductCategory, ProductColor, ProductTemplate
from ..models.rental import ACTIVE_RENTAL_STATUSES, Rental


def slugify(value: str) -> str:
    """``"Gaming Laptops!"`` -> ``"gaming-laptops"``."""
    slug = re.sub(r"[^a-z0-9\s-]", "", (value or "").lower())
    slug = re.sub(r"\s+", "-", slug.strip())
    return re.sub(r"-+", "-", slug)


def _apply_changes(target: Any, changes: dict[str, Any]) -> None:
    if not changes:
        raise BadRequestError("No fields to update")
    for key, value in changes.items():
        setattr(target, key, value)


# ---------- Categories ----------


def list_public_categories(db: Session) -> list[ProductCategory]:
    stmt = (
        select(ProductCategory)
        .where(ProductCategory.is_active.is_(True))
        .order_by(ProductCategory.display_order, ProductCategory.name)
    )
    return list(db.execute(stmt).scalars())


def list_categories(
    db: Session, *, page: int = 1, limit: int = 50, is_active: Optional[bool] = None
) -> tuple[list[tuple[ProductCategory, int]], int]:
    """Admin listing; each category comes back with its product count."""

    filters = [] if is_active is None else [ProductCategory.is_active.is_(is_active)]
    total = db.execute(select(func.count()).select_from(ProductCategory).where(*filters)).scalar_one()
    product_count = (
        select(func.count(ProductTemplate.id))
        .where(ProductTemplate.category_id == ProductCategory.id)
        .correlate(ProductCategory)
        .scalar_subquery()
    )
    stmt = (
        select(ProductCategory, product_count)
        .where(*filters)
        .order_by(ProductCategory.display_order, ProductCategory.name)
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return [(row[0], row[1]) for row in db.execute(stmt).all()], total


def get_category(db: Session, category_id: str) -> ProductCategory | None:
    return db.get(ProductCategory, category_id)


def get_active_category_by_slug(db: Session, slug: str) -> ProductCategory:
    stmt = select(ProductCategory).where(ProductCategory.slug == slug, ProductCategory.is_active.is_(True))
    category = db.execute(stmt).scalars().first()
    if category is None:
        raise NotFoundError("Category not found")
    return category


def _ensure_unique_category_slug(db: Session, slug: str, exclude_id: Optional[str] = None) -> None:
    stmt = select(ProductCategory.id).where(ProductCategory.slug == slug)
    if exclude_id:
        stmt = stmt.where(ProductCategory.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise ConflictError("Category with this slug already exists")


def create_category(db: Session, payload: dict[str, Any]) -> ProductCategory:
    data = dict(payload)
    data["slug"] = data.get("slug") or slugify(data["name"])
    _ensure_unique_category_slug(db, data["slug"])
    category = ProductCategory(**data)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def update_category(db: Session, category_id: str, changes: dict[str, Any]) -> ProductCategory:
    category = get_category(db, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    if changes.get("slug"):
        _ensure_unique_category_slug(db, changes["slug"], exclude_id=category_id)
    _apply_changes(category, changes)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: str) -> None:
    category = get_category(db, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    in_use = db.execute(
        select(func.count(ProductTemplate.id)).where(ProductTemplate.category_id == category_id)
    ).scalar_one()
    if in_use:
        raise BadRequestError(
            "Cannot delete category with existing products. Reassign or delete products first."
        )
    db.delete(category)
    db.commit()


# ---------- Products ----------


def list_products(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    category_id: Optional[str] = None,
    is_active: Optional[bool] = True,
    search: Optional[str] = None,
) -> tuple[list[ProductTemplate], int]:
    filters = []
    if is_active is not None:
        filters.append(ProductTemplate.is_active.is_(is_active))
    if category_id:
        filters.append(ProductTemplate.category_id == category_id)
    if search:
        filters.append(search_filter(search.strip(), ProductTemplate.name, ProductTemplate.subtitle))
    total = db.execute(select(func.count()).select_from(ProductTemplate).where(*filters)).scalar_one()
    stmt = (
        select(ProductTemplate)
        .options(selectinload(ProductTemplate.colors))
        .where(*filters)
        .order_by(ProductTemplate.display_order, ProductTemplate.name)
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(db.execute(stmt).unique().scalars()), total


def get_product(db: Session, product_id: str, *, active_only: bool = False) -> ProductTemplate:
    product = db.get(ProductTemplate, product_id)
    if product is None or (active_only and not product.is_active):
        raise NotFoundError("Product not found")
    return product


def list_category_products(db: Session, category_id: str) -> list[ProductTemplate]:
    stmt = (
        select(ProductTemplate)
        .options(selectinload(ProductTemplate.colors))
        .where(ProductTemplate.category_id == category_id, ProductTemplate.is_active.is_(True))
        .order_by(ProductTemplate.display_order, ProductTemplate.name)
    )
    return list(db.execute(stmt).unique().scalars())


def compatible_accessories(db: Session, product: ProductTemplate) -> list[Accessory]:
    """Active accessories linked to this product, or to its category.

    A category link with a ``screen_size_filter`` only matches products of
    that screen size.
    """

    category_match = and_(
        ProductAccessoryLink.category_id == product.category_id,
        or_(
            ProductAccessoryLink.screen_size_filter.is_(None),
            ProductAccessoryLink.screen_size_filter == product.screen_size,
        ),
    )
    linked_ids = (
        select(ProductAccessoryLink.accessory_id)
        .where(
            ProductAccessoryLink.is_active.is_(True),
            or_(ProductAccessoryLink.product_template_id == product.id, category_match),
        )
    )
    stmt = (
        select(Accessory)
        .options(selectinload(Accessory.colors))
        .where(Accessory.is_active.is_(True), Accessory.id.in_(linked_ids))
        .order_by(Accessory.display_order, Accessory.name)
    )
    return list(db.execute(stmt).unique().scalars())


def _ensure_category_exists(db: Session, category_id: str) -> None:
    if get_category(db, category_id) is None:
        raise BadRequestError("Invalid category ID")


def create_product(db: Session, payload: dict[str, Any]) -> ProductTemplate:
    data = dict(payload)
    colors = data.pop("colors", None) or []
    _ensure_category_exists(db, data["category_id"])
    product = ProductTemplate(**data)
    product.colors = [ProductColor(**color) for color in colors]
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def update_product(db: Session, product_id: str, changes: dict[str, Any]) -> ProductTemplate:
    product = get_product(db, product_id)
    if changes.get("category_id"):
        _ensure_category_exists(db, changes["category_id"])
    _apply_changes(product, changes)
    db.commit()
    db.refresh(product)
    return product


def _active_rental_count(db: Session, *conditions) -> int:
    stmt = select(func.count(Rental.id)).where(Rental.status.in_(ACTIVE_RENTAL_STATUSES), *conditions)
    return db.execute(stmt).scalar_one()


def delete_product(db: Session, product_id: str) -> None:
    product = get_product(db, product_id)
    if _active_rental_count(db, Rental.product_template_id == product_id):
        raise BadRequestError("Cannot delete product with active rentals")
    db.delete(product)
    db.commit()


def add_product_color(db: Session, product_id: str, payload: dict[str, Any]) -> ProductColor:
    get_product(db, product_id)
    color = ProductColor(product_template_id=product_id, **payload)
    db.add(color)
    db.commit()
    db.refresh(color)
    return color


def delete_product_color(db: Session, product_id: str, color_id: str) -> None:
    color = db.get(ProductColor, color_id)
    if color is None or color.product_template_id != product_id:
        raise NotFoundError("Color not found")
    db.delete(color)
    db.commit()
