"""CRUD helpers for serialized inventory plus the auto-assignment queries.

Two kinds of rows reference an inventory item while it is out: a rental
(``rentals.inventory_item_id``) for the main product and a rental accessory
(``rental_accessories.inventory_item_id``) for add-ons. An item is free for a
date range when neither kind of row belongs to an active rental whose dates
overlap that range.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..core.errors import BadRequestError, ConflictError, NotFoundError
from ..db.session import search_filter
from ..models.accessory import Accessory
from ..models.catalog import ProductTemplate
from ..models.inventory import InventoryItem, condition_rank
from ..models.rental import ACTIVE_RENTAL_STATUSES, Rental, RentalAccessory
from ..schemas.inventory import InventoryItemCreate
from .catalog import _apply_changes

logger = logging.getLogger(__name__)

RENTAL_HISTORY_LIMIT = 10
BULK_MAX_ITEMS = 100


# ---------- Availability ----------


def _overlaps(start_date: date, end_date: date):
    return [
        Rental.status.in_(ACTIVE_RENTAL_STATUSES),
        Rental.start_date <= end_date,
        Rental.end_date >= start_date,
    ]


def booked_item_ids(start_date: date, end_date: date):
    """Sub-selects of inventory item ids held by active, overlapping rentals."""

    as_product = select(Rental.inventory_item_id).where(
        Rental.inventory_item_id.is_not(None), *_overlaps(start_date, end_date)
    )
    as_accessory = (
        select(RentalAccessory.inventory_item_id)
        .join(Rental, Rental.id == RentalAccessory.rental_id)
        .where(RentalAccessory.inventory_item_id.is_not(None), *_overlaps(start_date, end_date))
    )
    return as_product, as_accessory


def _free_items_stmt(
    start_date: date,
    end_date: date,
    *,
    product_template_id: Optional[str] = None,
    accessory_id: Optional[str] = None,
    color: Optional[str] = None,
):
    as_product, as_accessory = booked_item_ids(start_date, end_date)
    stmt = select(InventoryItem).where(
        InventoryItem.status == "available",
        InventoryItem.id.not_in(as_product),
        InventoryItem.id.not_in(as_accessory),
    )
    if product_template_id:
        stmt = stmt.where(InventoryItem.product_template_id == product_template_id)
    if accessory_id:
        stmt = stmt.where(InventoryItem.accessory_id == accessory_id)
    if color:
        stmt = stmt.where(InventoryItem.color == color)
    return stmt.order_by(condition_rank(), InventoryItem.created_at)


def is_item_free(db: Session, item_id: str, start_date: date, end_date: date, *, ignore_rental_id: str | None = None) -> bool:
    conditions = _overlaps(start_date, end_date)
    if ignore_rental_id:
        conditions.append(Rental.id != ignore_rental_id)
    as_product = select(func.count(Rental.id)).where(Rental.inventory_item_id == item_id, *conditions)
    as_accessory = (
        select(func.count(RentalAccessory.id))
        .join(Rental, Rental.id == RentalAccessory.rental_id)
        .where(RentalAccessory.inventory_item_id == item_id, *conditions)
    )
    return not db.execute(as_product).scalar_one() and not db.execute(as_accessory).scalar_one()


def _auto_assign(db: Session, start_date: date, end_date: date, **target: Optional[str]) -> InventoryItem | None:
    stmt = _free_items_stmt(start_date, end_date, **target).limit(1).with_for_update(of=InventoryItem)
    return db.execute(stmt).unique().scalars().first()


def auto_assign_product_item(
    db: Session, product_template_id: str, color: Optional[str], start_date: date, end_date: date
) -> InventoryItem | None:
    """Best-condition free unit of a product (and color) for the date range."""
    return _auto_assign(db, start_date, end_date, product_template_id=product_template_id, color=color)


def auto_assign_accessory_item(
    db: Session, accessory_id: str, color: Optional[str], start_date: date, end_date: date
) -> InventoryItem | None:
    return _auto_assign(db, start_date, end_date, accessory_id=accessory_id, color=color)


def check_availability(
    db: Session,
    *,
    product_template_id: Optional[str],
    accessory_id: Optional[str],
    color: Optional[str],
    start_date: Optional[date],
    end_date: Optional[date],
) -> dict[str, Any]:
    if not product_template_id and not accessory_id:
        raise BadRequestError("Either product_template_id or accessory_id is required")
    if start_date is None or end_date is None:
        raise BadRequestError("start_date and end_date are required")
    if end_date < start_date:
        raise BadRequestError("end_date must be on or after start_date")
    stmt = _free_items_stmt(
        start_date,
        end_date,
        product_template_id=product_template_id,
        accessory_id=accessory_id,
        color=color,
    )
    items = list(db.execute(stmt).unique().scalars())
    colors = sorted({item.color for item in items if item.color})
    return {
        "available": bool(items),
        "available_count": len(items),
        "available_colors": colors,
        "items": items,
    }


# ---------- Admin CRUD ----------


def list_items(
    db: Session,
    *,
    page: int = 1,
    limit: int = 50,
    product_template_id: Optional[str] = None,
    accessory_id: Optional[str] = None,
    status: Optional[str] = None,
    condition: Optional[str] = None,
    color: Optional[str] = None,
    search: Optional[str] = None,
) -> tuple[list[InventoryItem], int]:
    filters = []
    if product_template_id:
        filters.append(InventoryItem.product_template_id == product_template_id)
    if accessory_id:
        filters.append(InventoryItem.accessory_id == accessory_id)
    if status:
        filters.append(InventoryItem.status == status)
    if condition:
        filters.append(InventoryItem.condition == condition)
    if color:
        filters.append(InventoryItem.color == color)
    if search:
        term = search.strip()
        filters.append(
            or_(
                search_filter(term, InventoryItem.serial_number),
                InventoryItem.product_template_id.in_(
                    select(ProductTemplate.id).where(search_filter(term, ProductTemplate.name))
                ),
                InventoryItem.accessory_id.in_(select(Accessory.id).where(search_filter(term, Accessory.name))),
            )
        )
    total = db.execute(select(func.count()).select_from(InventoryItem).where(*filters)).scalar_one()
    stmt = (
        select(InventoryItem)
        .where(*filters)
        .order_by(InventoryItem.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(db.execute(stmt).unique().scalars()), total


def get_item(db: Session, item_id: str) -> InventoryItem:
    item = db.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError("Inventory item not found")
    return item


def rental_history(db: Session, item_id: str) -> list[Rental]:
    stmt = (
        select(Rental)
        .where(Rental.inventory_item_id == item_id)
        .order_by(Rental.start_date.desc())
        .limit(RENTAL_HISTORY_LIMIT)
    )
    return list(db.execute(stmt).unique().scalars())


def _serial_taken(db: Session, serial_number: Optional[str], exclude_id: Optional[str] = None) -> bool:
    if not serial_number:
        return False
    stmt = select(InventoryItem.id).where(InventoryItem.serial_number == serial_number)
    if exclude_id:
        stmt = stmt.where(InventoryItem.id != exclude_id)
    return db.execute(stmt).first() is not None


def _target_exists(db: Session, data: InventoryItemCreate) -> bool:
    if data.product_template_id:
        return db.get(ProductTemplate, data.product_template_id) is not None
    return db.get(Accessory, data.accessory_id) is not None


def create_item(db: Session, data: InventoryItemCreate) -> InventoryItem:
    if not _target_exists(db, data):
        raise BadRequestError("Invalid product or accessory ID")
    if _serial_taken(db, data.serial_number):
        raise ConflictError("Inventory item with this serial number already exists")
    item = InventoryItem(**data.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def update_item(db: Session, item_id: str, changes: dict[str, Any]) -> InventoryItem:
    item = get_item(db, item_id)
    if changes.get("serial_number") and _serial_taken(db, changes["serial_number"], exclude_id=item_id):
        raise ConflictError("Inventory item with this serial number already exists")
    _apply_changes(item, changes)
    db.commit()
    db.refresh(item)
    return item


def delete_item(db: Session, item_id: str) -> None:
    item = get_item(db, item_id)
    active = Rental.status.in_(ACTIVE_RENTAL_STATUSES)
    if db.execute(select(func.count(Rental.id)).where(Rental.inventory_item_id == item_id, active)).scalar_one():
        raise BadRequestError("Cannot delete inventory item with active rentals")
    accessory_rentals = (
        select(func.count(RentalAccessory.id))
        .join(Rental, Rental.id == RentalAccessory.rental_id)
        .where(RentalAccessory.inventory_item_id == item_id, active)
    )
    if db.execute(accessory_rentals).scalar_one():
        raise BadRequestError("Cannot delete inventory item with active accessory rentals")
    db.delete(item)
    db.commit()


def _first_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    message = str(first.get("msg", "Invalid value")).removeprefix("Value error, ")
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {message}" if location else message


def bulk_create_items(db: Session, rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Validate every row, insert the good ones, report the rest by index."""

    if not rows or len(rows) > BULK_MAX_ITEMS:
        raise BadRequestError(f"items must contain between 1 and {BULK_MAX_ITEMS} entries")
    errors: list[dict[str, Any]] = []
    valid: list[InventoryItemCreate] = []
    seen_serials: set[str] = set()
    for index, row in enumerate(rows):
        try:
            data = InventoryItemCreate.model_validate(row)
        except ValidationError as exc:
            errors.append({"index": index, "error": _first_error(exc)})
            continue
        if not _target_exists(db, data):
            errors.append({"index": index, "error": "Invalid product or accessory ID"})
            continue
        serial = data.serial_number
        if serial and (serial in seen_serials or _serial_taken(db, serial)):
            errors.append({"index": index, "error": "Inventory item with this serial number already exists"})
            continue
        if serial:
            seen_serials.add(serial)
        valid.append(data)

    if not valid:
        db.rollback()
        raise BadRequestError("All items failed validation", details=errors)

    items = [InventoryItem(**data.model_dump()) for data in valid]
    db.add_all(items)
    db.commit()
    for item in items:
        db.refresh(item)
    logger.info(
        "inventory.bulk_created",
        extra={"extra_data": {"created_count": len(items), "error_count": len(errors)}},
    )
    return {"created_count": len(items), "error_count": len(errors), "items": items, "errors": errors}


# ---------- Summary ----------


def _status_counts(db: Session, column) -> dict[str, dict[str, Any]]:
    stmt = (
        select(column, InventoryItem.status, InventoryItem.color, func.count(InventoryItem.id))
        .where(column.is_not(None))
        .group_by(column, InventoryItem.status, InventoryItem.color)
    )
    summary: dict[str, dict[str, Any]] = defaultdict(
        lambda: {"total_count": 0, "available_count": 0, "rented_count": 0, "maintenance_count": 0, "colors": set()}
    )
    for owner_id, status, color, count in db.execute(stmt).all():
        entry = summary[owner_id]
        entry["total_count"] += count
        if status in ("available", "rented", "maintenance"):
            entry[f"{status}_count"] += count
        if color:
            entry["colors"].add(color)
    return summary


def _summary_row(counts: dict[str, Any] | None) -> dict[str, Any]:
    counts = counts or {"total_count": 0, "available_count": 0, "rented_count": 0, "maintenance_count": 0, "colors": set()}
    return {**counts, "colors": sorted(counts["colors"])}


def inventory_summary(db: Session) -> dict[str, list[dict[str, Any]]]:
    product_counts = _status_counts(db, InventoryItem.product_template_id)
    accessory_counts = _status_counts(db, InventoryItem.accessory_id)

    products_stmt = (
        select(ProductTemplate)
        .where(ProductTemplate.is_active.is_(True))
        .order_by(ProductTemplate.display_order, ProductTemplate.name)
    )
    products = [
        {
            "product_template_id": product.id,
            "product_name": product.name,
            "category_name": product.category_name,
            **_summary_row(product_counts.get(product.id)),
        }
        for product in db.execute(products_stmt).unique().scalars()
    ]
    products.sort(key=lambda row: (row["category_name"] or "", row["product_name"]))

    accessories_stmt = (
        select(Accessory).where(Accessory.is_active.is_(True)).order_by(Accessory.display_order, Accessory.name)
    )
    accessories = [
        {
            "accessory_id": accessory.id,
            "accessory_name": accessory.name,
            **_summary_row(accessory_counts.get(accessory.id)),
        }
        for accessory in db.execute(accessories_stmt).scalars()
    ]
    return {"products": products, "accessories": accessories}
