"""Beginner-friendly overview for this module.

WHAT: Works out what a product rental costs for a date range.
WHEN: Called by the pricing preview endpoint and again when the rental is
booked so the stored totals match what the customer saw.
WHY: Keeping the arithmetic in one pure-ish function makes it easy to test
and keeps the route handlers thin.
HOW: Count the days (inclusive), round up to whole weeks or months, multiply
the product and accessory rates, then apply the active pricing modifiers.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import BadRequestError, NotFoundError
from ..models.accessory import Accessory
from ..models.catalog import ProductTemplate
from ..models.pricing import NEW_EQUIPMENT_FEE, STUDENT_DISCOUNT, PricingModifier

DAYS_PER_PERIOD = {"weekly": 7, "monthly": 30}
STUDENT_DEPOSIT_DISCOUNT = 0.15


def rental_duration_days(start_date: date, end_date: date) -> int:
    """Inclusive day count: a rental from Monday to Monday is 8 days."""
    return (end_date - start_date).days + 1


def billing_periods(days: int, pricing_period: str) -> int:
    if pricing_period not in DAYS_PER_PERIOD:
        raise BadRequestError("pricing_period must be weekly or monthly")
    return math.ceil(days / DAYS_PER_PERIOD[pricing_period])


def modifier_amount(modifier: PricingModifier | None, subtotal: float, deposit: float) -> float:
    if modifier is None:
        return 0.0
    pct = float(modifier.percentage) / 100
    if modifier.applies_to == "all":
        return (subtotal + deposit) * pct
    if modifier.applies_to == "deposit_only":
        return deposit * pct
    return subtotal * pct


def _active_modifiers(db: Session) -> dict[str, PricingModifier]:
    stmt = select(PricingModifier).where(PricingModifier.is_active.is_(True))
    return {row.name: row for row in db.execute(stmt).scalars()}


def _money(value: float) -> float:
    return round(float(value), 2)


def calculate_rental_pricing(
    db: Session,
    product_template_id: str,
    pricing_period: str,
    start_date: date,
    end_date: date,
    accessory_ids: Iterable[str] = (),
    apply_student_discount: bool = False,
    is_new_equipment: bool = False,
) -> dict[str, Any]:
    if end_date < start_date:
        raise BadRequestError("end_date must be on or after start_date")
    product = db.get(ProductTemplate, product_template_id)
    if product is None:
        raise NotFoundError("Product not found")

    days = rental_duration_days(start_date, end_date)
    periods = billing_periods(days, pricing_period)

    product_rate = product.rate_for(pricing_period)
    product_deposit = float(product.deposit_amount or 0)
    subtotal = product_rate * periods
    total_deposit = product_deposit

    accessory_rates: list[dict[str, Any]] = []
    ids = [accessory_id for accessory_id in dict.fromkeys(accessory_ids) if accessory_id]
    if ids:
        stmt = select(Accessory).where(Accessory.id.in_(ids), Accessory.is_active.is_(True))
        by_id = {accessory.id: accessory for accessory in db.execute(stmt).scalars()}
        for accessory_id in ids:
            accessory = by_id.get(accessory_id)
            if accessory is None:
                continue
            rate = accessory.rate_for(pricing_period)
            deposit = float(accessory.deposit_amount or 0)
            subtotal += rate * periods
            total_deposit += deposit
            accessory_rates.append({"id": accessory.id, "rate": rate, "deposit": deposit})

    modifiers = _active_modifiers(db)
    student_discount = 0.0
    if apply_student_discount:
        student_discount = modifier_amount(modifiers.get(STUDENT_DISCOUNT), subtotal, total_deposit)
    new_equipment_fee = 0.0
    if is_new_equipment:
        new_equipment_fee = modifier_amount(modifiers.get(NEW_EQUIPMENT_FEE), subtotal, total_deposit)

    final_deposit = total_deposit
    if apply_student_discount:
        final_deposit = total_deposit * (1 - STUDENT_DEPOSIT_DISCOUNT)

    return {
        "product_rate": _money(product_rate),
        "product_deposit": _money(product_deposit),
        "accessory_rates": accessory_rates,
        "subtotal": _money(subtotal),
        "total_deposit": _money(total_deposit),
        "student_discount": _money(student_discount),
        "new_equipment_fee": _money(new_equipment_fee),
        "final_total": _money(subtotal - student_discount + new_equipment_fee),
        "final_deposit": _money(final_deposit),
        "duration": days,
        "periods": periods,
    }
