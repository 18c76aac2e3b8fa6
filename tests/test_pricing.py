from datetime import date, timedelta

import pytest

from rentalhub.core.errors import BadRequestError, NotFoundError
from rentalhub.models.accessory import Accessory
from rentalhub.services.pricing import billing_periods, calculate_rental_pricing, rental_duration_days

START = date(2025, 3, 1)


def test_duration_is_inclusive():
    assert rental_duration_days(START, START) == 1
    assert rental_duration_days(START, START + timedelta(days=7)) == 8


@pytest.mark.parametrize(
    "days, period, expected",
    [(1, "weekly", 1), (7, "weekly", 1), (8, "weekly", 2), (30, "monthly", 1), (31, "monthly", 2)],
)
def test_billing_periods_round_up(days, period, expected):
    assert billing_periods(days, period) == expected


def test_unknown_period_rejected():
    with pytest.raises(BadRequestError):
        billing_periods(3, "daily")


def test_weekly_quote_with_accessory(db_session, catalog):
    product, accessory = catalog["product"], catalog["accessory"]

    pricing = calculate_rental_pricing(
        db_session, product.id, "weekly", START, START + timedelta(days=9), [accessory.id]
    )

    assert pricing["duration"] == 10
    assert pricing["periods"] == 2
    assert pricing["product_rate"] == 50.0
    assert pricing["accessory_rates"] == [{"id": accessory.id, "rate": 10.0, "deposit": 25.0}]
    assert pricing["subtotal"] == 120.0
    assert pricing["total_deposit"] == 225.0
    assert pricing["student_discount"] == 0
    assert pricing["new_equipment_fee"] == 0
    assert pricing["final_total"] == 120.0
    assert pricing["final_deposit"] == 225.0


def test_student_discount_and_new_equipment_fee(db_session, catalog):
    product = catalog["product"]

    pricing = calculate_rental_pricing(
        db_session,
        product.id,
        "monthly",
        START,
        START + timedelta(days=29),
        apply_student_discount=True,
        is_new_equipment=True,
    )

    # Seeded modifiers: 15% student discount, 10% new-equipment fee, both on the rental only.
    assert pricing["subtotal"] == 150.0
    assert pricing["student_discount"] == 22.5
    assert pricing["new_equipment_fee"] == 15.0
    assert pricing["final_total"] == 142.5
    assert pricing["final_deposit"] == 170.0


def test_inactive_and_duplicate_accessories_ignored(db_session, catalog):
    product, accessory = catalog["product"], catalog["accessory"]
    retired = Accessory(name="Old Dock", weekly_rate=99.0, monthly_rate=99.0, is_active=False)
    db_session.add(retired)
    db_session.commit()

    pricing = calculate_rental_pricing(
        db_session, product.id, "weekly", START, START, [accessory.id, accessory.id, retired.id]
    )

    assert [row["id"] for row in pricing["accessory_rates"]] == [accessory.id]
    assert pricing["subtotal"] == 60.0


def test_pricing_is_monotonic_in_duration(db_session, catalog):
    product, accessory = catalog["product"], catalog["accessory"]
    for period in ("weekly", "monthly"):
        totals = [
            calculate_rental_pricing(
                db_session, product.id, period, START, START + timedelta(days=offset), [accessory.id]
            )["final_total"]
            for offset in range(0, 70)
        ]
        assert totals == sorted(totals)


def test_pricing_is_additive_over_accessories(db_session, catalog):
    product, accessory = catalog["product"], catalog["accessory"]
    extra = Accessory(name="Keyboard", weekly_rate=4.0, monthly_rate=12.0, deposit_amount=5.0)
    db_session.add(extra)
    db_session.commit()
    end = START + timedelta(days=20)

    base = calculate_rental_pricing(db_session, product.id, "weekly", START, end)
    one = calculate_rental_pricing(db_session, product.id, "weekly", START, end, [accessory.id])
    both = calculate_rental_pricing(db_session, product.id, "weekly", START, end, [accessory.id, extra.id])

    periods = base["periods"]
    assert one["subtotal"] - base["subtotal"] == pytest.approx(accessory.weekly_rate * periods)
    assert both["subtotal"] - one["subtotal"] == pytest.approx(extra.weekly_rate * periods)
    assert both["total_deposit"] == pytest.approx(base["total_deposit"] + 25.0 + 5.0)


def test_unknown_product(db_session):
    with pytest.raises(NotFoundError, match="Product not found"):
        calculate_rental_pricing(db_session, "missing", "weekly", START, START)


def test_end_before_start(db_session, catalog):
    with pytest.raises(BadRequestError):
        calculate_rental_pricing(db_session, catalog["product"].id, "weekly", START, START - timedelta(days=1))
