from datetime import date, timedelta

import pytest

from rentalhub.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from rentalhub.crud import rentals as crud
from rentalhub.crud.equipment import check_availability
from rentalhub.schemas.rental import (
    AccessorySelection,
    AddAccessoryRequest,
    AssignInventoryRequest,
    EnhancedRentalCreate,
    RentalCreate,
)

START = date(2025, 9, 1)
END = date(2025, 9, 10)


# ---------- Equipment rentals ----------


def test_equipment_rental_total_is_daily_rate_times_days(db_session, make_user, make_equipment):
    user = make_user()
    camera = make_equipment(daily_rate=20.0)

    rental = crud.create_rental(
        db_session, RentalCreate(equipment_id=camera.id, start_date=START, end_date=END), user.id, False
    )

    assert rental.status == "pending"
    assert rental.user_id == user.id
    assert rental.total_amount == 200.0


def test_unavailable_equipment_conflicts(db_session, make_user, make_equipment):
    camera = make_equipment()
    crud.create_rental(
        db_session, RentalCreate(equipment_id=camera.id, start_date=START, end_date=END), make_user().id, False
    )

    with pytest.raises(ConflictError, match="Equipment is not available for the selected dates"):
        crud.create_rental(
            db_session,
            RentalCreate(equipment_id=camera.id, start_date=END, end_date=END + timedelta(days=2)),
            make_user().id,
            False,
        )


@pytest.mark.parametrize(
    "status, message",
    [
        ("retired", "Equipment is retired and not available for rent"),
        ("maintenance", "Equipment is under maintenance and not available for rent"),
    ],
)
def test_equipment_out_of_service(db_session, make_user, make_equipment, status, message):
    camera = make_equipment(status=status)

    with pytest.raises(BadRequestError, match=message):
        crud.create_rental(
            db_session, RentalCreate(equipment_id=camera.id, start_date=START, end_date=END), make_user().id, False
        )
    assert check_availability(db_session, camera.id, START, END) == {
        "available": False,
        "reason": f"Equipment is currently {status}",
    }


def test_equipment_availability_lists_conflicts(db_session, make_user, make_equipment):
    camera = make_equipment()
    crud.create_rental(
        db_session, RentalCreate(equipment_id=camera.id, start_date=START, end_date=END), make_user().id, False
    )

    result = check_availability(db_session, camera.id, END, END + timedelta(days=3))

    assert result["available"] is False
    assert result["conflicting_rentals"] == [{"start_date": START, "end_date": END}]
    assert check_availability(db_session, camera.id, END + timedelta(days=1), END + timedelta(days=3)) == {
        "available": True
    }


def test_cancel_twice_is_rejected(db_session, make_user, make_equipment):
    user = make_user()
    camera = make_equipment()
    rental = crud.create_rental(
        db_session, RentalCreate(equipment_id=camera.id, start_date=START, end_date=END), user.id, False
    )

    cancelled = crud.cancel_rental(db_session, rental.id, "Plans changed", user.id, False)
    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_reason == "Plans changed"

    with pytest.raises(BadRequestError, match="Cannot cancel a rental with status 'cancelled'"):
        crud.cancel_rental(db_session, rental.id, None, user.id, False)


def test_cancelled_rental_frees_the_dates(db_session, make_user, make_equipment):
    user = make_user()
    camera = make_equipment()
    rental = crud.create_rental(
        db_session, RentalCreate(equipment_id=camera.id, start_date=START, end_date=END), user.id, False
    )
    crud.cancel_rental(db_session, rental.id, None, user.id, False)

    again = crud.create_rental(
        db_session, RentalCreate(equipment_id=camera.id, start_date=START, end_date=END), user.id, False
    )
    assert again.status == "pending"


def test_only_owner_or_admin_can_touch_a_rental(db_session, make_user, make_equipment):
    owner, stranger, admin = make_user(), make_user(), make_user("admin")
    rental = crud.create_rental(
        db_session,
        RentalCreate(equipment_id=make_equipment().id, start_date=START, end_date=END),
        owner.id,
        False,
    )

    with pytest.raises(ForbiddenError, match="You can only view your own rentals"):
        crud.get_rental_for(db_session, rental.id, stranger.id, False)
    with pytest.raises(ForbiddenError, match="You can only cancel your own rentals"):
        crud.cancel_rental(db_session, rental.id, None, stranger.id, False)
    assert crud.get_rental_for(db_session, rental.id, admin.id, True).id == rental.id


def test_status_changes_are_admin_only(db_session, make_user, make_equipment):
    owner = make_user()
    rental = crud.create_rental(
        db_session,
        RentalCreate(equipment_id=make_equipment().id, start_date=START, end_date=END),
        owner.id,
        False,
    )

    with pytest.raises(ForbiddenError, match="Only admins can update rental status"):
        crud.update_rental(db_session, rental.id, {"status": "confirmed"}, owner.id, False)
    updated = crud.update_rental(db_session, rental.id, {"notes": "Bring the charger"}, owner.id, False)
    assert updated.notes == "Bring the charger"


def test_lifecycle_flips_equipment_status(db_session, make_user, make_equipment):
    camera = make_equipment()
    rental = crud.create_rental(
        db_session, RentalCreate(equipment_id=camera.id, start_date=START, end_date=END), make_user().id, False
    )

    with pytest.raises(BadRequestError):
        crud.pickup_rental(db_session, rental.id)

    crud.confirm_rental(db_session, rental.id)
    picked = crud.pickup_rental(db_session, rental.id)
    assert picked.status == "active"
    assert picked.pickup_date is not None
    assert camera.status == "rented"

    returned = crud.return_rental(db_session, rental.id)
    assert returned.status == "completed"
    assert camera.status == "available"


# ---------- Product rentals ----------


def _enhanced(product, accessories=(), **overrides):
    data = {
        "product_template_id": product.id,
        "selected_color": "Silver",
        "pricing_period": "weekly",
        "start_date": START,
        "end_date": END,
        "accessories": [AccessorySelection(**a) for a in accessories],
    }
    data.update(overrides)
    return EnhancedRentalCreate(**data)


def test_enhanced_rental_reserves_units_and_prices(db_session, catalog, make_item, make_user):
    product, accessory = catalog["product"], catalog["accessory"]
    laptop = make_item(product=product)
    monitor = make_item(accessory=accessory, color="Black")
    user = make_user(is_student=True)

    rental, pricing = crud.create_enhanced_rental(
        db_session,
        _enhanced(product, [{"accessory_id": accessory.id, "selected_color": "Black"}]),
        user.id,
        False,
    )

    assert rental.inventory_item_id == laptop.id
    assert rental.student_discount_applied is True
    assert pricing["subtotal"] == 120.0
    assert pricing["student_discount"] == 18.0
    assert rental.total_amount == rental.final_total == 102.0
    (rental_accessory,) = rental.accessories
    assert rental_accessory.inventory_item_id == monitor.id
    assert rental_accessory.weekly_rate == 10.0


def test_enhanced_rental_rejects_unknown_color(db_session, catalog, make_item, make_user):
    make_item(product=catalog["product"])

    with pytest.raises(BadRequestError, match="Selected color is not available for this product"):
        crud.create_enhanced_rental(
            db_session, _enhanced(catalog["product"], selected_color="Gold"), make_user().id, False
        )


def test_enhanced_rental_without_stock_conflicts(db_session, catalog, make_item, make_user):
    product = catalog["product"]
    make_item(product=product)
    crud.create_enhanced_rental(db_session, _enhanced(product), make_user().id, False)

    with pytest.raises(ConflictError, match="No inventory available for the selected product and color"):
        crud.create_enhanced_rental(db_session, _enhanced(product), make_user().id, False)


def test_enhanced_rental_for_inactive_product(db_session, catalog, make_user):
    product = catalog["product"]
    product.is_active = False
    db_session.commit()

    with pytest.raises(NotFoundError, match="Product not found"):
        crud.create_enhanced_rental(db_session, _enhanced(product), make_user().id, False)


def test_only_admins_book_for_someone_else(db_session, catalog, make_item, make_user):
    product = catalog["product"]
    make_item(product=product)
    make_item(product=product)
    user, other, admin = make_user(), make_user(), make_user("admin")

    mine, _ = crud.create_enhanced_rental(db_session, _enhanced(product, user_id=other.id), user.id, False)
    theirs, _ = crud.create_enhanced_rental(db_session, _enhanced(product, user_id=other.id), admin.id, True)

    assert mine.user_id == user.id
    assert theirs.user_id == other.id


def test_add_accessory_updates_totals(db_session, catalog, make_item, make_user):
    product, accessory = catalog["product"], catalog["accessory"]
    make_item(product=product)
    rental, _ = crud.create_enhanced_rental(db_session, _enhanced(product), make_user().id, False)
    before = rental.total_amount

    crud.add_rental_accessory(db_session, rental.id, AddAccessoryRequest(accessory_id=accessory.id))
    db_session.refresh(rental)

    assert rental.total_amount == before + 20.0
    assert rental.final_total == before + 20.0
    with pytest.raises(ConflictError, match="Accessory already added to this rental"):
        crud.add_rental_accessory(db_session, rental.id, AddAccessoryRequest(accessory_id=accessory.id))


def test_assign_inventory_checks_product_match(db_session, catalog, make_item, make_user):
    product, accessory = catalog["product"], catalog["accessory"]
    make_item(product=product)
    replacement = make_item(product=product, color="Black")
    wrong = make_item(accessory=accessory, color="Black")
    rental, _ = crud.create_enhanced_rental(db_session, _enhanced(product), make_user().id, False)

    with pytest.raises(BadRequestError, match="Inventory item does not match rental product"):
        crud.assign_inventory(db_session, rental.id, AssignInventoryRequest(inventory_item_id=wrong.id))

    updated = crud.assign_inventory(db_session, rental.id, AssignInventoryRequest(inventory_item_id=replacement.id))
    assert updated.inventory_item_id == replacement.id


def _overlapping_rentals(db_session, product, make_item, make_user):
    make_item(product=product)
    make_item(product=product)
    first, _ = crud.create_enhanced_rental(db_session, _enhanced(product), make_user().id, False)
    later = _enhanced(product, start_date=START + timedelta(days=4), end_date=END + timedelta(days=2))
    second, _ = crud.create_enhanced_rental(db_session, later, make_user().id, False)
    return first, second


def test_add_accessory_refuses_a_held_unit(db_session, catalog, make_item, make_user):
    product, accessory = catalog["product"], catalog["accessory"]
    monitor = make_item(accessory=accessory, color="Black")
    first, second = _overlapping_rentals(db_session, product, make_item, make_user)

    held = crud.add_rental_accessory(
        db_session, first.id, AddAccessoryRequest(accessory_id=accessory.id, inventory_item_id=monitor.id)
    )
    assert held.inventory_item_id == monitor.id

    with pytest.raises(BadRequestError, match="Inventory item not available"):
        crud.add_rental_accessory(
            db_session, second.id, AddAccessoryRequest(accessory_id=accessory.id, inventory_item_id=monitor.id)
        )
    laptop = make_item(product=product, color="Black")
    with pytest.raises(BadRequestError, match="Inventory item does not match rental accessory"):
        crud.add_rental_accessory(
            db_session, second.id, AddAccessoryRequest(accessory_id=accessory.id, inventory_item_id=laptop.id)
        )


def test_assign_inventory_refuses_a_held_accessory_unit(db_session, catalog, make_item, make_user):
    product, accessory = catalog["product"], catalog["accessory"]
    monitor = make_item(accessory=accessory, color="Black")
    broken = make_item(accessory=accessory, color="Black", status="maintenance")
    spare = make_item(accessory=accessory, color="Black")
    first, second = _overlapping_rentals(db_session, product, make_item, make_user)
    crud.add_rental_accessory(
        db_session, first.id, AddAccessoryRequest(accessory_id=accessory.id, inventory_item_id=monitor.id)
    )
    pending = crud.add_rental_accessory(db_session, second.id, AddAccessoryRequest(accessory_id=accessory.id))
    assert pending.inventory_item_id is None

    for unit in (monitor, broken):
        assignment = {"rental_accessory_id": pending.id, "inventory_item_id": unit.id}
        with pytest.raises(BadRequestError, match="Inventory item not available"):
            crud.assign_inventory(
                db_session, second.id, AssignInventoryRequest(accessory_inventory_assignments=[assignment])
            )

    assignment = {"rental_accessory_id": pending.id, "inventory_item_id": spare.id}
    crud.assign_inventory(db_session, second.id, AssignInventoryRequest(accessory_inventory_assignments=[assignment]))
    db_session.refresh(pending)
    assert pending.inventory_item_id == spare.id


def test_pickup_and_return_move_inventory(db_session, catalog, make_item, make_user):
    product = catalog["product"]
    laptop = make_item(product=product)
    rental, _ = crud.create_enhanced_rental(db_session, _enhanced(product), make_user().id, False)

    crud.confirm_rental(db_session, rental.id)
    crud.pickup_rental(db_session, rental.id)
    db_session.refresh(laptop)
    assert laptop.status == "rented"

    crud.return_rental(db_session, rental.id)
    db_session.refresh(laptop)
    assert laptop.status == "available"


def test_release_deposit_only_once_after_completion(db_session, catalog, make_item, make_user):
    product, accessory = catalog["product"], catalog["accessory"]
    make_item(product=product)
    rental, _ = crud.create_enhanced_rental(
        db_session, _enhanced(product, [{"accessory_id": accessory.id}]), make_user().id, False
    )

    with pytest.raises(BadRequestError, match="Can only release deposit for completed rentals"):
        crud.release_deposit(db_session, rental.id, None)

    crud.confirm_rental(db_session, rental.id)
    crud.pickup_rental(db_session, rental.id)
    crud.return_rental(db_session, rental.id)
    released = crud.release_deposit(db_session, rental.id, "All good")

    assert released.deposit_status == "released"
    assert released.deposit_notes == "All good"
    assert [ra.deposit_status for ra in released.accessories] == ["released"]
    with pytest.raises(BadRequestError, match="Deposit has already been processed"):
        crud.release_deposit(db_session, rental.id, None)
