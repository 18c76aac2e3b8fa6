from datetime import date

import pytest

from rentalhub.core.errors import BadRequestError, ConflictError, NotFoundError
from rentalhub.crud import accessories as accessory_crud
from rentalhub.crud import catalog as crud
from rentalhub.models.accessory import Accessory
from rentalhub.models.rental import Rental, RentalAccessory


@pytest.mark.parametrize(
    "name, slug",
    [("Gaming Laptops!", "gaming-laptops"), ("  Mac   & PC ", "mac-pc"), ("USB-C -- Docks", "usb-c-docks")],
)
def test_slugify(name, slug):
    assert crud.slugify(name) == slug


def test_create_category_derives_slug_and_rejects_duplicates(db_session):
    category = crud.create_category(db_session, {"name": "Gaming Laptops"})
    assert category.slug == "gaming-laptops"

    with pytest.raises(ConflictError, match="Category with this slug already exists"):
        crud.create_category(db_session, {"name": "Gaming  Laptops"})


def test_category_listing_counts_products(db_session, catalog):
    crud.create_category(db_session, {"name": "Tablets", "display_order": 5})

    rows, total = crud.list_categories(db_session)

    assert total == 2
    assert [(category.name, count) for category, count in rows] == [("Laptops", 1), ("Tablets", 0)]


def test_delete_category_with_products_refused(db_session, catalog):
    with pytest.raises(BadRequestError, match="Cannot delete category with existing products"):
        crud.delete_category(db_session, catalog["category"].id)


def test_inactive_category_hidden_by_slug(db_session, catalog):
    catalog["category"].is_active = False
    db_session.commit()

    with pytest.raises(NotFoundError):
        crud.get_active_category_by_slug(db_session, "laptops")


def test_product_search_and_active_filter(db_session, catalog):
    hidden = crud.create_product(
        db_session,
        {"category_id": catalog["category"].id, "name": "Laptop Air", "weekly_rate": 40.0, "monthly_rate": 120.0},
    )
    hidden.is_active = False
    db_session.commit()

    products, total = crud.list_products(db_session, search="laptop")
    assert total == 1
    assert products[0].name == "Laptop Pro 14"

    _, everything = crud.list_products(db_session, is_active=None)
    assert everything == 2
    with pytest.raises(NotFoundError):
        crud.get_product(db_session, hidden.id, active_only=True)


def test_create_product_with_colors(db_session, catalog):
    product = crud.create_product(
        db_session,
        {
            "category_id": catalog["category"].id,
            "name": "Laptop Max",
            "weekly_rate": 80.0,
            "monthly_rate": 240.0,
            "colors": [{"color_name": "Gold", "hex_code": "#FFD700"}],
        },
    )

    assert [color.color_name for color in product.colors] == ["Gold"]


def test_create_product_unknown_category(db_session):
    with pytest.raises(BadRequestError, match="Invalid category ID"):
        crud.create_product(
            db_session, {"category_id": "missing", "name": "Ghost", "weekly_rate": 1.0, "monthly_rate": 1.0}
        )


def test_delete_product_with_active_rental_refused(db_session, catalog, make_user):
    product = catalog["product"]
    db_session.add(
        Rental(
            user_id=make_user().id,
            product_template_id=product.id,
            start_date=date(2025, 1, 1),
            end_date=date(2025, 1, 7),
        )
    )
    db_session.commit()

    with pytest.raises(BadRequestError, match="Cannot delete product with active rentals"):
        crud.delete_product(db_session, product.id)


def test_product_color_belongs_to_product(db_session, catalog):
    product = catalog["product"]
    color = crud.add_product_color(db_session, product.id, {"color_name": "Blue"})

    with pytest.raises(NotFoundError, match="Color not found"):
        crud.delete_product_color(db_session, "another-product", color.id)
    crud.delete_product_color(db_session, product.id, color.id)


# ---------- Accessory links ----------


def _accessory(db, name, **fields):
    accessory = Accessory(name=name, weekly_rate=5.0, monthly_rate=15.0, **fields)
    db.add(accessory)
    db.commit()
    return accessory


def test_compatible_accessories_by_product_and_category(db_session, catalog):
    product, category = catalog["product"], catalog["category"]
    direct = catalog["accessory"]
    sleeve_14 = _accessory(db_session, "Sleeve 14")
    sleeve_16 = _accessory(db_session, "Sleeve 16")
    mouse = _accessory(db_session, "Mouse")
    retired = _accessory(db_session, "Old Mouse", is_active=False)

    accessory_crud.create_link(db_session, {"accessory_id": direct.id, "product_template_id": product.id})
    accessory_crud.create_link(
        db_session, {"accessory_id": sleeve_14.id, "category_id": category.id, "screen_size_filter": "14"}
    )
    accessory_crud.create_link(
        db_session, {"accessory_id": sleeve_16.id, "category_id": category.id, "screen_size_filter": "16"}
    )
    accessory_crud.create_link(db_session, {"accessory_id": mouse.id, "category_id": category.id})
    accessory_crud.create_link(db_session, {"accessory_id": retired.id, "category_id": category.id})

    names = [accessory.name for accessory in crud.compatible_accessories(db_session, product)]

    assert sorted(names) == ["Mouse", "Sleeve 14", "USB-C Monitor"]


def test_link_requires_exactly_one_target(db_session, catalog):
    accessory = catalog["accessory"]

    with pytest.raises(BadRequestError, match="exactly one"):
        accessory_crud.create_link(db_session, {"accessory_id": accessory.id})
    with pytest.raises(BadRequestError, match="exactly one"):
        accessory_crud.create_link(
            db_session,
            {
                "accessory_id": accessory.id,
                "product_template_id": catalog["product"].id,
                "category_id": catalog["category"].id,
            },
        )
    with pytest.raises(BadRequestError, match="Invalid product or category ID"):
        accessory_crud.create_link(db_session, {"accessory_id": accessory.id, "category_id": "missing"})


def test_duplicate_link_conflicts(db_session, catalog):
    payload = {"accessory_id": catalog["accessory"].id, "category_id": catalog["category"].id}
    link = accessory_crud.create_link(db_session, payload)

    with pytest.raises(ConflictError, match="This accessory link already exists"):
        accessory_crud.create_link(db_session, payload)

    assert [row.id for row in accessory_crud.list_links(db_session, accessory_id=catalog["accessory"].id)] == [
        link.id
    ]
    accessory_crud.delete_link(db_session, link.id)
    with pytest.raises(NotFoundError, match="Link not found"):
        accessory_crud.delete_link(db_session, link.id)


def test_delete_accessory_in_active_rental_refused(db_session, catalog, make_user):
    rental = Rental(
        user_id=make_user().id,
        product_template_id=catalog["product"].id,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 7),
        status="confirmed",
    )
    db_session.add(rental)
    db_session.flush()
    db_session.add(RentalAccessory(rental_id=rental.id, accessory_id=catalog["accessory"].id))
    db_session.commit()

    with pytest.raises(BadRequestError, match="Cannot delete accessory with active rentals"):
        accessory_crud.delete_accessory(db_session, catalog["accessory"].id)
