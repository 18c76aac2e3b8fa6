import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from rentalhub import create_app  # noqa: E402
from rentalhub.core.passwords import hash_password  # noqa: E402
from rentalhub.core.security import issue_token_pair  # noqa: E402
from rentalhub.db.migrate import seed_pricing_modifiers  # noqa: E402
from rentalhub.db.session import Base, get_db  # noqa: E402
from rentalhub.models.accessory import Accessory, AccessoryColor  # noqa: E402
from rentalhub.models.catalog import ProductCategory, ProductColor, ProductTemplate  # noqa: E402
from rentalhub.models.equipment import Equipment  # noqa: E402
from rentalhub.models.inventory import InventoryItem  # noqa: E402
from rentalhub.models.user import User  # noqa: E402


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    seed_pricing_modifiers(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(engine):
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session):
    app = create_app(init_db=False)

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client


# ---------- Factories ----------


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(role="user", *, is_student=False, password="password123", email=None, **fields):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=fields.pop("name", f"User {counter['n']}"),
            password_hash=hash_password(password) if password else None,
            role=role,
            is_student=is_student,
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {issue_token_pair(user).access_token}"}

    return _headers


@pytest.fixture()
def catalog(db_session):
    """One category with a laptop (Silver/Black) and a monitor accessory."""

    category = ProductCategory(name="Laptops", slug="laptops")
    db_session.add(category)
    db_session.flush()
    product = ProductTemplate(
        category_id=category.id,
        name="Laptop Pro 14",
        weekly_rate=50.0,
        monthly_rate=150.0,
        deposit_amount=200.0,
        screen_size="14",
    )
    product.colors = [ProductColor(color_name="Silver"), ProductColor(color_name="Black", display_order=1)]
    accessory = Accessory(name="USB-C Monitor", weekly_rate=10.0, monthly_rate=30.0, deposit_amount=25.0)
    accessory.colors = [AccessoryColor(color_name="Black")]
    db_session.add_all([product, accessory])
    db_session.commit()
    return {"category": category, "product": product, "accessory": accessory}


@pytest.fixture()
def make_item(db_session):
    def _make(*, product=None, accessory=None, color="Silver", condition="excellent", status="available", serial=None):
        item = InventoryItem(
            product_template_id=product.id if product is not None else None,
            accessory_id=accessory.id if accessory is not None else None,
            color=color,
            condition=condition,
            status=status,
            serial_number=serial,
        )
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item

    return _make


@pytest.fixture()
def make_equipment(db_session):
    def _make(**fields):
        data = {"name": "Camera", "category": "cameras", "daily_rate": 20.0}
        data.update(fields)
        equipment = Equipment(**data)
        db_session.add(equipment)
        db_session.commit()
        db_session.refresh(equipment)
        return equipment

    return _make
