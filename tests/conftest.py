import os
from decimal import Decimal
from pathlib import Path

import pytest

# The engine is created at import time, so point it at SQLite before anything imports it
os.environ.setdefault("CHECKOUT_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-bytes-for-hs256")
os.environ.setdefault("ENVIRONMENT", "test")

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from checkout_service.cart import CartStore, MemoryCartStorage  # noqa: E402
from checkout_service.checkout import CheckoutOrchestrator  # noqa: E402
from checkout_service.db import models  # noqa: E402
from checkout_service.db.init_db import init_db  # noqa: E402
from checkout_service.db.schemas import Actor, Profile, Role  # noqa: E402
from checkout_service.fake_adapter import FakeOrderStore, FakeProductStore, FakeProfileService  # noqa: E402
from factories import SELLER_ID, VENDOR_A, VENDOR_B, make_product  # noqa: E402


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))
        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def products():
    return FakeProductStore([
        make_product("p1", 50, VENDOR_A, name="Onions"),
        make_product("p2", 30, VENDOR_B, name="Tomatoes"),
        make_product("p3", "12.35", VENDOR_A, name="Green chillies"),
        make_product("p4", "0.10", VENDOR_B, name="Coriander"),
    ])


@pytest.fixture
def orders():
    return FakeOrderStore()


@pytest.fixture
def profiles():
    return FakeProfileService([
        Profile(user_id=SELLER_ID, role=Role.seller, address="Old Address 1"),
        Profile(user_id=VENDOR_A, role=Role.vendor),
        Profile(user_id=VENDOR_B, role=Role.vendor),
    ])


@pytest.fixture
def storage():
    return MemoryCartStorage()


@pytest.fixture
def cart(storage):
    return CartStore.load(storage)


@pytest.fixture
def orchestrator(products, orders, profiles):
    return CheckoutOrchestrator(products, orders, profiles)


@pytest.fixture
def seller():
    return Actor(user_id=SELLER_ID, role=Role.seller)


@pytest.fixture
def vendor_a():
    return Actor(user_id=VENDOR_A, role=Role.vendor)


@pytest.fixture
def vendor_b():
    return Actor(user_id=VENDOR_B, role=Role.vendor)


# Database fixtures for the SQLAlchemy adapters


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(db):
    db.add_all([
        models.Profile(user_id=SELLER_ID, role=Role.seller, address="Old Address 1"),
        models.Profile(user_id=VENDOR_A, role=Role.vendor),
        models.Profile(user_id=VENDOR_B, role=Role.vendor),
    ])
    await db.flush()
    db.add_all([
        models.Product(id="p1", name="Onions", price=Decimal("50"), stock_quantity=10, unit="kg", vendor_id=VENDOR_A),
        models.Product(id="p2", name="Tomatoes", price=Decimal("30"), stock_quantity=10, unit="kg", vendor_id=VENDOR_B),
        models.Product(id="p3", name="Chillies", price=Decimal("12.35"), stock_quantity=10, unit="kg", vendor_id=VENDOR_A),
    ])
    await db.commit()
    return db
