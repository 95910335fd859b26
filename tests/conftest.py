import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dbgateway.config import get_settings
from dbgateway.infrastructure.database import init_models

# Register the sample tables on Base before init_models runs
from tests import models  # noqa: F401
from tests.models import Customer, Order, OrderLine, Product


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Each test sees settings built from its own environment."""
    monkeypatch.delenv("DELETE_POLICY", raising=False)
    monkeypatch.delenv("INCLUDE_LOADER", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def engine():
    # In-memory SQLite with StaticPool so the schema persists across connections
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_models(eng)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest.fixture
def make_session(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(make_session):
    async with make_session() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(db):
    """One customer with one order of two lines."""
    widget = Product(sku="W-1", name="Widget")
    gadget = Product(sku="G-1", name="Gadget")
    customer = Customer(name="Ada", email="ada@example.com")
    order = Order(
        reference="SO-1",
        customer=customer,
        lines=[OrderLine(product=widget, quantity=2), OrderLine(product=gadget, quantity=1)],
    )
    db.add_all([widget, gadget, customer, order])
    await db.commit()
    return {"customer": customer, "order": order, "products": [widget, gadget]}
