"""Shared pytest fixtures for the storefront API and client tests."""

from decimal import Decimal

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from butchery.db import Base, get_db
from butchery.models import DeliveryZone, Product
from butchery.server import app


@pytest.fixture
async def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    """A session for arranging rows directly."""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    """HTTP client wired to the app with get_db pointing at the test database."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test/api") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture
async def file_client(tmp_path):
    """App client on a file database, so concurrent requests each get their own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        session.add_all([
            Product(id="prod_ribeye", name="Ribeye Steak", sku="BEEF-001", price=Decimal("40.00"), category="Beef"),
            Product(id="prod_mince", name="Beef Mince", sku="BEEF-002", price=Decimal("100.00"), category="Beef"),
            DeliveryZone(
                id="zone_dubai", name="Dubai Central", emirate="Dubai", delivery_fee=Decimal("15.00"),
                minimum_order=Decimal("100.00"), estimated_minutes=45,
            ),
        ])
        await session.commit()

    async def override_get_db():
        async with maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test/api") as http:
        yield http
    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture
async def products(db):
    """A small catalog: two beef cuts, a lamb cut, and an unavailable chicken."""
    rows = [
        Product(
            id="prod_ribeye", name="Ribeye Steak", name_ar="ستيك ريب آي", sku="BEEF-001",
            price=Decimal("40.00"), category="Beef", description="Marbled ribeye",
            description_ar="ريب آي مرمري", is_premium=True,
        ),
        Product(
            id="prod_mince", name="Beef Mince", name_ar="لحم بقري مفروم", sku="BEEF-002",
            price=Decimal("100.00"), category="Beef", description="Lean mince",
        ),
        Product(
            id="prod_lamb", name="Lamb Chops", name_ar="ريش ضأن", sku="LAMB-001",
            price=Decimal("65.00"), discount=Decimal("10"), category="Lamb",
            description="Frenched chops",
        ),
        Product(
            id="prod_chicken", name="Whole Chicken", name_ar="دجاج كامل", sku="CHIC-001",
            price=Decimal("25.00"), category="Chicken", description="Free range",
            is_active=False,
        ),
    ]
    db.add_all(rows)
    await db.commit()
    return rows


@pytest.fixture
async def dubai_zone(db):
    """Active Dubai zone with express delivery."""
    zone = DeliveryZone(
        id="zone_dubai", name="Dubai Central", name_ar="دبي المركزية", emirate="Dubai",
        areas=["Downtown", "Marina"], delivery_fee=Decimal("15.00"),
        minimum_order=Decimal("100.00"), estimated_minutes=45,
        express_enabled=True, express_fee=Decimal("25.00"),
    )
    db.add(zone)
    await db.commit()
    return zone


@pytest.fixture
def checkout_payload():
    """A valid checkout body; tests adjust the items and address."""
    return {
        "user_id": "user_1",
        "customer_name": "Aisha Khan",
        "customer_email": "aisha@example.com",
        "customer_mobile": "+971 50 123 4567",
        "items": [
            {"product_id": "prod_ribeye", "quantity": 0.5},
            {"product_id": "prod_mince", "quantity": 1},
        ],
        "delivery_address": {
            "full_name": "Aisha Khan",
            "mobile": "+971501234567",
            "emirate": "Dubai",
            "area": "Marina",
            "street": "Marina Walk",
            "building": "Tower 3",
        },
        "payment_method": "cod",
    }
