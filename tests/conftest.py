"""Shared fixtures: a throwaway SQLite database, seeded masters, Gemini stubs."""

import os
import tempfile
from decimal import Decimal

_DB_DIR = tempfile.mkdtemp(prefix="padoca-tests-")

os.environ["APP_ENV"] = "development"
os.environ["DB_TYPE"] = "sqlite"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"
os.environ["JWT_ACCESS_SECRET_KEY"] = "test-secret"
os.environ["GEMINI_API_KEY"] = "test-key"
os.environ["GEMINI_BASE_URL"] = "https://gemini.test/v1beta"

import httpx
import pytest
from httpx import ASGITransport

from app.core.db import AsyncSessionLocal, Base, engine
from app.core.security import hash_password
from app.core.services import build_services
from app.models.masters.product_models import Product
from app.models.masters.supplier_models import Supplier
from app.models.users.user_models import User
from app.services.ai.gemini_client import GeminiClient
from app.utils.get_user import get_current_user

GEMINI_BASE_URL = os.environ["GEMINI_BASE_URL"]
GEMINI_TEXT_URL = f"{GEMINI_BASE_URL}/models/gemini-pro:generateContent"
GEMINI_VISION_URL = f"{GEMINI_BASE_URL}/models/gemini-1.5-pro:generateContent"
TEST_PASSWORD = "s3cret-pass"


def gemini_reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def user(db):
    admin = User(
        username="admin@padoca.com.br",
        full_name="Admin",
        password_hash=hash_password(TEST_PASSWORD),
        role="admin",
        is_active=True,
    )
    db.add(admin)
    await db.commit()
    return admin


@pytest.fixture
def gemini():
    return GeminiClient(api_key="test-key", base_url=GEMINI_BASE_URL)


@pytest.fixture
def offline_gemini():
    return GeminiClient(api_key="", base_url=GEMINI_BASE_URL)


@pytest.fixture
async def supplier(db, user):
    s = Supplier(
        supplier_code="SUP-MOLINO",
        name="Moinho Central",
        email="vendas@moinho.com.br",
        created_by_id=user.id,
    )
    db.add(s)
    await db.commit()
    return s


@pytest.fixture
async def products(db, user, supplier):
    flour = Product(
        name="Farinha 00",
        category="Dry goods",
        unit="kg",
        price_per_unit=Decimal("5.00"),
        current_stock=Decimal("40"),
        min_stock=Decimal("10"),
        supplier_id=supplier.id,
        created_by_id=user.id,
    )
    cheese = Product(
        name="Mozzarella",
        category="Dairy",
        unit="kg",
        price_per_unit=Decimal("2.00"),
        current_stock=Decimal("3"),
        min_stock=Decimal("8"),
        max_stock=Decimal("20"),
        supplier_id=supplier.id,
        created_by_id=user.id,
    )
    db.add_all([flour, cheese])
    await db.commit()
    return flour, cheese


@pytest.fixture
async def api(db, user):
    """ASGI client authenticated as ``user`` with AI calls offline."""
    from main import app

    services = build_services(GeminiClient(api_key="", base_url=GEMINI_BASE_URL))
    services.inventory_sync.delay = 0.01
    app.state.services = services
    app.dependency_overrides[get_current_user] = lambda: user

    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await services.inventory_sync.close()
    app.dependency_overrides.clear()
