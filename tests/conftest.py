"""
Shared fixtures: an in-memory SQLite database per test, seeded catalog and
users, a recording email outbox and an HTTP client bound to the app.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-attireburg-suite-0123456789")
os.environ.setdefault("BASE_URL", "https://attireburg.test")
os.environ.setdefault("SMTP_USER", "")
os.environ.setdefault("SMTP_PASSWORD", "")

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from attireburg import models  # noqa: F401
from attireburg.core.security import create_access_token
from attireburg.database import Base, get_db
from attireburg.main import app
from attireburg.models.product import Product, ProductVariant
from attireburg.models.user import User
from attireburg.services.email_service import EmailService


@dataclass
class SentEmail:
    to: str
    subject: str
    html: str
    text: Optional[str]


class Outbox:
    """Records every email instead of talking to SMTP."""

    def __init__(self):
        self.messages: List[SentEmail] = []
        self.fail = False

    def to(self, address: str) -> List[SentEmail]:
        return [m for m in self.messages if m.to == address]


@pytest.fixture
def outbox(monkeypatch) -> Outbox:
    box = Outbox()

    def fake_send_email(self, to_email, subject, html_content, text_content=None):
        if box.fail:
            return False
        box.messages.append(SentEmail(to_email, subject, html_content, text_content))
        return True

    monkeypatch.setattr(EmailService, "send_email", fake_send_email)
    return box


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory, outbox):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ==================== Seed data ====================

@pytest.fixture
def make_user(db):
    async def _make(email: str = "kunde@example.com", name: str = "Max Mustermann", is_admin: bool = False) -> User:
        user = User(email=email, name=name, is_admin=is_admin)
        db.add(user)
        await db.commit()
        return user
    return _make


@pytest.fixture
def make_product(db):
    async def _make(name: str = "Wollpullover Classic", price: str = "49.99", stock: int = 0) -> Product:
        product = Product(name=name, name_en="Classic Wool Sweater", price=Decimal(price), stock=stock)
        db.add(product)
        await db.commit()
        return product
    return _make


@pytest.fixture
def make_variant(db):
    async def _make(product: Product, sku: str, size: str = "M", color: str = "Navy", stock: int = 0) -> ProductVariant:
        variant = ProductVariant(product_id=product.id, sku=sku, size=size, color=color, stock=stock)
        db.add(variant)
        await db.commit()
        return variant
    return _make


@pytest.fixture
async def customer(make_user) -> User:
    return await make_user()


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(email="admin@attireburg.de", name="Admin", is_admin=True)


@pytest.fixture
async def product(make_product) -> Product:
    return await make_product()


@pytest.fixture
async def variant(product, make_variant) -> ProductVariant:
    """Out-of-stock size M."""
    return await make_variant(product, "PULLI-M-NAVY")


@pytest.fixture
async def other_variant(product, make_variant) -> ProductVariant:
    """Size L with stock."""
    return await make_variant(product, "PULLI-L-NAVY", size="L", stock=5)


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(admin_user.id)}"}


@pytest.fixture
def customer_headers(customer) -> dict:
    return {"Authorization": f"Bearer {create_access_token(customer.id)}"}


@pytest.fixture
def fresh(session_factory):
    """Load a row in a new session, bypassing any cached state."""
    async def _load(model, id_):
        async with session_factory() as session:
            return await session.get(model, id_)
    return _load
