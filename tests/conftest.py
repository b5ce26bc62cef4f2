"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database. API tests drive the ASGI
app directly and never touch the network; queued emails are captured instead
of being sent to the broker.
"""

import os

os.environ.setdefault("ENV_MODE", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import timedelta
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import tasks
from app.database import Base, get_db
from app.main import app
from app.models import DiscountCode, DiscountType, utcnow
from app.services.notifications import reset_notification_service
from app.services.payment import reset_payment_service


@pytest.fixture(autouse=True)
def fresh_providers():
    """Each test starts with newly built mock providers."""
    reset_payment_service()
    reset_notification_service()
    yield
    reset_payment_service()
    reset_notification_service()


@pytest_asyncio.fixture
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
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def queued_emails(monkeypatch) -> list[dict]:
    """Capture send_email.delay calls instead of talking to Redis."""
    sent: list[dict] = []

    def fake_delay(to_email, subject, body_html, body_text=None, reply_to=None):
        sent.append({"to": to_email, "subject": subject, "html": body_html, "text": body_text})

    monkeypatch.setattr(tasks.send_email, "delay", fake_delay)
    return sent


@pytest.fixture
def add_discount_code(session_factory):
    """Insert a discount code row and return it."""

    async def _add(
        code: str = "SAVE10",
        discount_type: DiscountType = DiscountType.PERCENTAGE,
        value: str = "10",
        minimum: Optional[str] = None,
        max_uses: Optional[int] = None,
        current_uses: int = 0,
        expires_in: timedelta = timedelta(days=30),
        is_active: bool = True,
        description: Optional[str] = None,
    ) -> DiscountCode:
        rule = DiscountCode(
            code=code,
            discount_type=discount_type.value,
            discount_value=Decimal(value),
            minimum_order_amount=Decimal(minimum) if minimum is not None else None,
            max_uses=max_uses,
            current_uses=current_uses,
            is_active=is_active,
            description=description,
            expires_at=utcnow() + expires_in,
        )
        async with session_factory() as session:
            session.add(rule)
            await session.commit()
        return rule

    return _add


@pytest_asyncio.fixture
async def client(session_factory, queued_emails):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
