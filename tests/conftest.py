"""Shared test fixtures for the Business Escrow test suite.

Provides:
    - An in-memory SQLite database (aiosqlite) with the full schema
    - Seeded collaborator rows: users, sessions, an admin role, listings, LOIs
    - An httpx AsyncClient wired to the FastAPI app through ASGITransport
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from business_escrow.config import Settings
from business_escrow.infrastructure.database.orm_models import (
    Base,
    EscrowTransaction,
    Listing,
    LoiOffer,
    User,
    UserRole,
    UserSession,
)

BUYER_ID = "user-buyer"
SELLER_ID = "user-seller"
OUTSIDER_ID = "user-outsider"
ADMIN_ID = "user-admin"

BUYER_TOKEN = "token-buyer"
SELLER_TOKEN = "token-seller"
OUTSIDER_TOKEN = "token-outsider"
ADMIN_TOKEN = "token-admin"
EXPIRED_TOKEN = "token-expired"

LISTING_ID = 1
OTHER_LISTING_ID = 2
ACCEPTED_LOI_ID = 10
PENDING_LOI_ID = 11
ESCROW_REFERENCE_ID = "ESC-REF-001"


def auth(token: str) -> dict[str, str]:
    """Build an Authorization header for a seeded session token."""
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings pinned to the values the tests assert against."""
    return Settings(
        app_env="development",
        database_url="sqlite+aiosqlite:///:memory:",
        platform_fee_percent="5",
        invoice_base_url="https://invoices.example.com",
        platform_account_id="platform_account_test",
        admin_role="admin",
        default_page_size=20,
        max_page_size=100,
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create a fresh in-memory schema and seed collaborator data."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with factory() as session:
        await _seed(session)
        await session.commit()

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def escrow(db_session: AsyncSession, settings: Settings) -> EscrowTransaction:
    """A committed escrow in `initiated` between the seeded buyer and seller."""
    from business_escrow.services.escrow_service import EscrowService

    svc = EscrowService(db_session, settings=settings)
    created = await svc.create_escrow(
        buyer_id=BUYER_ID,
        listing_id=LISTING_ID,
        seller_id=SELLER_ID,
        escrow_amount=920_000,
        loi_id=ACCEPTED_LOI_ID,
        escrow_provider="escrow.com",
        escrow_reference_id=ESCROW_REFERENCE_ID,
    )
    await db_session.commit()
    return created


@pytest_asyncio.fixture
async def funded_escrow(
    db_session: AsyncSession, settings: Settings, escrow: EscrowTransaction
) -> EscrowTransaction:
    """The `escrow` fixture moved to `funded` by its buyer."""
    from business_escrow.services.escrow_service import EscrowService

    svc = EscrowService(db_session, settings=settings)
    funded = await svc.update_status(escrow.id, "funded", BUYER_ID)
    await db_session.commit()
    return funded


async def _seed(session: AsyncSession) -> None:
    now = datetime.now(UTC)
    session.add_all(
        [
            User(id=BUYER_ID, name="Bea Buyer", email="buyer@example.com"),
            User(id=SELLER_ID, name="Sam Seller", email="seller@example.com"),
            User(id=OUTSIDER_ID, name="Olly Outsider", email="outsider@example.com"),
            User(id=ADMIN_ID, name="Ada Admin", email="admin@example.com"),
        ]
    )
    await session.flush()
    session.add_all(
        [
            UserSession(token=BUYER_TOKEN, user_id=BUYER_ID, expires_at=now + timedelta(days=1)),
            UserSession(token=SELLER_TOKEN, user_id=SELLER_ID, expires_at=now + timedelta(days=1)),
            UserSession(
                token=OUTSIDER_TOKEN, user_id=OUTSIDER_ID, expires_at=now + timedelta(days=1)
            ),
            UserSession(token=ADMIN_TOKEN, user_id=ADMIN_ID, expires_at=now + timedelta(days=1)),
            UserSession(token=EXPIRED_TOKEN, user_id=BUYER_ID, expires_at=now - timedelta(days=1)),
            UserRole(user_id=ADMIN_ID, role="admin"),
            Listing(
                id=LISTING_ID,
                seller_id=SELLER_ID,
                status="active",
                title="Niche SaaS for dog groomers",
                business_model="saas",
                niche="pets",
                business_type="online",
                asking_price=950_000,
            ),
            Listing(
                id=OTHER_LISTING_ID,
                seller_id=OUTSIDER_ID,
                status="active",
                title="Content site",
                asking_price=120_000,
            ),
        ]
    )
    await session.flush()
    session.add_all(
        [
            LoiOffer(
                id=ACCEPTED_LOI_ID,
                listing_id=LISTING_ID,
                buyer_id=BUYER_ID,
                seller_id=SELLER_ID,
                status="accepted",
                offer_price=920_000,
            ),
            LoiOffer(
                id=PENDING_LOI_ID,
                listing_id=LISTING_ID,
                buyer_id=BUYER_ID,
                seller_id=SELLER_ID,
                status="pending",
                offer_price=900_000,
            ),
        ]
    )
    await session.flush()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """An AsyncClient against the app, with each request on its own session."""
    from business_escrow.api.deps import get_app_settings, get_db_session
    from business_escrow.main import create_app

    app = create_app()

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _override_session
    app.dependency_overrides[get_app_settings] = lambda: settings

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
