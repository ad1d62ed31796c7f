#!/usr/bin/env python3
"""Business Escrow — End-to-End Simulation.

Simulates three scenarios with BuyerBot, SellerBot and ProviderBot actors:

    Scenario 1: Escrow and Fees
        - Buyer opens a $9,200.00 escrow on an accepted LOI
        - Fee breakdown: $460.00 fee, buyer pays $9,660.00, seller nets $9,200.00
        - Buyer issues the fee invoice, an admin records the fee transfer

    Scenario 2: Provider Webhook Replay
        - The escrow provider reports "funded" twice
        - Status is funded, funded_at is set once, the notes log has two lines

    Scenario 3: Dual-Confirmed Migration
        - Checklist opened on a funded escrow with the default handover tasks
        - Buyer confirms every task, seller confirms all but the last
        - Checklist stays in progress until the seller confirms the last task
        - Parties then move the escrow to complete and released

Usage:
    # Against PostgreSQL at DATABASE_URL:
    uv run python simulation.py

    # SQLite in-memory, no external services:
    uv run python simulation.py --sqlite

    # Run a specific scenario:
    uv run python simulation.py --sqlite --scenario 3
"""

from __future__ import annotations

import argparse
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from business_escrow.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

# Module-level state
_sqlite_engine = None
_sqlite_session_factory = None


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(use_sqlite: bool = False):
    """Initialize database engine and create tables."""
    global _sqlite_engine, _sqlite_session_factory

    if use_sqlite:
        from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
        from sqlalchemy.pool import StaticPool

        from business_escrow.infrastructure.database.orm_models import Base

        _sqlite_engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        _sqlite_session_factory = async_sessionmaker(
            bind=_sqlite_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        async with _sqlite_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.sqlite_initialized")
    else:
        from business_escrow.infrastructure.database.engine import init_db
        await init_db()


async def get_session():
    """Get a fresh database session."""
    if _sqlite_session_factory is not None:
        return _sqlite_session_factory()

    from business_escrow.infrastructure.database.engine import _get_session_factory
    factory = _get_session_factory()
    return factory()


async def shutdown_database():
    """Close database connections."""
    global _sqlite_engine, _sqlite_session_factory

    if _sqlite_engine is not None:
        await _sqlite_engine.dispose()
        _sqlite_engine = None
        _sqlite_session_factory = None
    else:
        from business_escrow.infrastructure.database.engine import close_db
        await close_db()


# ---------------------------------------------------------------------------
# Marketplace fixtures (rows normally owned by other services)
# ---------------------------------------------------------------------------
@dataclass
class Marketplace:
    """Ids of the users, listing and LOI seeded for one scenario."""

    buyer_id: str
    seller_id: str
    admin_id: str
    listing_id: int
    loi_id: int


async def seed_marketplace(session: Any, offer_price: int) -> Marketplace:
    """Insert a buyer, seller, admin, listing and accepted LOI."""
    from business_escrow.infrastructure.database.orm_models import (
        Listing,
        LoiOffer,
        User,
        UserRole,
        UserSession,
    )

    suffix = uuid.uuid4().hex[:8]
    buyer = User(id=f"buyer-{suffix}", name="Bea Buyer", email=f"buyer-{suffix}@example.com")
    seller = User(id=f"seller-{suffix}", name="Sam Seller", email=f"seller-{suffix}@example.com")
    admin = User(id=f"admin-{suffix}", name="Ada Admin", email=f"admin-{suffix}@example.com")
    session.add_all([buyer, seller, admin])
    await session.flush()

    expires = datetime.now(UTC) + timedelta(hours=1)
    listing = Listing(
        seller_id=seller.id,
        title="Subscription box for houseplants",
        business_model="ecommerce",
        niche="home & garden",
        asking_price=offer_price + 50_000,
    )
    session.add_all(
        [
            UserSession(token=f"sim-{suffix}", user_id=buyer.id, expires_at=expires),
            UserRole(user_id=admin.id, role="admin"),
            listing,
        ]
    )
    await session.flush()

    loi = LoiOffer(
        listing_id=listing.id,
        buyer_id=buyer.id,
        seller_id=seller.id,
        status="accepted",
        offer_price=offer_price,
    )
    session.add(loi)
    await session.commit()

    return Marketplace(
        buyer_id=buyer.id,
        seller_id=seller.id,
        admin_id=admin.id,
        listing_id=listing.id,
        loi_id=loi.id,
    )


# ---------------------------------------------------------------------------
# Bot Agents
# ---------------------------------------------------------------------------
@dataclass
class BuyerBot:
    """Simulated buyer who opens escrows and confirms handover tasks."""

    user_id: str

    async def create_escrow(
        self, session: Any, market: Marketplace, amount: int, reference_id: str
    ) -> tuple[str, str]:
        """Open an escrow. Returns (escrow_id, webhook_secret)."""
        from business_escrow.services.escrow_service import EscrowService

        svc = EscrowService(session)
        escrow = await svc.create_escrow(
            buyer_id=self.user_id,
            listing_id=market.listing_id,
            seller_id=market.seller_id,
            escrow_amount=amount,
            loi_id=market.loi_id,
            escrow_provider="escrow.com",
            escrow_reference_id=reference_id,
        )
        await session.commit()
        logger.info("🔵 BUYER: Escrow created", escrow_id=str(escrow.id), amount=amount)
        return str(escrow.id), escrow.webhook_secret

    async def set_status(self, session: Any, escrow_id: str, status: str) -> str:
        from business_escrow.services.escrow_service import EscrowService

        svc = EscrowService(session)
        escrow = await svc.update_status(uuid.UUID(escrow_id), status, self.user_id)
        await session.commit()
        logger.info("🔵 BUYER: Status updated", escrow_id=escrow_id, status=escrow.status)
        return escrow.status

    async def confirm(self, session: Any, task_id: uuid.UUID) -> dict:
        return await _confirm(session, task_id, self.user_id, "🔵 BUYER")


@dataclass
class SellerBot:
    """Simulated seller who hands over assets and confirms tasks."""

    user_id: str

    async def set_status(self, session: Any, escrow_id: str, status: str) -> str:
        from business_escrow.services.escrow_service import EscrowService

        svc = EscrowService(session)
        escrow = await svc.update_status(uuid.UUID(escrow_id), status, self.user_id)
        await session.commit()
        logger.info("🟢 SELLER: Status updated", escrow_id=escrow_id, status=escrow.status)
        return escrow.status

    async def confirm(self, session: Any, task_id: uuid.UUID) -> dict:
        return await _confirm(session, task_id, self.user_id, "🟢 SELLER")


@dataclass
class ProviderBot:
    """Simulated external escrow provider delivering signed webhooks."""

    deliveries: list[str] = field(default_factory=list)

    async def send(self, session: Any, reference_id: str, status: str, secret: str) -> dict:
        from business_escrow.services.webhook_service import WebhookService

        svc = WebhookService(session)
        result = await svc.handle(
            escrow_reference_id=reference_id,
            status=status,
            webhook_secret=secret,
            event_type="status_update",
        )
        await session.commit()
        self.deliveries.append(status)
        logger.info(
            "🟣 PROVIDER: Webhook delivered",
            reference_id=reference_id,
            previous=result.previous_status,
            new=result.new_status,
        )
        return {"previous_status": result.previous_status, "new_status": result.new_status}


async def _confirm(session: Any, task_id: uuid.UUID, user_id: str, label: str) -> dict:
    from business_escrow.services.migration_service import MigrationService

    svc = MigrationService(session)
    result = await svc.confirm_task(task_id, user_id)
    await session.commit()
    logger.info(
        f"{label}: Task confirmed",
        task=result.task.task_name,
        task_status=result.task.status,
        checklist_status=result.checklist.status,
    )
    return {
        "task_status": result.task.status,
        "checklist_status": result.checklist.status,
    }


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


def print_fees(statement: Any) -> None:
    """Pretty-print an escrow's fee statement."""
    from business_escrow.domain.fees import format_currency

    b = statement.breakdown
    print(f"  Amount:      {format_currency(b.transaction_amount)}")
    print(f"  Fee ({b.platform_fee_percent}%): {format_currency(b.platform_fee_amount)}")
    print(f"  Buyer pays:  {format_currency(b.buyer_total_amount)}")
    print(f"  Seller nets: {format_currency(b.seller_net_amount)}")
    print(f"  Invoice:     {statement.fee_invoice_url or '—'}")
    transferred = statement.fee_transferred_at.isoformat() if statement.transferred else "—"
    print(f"  Transferred: {transferred}")


async def print_audit_trail(session: Any, escrow_id: str) -> None:
    """Print the full audit trail for an escrow."""
    from business_escrow.infrastructure.database.repositories import EventRepository

    events = await EventRepository(session).get_by_escrow(uuid.UUID(escrow_id))
    print("\n  📜 Audit Trail:")
    for i, evt in enumerate(events, 1):
        old = evt.old_status or "—"
        new = evt.new_status or "—"
        print(f"    {i}. [{evt.event_type}] {old} → {new} (by {evt.actor})")
    print()


# ===========================================================================
# Scenario 1: Escrow and Fees
# ===========================================================================
async def scenario_1_escrow_and_fees() -> None:
    """Buyer opens an escrow; fees are invoiced and transferred."""
    banner("SCENARIO 1: Escrow and Fees — $9,200.00 at 5%")

    from business_escrow.services.fee_service import FeeService

    session = await get_session()
    async with session:
        market = await seed_marketplace(session, offer_price=920_000)
        buyer = BuyerBot(market.buyer_id)

        section("Step 1: Buyer opens escrow on the accepted LOI")
        escrow_id, _ = await buyer.create_escrow(
            session, market, amount=920_000, reference_id=f"SIM-{uuid.uuid4().hex[:10]}"
        )

        section("Step 2: Fee breakdown")
        fees = FeeService(session)
        statement = await fees.get_breakdown(uuid.UUID(escrow_id), market.seller_id)
        print_fees(statement)
        assert statement.breakdown.platform_fee_amount == 46_000
        assert statement.breakdown.buyer_total_amount == 966_000
        assert statement.breakdown.seller_net_amount == 920_000

        section("Step 3: Buyer issues the fee invoice")
        invoice = await fees.generate_invoice(uuid.UUID(escrow_id), market.buyer_id)
        await session.commit()
        print(f"  🧾 {invoice.invoice_url}")

        section("Step 4: Admin records the fee transfer")
        await fees.mark_transferred(uuid.UUID(escrow_id), market.admin_id)
        await session.commit()
        print_fees(await fees.get_breakdown(uuid.UUID(escrow_id), market.buyer_id))

        await print_audit_trail(session, escrow_id)


# ===========================================================================
# Scenario 2: Provider Webhook Replay
# ===========================================================================
async def scenario_2_webhook_replay() -> None:
    """The provider delivers the same funded webhook twice."""
    banner("SCENARIO 2: Provider Webhook Replay — funded x2")

    from business_escrow.services.escrow_service import EscrowService

    session = await get_session()
    async with session:
        market = await seed_marketplace(session, offer_price=250_000)
        buyer = BuyerBot(market.buyer_id)
        provider = ProviderBot()
        reference_id = f"SIM-{uuid.uuid4().hex[:10]}"

        section("Step 1: Buyer opens escrow")
        escrow_id, secret = await buyer.create_escrow(
            session, market, amount=250_000, reference_id=reference_id
        )

        section("Step 2: Provider reports funded (twice)")
        await provider.send(session, reference_id, "funded", secret)
        await provider.send(session, reference_id, "funded", secret)

        section("Step 3: A forged webhook is rejected")
        from business_escrow.domain.exceptions import WebhookAuthenticationError

        try:
            await provider.send(session, reference_id, "released", "forged-secret")
        except WebhookAuthenticationError as exc:
            await session.rollback()
            print(f"  🛡️  Rejected: {exc.message}")

        section("Step 4: Final state")
        escrow = await EscrowService(session).get_escrow(uuid.UUID(escrow_id), market.buyer_id)
        print(f"  Status:    {escrow.status}")
        print(f"  Funded at: {escrow.funded_at}")
        print("  Notes:")
        for line in (escrow.notes or "").splitlines():
            print(f"    {line}")
        assert escrow.status == "funded"
        assert len((escrow.notes or "").splitlines()) == 2

        await print_audit_trail(session, escrow_id)


# ===========================================================================
# Scenario 3: Dual-Confirmed Migration
# ===========================================================================
async def scenario_3_dual_confirmed_migration() -> None:
    """Both parties confirm every handover task before the escrow is released."""
    banner("SCENARIO 3: Dual-Confirmed Migration")

    from business_escrow.services.migration_service import MigrationService

    session = await get_session()
    async with session:
        market = await seed_marketplace(session, offer_price=600_000)
        buyer = BuyerBot(market.buyer_id)
        seller = SellerBot(market.seller_id)

        section("Step 1: Setup (Create -> Fund)")
        escrow_id, _ = await buyer.create_escrow(
            session, market, amount=600_000, reference_id=f"SIM-{uuid.uuid4().hex[:10]}"
        )
        await buyer.set_status(session, escrow_id, "funded")

        section("Step 2: Seller opens the migration checklist")
        migration = MigrationService(session)
        view = await migration.create_checklist(uuid.UUID(escrow_id), market.seller_id)
        await session.commit()
        for category, tasks in view.tasks_by_category.items():
            print(f"  [{category}]")
            for task in tasks:
                print(f"    - {task.task_name}")
        await seller.set_status(session, escrow_id, "in_migration")

        section("Step 3: Buyer confirms every task")
        for task in view.tasks:
            await buyer.confirm(session, task.id)

        section("Step 4: Seller confirms all but the last task")
        for task in view.tasks[:-1]:
            await seller.confirm(session, task.id)
        current = await migration.get_by_id(view.checklist.id, market.buyer_id)
        print(
            f"  Checklist: {current.checklist.status} "
            f"({current.stats.completed}/{current.stats.total} complete)"
        )
        assert current.checklist.status == "in_progress"

        section("Step 5: Seller confirms the last task")
        outcome = await seller.confirm(session, view.tasks[-1].id)
        print(f"  ✅ Checklist: {outcome['checklist_status']}")
        assert outcome["checklist_status"] == "complete"

        section("Step 6: Parties close the escrow")
        await buyer.set_status(session, escrow_id, "complete")
        await seller.set_status(session, escrow_id, "released")

        from business_escrow.domain.exceptions import InvalidStateTransitionError

        try:
            await buyer.set_status(session, escrow_id, "funded")
        except InvalidStateTransitionError as exc:
            await session.rollback()
            print(f"  🛡️  Backward move rejected: {exc.message}")

        await print_audit_trail(session, escrow_id)


# ===========================================================================
# Main
# ===========================================================================
async def run_all(use_sqlite: bool = False) -> None:
    """Run all scenarios sequentially."""
    await init_database(use_sqlite=use_sqlite)

    try:
        print("\n" + "🚀" * 35)
        print("  BUSINESS ESCROW — SIMULATION")
        db_type = "SQLite (in-memory)" if use_sqlite else "PostgreSQL"
        print(f"  Database: {db_type}")
        print("🚀" * 35 + "\n")

        await scenario_1_escrow_and_fees()
        await scenario_2_webhook_replay()
        await scenario_3_dual_confirmed_migration()

        print("\n" + "=" * 70)
        print("  ✅ ALL SCENARIOS COMPLETED SUCCESSFULLY")
        print("=" * 70 + "\n")

    finally:
        await shutdown_database()


async def run_scenario(num: int, use_sqlite: bool = False) -> None:
    """Run a specific scenario."""
    await init_database(use_sqlite=use_sqlite)

    scenarios = {
        1: scenario_1_escrow_and_fees,
        2: scenario_2_webhook_replay,
        3: scenario_3_dual_confirmed_migration,
    }

    try:
        if num not in scenarios:
            print(f"Unknown scenario {num}. Available: 1, 2, 3")
            return
        await scenarios[num]()
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Business Escrow Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1, 2, or 3). Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use SQLite in-memory instead of PostgreSQL.",
    )
    args = parser.parse_args()

    if args.scenario == 0:
        asyncio.run(run_all(use_sqlite=args.sqlite))
    else:
        asyncio.run(run_scenario(args.scenario, use_sqlite=args.sqlite))
