"""SQLAlchemy 2.0 ORM models for the business escrow service.

Owned tables:
    1. escrow_transactions        — Money held in escrow for one business sale.
    2. escrow_events              — Append-only audit log of every change.
    3. migration_checklists       — One asset-handover checklist per escrow.
    4. migration_checklist_tasks  — Individual handover tasks, dual-confirmed.

Collaborator tables (written by other marketplace services, read here):
    users, user_sessions, user_roles, listings, loi_offers.

Design decisions:
    - UUIDs as primary keys for owned tables (no sequential leakage).
    - Integer minor units (cents) for money; Numeric only for the fee percent.
    - escrow_transactions.status is free text: the provider webhook may write
      values outside EscrowStatus, and those must round-trip unchanged.
    - JSON columns become JSONB on PostgreSQL and plain JSON elsewhere.
    - escrow_events is append-only: no UPDATE or DELETE at the application level.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal  # noqa: TC003 - needed at runtime by SQLAlchemy Mapped[]

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# Collaborator tables
# ---------------------------------------------------------------------------
class User(Base):
    """A marketplace user (buyer, seller or admin)."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    def __repr__(self) -> str:
        return f"<User id={self.id}>"


class UserSession(Base):
    """A bearer session issued by the identity service."""

    __tablename__ = "user_sessions"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_session_user", "user_id"),)


class UserRole(Base):
    """Role grants; the admin check reads this table."""

    __tablename__ = "user_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_role"),)


class Listing(Base):
    """A business listed for sale."""

    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    seller_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    business_model: Mapped[str | None] = mapped_column(String(64), nullable=True)
    niche: Mapped[str | None] = mapped_column(String(128), nullable=True)
    business_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    asking_price: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (Index("idx_listing_seller", "seller_id"),)


class LoiOffer(Base):
    """A letter of intent from a buyer on a listing."""

    __tablename__ = "loi_offers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listing_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("listings.id"), nullable=False
    )
    buyer_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    seller_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    offer_price: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


# ---------------------------------------------------------------------------
# 1. escrow_transactions
# ---------------------------------------------------------------------------
class EscrowTransaction(Base):
    """Money held by an external escrow provider for one business sale."""

    __tablename__ = "escrow_transactions"

    # --- Primary Key ---
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # --- Parties & Subject ---
    listing_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("listings.id"), nullable=False
    )
    loi_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("loi_offers.id"), nullable=True, default=None
    )
    buyer_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    seller_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)

    # --- Status ---
    status: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default="initiated",
        comment="Forward-path status, side status, or verbatim webhook value",
    )

    # --- Financials (minor units) ---
    escrow_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    platform_fee_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, comment="Fee rate fixed at creation"
    )
    platform_fee_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    buyer_total_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    seller_net_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    fee_invoice_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    fee_transferred_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    platform_account_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # --- Provider ---
    escrow_provider: Mapped[str | None] = mapped_column(String(64), nullable=True)
    escrow_reference_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True
    )
    webhook_secret: Mapped[str] = mapped_column(String(64), nullable=False)

    # --- Milestone timestamps (set once) ---
    initiated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    funded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    migration_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        CheckConstraint("escrow_amount > 0", name="ck_escrow_positive_amount"),
        Index("idx_escrow_buyer", "buyer_id"),
        Index("idx_escrow_seller", "seller_id"),
        Index("idx_escrow_listing", "listing_id"),
        Index("idx_escrow_status", "status"),
        Index("idx_escrow_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<EscrowTransaction id={self.id} status={self.status} "
            f"amount={self.escrow_amount}>"
        )


# ---------------------------------------------------------------------------
# 2. escrow_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class EscrowEvent(Base):
    """Immutable audit record of a change to an escrow transaction.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level.
    """

    __tablename__ = "escrow_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    escrow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("escrow_transactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    old_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    actor: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="SYSTEM",
        comment="User id, WEBHOOK or SYSTEM",
    )
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata", JSONType, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_event_escrow", "escrow_id"),
        Index("idx_event_type", "event_type"),
        Index("idx_event_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<EscrowEvent id={self.id} type={self.event_type} "
            f"{self.old_status}->{self.new_status}>"
        )


# ---------------------------------------------------------------------------
# 3. migration_checklists
# ---------------------------------------------------------------------------
class MigrationChecklist(Base):
    """Asset-handover checklist for a funded escrow (one per escrow)."""

    __tablename__ = "migration_checklists"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    escrow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("escrow_transactions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    # Denormalized from the escrow for authorization checks.
    listing_id: Mapped[int] = mapped_column(Integer, ForeignKey("listings.id"), nullable=False)
    buyer_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    seller_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="in_progress")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('in_progress', 'complete')",
            name="ck_checklist_valid_status",
        ),
        Index("idx_checklist_buyer", "buyer_id"),
        Index("idx_checklist_seller", "seller_id"),
    )

    def __repr__(self) -> str:
        return f"<MigrationChecklist id={self.id} escrow={self.escrow_id} status={self.status}>"


# ---------------------------------------------------------------------------
# 4. migration_checklist_tasks
# ---------------------------------------------------------------------------
class MigrationChecklistTask(Base):
    """A single asset to hand over, confirmed independently by both parties."""

    __tablename__ = "migration_checklist_tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    checklist_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("migration_checklists.id", ondelete="CASCADE"),
        nullable=False,
    )

    task_name: Mapped[str] = mapped_column(String(255), nullable=False)
    task_category: Mapped[str] = mapped_column(String(20), nullable=False)
    task_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    # --- Confirmations (monotonic false -> true) ---
    buyer_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    buyer_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    seller_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    seller_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "task_category IN ('domain', 'hosting', 'code', 'payments', "
            "'ads', 'inventory', 'other')",
            name="ck_task_valid_category",
        ),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'complete')",
            name="ck_task_valid_status",
        ),
        Index("idx_task_checklist", "checklist_id"),
    )

    def __repr__(self) -> str:
        return f"<MigrationChecklistTask id={self.id} name={self.task_name!r} status={self.status}>"
