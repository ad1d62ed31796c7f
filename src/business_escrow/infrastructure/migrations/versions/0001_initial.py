"""Initial schema: escrow transactions, audit events, migration checklists.

Collaborator tables (users, sessions, roles, listings, LOIs) are created
here too so a fresh database is usable on its own; in production they are
normally owned by the marketplace's other services.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # --- Collaborator tables ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "user_sessions",
        sa.Column("token", sa.String(128), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_session_user", "user_sessions", ["user_id"])
    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(32), nullable=False),
        sa.UniqueConstraint("user_id", "role", name="uq_user_role"),
    )
    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("seller_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("business_model", sa.String(64), nullable=True),
        sa.Column("niche", sa.String(128), nullable=True),
        sa.Column("business_type", sa.String(64), nullable=True),
        sa.Column("asking_price", sa.BigInteger(), nullable=True),
    )
    op.create_index("idx_listing_seller", "listings", ["seller_id"])
    op.create_table(
        "loi_offers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("buyer_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seller_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("offer_price", sa.BigInteger(), nullable=True),
    )

    # --- escrow_transactions ---
    op.create_table(
        "escrow_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("loi_id", sa.Integer(), sa.ForeignKey("loi_offers.id"), nullable=True),
        sa.Column("buyer_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seller_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(40), nullable=False, server_default="initiated"),
        sa.Column("escrow_amount", sa.BigInteger(), nullable=False),
        sa.Column("platform_fee_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("platform_fee_amount", sa.BigInteger(), nullable=True),
        sa.Column("buyer_total_amount", sa.BigInteger(), nullable=True),
        sa.Column("seller_net_amount", sa.BigInteger(), nullable=True),
        sa.Column("fee_invoice_url", sa.Text(), nullable=True),
        sa.Column("fee_transferred_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("platform_account_id", sa.String(128), nullable=True),
        sa.Column("escrow_provider", sa.String(64), nullable=True),
        sa.Column("escrow_reference_id", sa.String(255), nullable=True, unique=True),
        sa.Column("webhook_secret", sa.String(64), nullable=False),
        sa.Column("initiated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("funded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("migration_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("escrow_amount > 0", name="ck_escrow_positive_amount"),
    )
    op.create_index("idx_escrow_buyer", "escrow_transactions", ["buyer_id"])
    op.create_index("idx_escrow_seller", "escrow_transactions", ["seller_id"])
    op.create_index("idx_escrow_listing", "escrow_transactions", ["listing_id"])
    op.create_index("idx_escrow_status", "escrow_transactions", ["status"])
    op.create_index("idx_escrow_created_at", "escrow_transactions", ["created_at"])

    # --- escrow_events ---
    op.create_table(
        "escrow_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "escrow_id",
            sa.Uuid(),
            sa.ForeignKey("escrow_transactions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(40), nullable=False),
        sa.Column("old_status", sa.String(40), nullable=True),
        sa.Column("new_status", sa.String(40), nullable=True),
        sa.Column("actor", sa.String(64), nullable=False, server_default="SYSTEM"),
        sa.Column("metadata", JSONType, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_event_escrow", "escrow_events", ["escrow_id"])
    op.create_index("idx_event_type", "escrow_events", ["event_type"])
    op.create_index("idx_event_created_at", "escrow_events", ["created_at"])

    # --- migration_checklists ---
    op.create_table(
        "migration_checklists",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "escrow_id",
            sa.Uuid(),
            sa.ForeignKey("escrow_transactions.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("buyer_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seller_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="in_progress"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('in_progress', 'complete')", name="ck_checklist_valid_status"
        ),
    )
    op.create_index("idx_checklist_buyer", "migration_checklists", ["buyer_id"])
    op.create_index("idx_checklist_seller", "migration_checklists", ["seller_id"])

    # --- migration_checklist_tasks ---
    op.create_table(
        "migration_checklist_tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "checklist_id",
            sa.Uuid(),
            sa.ForeignKey("migration_checklists.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("task_name", sa.String(255), nullable=False),
        sa.Column("task_category", sa.String(20), nullable=False),
        sa.Column("task_description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("buyer_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("buyer_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("seller_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("seller_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "task_category IN ('domain', 'hosting', 'code', 'payments', "
            "'ads', 'inventory', 'other')",
            name="ck_task_valid_category",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'complete')",
            name="ck_task_valid_status",
        ),
    )
    op.create_index("idx_task_checklist", "migration_checklist_tasks", ["checklist_id"])


def downgrade() -> None:
    op.drop_table("migration_checklist_tasks")
    op.drop_table("migration_checklists")
    op.drop_table("escrow_events")
    op.drop_table("escrow_transactions")
    op.drop_table("loi_offers")
    op.drop_table("listings")
    op.drop_table("user_roles")
    op.drop_table("user_sessions")
    op.drop_table("users")
