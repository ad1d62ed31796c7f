"""Domain enumerations for the business escrow service.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class EscrowStatus(enum.StrEnum):
    """Lifecycle states of an escrow transaction.

    The first five values are ordered; parties may only move a transaction
    to an equal or later one (see domain/state_machine.py). CANCELLED and
    DISPUTED are only ever set by the escrow provider's webhook.
    """

    INITIATED = "initiated"
    FUNDED = "funded"
    IN_MIGRATION = "in_migration"
    COMPLETE = "complete"
    RELEASED = "released"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


# Ordinal of each status on the forward path.
ESCROW_STATUS_ORDER: dict[str, int] = {
    EscrowStatus.INITIATED: 0,
    EscrowStatus.FUNDED: 1,
    EscrowStatus.IN_MIGRATION: 2,
    EscrowStatus.COMPLETE: 3,
    EscrowStatus.RELEASED: 4,
}

# Statuses a buyer or seller may request through UpdateStatus.
PARTY_SETTABLE_STATUSES: frozenset[str] = frozenset(ESCROW_STATUS_ORDER)


class ChecklistStatus(enum.StrEnum):
    """Status of a migration checklist."""

    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class TaskStatus(enum.StrEnum):
    """Status of a single migration task, derived from the two confirmations."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class TaskCategory(enum.StrEnum):
    """Asset class a migration task belongs to."""

    DOMAIN = "domain"
    HOSTING = "hosting"
    CODE = "code"
    PAYMENTS = "payments"
    ADS = "ads"
    INVENTORY = "inventory"
    OTHER = "other"


class PartyRole(enum.StrEnum):
    """Role of the requesting user on a transaction."""

    BUYER = "buyer"
    SELLER = "seller"


class EventType(enum.StrEnum):
    """Types of audit events recorded in the escrow_events table.

    This is the append-only forensic trail for disputes.
    """

    # Lifecycle events
    ESCROW_CREATED = "ESCROW_CREATED"
    STATUS_UPDATED = "STATUS_UPDATED"
    WEBHOOK_RECEIVED = "WEBHOOK_RECEIVED"

    # Fee events
    FEE_INVOICE_GENERATED = "FEE_INVOICE_GENERATED"
    FEE_TRANSFERRED = "FEE_TRANSFERRED"

    # Migration events
    CHECKLIST_CREATED = "CHECKLIST_CREATED"
    CHECKLIST_COMPLETED = "CHECKLIST_COMPLETED"
