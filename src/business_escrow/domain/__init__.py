"""Domain layer — pure business logic with zero framework dependencies."""

from business_escrow.domain.enums import (
    ChecklistStatus,
    EscrowStatus,
    EventType,
    PartyRole,
    TaskCategory,
    TaskStatus,
)
from business_escrow.domain.exceptions import (
    EscrowError,
    EscrowNotFoundError,
    InvalidStateTransitionError,
)
from business_escrow.domain.fees import FeeBreakdown, calculate_fees, format_currency
from business_escrow.domain.ports import (
    CurrentUser,
    ListingDirectory,
    LoiDirectory,
    RoleDirectory,
    UserDirectory,
)
from business_escrow.domain.state_machine import (
    EscrowStateMachine,
    MigrationTaskStateMachine,
    advance_task_status,
    validate_transition,
)

__all__ = [
    "ChecklistStatus",
    "EscrowStatus",
    "EventType",
    "PartyRole",
    "TaskCategory",
    "TaskStatus",
    "EscrowError",
    "EscrowNotFoundError",
    "InvalidStateTransitionError",
    "FeeBreakdown",
    "calculate_fees",
    "format_currency",
    "CurrentUser",
    "ListingDirectory",
    "LoiDirectory",
    "RoleDirectory",
    "UserDirectory",
    "EscrowStateMachine",
    "MigrationTaskStateMachine",
    "advance_task_status",
    "validate_transition",
]
