"""Database infrastructure — engine, ORM models, repositories and directories."""

from business_escrow.infrastructure.database.engine import (
    close_db,
    get_async_session,
    init_db,
)
from business_escrow.infrastructure.database.orm_models import (
    Base,
    EscrowEvent,
    EscrowTransaction,
    MigrationChecklist,
    MigrationChecklistTask,
)
from business_escrow.infrastructure.database.repositories import (
    ChecklistRepository,
    EscrowRepository,
    EventRepository,
    TaskRepository,
)

__all__ = [
    "Base",
    "EscrowEvent",
    "EscrowTransaction",
    "MigrationChecklist",
    "MigrationChecklistTask",
    "ChecklistRepository",
    "EscrowRepository",
    "EventRepository",
    "TaskRepository",
    "get_async_session",
    "init_db",
    "close_db",
]
