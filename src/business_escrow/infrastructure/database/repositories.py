"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).

Reads passed ``for_update=True`` issue SELECT ... FOR UPDATE so that
concurrent status changes, fee materialization and task confirmations on
the same row serialize. SQLite ignores the clause.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_, select

from business_escrow.infrastructure.database.orm_models import (
    EscrowEvent,
    EscrowTransaction,
    MigrationChecklist,
    MigrationChecklistTask,
)

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from business_escrow.domain.enums import EventType


class EscrowRepository:
    """Data access for escrow transactions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, escrow: EscrowTransaction) -> EscrowTransaction:
        """Insert a new escrow transaction."""
        self._session.add(escrow)
        await self._session.flush()
        return escrow

    async def get_by_id(
        self, escrow_id: uuid.UUID, for_update: bool = False
    ) -> EscrowTransaction | None:
        """Fetch a transaction by its UUID."""
        stmt = select(EscrowTransaction).where(EscrowTransaction.id == escrow_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_reference(
        self, reference_id: str, for_update: bool = False
    ) -> EscrowTransaction | None:
        """Fetch a transaction by the provider's reference id."""
        stmt = select(EscrowTransaction).where(
            EscrowTransaction.escrow_reference_id == reference_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_party(
        self,
        user_id: str,
        statuses: list[str] | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[EscrowTransaction]:
        """Fetch transactions where the user is buyer or seller, newest first."""
        stmt = select(EscrowTransaction).where(
            or_(EscrowTransaction.buyer_id == user_id, EscrowTransaction.seller_id == user_id)
        )
        if statuses:
            stmt = stmt.where(EscrowTransaction.status.in_(statuses))
        stmt = stmt.order_by(EscrowTransaction.created_at.desc()).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_listing(self, listing_id: int) -> list[EscrowTransaction]:
        """Fetch every transaction on a listing, newest first."""
        result = await self._session.execute(
            select(EscrowTransaction)
            .where(EscrowTransaction.listing_id == listing_id)
            .order_by(EscrowTransaction.created_at.desc())
        )
        return list(result.scalars().all())

    async def save(self, escrow: EscrowTransaction) -> EscrowTransaction:
        """Flush pending changes on a transaction."""
        await self._session.flush()
        return escrow


class EventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        escrow_id: uuid.UUID,
        event_type: EventType,
        old_status: str | None,
        new_status: str | None,
        actor: str = "SYSTEM",
        metadata: dict | None = None,
    ) -> EscrowEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = EscrowEvent(
            escrow_id=escrow_id,
            event_type=event_type.value,
            old_status=old_status,
            new_status=new_status,
            actor=actor,
            metadata_json=metadata,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_escrow(self, escrow_id: uuid.UUID) -> list[EscrowEvent]:
        """Fetch all events for a transaction in chronological order."""
        result = await self._session.execute(
            select(EscrowEvent)
            .where(EscrowEvent.escrow_id == escrow_id)
            .order_by(EscrowEvent.created_at.asc())
        )
        return list(result.scalars().all())


class ChecklistRepository:
    """Data access for migration checklists."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, checklist: MigrationChecklist) -> MigrationChecklist:
        """Insert a new checklist."""
        self._session.add(checklist)
        await self._session.flush()
        return checklist

    async def get_by_id(
        self, checklist_id: uuid.UUID, for_update: bool = False
    ) -> MigrationChecklist | None:
        stmt = select(MigrationChecklist).where(MigrationChecklist.id == checklist_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_escrow(self, escrow_id: uuid.UUID) -> MigrationChecklist | None:
        result = await self._session.execute(
            select(MigrationChecklist).where(MigrationChecklist.escrow_id == escrow_id)
        )
        return result.scalar_one_or_none()

    async def list_for_party(
        self,
        user_id: str,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[MigrationChecklist]:
        """Fetch checklists where the user is buyer or seller, newest first."""
        stmt = select(MigrationChecklist).where(
            or_(MigrationChecklist.buyer_id == user_id, MigrationChecklist.seller_id == user_id)
        )
        if status is not None:
            stmt = stmt.where(MigrationChecklist.status == status)
        stmt = stmt.order_by(MigrationChecklist.created_at.desc()).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def save(self, checklist: MigrationChecklist) -> MigrationChecklist:
        await self._session.flush()
        return checklist


class TaskRepository:
    """Data access for migration checklist tasks."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_many(
        self, tasks: list[MigrationChecklistTask]
    ) -> list[MigrationChecklistTask]:
        """Insert several tasks in one flush."""
        self._session.add_all(tasks)
        await self._session.flush()
        return tasks

    async def get_by_id(
        self, task_id: uuid.UUID, for_update: bool = False
    ) -> MigrationChecklistTask | None:
        stmt = select(MigrationChecklistTask).where(MigrationChecklistTask.id == task_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_checklist(self, checklist_id: uuid.UUID) -> list[MigrationChecklistTask]:
        """Fetch a checklist's tasks ordered by category, then creation time."""
        result = await self._session.execute(
            select(MigrationChecklistTask)
            .where(MigrationChecklistTask.checklist_id == checklist_id)
            .order_by(
                MigrationChecklistTask.task_category.asc(),
                MigrationChecklistTask.created_at.asc(),
            )
        )
        return list(result.scalars().all())

    async def list_for_checklists(
        self, checklist_ids: list[uuid.UUID]
    ) -> list[MigrationChecklistTask]:
        """Fetch the tasks of several checklists at once."""
        if not checklist_ids:
            return []
        result = await self._session.execute(
            select(MigrationChecklistTask).where(
                MigrationChecklistTask.checklist_id.in_(checklist_ids)
            )
        )
        return list(result.scalars().all())

    async def save(self, task: MigrationChecklistTask) -> MigrationChecklistTask:
        await self._session.flush()
        return task
