"""Migration Service — asset-handover checklists and dual task confirmation.

A checklist belongs to exactly one funded escrow. Each task is done only
when BOTH the buyer and the seller have confirmed it; the task status is
derived by MigrationTaskStateMachine and never written by clients. When
every task is complete the checklist completes. The escrow status is not
advanced automatically; the parties do that through UpdateStatus.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from business_escrow.config import Settings, get_settings
from business_escrow.domain.enums import (
    ChecklistStatus,
    EscrowStatus,
    EventType,
    PartyRole,
    TaskCategory,
    TaskStatus,
)
from business_escrow.domain.exceptions import (
    ChecklistAlreadyExistsError,
    ChecklistNotFoundError,
    EscrowNotFoundError,
    InvalidInputError,
    InvalidTransitionError,
    TaskNotFoundError,
)
from business_escrow.domain.state_machine import advance_task_status, normalize_status
from business_escrow.infrastructure.database.orm_models import (
    MigrationChecklist,
    MigrationChecklistTask,
)
from business_escrow.infrastructure.database.repositories import (
    ChecklistRepository,
    EscrowRepository,
    EventRepository,
    TaskRepository,
)
from business_escrow.logging_config import get_logger
from business_escrow.services.escrow_service import clamp_limit, clean_text, require_party

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Escrow statuses in which a checklist may be opened.
CHECKLIST_ELIGIBLE_STATUSES = frozenset({EscrowStatus.FUNDED, EscrowStatus.IN_MIGRATION})

# (category, name, description) seeded into every new checklist.
DEFAULT_TASKS: tuple[tuple[TaskCategory, str, str], ...] = (
    (
        TaskCategory.DOMAIN,
        "Transfer domain ownership",
        "Transfer the domain name to the buyer's registrar account",
    ),
    (
        TaskCategory.DOMAIN,
        "Update DNS records",
        "Point DNS records at the buyer's infrastructure",
    ),
    (
        TaskCategory.HOSTING,
        "Migrate hosting account",
        "Move the site and its data to the buyer's hosting account",
    ),
    (
        TaskCategory.HOSTING,
        "Transfer server access credentials",
        "Hand over server, SSH and control panel credentials",
    ),
    (
        TaskCategory.CODE,
        "Transfer codebase and repositories",
        "Transfer source repositories and deployment pipelines",
    ),
    (
        TaskCategory.PAYMENTS,
        "Transfer payment processor accounts",
        "Move payment processor and merchant accounts to the buyer",
    ),
    (
        TaskCategory.ADS,
        "Transfer advertising accounts (Google Ads, Facebook)",
        "Grant the buyer ownership of advertising accounts",
    ),
    (
        TaskCategory.INVENTORY,
        "Transfer inventory and supplier relationships",
        "Introduce the buyer to suppliers and hand over stock",
    ),
)

TASK_NAME_MAX_LENGTH = 255


@dataclass
class TaskStats:
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0

    @classmethod
    def from_tasks(cls, tasks: list[MigrationChecklistTask]) -> TaskStats:
        stats = cls(total=len(tasks))
        for task in tasks:
            if task.status == TaskStatus.COMPLETE:
                stats.completed += 1
            elif task.status == TaskStatus.IN_PROGRESS:
                stats.in_progress += 1
            else:
                stats.pending += 1
        return stats


@dataclass
class ChecklistView:
    """A checklist with its tasks, ordered by category then creation time."""

    checklist: MigrationChecklist
    tasks: list[MigrationChecklistTask]
    user_role: PartyRole | None = None
    stats: TaskStats = field(default_factory=TaskStats)

    @property
    def tasks_by_category(self) -> dict[str, list[MigrationChecklistTask]]:
        grouped: dict[str, list[MigrationChecklistTask]] = defaultdict(list)
        for task in self.tasks:
            grouped[task.task_category].append(task)
        return dict(grouped)


@dataclass(frozen=True)
class TaskUpdate:
    """Fields a party may edit on a task. None means leave unchanged."""

    task_name: str | None = None
    task_category: str | None = None
    task_description: str | None = None
    notes: str | None = None


@dataclass
class ConfirmationResult:
    task: MigrationChecklistTask
    checklist: MigrationChecklist
    confirmed_as: list[PartyRole]


class MigrationService:
    """Checklist creation, task editing and the dual confirmation protocol."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._escrow_repo = EscrowRepository(session)
        self._checklist_repo = ChecklistRepository(session)
        self._task_repo = TaskRepository(session)
        self._event_repo = EventRepository(session)

    # ------------------------------------------------------------------
    # Checklists
    # ------------------------------------------------------------------

    async def create_checklist(self, escrow_id: uuid.UUID, user_id: str) -> ChecklistView:
        """Open the checklist for a funded escrow, seeded with default tasks."""
        escrow = await self._escrow_repo.get_by_id(escrow_id, for_update=True)
        if escrow is None:
            raise EscrowNotFoundError(escrow_id)
        roles = require_party(escrow.buyer_id, escrow.seller_id, user_id)

        if normalize_status(escrow.status) not in CHECKLIST_ELIGIBLE_STATUSES:
            raise InvalidTransitionError(
                f"Escrow must be funded or in migration to create a checklist "
                f"(current status: {escrow.status})",
                "INVALID_ESCROW_STATUS",
            )
        if await self._checklist_repo.get_by_escrow(escrow.id) is not None:
            raise ChecklistAlreadyExistsError(escrow.id)

        checklist = await self._checklist_repo.create(
            MigrationChecklist(
                escrow_id=escrow.id,
                listing_id=escrow.listing_id,
                buyer_id=escrow.buyer_id,
                seller_id=escrow.seller_id,
                status=ChecklistStatus.IN_PROGRESS.value,
            )
        )
        await self._task_repo.create_many(
            [
                MigrationChecklistTask(
                    checklist_id=checklist.id,
                    task_name=name,
                    task_category=category.value,
                    task_description=description,
                    status=TaskStatus.PENDING.value,
                    buyer_confirmed=False,
                    seller_confirmed=False,
                )
                for category, name, description in DEFAULT_TASKS
            ]
        )

        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=EventType.CHECKLIST_CREATED,
            old_status=escrow.status,
            new_status=escrow.status,
            actor=user_id,
            metadata={"checklist_id": str(checklist.id), "default_tasks": len(DEFAULT_TASKS)},
        )

        logger.info(
            "migration.checklist_created",
            escrow_id=str(escrow.id),
            checklist_id=str(checklist.id),
        )
        return await self._view(checklist, roles)

    async def get_by_escrow(self, escrow_id: uuid.UUID, user_id: str) -> ChecklistView:
        """Fetch the checklist of an escrow the caller is a party to."""
        escrow = await self._escrow_repo.get_by_id(escrow_id)
        if escrow is None:
            raise EscrowNotFoundError(escrow_id)
        roles = require_party(escrow.buyer_id, escrow.seller_id, user_id)

        checklist = await self._checklist_repo.get_by_escrow(escrow.id)
        if checklist is None:
            raise ChecklistNotFoundError(f"escrow {escrow_id}")
        return await self._view(checklist, roles)

    async def get_by_id(self, checklist_id: uuid.UUID, user_id: str) -> ChecklistView:
        checklist = await self._get_checklist_or_raise(checklist_id)
        roles = require_party(checklist.buyer_id, checklist.seller_id, user_id)
        return await self._view(checklist, roles)

    async def list_for_user(
        self,
        user_id: str,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ChecklistView]:
        """List the caller's checklists, newest first, with task statistics."""
        if status is not None and status not in {s.value for s in ChecklistStatus}:
            raise InvalidInputError(f"Invalid checklist status '{status}'", "INVALID_STATUS")
        limit = clamp_limit(limit, self._settings)

        checklists = await self._checklist_repo.list_for_party(
            user_id, status=status, limit=limit, offset=max(offset, 0)
        )
        tasks = await self._task_repo.list_for_checklists([c.id for c in checklists])
        tasks_by_checklist: dict[uuid.UUID, list[MigrationChecklistTask]] = defaultdict(list)
        for task in tasks:
            tasks_by_checklist[task.checklist_id].append(task)

        views = []
        for checklist in checklists:
            checklist_tasks = tasks_by_checklist[checklist.id]
            views.append(
                ChecklistView(
                    checklist=checklist,
                    tasks=checklist_tasks,
                    user_role=_primary_role(
                        require_party(checklist.buyer_id, checklist.seller_id, user_id)
                    ),
                    stats=TaskStats.from_tasks(checklist_tasks),
                )
            )
        return views

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def add_task(
        self,
        checklist_id: uuid.UUID,
        user_id: str,
        task_name: str | None,
        task_category: str | None,
        task_description: str | None = None,
    ) -> MigrationChecklistTask:
        """Add a custom task in `pending` with neither party confirmed."""
        checklist = await self._get_checklist_or_raise(checklist_id, for_update=True)
        require_party(checklist.buyer_id, checklist.seller_id, user_id)

        name = _validate_task_name(task_name)
        category = _validate_category(task_category)

        (task,) = await self._task_repo.create_many(
            [
                MigrationChecklistTask(
                    checklist_id=checklist.id,
                    task_name=name,
                    task_category=category,
                    task_description=clean_text(task_description),
                    status=TaskStatus.PENDING.value,
                    buyer_confirmed=False,
                    seller_confirmed=False,
                )
            ]
        )

        if checklist.status == ChecklistStatus.COMPLETE:
            # A new open task means the checklist is no longer done.
            checklist.status = ChecklistStatus.IN_PROGRESS.value
            checklist.completed_at = None
            await self._checklist_repo.save(checklist)
            logger.info("migration.checklist_reopened", checklist_id=str(checklist.id))

        logger.info(
            "migration.task_added",
            checklist_id=str(checklist.id),
            task_id=str(task.id),
            category=category,
        )
        return task

    async def update_task(
        self, task_id: uuid.UUID, user_id: str, update: TaskUpdate
    ) -> MigrationChecklistTask:
        """Edit a task's descriptive fields. Status and confirmations are not editable."""
        task = await self._get_task_or_raise(task_id, for_update=True)
        checklist = await self._get_checklist_or_raise(task.checklist_id)
        require_party(checklist.buyer_id, checklist.seller_id, user_id)

        if update.task_name is not None:
            task.task_name = _validate_task_name(update.task_name)
        if update.task_category is not None:
            task.task_category = _validate_category(update.task_category)
        if update.task_description is not None:
            task.task_description = clean_text(update.task_description)
        if update.notes is not None:
            task.notes = clean_text(update.notes)
        await self._task_repo.save(task)

        logger.info("migration.task_updated", task_id=str(task.id))
        return task

    async def confirm_task(self, task_id: uuid.UUID, user_id: str) -> ConfirmationResult:
        """Record the caller's confirmation of a task.

        Idempotent per party: an existing confirmation and its timestamp are
        left untouched. Status is derived from the flags after the update.
        """
        task = await self._get_task_or_raise(task_id, for_update=True)
        checklist = await self._get_checklist_or_raise(task.checklist_id, for_update=True)
        roles = require_party(checklist.buyer_id, checklist.seller_id, user_id)

        if len(roles) > 1:
            logger.warning(
                "migration.dual_role_confirmation",
                task_id=str(task.id),
                user_id=user_id,
            )

        now = datetime.now(UTC)
        confirmed_as: list[PartyRole] = []
        if PartyRole.BUYER in roles and not task.buyer_confirmed:
            task.buyer_confirmed = True
            task.buyer_confirmed_at = now
            confirmed_as.append(PartyRole.BUYER)
        if PartyRole.SELLER in roles and not task.seller_confirmed:
            task.seller_confirmed = True
            task.seller_confirmed_at = now
            confirmed_as.append(PartyRole.SELLER)

        if not confirmed_as:
            logger.info("migration.task_already_confirmed", task_id=str(task.id))
            return ConfirmationResult(task=task, checklist=checklist, confirmed_as=[])

        previous_status = task.status
        task.status = advance_task_status(
            task.status, task.buyer_confirmed, task.seller_confirmed
        )
        if task.status == TaskStatus.COMPLETE and task.completed_at is None:
            task.completed_at = now
        await self._task_repo.save(task)

        logger.info(
            "migration.task_confirmed",
            task_id=str(task.id),
            confirmed_as=[r.value for r in confirmed_as],
            old_status=previous_status,
            new_status=task.status,
        )

        if task.status == TaskStatus.COMPLETE:
            await self._complete_checklist_if_done(checklist, user_id, now)

        return ConfirmationResult(task=task, checklist=checklist, confirmed_as=confirmed_as)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _complete_checklist_if_done(
        self, checklist: MigrationChecklist, user_id: str, now: datetime
    ) -> None:
        if checklist.status == ChecklistStatus.COMPLETE:
            return
        tasks = await self._task_repo.list_for_checklist(checklist.id)
        if not tasks or any(t.status != TaskStatus.COMPLETE for t in tasks):
            return

        checklist.status = ChecklistStatus.COMPLETE.value
        checklist.completed_at = now
        await self._checklist_repo.save(checklist)

        await self._event_repo.record(
            escrow_id=checklist.escrow_id,
            event_type=EventType.CHECKLIST_COMPLETED,
            old_status=None,
            new_status=None,
            actor=user_id,
            metadata={"checklist_id": str(checklist.id), "tasks": len(tasks)},
        )
        logger.info(
            "migration.checklist_completed",
            checklist_id=str(checklist.id),
            escrow_id=str(checklist.escrow_id),
        )

    async def _view(
        self, checklist: MigrationChecklist, roles: set[PartyRole]
    ) -> ChecklistView:
        tasks = await self._task_repo.list_for_checklist(checklist.id)
        return ChecklistView(
            checklist=checklist,
            tasks=tasks,
            user_role=_primary_role(roles),
            stats=TaskStats.from_tasks(tasks),
        )

    async def _get_checklist_or_raise(
        self, checklist_id: uuid.UUID, for_update: bool = False
    ) -> MigrationChecklist:
        checklist = await self._checklist_repo.get_by_id(checklist_id, for_update=for_update)
        if checklist is None:
            raise ChecklistNotFoundError(checklist_id)
        return checklist

    async def _get_task_or_raise(
        self, task_id: uuid.UUID, for_update: bool = False
    ) -> MigrationChecklistTask:
        task = await self._task_repo.get_by_id(task_id, for_update=for_update)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task


def _primary_role(roles: set[PartyRole]) -> PartyRole | None:
    """Buyer wins for a dual-role user; the checklist UI shows one role."""
    if PartyRole.BUYER in roles:
        return PartyRole.BUYER
    if PartyRole.SELLER in roles:
        return PartyRole.SELLER
    return None


def _validate_task_name(task_name: str | None) -> str:
    name = (task_name or "").strip()
    if not name:
        raise InvalidInputError("Task name must not be empty", "INVALID_TASK_NAME")
    if len(name) > TASK_NAME_MAX_LENGTH:
        raise InvalidInputError(
            f"Task name must be at most {TASK_NAME_MAX_LENGTH} characters", "INVALID_TASK_NAME"
        )
    return name


def _validate_category(task_category: str | None) -> str:
    valid = [c.value for c in TaskCategory]
    if task_category not in valid:
        raise InvalidInputError(
            f"Invalid task category '{task_category}'. Must be one of: {', '.join(valid)}",
            "INVALID_TASK_CATEGORY_VALUE",
        )
    return task_category
