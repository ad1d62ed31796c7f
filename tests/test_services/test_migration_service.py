"""Tests for MigrationService: checklists, tasks and dual confirmation."""

from __future__ import annotations

import uuid

import pytest
import pytest_asyncio
from conftest import BUYER_ID, ESCROW_REFERENCE_ID, LISTING_ID, OUTSIDER_ID, SELLER_ID

from business_escrow.domain.exceptions import (
    ChecklistAlreadyExistsError,
    ChecklistNotFoundError,
    EscrowNotFoundError,
    ForbiddenError,
    InvalidInputError,
    InvalidTransitionError,
    TaskNotFoundError,
)
from business_escrow.infrastructure.database.orm_models import (
    MigrationChecklist,
    MigrationChecklistTask,
)
from business_escrow.infrastructure.database.repositories import EventRepository
from business_escrow.services.escrow_service import EscrowService
from business_escrow.services.migration_service import (
    DEFAULT_TASKS,
    MigrationService,
    TaskUpdate,
)
from business_escrow.services.webhook_service import WebhookService


@pytest_asyncio.fixture
async def three_task_checklist(db_session, funded_escrow) -> MigrationChecklist:
    """A checklist with exactly three pending tasks."""
    checklist = MigrationChecklist(
        escrow_id=funded_escrow.id,
        listing_id=funded_escrow.listing_id,
        buyer_id=funded_escrow.buyer_id,
        seller_id=funded_escrow.seller_id,
        status="in_progress",
    )
    db_session.add(checklist)
    await db_session.flush()
    db_session.add_all(
        [
            MigrationChecklistTask(
                checklist_id=checklist.id,
                task_name=name,
                task_category=category,
                status="pending",
                buyer_confirmed=False,
                seller_confirmed=False,
            )
            for category, name in [
                ("domain", "Transfer domain"),
                ("hosting", "Move hosting"),
                ("code", "Hand over repository"),
            ]
        ]
    )
    await db_session.commit()
    return checklist


class TestCreateChecklist:
    @pytest.mark.asyncio
    async def test_seeds_default_tasks(self, db_session, settings, funded_escrow) -> None:
        svc = MigrationService(db_session, settings=settings)
        view = await svc.create_checklist(funded_escrow.id, BUYER_ID)

        assert view.checklist.status == "in_progress"
        assert view.checklist.buyer_id == BUYER_ID
        assert view.checklist.seller_id == SELLER_ID
        assert view.checklist.listing_id == LISTING_ID
        assert len(view.tasks) == len(DEFAULT_TASKS) == 8
        assert all(t.status == "pending" for t in view.tasks)
        assert not any(t.buyer_confirmed or t.seller_confirmed for t in view.tasks)
        assert view.stats.total == 8
        assert view.stats.pending == 8
        assert view.user_role == "buyer"
        assert set(view.tasks_by_category) == {
            "domain",
            "hosting",
            "code",
            "payments",
            "ads",
            "inventory",
        }
        assert len(view.tasks_by_category["domain"]) == 2

        events = await EventRepository(db_session).get_by_escrow(funded_escrow.id)
        assert "CHECKLIST_CREATED" in {e.event_type for e in events}

    @pytest.mark.asyncio
    async def test_allowed_in_migration(self, db_session, settings, funded_escrow) -> None:
        await EscrowService(db_session, settings=settings).update_status(
            funded_escrow.id, "in_migration", SELLER_ID
        )
        svc = MigrationService(db_session, settings=settings)
        view = await svc.create_checklist(funded_escrow.id, SELLER_ID)
        assert view.user_role == "seller"

    @pytest.mark.asyncio
    async def test_allowed_after_provider_reports_migration_started(
        self, db_session, settings, escrow
    ) -> None:
        webhooks = WebhookService(db_session)
        await webhooks.handle(ESCROW_REFERENCE_ID, "funded", escrow.webhook_secret)
        await webhooks.handle(ESCROW_REFERENCE_ID, "migration_started", escrow.webhook_secret)
        assert escrow.status == "migration_in_progress"

        svc = MigrationService(db_session, settings=settings)
        view = await svc.create_checklist(escrow.id, BUYER_ID)
        assert len(view.tasks) == 8

    @pytest.mark.asyncio
    async def test_requires_funded_escrow(self, db_session, settings, escrow) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(InvalidTransitionError) as exc_info:
            await svc.create_checklist(escrow.id, BUYER_ID)
        assert exc_info.value.code == "INVALID_ESCROW_STATUS"

    @pytest.mark.asyncio
    async def test_one_checklist_per_escrow(self, db_session, settings, funded_escrow) -> None:
        svc = MigrationService(db_session, settings=settings)
        await svc.create_checklist(funded_escrow.id, BUYER_ID)
        with pytest.raises(ChecklistAlreadyExistsError):
            await svc.create_checklist(funded_escrow.id, SELLER_ID)

    @pytest.mark.asyncio
    async def test_outsider_forbidden(self, db_session, settings, funded_escrow) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(ForbiddenError):
            await svc.create_checklist(funded_escrow.id, OUTSIDER_ID)

    @pytest.mark.asyncio
    async def test_missing_escrow(self, db_session, settings) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(EscrowNotFoundError):
            await svc.create_checklist(uuid.uuid4(), BUYER_ID)


class TestReadChecklists:
    @pytest.mark.asyncio
    async def test_get_by_escrow_and_id(self, db_session, settings, funded_escrow) -> None:
        svc = MigrationService(db_session, settings=settings)
        created = await svc.create_checklist(funded_escrow.id, BUYER_ID)

        by_escrow = await svc.get_by_escrow(funded_escrow.id, SELLER_ID)
        by_id = await svc.get_by_id(created.checklist.id, SELLER_ID)
        assert by_escrow.checklist.id == by_id.checklist.id == created.checklist.id
        assert by_id.user_role == "seller"

    @pytest.mark.asyncio
    async def test_get_by_escrow_without_checklist(
        self, db_session, settings, funded_escrow
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(ChecklistNotFoundError):
            await svc.get_by_escrow(funded_escrow.id, BUYER_ID)

    @pytest.mark.asyncio
    async def test_get_by_id_outsider_forbidden(
        self, db_session, settings, three_task_checklist
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(ForbiddenError):
            await svc.get_by_id(three_task_checklist.id, OUTSIDER_ID)

    @pytest.mark.asyncio
    async def test_list_for_user_with_stats(
        self, db_session, settings, three_task_checklist
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        views = await svc.list_for_user(BUYER_ID)

        assert [v.checklist.id for v in views] == [three_task_checklist.id]
        assert views[0].stats.total == 3
        assert views[0].stats.pending == 3
        assert await svc.list_for_user(OUTSIDER_ID) == []
        assert await svc.list_for_user(BUYER_ID, status="complete") == []

    @pytest.mark.asyncio
    async def test_list_rejects_unknown_status(self, db_session, settings) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(InvalidInputError):
            await svc.list_for_user(BUYER_ID, status="archived")


class TestTasks:
    @pytest.mark.asyncio
    async def test_add_task(self, db_session, settings, three_task_checklist) -> None:
        svc = MigrationService(db_session, settings=settings)
        task = await svc.add_task(
            three_task_checklist.id,
            SELLER_ID,
            task_name="  Transfer newsletter list  ",
            task_category="other",
            task_description="Export subscribers",
        )
        assert task.task_name == "Transfer newsletter list"
        assert task.status == "pending"
        assert task.buyer_confirmed is False
        assert task.seller_confirmed is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", [None, "", "   ", "x" * 256])
    async def test_add_task_invalid_name(
        self, db_session, settings, three_task_checklist, name
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(InvalidInputError) as exc_info:
            await svc.add_task(three_task_checklist.id, BUYER_ID, name, "other")
        assert exc_info.value.code == "INVALID_TASK_NAME"

    @pytest.mark.asyncio
    async def test_add_task_invalid_category(
        self, db_session, settings, three_task_checklist
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(InvalidInputError) as exc_info:
            await svc.add_task(three_task_checklist.id, BUYER_ID, "Transfer app", "mobile")
        assert exc_info.value.code == "INVALID_TASK_CATEGORY_VALUE"

    @pytest.mark.asyncio
    async def test_add_task_outsider_forbidden(
        self, db_session, settings, three_task_checklist
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(ForbiddenError):
            await svc.add_task(three_task_checklist.id, OUTSIDER_ID, "Sneaky", "other")

    @pytest.mark.asyncio
    async def test_update_task_fields(self, db_session, settings, three_task_checklist) -> None:
        svc = MigrationService(db_session, settings=settings)
        tasks = (await svc.get_by_id(three_task_checklist.id, BUYER_ID)).tasks

        updated = await svc.update_task(
            tasks[0].id,
            BUYER_ID,
            TaskUpdate(task_name="Renamed", notes="Registrar is Namecheap"),
        )
        assert updated.task_name == "Renamed"
        assert updated.notes == "Registrar is Namecheap"
        assert updated.status == "pending"
        assert updated.buyer_confirmed is False

    @pytest.mark.asyncio
    async def test_update_missing_task(self, db_session, settings) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(TaskNotFoundError):
            await svc.update_task(uuid.uuid4(), BUYER_ID, TaskUpdate(notes="x"))


class TestDualConfirmation:
    """A task completes only when both buyer and seller have confirmed it."""

    @pytest.mark.asyncio
    async def test_checklist_completes_after_last_confirmation(
        self, db_session, settings, three_task_checklist
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        tasks = (await svc.get_by_id(three_task_checklist.id, BUYER_ID)).tasks
        assert len(tasks) == 3

        for task in tasks:
            result = await svc.confirm_task(task.id, BUYER_ID)
            assert result.confirmed_as == ["buyer"]
            assert result.task.status == "in_progress"

        for task in tasks[:2]:
            result = await svc.confirm_task(task.id, SELLER_ID)
            assert result.task.status == "complete"
            assert result.task.completed_at is not None

        view = await svc.get_by_id(three_task_checklist.id, SELLER_ID)
        assert view.checklist.status == "in_progress"
        assert view.stats.completed == 2
        assert view.stats.in_progress == 1

        result = await svc.confirm_task(tasks[2].id, SELLER_ID)
        assert result.task.status == "complete"
        assert result.checklist.status == "complete"
        assert result.checklist.completed_at is not None

        events = await EventRepository(db_session).get_by_escrow(three_task_checklist.escrow_id)
        completed = [e for e in events if e.event_type == "CHECKLIST_COMPLETED"]
        assert len(completed) == 1
        assert completed[0].old_status is None
        assert completed[0].new_status is None

    @pytest.mark.asyncio
    async def test_checklist_completion_leaves_escrow_status(
        self, db_session, settings, three_task_checklist, funded_escrow
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        tasks = (await svc.get_by_id(three_task_checklist.id, BUYER_ID)).tasks
        for task in tasks:
            await svc.confirm_task(task.id, BUYER_ID)
            await svc.confirm_task(task.id, SELLER_ID)

        assert funded_escrow.status == "funded"

    @pytest.mark.asyncio
    async def test_repeat_confirmation_is_noop(
        self, db_session, settings, three_task_checklist
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        task = (await svc.get_by_id(three_task_checklist.id, BUYER_ID)).tasks[0]

        first = await svc.confirm_task(task.id, BUYER_ID)
        confirmed_at = first.task.buyer_confirmed_at
        second = await svc.confirm_task(task.id, BUYER_ID)

        assert second.confirmed_as == []
        assert second.task.status == "in_progress"
        assert second.task.buyer_confirmed_at == confirmed_at
        assert second.task.seller_confirmed is False

    @pytest.mark.asyncio
    async def test_confirming_completed_task_changes_nothing(
        self, db_session, settings, three_task_checklist
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        task = (await svc.get_by_id(three_task_checklist.id, BUYER_ID)).tasks[0]
        await svc.confirm_task(task.id, BUYER_ID)
        done = (await svc.confirm_task(task.id, SELLER_ID)).task
        stamps = (done.completed_at, done.buyer_confirmed_at, done.seller_confirmed_at)
        assert done.status == "complete"

        for user_id in (BUYER_ID, SELLER_ID):
            again = await svc.confirm_task(task.id, user_id)
            assert again.confirmed_as == []
            assert again.task.status == "complete"
            assert (
                again.task.completed_at,
                again.task.buyer_confirmed_at,
                again.task.seller_confirmed_at,
            ) == stamps

    @pytest.mark.asyncio
    async def test_seller_first(self, db_session, settings, three_task_checklist) -> None:
        svc = MigrationService(db_session, settings=settings)
        task = (await svc.get_by_id(three_task_checklist.id, BUYER_ID)).tasks[0]

        result = await svc.confirm_task(task.id, SELLER_ID)
        assert result.confirmed_as == ["seller"]
        assert result.task.seller_confirmed is True
        assert result.task.buyer_confirmed is False
        assert result.task.status == "in_progress"

    @pytest.mark.asyncio
    async def test_outsider_cannot_confirm(
        self, db_session, settings, three_task_checklist
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        task = (await svc.get_by_id(three_task_checklist.id, BUYER_ID)).tasks[0]

        with pytest.raises(ForbiddenError):
            await svc.confirm_task(task.id, OUTSIDER_ID)
        assert task.buyer_confirmed is False
        assert task.seller_confirmed is False

    @pytest.mark.asyncio
    async def test_missing_task(self, db_session, settings) -> None:
        svc = MigrationService(db_session, settings=settings)
        with pytest.raises(TaskNotFoundError):
            await svc.confirm_task(uuid.uuid4(), BUYER_ID)

    @pytest.mark.asyncio
    async def test_dual_role_user_confirms_both_sides(self, db_session, settings) -> None:
        escrows = EscrowService(db_session, settings=settings)
        escrow = await escrows.create_escrow(SELLER_ID, LISTING_ID, SELLER_ID, 10_000)
        await escrows.update_status(escrow.id, "funded", SELLER_ID)

        svc = MigrationService(db_session, settings=settings)
        view = await svc.create_checklist(escrow.id, SELLER_ID)
        assert view.user_role == "buyer"

        result = await svc.confirm_task(view.tasks[0].id, SELLER_ID)
        assert result.confirmed_as == ["buyer", "seller"]
        assert result.task.status == "complete"

    @pytest.mark.asyncio
    async def test_new_task_reopens_completed_checklist(
        self, db_session, settings, three_task_checklist
    ) -> None:
        svc = MigrationService(db_session, settings=settings)
        tasks = (await svc.get_by_id(three_task_checklist.id, BUYER_ID)).tasks
        for task in tasks:
            await svc.confirm_task(task.id, BUYER_ID)
            await svc.confirm_task(task.id, SELLER_ID)
        assert three_task_checklist.status == "complete"

        await svc.add_task(three_task_checklist.id, BUYER_ID, "Late addition", "other")
        assert three_task_checklist.status == "in_progress"
        assert three_task_checklist.completed_at is None
