"""Migration checklist REST API routes.

Routes:
    POST   /api/migration                           — Open the checklist for a funded escrow
    GET    /api/migration                           — List the caller's checklists with stats
    GET    /api/migration/escrow/{escrow_id}        — Checklist of an escrow
    GET    /api/migration/{checklist_id}            — Checklist by id, grouped by category
    POST   /api/migration/{checklist_id}/tasks      — Add a custom task
    PATCH  /api/migration/tasks/{task_id}           — Edit a task's descriptive fields
    POST   /api/migration/tasks/{task_id}/confirm   — Confirm a task as buyer and/or seller
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from business_escrow.api.deps import get_app_settings, get_current_user, get_db_session
from business_escrow.config import Settings
from business_escrow.domain.exceptions import InvalidInputError
from business_escrow.domain.ports import CurrentUser
from business_escrow.schemas.common import PaginationInfo
from business_escrow.schemas.migration import (
    AddTaskRequest,
    ChecklistDetailResponse,
    ChecklistListResponse,
    ChecklistResponse,
    ChecklistSummaryResponse,
    CreateChecklistRequest,
    TaskConfirmResponse,
    TaskResponse,
    TaskStatsResponse,
    UpdateTaskRequest,
)
from business_escrow.services.escrow_service import clamp_limit
from business_escrow.services.migration_service import (
    ChecklistView,
    MigrationService,
    TaskUpdate,
)

router = APIRouter(prefix="/api/migration", tags=["Migration"])


def _detail(view: ChecklistView) -> ChecklistDetailResponse:
    base = ChecklistResponse.model_validate(view.checklist).model_dump()
    return ChecklistDetailResponse(
        **base,
        tasks=[TaskResponse.model_validate(t) for t in view.tasks],
        tasks_by_category={
            category: [TaskResponse.model_validate(t) for t in tasks]
            for category, tasks in view.tasks_by_category.items()
        },
        stats=TaskStatsResponse.model_validate(view.stats),
        user_role=view.user_role.value if view.user_role else None,
    )


# ---------------------------------------------------------------------------
# Checklists
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=ChecklistDetailResponse,
    status_code=201,
    summary="Create a migration checklist",
)
async def create_checklist(
    request: CreateChecklistRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ChecklistDetailResponse:
    """Open a checklist seeded with the default handover tasks."""
    svc = MigrationService(session)
    view = await svc.create_checklist(request.escrow_id, user.id)
    return _detail(view)


@router.get(
    "",
    response_model=ChecklistListResponse,
    summary="List the caller's checklists",
)
async def list_checklists(
    status: str | None = Query(default=None),
    limit: int | None = Query(default=None),
    offset: int = Query(default=0),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> ChecklistListResponse:
    limit = clamp_limit(limit, settings)
    offset = max(offset, 0)
    svc = MigrationService(session, settings=settings)
    views = await svc.list_for_user(user.id, status=status, limit=limit, offset=offset)
    return ChecklistListResponse(
        checklists=[
            ChecklistSummaryResponse(
                **ChecklistResponse.model_validate(v.checklist).model_dump(),
                stats=TaskStatsResponse.model_validate(v.stats),
                user_role=v.user_role.value if v.user_role else None,
            )
            for v in views
        ],
        pagination=PaginationInfo(limit=limit, offset=offset, count=len(views)),
    )


@router.get(
    "/escrow/{escrow_id}",
    response_model=ChecklistDetailResponse,
    summary="Get the checklist of an escrow",
)
async def get_checklist_by_escrow(
    escrow_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ChecklistDetailResponse:
    svc = MigrationService(session)
    return _detail(await svc.get_by_escrow(escrow_id, user.id))


@router.get(
    "/{checklist_id}",
    response_model=ChecklistDetailResponse,
    summary="Get a checklist",
)
async def get_checklist(
    checklist_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> ChecklistDetailResponse:
    svc = MigrationService(session)
    return _detail(await svc.get_by_id(checklist_id, user.id))


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@router.post(
    "/{checklist_id}/tasks",
    response_model=TaskResponse,
    status_code=201,
    summary="Add a task",
)
async def add_task(
    checklist_id: uuid.UUID,
    request: AddTaskRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> TaskResponse:
    svc = MigrationService(session)
    task = await svc.add_task(
        checklist_id=checklist_id,
        user_id=user.id,
        task_name=request.task_name,
        task_category=request.task_category,
        task_description=request.task_description,
    )
    return TaskResponse.model_validate(task)


@router.patch(
    "/tasks/{task_id}",
    response_model=TaskResponse,
    summary="Edit a task",
)
async def update_task(
    task_id: uuid.UUID,
    request: UpdateTaskRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> TaskResponse:
    """Edit name, category, description or notes. Confirmations go through /confirm."""
    protected = request.protected_keys()
    if "status" in protected:
        raise InvalidInputError(
            "Task status is derived from confirmations and cannot be set", "STATUS_NOT_SETTABLE"
        )
    if protected:
        raise InvalidInputError(
            f"Fields cannot be set directly: {', '.join(sorted(protected))}",
            "CONFIRMATION_NOT_ALLOWED",
        )

    svc = MigrationService(session)
    task = await svc.update_task(
        task_id,
        user.id,
        TaskUpdate(
            task_name=request.task_name,
            task_category=request.task_category,
            task_description=request.task_description,
            notes=request.notes,
        ),
    )
    return TaskResponse.model_validate(task)


@router.post(
    "/tasks/{task_id}/confirm",
    response_model=TaskConfirmResponse,
    summary="Confirm a task",
)
async def confirm_task(
    task_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> TaskConfirmResponse:
    """Record the caller's confirmation. The task completes once both parties confirm."""
    svc = MigrationService(session)
    result = await svc.confirm_task(task_id, user.id)
    return TaskConfirmResponse(
        task=TaskResponse.model_validate(result.task),
        confirmed_as=[role.value for role in result.confirmed_as],
        checklist_status=result.checklist.status,
        checklist_completed=result.checklist.completed_at is not None,
    )
