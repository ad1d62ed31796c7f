"""Pydantic schemas for the migration checklist API."""

from __future__ import annotations

import uuid  # noqa: TC003 - pydantic resolves annotations at runtime
from datetime import datetime  # noqa: TC003

from pydantic import ConfigDict, Field

from business_escrow.schemas.common import CamelModel, PaginationInfo

# Body keys a party may never write on a task; they are derived server-side.
PROTECTED_TASK_KEYS = frozenset(
    {
        "status",
        "buyerConfirmed",
        "buyer_confirmed",
        "sellerConfirmed",
        "seller_confirmed",
        "buyerConfirmedAt",
        "buyer_confirmed_at",
        "sellerConfirmedAt",
        "seller_confirmed_at",
        "completedAt",
        "completed_at",
        "buyerId",
        "buyer_id",
        "sellerId",
        "seller_id",
    }
)

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateChecklistRequest(CamelModel):
    escrow_id: uuid.UUID


class AddTaskRequest(CamelModel):
    task_name: str | None = Field(default=None, examples=["Transfer newsletter list"])
    task_category: str | None = Field(
        default=None,
        description="domain, hosting, code, payments, ads, inventory or other",
    )
    task_description: str | None = None


class UpdateTaskRequest(CamelModel):
    """Editable task fields. Unknown keys are captured to reject protected ones."""

    model_config = ConfigDict(extra="allow")

    task_name: str | None = None
    task_category: str | None = None
    task_description: str | None = None
    notes: str | None = None

    def protected_keys(self) -> set[str]:
        return PROTECTED_TASK_KEYS.intersection(self.model_extra or {})


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class TaskResponse(CamelModel):
    id: uuid.UUID
    checklist_id: uuid.UUID
    task_name: str
    task_category: str
    task_description: str | None
    status: str
    buyer_confirmed: bool
    buyer_confirmed_at: datetime | None
    seller_confirmed: bool
    seller_confirmed_at: datetime | None
    notes: str | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class TaskStatsResponse(CamelModel):
    total: int
    completed: int
    in_progress: int
    pending: int


class ChecklistResponse(CamelModel):
    id: uuid.UUID
    escrow_id: uuid.UUID
    listing_id: int
    buyer_id: str
    seller_id: str
    status: str
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ChecklistDetailResponse(ChecklistResponse):
    tasks: list[TaskResponse]
    tasks_by_category: dict[str, list[TaskResponse]]
    stats: TaskStatsResponse
    user_role: str | None = None


class ChecklistSummaryResponse(ChecklistResponse):
    stats: TaskStatsResponse
    user_role: str | None = None


class ChecklistListResponse(CamelModel):
    checklists: list[ChecklistSummaryResponse]
    pagination: PaginationInfo


class TaskConfirmResponse(CamelModel):
    task: TaskResponse
    confirmed_as: list[str]
    checklist_status: str
    checklist_completed: bool
