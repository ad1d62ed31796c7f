"""Pydantic API schemas."""

from business_escrow.schemas.common import (
    CamelModel,
    ErrorResponse,
    HealthResponse,
    PaginationInfo,
)
from business_escrow.schemas.escrow import (
    CreateEscrowRequest,
    EscrowCreatedResponse,
    EscrowDetailResponse,
    EscrowListResponse,
    EscrowResponse,
    UpdateStatusRequest,
    WebhookRequest,
    WebhookResponse,
)
from business_escrow.schemas.fees import (
    EscrowFeeResponse,
    EscrowReferenceRequest,
    FeeBreakdownResponse,
    FeeCalculateRequest,
    FeeInvoiceResponse,
    FeeTransferResponse,
)
from business_escrow.schemas.migration import (
    AddTaskRequest,
    ChecklistDetailResponse,
    ChecklistListResponse,
    CreateChecklistRequest,
    TaskConfirmResponse,
    TaskResponse,
    UpdateTaskRequest,
)

__all__ = [
    "CamelModel",
    "ErrorResponse",
    "HealthResponse",
    "PaginationInfo",
    "CreateEscrowRequest",
    "EscrowCreatedResponse",
    "EscrowDetailResponse",
    "EscrowListResponse",
    "EscrowResponse",
    "UpdateStatusRequest",
    "WebhookRequest",
    "WebhookResponse",
    "EscrowFeeResponse",
    "EscrowReferenceRequest",
    "FeeBreakdownResponse",
    "FeeCalculateRequest",
    "FeeInvoiceResponse",
    "FeeTransferResponse",
    "AddTaskRequest",
    "ChecklistDetailResponse",
    "ChecklistListResponse",
    "CreateChecklistRequest",
    "TaskConfirmResponse",
    "TaskResponse",
    "UpdateTaskRequest",
]
