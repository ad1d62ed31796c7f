"""Application services — use case orchestration."""

from business_escrow.services.escrow_service import EscrowService
from business_escrow.services.fee_service import FeeService
from business_escrow.services.migration_service import MigrationService
from business_escrow.services.webhook_service import WebhookService

__all__ = ["EscrowService", "FeeService", "MigrationService", "WebhookService"]
