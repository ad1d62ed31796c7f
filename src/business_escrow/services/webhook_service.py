"""Webhook ingress for the external escrow provider.

The provider authenticates each callback with the per-transaction
`webhook_secret` returned at creation. Webhook status changes bypass the
forward-only guard: the provider is the system of record for money, so
its word is applied as-is.

Status mapping (input is lower-cased first, unknown values pass through):
    initiated          -> initiated
    funded             -> funded
    migration_started  -> migration_in_progress
    completed          -> completed
    released           -> released
    cancelled          -> cancelled
    disputed           -> disputed
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from business_escrow.domain.enums import EventType
from business_escrow.domain.exceptions import (
    EscrowNotFoundError,
    InvalidInputError,
    WebhookAuthenticationError,
)
from business_escrow.infrastructure.database.repositories import (
    EscrowRepository,
    EventRepository,
)
from business_escrow.logging_config import get_logger
from business_escrow.services.escrow_service import append_note, stamp_milestone

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

WEBHOOK_ACTOR = "WEBHOOK"
DEFAULT_EVENT_TYPE = "status_update"

WEBHOOK_STATUS_MAP: dict[str, str] = {
    "initiated": "initiated",
    "funded": "funded",
    "migration_started": "migration_in_progress",
    "completed": "completed",
    "released": "released",
    "cancelled": "cancelled",
    "disputed": "disputed",
}


def map_webhook_status(status: str) -> str:
    """Translate a provider status into the stored status value."""
    return WEBHOOK_STATUS_MAP.get(status.lower(), status)


@dataclass(frozen=True)
class WebhookResult:
    success: bool
    message: str
    escrow_id: uuid.UUID
    previous_status: str
    new_status: str
    event_type: str
    processed_at: datetime


class WebhookService:
    """Applies authenticated provider callbacks to escrow transactions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._escrow_repo = EscrowRepository(session)
        self._event_repo = EventRepository(session)

    async def handle(
        self,
        escrow_reference_id: str | None,
        status: str | None,
        webhook_secret: str | None,
        event_type: str | None = None,
        payload: dict | None = None,
    ) -> WebhookResult:
        """Authenticate and apply one provider callback.

        Duplicate deliveries are harmless: milestone timestamps are only set
        once, so a replay adds a note line and an audit row and nothing else.
        """
        if not escrow_reference_id:
            raise InvalidInputError(
                "escrow_reference_id is required", "MISSING_ESCROW_REFERENCE_ID"
            )
        if not status:
            raise InvalidInputError("status is required", "MISSING_STATUS")
        if not webhook_secret:
            raise InvalidInputError("webhook_secret is required", "MISSING_WEBHOOK_SECRET")

        escrow = await self._escrow_repo.get_by_reference(escrow_reference_id, for_update=True)
        if escrow is None:
            logger.warning("webhook.unknown_reference", reference_id=escrow_reference_id)
            raise EscrowNotFoundError(escrow_reference_id)

        if not hmac.compare_digest(
            escrow.webhook_secret.encode("utf-8"), webhook_secret.encode("utf-8")
        ):
            logger.warning(
                "webhook.secret_mismatch",
                escrow_id=str(escrow.id),
                reference_id=escrow_reference_id,
            )
            raise WebhookAuthenticationError()

        previous_status = escrow.status
        new_status = map_webhook_status(status)
        label = event_type or DEFAULT_EVENT_TYPE
        now = datetime.now(UTC)

        escrow.status = new_status
        stamp_milestone(escrow, new_status, now)
        escrow.notes = append_note(
            escrow.notes,
            f"[{now.isoformat()}] Webhook received: {label} - Status changed to {status}",
        )
        await self._escrow_repo.save(escrow)

        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=EventType.WEBHOOK_RECEIVED,
            old_status=previous_status,
            new_status=new_status,
            actor=WEBHOOK_ACTOR,
            metadata={
                "provider_status": status,
                "event_type": label,
                "payload": _strip_secret(payload),
            },
        )

        logger.info(
            "webhook.applied",
            escrow_id=str(escrow.id),
            previous_status=previous_status,
            new_status=new_status,
            event_type=label,
        )
        return WebhookResult(
            success=True,
            message="Webhook processed successfully",
            escrow_id=escrow.id,
            previous_status=previous_status,
            new_status=new_status,
            event_type=label,
            processed_at=now,
        )


def _strip_secret(payload: Any) -> Any:
    """Drop every `webhook_secret` key, at any depth, before the payload is stored."""
    if isinstance(payload, dict):
        return {k: _strip_secret(v) for k, v in payload.items() if k != "webhook_secret"}
    if isinstance(payload, list):
        return [_strip_secret(item) for item in payload]
    return payload
