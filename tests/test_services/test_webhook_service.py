"""Tests for WebhookService: provider callbacks authenticated by the escrow's secret."""

from __future__ import annotations

import pytest
from conftest import ESCROW_REFERENCE_ID

from business_escrow.domain.exceptions import (
    EscrowNotFoundError,
    InvalidInputError,
    WebhookAuthenticationError,
)
from business_escrow.infrastructure.database.repositories import EventRepository
from business_escrow.services.webhook_service import WebhookService, map_webhook_status


class TestStatusMapping:
    @pytest.mark.parametrize(
        ("provider", "stored"),
        [
            ("funded", "funded"),
            ("FUNDED", "funded"),
            ("migration_started", "migration_in_progress"),
            ("completed", "completed"),
            ("released", "released"),
            ("cancelled", "cancelled"),
            ("disputed", "disputed"),
        ],
    )
    def test_known_statuses(self, provider: str, stored: str) -> None:
        assert map_webhook_status(provider) == stored

    def test_unknown_status_passes_through(self) -> None:
        assert map_webhook_status("Inspection_Period") == "Inspection_Period"


class TestHandle:
    @pytest.mark.asyncio
    async def test_applies_status_and_milestone(self, db_session, escrow) -> None:
        svc = WebhookService(db_session)
        result = await svc.handle(
            escrow_reference_id=ESCROW_REFERENCE_ID,
            status="funded",
            webhook_secret=escrow.webhook_secret,
            event_type="payment_received",
        )

        assert result.success is True
        assert result.message == "Webhook processed successfully"
        assert result.previous_status == "initiated"
        assert result.new_status == "funded"
        assert escrow.status == "funded"
        assert escrow.funded_at is not None
        assert "Webhook received: payment_received - Status changed to funded" in escrow.notes

    @pytest.mark.asyncio
    async def test_duplicate_delivery_is_harmless(self, db_session, escrow) -> None:
        svc = WebhookService(db_session)
        await svc.handle(ESCROW_REFERENCE_ID, "funded", escrow.webhook_secret)
        funded_at = escrow.funded_at

        await svc.handle(ESCROW_REFERENCE_ID, "funded", escrow.webhook_secret)

        assert escrow.status == "funded"
        assert escrow.funded_at == funded_at
        assert len(escrow.notes.splitlines()) == 2

        events = await EventRepository(db_session).get_by_escrow(escrow.id)
        webhook_events = [e for e in events if e.event_type == "WEBHOOK_RECEIVED"]
        assert len(webhook_events) == 2
        assert all(e.actor == "WEBHOOK" for e in webhook_events)

    @pytest.mark.asyncio
    async def test_bypasses_forward_only_guard(self, db_session, escrow) -> None:
        svc = WebhookService(db_session)
        await svc.handle(ESCROW_REFERENCE_ID, "released", escrow.webhook_secret)
        result = await svc.handle(ESCROW_REFERENCE_ID, "funded", escrow.webhook_secret)
        assert result.previous_status == "released"
        assert escrow.status == "funded"

    @pytest.mark.asyncio
    async def test_legacy_vocabulary_stamps_milestones(self, db_session, escrow) -> None:
        svc = WebhookService(db_session)
        await svc.handle(ESCROW_REFERENCE_ID, "migration_started", escrow.webhook_secret)
        assert escrow.status == "migration_in_progress"
        assert escrow.migration_started_at is not None
        assert escrow.notes.endswith("Status changed to migration_started")

        await svc.handle(ESCROW_REFERENCE_ID, "completed", escrow.webhook_secret)
        assert escrow.status == "completed"
        assert escrow.completed_at is not None

    @pytest.mark.asyncio
    async def test_unknown_status_stored_verbatim(self, db_session, escrow) -> None:
        svc = WebhookService(db_session)
        result = await svc.handle(ESCROW_REFERENCE_ID, "on_hold", escrow.webhook_secret)
        assert result.new_status == "on_hold"
        assert escrow.status == "on_hold"

    @pytest.mark.asyncio
    async def test_wrong_secret_rejected(self, db_session, escrow) -> None:
        svc = WebhookService(db_session)
        with pytest.raises(WebhookAuthenticationError) as exc_info:
            await svc.handle(ESCROW_REFERENCE_ID, "funded", "0" * 64)

        assert exc_info.value.code == "INVALID_WEBHOOK_SECRET"
        assert escrow.webhook_secret not in exc_info.value.message
        assert escrow.status == "initiated"
        assert escrow.funded_at is None
        assert escrow.notes is None

        events = await EventRepository(db_session).get_by_escrow(escrow.id)
        assert [e.event_type for e in events] == ["ESCROW_CREATED"]

    @pytest.mark.asyncio
    async def test_unknown_reference(self, db_session, escrow) -> None:
        svc = WebhookService(db_session)
        with pytest.raises(EscrowNotFoundError):
            await svc.handle("NO-SUCH-REF", "funded", escrow.webhook_secret)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("reference", "status", "secret", "code"),
        [
            (None, "funded", "s", "MISSING_ESCROW_REFERENCE_ID"),
            (ESCROW_REFERENCE_ID, None, "s", "MISSING_STATUS"),
            (ESCROW_REFERENCE_ID, "funded", None, "MISSING_WEBHOOK_SECRET"),
        ],
    )
    async def test_missing_fields(self, db_session, reference, status, secret, code) -> None:
        svc = WebhookService(db_session)
        with pytest.raises(InvalidInputError) as exc_info:
            await svc.handle(reference, status, secret)
        assert exc_info.value.code == code

    @pytest.mark.asyncio
    async def test_audit_payload_omits_secret(self, db_session, escrow) -> None:
        svc = WebhookService(db_session)
        await svc.handle(
            ESCROW_REFERENCE_ID,
            "funded",
            escrow.webhook_secret,
            payload={"status": "funded", "webhook_secret": escrow.webhook_secret, "amount": 1},
        )

        events = await EventRepository(db_session).get_by_escrow(escrow.id)
        (event,) = [e for e in events if e.event_type == "WEBHOOK_RECEIVED"]
        assert event.metadata_json["payload"] == {"status": "funded", "amount": 1}

    @pytest.mark.asyncio
    async def test_audit_payload_omits_nested_secret(self, db_session, escrow) -> None:
        svc = WebhookService(db_session)
        await svc.handle(
            ESCROW_REFERENCE_ID,
            "funded",
            escrow.webhook_secret,
            payload={
                "data": {"webhook_secret": "leak", "items": [{"webhook_secret": "x", "id": 7}]}
            },
        )

        events = await EventRepository(db_session).get_by_escrow(escrow.id)
        (event,) = [e for e in events if e.event_type == "WEBHOOK_RECEIVED"]
        assert event.metadata_json["payload"] == {"data": {"items": [{"id": 7}]}}
