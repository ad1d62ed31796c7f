"""HTTP tests for the migration checklist routes."""

from __future__ import annotations

import pytest
from conftest import (
    BUYER_TOKEN,
    LISTING_ID,
    OUTSIDER_TOKEN,
    SELLER_ID,
    SELLER_TOKEN,
    auth,
)


async def _funded_escrow(client) -> str:
    created = await client.post(
        "/api/escrow",
        json={"listingId": LISTING_ID, "sellerId": SELLER_ID, "escrowAmount": 500_000},
        headers=auth(BUYER_TOKEN),
    )
    assert created.status_code == 201, created.text
    escrow_id = created.json()["id"]
    funded = await client.patch(
        f"/api/escrow/{escrow_id}/status", json={"status": "funded"}, headers=auth(BUYER_TOKEN)
    )
    assert funded.status_code == 200, funded.text
    return escrow_id


async def _checklist(client) -> dict:
    escrow_id = await _funded_escrow(client)
    response = await client.post(
        "/api/migration", json={"escrowId": escrow_id}, headers=auth(SELLER_TOKEN)
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestChecklists:
    @pytest.mark.asyncio
    async def test_create_checklist(self, client) -> None:
        body = await _checklist(client)

        assert body["status"] == "in_progress"
        assert body["userRole"] == "seller"
        assert len(body["tasks"]) == 8
        assert body["stats"] == {"total": 8, "completed": 0, "inProgress": 0, "pending": 8}
        assert len(body["tasksByCategory"]["domain"]) == 2

    @pytest.mark.asyncio
    async def test_create_requires_funded_escrow(self, client) -> None:
        created = await client.post(
            "/api/escrow",
            json={"listingId": LISTING_ID, "sellerId": SELLER_ID, "escrowAmount": 500_000},
            headers=auth(BUYER_TOKEN),
        )
        response = await client.post(
            "/api/migration", json={"escrowId": created.json()["id"]}, headers=auth(BUYER_TOKEN)
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_ESCROW_STATUS"

    @pytest.mark.asyncio
    async def test_second_checklist_is_409(self, client) -> None:
        body = await _checklist(client)
        response = await client.post(
            "/api/migration", json={"escrowId": body["escrowId"]}, headers=auth(BUYER_TOKEN)
        )
        assert response.status_code == 409
        assert response.json()["code"] == "CHECKLIST_ALREADY_EXISTS"

    @pytest.mark.asyncio
    async def test_reads(self, client) -> None:
        body = await _checklist(client)

        by_escrow = await client.get(
            f"/api/migration/escrow/{body['escrowId']}", headers=auth(BUYER_TOKEN)
        )
        assert by_escrow.status_code == 200
        assert by_escrow.json()["id"] == body["id"]
        assert by_escrow.json()["userRole"] == "buyer"

        listing = await client.get("/api/migration", headers=auth(BUYER_TOKEN))
        assert listing.status_code == 200
        assert [c["id"] for c in listing.json()["checklists"]] == [body["id"]]
        assert listing.json()["checklists"][0]["stats"]["total"] == 8

        outsider = await client.get(f"/api/migration/{body['id']}", headers=auth(OUTSIDER_TOKEN))
        assert outsider.status_code == 403


class TestTasks:
    @pytest.mark.asyncio
    async def test_add_task(self, client) -> None:
        body = await _checklist(client)
        response = await client.post(
            f"/api/migration/{body['id']}/tasks",
            json={"taskName": "Transfer newsletter", "taskCategory": "other"},
            headers=auth(BUYER_TOKEN),
        )
        assert response.status_code == 201
        assert response.json()["status"] == "pending"

    @pytest.mark.asyncio
    async def test_add_task_bad_category(self, client) -> None:
        body = await _checklist(client)
        response = await client.post(
            f"/api/migration/{body['id']}/tasks",
            json={"taskName": "Transfer app", "taskCategory": "mobile"},
            headers=auth(BUYER_TOKEN),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TASK_CATEGORY_VALUE"

    @pytest.mark.asyncio
    async def test_status_cannot_be_patched(self, client) -> None:
        task_id = (await _checklist(client))["tasks"][0]["id"]
        response = await client.patch(
            f"/api/migration/tasks/{task_id}",
            json={"status": "complete"},
            headers=auth(BUYER_TOKEN),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "STATUS_NOT_SETTABLE"

    @pytest.mark.asyncio
    async def test_confirmation_cannot_be_patched(self, client) -> None:
        task_id = (await _checklist(client))["tasks"][0]["id"]
        response = await client.patch(
            f"/api/migration/tasks/{task_id}",
            json={"buyerConfirmed": True},
            headers=auth(BUYER_TOKEN),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "CONFIRMATION_NOT_ALLOWED"

    @pytest.mark.asyncio
    async def test_patch_descriptive_fields(self, client) -> None:
        task_id = (await _checklist(client))["tasks"][0]["id"]
        response = await client.patch(
            f"/api/migration/tasks/{task_id}",
            json={"notes": "Registrar is Namecheap"},
            headers=auth(SELLER_TOKEN),
        )
        assert response.status_code == 200
        assert response.json()["notes"] == "Registrar is Namecheap"

    @pytest.mark.asyncio
    async def test_dual_confirmation(self, client) -> None:
        task_id = (await _checklist(client))["tasks"][0]["id"]
        url = f"/api/migration/tasks/{task_id}/confirm"

        buyer = await client.post(url, headers=auth(BUYER_TOKEN))
        assert buyer.status_code == 200
        assert buyer.json()["confirmedAs"] == ["buyer"]
        assert buyer.json()["task"]["status"] == "in_progress"

        seller = await client.post(url, headers=auth(SELLER_TOKEN))
        assert seller.json()["confirmedAs"] == ["seller"]
        assert seller.json()["task"]["status"] == "complete"
        assert seller.json()["checklistStatus"] == "in_progress"
        assert seller.json()["checklistCompleted"] is False

        outsider = await client.post(url, headers=auth(OUTSIDER_TOKEN))
        assert outsider.status_code == 403
