"""
Decision Card API Tests.

Exercises the card endpoints end to end through the FastAPI app,
including tenant headers and error bodies.
"""

import pytest

from tests.factories import OTHER_TENANT

CARDS = "/api/v1/cards"


async def _create(client, headers, subject_id="SKU-1", amount=650_000_000):
    resp = await client.post(CARDS, headers=headers, json={
        "subject_id": subject_id,
        "category": "cash_lock",
        "impact_amount": amount,
    })
    assert resp.status_code == 200
    return resp.json()


# ── Tenant context ─────────────────────────────────────────────────────


class TestTenantContext:

    @pytest.mark.asyncio
    async def test_missing_tenant_header(self, client):
        resp = await client.get(CARDS)
        assert resp.status_code == 401
        assert "X-Tenant-ID" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_health_is_public(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_cards_are_tenant_scoped(self, client, headers):
        body = await _create(client, headers)
        card_id = body["card"]["id"]

        resp = await client.get(f"{CARDS}/{card_id}", headers={"X-Tenant-ID": OTHER_TENANT})

        assert resp.status_code == 404


# ── Create & read ──────────────────────────────────────────────────────


class TestCreateCard:

    @pytest.mark.asyncio
    async def test_create(self, client, headers):
        body = await _create(client, headers)

        assert body["accepted"] is True
        card = body["card"]
        assert card["status"] == "NEW"
        assert card["priority"] == "P1"
        assert card["urgency"] == "critical"
        assert card["owner_role"] == "CFO"
        assert card["impact_amount"] == 650_000_000

    @pytest.mark.asyncio
    async def test_duplicate_refused(self, client, headers):
        first = await _create(client, headers)
        second = await _create(client, headers)

        assert second["accepted"] is False
        assert second["reason"] == "duplicate"
        assert second["card"]["id"] == first["card"]["id"]

    @pytest.mark.asyncio
    async def test_no_impact_refused(self, client, headers):
        body = await _create(client, headers, amount=0)
        assert body["accepted"] is False
        assert body["reason"] == "no_impact"

    @pytest.mark.asyncio
    async def test_negative_impact_is_invalid(self, client, headers):
        resp = await client.post(CARDS, headers=headers, json={
            "subject_id": "SKU-1", "category": "cash_lock", "impact_amount": -5,
        })
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_create_from_priority_item(self, client, headers):
        resp = await client.post(f"{CARDS}/from-item", headers=headers, json={
            "subject_id": "SKU-7",
            "dominant_category": "lost_revenue",
            "total_damage": 150_000_000,
            "component_damages": {"lost_revenue": 150_000_000},
            "urgency": "urgent",
        })
        assert resp.status_code == 200
        card = resp.json()["card"]
        assert card["priority"] == "P2"
        assert card["owner_role"] == "COO"

    @pytest.mark.asyncio
    async def test_unknown_card_is_404(self, client, headers):
        resp = await client.get(f"{CARDS}/does-not-exist", headers=headers)

        assert resp.status_code == 404
        body = resp.json()
        assert body["error_code"] == "E2000"
        assert body["status"] == 404
        assert "error_id" in body

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, client, headers):
        a = await _create(client, headers, subject_id="A")
        await _create(client, headers, subject_id="B")
        await client.post(
            f"{CARDS}/{a['card']['id']}/transition", headers=headers, json={"action": "APPROVE"}
        )

        new = await client.get(CARDS, headers=headers, params={"status": "NEW"})
        everything = await client.get(CARDS, headers=headers)

        assert [c["subject_id"] for c in new.json()] == ["B"]
        assert len(everything.json()) == 2


# ── Lifecycle ──────────────────────────────────────────────────────────


class TestTransitions:

    @pytest.mark.asyncio
    async def test_approve_then_refuse(self, client, headers):
        card_id = (await _create(client, headers))["card"]["id"]

        ok = await client.post(f"{CARDS}/{card_id}/transition", headers=headers, json={
            "action": "APPROVE", "comment": "release the stock",
        })
        again = await client.post(f"{CARDS}/{card_id}/transition", headers=headers, json={
            "action": "APPROVE",
        })

        assert ok.json()["card"]["status"] == "DECIDED"
        assert again.status_code == 200
        assert again.json()["accepted"] is False
        assert again.json()["reason"] == "already_resolved"

        audit = (await client.get(f"{CARDS}/{card_id}/audit", headers=headers)).json()
        assert [a["action"] for a in audit] == ["CREATE", "APPROVE"]
        assert audit[1]["actor"] == "cfo@example.com"
        assert audit[1]["comment"] == "release the stock"

    @pytest.mark.asyncio
    async def test_unknown_action_is_invalid(self, client, headers):
        card_id = (await _create(client, headers))["card"]["id"]
        resp = await client.post(
            f"{CARDS}/{card_id}/transition", headers=headers, json={"action": "DELETE"}
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_reactivate(self, client, headers):
        card_id = (await _create(client, headers))["card"]["id"]
        await client.post(
            f"{CARDS}/{card_id}/transition", headers=headers, json={"action": "REJECT"}
        )

        resp = await client.post(
            f"{CARDS}/{card_id}/reactivate", headers=headers, json={"reason": "new data"}
        )

        assert resp.json()["card"]["status"] == "NEW"
        history = (await client.get(f"{CARDS}/{card_id}/history", headers=headers)).json()
        assert history[-1]["kind"] == "reactivated"

    @pytest.mark.asyncio
    async def test_escalate_and_path(self, client, headers):
        card_id = (await _create(client, headers))["card"]["id"]

        resp = await client.post(
            f"{CARDS}/{card_id}/escalate", headers=headers, json={"to_role": "CEO"}
        )
        path = (await client.get(f"{CARDS}/{card_id}/escalation", headers=headers)).json()

        assert resp.json()["card"]["owner_role"] == "CEO"
        assert resp.json()["card"]["escalation_level"] == 2
        assert path["current_owner_role"] == "CEO"
        assert path["rule_id"] is None

        reset = await client.post(f"{CARDS}/{card_id}/reset-override", headers=headers)
        assert reset.json()["accepted"] is True

    @pytest.mark.asyncio
    async def test_stats_and_sweeps(self, client, headers):
        await _create(client, headers)

        stats = (await client.get(f"{CARDS}/stats", headers=headers)).json()
        expired = await client.post(f"{CARDS}/expire", headers=headers)
        escalated = await client.post(f"{CARDS}/escalate-due", headers=headers)

        assert stats["total"] == 1
        assert stats["by_status"]["NEW"] == 1
        assert stats["open_impact"] == 650_000_000
        assert expired.json() == []
        assert escalated.json() == []


# ── Alerts ─────────────────────────────────────────────────────────────


class TestAlerts:

    @pytest.mark.asyncio
    async def test_linked_alert_hidden_from_feed(self, client, headers):
        card_id = (await _create(client, headers))["card"]["id"]

        link = await client.post(
            f"{CARDS}/{card_id}/alerts", headers=headers, json={"alert_id": "alert-1"}
        )
        visible = await client.post("/api/v1/alerts/visible", headers=headers, json={
            "alert_ids": ["alert-1", "alert-2"],
        })

        assert link.json()["accepted"] is True
        assert visible.json() == {"alert_ids": ["alert-2"]}
