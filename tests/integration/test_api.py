"""
Integration tests for the HTTP API.

Runs the FastAPI app in-process (httpx.ASGITransport) against an engine
backed by the in-memory unit of work. The lifespan is not run; the engine,
rulebook manager and scheduler are placed on app.state by the fixtures.

Tests:
- Ticket intake, update, comments, history
- Error mapping (404, 403, 409, 422)
- Approval endpoints
- SLA preview and manual escalation scan
- Rulebook status and reload
"""

from datetime import timedelta

import pytest
import pytest_asyncio
import yaml
from httpx import ASGITransport, AsyncClient

from servicedesk.main import app
from servicedesk.rulebook.infrastructure import RulebookManager
from tests.factories import T0, escalation_rule, rulebook_data


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def rulebook_file(tmp_path):
    path = tmp_path / "rulebook.yaml"
    path.write_text(yaml.safe_dump(rulebook_data(escalation_rules=[escalation_rule()])), encoding="utf-8")
    return path


@pytest.fixture
def manager(rulebook_file) -> RulebookManager:
    manager = RulebookManager()
    manager.load(rulebook_file)
    return manager


@pytest.fixture
def provider(manager):
    """The engine reads the file-backed manager in these tests."""
    return manager


@pytest_asyncio.fixture
async def client(engine, manager):
    app.state.engine = engine
    app.state.rulebook_manager = manager
    app.state.scheduler = None
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.state.engine = None
    app.state.rulebook_manager = None


def as_user(user_id: str) -> dict:
    return {"X-Acting-User": user_id}


async def _create(client, **overrides) -> str:
    payload = {"title": "VPN is down", "created_by": "u-alice", "priority": "critical"}
    payload.update(overrides)
    response = await client.post("/tickets", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["ticket_id"]


# ============================================================================
# Tickets
# ============================================================================

class TestTicketEndpoints:

    @pytest.mark.asyncio
    async def test_create_and_get(self, client):
        ticket_id = await _create(client, category="Network")

        response = await client.get(f"/tickets/{ticket_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "new"
        assert body["assigned_to"] == "u-x"
        assert body["sla_deadline"].startswith((T0 + timedelta(minutes=240)).strftime("%Y-%m-%dT%H:%M"))
        assert response.headers["X-Correlation-ID"]

    @pytest.mark.asyncio
    async def test_create_validates_payload(self, client):
        response = await client.post("/tickets", json={"title": "  ", "created_by": "u-alice"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_creator_is_404(self, client):
        response = await client.post("/tickets", json={"title": "x", "created_by": "u-nobody"})

        assert response.status_code == 404
        assert response.json()["error_type"] == "ResourceNotFoundException"

    @pytest.mark.asyncio
    async def test_update_and_history(self, client):
        ticket_id = await _create(client)

        response = await client.patch(
            f"/tickets/{ticket_id}",
            json={"status": "in_progress", "reason": "On it"},
            headers=as_user("u-x"),
        )
        assert response.status_code == 200
        assert response.json()["changed_fields"] == ["status"]

        history = (await client.get(f"/tickets/{ticket_id}/history")).json()
        assert [h["action"] for h in history] == ["created", "updated_status"]
        assert history[1]["reason"] == "On it"

    @pytest.mark.asyncio
    async def test_update_requires_acting_user(self, client):
        ticket_id = await _create(client)

        response = await client.patch(f"/tickets/{ticket_id}", json={"status": "in_progress"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_transition_is_409(self, client):
        ticket_id = await _create(client)

        response = await client.patch(
            f"/tickets/{ticket_id}", json={"status": "rejected"}, headers=as_user("u-admin")
        )

        assert response.status_code == 409
        assert response.json()["details"]["to"] == "rejected"

    @pytest.mark.asyncio
    async def test_comments(self, client):
        ticket_id = await _create(client)

        created = await client.post(
            f"/tickets/{ticket_id}/comments", json={"content": "Looking"}, headers=as_user("u-x")
        )
        listed = await client.get(f"/tickets/{ticket_id}/comments")

        assert created.status_code == 201
        assert [c["content"] for c in listed.json()] == ["Looking"]

    @pytest.mark.asyncio
    async def test_missing_ticket_is_404(self, client):
        response = await client.get("/tickets/does-not-exist")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_purge_requires_admin(self, client):
        ticket_id = await _create(client)

        denied = await client.delete(f"/tickets/{ticket_id}", headers=as_user("u-alice"))
        purged = await client.delete(f"/tickets/{ticket_id}", headers=as_user("u-admin"))

        assert denied.status_code == 403
        assert purged.status_code == 204
        assert (await client.get(f"/tickets/{ticket_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_notifications_for_acting_user(self, client):
        await _create(client)

        response = await client.get("/notifications", headers=as_user("u-alice"))

        assert response.status_code == 200
        assert [n["title"] for n in response.json()] == ["New Ticket Created"]


# ============================================================================
# Approvals
# ============================================================================

class TestApprovalEndpoints:

    @pytest.mark.asyncio
    async def test_two_stage_flow(self, client):
        ticket_id = await _create(client, form_id="access-request")

        pending = (await client.get("/approvals/pending", headers=as_user("u-admin"))).json()
        assert [r["stage_id"] for r in pending] == ["manager"]

        response = await client.post(
            f"/approvals/{pending[0]['id']}/respond",
            json={"decision": "approve"},
            headers=as_user("u-admin"),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "approved"

        [security] = (await client.get("/approvals/pending", headers=as_user("u-sec-lead"))).json()
        await client.post(
            f"/approvals/{security['id']}/respond", json={"decision": "approve"}, headers=as_user("u-sec-lead")
        )

        ticket = (await client.get(f"/tickets/{ticket_id}")).json()
        assert (ticket["status"], ticket["approval_status"]) == ("in_progress", "approved")

    @pytest.mark.asyncio
    async def test_wrong_approver_is_403(self, client):
        ticket_id = await _create(client, form_id="access-request")
        [first, _] = (await client.get(f"/tickets/{ticket_id}/approvals")).json()

        response = await client.post(
            f"/approvals/{first['id']}/respond", json={"decision": "reject"}, headers=as_user("u-bob")
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_need_more_info_without_comments_is_422(self, client):
        ticket_id = await _create(client, form_id="access-request")
        [first, _] = (await client.get(f"/tickets/{ticket_id}/approvals")).json()

        response = await client.post(
            f"/approvals/{first['id']}/respond", json={"decision": "need_more_info"}, headers=as_user("u-admin")
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unassigned_list_is_admin_only(self, client):
        response = await client.get("/approvals/unassigned", headers=as_user("u-alice"))
        assert response.status_code == 403


# ============================================================================
# SLA
# ============================================================================

class TestSLAEndpoints:

    @pytest.mark.asyncio
    async def test_policies_and_deadline_preview(self, client):
        policies = (await client.get("/sla/policies")).json()
        preview = await client.get(
            "/sla/deadline", params={"priority": "critical", "at": T0.isoformat()}
        )

        assert [p["priority"] for p in policies] == ["critical", "high", "medium", "low"]
        assert preview.status_code == 200
        assert preview.json()["resolution_time"] == 240

    @pytest.mark.asyncio
    async def test_manual_scan(self, client, clock, store):
        ticket_id = await _create(client)
        clock.advance(minutes=271)

        response = await client.post("/sla/escalations/scan")

        assert response.status_code == 200
        body = response.json()
        assert body["fired_count"] == 1
        assert body["fired"][0]["ticket_id"] == ticket_id

        status_body = (await client.get("/sla/escalations/status")).json()
        assert status_body["last_report"]["fired_count"] == 1
        assert status_body["scheduler_running"] is False


# ============================================================================
# Rulebook
# ============================================================================

class TestRulebookEndpoints:

    @pytest.mark.asyncio
    async def test_status(self, client):
        body = (await client.get("/rulebook")).json()

        assert body["status"]["version"] == "test"
        assert body["status"]["counts"]["escalation_rules"] == 1

    @pytest.mark.asyncio
    async def test_reload_is_admin_only(self, client):
        response = await client.post("/rulebook/reload", headers=as_user("u-alice"))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reload_picks_up_edits(self, client, rulebook_file):
        rulebook_file.write_text(yaml.safe_dump(rulebook_data(version="v2")), encoding="utf-8")

        response = await client.post("/rulebook/reload", headers=as_user("u-admin"))

        assert response.status_code == 200
        assert response.json()["version"] == "v2"

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_rules(self, client, rulebook_file):
        rulebook_file.write_text("sla_policies: [", encoding="utf-8")

        response = await client.post("/rulebook/reload", headers=as_user("u-admin"))

        assert response.status_code == 500
        assert (await client.get("/rulebook")).json()["status"]["version"] == "test"


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_reports_degraded_without_database(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["checks"]["rulebook"] == "loaded"
