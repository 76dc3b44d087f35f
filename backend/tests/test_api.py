from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from models.db import StoreUnavailableError, get_application_db, get_setting, set_db_path
from services.live_store import get_live_store
from factories import make_application, make_opportunity


@pytest.fixture
def client(db, monkeypatch) -> TestClient:
    """TestClient on a temporary DB with model discovery patched to avoid network calls."""
    import llm

    async def fake_fetch_available_models():
        llm.AVAILABLE_MODELS.clear()
        llm.AVAILABLE_MODELS.extend(["llama3.1:8b", "local-test-model"])
        return llm.AVAILABLE_MODELS

    monkeypatch.setattr(llm, "fetch_available_models", fake_fetch_available_models)
    monkeypatch.setattr(llm, "current_model", llm.current_model)

    import main  # after monkeypatch
    return TestClient(main.app)


def _sse_events(body: str) -> list:
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


NEW_OPPORTUNITY = {
    "title": "Park Restoration",
    "ngo": "Green Miami",
    "description": "Plant native trees in the park.",
    "longDescription": "Spend a morning planting native trees and clearing invasive plants at Bayfront Park.",
    "location": "Miami",
    "date": "2026-11-15",
    "timeCommitment": "4 hours",
    "category": "Environment",
}


def test_health(client: TestClient):
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["store_reachable"] is True


def test_list_and_filter_opportunities(client: TestClient):
    make_opportunity(title="Beach Cleanup", location="Miami", date="2026-11-01")
    make_opportunity(title="Reading Buddies", location="Orlando", category="Education", date="2026-12-01")

    r = client.get("/api/opportunities")
    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 2 and data["matched"] == 2
    assert [o["title"] for o in data["opportunities"]] == ["Reading Buddies", "Beach Cleanup"]
    assert "longDescription" in data["opportunities"][0]

    r = client.get("/api/opportunities", params={"q": "beach", "location": "Orlando"})
    assert r.json()["opportunities"] == []

    r = client.get("/api/opportunities", params={"q": "BEACH", "category": "Environment"})
    assert [o["title"] for o in r.json()["opportunities"]] == ["Beach Cleanup"]

    r = client.get("/api/opportunities/locations")
    assert r.json()["locations"] == ["all", "Orlando", "Miami"]


def test_opportunity_detail_and_not_found(client: TestClient):
    opp_id = make_opportunity()
    make_application(opp_id, status="Approved")
    make_application(opp_id, status="Approved", volunteer_email="sam@y.org")
    make_application(opp_id)

    r = client.get(f"/api/opportunities/{opp_id}")
    assert r.status_code == 200
    assert r.json()["opportunity"]["id"] == opp_id
    assert r.json()["approvedCount"] == 2

    r = client.get("/api/opportunities/missing")
    assert r.status_code == 404
    assert r.json() == {"error": "Opportunity not found", "notFound": True}


def test_post_opportunity_is_accepted_and_lands(client: TestClient):
    r = client.post("/api/opportunities", json=NEW_OPPORTUNITY)
    assert r.status_code == 202
    new_id = r.json()["id"]
    assert get_live_store().flush()

    r = client.get(f"/api/opportunities/{new_id}")
    assert r.status_code == 200
    opportunity = r.json()["opportunity"]
    assert opportunity["title"] == "Park Restoration"
    assert opportunity["imageUrl"].startswith("https://")


@pytest.mark.parametrize(
    "field,value",
    [("title", "Park"), ("ngo", "G"), ("longDescription", "Too short."), ("category", "Sports")],
)
def test_post_opportunity_validation(client: TestClient, field, value):
    r = client.post("/api/opportunities", json={**NEW_OPPORTUNITY, field: value})
    assert r.status_code == 422


def test_post_opportunity_store_unreachable(client: TestClient, monkeypatch):
    import api.opportunities as opportunities_api

    monkeypatch.setattr(opportunities_api, "ping", lambda: False)
    r = client.post("/api/opportunities", json=NEW_OPPORTUNITY)
    assert r.status_code == 503
    assert r.json()["error"] == "Database not available."


def test_list_opportunities_store_unreachable(client: TestClient, monkeypatch):
    import api.opportunities as opportunities_api

    def unavailable():
        raise StoreUnavailableError("unable to open database file")

    monkeypatch.setattr(opportunities_api, "list_opportunities", unavailable)
    r = client.get("/api/opportunities")
    assert r.status_code == 503


def test_apply_and_check_status(client: TestClient):
    opp_id = make_opportunity(title="Beach Cleanup")
    r = client.post(
        f"/api/opportunities/{opp_id}/applications",
        json={"volunteerName": "Jane Doe", "volunteerEmail": "Jane@X.com"},
    )
    assert r.status_code == 201
    created = r.json()["application"]
    assert created["status"] == "Pending"
    assert created["volunteerEmail"] == "jane@x.com"
    assert created["opportunityTitle"] == "Beach Cleanup"

    r = client.get("/api/applications/status", params={"email": "JANE@x.com"})
    assert r.status_code == 200
    body = r.json()
    assert body["searched"] is True
    assert [a["id"] for a in body["applications"]] == [created["id"]]

    r = client.get(f"/api/opportunities/{opp_id}/applications")
    assert r.json()["approvedCount"] == 0
    assert len(r.json()["applications"]) == 1


def test_apply_validation_and_missing_opportunity(client: TestClient):
    opp_id = make_opportunity()
    r = client.post(
        f"/api/opportunities/{opp_id}/applications",
        json={"volunteerName": "J", "volunteerEmail": "jane@x.com"},
    )
    assert r.status_code == 422
    r = client.post(
        f"/api/opportunities/{opp_id}/applications",
        json={"volunteerName": "Jane", "volunteerEmail": "not-an-email"},
    )
    assert r.status_code == 422
    r = client.post(
        "/api/opportunities/missing/applications",
        json={"volunteerName": "Jane", "volunteerEmail": "jane@x.com"},
    )
    assert r.status_code == 404


def test_status_lookup_without_matches(client: TestClient):
    r = client.get("/api/applications/status", params={"email": "nobody@z.com"})
    assert r.status_code == 200
    assert r.json()["applications"] == []
    assert "could not find" in r.json()["message"]

    assert client.get("/api/applications/status", params={"email": "nope"}).status_code == 422


def test_admin_grouping(client: TestClient):
    make_application("river-1", opportunity_title="River Cleanup", applied_date="2026-10-02T00:00:00+00:00")
    make_application("river-2", opportunity_title="River Cleanup", applied_date="2026-10-01T00:00:00+00:00")

    r = client.get("/api/admin/applications")
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert [g["opportunityId"] for g in body["groups"]] == ["river-1", "river-2"]
    assert body["groups"][0]["applications"][0]["availableActions"] == ["Approved", "Rejected"]

    r = client.get("/api/admin/applications", params={"group_by": "title"})
    [merged] = r.json()["groups"]
    assert merged["key"] == "River Cleanup"
    assert len(merged["applications"]) == 2

    assert client.get("/api/admin/applications", params={"group_by": "ngo"}).status_code == 400


def test_admin_status_update(client: TestClient):
    app_id = make_application()
    r = client.post(f"/api/admin/applications/{app_id}/status", json={"status": "Approved"})
    assert r.status_code == 202
    assert r.json()["inProgress"] is True
    assert get_live_store().flush()
    assert get_application_db(app_id)["status"] == "Approved"

    r = client.get("/api/admin/applications")
    assert r.json()["groups"][0]["applications"][0]["availableActions"] == []
    assert r.json()["groups"][0]["approvedCount"] == 1

    r = client.post(f"/api/admin/applications/{app_id}/status", json={"status": "Approved"})
    assert r.status_code == 202
    assert r.json()["inProgress"] is False

    r = client.post(f"/api/admin/applications/{app_id}/status", json={"status": "Rejected"})
    assert r.status_code == 409
    assert r.json()["currentStatus"] == "Approved"


def test_admin_status_update_errors(client: TestClient, monkeypatch):
    app_id = make_application()
    assert client.post("/api/admin/applications/missing/status", json={"status": "Approved"}).status_code == 404
    assert client.post(f"/api/admin/applications/{app_id}/status", json={"status": "Pending"}).status_code == 422

    import api.admin as admin_api

    monkeypatch.setattr(admin_api, "ping", lambda: False)
    r = client.post(f"/api/admin/applications/{app_id}/status", json={"status": "Approved"})
    assert r.status_code == 503
    assert get_application_db(app_id)["status"] == "Pending"


def test_admin_capability_gate(client: TestClient, monkeypatch):
    from config import settings

    monkeypatch.setattr(settings, "ADMIN_ACTIONS_OPEN", False)
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "s3cret")

    assert client.get("/api/admin/applications").status_code == 403
    assert client.get("/api/admin/applications", headers={"X-Admin-Token": "wrong"}).status_code == 403
    assert client.get("/api/admin/applications", headers={"X-Admin-Token": "s3cret"}).status_code == 200
    # Public routes stay open
    assert client.get("/api/opportunities").status_code == 200


def test_admin_stream_sends_loading_then_ready(client: TestClient):
    make_application()
    r = client.get("/api/admin/applications/stream", params={"limit": 2})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")
    events = _sse_events(r.text)
    assert [e["status"] for e in events] == ["loading", "ready"]
    assert events[1]["data"][0]["availableActions"] == ["Approved", "Rejected"]
    assert get_live_store().subscription_count() == 0


def test_opportunity_stream(client: TestClient):
    make_opportunity(title="Beach Cleanup")
    r = client.get("/api/opportunities/stream", params={"limit": 2})
    events = _sse_events(r.text)
    assert events[-1]["status"] == "ready"
    assert events[-1]["data"][0]["title"] == "Beach Cleanup"


def test_generate_description(client: TestClient, monkeypatch):
    import llm

    async def fake_complete_json(system, prompt, **kwargs):
        return json.dumps({"shortDescription": "Tidy the beach.", "longDescription": "Collect litter with us."})

    monkeypatch.setattr(llm, "complete_json", fake_complete_json)
    r = client.post("/api/descriptions/generate", json={"keywords": "beach cleanup"})
    assert r.status_code == 200
    assert r.json() == {"shortDescription": "Tidy the beach.", "longDescription": "Collect litter with us."}

    assert client.post("/api/descriptions/generate", json={"keywords": "  "}).status_code == 400


def test_generate_description_remote_failure(client: TestClient, monkeypatch):
    import llm

    async def boom(*args, **kwargs):
        raise TimeoutError("provider timed out")

    monkeypatch.setattr(llm, "complete_json", boom)
    r = client.post("/api/descriptions/generate", json={"keywords": "food bank"})
    assert r.status_code == 502
    assert r.json()["error"] == "There was an error generating the description."


def test_llm_status_and_model_selection(client: TestClient, monkeypatch):
    import api.llm_settings as llm_api

    async def fake_status():
        return {"connected": False, "provider": "ollama", "model": "llama3.1:8b", "error": "offline"}

    monkeypatch.setattr(llm_api, "check_llm_status", fake_status)
    r = client.get("/api/llm/status")
    assert r.status_code == 200
    assert r.json()["connected"] is False
    assert r.json()["available_models"] == []

    r = client.post("/api/llm/model", data={"model": "local-test-model"})
    assert r.status_code == 200
    assert r.json()["model"] == "local-test-model"
    assert get_setting("llm_model") == "local-test-model"
    assert client.get("/api/llm/model").json()["model"] == "local-test-model"

    assert client.post("/api/llm/model", data={"model": "missing-model"}).status_code == 400
    assert client.post("/api/llm/provider", data={"provider": "bogus"}).status_code == 400


def test_corrupt_database_answers_503(client: TestClient, tmp_path):
    app_id = make_application()
    bad = tmp_path / "corrupt.db"
    bad.write_bytes(b"\x00garbage, not a database\xff" * 128)
    set_db_path(bad)

    r = client.get("/api/opportunities")
    assert r.status_code == 503
    assert r.json() == {"error": "Database not available."}

    health = client.get("/api/health").json()
    assert health["status"] == "degraded"
    assert health["store_reachable"] is False

    assert client.post("/api/opportunities", json=NEW_OPPORTUNITY).status_code == 503
    r = client.post(f"/api/admin/applications/{app_id}/status", json={"status": "Approved"})
    assert r.status_code == 503


def test_post_opportunity_after_store_shutdown(client: TestClient, monkeypatch):
    import api.opportunities as opportunities_api

    def closed(payload):
        raise StoreUnavailableError("Live store is shut down")

    monkeypatch.setattr(opportunities_api, "create_opportunity", closed)
    r = client.post("/api/opportunities", json=NEW_OPPORTUNITY)
    assert r.status_code == 503
    assert r.json()["error"] == "Database not available."


def test_llm_model_lists_available_models(client: TestClient, monkeypatch):
    import llm

    monkeypatch.setattr(llm, "AVAILABLE_MODELS", ["llama3.1:8b", "local-test-model"])
    body = client.get("/api/llm/model").json()
    assert body["available_models"] == ["llama3.1:8b", "local-test-model"]
    assert body["provider"] in llm.PROVIDERS
