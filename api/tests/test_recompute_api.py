import uuid

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

import recompute.main as m
from recompute import deps
from recompute.routes import admin as admin_routes
from recompute.routes import recompute as recompute_routes
from recompute.schemas import QueueJob
from recompute.services.recompute import RecomputeSetupError, RecomputeSummary

ADMIN = {"X-Admin-Token": "secret"}


def _client(monkeypatch):
    monkeypatch.setattr(m, "wait_for_db", lambda *args, **kwargs: None)
    monkeypatch.setattr(m, "run_migrations", lambda *args, **kwargs: None)
    monkeypatch.setattr(deps, "ADMIN_TOKEN", "secret")
    return TestClient(m.app)


def _job(user_id: str) -> QueueJob:
    return QueueJob(id=str(uuid.uuid4()), user_id=user_id)


def test_health_endpoints(monkeypatch):
    client = _client(monkeypatch)
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/_scaffold/recompute/health").status_code == 200
    assert client.get("/_scaffold/admin/health").status_code == 200


def test_preflight_returns_cors_headers(monkeypatch):
    client = _client(monkeypatch)
    res = client.options("/recompute-recommendations")
    assert res.status_code == 200
    assert res.text == "ok"
    assert res.headers["access-control-allow-origin"] == "*"
    assert "apikey" in res.headers["access-control-allow-headers"]


def test_missing_database_url_is_config_error(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(recompute_routes, "store_configured", lambda: False)

    res = client.post("/recompute-recommendations")

    assert res.status_code == 500
    assert res.json() == {"error": "Missing DATABASE_URL", "step": "config"}
    assert res.headers["access-control-allow-origin"] == "*"


def test_query_params_are_clamped_and_summary_returned(monkeypatch):
    client = _client(monkeypatch)
    seen = {}

    async def fake_run(settings=None, store=None):
        seen["settings"] = settings
        return RecomputeSummary(lock_id="lock-1", processed=2, failed=1, claimed=3, elapsed_ms=12)

    monkeypatch.setattr(recompute_routes, "store_configured", lambda: True)
    monkeypatch.setattr(recompute_routes, "run_recompute_batch", fake_run)

    res = client.get("/recompute-recommendations?batch=99&candidates=5&timeoutMs=abc")

    assert res.status_code == 200
    assert res.json() == {
        "ok": True,
        "processed": 2,
        "failed": 1,
        "claimed": 3,
        "released": 0,
        "lockId": "lock-1",
        "elapsedMs": 12,
    }
    s = seen["settings"]
    assert (s.batch_size, s.candidates_cap, s.call_timeout_ms) == (50, 20, 10000)


def test_setup_failure_reports_step(monkeypatch):
    client = _client(monkeypatch)

    async def fake_run(settings=None, store=None):
        raise RecomputeSetupError("claim_queue", "db down")

    monkeypatch.setattr(recompute_routes, "store_configured", lambda: True)
    monkeypatch.setattr(recompute_routes, "run_recompute_batch", fake_run)

    res = client.put("/recompute-recommendations")

    assert res.status_code == 500
    assert res.json() == {"error": "db down", "step": "claim_queue"}


def test_admin_routes_require_token(monkeypatch):
    client = _client(monkeypatch)
    assert client.get("/admin/recompute/queue").status_code == 401
    assert client.get("/admin/recompute/queue", headers={"X-Admin-Token": "nope"}).status_code == 401


def test_admin_enqueue(monkeypatch):
    client = _client(monkeypatch)
    uid = str(uuid.uuid4())
    monkeypatch.setattr(admin_routes.repo, "enqueue_recompute", lambda user_id: _job(user_id))

    res = client.post("/admin/recompute/enqueue", json={"user_id": uid}, headers=ADMIN)
    assert res.status_code == 200
    assert res.json()["job"]["user_id"] == uid

    bad = client.post("/admin/recompute/enqueue", json={"user_id": "not-a-uuid"}, headers=ADMIN)
    assert bad.status_code == 400


def test_admin_queue_listing(monkeypatch):
    client = _client(monkeypatch)
    uid = str(uuid.uuid4())
    seen = {}

    def fake_list(**kwargs):
        seen.update(kwargs)
        return [_job(uid)]

    monkeypatch.setattr(admin_routes.repo, "list_queue_jobs", fake_list)
    monkeypatch.setattr(admin_routes.repo, "queue_stats", lambda **kwargs: {"total": 1, "pending": 1})

    res = client.get("/admin/recompute/queue?state=pending&limit=5", headers=ADMIN)

    assert res.status_code == 200
    body = res.json()
    assert body["stats"]["total"] == 1
    assert body["jobs"][0]["user_id"] == uid
    assert seen["state"] == "pending"
    assert seen["limit"] == 5


def test_admin_queue_unknown_state_is_400(monkeypatch):
    client = _client(monkeypatch)

    def fake_list(**kwargs):
        raise ValueError("unknown queue state: bogus")

    monkeypatch.setattr(admin_routes.repo, "list_queue_jobs", fake_list)

    res = client.get("/admin/recompute/queue?state=bogus", headers=ADMIN)
    assert res.status_code == 400


def test_admin_requeue_missing_job_is_404(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(admin_routes.repo, "requeue_job", lambda job_id: None)

    res = client.post(f"/admin/recompute/queue/{uuid.uuid4()}/requeue", headers=ADMIN)
    assert res.status_code == 404


def test_admin_recommendations_include_explanation(monkeypatch):
    client = _client(monkeypatch)
    uid = str(uuid.uuid4())
    rows = [
        {
            "id": str(uuid.uuid4()),
            "user_id": uid,
            "recommended_user_id": str(uuid.uuid4()),
            "score": 84,
            "reasons": {"common_interests": ["Song"], "boost_breakdown": {"same_location": True}},
            "status": "active",
        }
    ]
    monkeypatch.setattr(admin_routes.repo, "list_recommendations", lambda user_id, limit=20: rows)

    res = client.get(f"/admin/users/{uid}/recommendations", headers=ADMIN)

    assert res.status_code == 200
    item = res.json()["data"][0]
    assert item["score"] == 84
    assert item["explanation"]["headline"] == "A standout match for you."
    assert "You share a taste in songs." in item["explanation"]["bullets"]


def test_admin_mark_viewed(monkeypatch):
    client = _client(monkeypatch)
    uid, rec_id = str(uuid.uuid4()), str(uuid.uuid4())
    monkeypatch.setattr(
        admin_routes.repo,
        "mark_recommendation_viewed",
        lambda user_id, recommendation_id: {"id": recommendation_id, "status": "viewed"},
    )

    res = client.post(f"/admin/users/{uid}/recommendations/{rec_id}/viewed", headers=ADMIN)
    assert res.status_code == 200
    assert res.json()["recommendation"]["id"] == rec_id

    monkeypatch.setattr(admin_routes.repo, "mark_recommendation_viewed", lambda user_id, recommendation_id: None)
    missing = client.post(f"/admin/users/{uid}/recommendations/{rec_id}/viewed", headers=ADMIN)
    assert missing.status_code == 404


def test_require_store_raises_without_engine(monkeypatch):
    from recompute import database

    monkeypatch.setattr(database, "engine", None)
    assert database.store_configured() is False
    with pytest.raises(database.StoreNotConfigured):
        database.require_store()


def test_head_request_is_accepted(monkeypatch):
    client = _client(monkeypatch)

    async def fake_run(settings=None, store=None):
        return RecomputeSummary(lock_id="lock-1")

    monkeypatch.setattr(recompute_routes, "store_configured", lambda: True)
    monkeypatch.setattr(recompute_routes, "run_recompute_batch", fake_run)

    res = client.head("/recompute-recommendations")

    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "*"
