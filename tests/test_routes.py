"""
API tests for the sync routes.
"""
import pytest
from fastapi.testclient import TestClient

from conftest import FakeMailProvider, build_coordinator, make_messages
from main import app
from mailsync.core.config import settings
from mailsync.core.dependencies import get_http_client, get_redis, get_supabase
from mailsync.api.v1.routes import sync as sync_routes
from mailsync.middleware.error_handler import status_for
from mailsync.services.jobs.tasks import sync_sent_mail_task
from mailsync.services.sync.errors import (
    MailFetchError,
    RecordStoreError,
    SyncAlreadyRunningError,
)


class RaisingCoordinator:
    def __init__(self, error):
        self.error = error

    async def run_sync_cycle(self, max_messages):
        raise self.error


@pytest.fixture
def client(monkeypatch, store):
    app.dependency_overrides[get_supabase] = lambda: object()
    app.dependency_overrides[get_http_client] = lambda: object()
    app.dependency_overrides[get_redis] = lambda: None
    monkeypatch.setattr(settings, "api_key", None)
    monkeypatch.setattr(sync_routes, "get_record_store", lambda account_id, supabase: store)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use_coordinator(monkeypatch, coordinator):
    monkeypatch.setattr(sync_routes, "build_sync_coordinator", lambda *args, **kwargs: coordinator)


class TestSyncCycleRoute:
    """Tests for POST /sync/{account_id}/sent."""

    def test_runs_one_cycle(self, client, monkeypatch, store):
        _use_coordinator(monkeypatch, build_coordinator(store, FakeMailProvider(make_messages(37))))

        response = client.post("/sync/acct-123/sent", params={"max_messages": 100})

        assert response.status_code == 200
        body = response.json()
        assert body["processed_this_batch"] == 15
        assert body["remaining"] == 22
        assert body["should_continue"] is True

    def test_default_max_messages(self, client, monkeypatch, store):
        provider = FakeMailProvider(make_messages(3))
        _use_coordinator(monkeypatch, build_coordinator(store, provider))

        client.post("/sync/acct-123/sent")

        assert provider.calls == [settings.sync_default_max_messages]

    def test_rejects_out_of_range_max_messages(self, client):
        assert client.post("/sync/acct-123/sent", params={"max_messages": 0}).status_code == 422
        assert client.post("/sync/acct-123/sent", params={"max_messages": 501}).status_code == 422

    @pytest.mark.parametrize("error, status_code", [
        (SyncAlreadyRunningError("acct-123"), 409),
        (MailFetchError("token expired"), 502),
        (RecordStoreError("sync_state unavailable"), 503),
    ])
    def test_error_mapping(self, client, monkeypatch, error, status_code):
        _use_coordinator(monkeypatch, RaisingCoordinator(error))

        response = client.post("/sync/acct-123/sent")

        assert response.status_code == status_code

    def test_requires_api_key_when_configured(self, client, monkeypatch, store):
        monkeypatch.setattr(settings, "api_key", "secret")
        _use_coordinator(monkeypatch, build_coordinator(store, FakeMailProvider([])))

        assert client.post("/sync/acct-123/sent").status_code == 401
        assert client.post("/sync/acct-123/sent", headers={"X-API-Key": "wrong"}).status_code == 401
        assert client.post("/sync/acct-123/sent", headers={"X-API-Key": "secret"}).status_code == 200


class TestBackgroundRoute:

    def test_enqueues_job(self, client, monkeypatch):
        monkeypatch.setattr(settings, "redis_url", "redis://localhost:6379/0")
        sent = []
        monkeypatch.setattr(sync_sent_mail_task, "send", lambda *args: sent.append(args))

        response = client.post("/sync/acct-123/sent/background", params={"max_messages": 50})

        assert response.status_code == 202
        assert response.json() == {"status": "queued", "account_id": "acct-123", "max_messages": 50}
        assert sent == [("acct-123", 50)]

    def test_unavailable_without_redis(self, client, monkeypatch):
        sent = []
        monkeypatch.setattr(settings, "redis_url", None)
        monkeypatch.setattr(sync_sent_mail_task, "send", lambda *args: sent.append(args))

        response = client.post("/sync/acct-123/sent/background")

        assert response.status_code == 503
        assert sent == []


class TestStatusRoute:

    def test_reports_progress(self, client, monkeypatch, store):
        _use_coordinator(monkeypatch, build_coordinator(store, FakeMailProvider(make_messages(37))))
        client.post("/sync/acct-123/sent")

        response = client.get("/sync/acct-123/status")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "running"
        assert body["processing"] is True
        assert body["queued"] == 37
        assert body["processed"] == 15
        assert body["pending_estimate"] == 22
        assert body["total_stored"] == 15
        assert body["with_embeddings"] == 15


class TestHealthRoute:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestErrorStatusMapping:

    @pytest.mark.parametrize("error, status_code", [
        (SyncAlreadyRunningError("acct-123"), 409),
        (MailFetchError("Gmail unreachable"), 502),
        (RecordStoreError("checkpoint write failed"), 503),
        (RuntimeError("boom"), 500),
    ])
    def test_status_for(self, error, status_code):
        assert status_for(error) == status_code
