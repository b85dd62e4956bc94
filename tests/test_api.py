"""Tests for the HookRelay REST API."""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
from conftest import ORG_ID
from fastapi import FastAPI
from fastapi.testclient import TestClient

from hookrelay.api.app import register_exception_handlers
from hookrelay.api.router import router, set_service
from hookrelay.models import RelayEventType
from hookrelay.service import RelayService

HEADERS = {"X-Organization-Id": ORG_ID}
OTHER_ORG = {"X-Organization-Id": "org_other"}

CREATE_BODY = {
    "name": "Make scenario",
    "url": "https://hook.make.com/abc",
    "events": ["task.created", "incident.created"],
    "provider": "make",
}


def _build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1")
    return app


@pytest.fixture
async def client(storage, settings, make_engine, receiver) -> AsyncIterator[httpx.AsyncClient]:
    """API client backed by a real service on in-memory storage."""
    service = RelayService(storage=storage, settings=settings, engine=make_engine(receiver))
    set_service(service)
    transport = httpx.ASGITransport(app=_build_app())
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as api:
        yield api
    set_service(None)


async def _create(client: httpx.AsyncClient, **overrides) -> dict:
    response = await client.post(
        "/api/v1/webhooks", json={**CREATE_BODY, **overrides}, headers=HEADERS
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestSystem:
    """Tests for system endpoints."""

    async def test_health(self, client):
        response = await client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["storage_connected"] is True

    async def test_event_catalog(self, client):
        response = await client.get("/api/v1/webhooks/events")

        assert response.status_code == 200
        data = response.json()
        assert len(data["events"]) == len(RelayEventType)
        assert {"event": "task.created", "label": "Task Created"} in data["events"]
        assert data["providers"] == ["zapier", "make", "custom"]

    def test_service_unavailable(self):
        set_service(None)
        with TestClient(_build_app()) as test_client:
            response = test_client.get("/api/v1/webhooks", headers=HEADERS)
            health = test_client.get("/api/v1/health")

        assert response.status_code == 503
        assert health.json()["status"] == "unhealthy"


class TestWebhookCrud:
    """Tests for webhook management endpoints."""

    async def test_create_returns_secret_once(self, client):
        created = await _create(client)

        assert len(created["secret"]) == 64
        webhook = created["webhook"]
        assert "secret" not in webhook
        assert webhook["secret_preview"] == created["secret"][:8] + "..."
        assert webhook["provider"] == "make"

        fetched = await client.get(f"/api/v1/webhooks/{webhook['id']}", headers=HEADERS)
        assert created["secret"] not in fetched.text

    async def test_create_invalid_events(self, client):
        response = await client.post(
            "/api/v1/webhooks",
            json={**CREATE_BODY, "events": ["task.created", "bogus.event"]},
            headers=HEADERS,
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "validation_error"
        assert error["field"] == "events"
        assert error["invalid_values"] == ["bogus.event"]

    async def test_create_invalid_url(self, client):
        response = await client.post(
            "/api/v1/webhooks",
            json={**CREATE_BODY, "url": "http://example.com/hook"},
            headers=HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "url"

    async def test_organization_header_required(self, client):
        response = await client.post("/api/v1/webhooks", json=CREATE_BODY)
        assert response.status_code == 422

    async def test_list_scoped_and_filtered(self, client):
        await _create(client)
        await _create(client, enabled=False)

        all_hooks = await client.get("/api/v1/webhooks", headers=HEADERS)
        enabled = await client.get("/api/v1/webhooks?enabled=true", headers=HEADERS)
        other = await client.get("/api/v1/webhooks", headers=OTHER_ORG)

        assert all_hooks.json()["total"] == 2
        assert enabled.json()["total"] == 1
        assert other.json() == {"webhooks": [], "total": 0}

    async def test_other_organization_gets_404(self, client):
        webhook_id = (await _create(client))["webhook"]["id"]

        for method, path in [
            ("GET", f"/api/v1/webhooks/{webhook_id}"),
            ("DELETE", f"/api/v1/webhooks/{webhook_id}"),
            ("POST", f"/api/v1/webhooks/{webhook_id}/test"),
            ("POST", f"/api/v1/webhooks/{webhook_id}/rotate-secret"),
            ("GET", f"/api/v1/webhooks/{webhook_id}/deliveries"),
        ]:
            response = await client.request(method, path, headers=OTHER_ORG)
            assert response.status_code == 404, path
            assert response.json()["error"]["code"] == "not_found"

    async def test_update(self, client):
        webhook_id = (await _create(client))["webhook"]["id"]

        response = await client.patch(
            f"/api/v1/webhooks/{webhook_id}",
            json={"enabled": False, "events": ["policy.published"]},
            headers=HEADERS,
        )

        assert response.status_code == 200
        webhook = response.json()["webhook"]
        assert webhook["enabled"] is False
        assert webhook["events"] == ["policy.published"]
        assert webhook["name"] == CREATE_BODY["name"]

    async def test_update_rejects_secret(self, client):
        webhook_id = (await _create(client))["webhook"]["id"]

        response = await client.patch(
            f"/api/v1/webhooks/{webhook_id}", json={"secret": "mine"}, headers=HEADERS
        )

        assert response.status_code == 422

    async def test_delete(self, client):
        webhook_id = (await _create(client))["webhook"]["id"]

        response = await client.delete(f"/api/v1/webhooks/{webhook_id}", headers=HEADERS)
        missing = await client.get(f"/api/v1/webhooks/{webhook_id}", headers=HEADERS)

        assert response.status_code == 204
        assert missing.status_code == 404

    async def test_rotate_secret(self, client):
        created = await _create(client)
        webhook_id = created["webhook"]["id"]

        response = await client.post(
            f"/api/v1/webhooks/{webhook_id}/rotate-secret", headers=HEADERS
        )

        assert response.status_code == 200
        data = response.json()
        assert data["secret"] != created["secret"]
        assert data["previous_secret_expires_at"] is not None


class TestDeliveryEndpoints:
    """Tests for test-delivery and history endpoints."""

    async def test_send_test_and_read_history(self, client, receiver):
        webhook_id = (await _create(client))["webhook"]["id"]

        result = await client.post(f"/api/v1/webhooks/{webhook_id}/test", headers=HEADERS)

        assert result.status_code == 200
        assert result.json()["success"] is True
        assert len(receiver.requests) == 1

        history = await client.get(f"/api/v1/webhooks/{webhook_id}/deliveries", headers=HEADERS)
        assert history.json()["total"] == 1
        assert history.json()["deliveries"][0]["status"] == "success"

        detail = await client.get(
            f"/api/v1/webhooks/{webhook_id}?include_deliveries=true&delivery_limit=5",
            headers=HEADERS,
        )
        assert len(detail.json()["deliveries"]) == 1

    async def test_history_kept_after_delete(self, client):
        webhook_id = (await _create(client))["webhook"]["id"]
        await client.post(f"/api/v1/webhooks/{webhook_id}/test", headers=HEADERS)
        await client.delete(f"/api/v1/webhooks/{webhook_id}", headers=HEADERS)

        history = await client.get(f"/api/v1/webhooks/{webhook_id}/deliveries", headers=HEADERS)
        other = await client.get(f"/api/v1/webhooks/{webhook_id}/deliveries", headers=OTHER_ORG)
        unknown = await client.get("/api/v1/webhooks/whk_unknown/deliveries", headers=HEADERS)

        assert history.status_code == 200
        assert history.json()["total"] == 1
        assert history.json()["deliveries"][0]["webhook_id"] == webhook_id
        assert other.status_code == 404
        assert unknown.status_code == 404

    async def test_detail_without_deliveries(self, client):
        webhook_id = (await _create(client))["webhook"]["id"]
        detail = await client.get(f"/api/v1/webhooks/{webhook_id}", headers=HEADERS)
        assert detail.json()["deliveries"] is None

    async def test_delivery_limit_bounded(self, client):
        webhook_id = (await _create(client))["webhook"]["id"]

        response = await client.get(
            f"/api/v1/webhooks/{webhook_id}/deliveries?limit=101", headers=HEADERS
        )

        assert response.status_code == 422

    async def test_unsaved_url_test(self, client, receiver):
        ok = await client.post(
            "/api/v1/webhooks/test", json={"url": "https://new.example.com/hook"}, headers=HEADERS
        )
        invalid = await client.post(
            "/api/v1/webhooks/test", json={"url": "http://example.com/hook"}, headers=HEADERS
        )

        assert ok.json()["success"] is True
        assert invalid.status_code == 200
        assert invalid.json()["success"] is False
        assert len(receiver.requests) == 1
