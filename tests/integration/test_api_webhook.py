"""Integration tests for the inbound message webhook"""
import pytest
import httpx
from unittest.mock import AsyncMock

from drasbot import config
from drasbot.exceptions import QueryError
from drasbot.i18n.translations import t
from drasbot.monitoring import metrics
from tests.integration.api_helpers import message_payload


# ============================================================================
# Authentication
# ============================================================================

@pytest.mark.asyncio
async def test_missing_auth_is_rejected(api_client: httpx.AsyncClient, unique_sender):
    response = await api_client.post("/api/v1/messages", json=message_payload(unique_sender, "hola"))

    # HTTPBearer answers 403 on older FastAPI releases and 401 on newer ones
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_invalid_key_is_rejected(api_client: httpx.AsyncClient, bridge, unique_sender):
    response = await api_client.post(
        "/api/v1/messages",
        json=message_payload(unique_sender, "hola"),
        headers={"Authorization": "Bearer wrong_key"}
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid API key"
    assert bridge.sent == []


@pytest.mark.asyncio
async def test_second_configured_key_is_accepted(api_client: httpx.AsyncClient, unique_sender):
    response = await api_client.post(
        "/api/v1/messages",
        json=message_payload(unique_sender, "hola"),
        headers={"Authorization": "Bearer second_key_456"}
    )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_no_configured_keys_rejects_everything(api_client: httpx.AsyncClient, monkeypatch, auth_headers, unique_sender):
    monkeypatch.setattr(config, "WEBHOOK_API_KEYS", [])

    response = await api_client.post(
        "/api/v1/messages",
        json=message_payload(unique_sender, "hola"),
        headers=auth_headers
    )

    assert response.status_code == 503


# ============================================================================
# Payload validation
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"message_type": "image"},
    {"from": "   "},
    {"id": ""},
])
async def test_invalid_payloads(api_client: httpx.AsyncClient, auth_headers, bridge, unique_sender, overrides):
    response = await api_client.post(
        "/api/v1/messages",
        json=message_payload(unique_sender, "hola", **overrides),
        headers=auth_headers
    )

    assert response.status_code == 422
    assert bridge.sent == []


@pytest.mark.asyncio
async def test_missing_sender(api_client: httpx.AsyncClient, auth_headers):
    response = await api_client.post("/api/v1/messages", json={"id": "m1", "content": "hola"}, headers=auth_headers)

    assert response.status_code == 422


# ============================================================================
# Dispatch
# ============================================================================

@pytest.mark.asyncio
async def test_first_message_starts_registration(api_client: httpx.AsyncClient, auth_headers, bridge, container, unique_sender):
    response = await api_client.post(
        "/api/v1/messages",
        json=message_payload(unique_sender, "hola", push_name="Ana"),
        headers=auth_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["processed"] is True
    assert data["handler"] == "welcome"
    assert data["replied"] is True
    assert data["delivered"] is True
    assert bridge.texts_to(unique_sender) == [t("registration_welcome", "es", prefix="!")]

    context = await container.contexts.get(unique_sender)
    assert context.context_type == "registration"
    assert context.step == "awaiting_name"


@pytest.mark.asyncio
async def test_registration_over_the_webhook(api_client: httpx.AsyncClient, auth_headers, bridge, container, unique_sender):
    await api_client.post("/api/v1/messages", json=message_payload(unique_sender, "hola"), headers=auth_headers)
    response = await api_client.post(
        "/api/v1/messages",
        json=message_payload(unique_sender, "me llamo Ana"),
        headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["handler"] == "registration"

    user = await container.users.find_by_identity(unique_sender)
    assert user.display_name == "Ana"
    assert user.is_registered is True
    assert await container.contexts.get(unique_sender) is None


@pytest.mark.asyncio
async def test_command_label_in_response(api_client: httpx.AsyncClient, auth_headers, container, unique_sender):
    await container.users.create(unique_sender, display_name="Ana", is_registered=True)

    response = await api_client.post(
        "/api/v1/messages",
        json=message_payload(unique_sender, "!perfil"),
        headers=auth_headers
    )

    data = response.json()
    assert data["label"] == "command"
    assert data["handler"] == "command"


@pytest.mark.asyncio
async def test_undelivered_reply_is_reported(api_client: httpx.AsyncClient, auth_headers, bridge, unique_sender):
    bridge.fail_sends = True

    response = await api_client.post(
        "/api/v1/messages",
        json=message_payload(unique_sender, "hola"),
        headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["delivered"] is False


@pytest.mark.asyncio
async def test_storage_failure_maps_to_503(api_client: httpx.AsyncClient, auth_headers, container, monkeypatch, unique_sender):
    monkeypatch.setattr(
        container.dispatcher, "dispatch",
        AsyncMock(side_effect=QueryError("users table unavailable", operation="get_user"))
    )

    response = await api_client.post(
        "/api/v1/messages",
        json=message_payload(unique_sender, "hola"),
        headers=auth_headers
    )

    assert response.status_code == 503
    body = response.json()
    assert body["error"] == "QueryError"
    assert body["request_id"]


# ============================================================================
# Health & metrics
# ============================================================================

@pytest.mark.asyncio
async def test_health_is_public(api_client: httpx.AsyncClient):
    response = await api_client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["bridge"] == "connected"
    assert data["storage"] == "memory"
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_health_reports_disconnected_bridge(api_client: httpx.AsyncClient, bridge):
    bridge.connected = False

    response = await api_client.get("/api/health")

    assert response.json()["bridge"] == "disconnected"


@pytest.mark.asyncio
async def test_metrics_disabled(api_client: httpx.AsyncClient, monkeypatch):
    monkeypatch.setattr(metrics, "_enabled", False)

    response = await api_client.get("/metrics")

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_metrics_exposed(api_client: httpx.AsyncClient, auth_headers, unique_sender):
    if not metrics.enabled:
        pytest.skip("Prometheus metrics disabled")

    await api_client.post("/api/v1/messages", json=message_payload(unique_sender, "hola"), headers=auth_headers)
    response = await api_client.get("/metrics")

    assert response.status_code == 200
    assert "drasbot_messages_dispatched_total" in response.text


@pytest.mark.asyncio
async def test_shutdown_closes_bridge(app, bridge, configured_keys):
    async with app.router.lifespan_context(app):
        assert app.state.storage_backend == "memory"
    assert bridge.closed is True
