import json

import httpx
import pytest
from httpx import AsyncClient

from order_dashboard.api.deps import get_webhook_relay
from order_dashboard.main import app
from order_dashboard.services.relay import WebhookRelay

WEBHOOK_URL = "http://downstream.test/webhook/orders"


@pytest.fixture
def downstream():
    received = []
    responses = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        if not responses:
            return httpx.Response(200, json={"ok": True})
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    app.dependency_overrides[get_webhook_relay] = lambda: WebhookRelay(
        WEBHOOK_URL,
        transport=httpx.MockTransport(handler)
    )
    yield received, responses
    app.dependency_overrides.pop(get_webhook_relay, None)


@pytest.mark.asyncio
async def test_relay_forwards_body_verbatim(client: AsyncClient, downstream):
    received, _ = downstream
    payload = {"order_id": "ORD-1", "nested": {"items": [1, 2, 3]}}

    response = await client.post("/send-webhook", json=payload)

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert len(received) == 1
    assert str(received[0].url) == WEBHOOK_URL
    assert received[0].method == "POST"
    assert json.loads(received[0].content) == payload


@pytest.mark.asyncio
async def test_relay_passes_through_downstream_status(client: AsyncClient, downstream):
    _, responses = downstream
    responses.append(httpx.Response(202, json={"queued": True}))

    response = await client.post("/send-webhook", json={"order_id": "ORD-1"})

    assert response.status_code == 202
    assert response.json() == {"queued": True}


@pytest.mark.asyncio
async def test_relay_wraps_plain_text_response(client: AsyncClient, downstream):
    _, responses = downstream
    responses.append(httpx.Response(200, text="Workflow was started"))

    response = await client.post("/send-webhook", json={"order_id": "ORD-1"})

    assert response.status_code == 200
    assert response.json() == {"message": "Workflow was started"}


@pytest.mark.asyncio
async def test_relay_downstream_error(client: AsyncClient, downstream):
    _, responses = downstream
    responses.append(httpx.Response(502, text="bad gateway"))

    response = await client.post("/send-webhook", json={"order_id": "ORD-1"})

    assert response.status_code == 500
    error = response.json()["error"]
    assert error.startswith("Internal Server Error:")
    assert "502" in error
    assert "bad gateway" in error


@pytest.mark.asyncio
async def test_relay_network_error(client: AsyncClient, downstream):
    _, responses = downstream
    responses.append(httpx.ConnectError("connection refused"))

    response = await client.post("/send-webhook", json={"order_id": "ORD-1"})

    assert response.status_code == 500
    assert "connection refused" in response.json()["error"]


@pytest.mark.asyncio
async def test_relay_invalid_json_body(client: AsyncClient, downstream):
    received, _ = downstream

    response = await client.post(
        "/send-webhook",
        content=b"not json",
        headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 500
    assert received == []


@pytest.mark.asyncio
async def test_relay_no_content_has_empty_body(client: AsyncClient, downstream):
    _, responses = downstream
    responses.append(httpx.Response(204))

    response = await client.post("/send-webhook", json={"order_id": "ORD-1"})

    assert response.status_code == 204
    assert response.content == b""
