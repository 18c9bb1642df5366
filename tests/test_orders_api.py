from decimal import Decimal

import pytest
from httpx import AsyncClient

from order_dashboard.core.errors import StoreError


async def _create(client: AsyncClient, order_id: str, customer_name: str = "Ada Lovelace", phone: str = "555-0100"):
    response = await client.post("/new-order", json={
        "order_id": order_id,
        "customer_id": f"customer-{order_id}",
        "customer_name": customer_name,
        "phone_number": phone,
        "items": [{"item": "Burger", "quantity": 2, "price": 5.00}]
    })
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_list_new_orders(client: AsyncClient, controller):
    await _create(client, "ORD-1")
    await _create(client, "ORD-2")
    await controller.refresh()

    response = await client.get("/orders")

    assert response.status_code == 200
    data = response.json()
    assert data["tab"] == "new"
    assert data["counts"] == {"new": 2, "in_progress": 0, "ready": 0, "received": 0}
    assert data["last_refreshed_at"] is not None
    assert {order["order_id"] for order in data["orders"]} == {"ORD-1", "ORD-2"}
    assert Decimal(data["orders"][0]["total"]) == Decimal("10.00")


@pytest.mark.asyncio
async def test_list_orders_with_search(client: AsyncClient, controller):
    await _create(client, "ORD-1", customer_name="Ada Lovelace", phone="555-0100")
    await _create(client, "ORD-2", customer_name="Grace Hopper", phone="212-0199")
    await controller.refresh()

    response = await client.get("/orders", params={"tab": "new", "search": "555"})

    assert [order["order_id"] for order in response.json()["orders"]] == ["ORD-1"]


@pytest.mark.asyncio
async def test_list_orders_with_date_filter(client: AsyncClient, controller):
    await _create(client, "ORD-1")
    await controller.refresh()
    created = controller.get("ORD-1").created_at.date()

    same_day = await client.get("/orders", params={"date_from": created.isoformat()})
    other_day = await client.get("/orders", params={"date_from": "2000-01-01", "date_to": "2000-01-02"})

    assert [order["order_id"] for order in same_day.json()["orders"]] == ["ORD-1"]
    assert other_day.json()["orders"] == []


@pytest.mark.asyncio
async def test_accept_order_moves_between_tabs(client: AsyncClient):
    await _create(client, "ORD-1")

    response = await client.post("/orders/ORD-1/accept")

    assert response.status_code == 200
    assert response.json() == {"order_id": "ORD-1", "status": "in_progress"}

    new_tab = (await client.get("/orders", params={"tab": "new"})).json()
    progress_tab = (await client.get("/orders", params={"tab": "in_progress"})).json()
    assert new_tab["orders"] == []
    assert [order["order_id"] for order in progress_tab["orders"]] == ["ORD-1"]
    assert progress_tab["orders"][0]["accepted_at"] is not None


@pytest.mark.asyncio
async def test_full_lifecycle_over_api(client: AsyncClient):
    await _create(client, "ORD-1")

    for path, expected in (("accept", "in_progress"), ("ready", "ready"), ("received", "received")):
        response = await client.post(f"/orders/ORD-1/{path}")
        assert response.status_code == 200
        assert response.json()["status"] == expected

    order = (await client.get("/orders/ORD-1")).json()
    assert order["status"] == "received"
    assert order["received_at"] is not None


@pytest.mark.asyncio
async def test_invalid_transition_is_conflict(client: AsyncClient, store):
    await _create(client, "ORD-1")

    response = await client.post("/orders/ORD-1/ready")

    assert response.status_code == 409
    assert "in status 'new'" in response.json()["detail"]
    assert (await store.get_order("ORD-1")).status.value == "new"


@pytest.mark.asyncio
async def test_reject_order(client: AsyncClient):
    await _create(client, "ORD-1")

    response = await client.post("/orders/ORD-1/reject")

    assert response.status_code == 200
    assert response.json() == {"order_id": "ORD-1", "status": "rejected"}
    assert (await client.get("/orders/ORD-1")).status_code == 404


@pytest.mark.asyncio
async def test_reject_accepted_order_is_conflict(client: AsyncClient):
    await _create(client, "ORD-1")
    await client.post("/orders/ORD-1/accept")

    response = await client.post("/orders/ORD-1/reject")

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_transition_unknown_order(client: AsyncClient):
    response = await client.post("/orders/missing/accept")

    assert response.status_code == 404
    assert response.json()["detail"] == "Order missing not found"


@pytest.mark.asyncio
async def test_transition_store_failure(client: AsyncClient, store, monkeypatch):
    await _create(client, "ORD-1")

    async def failing_get_order(order_id):
        raise StoreError("get_order", ConnectionError("connection refused"))

    monkeypatch.setattr(store, "get_order", failing_get_order)

    response = await client.post("/orders/ORD-1/accept")

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_order_history_with_status_filter(client: AsyncClient, controller):
    await _create(client, "ORD-1")
    await _create(client, "ORD-2")
    await client.post("/orders/ORD-2/accept")

    everything = (await client.get("/orders/history")).json()
    accepted = (await client.get("/orders/history", params={"status": "in_progress"})).json()

    assert {order["order_id"] for order in everything["orders"]} == {"ORD-1", "ORD-2"}
    assert everything["tab"] is None
    assert [order["order_id"] for order in accepted["orders"]] == ["ORD-2"]


@pytest.mark.asyncio
async def test_refresh_endpoint(client: AsyncClient):
    await _create(client, "ORD-1")

    response = await client.post("/orders/refresh")

    assert response.status_code == 200
    data = response.json()
    assert data["refreshed"] is True
    assert data["order_count"] == 1


@pytest.mark.asyncio
async def test_refresh_endpoint_reports_store_failure(client: AsyncClient, store, monkeypatch):
    async def failing_fetch():
        raise StoreError("fetch_all", ConnectionError("connection refused"))

    monkeypatch.setattr(store, "fetch_all", failing_fetch)

    response = await client.post("/orders/refresh")

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_get_order_not_found(client: AsyncClient):
    response = await client.get("/orders/non-existent-id")

    assert response.status_code == 404
    assert response.json()["detail"] == "Order non-existent-id not found"


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()

    assert data["status"] == "healthy"
    assert data["checks"]["database"] == "healthy"
    assert data["checks"]["change_feed"] == "healthy"
