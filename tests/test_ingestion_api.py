from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from order_dashboard.core.errors import StoreError
from order_dashboard.models.order import OrderStatus
from order_dashboard.repositories.order import OrderRepository
from order_dashboard.services.ingestion import OrderIngestionService


NEW_ORDER = {
    "order_id": "ORD-1",
    "customer_id": "customer-1",
    "customer_name": "Ada Lovelace",
    "phone_number": "555-0100",
    "items": [
        {"item": "Burger", "quantity": 2, "price": 5.00},
        {"item": "Fries", "quantity": 1, "price": 2.50}
    ]
}


@pytest.mark.asyncio
async def test_new_order_success(client: AsyncClient, store):
    response = await client.post("/new-order", json=NEW_ORDER)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Order created successfully",
        "order_id": "ORD-1"
    }

    order = await store.get_order("ORD-1")
    assert order.status == OrderStatus.NEW
    assert order.customer_name == "Ada Lovelace"
    assert order.subtotal == Decimal("12.50")
    assert order.total == Decimal("12.50")
    assert len(order.order_items) == 2


@pytest.mark.asyncio
async def test_new_order_forces_status_new(client: AsyncClient, store):
    response = await client.post("/new-order", json={**NEW_ORDER, "status": "received"})

    assert response.status_code == 200
    order = await store.get_order("ORD-1")
    assert order.status == OrderStatus.NEW
    assert order.accepted_at is None


@pytest.mark.asyncio
async def test_new_order_without_items(client: AsyncClient, store):
    payload = {key: value for key, value in NEW_ORDER.items() if key != "items"}

    response = await client.post("/new-order", json=payload)

    assert response.status_code == 200
    order = await store.get_order("ORD-1")
    assert order.order_items == ()


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["order_id", "customer_id", "customer_name", "phone_number"])
async def test_new_order_missing_required_field(client: AsyncClient, store, field):
    payload = {key: value for key, value in NEW_ORDER.items() if key != field}

    response = await client.post("/new-order", json=payload)

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}
    assert await store.fetch_all() == []


@pytest.mark.asyncio
async def test_new_order_empty_required_field(client: AsyncClient):
    response = await client.post("/new-order", json={**NEW_ORDER, "customer_name": ""})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}


@pytest.mark.asyncio
async def test_new_order_invalid_quantity(client: AsyncClient, store):
    payload = {**NEW_ORDER, "items": [{"item": "Burger", "quantity": 0, "price": 5.00}]}

    response = await client.post("/new-order", json=payload)

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Invalid order items"
    assert data["details"][0]["loc"] == ["items", 0, "quantity"]
    assert await store.fetch_all() == []


@pytest.mark.asyncio
async def test_new_order_invalid_json(client: AsyncClient):
    response = await client.post(
        "/new-order",
        content=b"{not json",
        headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON body"}


@pytest.mark.asyncio
async def test_new_order_duplicate_id_is_server_error(client: AsyncClient):
    first = await client.post("/new-order", json=NEW_ORDER)
    assert first.status_code == 200

    second = await client.post("/new-order", json=NEW_ORDER)

    assert second.status_code == 500
    data = second.json()
    assert data["error"] == "Failed to create order"
    assert "create_order" in data["details"]


@pytest.mark.asyncio
async def test_new_order_keeps_order_when_items_fail(client: AsyncClient, store, monkeypatch):
    async def failing_add_items(self, items):
        raise OperationalError("INSERT INTO order_items", {}, Exception("disk I/O error"))

    monkeypatch.setattr(OrderRepository, "add_items", failing_add_items)

    response = await client.post("/new-order", json=NEW_ORDER)

    assert response.status_code == 200
    order = await store.get_order("ORD-1")
    assert order is not None
    assert order.order_items == ()


@pytest.mark.asyncio
async def test_atomic_ingestion_rolls_back_order(store, clock, order_payload, monkeypatch):
    async def failing_add_items(self, items):
        raise OperationalError("INSERT INTO order_items", {}, Exception("disk I/O error"))

    monkeypatch.setattr(OrderRepository, "add_items", failing_add_items)
    service = OrderIngestionService(store, atomic=True, clock=clock)

    with pytest.raises(StoreError):
        await service.ingest(order_payload("ORD-ATOMIC"))

    assert await store.get_order("ORD-ATOMIC") is None


@pytest.mark.asyncio
async def test_subtotal_with_tax_is_rounded_to_cents(store, clock, order_payload):
    service = OrderIngestionService(store, tax_rate=Decimal("0.0825"), clock=clock)

    await service.ingest(order_payload("ORD-TAX"))

    order = await store.get_order("ORD-TAX")
    assert order.subtotal == Decimal("12.50")
    assert order.subtotal_with_tax == Decimal("13.53")


@pytest.mark.asyncio
async def test_new_order_cors_preflight(client: AsyncClient):
    response = await client.options(
        "/new-order",
        headers={
            "Origin": "https://shop.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type"
        }
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
