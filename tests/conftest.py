from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.pool import NullPool

from order_dashboard.api.deps import get_controller, get_order_store
from order_dashboard.core.changes import LocalChangeFeed
from order_dashboard.core.database import build_engine, build_session_maker
from order_dashboard.main import app
from order_dashboard.models import Base
from order_dashboard.schemas.order import NewOrderItem, NewOrderPayload
from order_dashboard.services.ingestion import OrderIngestionService
from order_dashboard.services.lifecycle import OrderLifecycleController
from order_dashboard.services.store import OrderStore


class TickClock:
    """Returns a strictly increasing UTC time, one minute per call."""

    def __init__(self, start: datetime = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


def make_payload(order_id: str = "ORD-1", **overrides) -> NewOrderPayload:
    data = {
        "order_id": order_id,
        "customer_id": "customer-1",
        "customer_name": "Ada Lovelace",
        "phone_number": "555-0100",
        "items": [
            NewOrderItem(item="Burger", quantity=2, price=Decimal("5.00")),
            NewOrderItem(item="Fries", quantity=1, price=Decimal("2.50")),
        ],
    }
    data.update(overrides)
    return NewOrderPayload(**data)


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_maker(engine)

    await engine.dispose()


@pytest_asyncio.fixture
async def change_feed():
    feed = LocalChangeFeed()
    await feed.connect()
    yield feed
    await feed.close()


@pytest_asyncio.fixture
async def store(session_maker, change_feed):
    return OrderStore(session_maker, change_feed)


@pytest.fixture
def clock():
    return TickClock()


@pytest_asyncio.fixture
async def ingestion(store, clock):
    return OrderIngestionService(store, clock=clock)


@pytest_asyncio.fixture
async def controller(store, clock):
    controller = OrderLifecycleController(store, refresh_interval=3600, clock=clock)
    await controller.start()
    yield controller
    await controller.stop()


@pytest_asyncio.fixture
async def client(store, controller):
    app.dependency_overrides[get_order_store] = lambda: store
    app.dependency_overrides[get_controller] = lambda: controller

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def order_payload():
    return make_payload
