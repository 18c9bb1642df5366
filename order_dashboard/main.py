from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from order_dashboard.api.health import router as health_router
from order_dashboard.api.ingestion import router as ingestion_router
from order_dashboard.api.orders import router as orders_router
from order_dashboard.api.reporting import router as reporting_router
from order_dashboard.api.webhook import router as webhook_router
from order_dashboard.core.changes import build_change_feed
from order_dashboard.core.config import settings
from order_dashboard.core.database import async_session_maker, engine
from order_dashboard.core.logging import setup_logging
from order_dashboard.models import Base
from order_dashboard.services.alerts import NewOrderAlert
from order_dashboard.services.lifecycle import OrderLifecycleController
from order_dashboard.services.store import OrderStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    changes = build_change_feed(settings.change_feed_url, settings.change_exchange)
    await changes.connect()

    store = OrderStore(async_session_maker, changes)
    controller = OrderLifecycleController(store, refresh_interval=settings.refresh_interval_seconds)
    controller.add_listener(NewOrderAlert())
    await controller.start()

    app.state.store = store
    app.state.controller = controller

    yield

    await controller.stop()
    await changes.close()
    await engine.dispose()


app = FastAPI(
    title=settings.service_name,
    description="Order lifecycle and live dashboard service",
    version="0.1.0",
    lifespan=lifespan
)

cors_origins = settings.cors_origins.split(",") if settings.cors_origins else ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(ingestion_router)
app.include_router(webhook_router)
app.include_router(orders_router)
app.include_router(reporting_router)
