from zoneinfo import ZoneInfo

from fastapi import Depends, Request

from order_dashboard.core.config import settings
from order_dashboard.services.ingestion import OrderIngestionService
from order_dashboard.services.lifecycle import OrderLifecycleController
from order_dashboard.services.relay import WebhookRelay
from order_dashboard.services.store import OrderStore


def get_order_store(request: Request) -> OrderStore:
    return request.app.state.store


def get_controller(request: Request) -> OrderLifecycleController:
    return request.app.state.controller


def get_ingestion_service(store: OrderStore = Depends(get_order_store)) -> OrderIngestionService:
    return OrderIngestionService(
        store,
        tax_rate=settings.tax_rate,
        atomic=settings.atomic_ingestion
    )


def get_webhook_relay() -> WebhookRelay:
    return WebhookRelay(settings.webhook_url, timeout=settings.webhook_timeout_seconds)


def get_display_timezone() -> ZoneInfo:
    return ZoneInfo(settings.display_timezone)
