from fastapi import APIRouter, Depends

from order_dashboard.api.deps import get_controller, get_order_store
from order_dashboard.core.errors import StoreError
from order_dashboard.services.lifecycle import OrderLifecycleController
from order_dashboard.services.store import OrderStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    store: OrderStore = Depends(get_order_store),
    controller: OrderLifecycleController = Depends(get_controller)
) -> dict[str, str | dict[str, str]]:
    health = {"status": "healthy", "checks": {}}

    try:
        await store.ping()
        health["checks"]["database"] = "healthy"
    except StoreError as e:
        health["checks"]["database"] = f"unhealthy: {str(e)}"
        health["status"] = "unhealthy"

    if store.changes.is_connected:
        health["checks"]["change_feed"] = "healthy"
    else:
        health["checks"]["change_feed"] = "unhealthy: not connected"
        health["status"] = "unhealthy"

    if controller.last_error is not None:
        health["checks"]["refresh"] = f"stale: {controller.last_error}"
    elif controller.last_refreshed_at is not None:
        health["checks"]["refresh"] = f"ok at {controller.last_refreshed_at.isoformat()}"

    return health
