from datetime import date
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query, status

from order_dashboard.api.deps import get_controller, get_display_timezone
from order_dashboard.core.errors import OrderNotFoundError, StoreError, TransitionError
from order_dashboard.models.order import OrderStatus
from order_dashboard.schemas.order import OrderListResponse, OrderView, RefreshResponse, TransitionResponse
from order_dashboard.services.lifecycle import OrderAction, OrderLifecycleController
from order_dashboard.services.views import DateAnchor, DateRange, OrderFilters

router = APIRouter(prefix="/orders", tags=["orders"])


def get_filters(
    search: str = Query(""),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    anchor: DateAnchor = Query(DateAnchor.CREATED_AT),
    tz: ZoneInfo = Depends(get_display_timezone)
) -> OrderFilters:
    start = date_from or date_to
    date_range = DateRange(start, date_to) if start else None
    return OrderFilters(search=search, date_range=date_range, anchor=anchor, tz=tz)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    tab: OrderStatus = Query(OrderStatus.NEW),
    filters: OrderFilters = Depends(get_filters),
    controller: OrderLifecycleController = Depends(get_controller)
) -> OrderListResponse:
    index = controller.index
    return OrderListResponse(
        tab=tab,
        counts=index.counts(),
        last_refreshed_at=controller.last_refreshed_at,
        orders=list(index.view(tab, filters))
    )


@router.get("/history", response_model=OrderListResponse)
async def order_history(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    filters: OrderFilters = Depends(get_filters),
    controller: OrderLifecycleController = Depends(get_controller)
) -> OrderListResponse:
    index = controller.index
    return OrderListResponse(
        counts=index.counts(),
        last_refreshed_at=controller.last_refreshed_at,
        orders=list(index.history(filters, status=order_status))
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_orders(
    controller: OrderLifecycleController = Depends(get_controller)
) -> RefreshResponse:
    if not await controller.refresh():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to fetch orders"
        )
    return RefreshResponse(
        refreshed=True,
        last_refreshed_at=controller.last_refreshed_at,
        order_count=len(controller.orders)
    )


@router.get("/{order_id}", response_model=OrderView)
async def get_order(
    order_id: str,
    controller: OrderLifecycleController = Depends(get_controller)
) -> OrderView:
    order = controller.get(order_id)
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order {order_id} not found"
        )
    return order


async def _transition(
    controller: OrderLifecycleController,
    order_id: str,
    action: OrderAction
) -> TransitionResponse:
    handlers = {
        OrderAction.ACCEPT: controller.accept,
        OrderAction.REJECT: controller.reject,
        OrderAction.MARK_READY: controller.mark_ready,
        OrderAction.MARK_RECEIVED: controller.mark_received,
    }
    try:
        target = await handlers[action](order_id)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except TransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return TransitionResponse(order_id=order_id, status=target.value if target else "rejected")


@router.post("/{order_id}/accept", response_model=TransitionResponse)
async def accept_order(
    order_id: str,
    controller: OrderLifecycleController = Depends(get_controller)
) -> TransitionResponse:
    return await _transition(controller, order_id, OrderAction.ACCEPT)


@router.post("/{order_id}/reject", response_model=TransitionResponse)
async def reject_order(
    order_id: str,
    controller: OrderLifecycleController = Depends(get_controller)
) -> TransitionResponse:
    return await _transition(controller, order_id, OrderAction.REJECT)


@router.post("/{order_id}/ready", response_model=TransitionResponse)
async def mark_order_ready(
    order_id: str,
    controller: OrderLifecycleController = Depends(get_controller)
) -> TransitionResponse:
    return await _transition(controller, order_id, OrderAction.MARK_READY)


@router.post("/{order_id}/received", response_model=TransitionResponse)
async def mark_order_received(
    order_id: str,
    controller: OrderLifecycleController = Depends(get_controller)
) -> TransitionResponse:
    return await _transition(controller, order_id, OrderAction.MARK_RECEIVED)
