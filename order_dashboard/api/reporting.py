from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query, status

from order_dashboard.api.deps import get_display_timezone, get_order_store
from order_dashboard.core.errors import StoreError
from order_dashboard.models.order import utcnow
from order_dashboard.schemas.reporting import AnalyticsResponse, CustomerListResponse, SaleListResponse
from order_dashboard.services.analytics import summarize, top_customers
from order_dashboard.services.store import OrderStore

router = APIRouter(tags=["reporting"])


def _unavailable(e: StoreError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/customers", response_model=CustomerListResponse)
async def list_customers(store: OrderStore = Depends(get_order_store)) -> CustomerListResponse:
    try:
        customers = await store.fetch_customers()
    except StoreError as e:
        raise _unavailable(e)
    return CustomerListResponse(customers=customers)


@router.get("/sales", response_model=SaleListResponse)
async def list_sales(store: OrderStore = Depends(get_order_store)) -> SaleListResponse:
    try:
        sales = await store.fetch_sales()
    except StoreError as e:
        raise _unavailable(e)
    return SaleListResponse(sales=sales)


@router.get("/analytics/summary", response_model=AnalyticsResponse)
async def analytics_summary(
    limit: int = Query(10, ge=1, le=100),
    store: OrderStore = Depends(get_order_store),
    tz: ZoneInfo = Depends(get_display_timezone)
) -> AnalyticsResponse:
    try:
        sales = await store.fetch_sales()
        customers = await store.fetch_customers()
    except StoreError as e:
        raise _unavailable(e)

    return AnalyticsResponse(
        summary=summarize(sales, customers, utcnow(), tz),
        top_customers=top_customers(customers, limit)
    )
