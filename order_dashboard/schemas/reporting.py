from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class CustomerView(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    customer_id: str
    customer_name: str
    phone: str
    last_order_date: Optional[datetime] = None
    no_of_orders: int
    total_order_cost: Decimal
    created_at: datetime

    @field_validator("last_order_date", "created_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class SaleView(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    order_id: str
    sub_total: Decimal
    including_tax: Decimal
    date: datetime
    created_at: datetime

    @field_validator("date", "created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class TopCustomer(BaseModel):
    rank: int
    customer_id: str
    customer_name: str
    phone: str
    total_order_cost: Decimal
    no_of_orders: int


class AnalyticsSummary(BaseModel):
    total_revenue: Decimal
    total_orders: int
    total_customers: int
    avg_order_value: Decimal
    revenue_today: Decimal
    orders_today: int
    new_customers_today: int


class CustomerListResponse(BaseModel):
    customers: List[CustomerView]


class SaleListResponse(BaseModel):
    sales: List[SaleView]


class AnalyticsResponse(BaseModel):
    summary: AnalyticsSummary
    top_customers: List[TopCustomer]
