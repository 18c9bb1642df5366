from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from order_dashboard.models.order import Order, OrderItem, OrderStatus


class NewOrderItem(BaseModel):
    item: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    price: Decimal = Field(ge=0, decimal_places=2)


class NewOrderPayload(BaseModel):
    order_id: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)
    customer_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    items: List[NewOrderItem] = Field(default_factory=list)


class OrderItemView(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    order_id: str
    item: str
    quantity: int
    price: Decimal

    @computed_field
    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class OrderView(BaseModel):
    """Read-only snapshot of one order and the items known for it."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    customer_id: str
    customer_name: str
    phone_number: str
    status: OrderStatus
    subtotal: Decimal
    subtotal_with_tax: Decimal
    new_order_at: datetime
    created_at: datetime
    accepted_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    order_items: Tuple[OrderItemView, ...] = ()

    @field_validator("new_order_at", "created_at", "accepted_at", "ready_at", "received_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # SQLite hands back naive values; everything is written in UTC.
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @computed_field
    @property
    def total(self) -> Decimal:
        return sum((item.line_total for item in self.order_items), Decimal("0"))

    @classmethod
    def from_rows(cls, order: Order, items: Sequence[OrderItem] = ()) -> "OrderView":
        return cls(
            order_id=order.order_id,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            phone_number=order.phone_number,
            status=OrderStatus(order.status),
            subtotal=order.subtotal,
            subtotal_with_tax=order.subtotal_with_tax,
            new_order_at=order.new_order_at,
            created_at=order.created_at,
            accepted_at=order.accepted_at,
            ready_at=order.ready_at,
            received_at=order.received_at,
            order_items=tuple(OrderItemView.model_validate(item) for item in items)
        )


class OrderCreatedResponse(BaseModel):
    success: bool = True
    message: str = "Order created successfully"
    order_id: str


class TransitionResponse(BaseModel):
    order_id: str
    status: str


class OrderListResponse(BaseModel):
    tab: Optional[OrderStatus] = None
    counts: Dict[OrderStatus, int]
    last_refreshed_at: Optional[datetime] = None
    orders: List[OrderView]


class RefreshResponse(BaseModel):
    refreshed: bool
    last_refreshed_at: Optional[datetime] = None
    order_count: int
