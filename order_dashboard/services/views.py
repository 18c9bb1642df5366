"""Status partitions and filters over an order snapshot.

Everything here is a pure function of its inputs. The lifecycle controller
rebuilds an :class:`OrderViewIndex` after each successful refresh, and the API
narrows it per request.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence, Tuple

from order_dashboard.models.order import OrderStatus
from order_dashboard.schemas.order import OrderView

OrderSubset = Tuple[OrderView, ...]


class DateAnchor(str, Enum):
    CREATED_AT = "created_at"
    NEW_ORDER_AT = "new_order_at"
    ACCEPTED_AT = "accepted_at"
    READY_AT = "ready_at"
    RECEIVED_AT = "received_at"


@dataclass(frozen=True)
class DateRange:
    start: date
    end: Optional[date] = None

    def bounds(self) -> Tuple[date, date]:
        end = self.end or self.start
        return (self.start, end) if self.start <= end else (end, self.start)


@dataclass(frozen=True)
class OrderFilters:
    search: str = ""
    date_range: Optional[DateRange] = None
    anchor: DateAnchor = DateAnchor.CREATED_AT
    tz: tzinfo = field(default=timezone.utc)


def partition_by_status(orders: Iterable[OrderView]) -> Dict[OrderStatus, OrderSubset]:
    buckets: Dict[OrderStatus, list[OrderView]] = {status: [] for status in OrderStatus}
    for order in orders:
        buckets[order.status].append(order)
    return {status: tuple(bucket) for status, bucket in buckets.items()}


def matches_search(order: OrderView, query: str) -> bool:
    if not query:
        return True
    query = query.lower()
    return (
        query in order.order_id.lower()
        or query in order.customer_name.lower()
        or query in order.phone_number.lower()
    )


def anchor_value(order: OrderView, anchor: DateAnchor) -> Optional[datetime]:
    return getattr(order, anchor.value)


def matches_date_range(
    order: OrderView,
    date_range: Optional[DateRange],
    anchor: DateAnchor = DateAnchor.CREATED_AT,
    tz: tzinfo = timezone.utc
) -> bool:
    if date_range is None:
        return True
    moment = anchor_value(order, anchor)
    if moment is None:
        return False
    start, end = date_range.bounds()
    return start <= moment.astimezone(tz).date() <= end


def apply_filters(orders: Iterable[OrderView], filters: OrderFilters) -> OrderSubset:
    return tuple(
        order for order in orders
        if matches_search(order, filters.search)
        and matches_date_range(order, filters.date_range, filters.anchor, filters.tz)
    )


class OrderViewIndex:
    def __init__(self, orders: Sequence[OrderView]) -> None:
        self.orders: OrderSubset = tuple(orders)
        self.partitions = partition_by_status(self.orders)

    def counts(self) -> Dict[OrderStatus, int]:
        return {status: len(subset) for status, subset in self.partitions.items()}

    def view(self, tab: OrderStatus, filters: Optional[OrderFilters] = None) -> OrderSubset:
        subset = self.partitions[tab]
        if filters is None:
            return subset
        return apply_filters(subset, filters)

    def history(self, filters: Optional[OrderFilters] = None, status: Optional[OrderStatus] = None) -> OrderSubset:
        orders = self.partitions[status] if status is not None else self.orders
        if filters is None:
            return orders
        return apply_filters(orders, filters)

    def get(self, order_id: str) -> Optional[OrderView]:
        for order in self.orders:
            if order.order_id == order_id:
                return order
        return None
