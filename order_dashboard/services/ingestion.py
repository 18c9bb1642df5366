import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Optional

from pydantic import ValidationError

from order_dashboard.core.errors import OrderValidationError, PartialWriteError, StoreError
from order_dashboard.models.order import Order, OrderItem, OrderStatus, utcnow
from order_dashboard.schemas.order import NewOrderPayload
from order_dashboard.services.store import OrderStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("order_id", "customer_id", "customer_name", "phone_number")
CENTS = Decimal("0.01")


@dataclass
class IngestionResult:
    order_id: str
    item_count: int
    partial_error: Optional[PartialWriteError] = None


def parse_payload(raw: Any) -> NewOrderPayload:
    if not isinstance(raw, dict):
        raise OrderValidationError("Missing required fields")
    try:
        return NewOrderPayload.model_validate(raw)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        if any(error["loc"] and error["loc"][0] in REQUIRED_FIELDS for error in errors):
            raise OrderValidationError("Missing required fields") from e
        raise OrderValidationError("Invalid order items", details=errors) from e


class OrderIngestionService:
    """Writes new orders as they arrive from the storefront.

    The order row goes first. Items follow in a second write unless
    ``atomic`` is set, in which case both share one transaction. In the
    two-step mode an item failure leaves the order in place without items.
    """

    def __init__(
        self,
        store: OrderStore,
        tax_rate: Decimal = Decimal("0"),
        atomic: bool = False,
        clock: Callable[[], datetime] = utcnow
    ) -> None:
        self.store = store
        self.tax_rate = tax_rate
        self.atomic = atomic
        self.clock = clock

    async def ingest(self, payload: NewOrderPayload) -> IngestionResult:
        logger.info(f"Received new order {payload.order_id} with {len(payload.items)} items")

        subtotal = sum((item.price * item.quantity for item in payload.items), Decimal("0"))
        subtotal_with_tax = (subtotal * (1 + self.tax_rate)).quantize(CENTS, rounding=ROUND_HALF_UP)
        now = self.clock()

        order = Order(
            order_id=payload.order_id,
            customer_id=payload.customer_id,
            customer_name=payload.customer_name,
            phone_number=payload.phone_number,
            status=OrderStatus.NEW.value,
            subtotal=subtotal.quantize(CENTS, rounding=ROUND_HALF_UP),
            subtotal_with_tax=subtotal_with_tax,
            new_order_at=now,
            created_at=now
        )
        items = [
            OrderItem(
                order_id=payload.order_id,
                item=item.item,
                quantity=item.quantity,
                price=item.price
            )
            for item in payload.items
        ]

        if self.atomic:
            await self.store.create_order(order, items)
            logger.info(f"Order {payload.order_id} created with {len(items)} items")
            return IngestionResult(order_id=payload.order_id, item_count=len(items))

        await self.store.create_order(order)
        logger.info(f"Order {payload.order_id} created")

        if not items:
            return IngestionResult(order_id=payload.order_id, item_count=0)

        try:
            await self.store.add_items(payload.order_id, items)
        except StoreError as e:
            partial = PartialWriteError(payload.order_id, e)
            logger.error(str(partial))
            return IngestionResult(order_id=payload.order_id, item_count=0, partial_error=partial)

        logger.info(f"Order items created for {payload.order_id}: {len(items)}")
        return IngestionResult(order_id=payload.order_id, item_count=len(items))
