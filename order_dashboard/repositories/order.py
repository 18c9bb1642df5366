from typing import Any, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from order_dashboard.models.order import Order, OrderItem, OrderStatus

TIMESTAMP_FIELDS = frozenset({"accepted_at", "ready_at", "received_at"})


class OrderRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_orders(self) -> List[Order]:
        result = await self.session.execute(
            select(Order).order_by(Order.new_order_at.desc())
        )
        return list(result.scalars().all())

    async def list_items(self) -> List[OrderItem]:
        result = await self.session.execute(
            select(OrderItem).order_by(OrderItem.id)
        )
        return list(result.scalars().all())

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self.session.execute(
            select(Order).where(Order.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def get_items(self, order_id: str) -> List[OrderItem]:
        result = await self.session.execute(
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.id)
        )
        return list(result.scalars().all())

    async def create(self, order: Order) -> Order:
        self.session.add(order)
        await self.session.flush()
        return order

    async def add_items(self, items: Sequence[OrderItem]) -> List[OrderItem]:
        self.session.add_all(items)
        await self.session.flush()
        return list(items)

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        fields: dict[str, Any],
        expected_status: Optional[OrderStatus] = None
    ) -> bool:
        unknown = set(fields) - TIMESTAMP_FIELDS
        if unknown:
            raise ValueError(f"Cannot update order fields: {sorted(unknown)}")

        statement = update(Order).where(Order.order_id == order_id)
        if expected_status is not None:
            statement = statement.where(Order.status == expected_status.value)

        result = await self.session.execute(
            statement.values(status=status.value, **fields)
        )
        return result.rowcount > 0

    async def delete(self, order_id: str, expected_status: Optional[OrderStatus] = None) -> tuple[bool, int]:
        """Delete the order and its items.

        Returns whether the order row matched and how many item rows went with it.
        """
        result = await self.session.execute(
            select(Order.status)
            .where(Order.order_id == order_id)
            .with_for_update()
        )
        current = result.scalar_one_or_none()
        if current is None:
            return False, 0
        if expected_status is not None and current != expected_status.value:
            return False, 0

        items_result = await self.session.execute(
            delete(OrderItem).where(OrderItem.order_id == order_id)
        )
        await self.session.execute(
            delete(Order).where(Order.order_id == order_id)
        )
        return True, items_result.rowcount
