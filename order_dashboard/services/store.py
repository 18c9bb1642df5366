import logging
from collections import defaultdict
from typing import Any, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_dashboard.core.changes import WATCHED_TABLES, ChangeCallback, ChangeEvent, ChangeFeed, Unsubscribe
from order_dashboard.core.errors import StoreError
from order_dashboard.models.order import Order, OrderItem, OrderStatus
from order_dashboard.repositories.order import OrderRepository
from order_dashboard.repositories.reporting import ReportingRepository
from order_dashboard.schemas.order import OrderView
from order_dashboard.schemas.reporting import CustomerView, SaleView

logger = logging.getLogger(__name__)

STORE_ERRORS = (SQLAlchemyError, OSError)


class OrderStore:
    """Session-per-call adapter over the orders and reporting tables.

    Every committed write is announced on the change feed so that watchers
    can refetch. Persistence failures surface as StoreError.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession], changes: ChangeFeed) -> None:
        self.session_maker = session_maker
        self.changes = changes

    async def fetch_all(self) -> List[OrderView]:
        try:
            async with self.session_maker() as session:
                repository = OrderRepository(session)
                orders = await repository.list_orders()
                # Items come from a separate query; rows for orders not in the
                # first result are simply ignored until the next fetch.
                items = await repository.list_items()
        except STORE_ERRORS as e:
            logger.error(f"Failed to fetch orders: {e}", exc_info=True)
            raise StoreError("fetch_all", e) from e

        items_by_order: dict[str, list[OrderItem]] = defaultdict(list)
        for item in items:
            items_by_order[item.order_id].append(item)

        views = []
        for order in orders:
            try:
                views.append(OrderView.from_rows(order, items_by_order.get(order.order_id, ())))
            except ValueError as e:
                logger.warning(f"Skipping order {order.order_id} with unreadable row: {e}")
        return views

    async def get_order(self, order_id: str) -> Optional[OrderView]:
        try:
            async with self.session_maker() as session:
                repository = OrderRepository(session)
                order = await repository.get_by_id(order_id)
                if order is None:
                    return None
                items = await repository.get_items(order_id)
        except STORE_ERRORS as e:
            logger.error(f"Failed to load order {order_id}: {e}", exc_info=True)
            raise StoreError("get_order", e) from e

        return OrderView.from_rows(order, items)

    async def fetch_customers(self) -> List[CustomerView]:
        try:
            async with self.session_maker() as session:
                customers = await ReportingRepository(session).list_customers()
        except STORE_ERRORS as e:
            logger.error(f"Failed to fetch customers: {e}", exc_info=True)
            raise StoreError("fetch_customers", e) from e
        return [CustomerView.model_validate(customer) for customer in customers]

    async def fetch_sales(self) -> List[SaleView]:
        try:
            async with self.session_maker() as session:
                sales = await ReportingRepository(session).list_sales()
        except STORE_ERRORS as e:
            logger.error(f"Failed to fetch sales: {e}", exc_info=True)
            raise StoreError("fetch_sales", e) from e
        return [SaleView.model_validate(sale) for sale in sales]

    async def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        extra_fields: Optional[dict[str, Any]] = None,
        expected_status: Optional[OrderStatus] = None
    ) -> bool:
        async with self.session_maker() as session:
            repository = OrderRepository(session)
            try:
                updated = await repository.update_status(
                    order_id,
                    new_status,
                    extra_fields or {},
                    expected_status=expected_status
                )
                await session.commit()
            except STORE_ERRORS as e:
                logger.error(f"Failed to update order {order_id} to {new_status.value}: {e}", exc_info=True)
                await session.rollback()
                raise StoreError("update_status", e) from e

        if updated:
            logger.info(f"Order {order_id} updated to {new_status.value}")
            await self._notify("orders", ChangeEvent.UPDATE)
        return updated

    async def delete_order(self, order_id: str, expected_status: Optional[OrderStatus] = None) -> bool:
        async with self.session_maker() as session:
            repository = OrderRepository(session)
            try:
                deleted, item_count = await repository.delete(order_id, expected_status=expected_status)
                if not deleted:
                    await session.rollback()
                    return False
                await session.commit()
            except STORE_ERRORS as e:
                logger.error(f"Failed to delete order {order_id}: {e}", exc_info=True)
                await session.rollback()
                raise StoreError("delete_order", e) from e

        logger.info(f"Order {order_id} deleted with {item_count} items")
        if item_count:
            await self._notify("order_items", ChangeEvent.DELETE)
        await self._notify("orders", ChangeEvent.DELETE)
        return True

    async def create_order(self, order: Order, items: Optional[Sequence[OrderItem]] = None) -> None:
        """Insert an order, and its items in the same transaction when given."""
        async with self.session_maker() as session:
            repository = OrderRepository(session)
            try:
                await repository.create(order)
                if items:
                    await repository.add_items(items)
                await session.commit()
            except STORE_ERRORS as e:
                logger.error(f"Failed to insert order {order.order_id}: {e}", exc_info=True)
                await session.rollback()
                raise StoreError("create_order", e) from e

        await self._notify("orders", ChangeEvent.INSERT)
        if items:
            await self._notify("order_items", ChangeEvent.INSERT)

    async def add_items(self, order_id: str, items: Sequence[OrderItem]) -> None:
        async with self.session_maker() as session:
            repository = OrderRepository(session)
            try:
                await repository.add_items(items)
                await session.commit()
            except STORE_ERRORS as e:
                logger.error(f"Failed to insert items for order {order_id}: {e}", exc_info=True)
                await session.rollback()
                raise StoreError("add_items", e) from e

        await self._notify("order_items", ChangeEvent.INSERT)

    async def subscribe_to_changes(
        self,
        table: str,
        on_change: ChangeCallback,
        event: ChangeEvent = ChangeEvent.ANY
    ) -> Unsubscribe:
        if table not in WATCHED_TABLES:
            raise ValueError(f"Table {table} is not watched")
        return await self.changes.subscribe(table, on_change, event)

    async def ping(self) -> None:
        try:
            async with self.session_maker() as session:
                await session.execute(text("SELECT 1"))
        except STORE_ERRORS as e:
            raise StoreError("ping", e) from e

    async def _notify(self, table: str, event: ChangeEvent) -> None:
        try:
            await self.changes.publish(table, event)
        except Exception as e:
            logger.error(f"Failed to publish change {table}.{event.value}: {e}", exc_info=True)
