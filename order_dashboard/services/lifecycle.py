import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional, Set

from order_dashboard.core.changes import WATCHED_TABLES, Unsubscribe
from order_dashboard.core.errors import OrderNotFoundError, StoreError, TransitionError
from order_dashboard.models.order import OrderStatus, utcnow
from order_dashboard.schemas.order import OrderView
from order_dashboard.services.store import OrderStore
from order_dashboard.services.views import OrderSubset, OrderViewIndex

logger = logging.getLogger(__name__)

Listener = Callable[[OrderViewIndex], None]


class OrderAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    MARK_READY = "mark_ready"
    MARK_RECEIVED = "mark_received"


@dataclass(frozen=True)
class Transition:
    source: OrderStatus
    target: Optional[OrderStatus]
    stamp_field: Optional[str] = None
    previous_field: Optional[str] = None


# A target of None removes the order.
TRANSITIONS: Dict[OrderAction, Transition] = {
    OrderAction.ACCEPT: Transition(OrderStatus.NEW, OrderStatus.IN_PROGRESS, "accepted_at", "new_order_at"),
    OrderAction.REJECT: Transition(OrderStatus.NEW, None),
    OrderAction.MARK_READY: Transition(OrderStatus.IN_PROGRESS, OrderStatus.READY, "ready_at", "accepted_at"),
    OrderAction.MARK_RECEIVED: Transition(OrderStatus.READY, OrderStatus.RECEIVED, "received_at", "ready_at"),
}


def can_transition(current: OrderStatus, action: OrderAction) -> bool:
    return TRANSITIONS[action].source is current


class OrderLifecycleController:
    """Owns the authoritative order snapshot and every status change.

    The snapshot is only ever replaced wholesale by a successful full fetch.
    Fetches are triggered at start, on a timer and on change notifications;
    at most one runs at a time and requests arriving meanwhile are folded
    into a single follow-up fetch. Mutations are serialized per order and
    written as a compare-and-set on the expected source status.
    """

    def __init__(
        self,
        store: OrderStore,
        refresh_interval: float = 30.0,
        clock: Callable[[], datetime] = utcnow
    ) -> None:
        self.store = store
        self.refresh_interval = refresh_interval
        self.clock = clock
        self.index = OrderViewIndex(())
        self.last_refreshed_at: Optional[datetime] = None
        self.last_error: Optional[StoreError] = None
        self._listeners: List[Listener] = []
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._inflight: Optional[asyncio.Task[bool]] = None
        self._rerun = False
        self._running = False
        self._closed = False
        self._task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._unsubscribes: List[Unsubscribe] = []

    @property
    def orders(self) -> OrderSubset:
        return self.index.orders

    def get(self, order_id: str) -> Optional[OrderView]:
        return self.index.get(order_id)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def start(self) -> None:
        if self._running:
            logger.warning("OrderLifecycleController is already running")
            return

        self._running = True
        self._closed = False
        await self.refresh()

        for table in WATCHED_TABLES:
            unsubscribe = await self.store.subscribe_to_changes(table, self._on_change)
            self._unsubscribes.append(unsubscribe)

        self._task = asyncio.create_task(self._refresh_loop())
        logger.info("OrderLifecycleController started")

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        self._closed = True

        for unsubscribe in self._unsubscribes:
            try:
                await unsubscribe()
            except Exception as e:
                logger.error(f"Failed to unsubscribe from changes: {e}", exc_info=True)
        self._unsubscribes.clear()

        tasks = [t for t in (self._task, self._inflight, *self._background) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        self._inflight = None
        self._background.clear()
        logger.info("OrderLifecycleController stopped")

    async def refresh(self) -> bool:
        """Replace the snapshot from a full fetch; False when the fetch failed."""
        if self._closed:
            return False

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._run_refresh())
        else:
            self._rerun = True
        return await asyncio.shield(self._inflight)

    async def accept(self, order_id: str) -> Optional[OrderStatus]:
        return await self._apply(order_id, OrderAction.ACCEPT)

    async def reject(self, order_id: str) -> Optional[OrderStatus]:
        return await self._apply(order_id, OrderAction.REJECT)

    async def mark_ready(self, order_id: str) -> Optional[OrderStatus]:
        return await self._apply(order_id, OrderAction.MARK_READY)

    async def mark_received(self, order_id: str) -> Optional[OrderStatus]:
        return await self._apply(order_id, OrderAction.MARK_RECEIVED)

    async def _apply(self, order_id: str, action: OrderAction) -> Optional[OrderStatus]:
        transition = TRANSITIONS[action]

        async with self._order_lock(order_id):
            current = await self.store.get_order(order_id)
            if current is None:
                raise OrderNotFoundError(order_id)
            if not can_transition(current.status, action):
                logger.warning(f"Rejected {action.value} for order {order_id} in status {current.status.value}")
                raise TransitionError(order_id, action.value, current.status.value)

            if transition.target is None:
                applied = await self.store.delete_order(order_id, expected_status=transition.source)
            else:
                applied = await self.store.update_status(
                    order_id,
                    transition.target,
                    {transition.stamp_field: self._stamp(current, transition)},
                    expected_status=transition.source
                )
            if not applied:
                logger.warning(f"Order {order_id} changed before {action.value} was written")
                raise TransitionError(order_id, action.value, None)

        logger.info(f"Applied {action.value} to order {order_id}")
        await self.refresh()
        return transition.target

    def _stamp(self, current: OrderView, transition: Transition) -> datetime:
        now = self.clock()
        previous = getattr(current, transition.previous_field) if transition.previous_field else None
        if previous is not None and now < previous:
            return previous
        return now

    @asynccontextmanager
    async def _order_lock(self, order_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(order_id, asyncio.Lock())
        self._lock_users[order_id] = self._lock_users.get(order_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[order_id] -= 1
            if self._lock_users[order_id] == 0:
                del self._lock_users[order_id]
                del self._locks[order_id]

    async def _run_refresh(self) -> bool:
        ok = await self._fetch_once()
        while self._rerun and not self._closed:
            self._rerun = False
            ok = await self._fetch_once()
        return ok

    async def _fetch_once(self) -> bool:
        try:
            orders = await self.store.fetch_all()
        except StoreError as e:
            self.last_error = e
            logger.warning(f"Refresh failed, keeping previous snapshot: {e}")
            return False

        if self._closed:
            logger.debug("Discarding fetch result after shutdown")
            return False

        self.index = OrderViewIndex(orders)
        self.last_refreshed_at = utcnow()
        self.last_error = None
        logger.debug(f"Refreshed {len(orders)} orders")

        for listener in list(self._listeners):
            try:
                listener(self.index)
            except Exception as e:
                logger.error(f"Order listener failed: {e}", exc_info=True)
        return True

    def _on_change(self) -> None:
        if self._closed:
            return
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Change-triggered refresh failed: {error}", exc_info=error)

    async def _refresh_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Error in order refresh loop: {e}", exc_info=True)
