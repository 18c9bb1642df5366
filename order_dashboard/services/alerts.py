import logging
from typing import Callable, Optional

from order_dashboard.models.order import OrderStatus
from order_dashboard.services.views import OrderViewIndex

logger = logging.getLogger(__name__)


class NewOrderAlert:
    """Fires when the number of new orders grows past the last observed count."""

    def __init__(self, on_alert: Optional[Callable[[int, int], None]] = None) -> None:
        self.on_alert = on_alert
        self.baseline: Optional[int] = None

    def observe(self, new_count: int) -> bool:
        previous = self.baseline
        self.baseline = new_count
        if previous is None or new_count <= previous:
            return False

        logger.info(f"New orders arrived: {previous} -> {new_count}")
        if self.on_alert is not None:
            self.on_alert(previous, new_count)
        return True

    def __call__(self, index: OrderViewIndex) -> None:
        self.observe(len(index.partitions[OrderStatus.NEW]))
