from typing import Any


class OrderDashboardError(Exception):
    """Base class for errors raised by the order dashboard."""


class OrderValidationError(OrderDashboardError):
    """Ingestion payload is malformed or incomplete."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class StoreError(OrderDashboardError):
    """The persistence layer was unreachable or rejected a read or write."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        detail = f"{type(cause).__name__}: {cause}" if cause else "unknown error"
        super().__init__(f"Store operation '{operation}' failed: {detail}")
        self.operation = operation
        self.cause = cause


class PartialWriteError(OrderDashboardError):
    """The order row was written but its items were not."""

    def __init__(self, order_id: str, cause: BaseException) -> None:
        super().__init__(f"Order {order_id} was created without items: {cause}")
        self.order_id = order_id
        self.cause = cause


class OrderNotFoundError(OrderDashboardError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class TransitionError(OrderDashboardError):
    """A status change was attempted from a state that does not allow it."""

    def __init__(self, order_id: str, action: str, current: str | None) -> None:
        if current is None:
            message = f"Cannot {action} order {order_id}: it changed concurrently"
        else:
            message = f"Cannot {action} order {order_id} in status '{current}'"
        super().__init__(message)
        self.order_id = order_id
        self.action = action
        self.current = current


class RelayError(OrderDashboardError):
    """Forwarding a payload to the downstream webhook failed."""
