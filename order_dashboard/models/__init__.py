from order_dashboard.core.database import Base
from order_dashboard.models.order import Order, OrderItem, OrderStatus
from order_dashboard.models.reporting import Customer, Sale

__all__ = ["Base", "Order", "OrderItem", "OrderStatus", "Customer", "Sale"]
