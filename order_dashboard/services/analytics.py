from datetime import datetime, time, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Sequence

from order_dashboard.schemas.reporting import AnalyticsSummary, CustomerView, SaleView, TopCustomer

CENTS = Decimal("0.01")


def start_of_day(now: datetime, tz: tzinfo) -> datetime:
    """Midnight of ``now``'s calendar day in ``tz``."""
    return datetime.combine(now.astimezone(tz).date(), time.min, tzinfo=tz)


def summarize(
    sales: Sequence[SaleView],
    customers: Sequence[CustomerView],
    now: datetime,
    tz: tzinfo
) -> AnalyticsSummary:
    """Revenue and order totals; "today" starts at local midnight in ``tz``."""
    today = start_of_day(now, tz)

    total_revenue = sum((sale.including_tax for sale in sales), Decimal("0"))
    todays_sales = [sale for sale in sales if sale.date >= today]
    avg_order_value = total_revenue / len(sales) if sales else Decimal("0")

    return AnalyticsSummary(
        total_revenue=total_revenue,
        total_orders=len(sales),
        total_customers=len(customers),
        avg_order_value=avg_order_value.quantize(CENTS, rounding=ROUND_HALF_UP),
        revenue_today=sum((sale.including_tax for sale in todays_sales), Decimal("0")),
        orders_today=len(todays_sales),
        new_customers_today=sum(1 for customer in customers if customer.created_at >= today)
    )


def top_customers(customers: Sequence[CustomerView], limit: int = 10) -> List[TopCustomer]:
    ranked = sorted(customers, key=lambda customer: customer.total_order_cost, reverse=True)
    return [
        TopCustomer(
            rank=rank,
            customer_id=customer.customer_id,
            customer_name=customer.customer_name,
            phone=customer.phone,
            total_order_cost=customer.total_order_cost,
            no_of_orders=customer.no_of_orders
        )
        for rank, customer in enumerate(ranked[:limit], start=1)
    ]
