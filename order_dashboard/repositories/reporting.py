from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from order_dashboard.models.reporting import Customer, Sale


class ReportingRepository:
    """Read-only access to the customers and sales tables."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_customers(self) -> List[Customer]:
        result = await self.session.execute(
            select(Customer).order_by(Customer.total_order_cost.desc(), Customer.customer_id)
        )
        return list(result.scalars().all())

    async def list_sales(self) -> List[Sale]:
        result = await self.session.execute(
            select(Sale).order_by(Sale.date.desc(), Sale.id)
        )
        return list(result.scalars().all())
