"""create customers and sales tables

Revision ID: 002
Revises: 001
Create Date: 2025-01-15 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'customers',
        sa.Column('customer_id', sa.String(length=100), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=False),
        sa.Column('last_order_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('no_of_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_order_cost', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('customer_id')
    )
    op.create_index(op.f('ix_customers_total_order_cost'), 'customers', ['total_order_cost'])

    op.create_table(
        'sales',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('order_id', sa.String(length=100), nullable=False),
        sa.Column('sub_total', sa.Numeric(10, 2), nullable=False),
        sa.Column('including_tax', sa.Numeric(10, 2), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sales_order_id'), 'sales', ['order_id'])
    op.create_index(op.f('ix_sales_date'), 'sales', ['date'])


def downgrade() -> None:
    op.drop_index(op.f('ix_sales_date'), table_name='sales')
    op.drop_index(op.f('ix_sales_order_id'), table_name='sales')
    op.drop_table('sales')
    op.drop_index(op.f('ix_customers_total_order_cost'), table_name='customers')
    op.drop_table('customers')
