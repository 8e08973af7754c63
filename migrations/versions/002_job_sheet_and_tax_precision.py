"""
Alembic migration: Job sheet notes, item categories and tax rate precision.

Adds job sheet notes to orders and a category and notes to line items, and
widens tax_rate to four decimal places so rates such as 8.875 are stored
exactly.

Revision ID: 002
Revises: 001
Create Date: 2024-03-18 09:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Upgrade database schema with job sheet and line item fields.
    """
    op.add_column(
        'orders',
        sa.Column('job_sheet_notes', sa.Text(), nullable=True),
    )

    with op.batch_alter_table('orders') as batch_op:
        batch_op.alter_column(
            'tax_rate',
            existing_type=sa.Numeric(precision=5, scale=2),
            type_=sa.Numeric(precision=7, scale=4),
            existing_nullable=False,
        )

    op.add_column(
        'order_items',
        sa.Column(
            'type',
            sa.String(length=50),
            nullable=False,
            server_default='Product',
        ),
    )
    op.add_column(
        'order_items',
        sa.Column('notes', sa.Text(), nullable=True),
    )


def downgrade() -> None:
    """
    Downgrade database schema by dropping the added fields.

    Tax rates with more than two decimal places are rounded by the narrower
    column.
    """
    op.drop_column('order_items', 'notes')
    op.drop_column('order_items', 'type')

    with op.batch_alter_table('orders') as batch_op:
        batch_op.alter_column(
            'tax_rate',
            existing_type=sa.Numeric(precision=7, scale=4),
            type_=sa.Numeric(precision=5, scale=2),
            existing_nullable=False,
        )

    op.drop_column('orders', 'job_sheet_notes')
