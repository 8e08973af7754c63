"""
Alembic migration: Initial schema for the order and quote lifecycle.

Creates contacts, orders (orders and quotes in one table), order_items,
payments and the append-only order_logs table with indexes, foreign keys
and check constraints.

Revision ID: 001
Revises:
Create Date: 2024-03-04 10:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUSES = "'Draft', 'Confirmed', 'Paid', 'Ready', 'Delivered', 'Cancelled'"
QUOTE_STATUSES = "'Draft', 'Sent', 'Accepted', 'Declined', 'Expired', 'Cancelled'"
EVENT_TYPES = (
    "'Birthday', 'Wedding', 'Corporate', 'Anniversary', "
    "'Baby Shower', 'Gender Reveal', 'Other'"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
            comment='Timestamp when record was last updated',
        ),
    ]


def upgrade() -> None:
    """
    Upgrade database schema to the initial order lifecycle tables.
    """
    # Create contacts table
    op.create_table(
        'contacts',
        sa.Column('id', sa.Uuid(), nullable=False, comment='Unique identifier for the record'),
        sa.Column('user_id', sa.Uuid(), nullable=False, comment='Owning business account'),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('company', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_contacts'),
    )
    op.create_index('ix_contacts_user_id', 'contacts', ['user_id'])
    op.create_index('ix_contacts_user_last_name', 'contacts', ['user_id', 'last_name'])

    # Create orders table
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False, comment='Unique identifier for the record'),
        sa.Column('kind', sa.String(length=5), nullable=False, comment='order or quote'),
        sa.Column(
            'number',
            sa.String(length=50),
            nullable=False,
            comment='Human-readable order or quote number',
        ),
        sa.Column('user_id', sa.Uuid(), nullable=False, comment='Owning business account'),
        sa.Column('contact_id', sa.Uuid(), nullable=False, comment='Customer contact'),
        sa.Column(
            'status',
            sa.String(length=20),
            nullable=False,
            comment='Current status, member of the status set for kind',
        ),
        sa.Column('event_type', sa.String(length=13), nullable=False),
        sa.Column('event_date', sa.Date(), nullable=True),
        sa.Column('theme', sa.String(length=255), nullable=True),
        sa.Column('delivery_type', sa.String(length=8), nullable=False),
        sa.Column('delivery_details', sa.Text(), nullable=True),
        sa.Column('discount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('discount_type', sa.String(length=7), nullable=False),
        sa.Column('setup_fee', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('delivery_fee', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('tax_rate', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column(
            'source_quote_id',
            sa.Uuid(),
            nullable=True,
            comment='Quote this order was converted from',
        ),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.ForeignKeyConstraint(
            ['contact_id'],
            ['contacts.id'],
            name='fk_orders_contact_id',
            ondelete='RESTRICT',
        ),
        sa.ForeignKeyConstraint(
            ['source_quote_id'],
            ['orders.id'],
            name='fk_orders_source_quote_id',
            ondelete='SET NULL',
        ),
        sa.UniqueConstraint('number', name='uq_orders_number'),
        sa.UniqueConstraint('source_quote_id', name='uq_orders_source_quote_id'),
        sa.CheckConstraint("kind IN ('order', 'quote')", name='ck_orders_kind'),
        sa.CheckConstraint(
            f"(kind = 'order' AND status IN ({ORDER_STATUSES})) OR "
            f"(kind = 'quote' AND status IN ({QUOTE_STATUSES}))",
            name='ck_orders_status_matches_kind',
        ),
        sa.CheckConstraint(f"event_type IN ({EVENT_TYPES})", name='ck_orders_event_type'),
        sa.CheckConstraint(
            "delivery_type IN ('Pickup', 'Delivery')",
            name='ck_orders_delivery_type',
        ),
        sa.CheckConstraint(
            "discount_type IN ('percent', 'fixed')",
            name='ck_orders_discount_type',
        ),
        sa.CheckConstraint('discount >= 0', name='ck_orders_discount_non_negative'),
        sa.CheckConstraint(
            "discount_type <> 'percent' OR discount <= 100",
            name='ck_orders_percent_discount_max',
        ),
        sa.CheckConstraint('setup_fee >= 0', name='ck_orders_setup_fee_non_negative'),
        sa.CheckConstraint('delivery_fee >= 0', name='ck_orders_delivery_fee_non_negative'),
        sa.CheckConstraint(
            'tax_rate >= 0 AND tax_rate <= 100',
            name='ck_orders_tax_rate_range',
        ),
    )
    op.create_index('ix_orders_kind', 'orders', ['kind'])
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_contact_id', 'orders', ['contact_id'])
    op.create_index('ix_orders_event_date', 'orders', ['event_date'])
    op.create_index('ix_orders_user_kind_status', 'orders', ['user_id', 'kind', 'status'])
    op.create_index('ix_orders_kind_expiry', 'orders', ['kind', 'expiry_date'])

    # Create order_items table
    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column(
            'product_id',
            sa.Uuid(),
            nullable=True,
            comment='Product catalog reference, not validated here',
        ),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_order_items_order_id',
            ondelete='CASCADE',
        ),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_order_items_unit_price_non_negative'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    # Create payments table
    op.create_table(
        'payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('method', sa.String(length=50), nullable=False),
        sa.Column(
            'provider_reference',
            sa.String(length=255),
            nullable=True,
            comment='Payment provider transaction reference',
        ),
        sa.Column('recorded_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('recorded_by', sa.Uuid(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_payments'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_payments_order_id',
            ondelete='RESTRICT',
        ),
        sa.CheckConstraint('amount > 0', name='ck_payments_amount_positive'),
    )
    op.create_index('ix_payments_order_id', 'payments', ['order_id'])

    # Create order_logs table
    op.create_table(
        'order_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('details', sa.Text(), nullable=False),
        sa.Column('actor', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_order_logs'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_order_logs_order_id',
            ondelete='RESTRICT',
        ),
    )
    op.create_index(
        'ix_order_logs_order_created',
        'order_logs',
        ['order_id', 'created_at', 'id'],
    )


def downgrade() -> None:
    """
    Downgrade database schema by dropping all lifecycle tables.
    """
    op.drop_index('ix_order_logs_order_created', table_name='order_logs')
    op.drop_table('order_logs')

    op.drop_index('ix_payments_order_id', table_name='payments')
    op.drop_table('payments')

    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')

    op.drop_index('ix_orders_kind_expiry', table_name='orders')
    op.drop_index('ix_orders_user_kind_status', table_name='orders')
    op.drop_index('ix_orders_event_date', table_name='orders')
    op.drop_index('ix_orders_contact_id', table_name='orders')
    op.drop_index('ix_orders_user_id', table_name='orders')
    op.drop_index('ix_orders_kind', table_name='orders')
    op.drop_table('orders')

    op.drop_index('ix_contacts_user_last_name', table_name='contacts')
    op.drop_index('ix_contacts_user_id', table_name='contacts')
    op.drop_table('contacts')
