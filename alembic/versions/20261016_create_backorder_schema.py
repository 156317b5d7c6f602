"""Create backorder, waitlist and restock schema

Revision ID: create_backorder_schema
Revises:
Create Date: 2026-10-16

Tables:
- users, products, product_variants
- orders, order_items, order_status_history
- restock_schedules, restock_history
- waitlist_subscriptions, notification_logs
- sequences (backorder_priority counter)
"""
from datetime import datetime, timezone
from typing import Sequence, Union
import uuid

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'create_backorder_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(with_updated: bool = True):
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False)]
    if with_updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False))
    return columns


def upgrade() -> None:
    """Create all tables."""

    # ==================== users ====================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(200), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # ==================== products ====================
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('name_en', sa.String(255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='EUR'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0',
                  comment='Product-level stock, used when the order item has no variant'),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'product_variants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sku', sa.String(50), nullable=False),
        sa.Column('size', sa.String(20), nullable=True),
        sa.Column('color', sa.String(50), nullable=True),
        sa.Column('attributes', sa.JSON(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])
    op.create_index('ix_product_variants_sku', 'product_variants', ['sku'], unique=True)

    # ==================== orders ====================
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('order_type', sa.String(20), nullable=False, server_default='regular'),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='EUR'),
        sa.Column('shipping_address', sa.String(500), nullable=False),
        sa.Column('shipping_city', sa.String(100), nullable=False),
        sa.Column('shipping_postal', sa.String(20), nullable=False),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        sa.Column('payment_method', sa.String(30), nullable=True),
        sa.Column('paypal_order_id', sa.String(100), nullable=True),
        sa.Column('paypal_payer_id', sa.String(100), nullable=True),
        sa.Column('backorder_priority', sa.Integer(), nullable=True,
                  comment='FIFO position; lower is served first'),
        sa.Column('expected_fulfillment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_order_status_created', 'orders', ['status', 'created_at'])
    op.create_index('ix_order_type_status_priority', 'orders', ['order_type', 'status', 'backorder_priority'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('variant_id', sa.Uuid(), sa.ForeignKey('product_variants.id', ondelete='SET NULL'), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('size', sa.String(20), nullable=False),
        sa.Column('color', sa.String(50), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])
    op.create_index('ix_order_items_variant_id', 'order_items', ['variant_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_status', sa.String(50), nullable=True),
        sa.Column('to_status', sa.String(50), nullable=False),
        sa.Column('changed_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])

    # ==================== restock ====================
    op.create_table(
        'restock_schedules',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('variant_id', sa.Uuid(), sa.ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=True),
        sa.Column('expected_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_date', sa.DateTime(timezone=True), nullable=True,
                  comment='When stock actually arrived or the date was cleared'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        'uq_restock_variant', 'restock_schedules', ['product_id', 'variant_id'], unique=True,
        postgresql_where=sa.text('variant_id IS NOT NULL'), sqlite_where=sa.text('variant_id IS NOT NULL'),
    )
    op.create_index(
        'uq_restock_product', 'restock_schedules', ['product_id'], unique=True,
        postgresql_where=sa.text('variant_id IS NULL'), sqlite_where=sa.text('variant_id IS NULL'),
    )
    op.create_index('ix_restock_schedules_product_id', 'restock_schedules', ['product_id'])
    op.create_index('ix_restock_expected_date', 'restock_schedules', ['expected_date'])

    op.create_table(
        'restock_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('variant_id', sa.Uuid(), sa.ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=True),
        sa.Column('action', sa.String(20), nullable=False, comment='SET, CLEARED, EXPIRED, RESTOCKED'),
        sa.Column('expected_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('previous_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('changed_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_restock_history_item_created', 'restock_history', ['product_id', 'variant_id', 'created_at'])

    # ==================== waitlist ====================
    op.create_table(
        'waitlist_subscriptions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('variant_id', sa.Uuid(), sa.ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notified_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_waitlist_subscriptions_email', 'waitlist_subscriptions', ['email'])
    op.create_index(
        'uq_waitlist_email_variant', 'waitlist_subscriptions', ['email', 'product_id', 'variant_id'], unique=True,
        postgresql_where=sa.text('variant_id IS NOT NULL'), sqlite_where=sa.text('variant_id IS NOT NULL'),
    )
    op.create_index(
        'uq_waitlist_email_product', 'waitlist_subscriptions', ['email', 'product_id'], unique=True,
        postgresql_where=sa.text('variant_id IS NULL'), sqlite_where=sa.text('variant_id IS NULL'),
    )
    op.create_index('ix_waitlist_product_active', 'waitlist_subscriptions', ['product_id', 'is_active'])

    # ==================== notifications ====================
    op.create_table(
        'notification_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('notification_type', sa.String(20), nullable=False,
                  comment='restock, delay, fulfillment, test'),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('subject', sa.String(300), nullable=False),
        sa.Column('product_name', sa.String(255), nullable=True),
        sa.Column('variant_sku', sa.String(50), nullable=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('subscription_id', sa.Uuid(),
                  sa.ForeignKey('waitlist_subscriptions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('email_opened', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('link_clicked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('clicked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('purchase_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('purchased_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_notification_logs_notification_type', 'notification_logs', ['notification_type'])
    op.create_index('ix_notification_logs_email', 'notification_logs', ['email'])
    op.create_index('ix_notification_logs_type_sent', 'notification_logs', ['notification_type', 'sent_at'])

    # ==================== sequences ====================
    op.create_table(
        'sequences',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False, unique=True, comment='e.g. backorder_priority'),
        sa.Column('current_value', sa.Integer(), nullable=False, server_default='0', comment='Last used value'),
        *_timestamps(),
    )

    sequences = sa.table(
        'sequences',
        sa.column('id', sa.Uuid()),
        sa.column('name', sa.String()),
        sa.column('current_value', sa.Integer()),
        sa.column('created_at', sa.DateTime(timezone=True)),
        sa.column('updated_at', sa.DateTime(timezone=True)),
    )
    now = datetime.now(timezone.utc)
    op.bulk_insert(sequences, [
        {'id': uuid.uuid4(), 'name': 'backorder_priority', 'current_value': 0, 'created_at': now, 'updated_at': now},
    ])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table('sequences')
    op.drop_table('notification_logs')
    op.drop_table('waitlist_subscriptions')
    op.drop_table('restock_history')
    op.drop_table('restock_schedules')
    op.drop_table('order_status_history')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('product_variants')
    op.drop_table('products')
    op.drop_table('users')
