"""Initial schema: tenants, users, catalog, orders, payments, flags and GDPR

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '001_initial_schema'
down_revision = None


def _uuid(name, **kwargs):
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    # Tenants and users
    op.create_table(
        'tenants',
        _uuid('id', primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, index=True),
        sa.Column('slug', sa.String(100), nullable=False, unique=True, index=True),
        sa.Column('subdomain', sa.String(30), nullable=True, unique=True, index=True),
        sa.Column('subscription_tier', sa.String(50), nullable=False, server_default='starter'),
        sa.Column('subscription_status', sa.String(32), nullable=False, server_default='trial'),
        sa.Column('location_status', sa.String(32), nullable=False, server_default='active'),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True, index=True),
        sa.Column('stripe_subscription_id', sa.String(255), nullable=True, index=True),
        *_timestamps(),
    )

    op.create_table(
        'users',
        _uuid('id', primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('role', sa.String(32), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', index=True),
        *_timestamps(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'user_tenants',
        _uuid('id', primary_key=True),
        _uuid('user_id', sa.ForeignKey('users.id'), nullable=False, index=True),
        _uuid('tenant_id', sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('role', sa.String(32), nullable=False, server_default='member'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'tenant_id', name='uq_user_tenant'),
    )

    # Categories
    op.create_table(
        'platform_categories',
        _uuid('id', primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, index=True),
        sa.Column('slug', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('description', sa.String(1000), nullable=True),
        sa.Column('google_category_id', sa.String(255), nullable=True),
        sa.Column('icon_emoji', sa.String(16), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', index=True),
        *_timestamps(),
    )

    op.create_table(
        'taxonomy_categories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('name', sa.String(255), nullable=False, index=True),
        sa.Column('path', sa.String(1000), nullable=False, unique=True, index=True),
        sa.Column('parent_path', sa.String(1000), nullable=True, index=True),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1', index=True),
    )

    # Catalog
    op.create_table(
        'inventory_items',
        _uuid('id', primary_key=True),
        _uuid('tenant_id', sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('sku', sa.String(100), nullable=False, index=True),
        sa.Column('name', sa.String(500), nullable=False),
        sa.Column('description', sa.String(5000), nullable=True),
        sa.Column('brand', sa.String(255), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sale_price_cents', sa.Integer(), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='usd'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reorder_level', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('item_status', sa.String(32), nullable=False, server_default='active'),
        sa.Column('visibility', sa.String(32), nullable=False, server_default='public'),
        _uuid('directory_category_id', sa.ForeignKey('platform_categories.id'), nullable=True, index=True),
        sa.Column('image_url', sa.String(2000), nullable=True),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default='false', index=True),
        sa.Column('featured_priority', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'sku', name='uq_inventory_tenant_sku'),
    )

    # Orders
    op.create_table(
        'orders',
        _uuid('id', primary_key=True),
        _uuid('tenant_id', sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('order_number', sa.String(50), nullable=False, index=True),
        sa.Column('customer_email', sa.String(255), nullable=False, index=True),
        sa.Column('customer_name', sa.String(255), nullable=True),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('shipping_address', sa.JSON(), nullable=True),
        sa.Column('billing_address', sa.JSON(), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shipping_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='usd'),
        sa.Column('order_status', sa.String(32), nullable=False, server_default='draft', index=True),
        sa.Column('payment_status', sa.String(32), nullable=False, server_default='pending', index=True),
        sa.Column('fulfillment_status', sa.String(32), nullable=False, server_default='unfulfilled'),
        sa.Column('source', sa.String(50), nullable=False, server_default='web'),
        sa.Column('notes', sa.String(2000), nullable=True),
        sa.Column('internal_notes', sa.String(2000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('fulfilled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('tenant_id', 'order_number', name='uq_order_tenant_number'),
    )

    op.create_table(
        'order_items',
        _uuid('id', primary_key=True),
        _uuid('order_id', sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        _uuid('inventory_item_id', sa.ForeignKey('inventory_items.id'), nullable=True, index=True),
        sa.Column('sku', sa.String(100), nullable=True),
        sa.Column('name', sa.String(500), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('line_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'order_status_history',
        _uuid('id', primary_key=True),
        _uuid('order_id', sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('from_status', sa.String(32), nullable=True),
        sa.Column('to_status', sa.String(32), nullable=False),
        sa.Column('changed_by', sa.String(255), nullable=True),
        sa.Column('reason', sa.String(1000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # Payments
    op.create_table(
        'payments',
        _uuid('id', primary_key=True),
        _uuid('tenant_id', sa.ForeignKey('tenants.id'), nullable=False, index=True),
        _uuid('order_id', sa.ForeignKey('orders.id'), nullable=False, index=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('refunded_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='usd'),
        sa.Column('gateway', sa.String(50), nullable=False, server_default='stripe'),
        sa.Column('gateway_transaction_id', sa.String(255), nullable=True, unique=True, index=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending', index=True),
        sa.Column('failure_code', sa.String(100), nullable=True),
        sa.Column('failure_message', sa.String(1000), nullable=True),
        *_timestamps(),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'stripe_webhook_events',
        _uuid('id', primary_key=True),
        sa.Column('event_id', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # Feature flags
    op.create_table(
        'platform_feature_flags',
        _uuid('id', primary_key=True),
        sa.Column('flag', sa.String(100), nullable=False, unique=True, index=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('description', sa.String(500), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'tenant_feature_flags',
        _uuid('id', primary_key=True),
        _uuid('tenant_id', sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('flag', sa.String(100), nullable=False, index=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default='false'),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'flag', name='uq_tenant_feature_flag'),
    )

    op.create_table(
        'tenant_feature_overrides',
        _uuid('id', primary_key=True),
        _uuid('tenant_id', sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('feature', sa.String(100), nullable=False, index=True),
        sa.Column('granted', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('reason', sa.String(1000), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        _uuid('granted_by', sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'feature', name='uq_tenant_feature_override'),
    )

    # GDPR
    op.create_table(
        'consent_records',
        _uuid('id', primary_key=True),
        _uuid('user_id', sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('consent_type', sa.String(32), nullable=False, index=True),
        sa.Column('granted', sa.Boolean(), nullable=False),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
    )

    # user_id is deliberately not a foreign key so rows outlive deleted users
    op.create_table(
        'security_audit_log',
        _uuid('id', primary_key=True),
        _uuid('user_id', nullable=True, index=True),
        sa.Column('action', sa.String(100), nullable=False, index=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
    )

    # Directory view refresh bookkeeping
    op.create_table(
        'directory_mv_refresh_log',
        _uuid('id', primary_key=True),
        sa.Column('view_name', sa.String(100), nullable=False, index=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='running'),
        sa.Column('error', sa.String(2000), nullable=True),
    )


def downgrade():
    op.drop_table('directory_mv_refresh_log')
    op.drop_table('security_audit_log')
    op.drop_table('consent_records')
    op.drop_table('tenant_feature_overrides')
    op.drop_table('tenant_feature_flags')
    op.drop_table('platform_feature_flags')
    op.drop_table('stripe_webhook_events')
    op.drop_table('payments')
    op.drop_table('order_status_history')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('inventory_items')
    op.drop_table('taxonomy_categories')
    op.drop_table('platform_categories')
    op.drop_table('user_tenants')
    op.drop_table('users')
    op.drop_table('tenants')
