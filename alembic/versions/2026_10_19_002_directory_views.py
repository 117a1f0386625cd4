"""Store profiles and the directory materialized views

Revision ID: 002_directory_views
Revises: 001_initial_schema
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '002_directory_views'
down_revision = '001_initial_schema'


def upgrade():
    # Public storefront profile, one per tenant; source of the listing view
    op.create_table(
        'store_profiles',
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('business_name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('city', sa.String(255), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('primary_category', sa.String(255), nullable=True),
        sa.Column('secondary_categories', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('logo_url', sa.String(2000), nullable=True),
        sa.Column('rating_avg', sa.Float(), nullable=True),
        sa.Column('rating_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default='false', index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.execute("""
        CREATE MATERIALIZED VIEW directory_listings_list AS
        SELECT
            sp.tenant_id,
            sp.business_name,
            sp.slug,
            sp.description,
            sp.address,
            sp.city,
            sp.state,
            sp.postal_code,
            sp.latitude,
            sp.longitude,
            sp.primary_category,
            sp.secondary_categories,
            sp.logo_url,
            sp.rating_avg,
            sp.rating_count,
            COALESCE(products.product_count, 0) AS product_count,
            sp.is_featured,
            sp.is_published,
            t.subscription_tier,
            sp.created_at,
            sp.updated_at
        FROM store_profiles sp
        JOIN tenants t ON t.id = sp.tenant_id
        LEFT JOIN (
            SELECT tenant_id, COUNT(*)::int AS product_count
            FROM inventory_items
            WHERE item_status = 'active' AND visibility = 'public'
            GROUP BY tenant_id
        ) products ON products.tenant_id = sp.tenant_id
        WHERE sp.is_published = true
    """)
    # CONCURRENTLY refreshes need a unique index on every view
    op.execute('CREATE UNIQUE INDEX idx_directory_listings_tenant ON directory_listings_list (tenant_id)')
    op.execute('CREATE UNIQUE INDEX idx_directory_listings_slug ON directory_listings_list (slug)')
    op.execute('CREATE INDEX idx_directory_listings_city_state ON directory_listings_list (state, city)')
    op.execute('CREATE INDEX idx_directory_listings_primary_category ON directory_listings_list (primary_category)')
    op.execute('CREATE INDEX idx_directory_listings_created_at ON directory_listings_list (created_at)')

    op.execute("""
        CREATE MATERIALIZED VIEW directory_category_listings AS
        WITH listing_categories AS (
            SELECT l.tenant_id, l.primary_category AS category, true AS is_primary, l.product_count
            FROM directory_listings_list l
            WHERE l.primary_category IS NOT NULL
            UNION ALL
            SELECT l.tenant_id, secondary.category, false AS is_primary, l.product_count
            FROM directory_listings_list l
            CROSS JOIN LATERAL jsonb_array_elements_text(l.secondary_categories) AS secondary(category)
            WHERE lower(secondary.category) IS DISTINCT FROM lower(l.primary_category)
        )
        SELECT
            lc.tenant_id,
            pc.slug AS category_slug,
            pc.name AS category_name,
            pc.id AS category_id,
            bool_or(lc.is_primary) AS is_primary,
            max(lc.product_count) AS product_count
        FROM listing_categories lc
        JOIN platform_categories pc ON lower(pc.name) = lower(lc.category) AND pc.is_active = true
        GROUP BY lc.tenant_id, pc.slug, pc.name, pc.id
    """)
    op.execute('CREATE UNIQUE INDEX idx_directory_category_listings_pk ON directory_category_listings (tenant_id, category_slug)')
    op.execute('CREATE INDEX idx_directory_category_listings_slug ON directory_category_listings (category_slug)')

    op.execute("""
        CREATE MATERIALIZED VIEW directory_featured_products AS
        SELECT
            i.id,
            i.tenant_id,
            l.business_name AS store_name,
            l.slug AS store_slug,
            i.name,
            i.sku,
            i.price_cents,
            i.sale_price_cents,
            i.currency,
            i.image_url,
            i.stock,
            i.featured_priority,
            pc.name AS category_name,
            l.city,
            l.state,
            l.latitude,
            l.longitude,
            COALESCE(i.updated_at, i.created_at) AS featured_at
        FROM inventory_items i
        JOIN directory_listings_list l ON l.tenant_id = i.tenant_id
        LEFT JOIN platform_categories pc ON pc.id = i.directory_category_id
        WHERE i.is_featured = true
          AND i.stock > 0
          AND i.item_status = 'active'
          AND i.visibility = 'public'
    """)
    op.execute('CREATE UNIQUE INDEX idx_directory_featured_products_id ON directory_featured_products (id)')
    op.execute('CREATE INDEX idx_directory_featured_products_tenant ON directory_featured_products (tenant_id)')


def downgrade():
    op.execute('DROP MATERIALIZED VIEW IF EXISTS directory_featured_products')
    op.execute('DROP MATERIALIZED VIEW IF EXISTS directory_category_listings')
    op.execute('DROP MATERIALIZED VIEW IF EXISTS directory_listings_list')
    op.drop_table('store_profiles')
