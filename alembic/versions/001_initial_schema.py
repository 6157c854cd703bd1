"""Initial schema: fleet, agreements, admin, marketing, analytics

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _uuid():
    return postgresql.UUID(as_uuid=False)


def _jsonb():
    return postgresql.JSONB(astext_type=sa.Text())


def upgrade():
    # Admin users
    op.create_table('admin_users',
        sa.Column('user_id', _uuid(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='admin'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('created_by', _uuid(), nullable=True),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('user_id'),
        sa.UniqueConstraint('email')
    )
    op.create_index('ix_admin_users_email', 'admin_users', ['email'], unique=False)
    op.create_index('ix_admin_users_role', 'admin_users', ['role'], unique=False)

    op.create_table('admin_audit_logs',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('actor_user_id', _uuid(), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('target_user_id', _uuid(), nullable=True),
        sa.Column('meta', _jsonb(), nullable=True, server_default='{}'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_admin_audit_created', 'admin_audit_logs', ['created_at'], unique=False)
    op.create_index('ix_admin_audit_actor', 'admin_audit_logs', ['actor_user_id'], unique=False)
    op.create_index('ix_admin_audit_target', 'admin_audit_logs', ['target_user_id'], unique=False)

    # Fleet
    op.create_table('car_catalog',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('make', sa.String(100), nullable=False),
        sa.Column('model', sa.String(100), nullable=False),
        sa.Column('default_images', _jsonb(), nullable=True, server_default='[]'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('cars',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('plate_number', sa.String(30), nullable=False),
        sa.Column('catalog_id', _uuid(), nullable=True),
        sa.Column('status', sa.String(30), nullable=True, server_default='available'),
        sa.Column('location', sa.String(100), nullable=True, server_default='Seremban'),
        sa.Column('daily_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('price_3_days', sa.Numeric(12, 2), nullable=True),
        sa.Column('weekly_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('monthly_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('deposit', sa.Numeric(12, 2), nullable=True),
        sa.Column('body_type', sa.String(50), nullable=True),
        sa.Column('seats', sa.Integer(), nullable=True),
        sa.Column('transmission', sa.String(30), nullable=True),
        sa.Column('color', sa.String(50), nullable=True),
        sa.Column('fuel_type', sa.String(30), nullable=True),
        sa.Column('primary_image_url', sa.Text(), nullable=True),
        sa.Column('images', _jsonb(), nullable=True, server_default='[]'),
        sa.Column('bluetooth', sa.Boolean(), nullable=True, server_default='false'),
        sa.Column('smoking_allowed', sa.Boolean(), nullable=True, server_default='false'),
        sa.Column('aux', sa.Boolean(), nullable=True, server_default='false'),
        sa.Column('usb', sa.Boolean(), nullable=True, server_default='false'),
        sa.Column('android_auto', sa.Boolean(), nullable=True, server_default='false'),
        sa.Column('apple_carplay', sa.Boolean(), nullable=True, server_default='false'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('current_mileage', sa.Float(), nullable=True),
        sa.Column('next_service_mileage', sa.Float(), nullable=True),
        sa.Column('next_gear_oil_mileage', sa.Float(), nullable=True),
        sa.Column('next_tyre_mileage', sa.Float(), nullable=True),
        sa.Column('next_brake_pad_mileage', sa.Float(), nullable=True),
        sa.Column('track_insurance', sa.Boolean(), nullable=True, server_default='true'),
        sa.Column('insurance_expiry', sa.Date(), nullable=True),
        sa.Column('roadtax_expiry', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['catalog_id'], ['car_catalog.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_cars_plate', 'cars', ['plate_number'], unique=False)
    op.create_index('ix_cars_status', 'cars', ['status'], unique=False)
    op.create_index('ix_cars_catalog', 'cars', ['catalog_id'], unique=False)

    op.create_table('car_audit_logs',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('actor_user_id', _uuid(), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('car_id', _uuid(), nullable=True),
        sa.Column('meta', _jsonb(), nullable=True, server_default='{}'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_car_audit_car', 'car_audit_logs', ['car_id'], unique=False)
    op.create_index('ix_car_audit_actor', 'car_audit_logs', ['actor_user_id'], unique=False)

    # Agreements
    op.create_table('agreements',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('car_id', _uuid(), nullable=True),
        sa.Column('catalog_id', _uuid(), nullable=True),
        sa.Column('customer_name', sa.String(255), nullable=True),
        sa.Column('id_number', sa.String(50), nullable=True),
        sa.Column('mobile', sa.String(30), nullable=True),
        sa.Column('ic_url', sa.Text(), nullable=True),
        sa.Column('plate_number', sa.String(30), nullable=True),
        sa.Column('car_type', sa.String(120), nullable=True),
        sa.Column('date_start', sa.DateTime(), nullable=True),
        sa.Column('date_end', sa.DateTime(), nullable=True),
        sa.Column('booking_duration_days', sa.Integer(), nullable=True),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('deposit_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('status', sa.String(30), nullable=True, server_default='New'),
        sa.Column('agreement_url', sa.Text(), nullable=True),
        sa.Column('whatsapp_url', sa.Text(), nullable=True),
        sa.Column('creator_email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['car_id'], ['cars.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_agreements_date_start', 'agreements', ['date_start'], unique=False)
    op.create_index('ix_agreements_date_end', 'agreements', ['date_end'], unique=False)
    op.create_index('ix_agreements_status', 'agreements', ['status'], unique=False)
    op.create_index('ix_agreements_car', 'agreements', ['car_id'], unique=False)
    op.create_index('ix_agreements_id_number', 'agreements', ['id_number'], unique=False)
    op.create_index('ix_agreements_mobile', 'agreements', ['mobile'], unique=False)

    op.create_table('agreement_logs',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('agreement_id', _uuid(), nullable=True),
        sa.Column('actor_id', _uuid(), nullable=True),
        sa.Column('actor_email', sa.String(255), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('before', _jsonb(), nullable=True),
        sa.Column('after', _jsonb(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_agreement_logs_agreement', 'agreement_logs', ['agreement_id'], unique=False)
    op.create_index('ix_agreement_logs_created', 'agreement_logs', ['created_at'], unique=False)

    op.create_table('blacklist',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('value', sa.String(100), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_blacklist_type', 'blacklist', ['type'], unique=False)

    op.create_table('notification_logs',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('agreement_id', _uuid(), nullable=True),
        sa.Column('plate_number', sa.String(30), nullable=True),
        sa.Column('car_model', sa.String(120), nullable=True),
        sa.Column('reminder_type', sa.String(50), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notification_logs_sent', 'notification_logs', ['sent_at'], unique=False)

    # Marketing
    op.create_table('landing_pages',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('slug', sa.String(200), nullable=False),
        sa.Column('menu_label', sa.String(120), nullable=True),
        sa.Column('category', sa.String(50), nullable=True, server_default='location'),
        sa.Column('status', sa.String(20), nullable=True, server_default='active'),
        sa.Column('title', sa.String(300), nullable=True),
        sa.Column('meta_description', sa.Text(), nullable=True),
        sa.Column('h1_title', sa.String(300), nullable=True),
        sa.Column('intro_text', sa.Text(), nullable=True),
        sa.Column('cta_text', sa.String(200), nullable=True),
        sa.Column('cta_link', sa.Text(), nullable=True),
        sa.Column('body_content', _jsonb(), nullable=True, server_default='[]'),
        sa.Column('title_en', sa.String(300), nullable=True),
        sa.Column('meta_description_en', sa.Text(), nullable=True),
        sa.Column('h1_title_en', sa.String(300), nullable=True),
        sa.Column('intro_text_en', sa.Text(), nullable=True),
        sa.Column('cta_text_en', sa.String(200), nullable=True),
        sa.Column('cta_link_en', sa.Text(), nullable=True),
        sa.Column('body_content_en', _jsonb(), nullable=True, server_default='[]'),
        sa.Column('images', _jsonb(), nullable=True, server_default='[]'),
        sa.Column('image_prompts', _jsonb(), nullable=True, server_default='[]'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )

    op.create_table('landing_page_audit_logs',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('actor_user_id', _uuid(), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('landing_page_id', _uuid(), nullable=True),
        sa.Column('meta', _jsonb(), nullable=True, server_default='{}'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_landing_page_audit_page', 'landing_page_audit_logs', ['landing_page_id'], unique=False)
    op.create_index('ix_landing_page_audit_created', 'landing_page_audit_logs', ['created_at'], unique=False)

    op.create_table('fb_posts',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('title', sa.String(300), nullable=True),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('platform', sa.String(50), nullable=True, server_default='facebook'),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('status', sa.String(30), nullable=True, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('marketing_logs',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('actor_email', sa.String(255), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('details', _jsonb(), nullable=True, server_default='{}'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_marketing_logs_created', 'marketing_logs', ['created_at'], unique=False)
    op.create_index('ix_marketing_logs_action', 'marketing_logs', ['action'], unique=False)

    # Site analytics
    op.create_table('site_events',
        sa.Column('id', _uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('event_name', sa.String(120), nullable=False),
        sa.Column('page_path', sa.String(300), nullable=True),
        sa.Column('page_url', sa.String(800), nullable=True),
        sa.Column('referrer', sa.String(800), nullable=True),
        sa.Column('session_id', sa.String(120), nullable=True),
        sa.Column('user_id', sa.String(120), nullable=True),
        sa.Column('anon_id', sa.String(120), nullable=True),
        sa.Column('utm_source', sa.String(120), nullable=True),
        sa.Column('utm_medium', sa.String(120), nullable=True),
        sa.Column('utm_campaign', sa.String(200), nullable=True),
        sa.Column('utm_term', sa.String(200), nullable=True),
        sa.Column('utm_content', sa.String(200), nullable=True),
        sa.Column('traffic_type', sa.String(30), nullable=True),
        sa.Column('device_type', sa.String(30), nullable=True),
        sa.Column('keyword', sa.String(200), nullable=True),
        sa.Column('user_agent', sa.String(800), nullable=True),
        sa.Column('ip', sa.String(100), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('region', sa.String(120), nullable=True),
        sa.Column('city', sa.String(200), nullable=True),
        sa.Column('isp', sa.String(200), nullable=True),
        sa.Column('exact_address', sa.Text(), nullable=True),
        sa.Column('lat', sa.Float(), nullable=True),
        sa.Column('lng', sa.Float(), nullable=True),
        sa.Column('props', _jsonb(), nullable=True, server_default='{}'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_site_events_created', 'site_events', ['created_at'], unique=False)
    op.create_index('ix_site_events_session', 'site_events', ['session_id'], unique=False)
    op.create_index('ix_site_events_anon', 'site_events', ['anon_id'], unique=False)
    op.create_index('ix_site_events_name', 'site_events', ['event_name'], unique=False)


def downgrade():
    for index, table in [
        ('ix_site_events_name', 'site_events'),
        ('ix_site_events_anon', 'site_events'),
        ('ix_site_events_session', 'site_events'),
        ('ix_site_events_created', 'site_events'),
        ('ix_marketing_logs_action', 'marketing_logs'),
        ('ix_landing_page_audit_created', 'landing_page_audit_logs'),
        ('ix_landing_page_audit_page', 'landing_page_audit_logs'),
        ('ix_marketing_logs_created', 'marketing_logs'),
        ('ix_notification_logs_sent', 'notification_logs'),
        ('ix_blacklist_type', 'blacklist'),
        ('ix_agreement_logs_created', 'agreement_logs'),
        ('ix_agreement_logs_agreement', 'agreement_logs'),
        ('ix_agreements_mobile', 'agreements'),
        ('ix_agreements_id_number', 'agreements'),
        ('ix_agreements_car', 'agreements'),
        ('ix_agreements_status', 'agreements'),
        ('ix_agreements_date_end', 'agreements'),
        ('ix_agreements_date_start', 'agreements'),
        ('ix_car_audit_actor', 'car_audit_logs'),
        ('ix_car_audit_car', 'car_audit_logs'),
        ('ix_cars_catalog', 'cars'),
        ('ix_cars_status', 'cars'),
        ('ix_cars_plate', 'cars'),
        ('ix_admin_audit_target', 'admin_audit_logs'),
        ('ix_admin_audit_actor', 'admin_audit_logs'),
        ('ix_admin_audit_created', 'admin_audit_logs'),
        ('ix_admin_users_role', 'admin_users'),
        ('ix_admin_users_email', 'admin_users'),
    ]:
        op.drop_index(index, table_name=table)

    op.drop_table('site_events')
    op.drop_table('marketing_logs')
    op.drop_table('fb_posts')
    op.drop_table('landing_page_audit_logs')
    op.drop_table('landing_pages')
    op.drop_table('notification_logs')
    op.drop_table('blacklist')
    op.drop_table('agreement_logs')
    op.drop_table('agreements')
    op.drop_table('car_audit_logs')
    op.drop_table('cars')
    op.drop_table('car_catalog')
    op.drop_table('admin_audit_logs')
    op.drop_table('admin_users')
