"""
SQLAlchemy models for the car rental admin backend.
Defines fleet, agreement, admin, marketing and analytics tables.
"""

import uuid
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, Date,
    Numeric, ForeignKey, JSON, Index
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from database.connection import Base


def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


# PostgreSQL types with SQLite fallbacks for local development and tests
GUID = UUID(as_uuid=False).with_variant(String(36), 'sqlite')
JSONDoc = JSONB().with_variant(JSON(), 'sqlite')


def _iso(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _num(value):
    if isinstance(value, Decimal):
        return float(value)
    return value


# =============================================================================
# ADMIN USERS & AUDIT
# =============================================================================

class AdminUser(Base):
    """Back-office staff accounts. Role is admin or superadmin."""
    __tablename__ = 'admin_users'

    user_id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(50))
    role = Column(String(20), nullable=False, default='admin')
    status = Column(String(20), nullable=False, default='active')  # active, disabled
    password_hash = Column(String(255), nullable=False)
    created_by = Column(GUID)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_admin_users_email', 'email'),
        Index('ix_admin_users_role', 'role'),
    )

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'email': self.email,
            'phone': self.phone,
            'role': self.role,
            'status': self.status,
            'created_by': self.created_by,
            'last_login': _iso(self.last_login),
            'created_at': _iso(self.created_at)
        }


class AdminAuditLog(Base):
    """Who changed which admin account, and how."""
    __tablename__ = 'admin_audit_logs'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    actor_user_id = Column(GUID)
    action = Column(String(50), nullable=False)
    target_user_id = Column(GUID)
    meta = Column(JSONDoc, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_admin_audit_created', 'created_at'),
        Index('ix_admin_audit_actor', 'actor_user_id'),
        Index('ix_admin_audit_target', 'target_user_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'actor_user_id': self.actor_user_id,
            'action': self.action,
            'target_user_id': self.target_user_id,
            'meta': self.meta or {},
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# FLEET
# =============================================================================

class CarCatalog(Base):
    """Make/model entries that cars are registered against."""
    __tablename__ = 'car_catalog'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    default_images = Column(JSONDoc, default=list)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    cars = relationship("Car", back_populates="catalog")

    def to_dict(self):
        return {
            'id': self.id,
            'make': self.make,
            'model': self.model,
            'default_images': self.default_images or [],
            'is_active': self.is_active,
            'created_at': _iso(self.created_at)
        }


class Car(Base):
    """A physical vehicle in the rental fleet."""
    __tablename__ = 'cars'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    plate_number = Column(String(30), nullable=False)
    catalog_id = Column(GUID, ForeignKey('car_catalog.id'))
    status = Column(String(30), default='available')  # available, rented, maintenance, inactive
    location = Column(String(100), default='Seremban')

    # Pricing
    daily_price = Column(Numeric(12, 2))
    price_3_days = Column(Numeric(12, 2))
    weekly_price = Column(Numeric(12, 2))
    monthly_price = Column(Numeric(12, 2))
    deposit = Column(Numeric(12, 2))

    # Spec sheet
    body_type = Column(String(50))
    seats = Column(Integer)
    transmission = Column(String(30))
    color = Column(String(50))
    fuel_type = Column(String(30))
    primary_image_url = Column(Text)
    images = Column(JSONDoc, default=list)
    bluetooth = Column(Boolean, default=False)
    smoking_allowed = Column(Boolean, default=False)
    aux = Column(Boolean, default=False)
    usb = Column(Boolean, default=False)
    android_auto = Column(Boolean, default=False)
    apple_carplay = Column(Boolean, default=False)
    notes = Column(Text)

    # Maintenance (km)
    current_mileage = Column(Float)
    next_service_mileage = Column(Float)
    next_gear_oil_mileage = Column(Float)
    next_tyre_mileage = Column(Float)
    next_brake_pad_mileage = Column(Float)

    # Documents
    track_insurance = Column(Boolean, default=True)
    insurance_expiry = Column(Date)
    roadtax_expiry = Column(Date)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    catalog = relationship("CarCatalog", back_populates="cars")

    __table_args__ = (
        Index('ix_cars_plate', 'plate_number'),
        Index('ix_cars_status', 'status'),
        Index('ix_cars_catalog', 'catalog_id'),
    )

    @property
    def make(self):
        return self.catalog.make if self.catalog else None

    @property
    def model(self):
        return self.catalog.model if self.catalog else None

    def to_dict(self):
        return {
            'id': self.id,
            'plate_number': self.plate_number,
            'catalog_id': self.catalog_id,
            'make': self.make,
            'model': self.model,
            'status': self.status,
            'location': self.location,
            'daily_price': _num(self.daily_price),
            'price_3_days': _num(self.price_3_days),
            'weekly_price': _num(self.weekly_price),
            'monthly_price': _num(self.monthly_price),
            'deposit': _num(self.deposit),
            'body_type': self.body_type,
            'seats': self.seats,
            'transmission': self.transmission,
            'color': self.color,
            'fuel_type': self.fuel_type,
            'primary_image_url': self.primary_image_url,
            'images': self.images or [],
            'bluetooth': bool(self.bluetooth),
            'smoking_allowed': bool(self.smoking_allowed),
            'aux': bool(self.aux),
            'usb': bool(self.usb),
            'android_auto': bool(self.android_auto),
            'apple_carplay': bool(self.apple_carplay),
            'notes': self.notes,
            'current_mileage': self.current_mileage,
            'next_service_mileage': self.next_service_mileage,
            'next_gear_oil_mileage': self.next_gear_oil_mileage,
            'next_tyre_mileage': self.next_tyre_mileage,
            'next_brake_pad_mileage': self.next_brake_pad_mileage,
            'track_insurance': self.track_insurance,
            'insurance_expiry': _iso(self.insurance_expiry),
            'roadtax_expiry': _iso(self.roadtax_expiry),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class CarAuditLog(Base):
    """Audit trail of car and maintenance changes."""
    __tablename__ = 'car_audit_logs'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    actor_user_id = Column(GUID)
    action = Column(String(50), nullable=False)
    car_id = Column(GUID)
    meta = Column(JSONDoc, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_car_audit_car', 'car_id'),
        Index('ix_car_audit_actor', 'actor_user_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'actor_user_id': self.actor_user_id,
            'action': self.action,
            'car_id': self.car_id,
            'meta': self.meta or {},
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# AGREEMENTS
# =============================================================================

class Agreement(Base):
    """A rental contract: customer, car and period."""
    __tablename__ = 'agreements'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    car_id = Column(GUID, ForeignKey('cars.id'))
    catalog_id = Column(GUID)

    customer_name = Column(String(255))
    id_number = Column(String(50))
    mobile = Column(String(30))
    ic_url = Column(Text)

    plate_number = Column(String(30))
    car_type = Column(String(120))

    date_start = Column(DateTime)
    date_end = Column(DateTime)
    booking_duration_days = Column(Integer)

    total_price = Column(Numeric(12, 2))
    deposit_price = Column(Numeric(12, 2))

    status = Column(String(30), default='New')
    agreement_url = Column(Text)
    whatsapp_url = Column(Text)
    creator_email = Column(String(255))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    car = relationship("Car")

    __table_args__ = (
        Index('ix_agreements_date_start', 'date_start'),
        Index('ix_agreements_date_end', 'date_end'),
        Index('ix_agreements_status', 'status'),
        Index('ix_agreements_car', 'car_id'),
        Index('ix_agreements_id_number', 'id_number'),
        Index('ix_agreements_mobile', 'mobile'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'car_id': self.car_id,
            'catalog_id': self.catalog_id,
            'customer_name': self.customer_name,
            'id_number': self.id_number,
            'mobile': self.mobile,
            'ic_url': self.ic_url,
            'plate_number': self.plate_number,
            'car_type': self.car_type,
            'date_start': _iso(self.date_start),
            'date_end': _iso(self.date_end),
            'booking_duration_days': self.booking_duration_days,
            'total_price': _num(self.total_price),
            'deposit_price': _num(self.deposit_price),
            'status': self.status,
            'agreement_url': self.agreement_url,
            'whatsapp_url': self.whatsapp_url,
            'creator_email': self.creator_email,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class AgreementLog(Base):
    """Before/after snapshots of every agreement mutation."""
    __tablename__ = 'agreement_logs'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    agreement_id = Column(GUID)
    actor_id = Column(GUID)
    actor_email = Column(String(255))
    action = Column(String(50), nullable=False)
    before = Column(JSONDoc)
    after = Column(JSONDoc)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_agreement_logs_agreement', 'agreement_id'),
        Index('ix_agreement_logs_created', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'agreement_id': self.agreement_id,
            'actor_id': self.actor_id,
            'actor_email': self.actor_email,
            'action': self.action,
            'before': self.before,
            'after': self.after,
            'created_at': _iso(self.created_at)
        }


class BlacklistEntry(Base):
    """Customers who must not be rented to, keyed by IC or phone."""
    __tablename__ = 'blacklist'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    type = Column(String(20), nullable=False)  # ic, phone
    value = Column(String(100), nullable=False)
    reason = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_blacklist_type', 'type'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'value': self.value,
            'reason': self.reason,
            'created_at': _iso(self.created_at)
        }


class NotificationLog(Base):
    """Slack reminders that have been sent."""
    __tablename__ = 'notification_logs'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    agreement_id = Column(GUID)
    plate_number = Column(String(30))
    car_model = Column(String(120))
    reminder_type = Column(String(50))
    sent_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_notification_logs_sent', 'sent_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'agreement_id': self.agreement_id,
            'plate_number': self.plate_number,
            'car_model': self.car_model,
            'reminder_type': self.reminder_type,
            'sent_at': _iso(self.sent_at)
        }


# =============================================================================
# MARKETING
# =============================================================================

class LandingPage(Base):
    """SEO landing pages (bilingual)."""
    __tablename__ = 'landing_pages'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    slug = Column(String(200), unique=True, nullable=False)
    menu_label = Column(String(120))
    category = Column(String(50), default='location')
    status = Column(String(20), default='active')

    title = Column(String(300))
    meta_description = Column(Text)
    h1_title = Column(String(300))
    intro_text = Column(Text)
    cta_text = Column(String(200))
    cta_link = Column(Text)
    body_content = Column(JSONDoc, default=list)

    title_en = Column(String(300))
    meta_description_en = Column(Text)
    h1_title_en = Column(String(300))
    intro_text_en = Column(Text)
    cta_text_en = Column(String(200))
    cta_link_en = Column(Text)
    body_content_en = Column(JSONDoc, default=list)

    images = Column(JSONDoc, default=list)
    image_prompts = Column(JSONDoc, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'slug': self.slug,
            'menu_label': self.menu_label,
            'category': self.category,
            'status': self.status,
            'title': self.title,
            'meta_description': self.meta_description,
            'h1_title': self.h1_title,
            'intro_text': self.intro_text,
            'cta_text': self.cta_text,
            'cta_link': self.cta_link,
            'body_content': self.body_content or [],
            'title_en': self.title_en,
            'meta_description_en': self.meta_description_en,
            'h1_title_en': self.h1_title_en,
            'intro_text_en': self.intro_text_en,
            'cta_text_en': self.cta_text_en,
            'cta_link_en': self.cta_link_en,
            'body_content_en': self.body_content_en or [],
            'images': self.images or [],
            'image_prompts': self.image_prompts or [],
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class LandingPageAuditLog(Base):
    """Audit trail of landing page edits. meta holds {'old', 'new'} snapshots."""
    __tablename__ = 'landing_page_audit_logs'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    actor_user_id = Column(GUID)
    action = Column(String(50), nullable=False)
    landing_page_id = Column(GUID)
    meta = Column(JSONDoc, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_landing_page_audit_page', 'landing_page_id'),
        Index('ix_landing_page_audit_created', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'actor_user_id': self.actor_user_id,
            'action': self.action,
            'landing_page_id': self.landing_page_id,
            'meta': self.meta or {},
            'created_at': _iso(self.created_at)
        }


class FbPost(Base):
    """Social posts tracked by the marketing team."""
    __tablename__ = 'fb_posts'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(300))
    url = Column(Text)
    platform = Column(String(50), default='facebook')
    image_url = Column(Text)
    status = Column(String(30), default='active')
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'url': self.url,
            'platform': self.platform,
            'image_url': self.image_url,
            'status': self.status,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class MarketingLog(Base):
    """Marketing activity log (post edits, scraper progress)."""
    __tablename__ = 'marketing_logs'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    actor_email = Column(String(255))
    action = Column(String(50), nullable=False)
    details = Column(JSONDoc, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_marketing_logs_created', 'created_at'),
        Index('ix_marketing_logs_action', 'action'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'actor_email': self.actor_email,
            'action': self.action,
            'details': self.details or {},
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# SITE ANALYTICS
# =============================================================================

class SiteEvent(Base):
    """One tracked hit from the public website."""
    __tablename__ = 'site_events'

    id = Column(GUID, primary_key=True, default=generate_uuid)
    created_at = Column(DateTime, default=datetime.utcnow)
    event_name = Column(String(120), nullable=False)

    page_path = Column(String(300))
    page_url = Column(String(800))
    referrer = Column(String(800))

    session_id = Column(String(120))
    user_id = Column(String(120))
    anon_id = Column(String(120))

    utm_source = Column(String(120))
    utm_medium = Column(String(120))
    utm_campaign = Column(String(200))
    utm_term = Column(String(200))
    utm_content = Column(String(200))

    traffic_type = Column(String(30))
    device_type = Column(String(30))
    keyword = Column(String(200))
    user_agent = Column(String(800))

    ip = Column(String(100))
    country = Column(String(100))
    region = Column(String(120))
    city = Column(String(200))
    isp = Column(String(200))
    exact_address = Column(Text)
    lat = Column(Float)
    lng = Column(Float)

    props = Column(JSONDoc, default=dict)

    __table_args__ = (
        Index('ix_site_events_created', 'created_at'),
        Index('ix_site_events_session', 'session_id'),
        Index('ix_site_events_anon', 'anon_id'),
        Index('ix_site_events_name', 'event_name'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'created_at': _iso(self.created_at),
            'event_name': self.event_name,
            'page_path': self.page_path,
            'page_url': self.page_url,
            'referrer': self.referrer,
            'session_id': self.session_id,
            'user_id': self.user_id,
            'anon_id': self.anon_id,
            'utm_source': self.utm_source,
            'utm_medium': self.utm_medium,
            'utm_campaign': self.utm_campaign,
            'utm_term': self.utm_term,
            'utm_content': self.utm_content,
            'traffic_type': self.traffic_type,
            'device_type': self.device_type,
            'keyword': self.keyword,
            'user_agent': self.user_agent,
            'ip': self.ip,
            'country': self.country,
            'region': self.region,
            'city': self.city,
            'isp': self.isp,
            'exact_address': self.exact_address,
            'lat': self.lat,
            'lng': self.lng,
            'props': self.props or {}
        }
