"""
Database package for the car rental admin backend.
Provides SQLAlchemy models, connection management, and session handling.
"""

from database.connection import (
    Base,
    get_db,
    get_db_session,
    init_db,
    check_db_connection,
    is_db_configured,
    reset_engine
)

from database.models import (
    AdminUser,
    AdminAuditLog,
    CarCatalog,
    Car,
    CarAuditLog,
    Agreement,
    AgreementLog,
    BlacklistEntry,
    NotificationLog,
    LandingPage,
    LandingPageAuditLog,
    FbPost,
    MarketingLog,
    SiteEvent
)

__all__ = [
    # Connection
    'Base',
    'get_db',
    'get_db_session',
    'init_db',
    'check_db_connection',
    'is_db_configured',
    'reset_engine',
    # Models
    'AdminUser',
    'AdminAuditLog',
    'CarCatalog',
    'Car',
    'CarAuditLog',
    'Agreement',
    'AgreementLog',
    'BlacklistEntry',
    'NotificationLog',
    'LandingPage',
    'LandingPageAuditLog',
    'FbPost',
    'MarketingLog',
    'SiteEvent'
]
