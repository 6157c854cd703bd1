"""
Centralized Configuration for the JRV Car Rental Admin Backend
Manages environment-specific settings, secrets, and service configurations.
"""
import os
from datetime import timedelta

class Config:
    """Base configuration with defaults"""

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.urandom(32).hex()
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB max request body

    # CORS Settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
    CORS_METHODS = ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS']
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Requested-With', 'X-Cron-Secret']

    # Database Settings
    DATABASE_URL = os.environ.get('DATABASE_URL', 'postgresql://localhost/jrv_rental')

    # Business timezone (Malaysia, no DST)
    BUSINESS_TIMEZONE = 'Asia/Kuala_Lumpur'
    BUSINESS_UTC_OFFSET_HOURS = 8
    BUSINESS_DAY_START_HOUR = 6

    # Slack Notifications
    ENABLE_SLACK = os.environ.get('ENABLE_SLACK', 'false') == 'true'
    SLACK_WEBHOOK_URL = os.environ.get('SLACK_WEBHOOK_URL')
    SLACK_WEBHOOK_URL_REMINDERS = os.environ.get('SLACK_WEBHOOK_URL_REMINDERS')
    SLACK_MAINTENANCE_WEBHOOK_URL = os.environ.get('SLACK_MAINTENANCE_WEBHOOK_URL')
    SLACK_WEBHOOK_URL_INSURANCE = os.environ.get('SLACK_WEBHOOK_URL_INSURANCE')
    SLACK_WEBHOOK_URL_UPCOMING = os.environ.get('SLACK_WEBHOOK_URL_UPCOMING')
    SLACK_TIMEOUT = int(os.environ.get('SLACK_TIMEOUT', '10'))  # seconds

    # Deep links used in notifications
    ADMIN_BASE_URL = os.environ.get('ADMIN_BASE_URL', 'https://jrvservices.co')

    # Cron endpoint protection (optional)
    CRON_SECRET = os.environ.get('CRON_SECRET')

    # Geo lookup for site events
    ENABLE_GEO_LOOKUP = os.environ.get('ENABLE_GEO_LOOKUP', 'true').lower() == 'true'
    GOOGLE_MAPS_SERVER_KEY = os.environ.get('GOOGLE_MAPS_SERVER_KEY')
    IPINFO_TOKEN = os.environ.get('IPINFO_TOKEN')
    GEO_TIMEOUT = int(os.environ.get('GEO_TIMEOUT', '3'))  # seconds

    # Background Scheduler
    ENABLE_SCHEDULER = os.environ.get('ENABLE_SCHEDULER', 'false').lower() == 'true'
    REMINDER_INTERVAL_SECONDS = int(os.environ.get('REMINDER_INTERVAL_SECONDS', '300'))
    DAILY_JOB_INTERVAL_SECONDS = int(os.environ.get('DAILY_JOB_INTERVAL_SECONDS', '86400'))

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_FILE = os.environ.get('LOG_FILE', 'app.log')

    # Session Configuration
    SESSION_PERMANENT = False
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'
    # Allow all CORS in development
    CORS_ORIGINS = ['*']


class ProductionConfig(Config):
    """Production-specific configuration"""
    DEBUG = False
    TESTING = False
    # Strict CORS in production
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'https://jrvservices.co').split(',')
    # Force HTTPS
    PREFERRED_URL_SCHEME = 'https'
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class TestingConfig(Config):
    """Testing-specific configuration"""
    DEBUG = True
    TESTING = True
    DATABASE_URL = 'sqlite://'
    # No outbound calls from tests
    ENABLE_SLACK = False
    ENABLE_GEO_LOOKUP = False
    ENABLE_SCHEDULER = False
    CRON_SECRET = None


# Configuration selector
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_config():
    """Get configuration based on FLASK_ENV environment variable"""
    env = os.environ.get('FLASK_ENV', 'development')
    return config_by_name.get(env, DevelopmentConfig)


def get_setting(name, default=None):
    """
    Read a setting from the active Flask app, falling back to the environment.

    Services run both inside requests and from the scheduler thread / CLI
    scripts, so they cannot rely on current_app alone.
    """
    from flask import current_app, has_app_context

    if has_app_context() and name in current_app.config:
        return current_app.config[name]
    value = os.environ.get(name)
    if value is None:
        return getattr(get_config(), name, default)
    return value


def slack_enabled() -> bool:
    """True only when ENABLE_SLACK is exactly 'true'."""
    value = get_setting('ENABLE_SLACK', False)
    if isinstance(value, str):
        return value == 'true'
    return bool(value)
