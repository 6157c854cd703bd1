"""
Application Initialization Module
Properly initializes Flask app with all infrastructure components
"""
import os
from flask import Flask
from config import get_config
from logging_config import setup_logging
from security import setup_security
from health_checks import register_health_checks
import logging

logger = logging.getLogger(__name__)


def create_app():
    """
    Application factory that creates and configures Flask app with all infrastructure

    Returns:
        Configured Flask application instance
    """
    # Create Flask app
    app = Flask(__name__)

    # Load configuration
    config_class = get_config()
    app.config.from_object(config_class)

    setup_logging(app)

    logger.info("=" * 60)
    logger.info("Initializing JRV Car Rental Admin Backend")
    logger.info("=" * 60)
    logger.info(f"Environment: {os.environ.get('FLASK_ENV', 'development')}")
    logger.info(f"Debug mode: {app.debug}")

    # Setup security (CORS, headers, error handlers)
    setup_security(app, app.config)

    # Register health check endpoints
    register_health_checks(app)

    # Register API blueprints
    from app import register_blueprints
    register_blueprints(app)

    initialize_database(app)
    start_background_services(app)

    logger.info("Application initialization complete")
    logger.info("=" * 60)

    return app


def initialize_database(app):
    """
    Create SQLite tables and seed the first superadmin.

    PostgreSQL schemas are managed by Alembic (alembic upgrade head).
    """
    from database.connection import is_db_configured, init_db, DATABASE_URL

    if not is_db_configured():
        logger.warning("DATABASE_URL not set - API routes will fail until it is configured")
        return

    if DATABASE_URL.startswith('sqlite'):
        init_db()

    if os.environ.get('SEED_DEFAULT_ADMIN', 'false').lower() == 'true':
        from database.seed import seed_database
        seed_database()


def start_background_services(app):
    """Start the Slack reminder scheduler when ENABLE_SCHEDULER is on."""
    if not app.config.get('ENABLE_SCHEDULER'):
        logger.info("Background scheduler disabled (use /api/cron/* or set ENABLE_SCHEDULER)")
        return

    from services.scheduler import init_scheduler
    init_scheduler()
    logger.info("Background scheduler started")
