"""
JRV Car Rental Admin - Application Package

This package contains the modular backend structure:
- api/: HTTP route handlers (Flask Blueprints)
- utils/: Shared utility functions

Business logic lives in the top-level services/ package and the app
factory in app_init.py at the project root.
"""

import logging

logger = logging.getLogger(__name__)

# Import blueprints
from app.api.auth_routes import auth_bp
from app.api.admin import admin_bp
from app.api.agreements import agreements_bp
from app.api.cars import cars_bp
from app.api.blacklist import blacklist_bp
from app.api.marketing import marketing_bp
from app.api.site_events import site_events_bp
from app.api.dashboard import dashboard_bp
from app.api.cron import cron_bp
from app.api.scheduler import scheduler_bp

BLUEPRINTS = (
    auth_bp,
    admin_bp,
    agreements_bp,
    cars_bp,
    blacklist_bp,
    marketing_bp,
    site_events_bp,
    dashboard_bp,
    cron_bp,
    scheduler_bp,
)


def register_blueprints(app):
    """
    Register all API blueprints with the Flask app.
    Called from app_init.create_app after the infrastructure is set up.

    Args:
        app: Flask application instance
    """
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
    logger.info(f"Registered {len(BLUEPRINTS)} API blueprints")


__all__ = ['register_blueprints', 'app', 'auth_bp', 'admin_bp', 'agreements_bp', 'cars_bp', 'blacklist_bp', 'marketing_bp', 'site_events_bp', 'dashboard_bp', 'cron_bp', 'scheduler_bp']


# ==============================================================================
# WSGI APP EXPORT FOR GUNICORN
# ==============================================================================
# This allows gunicorn to run with: gunicorn app:app
# The Flask app is created in application.py.
# We use __getattr__ for lazy loading to avoid circular import issues.
# ==============================================================================

_flask_app = None

def __getattr__(name):
    """Lazy load the Flask app to avoid circular imports."""
    global _flask_app
    if name == 'app':
        if _flask_app is None:
            from application import app as flask_app
            _flask_app = flask_app
        return _flask_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
