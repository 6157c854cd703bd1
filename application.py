"""
JRV Car Rental Admin Backend

Admin API for a Malaysian car rental business: agreements, fleet,
revenue dashboards, customer blacklist, marketing content, website
traffic analytics and Slack reminders.

MODULAR ARCHITECTURE:
- app/api/: HTTP route handlers (Flask Blueprints)
- app/utils/: Shared value helpers (money, plates, phones)
- services/: Business logic and repositories
- database/: SQLAlchemy models, connection and seeding
"""
import os
import logging

from app_init import create_app

# Initialize Flask app with new infrastructure
app = create_app()
logger = logging.getLogger(__name__)


if __name__ == '__main__':
    # Production schemas are created via Alembic migrations
    # Run: alembic upgrade head
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=False)
