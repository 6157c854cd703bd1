"""
Database seeding for the car rental admin backend.
Creates the first superadmin account so someone can log in and invite others.
"""

import os
import logging
from werkzeug.security import generate_password_hash
from database.connection import get_db_session
from database.models import AdminUser

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@jrvservices.co"
DEFAULT_ADMIN_PASSWORD = "changeme123"


def seed_default_superadmin(session):
    """Create a superadmin if none exists."""
    existing = session.query(AdminUser).filter_by(role='superadmin').first()
    if existing:
        logger.info(f"Superadmin already exists: {existing.email}")
        return existing

    email = os.environ.get('DEFAULT_ADMIN_EMAIL', DEFAULT_ADMIN_EMAIL).strip().lower()
    password = os.environ.get('DEFAULT_ADMIN_PASSWORD', DEFAULT_ADMIN_PASSWORD)

    admin = AdminUser(
        email=email,
        role='superadmin',
        status='active',
        password_hash=generate_password_hash(password, method='pbkdf2:sha256')
    )
    session.add(admin)
    session.flush()
    logger.info(f"Created default superadmin: {admin.email}")
    return admin


def seed_database():
    """
    Seed the database with default data if empty.
    Call this at application startup.
    """
    try:
        with get_db_session() as session:
            seed_default_superadmin(session)
        logger.info("Database seeding completed successfully")
        return True
    except Exception as e:
        logger.error(f"Database seeding failed: {e}")
        raise


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    seed_database()
