"""
Pytest configuration and shared fixtures
"""
import os
import sys
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Must be set before database.connection is imported
os.environ['FLASK_ENV'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ.setdefault('SECRET_KEY', 'test-key-minimum-32-chars-long-for-the-suite-only')


@pytest.fixture
def app_config():
    """Fixture providing test configuration"""
    from config import TestingConfig
    return TestingConfig


@pytest.fixture
def app():
    """Flask app on a fresh in-memory SQLite database"""
    from database.connection import Base, get_engine, reset_engine
    from app_init import create_app

    reset_engine('sqlite://')
    flask_app = create_app()

    yield flask_app

    Base.metadata.drop_all(bind=get_engine())
    reset_engine('sqlite://')


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    """Session for arranging and inspecting data; factories commit"""
    from database.connection import get_session_factory

    session = get_session_factory()()
    yield session
    session.rollback()
    session.close()


def _create_admin(db_session, email, role, status='active', password='secret123'):
    from auth import safe_generate_password_hash
    from database.models import AdminUser

    user = AdminUser(
        email=email,
        role=role,
        status=status,
        password_hash=safe_generate_password_hash(password)
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def superadmin(db_session):
    return _create_admin(db_session, 'boss@jrv.test', 'superadmin')


@pytest.fixture
def admin(db_session):
    return _create_admin(db_session, 'staff@jrv.test', 'admin')


@pytest.fixture
def make_admin(db_session):
    """Factory for extra admin accounts"""
    def _make(email, role='admin', status='active', password='secret123'):
        return _create_admin(db_session, email, role, status=status, password=password)
    return _make


@pytest.fixture
def login_as(client):
    """Put an admin into the test client's session"""
    def _login(user):
        with client.session_transaction() as sess:
            sess['admin_user_id'] = user.user_id
    return _login


@pytest.fixture
def make_car(db_session):
    """Factory for a catalog entry plus a car"""
    from database.models import Car, CarCatalog

    def _make(plate='WXY1234', make='Perodua', model='Myvi', **fields):
        catalog = db_session.query(CarCatalog).filter_by(make=make, model=model).first()
        if catalog is None:
            catalog = CarCatalog(make=make, model=model)
            db_session.add(catalog)
            db_session.flush()
        fields.setdefault('status', 'available')
        car = Car(plate_number=plate, catalog_id=catalog.id, **fields)
        db_session.add(car)
        db_session.commit()
        return car
    return _make


@pytest.fixture
def make_agreement(db_session):
    """Factory for an agreement on a car"""
    from database.models import Agreement

    def _make(car=None, start=None, days=3, price=300, status='New', **fields):
        start = start or datetime.utcnow()
        agreement = Agreement(
            car_id=car.id if car else None,
            plate_number=car.plate_number if car else fields.pop('plate_number', None),
            car_type=fields.pop('car_type', 'Perodua Myvi'),
            customer_name=fields.pop('customer_name', 'Ali Bin Abu'),
            id_number=fields.pop('id_number', '900101145555'),
            mobile=fields.pop('mobile', '60123456789'),
            date_start=start,
            date_end=start + timedelta(days=days),
            total_price=Decimal(str(price)),
            status=status,
            **fields
        )
        db_session.add(agreement)
        db_session.commit()
        return agreement
    return _make
