"""
Tests for the audit trail writer
"""
import pytest
from datetime import date, datetime
from decimal import Decimal

from services.audit_logger import AuditLogger, to_json_safe


@pytest.mark.unit
class TestAuditLogger:
    """Tests for audit rows and their isolation from business changes"""

    def test_to_json_safe(self):
        """Test that snapshots are JSON friendly"""
        snapshot = to_json_safe({
            'price': Decimal('450.00'),
            'when': datetime(2026, 1, 13, 2, 0),
            'dates': [date(2026, 1, 13)],
        })
        assert snapshot == {'price': 450.0, 'when': '2026-01-13T02:00:00', 'dates': ['2026-01-13']}

    def test_car_log_written(self, db_session, make_car):
        """Test a normal audit row"""
        car = make_car()
        row = AuditLogger(db_session, actor_email='staff@jrv.test').log_car('UPDATE_CAR', car.id, {'status': 'rented'})
        assert row['action'] == 'UPDATE_CAR'
        assert row['meta'] == {'status': 'rented'}

    def test_failed_audit_row_keeps_business_change(self, db_session, make_car):
        """Test that a broken audit insert doesn't lose the car edit it describes"""
        from database.models import Car, CarAuditLog

        car = make_car()
        car.status = 'rented'
        db_session.flush()

        assert AuditLogger(db_session).log_car(None, car.id) is None
        db_session.commit()

        assert db_session.query(Car).filter_by(id=car.id).one().status == 'rented'
        assert db_session.query(CarAuditLog).count() == 0
