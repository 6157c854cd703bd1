"""
Tests for the fleet: cars, catalog, maintenance, documents and the blacklist
"""
import pytest
from datetime import date

from services.fleet_repository import clean_car_payload, evaluate_maintenance
from validators import ValidationError, PermissionDenied

STAFF = {'id': None, 'email': 'staff@jrv.test', 'role': 'admin'}
SUPER = {'id': None, 'email': 'boss@jrv.test', 'role': 'superadmin'}


def _fleet(db_session, actor=STAFF):
    from services.fleet_repository import FleetRepository
    return FleetRepository(db_session, actor)


@pytest.mark.unit
class TestCarPayload:
    """Tests for car form cleaning"""

    def test_required_fields(self):
        """Test plate and catalog are required"""
        with pytest.raises(ValidationError, match='Plate number required'):
            clean_car_payload({'catalog_id': 'x'})
        with pytest.raises(ValidationError, match='Catalog'):
            clean_car_payload({'plate_number': 'WXY1234'})

    def test_defaults_and_conversions(self):
        """Test defaults, numbers, flags and image limit"""
        clean = clean_car_payload({
            'plate_number': ' WXY1234 ',
            'catalog_id': 'cat-1',
            'daily_price': '120',
            'seats': '5',
            'bluetooth': 'on',
            'images': '["a", "b", "c", "d", "e"]',
            'insurance_expiry': '2026-06-30',
        })
        assert clean['plate_number'] == 'WXY1234'
        assert clean['status'] == 'available'
        assert clean['location'] == 'Seremban'
        assert clean['daily_price'] == 120
        assert clean['seats'] == 5
        assert clean['bluetooth'] is True
        assert clean['images'] == ['a', 'b', 'c', 'd']
        assert clean['insurance_expiry'] == date(2026, 6, 30)
        assert clean['track_insurance'] is True
        assert 'current_mileage' not in clean


@pytest.mark.unit
class TestMaintenanceEvaluation:
    """Tests for mileage checks"""

    def test_overdue_and_due_soon(self):
        """Test overdue, soon and far targets"""
        issues, overdue = evaluate_maintenance({
            'current_mileage': 50000,
            'next_service_mileage': 49500,
            'next_tyre_mileage': 51500,
            'next_brake_pad_mileage': 60000,
        })
        assert overdue is True
        assert issues == ['Service OVERDUE (500km)', 'Tyres due in 1500km']

    def test_nothing_due(self):
        """Test that cars without targets have no issues"""
        assert evaluate_maintenance({'current_mileage': 1000}) == ([], False)


@pytest.mark.unit
class TestFleetRepository:
    """Tests for car CRUD and document lists"""

    def test_create_car_is_audited(self, db_session):
        """Test that a new car gets a label and an audit row"""
        from database.models import CarAuditLog

        repo = _fleet(db_session)
        catalog = repo.create_catalog('Perodua', 'Myvi')
        car = repo.create_car({'plate_number': 'WXY1234', 'catalog_id': catalog['id']})
        assert car['car_label'] == 'Perodua Myvi'
        assert db_session.query(CarAuditLog).filter_by(action='CREATE_CAR').count() == 1

    def test_unknown_catalog(self, db_session):
        """Test that cars need an existing catalog entry"""
        with pytest.raises(ValidationError, match='Catalog entry not found'):
            _fleet(db_session).create_car({'plate_number': 'X1', 'catalog_id': 'missing'})

    def test_catalog_needs_make_and_model(self, db_session):
        """Test catalog validation"""
        with pytest.raises(ValidationError, match='Make and Model are required.'):
            _fleet(db_session).create_catalog('Perodua', '')

    def test_delete_needs_superadmin(self, db_session, make_car):
        """Test that only superadmins delete cars"""
        car = make_car()
        with pytest.raises(PermissionDenied):
            _fleet(db_session).delete_car(car.id)
        assert _fleet(db_session, SUPER).delete_car(car.id) is True

    def test_update_maintenance(self, db_session, make_car):
        """Test that mileage updates show up in the maintenance list"""
        car = make_car()
        repo = _fleet(db_session)
        repo.update_maintenance(car.id, {'current_mileage': '10000', 'next_service_mileage': '9000'})
        row = repo.list_maintenance()[0]
        assert row['is_overdue'] is True
        assert row['issues'] == ['Service OVERDUE (1000km)']

    def test_update_maintenance_needs_mileage(self, db_session, make_car):
        """Test that current mileage must be a number"""
        with pytest.raises(ValidationError, match='Invalid current mileage'):
            _fleet(db_session).update_maintenance(make_car().id, {'current_mileage': 'abc'})

    def test_insurance_days(self, db_session, make_car):
        """Test days remaining on documents, skipping inactive cars"""
        make_car(plate='A1', insurance_expiry=date(2026, 1, 20), roadtax_expiry=date(2026, 1, 10))
        make_car(plate='B2', status='inactive')
        rows = _fleet(db_session).list_insurance(today=date(2026, 1, 13))
        assert len(rows) == 1
        assert rows[0]['insurance_days'] == 7
        assert rows[0]['roadtax_days'] == -3

    def test_car_logs_carry_actor_and_plate(self, db_session, admin):
        """Test the change log enrichment, filters and actor options"""
        actor = {'id': admin.user_id, 'email': admin.email, 'role': 'admin'}
        repo = _fleet(db_session, actor)
        catalog = repo.create_catalog('Perodua', 'Axia')
        car = repo.create_car({'plate_number': 'NDR5566', 'catalog_id': catalog['id']})
        repo.update_maintenance(car['id'], {'current_mileage': '12000'})

        result = repo.list_car_logs()
        assert result['total'] == 2
        assert {row['action'] for row in result['rows']} == {'CREATE_CAR', 'UPDATE_MAINTENANCE'}
        assert all(row['plate_number'] == 'NDR5566' for row in result['rows'])
        assert all(row['actor_email'] == 'staff@jrv.test' for row in result['rows'])
        assert result['options']['actors'] == [{'user_id': admin.user_id, 'email': 'staff@jrv.test'}]
        assert result['options']['cars'] == [{'id': car['id'], 'plate_number': 'NDR5566'}]

        assert repo.list_car_logs(q='maint')['total'] == 1
        assert repo.list_car_logs(q=car['id'])['total'] == 2
        assert repo.list_car_logs(action='CREATE_CAR')['total'] == 1
        assert repo.list_car_logs(car_id='missing')['total'] == 0

    def test_car_logs_paging(self, db_session):
        """Test that an empty log still reports one page"""
        result = _fleet(db_session).list_car_logs(page=2, page_size=10)
        assert result['rows'] == []
        assert result['total_pages'] == 1

@pytest.mark.unit
class TestBlacklist:
    """Tests for blacklist entries and lookups"""

    def _repo(self, db_session):
        from services.blacklist_repository import BlacklistRepository
        return BlacklistRepository(db_session)

    def test_create_stores_cleaned_value(self, db_session):
        """Test that punctuation is stripped on create"""
        row = self._repo(db_session).create_entry('ic', '900101-14-5555', 'Unpaid damages')
        assert row['value'] == '900101145555'

    def test_create_validation(self, db_session):
        """Test type and value are required"""
        repo = self._repo(db_session)
        with pytest.raises(ValidationError, match='Type required'):
            repo.create_entry('', '123')
        with pytest.raises(ValidationError, match='Value required'):
            repo.create_entry('ic', '--')

    def test_check_matches_either_format(self, db_session):
        """Test that formatted and bare identifiers match"""
        repo = self._repo(db_session)
        repo.create_entry('phone', '+60 12-345 6789')
        assert repo.check('phone', '0199999999')['blacklisted'] is False
        assert repo.check('phone', '60123456789')['blacklisted'] is True
        assert repo.check('ic', '60123456789')['blacklisted'] is False

    def test_check_ignores_case(self, db_session):
        """Test that passport letters match in either case"""
        repo = self._repo(db_session)
        repo.create_entry('ic', 'A1234567')
        assert repo.check('ic', 'a1234567')['blacklisted'] is True

    def test_delete_missing_entry(self, db_session):
        """Test that unknown ids give 404"""
        with pytest.raises(ValidationError) as exc:
            self._repo(db_session).delete_entry('missing')
        assert exc.value.status == 404


@pytest.mark.unit
class TestFleetEndpoints:
    """Tests for the cars and blacklist blueprints"""

    def test_dropdown(self, client, admin, login_as, make_car):
        """Test the agreement form dropdown"""
        make_car()
        login_as(admin)
        rows = client.get('/api/cars?mode=dropdown').get_json()['rows']
        assert rows[0]['car_label'] == 'Perodua Myvi'

    def test_unknown_car(self, client, admin, login_as):
        """Test that a missing car gives 404"""
        login_as(admin)
        assert client.get('/api/cars/missing').status_code == 404

    def test_admin_cannot_delete_car(self, client, admin, login_as, make_car):
        """Test the delete permission over HTTP"""
        car = make_car()
        login_as(admin)
        response = client.post('/api/cars', json={'action': 'delete', 'id': car.id})
        assert response.status_code == 403

    def test_maintenance_action_must_be_known(self, client, admin, login_as):
        """Test that the maintenance POST only accepts update_maintenance"""
        login_as(admin)
        response = client.post('/api/maintenance', json={'action': 'reset'})
        assert response.status_code == 400

    def test_blacklist_flow(self, client, admin, login_as):
        """Test create, check and invalid action"""
        login_as(admin)
        client.post('/api/blacklist', json={'action': 'create', 'type': 'ic', 'value': 'A1234567'})

        check = client.post('/api/blacklist/check', json={'type': 'ic', 'value': 'B7654321'}).get_json()
        assert check['blacklisted'] is False
        check = client.post('/api/blacklist/check', json={'type': 'ic', 'value': 'A-1234567'}).get_json()
        assert check['blacklisted'] is True

        response = client.post('/api/blacklist', json={'action': 'purge'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid action'

    def test_car_logs_endpoint(self, client, admin, login_as, make_car):
        """Test that /api/cars/logs is not treated as a car id and clamps page_size"""
        make_car()
        login_as(admin)
        response = client.get('/api/cars/logs?page_size=500')
        assert response.status_code == 200
        data = response.get_json()
        assert data['page_size'] == 100
        assert data['options']['cars'][0]['plate_number'] == 'WXY1234'
