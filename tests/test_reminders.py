"""
Tests for the scheduled Slack checks and the cron endpoints
"""
import pytest
from datetime import date, datetime, timedelta
from unittest.mock import patch, Mock

from services.reminder_service import ReminderService, DISABLED_MESSAGE, find_urgent_documents
from services.slack_service import SlackError

# 10:00 KL on 13 January 2026
NOW = datetime(2026, 1, 13, 2, 0)


@pytest.fixture
def slack_on(monkeypatch):
    """Enable Slack with every webhook configured"""
    monkeypatch.setenv('ENABLE_SLACK', 'true')
    for name in ('SLACK_WEBHOOK_URL', 'SLACK_WEBHOOK_URL_REMINDERS', 'SLACK_MAINTENANCE_WEBHOOK_URL',
                 'SLACK_WEBHOOK_URL_INSURANCE', 'SLACK_WEBHOOK_URL_UPCOMING'):
        monkeypatch.setenv(name, f'https://hooks.example/{name.lower()}')


@pytest.fixture
def slack_post():
    with patch('services.slack_service.requests.post') as mock_post:
        mock_post.return_value = Mock(ok=True, status_code=200, text='ok')
        yield mock_post


@pytest.mark.unit
class TestReturnReminders:
    """Tests for agreement return reminders"""

    def test_disabled_without_flag(self, db_session, monkeypatch):
        """Test that nothing is sent unless ENABLE_SLACK is 'true'"""
        monkeypatch.setenv('ENABLE_SLACK', 'false')
        result = ReminderService(db_session, NOW).run_agreement_reminders()
        assert result == {'ok': True, 'message': DISABLED_MESSAGE}

    def test_one_hour_reminder(self, db_session, make_car, make_agreement, slack_on, slack_post):
        """Test that an agreement ending in an hour is reminded and logged"""
        from database.models import NotificationLog

        end = NOW + timedelta(minutes=60)
        make_agreement(car=make_car(), start=end - timedelta(days=3), days=3)

        result = ReminderService(db_session, NOW).run_agreement_reminders()
        assert result == {'ok': True, 'sent': 1}
        text = slack_post.call_args.kwargs['json']['text']
        assert text.startswith('🚗 *Return Reminder*')
        assert db_session.query(NotificationLog).one().reminder_type == '1 Hour'

    def test_reminder_sent_once_across_ticks(self, db_session, make_car, make_agreement, slack_on, slack_post):
        """Test that a reminder is not repeated when the next run's window still matches"""
        end = NOW + timedelta(minutes=62)
        make_agreement(car=make_car(), start=end - timedelta(days=3), days=3)

        first = ReminderService(db_session, NOW).run_agreement_reminders()
        second = ReminderService(db_session, NOW + timedelta(minutes=5)).run_agreement_reminders()
        assert first == {'ok': True, 'sent': 1}
        assert second == {'ok': True, 'sent': 0, 'skipped': 1}
        assert slack_post.call_count == 1

    def test_overdue_reminder(self, db_session, make_car, make_agreement, slack_on, slack_post):
        """Test that an agreement ending now gets the overdue alert"""
        make_agreement(car=make_car(), start=NOW - timedelta(days=2), days=2)
        ReminderService(db_session, NOW).run_agreement_reminders()
        assert slack_post.call_args.kwargs['json']['text'].startswith('🚨 *OVERDUE ALERT*')

    def test_completed_agreements_are_skipped(self, db_session, make_car, make_agreement, slack_on, slack_post):
        """Test that finished agreements are not reminded"""
        end = NOW + timedelta(minutes=30)
        make_agreement(car=make_car(), start=end - timedelta(days=1), days=1, status='Completed')
        assert ReminderService(db_session, NOW).run_agreement_reminders()['sent'] == 0
        slack_post.assert_not_called()

    def test_slack_failure_is_collected(self, db_session, make_car, make_agreement, slack_on, slack_post):
        """Test that a failed post is reported without aborting the run"""
        slack_post.return_value = Mock(ok=False, status_code=500, text='boom')
        end = NOW + timedelta(minutes=10)
        make_agreement(car=make_car(), start=end - timedelta(days=1), days=1)

        result = ReminderService(db_session, NOW).run_agreement_reminders()
        assert result['sent'] == 0
        assert result['errors'] == ['Slack API Error (500): boom']

    def test_old_notification_logs_are_cleaned(self, db_session, slack_on, slack_post):
        """Test the 48h notification log cleanup"""
        from database.models import NotificationLog

        db_session.add(NotificationLog(reminder_type='1 Hour', sent_at=NOW - timedelta(hours=49)))
        db_session.add(NotificationLog(reminder_type='1 Hour', sent_at=NOW - timedelta(hours=1)))
        db_session.flush()
        assert ReminderService(db_session, NOW).cleanup_notification_logs() == 1

    def test_test_mode_needs_webhook(self, db_session, monkeypatch):
        """Test that test mode raises without a reminders webhook"""
        monkeypatch.delenv('SLACK_WEBHOOK_URL_REMINDERS', raising=False)
        with pytest.raises(SlackError):
            ReminderService(db_session, NOW).run_agreement_reminders(test=True)


@pytest.mark.unit
class TestMaintenanceAndDocuments:
    """Tests for maintenance and insurance alerts"""

    def test_no_cars(self, db_session):
        """Test the empty fleet result"""
        assert ReminderService(db_session, NOW).run_maintenance_check() == {'ok': True, 'count': 0}

    def test_no_maintenance_needed(self, db_session, make_car):
        """Test the all-clear message"""
        make_car(current_mileage=1000, next_service_mileage=10000)
        result = ReminderService(db_session, NOW).run_maintenance_check()
        assert result == {'ok': True, 'message': 'No maintenance needed.'}

    def test_maintenance_alert_logged(self, db_session, make_car, slack_on, slack_post):
        """Test that sent maintenance alerts are logged"""
        from database.models import NotificationLog

        make_car(current_mileage=50000, next_service_mileage=49000)
        result = ReminderService(db_session, NOW).run_maintenance_check()
        assert result == {'ok': True, 'count': 1, 'logged': 1, 'test': False, 'sent': True}
        assert db_session.query(NotificationLog).one().reminder_type == 'MAINTENANCE_OVERDUE'

    def test_maintenance_test_mode_skips_logs(self, db_session, make_car, slack_on, slack_post):
        """Test that test runs use the test colour and write no logs"""
        make_car(current_mileage=50000, next_service_mileage=51000)
        result = ReminderService(db_session, NOW).run_maintenance_check(test=True)
        assert result['logged'] == 0
        assert slack_post.call_args.kwargs['json']['attachments'][0]['color'] == '#36a64f'

    def test_insurance_disabled(self, db_session, monkeypatch):
        """Test that the scheduled insurance check respects ENABLE_SLACK"""
        monkeypatch.setenv('ENABLE_SLACK', 'false')
        assert ReminderService(db_session, NOW).run_insurance_check() == {'ok': True, 'message': 'Disabled'}

    def test_insurance_alert(self, db_session, make_car, slack_on, slack_post):
        """Test that expiring documents are sent"""
        make_car(insurance_expiry=date(2026, 1, 23))
        make_car(plate='FAR1', insurance_expiry=date(2027, 1, 1))
        result = ReminderService(db_session, NOW).run_insurance_check()
        assert result == {'ok': True, 'sent': True, 'count': 1}

    def test_insurance_needs_webhook(self, db_session, make_car, monkeypatch):
        """Test that a missing insurance webhook raises"""
        monkeypatch.delenv('SLACK_WEBHOOK_URL_INSURANCE', raising=False)
        make_car(insurance_expiry=date(2026, 1, 20))
        with pytest.raises(SlackError, match='Missing webhook configuration'):
            ReminderService(db_session, NOW).notify_insurance_now()

    def test_find_urgent_documents(self, db_session, make_car):
        """Test that only documents due within a day are urgent"""
        make_car(plate='SOON', roadtax_expiry=date(2026, 1, 14))
        make_car(plate='LATER', roadtax_expiry=date(2026, 1, 20))
        urgent = ReminderService(db_session, NOW).find_urgent()
        assert [item['plate_number'] for item in urgent] == ['SOON']
        assert urgent[0]['roadtax_days'] == 1
        assert find_urgent_documents([], now=NOW) == []


@pytest.mark.unit
class TestUpcomingBookings:
    """Tests for the 48h upcoming digest"""

    def test_upcoming_sent(self, db_session, make_car, make_agreement, slack_on, slack_post):
        """Test that Upcoming agreements in the next 48h are sent"""
        car = make_car()
        make_agreement(car=car, start=NOW + timedelta(hours=24), status='Upcoming')
        make_agreement(car=car, start=NOW + timedelta(hours=72), status='Upcoming')
        result = ReminderService(db_session, NOW).run_upcoming_check()
        assert result == {'ok': True, 'count': 1, 'sent': True}

    def test_nothing_upcoming(self, db_session, slack_on):
        """Test the empty result"""
        result = ReminderService(db_session, NOW).run_upcoming_check()
        assert result['message'] == 'No upcoming bookings in next 48h.'



@pytest.mark.unit
class TestNotificationCenter:
    """Tests for the sent reminder history and the upcoming queue"""

    def test_queue_lists_remaining_checks(self, db_session, make_car, make_agreement):
        """Test that only check times still ahead are queued, soonest first"""
        car = make_car()
        end = NOW + timedelta(minutes=90)
        ag = make_agreement(car=car, start=end - timedelta(days=1), days=1)
        make_agreement(car=car, start=end - timedelta(days=1), days=1, status='Cancelled')
        make_agreement(car=car, start=NOW, days=3)

        queue = ReminderService(db_session, NOW).notification_center()['queue']
        assert [item['type'] for item in queue] == ['1 Hour', '30 Minutes', '10 Minutes', 'EXPIRED']
        assert queue[0]['agreement_id'] == ag.id
        assert queue[0]['scheduled_for'] == '2026-01-13T02:30:00.000Z'
        assert queue[-1]['scheduled_for'] == queue[-1]['original_end'] == '2026-01-13T03:30:00.000Z'

    def test_queue_skips_agreements_without_status(self, db_session, make_car, make_agreement):
        """Test that agreements with no status are left out of the queue"""
        agreement = make_agreement(car=make_car(), start=NOW - timedelta(days=1), days=2)
        agreement.status = None
        db_session.commit()
        assert ReminderService(db_session, NOW).notification_center()['queue'] == []

    def test_history_newest_first(self, db_session):
        """Test the sent reminder history"""
        from database.models import NotificationLog

        db_session.add(NotificationLog(reminder_type='2 Hours', sent_at=NOW - timedelta(hours=2)))
        db_session.add(NotificationLog(reminder_type='1 Hour', sent_at=NOW - timedelta(hours=1)))
        db_session.flush()
        logs = ReminderService(db_session, NOW).notification_center()['logs']
        assert [log['reminder_type'] for log in logs] == ['1 Hour', '2 Hours']

    def test_endpoint_is_superadmin_only(self, client, admin, superadmin, login_as):
        """Test the notifications endpoint permissions and shape"""
        login_as(admin)
        assert client.get('/api/notifications').status_code == 403

        login_as(superadmin)
        data = client.get('/api/notifications').get_json()
        assert data['success'] is True
        assert data['logs'] == []
        assert data['queue'] == []

@pytest.mark.unit
class TestCronEndpoints:
    """Tests for the cron blueprint"""

    def test_secret_required_when_configured(self, app, client):
        """Test missing, wrong and correct cron secrets"""
        app.config['CRON_SECRET'] = 's3cret'
        assert client.get('/api/cron/insurance').status_code == 401
        assert client.get('/api/cron/insurance', headers={'X-Cron-Secret': 'nope'}).status_code == 403
        response = client.get('/api/cron/insurance', headers={'Authorization': 'Bearer s3cret'})
        assert response.status_code == 200
        assert response.get_json()['message'] == 'Disabled'

    def test_open_when_secret_unset(self, app, client):
        """Test that cron endpoints pass through without CRON_SECRET"""
        app.config['CRON_SECRET'] = None
        response = client.get('/api/cron/insurance')
        assert response.status_code == 200
        assert response.get_json()['success'] is True

    def test_secret_header_forms(self, app, client):
        """Test the X-Cron-Secret header and a wrong Bearer token"""
        app.config['CRON_SECRET'] = 's3cret'
        assert client.get('/api/cron/insurance', headers={'X-Cron-Secret': 's3cret'}).status_code == 200
        response = client.post('/api/cron/notify-upcoming', headers={'Authorization': 'Bearer wrong'})
        assert response.status_code == 403
        assert response.get_json()['error'] == 'Forbidden'
        assert client.get('/api/cron/insurance', headers={'Authorization': 'Basic s3cret'}).status_code == 401

    def test_reminders_disabled(self, client):
        """Test the disabled reminder run"""
        data = client.post('/api/cron/reminders').get_json()
        assert data['success'] is True
        assert data['message'] == DISABLED_MESSAGE

    def test_test_mode_without_webhook_is_500(self, app, client):
        """Test that a Slack configuration error surfaces as 500"""
        app.config['SLACK_WEBHOOK_URL_REMINDERS'] = None
        response = client.get('/api/cron/reminders?test=true')
        assert response.status_code == 500
        assert response.get_json()['error'] == 'Missing SLACK_WEBHOOK_URL_REMINDERS'

    def test_backfill_geo_dry_run(self, client):
        """Test the geo backfill endpoint on an empty table"""
        data = client.get('/api/cron/backfill-geo?dry=1').get_json()
        assert data['success'] is True
        assert data['dryRun'] is True
        assert data['scanned'] == 0
