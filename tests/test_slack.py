"""
Tests for Slack webhook delivery and message building
"""
import pytest
import requests
from datetime import datetime
from unittest.mock import patch, Mock

from services.slack_service import (
    SlackError,
    send_slack_message,
    send_slack_notification,
    build_reminder_text,
    build_unified_alert,
    build_upcoming_alert
)


def _response(ok=True, status_code=200, text='ok'):
    return Mock(ok=ok, status_code=status_code, text=text)


@pytest.mark.unit
class TestSenders:
    """Tests for posting to Slack"""

    def test_missing_webhook_raises(self):
        """Test that a missing webhook is an error"""
        with pytest.raises(SlackError) as exc:
            send_slack_message(None, 'hello')
        assert 'SLACK_WEBHOOK_URL_REMINDERS' in str(exc.value)

    @patch('services.slack_service.requests.post')
    def test_message_posts_text(self, mock_post):
        """Test that plain messages are posted as {'text': ...}"""
        mock_post.return_value = _response()
        send_slack_message('https://hooks.example/r', 'hello')
        args, kwargs = mock_post.call_args
        assert args[0] == 'https://hooks.example/r'
        assert kwargs['json'] == {'text': 'hello'}

    @patch('services.slack_service.requests.post')
    def test_non_2xx_raises(self, mock_post):
        """Test that Slack errors carry status and body"""
        mock_post.return_value = _response(ok=False, status_code=404, text='no_service')
        with pytest.raises(SlackError) as exc:
            send_slack_message('https://hooks.example/r', 'hello')
        assert str(exc.value) == 'Slack API Error (404): no_service'

    @patch('services.slack_service.requests.post')
    def test_network_error_raises(self, mock_post):
        """Test that connection failures become SlackError"""
        mock_post.side_effect = requests.exceptions.ConnectionError('down')
        with pytest.raises(SlackError):
            send_slack_message('https://hooks.example/r', 'hello')

    @patch('services.slack_service.requests.post')
    def test_notification_returns_bool(self, mock_post):
        """Test that block payloads report delivery as a bool"""
        mock_post.return_value = _response()
        assert send_slack_notification({'blocks': []}, 'https://hooks.example/a') is True
        mock_post.return_value = _response(ok=False, status_code=500)
        assert send_slack_notification({'blocks': []}, 'https://hooks.example/a') is False

    def test_notification_without_webhook(self, monkeypatch):
        """Test that a missing default webhook returns False"""
        monkeypatch.delenv('SLACK_WEBHOOK_URL', raising=False)
        assert send_slack_notification({'blocks': []}) is False


@pytest.mark.unit
class TestBuilders:
    """Tests for message payloads"""

    def test_reminder_text(self):
        """Test the return reminder in KL time"""
        text = build_reminder_text('Perodua Myvi', 'WXY 1234', datetime(2026, 1, 13, 6, 0),
                                   '+60123456789', False, 'ag-1')
        assert text.startswith('🚗 *Return Reminder*')
        assert '*13 Jan, 02:00 PM MYT*' in text
        assert 'https://wa.me/60123456789' in text
        assert '/admin/agreements/ag-1' in text

    def test_overdue_text(self):
        """Test the overdue variant"""
        text = build_reminder_text('Perodua Myvi', 'WXY 1234', datetime(2026, 1, 13), None, True)
        assert text.startswith('🚨 *OVERDUE ALERT* 🚨')
        assert 'is returned' in text

    def test_unified_alert_nothing_to_report(self):
        """Test that no items means no message"""
        assert build_unified_alert('MAINTENANCE', []) is None

    def test_unified_alert_colours(self):
        """Test alert colours and the test colour"""
        items = [{'id': 1, 'plate_number': 'WXY 1234', 'model': 'Myvi', 'issues': ['Service OVERDUE (500km)']}]
        alert = build_unified_alert('MAINTENANCE', items)
        assert alert['attachments'][0]['color'] == '#E01E5A'
        assert build_unified_alert('MAINTENANCE', items, is_test=True)['attachments'][0]['color'] == '#36a64f'

        texts = [b['text']['text'] for b in alert['attachments'][0]['blocks'] if b['type'] == 'section']
        assert texts[0] == '*1 items* require attention.'
        assert 'Service OVERDUE (500km)' in texts[1]

    def test_insurance_expiry_lines(self):
        """Test expired and soon-expiring documents"""
        items = [{'id': 2, 'plate_number': 'ABC 1', 'insurance_days': 0, 'roadtax_days': 5}]
        alert = build_unified_alert('INSURANCE', items)
        text = alert['attachments'][0]['blocks'][3]['text']['text']
        assert '🔴 Insurance: Exp EXPIRED' in text
        assert '🟠 Roadtax: Exp in 5 days' in text

    def test_upcoming_alert(self):
        """Test the 48h upcoming bookings message"""
        alert = build_upcoming_alert([{
            'id': 'ag-2', 'plate_number': 'WXY 1234', 'car_type': 'Perodua Myvi',
            'date_start': '2026-01-14T02:00:00Z', 'mobile': '60123456789',
        }])
        assert alert['attachments'][0]['color'] == '#c026d3'
        body = alert['attachments'][0]['blocks'][3]['text']['text']
        assert 'Wed, 14 Jan, 10:00 AM' in body
        assert build_upcoming_alert([]) is None
