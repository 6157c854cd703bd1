"""
Slack Service - Incoming-webhook messages for reminders and fleet alerts.

Message builders are pure and return Slack payloads; the senders post them.
Whether Slack is enabled at all (ENABLE_SLACK) is decided by the caller.
"""

import logging
from datetime import datetime
from typing import Dict, List, Any, Optional

import requests

from config import get_setting
from services.time_windows import format_kl, to_utc_naive
from app.utils.phone import phone_digits

logger = logging.getLogger(__name__)

ALERT_COLORS = {
    'MAINTENANCE': '#E01E5A',
    'INSURANCE': '#ECB22E',
    'AGREEMENT': '#2C97DE',
}
TEST_COLOR = '#36a64f'
UPCOMING_COLOR = '#c026d3'

ALERT_TITLES = {
    'MAINTENANCE': ('🛠️ Maintenance Alert', '/admin/maintenance'),
    'INSURANCE': ('📄 Insurance/Roadtax Alert', '/admin/insurance'),
    'AGREEMENT': ('⏱️ Agreement Reminder', '/admin/agreements'),
}


class SlackError(Exception):
    """Raised when a Slack message could not be delivered."""
    pass


def admin_url(path: str) -> str:
    base = (get_setting('ADMIN_BASE_URL') or '').rstrip('/')
    return f"{base}{path}"


def _timeout() -> int:
    return int(get_setting('SLACK_TIMEOUT', 10))


# =============================================================================
# SENDERS
# =============================================================================

def send_slack_message(webhook_url: Optional[str], text: str) -> None:
    """
    Post a plain text message.

    Raises:
        SlackError: webhook missing or Slack answered with a non-2xx status
    """
    if not webhook_url:
        raise SlackError("Missing SLACK_WEBHOOK_URL_REMINDERS")

    try:
        response = requests.post(webhook_url, json={'text': text}, timeout=_timeout())
    except requests.exceptions.RequestException as e:
        raise SlackError(f"Slack request failed: {e}") from e

    if not response.ok:
        raise SlackError(f"Slack API Error ({response.status_code}): {response.text}")


def send_slack_notification(message: Dict[str, Any], webhook_url: Optional[str] = None) -> bool:
    """
    Post a block payload. Falls back to SLACK_WEBHOOK_URL.

    Returns:
        True when Slack accepted the message
    """
    url = webhook_url or get_setting('SLACK_WEBHOOK_URL')
    if not url:
        logger.error("Missing SLACK_WEBHOOK_URL")
        return False

    try:
        response = requests.post(url, json=message, timeout=_timeout())
    except requests.exceptions.RequestException as e:
        logger.error(f"Slack error: {e}")
        return False

    if not response.ok:
        logger.error(f"Slack send failed ({response.status_code}): {response.text}")
        return False
    return True


# =============================================================================
# MESSAGE BUILDERS
# =============================================================================

def _whatsapp_link(phone: Optional[str]) -> str:
    digits = phone_digits(phone)
    return f"<https://wa.me/{digits}|{phone}>" if digits else (phone or '')


def build_reminder_text(car_model: str, plate: str, end_time: datetime, phone: Optional[str],
                        is_expired: bool, agreement_id: Optional[str] = None) -> str:
    """Return reminder or overdue alert for one agreement."""
    when = format_kl(to_utc_naive(end_time))
    agreement_link = admin_url(f"/admin/agreements/{agreement_id or ''}")
    model = f"`{car_model}`"
    plate = f"`{plate}`"
    customer = f"`{_whatsapp_link(phone)}`"

    if is_expired:
        return (
            "🚨 *OVERDUE ALERT* 🚨\n"
            f"Please check if car {model} ({plate}) is returned.\n"
            f"Scheduled Return: *{when} MYT*\n"
            f"Customer: {customer}\n"
            f"📄 <{agreement_link}|View Agreement>"
        )

    return (
        "🚗 *Return Reminder*\n"
        f"{model} ({plate}) is scheduled to return at *{when} MYT*.\n"
        f"Customer: {customer}\n"
        f"📄 <{agreement_link}|View Agreement>"
    )


def _expiry_line(label: str, days: int) -> str:
    if days <= 0:
        emoji = '🔴'
    elif days <= 7:
        emoji = '🟠'
    else:
        emoji = '🟡'
    status = 'EXPIRED' if days <= 0 else f"in {days} days"
    return f"\n> {emoji} {label}: Exp {status}"


def _alert_item_text(alert_type: str, item: Dict) -> str:
    plate = item.get('plate_number') or 'Unknown Car'
    model = item.get('model') or item.get('car_type') or ''

    if alert_type == 'AGREEMENT':
        link = admin_url(f"/admin/agreements/{item.get('id')}")
        digits = phone_digits(item.get('mobile'))
        whatsapp = f"<https://wa.me/{digits}|WhatsApp Customer>" if digits else 'No Phone'
        text = f"*{plate}* ({model})\n> 📄 <{link}|View Agreement> • {whatsapp}"
        end_time = to_utc_naive(item.get('end_time'))
        if end_time:
            text += f"\n> 🕒 Return at {format_kl(end_time, '%I:%M %p')}"
        return text

    link = admin_url(f"/admin/cars/{item.get('id')}")
    text = f"*<{link}|{plate}>* ({model})"
    if item.get('issues'):
        text += f"\n> 🔧 {', '.join(item['issues'])}"
    if item.get('insurance_days') is not None:
        text += _expiry_line('Insurance', item['insurance_days'])
    if item.get('roadtax_days') is not None:
        text += _expiry_line('Roadtax', item['roadtax_days'])
    return text


def build_unified_alert(alert_type: str, items: List[Dict], is_test: bool = False) -> Optional[Dict]:
    """
    One coloured Slack attachment listing every item.

    Args:
        alert_type: MAINTENANCE, INSURANCE or AGREEMENT
        items: cars (maintenance/insurance) or agreements
        is_test: use the test colour

    Returns:
        Slack payload, or None when there is nothing to report
    """
    if not items:
        return None

    title, dashboard_path = ALERT_TITLES[alert_type]
    blocks = [
        {'type': 'header', 'text': {'type': 'plain_text', 'text': title, 'emoji': True}},
        {'type': 'section', 'text': {'type': 'mrkdwn', 'text': f"*{len(items)} items* require attention."}},
        {'type': 'divider'},
    ]
    for item in items:
        blocks.append({'type': 'section', 'text': {'type': 'mrkdwn', 'text': _alert_item_text(alert_type, item)}})
    blocks.append({'type': 'divider'})
    blocks.append({
        'type': 'actions',
        'elements': [{
            'type': 'button',
            'text': {'type': 'plain_text', 'text': 'View Dashboard', 'emoji': True},
            'style': 'primary',
            'url': admin_url(dashboard_path),
        }],
    })

    color = TEST_COLOR if is_test else ALERT_COLORS[alert_type]
    return {'attachments': [{'color': color, 'blocks': blocks}]}


def build_upcoming_alert(agreements: List[Dict]) -> Optional[Dict]:
    """Bookings starting in the next 48 hours."""
    if not agreements:
        return None

    blocks = [
        {'type': 'header', 'text': {'type': 'plain_text', 'text': '📅 Upcoming Bookings (Next 48h)', 'emoji': True}},
        {'type': 'section', 'text': {'type': 'mrkdwn',
                                     'text': f"There are *{len(agreements)}* bookings starting soon."}},
        {'type': 'divider'},
    ]
    for ag in agreements:
        start = to_utc_naive(ag.get('date_start'))
        when = format_kl(start, '%a, %d %b, %I:%M %p') if start else '-'
        link = admin_url(f"/admin/agreements/{ag.get('id')}")
        digits = phone_digits(ag.get('mobile'))
        whatsapp = f"<https://wa.me/{digits}|WhatsApp>" if digits else 'No Phone'
        blocks.append({
            'type': 'section',
            'text': {
                'type': 'mrkdwn',
                'text': f"*{ag.get('plate_number')}* ({ag.get('car_type')})\n"
                        f"> 🕒 Start: *{when}*\n"
                        f"> 📄 <{link}|View Agreement> • {whatsapp}",
            },
        })
    blocks.append({
        'type': 'actions',
        'elements': [{
            'type': 'button',
            'text': {'type': 'plain_text', 'text': 'Open Admin Dashboard', 'emoji': True},
            'url': admin_url('/admin'),
            'style': 'primary',
        }],
    })
    return {'attachments': [{'color': UPCOMING_COLOR, 'blocks': blocks}]}
