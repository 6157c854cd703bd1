"""
Reminder Service - Scheduled Slack checks for returns, maintenance and documents.

Each check runs from the cron endpoints and from the background scheduler:
- return reminders 2h, 1h, 30m and 10m before an agreement ends, and once overdue
- mileage based maintenance alerts
- insurance and roadtax expiry alerts
- a digest of bookings starting in the next 48 hours
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Any, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from config import get_setting, slack_enabled
from services.fleet_repository import evaluate_maintenance
from services.slack_service import (
    SlackError, send_slack_message, send_slack_notification,
    build_reminder_text, build_unified_alert, build_upcoming_alert
)
from services.time_windows import utcnow, kl_today, days_until, to_iso_z
from app.utils.vehicles import build_car_label

logger = logging.getLogger(__name__)

# Minutes before date_end, and the label stored in notification_logs
REMINDER_CHECKS = [
    (120, '2 Hours'),
    (60, '1 Hour'),
    (30, '30 Minutes'),
    (10, '10 Minutes'),
    (0, 'EXPIRED'),
]
REMINDER_WINDOW = timedelta(minutes=5)
REMINDER_SKIP_STATUSES = ('Cancelled', 'Deleted', 'Completed')
NOTIFICATION_LOG_HOURS = 48
UPCOMING_HOURS = 48
DOCUMENT_WARN_DAYS = 90
URGENT_DAYS = 1

DISABLED_MESSAGE = "Slack is disabled (ENABLE_SLACK != true)"


def document_status(car, today, max_days: int = DOCUMENT_WARN_DAYS) -> Optional[Dict]:
    """
    Insurance/roadtax entry for a car when either expires within max_days.

    Args:
        car: Car model instance
        today: KL calendar date
    """
    item = {
        'id': car.id,
        'plate_number': car.plate_number,
        'make': car.make,
        'model': car.model,
    }
    has_issue = False
    for field in ('insurance', 'roadtax'):
        expiry = getattr(car, f"{field}_expiry")
        days = days_until(expiry, today)
        if days is not None and days <= max_days:
            item[f"{field}_days"] = days
            item[f"{field}_expiry"] = expiry.isoformat()
            has_issue = True
    return item if has_issue else None


def find_urgent_documents(cars, now: Optional[datetime] = None, max_days: int = URGENT_DAYS) -> List[Dict]:
    """Cars whose insurance or roadtax is due within max_days (or overdue)."""
    today = kl_today(now)
    urgent = []
    for car in cars:
        item = document_status(car, today, max_days)
        if item:
            urgent.append(item)
    return urgent


class ReminderService:
    """Runs the scheduled Slack checks."""

    def __init__(self, session: Session, now: Optional[datetime] = None):
        self.session = session
        self.now = now or utcnow()

    def _active_cars(self):
        from database.models import Car

        return self.session.query(Car).options(joinedload(Car.catalog)).filter(
            Car.status != 'inactive'
        ).order_by(Car.plate_number).all()

    # =========================================================================
    # RETURN REMINDERS
    # =========================================================================

    def run_agreement_reminders(self, test: bool = False) -> Dict[str, Any]:
        """
        Send return reminders for agreements ending around each check time.

        Raises:
            SlackError: test mode without a reminders webhook
        """
        from database.models import Agreement, NotificationLog

        webhook = get_setting('SLACK_WEBHOOK_URL_REMINDERS')

        if test:
            text = build_reminder_text(
                'TEST CAR (Honda Civic)', 'TEST-1234',
                self.now + timedelta(hours=1), '+60123456789', False
            )
            send_slack_message(webhook, f"[TEST MODE] {text}")
            logger.info("Test reminder sent to Slack")
            return {'ok': True, 'message': "Test message sent successfully to Slack."}

        if not slack_enabled():
            return {'ok': True, 'message': DISABLED_MESSAGE}

        sent = 0
        skipped = 0
        errors = []
        for minutes, label in REMINDER_CHECKS:
            target = self.now + timedelta(minutes=minutes)
            agreements = self.session.query(Agreement).filter(
                or_(Agreement.status.is_(None), Agreement.status.notin_(REMINDER_SKIP_STATUSES)),
                Agreement.date_end > target - REMINDER_WINDOW,
                Agreement.date_end <= target + REMINDER_WINDOW
            ).all()

            for ag in agreements:
                if self._already_reminded(ag.id, label):
                    skipped += 1
                    continue
                try:
                    text = build_reminder_text(
                        ag.car_type or 'Unknown',
                        ag.plate_number or 'Unknown',
                        ag.date_end,
                        ag.mobile or '',
                        minutes == 0,
                        ag.id
                    )
                    send_slack_message(webhook, text)
                except SlackError as e:
                    logger.error(f"Failed to send reminder for agreement {ag.id}: {e}")
                    errors.append(str(e))
                    continue

                self.session.add(NotificationLog(
                    agreement_id=ag.id,
                    plate_number=ag.plate_number,
                    car_model=ag.car_type,
                    reminder_type=label,
                    sent_at=self.now
                ))
                sent += 1

        self.session.flush()
        self.cleanup_notification_logs()

        result = {'ok': True, 'sent': sent}
        if skipped:
            result['skipped'] = skipped
        if errors:
            result['errors'] = errors
        logger.info(f"Return reminders sent: {sent}, skipped: {skipped}, errors: {len(errors)}")
        return result

    def _already_reminded(self, agreement_id: str, reminder_type: str) -> bool:
        """A reminder of this type went out for the agreement within the log retention."""
        from database.models import NotificationLog

        cutoff = self.now - timedelta(hours=NOTIFICATION_LOG_HOURS)
        return self.session.query(NotificationLog.id).filter(
            NotificationLog.agreement_id == agreement_id,
            NotificationLog.reminder_type == reminder_type,
            NotificationLog.sent_at >= cutoff
        ).first() is not None

    def cleanup_notification_logs(self, hours: int = NOTIFICATION_LOG_HOURS) -> int:
        from database.models import NotificationLog

        cutoff = self.now - timedelta(hours=hours)
        deleted = self.session.query(NotificationLog).filter(
            NotificationLog.sent_at < cutoff
        ).delete(synchronize_session=False)
        if deleted:
            logger.info(f"Cleaned up {deleted} old notification logs")
        return deleted

    def notification_center(self, limit: int = 100) -> Dict[str, Any]:
        """
        Recently sent reminders plus the reminders still to come.

        The queue holds one entry per check time still ahead of each
        agreement ending in the next 48 hours, soonest first.
        """
        from database.models import Agreement, NotificationLog

        history = self.session.query(NotificationLog).order_by(
            NotificationLog.sent_at.desc()
        ).limit(limit).all()

        agreements = self.session.query(Agreement).filter(
            Agreement.status.isnot(None),
            Agreement.status.notin_(REMINDER_SKIP_STATUSES),
            Agreement.date_end > self.now,
            Agreement.date_end <= self.now + timedelta(hours=UPCOMING_HOURS)
        ).order_by(Agreement.date_end).all()

        queue = []
        for ag in agreements:
            minutes_left = (ag.date_end - self.now).total_seconds() / 60
            for minutes, label in REMINDER_CHECKS:
                if minutes_left > minutes:
                    queue.append({
                        'agreement_id': ag.id,
                        'plate': ag.plate_number,
                        'model': ag.car_type,
                        'type': label,
                        'scheduled_for': ag.date_end - timedelta(minutes=minutes),
                        'original_end': ag.date_end,
                    })
        queue.sort(key=lambda item: item['scheduled_for'])
        for item in queue:
            item['scheduled_for'] = to_iso_z(item['scheduled_for'])
            item['original_end'] = to_iso_z(item['original_end'])

        return {'logs': [row.to_dict() for row in history], 'queue': queue}

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def run_maintenance_check(self, test: bool = False) -> Dict[str, Any]:
        """Alert on cars near or past a mileage target."""
        from database.models import NotificationLog

        cars = self._active_cars()
        if not cars:
            return {'ok': True, 'count': 0}

        items = []
        log_entries = []
        for car in cars:
            if car.track_insurance is False:
                continue
            issues, overdue = evaluate_maintenance({
                'current_mileage': car.current_mileage,
                'next_service_mileage': car.next_service_mileage,
                'next_gear_oil_mileage': car.next_gear_oil_mileage,
                'next_tyre_mileage': car.next_tyre_mileage,
                'next_brake_pad_mileage': car.next_brake_pad_mileage,
            })
            if not issues:
                continue
            items.append({
                'id': car.id,
                'plate_number': car.plate_number,
                'make': car.make,
                'model': car.model,
                'issues': issues,
            })
            log_entries.append(NotificationLog(
                sent_at=self.now,
                reminder_type='MAINTENANCE_OVERDUE' if overdue else 'MAINTENANCE_DUE',
                plate_number=car.plate_number,
                car_model=build_car_label(car.make, car.model)
            ))

        if not items:
            return {'ok': True, 'message': "No maintenance needed."}

        message = build_unified_alert('MAINTENANCE', items, is_test=test)
        success = send_slack_notification(message, get_setting('SLACK_MAINTENANCE_WEBHOOK_URL'))

        logged = 0
        if success and not test:
            self.session.add_all(log_entries)
            self.session.flush()
            logged = len(log_entries)

        return {'ok': True, 'count': len(items), 'logged': logged, 'test': test, 'sent': success}

    # =========================================================================
    # INSURANCE / ROADTAX
    # =========================================================================

    def expiring_documents(self, max_days: int = DOCUMENT_WARN_DAYS) -> List[Dict]:
        today = kl_today(self.now)
        items = []
        for car in self._active_cars():
            item = document_status(car, today, max_days)
            if item:
                items.append(item)
        return items

    def _send_insurance_alert(self) -> Dict[str, Any]:
        items = self.expiring_documents()
        if not items:
            return {'ok': True, 'sent': False, 'message': "No expiring cars found"}

        webhook = get_setting('SLACK_WEBHOOK_URL_INSURANCE')
        if not webhook:
            raise SlackError("Missing webhook configuration")

        success = send_slack_notification(build_unified_alert('INSURANCE', items), webhook)
        if not success:
            return {'ok': False, 'error': "Failed to send to Slack", 'count': len(items)}
        return {'ok': True, 'sent': True, 'count': len(items)}

    def run_insurance_check(self) -> Dict[str, Any]:
        if not slack_enabled():
            return {'ok': True, 'message': "Disabled"}
        return self._send_insurance_alert()

    def notify_insurance_now(self) -> Dict[str, Any]:
        """Admin-triggered insurance alert; sent even when ENABLE_SLACK is off."""
        return self._send_insurance_alert()

    def find_urgent(self, max_days: int = URGENT_DAYS) -> List[Dict]:
        return find_urgent_documents(self._active_cars(), now=self.now, max_days=max_days)

    # =========================================================================
    # UPCOMING BOOKINGS
    # =========================================================================

    def run_upcoming_check(self) -> Dict[str, Any]:
        from database.models import Agreement

        if not slack_enabled():
            return {'ok': True, 'message': "Disabled"}

        webhook = get_setting('SLACK_WEBHOOK_URL_UPCOMING') or get_setting('SLACK_WEBHOOK_URL')
        if not webhook:
            raise SlackError("Missing Slack webhook")

        agreements = self.session.query(Agreement).filter(
            Agreement.status == 'Upcoming',
            Agreement.date_start >= self.now,
            Agreement.date_start <= self.now + timedelta(hours=UPCOMING_HOURS)
        ).order_by(Agreement.date_start).all()

        if not agreements:
            return {'ok': True, 'message': "No upcoming bookings in next 48h."}

        payload = build_upcoming_alert([
            {
                'id': a.id,
                'plate_number': a.plate_number,
                'car_type': a.car_type,
                'mobile': a.mobile,
                'date_start': to_iso_z(a.date_start),
            }
            for a in agreements
        ])
        success = send_slack_notification(payload, webhook)
        return {'ok': True, 'count': len(agreements), 'sent': success}
