"""
Cron Routes Blueprint

Endpoints hit by an external scheduler (protected by CRON_SECRET when set):
- /api/cron/reminders: return reminders (?test=true sends one test message)
- /api/cron/maintenance: maintenance alert (?test=true skips the log rows)
- /api/cron/insurance: insurance/roadtax expiry alert
- /api/cron/notify-upcoming: bookings starting in the next 48h
- /api/cron/backfill-geo: fill missing site event geo fields
"""

import logging
from flask import Blueprint, request, jsonify

from security import cron_secret_required

logger = logging.getLogger(__name__)

# Create blueprint
cron_bp = Blueprint('cron_bp', __name__)


def _run_check(method, **kwargs):
    """Run one ReminderService check and wrap it in the response envelope."""
    from database.connection import get_db_session
    from services.reminder_service import ReminderService
    from services.slack_service import SlackError

    try:
        with get_db_session() as session:
            result = getattr(ReminderService(session), method)(**kwargs)
        return jsonify({'success': True, **result})
    except SlackError as e:
        logger.error(f"{method} failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
    except Exception as e:
        logger.error(f"Error in {method}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


def _test_flag():
    return request.args.get('test') == 'true'


@cron_bp.route('/api/cron/reminders', methods=['GET', 'POST'])
@cron_secret_required
def cron_reminders():
    return _run_check('run_agreement_reminders', test=_test_flag())


@cron_bp.route('/api/cron/maintenance', methods=['GET', 'POST'])
@cron_secret_required
def cron_maintenance():
    return _run_check('run_maintenance_check', test=_test_flag())


@cron_bp.route('/api/cron/insurance', methods=['GET', 'POST'])
@cron_secret_required
def cron_insurance():
    return _run_check('run_insurance_check')


@cron_bp.route('/api/cron/notify-upcoming', methods=['GET', 'POST'])
@cron_secret_required
def cron_notify_upcoming():
    return _run_check('run_upcoming_check')


@cron_bp.route('/api/cron/backfill-geo', methods=['GET', 'POST'])
@cron_secret_required
def cron_backfill_geo():
    try:
        from database.connection import get_db_session
        from services.site_events import backfill_geo
        from app.utils.helpers import is_truthy_flag

        with get_db_session() as session:
            stats = backfill_geo(
                session,
                limit=request.args.get('limit'),
                dry_run=is_truthy_flag(request.args.get('dry'))
            )
        return jsonify({'success': True, **stats})
    except Exception as e:
        logger.error(f"Error in geo backfill: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
