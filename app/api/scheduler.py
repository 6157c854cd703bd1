"""
Scheduler Routes Blueprint

Handles background job scheduler:
- /api/scheduler/status: Get scheduler status
- /api/scheduler/run/<job_id>: Manually trigger a job
- /api/notifications: sent reminders and the upcoming reminder queue
"""

import logging
from flask import Blueprint, jsonify

from auth import admin_required, superadmin_required

logger = logging.getLogger(__name__)

# Create blueprint
scheduler_bp = Blueprint('scheduler_bp', __name__)


# ============================================================================
# SCHEDULER API
# ============================================================================

@scheduler_bp.route('/api/scheduler/status', methods=['GET'])
@admin_required
def get_scheduler_status():
    """Get the status of background jobs."""
    try:
        from services.scheduler import get_scheduler

        return jsonify({'success': True, **get_scheduler().get_job_status()})

    except Exception as e:
        logger.error(f"Error getting scheduler status: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@scheduler_bp.route('/api/scheduler/run/<job_id>', methods=['POST'])
@admin_required
def run_scheduler_job(job_id):
    """Manually trigger a scheduled job."""
    try:
        from services.scheduler import get_scheduler

        ok = get_scheduler().run_job_now(job_id)
        if ok is None:
            return jsonify({'success': False, 'error': 'Job not found'}), 404
        if ok:
            return jsonify({'success': True, 'message': f'Job {job_id} executed'})
        return jsonify({'success': False, 'error': f'Job {job_id} failed'}), 500

    except Exception as e:
        logger.error(f"Error running scheduler job: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@scheduler_bp.route('/api/notifications', methods=['GET'])
@superadmin_required
def get_notifications():
    """Sent reminder history and the queue of reminders still to come."""
    try:
        from database.connection import get_db_session
        from services.reminder_service import ReminderService

        with get_db_session() as session:
            result = ReminderService(session).notification_center()
        return jsonify({'success': True, **result})

    except Exception as e:
        logger.error(f"Error loading notifications: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
