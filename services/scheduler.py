"""
Background Job Scheduler - Runs the Slack checks on a timer.

Jobs:
- agreement_reminders: return reminders, every few minutes
- maintenance_check, insurance_check, upcoming_check: daily

The same checks are exposed as cron endpoints for external schedulers;
this thread based scheduler is only started when ENABLE_SCHEDULER is set.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, Callable

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None

POLL_SECONDS = 10


class BackgroundScheduler:
    """Interval scheduler running jobs on one daemon thread."""

    def __init__(self):
        self.jobs: Dict[str, Dict] = {}
        self.running = False
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()

    def add_job(self, job_id: str, func: Callable, interval_seconds: int,
                run_immediately: bool = False, kwargs: Dict = None):
        """
        Register (or replace) a job.

        Args:
            job_id: Unique identifier for the job
            func: Callable run with kwargs
            interval_seconds: Seconds between runs
            run_immediately: First run on the next poll instead of after one interval
        """
        now = datetime.utcnow()
        with self._lock:
            self.jobs[job_id] = {
                'func': func,
                'interval': interval_seconds,
                'kwargs': kwargs or {},
                'last_run': None,
                'next_run': now if run_immediately else now + timedelta(seconds=interval_seconds),
                'run_count': 0,
                'last_error': None,
                'last_result': None,
                'enabled': True
            }
        logger.info(f"Added job '{job_id}' with interval {interval_seconds}s")

    def remove_job(self, job_id: str):
        with self._lock:
            if self.jobs.pop(job_id, None) is not None:
                logger.info(f"Removed job '{job_id}'")

    def enable_job(self, job_id: str) -> bool:
        return self._set_enabled(job_id, True)

    def disable_job(self, job_id: str) -> bool:
        """Stop running a job without removing it."""
        return self._set_enabled(job_id, False)

    def _set_enabled(self, job_id: str, enabled: bool) -> bool:
        with self._lock:
            if job_id not in self.jobs:
                return False
            self.jobs[job_id]['enabled'] = enabled
            return True

    def get_job_status(self) -> Dict[str, Any]:
        """Scheduler state and per-job run history."""
        with self._lock:
            jobs = {
                job_id: {
                    'interval': job['interval'],
                    'last_run': job['last_run'].isoformat() if job['last_run'] else None,
                    'next_run': job['next_run'].isoformat() if job['next_run'] else None,
                    'run_count': job['run_count'],
                    'last_error': job['last_error'],
                    'last_result': job['last_result'],
                    'enabled': job['enabled']
                }
                for job_id, job in self.jobs.items()
            }
        return {'running': self.running, 'jobs': jobs}

    def start(self):
        if self.running:
            logger.warning("Scheduler is already running")
            return

        self.running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name='slack-scheduler', daemon=True)
        self._thread.start()
        logger.info("Background scheduler started")

    def stop(self):
        self.running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
        logger.info("Background scheduler stopped")

    def _execute(self, job_id: str, job: Dict) -> bool:
        """Run one job and record the outcome. Returns True on success."""
        started = datetime.utcnow()
        try:
            result = job['func'](**job['kwargs'])
        except Exception as e:
            logger.error(f"Job '{job_id}' failed: {e}")
            with self._lock:
                job['last_error'] = str(e)
                job['next_run'] = started + timedelta(seconds=job['interval'])
            return False

        with self._lock:
            job['last_run'] = started
            job['next_run'] = started + timedelta(seconds=job['interval'])
            job['run_count'] += 1
            job['last_error'] = None
            job['last_result'] = result
        return True

    def _run_loop(self):
        while self.running and not self._stop_event.is_set():
            now = datetime.utcnow()
            with self._lock:
                due = [
                    (job_id, job) for job_id, job in self.jobs.items()
                    if job['enabled'] and job['next_run'] and now >= job['next_run']
                ]

            for job_id, job in due:
                logger.debug(f"Running job '{job_id}'")
                self._execute(job_id, job)

            self._stop_event.wait(timeout=POLL_SECONDS)

    def run_job_now(self, job_id: str) -> Optional[bool]:
        """
        Run a job immediately on the calling thread.

        Returns:
            None for an unknown job, otherwise whether the run succeeded
        """
        with self._lock:
            job = self.jobs.get(job_id)
        if job is None:
            return None
        return self._execute(job_id, job)


def get_scheduler() -> BackgroundScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler()
    return _scheduler


# =============================================================================
# SCHEDULED JOBS
# =============================================================================

def _run_reminder_check(method: str, **kwargs) -> Dict[str, Any]:
    """Run one ReminderService check in its own session."""
    from database.connection import get_db_session, is_db_configured
    from services.reminder_service import ReminderService

    if not is_db_configured():
        logger.warning(f"Skipping {method}: database not configured")
        return {}

    with get_db_session() as session:
        result = getattr(ReminderService(session), method)(**kwargs)
    logger.info(f"{method}: {result}")
    return result


def agreement_reminders_job():
    """Return reminders for agreements ending soon or overdue."""
    return _run_reminder_check('run_agreement_reminders')


def maintenance_check_job():
    return _run_reminder_check('run_maintenance_check')


def insurance_check_job():
    return _run_reminder_check('run_insurance_check')


def upcoming_check_job():
    return _run_reminder_check('run_upcoming_check')


def init_scheduler(start: bool = True) -> BackgroundScheduler:
    """Register the Slack check jobs and start the scheduler thread."""
    from config import get_setting

    scheduler = get_scheduler()
    reminder_interval = int(get_setting('REMINDER_INTERVAL_SECONDS', 300))
    daily_interval = int(get_setting('DAILY_JOB_INTERVAL_SECONDS', 86400))

    scheduler.add_job('agreement_reminders', agreement_reminders_job,
                      interval_seconds=reminder_interval, run_immediately=True)
    scheduler.add_job('maintenance_check', maintenance_check_job,
                      interval_seconds=daily_interval)
    scheduler.add_job('insurance_check', insurance_check_job,
                      interval_seconds=daily_interval)
    scheduler.add_job('upcoming_check', upcoming_check_job,
                      interval_seconds=daily_interval)

    if start:
        scheduler.start()
    logger.info(f"Scheduler initialized with {len(scheduler.jobs)} jobs")
    return scheduler
