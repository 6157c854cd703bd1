"""
Audit Logger Service - Records who changed what across the back office.

Five trails are kept:
- admin_audit_logs: admin account management
- car_audit_logs: fleet and maintenance edits
- agreement_logs: before/after snapshots of rental agreements
- landing_page_audit_logs: old/new snapshots of landing pages
- marketing_logs: post and content activity

A failed audit write is logged and never blocks the business change it
describes.
"""

import logging
from datetime import datetime, date
from decimal import Decimal
from typing import Dict, Optional, Any, List

logger = logging.getLogger(__name__)

ADMIN_ACTIONS = {
    'CREATE_ADMIN': 'Admin account created',
    'UPDATE_ADMIN': 'Admin role/phone/status changed',
    'SET_PASSWORD': 'Admin password reset',
    'ENABLE_ADMIN': 'Admin account enabled',
    'DISABLE_ADMIN': 'Admin account disabled',
    'DELETE_ADMIN': 'Admin account deleted',
}

CAR_ACTIONS = {
    'CREATE_CAR': 'Car added to fleet',
    'UPDATE_CAR': 'Car details changed',
    'DELETE_CAR': 'Car removed from fleet',
    'UPDATE_MAINTENANCE': 'Mileage/maintenance targets changed',
}

AGREEMENT_ACTIONS = {
    'created': 'Agreement created',
    'updated': 'Agreement updated',
    'updated_regenerated': 'Agreement updated and regenerated',
    'extended': 'Agreement extended',
    'deposit_refunded_toggled': 'Deposit refund flag changed',
    'soft_deleted': 'Agreement marked Deleted',
}

LANDING_PAGE_ACTIONS = {
    'CREATE_LANDING_PAGE': 'Landing page created',
    'UPDATE_LANDING_PAGE': 'Landing page edited',
    'DELETE_LANDING_PAGE': 'Landing page soft deleted',
}

MARKETING_ACTIONS = {
    'create_post': 'Post created',
    'update_post': 'Post updated',
    'delete_post': 'Post deleted',
    'scraper_progress': 'Post scraper progress',
}


def to_json_safe(value: Any) -> Any:
    """Make row snapshots JSON serialisable (datetimes, Decimals, nested)."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    return value


class AuditLogger:
    """Writes audit rows on behalf of one actor."""

    def __init__(self, session, actor_id: str = None, actor_email: str = None):
        """
        Args:
            session: SQLAlchemy database session
            actor_id: admin_users.user_id of the caller (None for cron/system)
            actor_email: email of the caller
        """
        self.session = session
        self.actor_id = actor_id
        self.actor_email = actor_email

    def _write(self, row) -> Optional[Dict]:
        """Insert inside a savepoint so a bad audit row only rolls back itself."""
        try:
            with self.session.begin_nested():
                self.session.add(row)
        except Exception as e:
            logger.error(f"Failed to write audit log: {e}")
            return None
        logger.debug(f"Audit logged: {row.__tablename__} {row.action}")
        return row.to_dict()

    def log_admin(self, action: str, target_user_id: str = None, meta: Dict = None) -> Optional[Dict]:
        from database.models import AdminAuditLog

        return self._write(AdminAuditLog(
            actor_user_id=self.actor_id,
            action=action,
            target_user_id=target_user_id,
            meta=to_json_safe(meta or {})
        ))

    def log_car(self, action: str, car_id: str = None, meta: Dict = None) -> Optional[Dict]:
        from database.models import CarAuditLog

        return self._write(CarAuditLog(
            actor_user_id=self.actor_id,
            action=action,
            car_id=car_id,
            meta=to_json_safe(meta or {})
        ))

    def log_agreement(self, agreement_id: str, action: str,
                      before: Dict = None, after: Dict = None) -> Optional[Dict]:
        from database.models import AgreementLog

        return self._write(AgreementLog(
            agreement_id=agreement_id,
            actor_id=self.actor_id,
            actor_email=self.actor_email,
            action=action,
            before=to_json_safe(before) if before is not None else None,
            after=to_json_safe(after) if after is not None else None
        ))

    def log_landing_page(self, action: str, landing_page_id: str = None,
                         old: Dict = None, new: Dict = None) -> Optional[Dict]:
        from database.models import LandingPageAuditLog

        return self._write(LandingPageAuditLog(
            actor_user_id=self.actor_id,
            action=action,
            landing_page_id=landing_page_id,
            meta=to_json_safe({'old': old, 'new': new})
        ))

    def log_marketing(self, action: str, details: Dict = None) -> Optional[Dict]:
        from database.models import MarketingLog

        return self._write(MarketingLog(
            actor_email=self.actor_email,
            action=action,
            details=to_json_safe(details or {})
        ))

    def get_agreement_history(self, agreement_id: str, limit: int = 200) -> List[Dict]:
        """Agreement log entries, newest first."""
        from database.models import AgreementLog

        rows = self.session.query(AgreementLog).filter(
            AgreementLog.agreement_id == agreement_id
        ).order_by(AgreementLog.created_at.desc()).limit(limit).all()
        return [r.to_dict() for r in rows]


def get_audit_logger(session, actor: Dict = None) -> AuditLogger:
    """
    Factory function to create an AuditLogger for a request's admin gate.

    Args:
        session: SQLAlchemy database session
        actor: {'id', 'email', 'role'} from auth, or None for system jobs
    """
    actor = actor or {}
    return AuditLogger(session, actor.get('id'), actor.get('email'))
