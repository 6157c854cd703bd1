"""
Admin Users Repository - Database access layer for back-office accounts.

Every mutation is made on behalf of an actor (the logged-in superadmin) and
audited. A superadmin can never be edited, disabled, re-passworded or deleted
through these operations, and nobody can act on their own account here.
"""

import logging
from typing import List, Dict, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from auth import ROLES, STATUSES, safe_generate_password_hash
from database.models import AdminUser, AdminAuditLog, CarAuditLog
from services.audit_logger import AuditLogger
from validators import ValidationError, NotFoundError, PermissionDenied, validate_password, validate_email

logger = logging.getLogger(__name__)


class AdminUsersRepository:
    """Repository for admin account management."""

    def __init__(self, session: Session, actor_id: str = None, actor_email: str = None):
        self.session = session
        self.actor_id = actor_id
        self.audit = AuditLogger(session, actor_id, actor_email)

    def _get_target(self, user_id: str) -> AdminUser:
        if not user_id:
            raise ValidationError("Missing user_id", field='user_id')
        target = self.session.query(AdminUser).filter(AdminUser.user_id == user_id).first()
        if not target:
            raise NotFoundError("Target not found")
        return target

    def list_admins(self) -> List[Dict]:
        """All admin accounts, newest first."""
        rows = self.session.query(AdminUser).order_by(AdminUser.created_at.desc()).all()
        return [r.to_dict() for r in rows]

    def get_by_email(self, email: str) -> Optional[AdminUser]:
        return self.session.query(AdminUser).filter(
            AdminUser.email == (email or '').strip().lower()
        ).first()

    def create_admin(self, email: str, phone: str = None, role: str = 'admin',
                     temp_password: str = None) -> Dict:
        """Create an active admin with a temporary password."""
        email = (email or '').strip().lower()
        if not email:
            raise ValidationError("Email required", field='email')
        is_valid, error = validate_email(email)
        if not is_valid:
            raise ValidationError(error, field='email')
        validate_password(temp_password, "Temp password must be 6+ chars")
        role = role or 'admin'
        if role not in ROLES:
            raise ValidationError("Invalid role", field='role')
        if self.get_by_email(email):
            raise ValidationError("Email already exists", field='email')

        admin = AdminUser(
            email=email,
            phone=(phone or '').strip() or None,
            role=role,
            status='active',
            password_hash=safe_generate_password_hash(temp_password),
            created_by=self.actor_id
        )
        self.session.add(admin)
        self.session.flush()

        self.audit.log_admin('CREATE_ADMIN', admin.user_id, {
            'email': email,
            'phone': admin.phone,
            'role': role,
            'temp_password_set': True
        })
        logger.info(f"Created admin: {admin.user_id}")
        return admin.to_dict()

    def update_admin(self, user_id: str, role: str = None, phone: str = None,
                     status: str = None) -> Dict:
        """Change role, phone or status of another (non-superadmin) admin."""
        target = self._get_target(user_id)
        if target.user_id == self.actor_id:
            raise PermissionDenied("You cannot edit yourself here")
        if target.role == 'superadmin':
            raise PermissionDenied("Cannot modify another superadmin")

        patch = {}
        if role is not None:
            if role not in ROLES:
                raise ValidationError("Invalid role", field='role')
            patch['role'] = role
        if phone is not None:
            patch['phone'] = phone.strip() or None
        if status is not None:
            if status not in STATUSES:
                raise ValidationError("Invalid status", field='status')
            patch['status'] = status
        if not patch:
            raise ValidationError("Nothing to update")

        prev = {key: getattr(target, key) for key in patch}
        for key, value in patch.items():
            setattr(target, key, value)
        self.session.flush()

        self.audit.log_admin('UPDATE_ADMIN', target.user_id, {**patch, 'prev': prev})
        logger.info(f"Updated admin: {target.user_id}")
        return target.to_dict()

    def set_password(self, user_id: str, new_password: str) -> Dict:
        validate_password(new_password, "Password must be 6+ chars")
        target = self._get_target(user_id)
        if target.user_id == self.actor_id:
            raise PermissionDenied("You cannot change your own password here")
        if target.role == 'superadmin':
            raise PermissionDenied("Cannot change another superadmin password")

        target.password_hash = safe_generate_password_hash(new_password)
        self.session.flush()

        self.audit.log_admin('SET_PASSWORD', target.user_id, {'email': target.email})
        logger.info(f"Password reset for admin: {target.user_id}")
        return target.to_dict()

    def toggle_admin(self, user_id: str, enable: bool) -> Dict:
        target = self._get_target(user_id)
        if target.user_id == self.actor_id:
            raise PermissionDenied("You cannot disable yourself")
        if target.role == 'superadmin':
            raise PermissionDenied("Cannot disable another superadmin")

        prev_status = target.status
        target.status = 'active' if enable else 'disabled'
        self.session.flush()

        self.audit.log_admin('ENABLE_ADMIN' if enable else 'DISABLE_ADMIN', target.user_id, {
            'prev_status': prev_status,
            'next_status': target.status
        })
        return target.to_dict()

    def delete_admin(self, user_id: str) -> bool:
        """
        Remove an admin and the audit rows that reference it.

        Superadmins are never deletable here.
        """
        target = self._get_target(user_id)
        if target.user_id == self.actor_id:
            raise PermissionDenied("You cannot delete yourself")
        if target.role == 'superadmin':
            raise PermissionDenied("Cannot delete another superadmin")

        self.audit.log_admin('DELETE_ADMIN', target.user_id, {
            'email': target.email,
            'role': target.role
        })

        self.session.query(AdminAuditLog).filter(
            or_(AdminAuditLog.actor_user_id == target.user_id,
                AdminAuditLog.target_user_id == target.user_id)
        ).delete(synchronize_session=False)
        self.session.query(CarAuditLog).filter(
            CarAuditLog.actor_user_id == target.user_id
        ).delete(synchronize_session=False)
        self.session.delete(target)
        self.session.flush()

        logger.info(f"Deleted admin: {user_id}")
        return True

    def list_audit(self, limit: int = 100) -> List[Dict]:
        """Recent admin audit entries with actor/target emails resolved."""
        rows = self.session.query(AdminAuditLog).order_by(
            AdminAuditLog.created_at.desc()
        ).limit(limit).all()

        ids = {r.actor_user_id for r in rows} | {r.target_user_id for r in rows}
        ids.discard(None)
        emails = {}
        if ids:
            emails = dict(self.session.query(AdminUser.user_id, AdminUser.email).filter(
                AdminUser.user_id.in_(ids)
            ).all())

        result = []
        for row in rows:
            item = row.to_dict()
            item['actor_email'] = emails.get(row.actor_user_id)
            item['target_email'] = emails.get(row.target_user_id)
            result.append(item)
        return result
