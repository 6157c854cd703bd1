"""
Admin Authentication and Authorization Module
Handles admin login, session management, and role-based permissions

Accounts live in the admin_users table. Two roles exist: admin and
superadmin. Only superadmins manage other admins or hard-delete records.
"""
from datetime import datetime
from functools import wraps
from flask import session, jsonify, g
from werkzeug.security import generate_password_hash, check_password_hash
import logging

logger = logging.getLogger(__name__)

ROLES = ('admin', 'superadmin')
STATUSES = ('active', 'disabled')

# Capability matrix per role
PERMISSIONS = {
    'superadmin': {
        'manageAdmins': True,
        'deleteAgreements': True,
        'deleteCars': True,
    },
    'admin': {
        'manageAdmins': False,
        'deleteAgreements': False,
        'deleteCars': False,
    },
}


def safe_generate_password_hash(password):
    """Generate password hash using pbkdf2 for compatibility"""
    return generate_password_hash(password, method='pbkdf2:sha256')


def safe_check_password_hash(pwhash, password):
    """Check password hash"""
    if not pwhash:
        return False
    return check_password_hash(pwhash, password)


def has_permission(role, permission):
    """Check whether a role carries a capability"""
    return bool(PERMISSIONS.get(role, {}).get(permission, False))


# ============================================================================
# LOGIN / SESSION
# ============================================================================

def authenticate_admin(db, email, password):
    """
    Authenticate an admin by email and password

    Returns:
        (AdminUser, None) on success, (None, error_message) otherwise
    """
    from database.models import AdminUser

    email = (email or '').strip().lower()
    admin = db.query(AdminUser).filter(AdminUser.email == email).first()

    if not admin or not safe_check_password_hash(admin.password_hash, password or ''):
        return None, 'Invalid email or password'

    if admin.status != 'active':
        return None, 'Account disabled'

    admin.last_login = datetime.utcnow()
    db.flush()
    return admin, None


def login_admin(admin):
    """Set session for an authenticated admin"""
    session['admin_user_id'] = admin.user_id
    session['admin_email'] = admin.email
    session['admin_role'] = admin.role
    logger.info(f"Admin logged in: {admin.email}")


def logout_admin():
    """Clear admin session"""
    session.clear()


def current_admin_id():
    return session.get('admin_user_id')


def is_authenticated():
    """Check if an admin is logged in"""
    return 'admin_user_id' in session


# ============================================================================
# GATES
# ============================================================================

def _load_admin_row(user_id):
    from database.connection import get_db_session
    from database.models import AdminUser

    with get_db_session() as db:
        row = db.query(AdminUser).filter(AdminUser.user_id == user_id).first()
        if not row:
            return None
        return {'id': row.user_id, 'email': row.email, 'role': row.role, 'status': row.status}


def check_admin():
    """
    Resolve the logged-in admin against admin_users.

    Returns:
        (gate, None) where gate = {'id', 'email', 'role'},
        or (None, (message, status))
    """
    user_id = current_admin_id()
    if not user_id:
        return None, ('Unauthenticated', 401)

    row = _load_admin_row(user_id)
    if not row:
        return None, ('Forbidden', 403)
    if row['status'] != 'active':
        return None, ('Account disabled', 403)

    return {'id': row['id'], 'email': row['email'], 'role': row['role']}, None


def check_superadmin():
    """Same as check_admin but only superadmins pass."""
    user_id = current_admin_id()
    if not user_id:
        return None, ('Not authenticated', 401)

    row = _load_admin_row(user_id)
    if not row or row['role'] != 'superadmin' or row['status'] != 'active':
        return None, ('Access denied', 403)

    return {'id': row['id'], 'email': row['email'], 'role': row['role']}, None


# Decorators for route protection
def admin_required(f):
    """Decorator to require an active admin; the gate is stored on g.admin"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        gate, error = check_admin()
        if error:
            message, status = error
            return jsonify({'success': False, 'error': message}), status
        g.admin = gate
        return f(*args, **kwargs)
    return decorated_function


def superadmin_required(f):
    """Decorator to require an active superadmin"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        gate, error = check_superadmin()
        if error:
            message, status = error
            return jsonify({'success': False, 'error': message}), status
        g.admin = gate
        return f(*args, **kwargs)
    return decorated_function
