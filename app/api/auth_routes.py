"""
Authentication Routes Blueprint

Handles admin login, logout and the current-admin lookup.
"""

from flask import Blueprint, request, jsonify
import logging

logger = logging.getLogger(__name__)

# Create blueprint
auth_bp = Blueprint('auth_bp', __name__)


def get_auth():
    """Get auth module - imported lazily to avoid circular imports"""
    import auth
    return auth


# ============================================================================
# LOGIN/LOGOUT ROUTES
# ============================================================================

@auth_bp.route('/api/auth/login', methods=['POST'])
def api_login():
    """API endpoint for admin login"""
    auth = get_auth()
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        email = (data.get('email') or '').strip()
        password = data.get('password') or ''

        if not email or not password:
            return jsonify({'success': False, 'error': 'Email and password required'}), 400

        with get_db_session() as db:
            admin, error = auth.authenticate_admin(db, email, password)
            if error:
                logger.warning(f"Failed login for {email.lower()}: {error}")
                status = 403 if error == 'Account disabled' else 401
                return jsonify({'success': False, 'error': error}), status

            auth.login_admin(admin)
            user = admin.to_dict()

        return jsonify({'success': True, 'user': user, 'redirect': '/admin'})

    except Exception as e:
        logger.error(f"Login error: {e}")
        return jsonify({'success': False, 'error': 'Login failed'}), 500


@auth_bp.route('/api/auth/logout', methods=['POST'])
def api_logout():
    """API endpoint for admin logout"""
    auth = get_auth()
    auth.logout_admin()
    return jsonify({'success': True})


@auth_bp.route('/api/auth/me', methods=['GET'])
def get_current_admin():
    """Current logged-in admin with role and status"""
    auth = get_auth()
    if not auth.is_authenticated():
        return jsonify({'success': False, 'error': 'Not authenticated'}), 401
    try:
        from database.connection import get_db_session
        from database.models import AdminUser

        with get_db_session() as db:
            admin = db.query(AdminUser).filter(AdminUser.user_id == auth.current_admin_id()).first()
            if not admin:
                auth.logout_admin()
                return jsonify({'success': False, 'error': 'Not authenticated'}), 401
            user = admin.to_dict()

        return jsonify({'success': True, 'user': user})
    except Exception as e:
        logger.error(f"Error loading current admin: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
