"""
Admin Routes Blueprint

Superadmin-only management of admin accounts and the admin audit trail.
"""

from flask import Blueprint, request, jsonify, g
import logging

from auth import superadmin_required
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
admin_bp = Blueprint('admin_bp', __name__)


def _repository(session):
    from services.admin_users_repository import AdminUsersRepository
    return AdminUsersRepository(session, g.admin['id'], g.admin['email'])


# ============================================================================
# ADMIN USERS API
# ============================================================================

@admin_bp.route('/api/admin/users', methods=['GET'])
@superadmin_required
def list_admin_users():
    """All admin accounts, newest first"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            rows = _repository(session).list_admins()
        return jsonify({'success': True, 'rows': rows})
    except Exception as e:
        logger.error(f"Error listing admins: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@admin_bp.route('/api/admin/users', methods=['POST'])
@superadmin_required
def admin_users_action():
    """
    Mutate admin accounts.

    Body: {action: create|update|set_password|toggle|delete, ...}
    """
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        action = data.get('action')
        user_id = data.get('user_id')

        with get_db_session() as session:
            repo = _repository(session)

            if action == 'create':
                user = repo.create_admin(
                    data.get('email'),
                    phone=data.get('phone'),
                    role=data.get('role') or 'admin',
                    temp_password=data.get('temp_password')
                )
                return jsonify({'success': True, 'user': user})

            if action == 'update':
                user = repo.update_admin(
                    user_id,
                    role=data.get('role'),
                    phone=data.get('phone'),
                    status=data.get('status')
                )
                return jsonify({'success': True, 'user': user})

            if action == 'set_password':
                repo.set_password(user_id, data.get('new_password'))
                return jsonify({'success': True})

            if action == 'toggle':
                user = repo.toggle_admin(user_id, bool(data.get('enable')))
                return jsonify({'success': True, 'user': user})

            if action == 'delete':
                repo.delete_admin(user_id)
                return jsonify({'success': True})

        return jsonify({'success': False, 'error': 'Unknown action'}), 400

    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error in admin users action: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@admin_bp.route('/api/admin/audit', methods=['GET'])
@superadmin_required
def admin_audit():
    """Recent admin audit entries with actor and target emails"""
    try:
        from database.connection import get_db_session
        from app.utils.helpers import parse_int_arg

        limit = parse_int_arg(request.args.get('limit'), 100, 1, 500)
        with get_db_session() as session:
            rows = _repository(session).list_audit(limit=limit)
        return jsonify({'success': True, 'rows': rows})
    except Exception as e:
        logger.error(f"Error loading admin audit: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
