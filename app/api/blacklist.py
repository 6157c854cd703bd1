"""
Blacklist Routes Blueprint

Customers flagged by IC/passport or phone number.
"""

from flask import Blueprint, request, jsonify
import logging

from auth import admin_required
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
blacklist_bp = Blueprint('blacklist_bp', __name__)


@blacklist_bp.route('/api/blacklist', methods=['GET'])
@admin_required
def list_blacklist():
    try:
        from database.connection import get_db_session
        from services.blacklist_repository import BlacklistRepository

        with get_db_session() as session:
            rows = BlacklistRepository(session).list_entries()
        return jsonify({'success': True, 'rows': rows})
    except Exception as e:
        logger.error(f"Error listing blacklist: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@blacklist_bp.route('/api/blacklist', methods=['POST'])
@admin_required
def blacklist_action():
    """Body: {action: create, type, value, reason} or {action: delete, id}"""
    try:
        from database.connection import get_db_session
        from services.blacklist_repository import BlacklistRepository

        data = request.get_json(silent=True) or {}
        action = data.get('action')

        with get_db_session() as session:
            repo = BlacklistRepository(session)
            if action == 'create':
                row = repo.create_entry(data.get('type'), data.get('value'), data.get('reason'))
                return jsonify({'success': True, 'row': row})
            if action == 'delete':
                repo.delete_entry(data.get('id'))
                return jsonify({'success': True})

        return jsonify({'success': False, 'error': 'Invalid action'}), 400

    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error in blacklist action: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@blacklist_bp.route('/api/blacklist/check', methods=['POST'])
@admin_required
def check_blacklist():
    """Body: {type: ic|phone, value}"""
    try:
        from database.connection import get_db_session
        from services.blacklist_repository import BlacklistRepository

        data = request.get_json(silent=True) or {}
        with get_db_session() as session:
            result = BlacklistRepository(session).check(data.get('type'), data.get('value'))
        return jsonify({'success': True, **result})
    except Exception as e:
        logger.error(f"Error checking blacklist: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
