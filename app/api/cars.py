"""
Fleet Routes Blueprint

Handles the fleet:
- /api/cars: car list, dropdown and create/update/delete
- /api/cars/logs: the car change log
- /api/catalog: make/model catalog
- /api/maintenance: mileage targets and service status
- /api/insurance: insurance/roadtax expiry and the manual Slack alert
"""

from flask import Blueprint, request, jsonify, g
import logging

from auth import admin_required
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
cars_bp = Blueprint('cars_bp', __name__)


def _repository(session):
    from services.fleet_repository import FleetRepository
    return FleetRepository(session, g.admin)


# ============================================================================
# CARS
# ============================================================================

@cars_bp.route('/api/cars', methods=['GET'])
@admin_required
def get_cars():
    """?mode=dropdown for the agreement form, ?mode=list (default) for the fleet table"""
    try:
        from database.connection import get_db_session

        mode = request.args.get('mode') or 'list'
        with get_db_session() as session:
            repo = _repository(session)
            if mode == 'dropdown':
                return jsonify({'success': True, 'rows': repo.dropdown()})
            if mode == 'list':
                rows = repo.list_cars(status=request.args.get('status'))
                return jsonify({'success': True, 'rows': rows})

        return jsonify({'success': False, 'error': 'Unknown mode'}), 400

    except Exception as e:
        logger.error(f"Error listing cars: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@cars_bp.route('/api/cars/logs', methods=['GET'])
@admin_required
def car_logs():
    """Car change log with ?q, action, car_id, actor_user_id, page, page_size"""
    try:
        from database.connection import get_db_session
        from app.utils.helpers import parse_int_arg

        args = request.args
        with get_db_session() as session:
            result = _repository(session).list_car_logs(
                q=args.get('q'),
                action=args.get('action'),
                car_id=args.get('car_id'),
                actor_user_id=args.get('actor_user_id'),
                page=parse_int_arg(args.get('page'), 1, 1, 9999),
                page_size=parse_int_arg(args.get('page_size'), 25, 10, 100),
            )
        return jsonify({'success': True, **result})
    except Exception as e:
        logger.error(f"Error loading car logs: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@cars_bp.route('/api/cars/<car_id>', methods=['GET'])
@admin_required
def get_car(car_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            car = _repository(session).get_car(car_id)
        return jsonify({'success': True, 'row': car})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error loading car: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@cars_bp.route('/api/cars', methods=['POST'])
@admin_required
def cars_action():
    """Body: {action: create|update|delete, id?, payload?}"""
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        action = data.get('action')
        payload = data.get('payload')
        car_id = data.get('id') or (payload or {}).get('id')

        with get_db_session() as session:
            repo = _repository(session)

            if action == 'create':
                return jsonify({'success': True, 'row': repo.create_car(payload)})

            if action == 'update':
                if not car_id:
                    raise ValidationError("Missing car id", field='id')
                return jsonify({'success': True, 'row': repo.update_car(car_id, payload)})

            if action == 'delete':
                repo.delete_car(car_id)
                return jsonify({'success': True})

        return jsonify({'success': False, 'error': 'Unknown action'}), 400

    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error in cars action: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# CATALOG
# ============================================================================

@cars_bp.route('/api/catalog', methods=['GET'])
@admin_required
def get_catalog():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            rows = _repository(session).list_catalog()
        return jsonify({'success': True, 'rows': rows})
    except Exception as e:
        logger.error(f"Error listing catalog: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@cars_bp.route('/api/catalog', methods=['POST'])
@admin_required
def create_catalog():
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        with get_db_session() as session:
            row = _repository(session).create_catalog(
                data.get('make'), data.get('model'), data.get('default_images')
            )
        return jsonify({'success': True, 'row': row})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error creating catalog entry: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@cars_bp.route('/api/catalog/<catalog_id>', methods=['PUT'])
@admin_required
def update_catalog(catalog_id):
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        with get_db_session() as session:
            row = _repository(session).update_catalog(
                catalog_id, data.get('make'), data.get('model'), data.get('default_images')
            )
        return jsonify({'success': True, 'row': row})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error updating catalog entry: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# MAINTENANCE
# ============================================================================

@cars_bp.route('/api/maintenance', methods=['GET'])
@admin_required
def get_maintenance():
    """Service status of every active car"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            rows = _repository(session).list_maintenance()
        return jsonify({'success': True, 'rows': rows})
    except Exception as e:
        logger.error(f"Error loading maintenance: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@cars_bp.route('/api/maintenance', methods=['POST'])
@admin_required
def maintenance_action():
    """Body: {action: update_maintenance, id, current_mileage, next_*_mileage}"""
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        if data.get('action') != 'update_maintenance':
            return jsonify({'success': False, 'error': 'Unknown action'}), 400

        with get_db_session() as session:
            row = _repository(session).update_maintenance(data.get('id'), data)
        return jsonify({'success': True, 'row': row})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error updating maintenance: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# INSURANCE / ROADTAX
# ============================================================================

@cars_bp.route('/api/insurance', methods=['GET'])
@admin_required
def get_insurance():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            rows = _repository(session).list_insurance()
        return jsonify({'success': True, 'rows': rows})
    except Exception as e:
        logger.error(f"Error loading insurance: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@cars_bp.route('/api/insurance/notify', methods=['POST'])
@admin_required
def notify_insurance():
    """Send the insurance/roadtax Slack alert now"""
    try:
        from database.connection import get_db_session
        from services.reminder_service import ReminderService

        with get_db_session() as session:
            result = ReminderService(session).notify_insurance_now()
        return jsonify({'success': result.get('ok', True), **result})
    except Exception as e:
        logger.error(f"Error sending insurance alert: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
