"""
Agreements Routes Blueprint

Rental agreement listing, create/update/delete, returning-customer lookups
and the per-agreement change log.
"""

from flask import Blueprint, request, jsonify, g
import logging

from auth import admin_required
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
agreements_bp = Blueprint('agreements_bp', __name__)


def _repository(session):
    from services.agreements_repository import AgreementsRepository
    return AgreementsRepository(session, g.admin)


# ============================================================================
# AGREEMENTS API
# ============================================================================

@agreements_bp.route('/api/agreements', methods=['GET'])
@admin_required
def get_agreements():
    """
    Agreements list.

    ?id=<uuid> returns one agreement, ?filtersOnly=1 only the filter
    options; otherwise a page filtered by q, status, plate, model, actor,
    date and end_date.
    """
    try:
        from database.connection import get_db_session
        from app.utils.helpers import parse_int_arg, is_truthy_flag

        args = request.args
        with get_db_session() as session:
            repo = _repository(session)

            if args.get('id'):
                return jsonify({'success': True, 'row': repo.get_agreement(args.get('id'))})

            if is_truthy_flag(args.get('filtersOnly')):
                return jsonify({'success': True, 'filters': repo.filter_options()})

            result = repo.list_agreements(
                page=parse_int_arg(args.get('page'), 1, 1),
                limit=parse_int_arg(args.get('limit'), 20),
                q=args.get('q'),
                status=args.get('status'),
                plate=args.get('plate'),
                model=args.get('model'),
                actor=args.get('actor'),
                date=args.get('date'),
                end_date=args.get('end_date') or args.get('endDate')
            )
        return jsonify({'success': True, **result})

    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error listing agreements: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@agreements_bp.route('/api/agreements', methods=['POST'])
@admin_required
def agreements_action():
    """
    Body: {action: confirm_create|confirm_update|delete, payload?, id?}
    """
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        action = data.get('action')
        payload = data.get('payload') or {}

        with get_db_session() as session:
            repo = _repository(session)

            if action == 'confirm_create':
                return jsonify({'success': True, 'row': repo.create_agreement(payload)})

            if action == 'confirm_update':
                return jsonify({'success': True, 'row': repo.update_agreement(payload)})

            if action == 'delete':
                agreement_id = data.get('id') or payload.get('id')
                return jsonify({'success': True, 'row': repo.soft_delete(agreement_id)})

        return jsonify({'success': False, 'error': 'Unknown action'}), 400

    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error in agreements action: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# RETURNING CUSTOMERS
# ============================================================================

@agreements_bp.route('/api/agreements/check-history', methods=['POST'])
@admin_required
def check_history():
    """Most recent live agreement for an IC or mobile"""
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        with get_db_session() as session:
            result = _repository(session).check_history(data.get('ic'), data.get('mobile'))
        return jsonify({'success': True, **result})
    except Exception as e:
        logger.error(f"Error checking history: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@agreements_bp.route('/api/agreements/previous', methods=['POST'])
@admin_required
def previous_agreements():
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        with get_db_session() as session:
            rows = _repository(session).previous_agreements(data.get('ic'), data.get('mobile'))
        return jsonify({'success': True, 'rows': rows})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error loading previous agreements: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# CHANGE LOG
# ============================================================================

@agreements_bp.route('/api/agreements/logs', methods=['GET'])
@admin_required
def agreement_logs():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            rows = _repository(session).list_logs(request.args.get('agreement_id'))
        return jsonify({'success': True, 'rows': rows})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error loading agreement logs: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
