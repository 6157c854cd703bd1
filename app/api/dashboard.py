"""
Dashboard Routes Blueprint

Handles the admin dashboard:
- /api/dashboard: revenue buckets, top cars/customers, active rentals
- /api/dashboard/summary: revenue for the current day/week/month/quarter
- /api/dashboard/fleet: who is out, who is free, urgent documents
- /api/dashboard/revenue: revenue report with trend and fleet utilisation
- /api/dashboard/range: business window for the traffic range selector
- /api/debug-earnings: today's price changes from the agreement log
"""

import logging
from flask import Blueprint, request, jsonify

from auth import admin_required
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
dashboard_bp = Blueprint('dashboard_bp', __name__)


def _revenue_service(session):
    from services.revenue_service import RevenueService
    return RevenueService(session)


# ============================================================================
# REVENUE
# ============================================================================

@dashboard_bp.route('/api/dashboard', methods=['GET'])
@admin_required
def get_dashboard():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            data = _revenue_service(session).get_dashboard()
        return jsonify({'success': True, **data})
    except Exception as e:
        logger.error(f"Error loading dashboard: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@dashboard_bp.route('/api/dashboard/summary', methods=['GET'])
@admin_required
def get_summary():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            data = _revenue_service(session).get_period_summary(
                period=request.args.get('period') or 'monthly',
                q=request.args.get('q')
            )
        return jsonify({'success': True, **data})
    except Exception as e:
        logger.error(f"Error loading revenue summary: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@dashboard_bp.route('/api/dashboard/revenue', methods=['GET'])
@admin_required
def get_revenue():
    try:
        from database.connection import get_db_session

        args = request.args
        with get_db_session() as session:
            report = _revenue_service(session).get_revenue_report(
                period=args.get('period'),
                date_from=args.get('from'),
                date_to=args.get('to'),
                plate=args.get('plate'),
                model=args.get('model')
            )
        return jsonify({'success': True, **report})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error loading revenue report: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@dashboard_bp.route('/api/debug-earnings', methods=['GET'])
@admin_required
def debug_earnings():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            data = _revenue_service(session).get_earnings_debug()
        return jsonify({'success': True, **data})
    except Exception as e:
        logger.error(f"Error loading earnings debug: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# FLEET & RANGES
# ============================================================================

@dashboard_bp.route('/api/dashboard/fleet', methods=['GET'])
@admin_required
def get_fleet():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            data = _revenue_service(session).get_fleet_status()
        return jsonify({'success': True, **data})
    except Exception as e:
        logger.error(f"Error loading fleet status: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@dashboard_bp.route('/api/dashboard/range', methods=['GET'])
@admin_required
def get_range():
    """?range=24h|7d|30d -> 06:00 KL aligned ISO bounds"""
    from services.time_windows import range_key_to_iso

    return jsonify({'success': True, **range_key_to_iso(request.args.get('range'))})
