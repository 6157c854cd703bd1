"""
Site Events Routes Blueprint

Handles website traffic tracking:
- /api/track: public hit ingest from the customer site
- /api/site-events/*: public active-user count and summary
- /api/admin/site-events/*: raw events, summary, session timeline, geo backfill
"""

from flask import Blueprint, request, jsonify
import logging

from auth import admin_required
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
site_events_bp = Blueprint('site_events_bp', __name__)


# ============================================================================
# PUBLIC
# ============================================================================

@site_events_bp.route('/api/track', methods=['POST'])
def track():
    """Store one hit from the public site"""
    try:
        from database.connection import get_db_session
        from services.site_events import track_event

        body = request.get_json(silent=True) or {}
        with get_db_session() as session:
            event = track_event(session, body, dict(request.headers), request.remote_addr)
        return jsonify({'success': True, 'id': event['id']})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error tracking event: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@site_events_bp.route('/api/site-events/active', methods=['GET'])
def active():
    try:
        from database.connection import get_db_session
        from services.site_events import active_users

        with get_db_session() as session:
            result = active_users(session, request.args.get('minutes'))
        return jsonify({'success': True, **result})
    except Exception as e:
        logger.error(f"Error counting active users: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


def _summary_response():
    from database.connection import get_db_session
    from services.site_events import summarize

    with get_db_session() as session:
        result = summarize(session, request.args.get('from'), request.args.get('to'))
    return jsonify({'success': True, **result})


@site_events_bp.route('/api/site-events/summary', methods=['GET'])
def public_summary():
    try:
        return _summary_response()
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error summarizing site events: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# ADMIN
# ============================================================================

@site_events_bp.route('/api/admin/site-events', methods=['GET'])
@admin_required
def admin_events():
    """Raw hits in ?from= .. ?to=, newest first"""
    try:
        from database.connection import get_db_session
        from services.site_events import list_events

        args = request.args
        with get_db_session() as session:
            result = list_events(session, args.get('from'), args.get('to'),
                                 limit=args.get('limit'), offset=args.get('offset'))
        return jsonify({'success': True, **result})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error listing site events: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@site_events_bp.route('/api/admin/site-events/summary', methods=['GET'])
@admin_required
def admin_summary():
    try:
        return _summary_response()
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error summarizing site events: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@site_events_bp.route('/api/admin/site-events/session', methods=['GET'])
@admin_required
def admin_session():
    """Timeline for ?sessionId= or a visitor identity ?id="""
    try:
        from database.connection import get_db_session
        from services.site_events import session_timeline

        with get_db_session() as session:
            events = session_timeline(
                session,
                session_id=request.args.get('sessionId'),
                identity=request.args.get('id')
            )
        return jsonify({'success': True, 'events': events})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error loading session timeline: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@site_events_bp.route('/api/admin/site-events/backfill-geo', methods=['POST'])
@admin_required
def admin_backfill_geo():
    try:
        from database.connection import get_db_session
        from services.site_events import backfill_geo
        from app.utils.helpers import is_truthy_flag

        data = request.get_json(silent=True) or {}
        limit = request.args.get('limit') or data.get('limit')
        dry = is_truthy_flag(request.args.get('dry')) or bool(data.get('dry'))

        with get_db_session() as session:
            stats = backfill_geo(session, limit=limit, dry_run=dry)
        return jsonify({'success': True, **stats})
    except Exception as e:
        logger.error(f"Error backfilling geo: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
