"""
Marketing Routes Blueprint

Landing pages, social posts and the marketing activity tracker.
"""

from flask import Blueprint, request, jsonify, g
import logging

from auth import admin_required, superadmin_required
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
marketing_bp = Blueprint('marketing_bp', __name__)


def _repository(session):
    from services.marketing_repository import MarketingRepository
    return MarketingRepository(session, g.admin)


# ============================================================================
# LANDING PAGES
# ============================================================================

@marketing_bp.route('/api/landing-pages', methods=['GET'])
@admin_required
def list_landing_pages():
    try:
        from database.connection import get_db_session
        from app.utils.helpers import is_truthy_flag

        include_deleted = is_truthy_flag(request.args.get('include_deleted'))
        with get_db_session() as session:
            rows = _repository(session).list_landing_pages(include_deleted=include_deleted)
        return jsonify({'success': True, 'rows': rows})
    except Exception as e:
        logger.error(f"Error listing landing pages: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@marketing_bp.route('/api/landing-pages/logs', methods=['GET'])
@superadmin_required
def landing_page_logs():
    """Audit trail of landing page edits with ?q, action, actor_user_id, landing_page_id, page, page_size"""
    try:
        from database.connection import get_db_session
        from app.utils.helpers import parse_int_arg

        args = request.args
        with get_db_session() as session:
            result = _repository(session).list_landing_page_logs(
                q=args.get('q'),
                action=args.get('action'),
                actor_user_id=args.get('actor_user_id'),
                landing_page_id=args.get('landing_page_id'),
                page=parse_int_arg(args.get('page'), 1, 1),
                page_size=parse_int_arg(args.get('page_size'), 50, 10),
            )
        return jsonify({'success': True, **result})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error loading landing page logs: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@marketing_bp.route('/api/landing-pages/<slug>', methods=['GET'])
@admin_required
def get_landing_page(slug):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            row = _repository(session).get_landing_page(slug)
        return jsonify({'success': True, 'row': row})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error loading landing page: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@marketing_bp.route('/api/landing-pages', methods=['POST'])
@admin_required
def upsert_landing_page():
    """Create or update a landing page by slug"""
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        with get_db_session() as session:
            row = _repository(session).upsert_landing_page(data)
        return jsonify({'success': True, 'row': row})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error saving landing page: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@marketing_bp.route('/api/landing-pages', methods=['DELETE'])
@admin_required
def delete_landing_page():
    """Soft delete by ?id= or ?slug= (or the same keys in the body)"""
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        page_id = request.args.get('id') or data.get('id')
        slug = request.args.get('slug') or data.get('slug')
        with get_db_session() as session:
            _repository(session).delete_landing_page(page_id=page_id, slug=slug)
        return jsonify({'success': True})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error deleting landing page: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# POSTS
# ============================================================================

@marketing_bp.route('/api/posts', methods=['GET'])
@admin_required
def list_posts():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            rows = _repository(session).list_posts()
        return jsonify({'success': True, 'rows': rows})
    except Exception as e:
        logger.error(f"Error listing posts: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@marketing_bp.route('/api/posts', methods=['POST'])
@admin_required
def posts_action():
    """Body: {action: create|update|delete, ...post fields}"""
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        action = data.get('action') or 'create'

        with get_db_session() as session:
            repo = _repository(session)
            if action == 'create':
                return jsonify({'success': True, 'row': repo.create_post(data)})
            if action == 'update':
                return jsonify({'success': True, 'row': repo.update_post(data)})
            if action == 'delete':
                repo.delete_post(data.get('id'))
                return jsonify({'success': True})

        return jsonify({'success': False, 'error': 'Unknown action'}), 400

    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error in posts action: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@marketing_bp.route('/api/posts/logs', methods=['GET'])
@admin_required
def post_scraper_progress():
    """Latest scraper progress entry for ?post_id="""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            row = _repository(session).latest_scraper_progress(request.args.get('post_id'))
        return jsonify({'success': True, 'row': row})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error loading scraper progress: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# MARKETING TRACKER
# ============================================================================

@marketing_bp.route('/api/marketing-tracker', methods=['GET'])
@admin_required
def marketing_tracker():
    try:
        from database.connection import get_db_session
        from app.utils.helpers import parse_int_arg

        limit = parse_int_arg(request.args.get('limit'), 100, 1, 500)
        with get_db_session() as session:
            rows = _repository(session).list_marketing_logs(limit=limit)
        return jsonify({'success': True, 'rows': rows, 'role': g.admin['role']})
    except Exception as e:
        logger.error(f"Error loading marketing tracker: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@marketing_bp.route('/api/marketing-tracker', methods=['POST'])
@admin_required
def marketing_tracker_action():
    """Body: {action: delete, id}"""
    try:
        from database.connection import get_db_session

        data = request.get_json(silent=True) or {}
        if data.get('action') != 'delete':
            return jsonify({'success': False, 'error': 'Unknown action'}), 400

        with get_db_session() as session:
            _repository(session).delete_marketing_log(data.get('id'))
        return jsonify({'success': True})
    except ValidationError as e:
        return jsonify({'success': False, 'error': e.message}), e.status
    except Exception as e:
        logger.error(f"Error in marketing tracker action: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
