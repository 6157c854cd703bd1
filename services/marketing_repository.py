"""
Marketing Repository - Landing pages, social posts and marketing logs.
"""

import logging
import math
from datetime import datetime
from typing import List, Dict, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database.models import AdminUser, LandingPage, LandingPageAuditLog, FbPost, MarketingLog
from services.audit_logger import AuditLogger
from app.utils.helpers import as_str, safe_json_list, is_uuid
from validators import ValidationError, NotFoundError, PermissionDenied

logger = logging.getLogger(__name__)

LANDING_TEXT_FIELDS = [
    'title', 'meta_description', 'h1_title', 'intro_text', 'cta_text', 'cta_link',
    'title_en', 'meta_description_en', 'h1_title_en', 'intro_text_en', 'cta_text_en', 'cta_link_en',
    'menu_label',
]
LANDING_JSON_FIELDS = ['body_content', 'body_content_en', 'images', 'image_prompts']
POST_FIELDS = ['title', 'url', 'platform', 'image_url', 'status']


class MarketingRepository:
    """Repository for marketing content."""

    def __init__(self, session: Session, actor: Dict = None):
        self.session = session
        self.actor = actor or {}
        self.audit = AuditLogger(session, self.actor.get('id'), self.actor.get('email'))

    # =========================================================================
    # LANDING PAGES
    # =========================================================================

    def list_landing_pages(self, include_deleted: bool = False) -> List[Dict]:
        query = self.session.query(LandingPage)
        if not include_deleted:
            query = query.filter(LandingPage.status != 'deleted')
        return [p.to_dict() for p in query.order_by(LandingPage.created_at.desc()).all()]

    def get_landing_page(self, slug: str) -> Dict:
        page = self.session.query(LandingPage).filter(LandingPage.slug == slug).first()
        if not page:
            raise NotFoundError("Landing page not found")
        return page.to_dict()

    def upsert_landing_page(self, data: Dict) -> Dict:
        """Insert or update by slug."""
        slug = as_str(data.get('slug'))
        if not slug:
            raise ValidationError("Slug required", field='slug')

        page = self.session.query(LandingPage).filter(LandingPage.slug == slug).first()
        created = page is None
        old = None if created else page.to_dict()
        if created:
            page = LandingPage(slug=slug)
            self.session.add(page)

        page.category = as_str(data.get('category')) or 'location'
        page.status = as_str(data.get('status')) or 'active'
        for field in LANDING_TEXT_FIELDS:
            setattr(page, field, data.get(field))
        for field in LANDING_JSON_FIELDS:
            setattr(page, field, safe_json_list(data.get(field)))
        page.updated_at = datetime.utcnow()
        self.session.flush()

        new = page.to_dict()
        action = 'CREATE_LANDING_PAGE' if created else 'UPDATE_LANDING_PAGE'
        self.audit.log_landing_page(action, page.id, old=old, new=new)
        logger.info(f"{'Created' if created else 'Updated'} landing page: {slug}")
        return new

    def delete_landing_page(self, page_id: str = None, slug: str = None) -> bool:
        """Soft delete by id or slug."""
        if not page_id and not slug:
            raise ValidationError("No identifier provided for deletion")
        query = self.session.query(LandingPage)
        if page_id:
            page = query.filter(LandingPage.id == page_id).first()
        else:
            page = query.filter(LandingPage.slug == slug).first()
        if not page:
            raise NotFoundError("Landing page not found")
        old = page.to_dict()
        page.status = 'deleted'
        page.updated_at = datetime.utcnow()
        self.session.flush()
        self.audit.log_landing_page('DELETE_LANDING_PAGE', page.id, old=old, new=page.to_dict())
        return True

    def list_landing_page_logs(self, q: str = None, action: str = None, actor_user_id: str = None,
                               landing_page_id: str = None, page: int = 1, page_size: int = 50) -> Dict:
        """
        Landing page audit trail, newest first (superadmin only).

        A UUID in q matches the log id or the page id; any other text
        matches the action. Rows carry the actor's email and the page's
        label and slug.
        """
        if self.actor.get('role') != 'superadmin':
            raise PermissionDenied("Only superadmin can view landing page logs")

        query = self.session.query(LandingPageAuditLog)
        if action:
            query = query.filter(LandingPageAuditLog.action == action)
        if actor_user_id:
            query = query.filter(LandingPageAuditLog.actor_user_id == actor_user_id)
        if landing_page_id:
            query = query.filter(LandingPageAuditLog.landing_page_id == landing_page_id)
        q = as_str(q)
        if q and is_uuid(q):
            query = query.filter(or_(LandingPageAuditLog.id == q, LandingPageAuditLog.landing_page_id == q))
        elif q:
            query = query.filter(LandingPageAuditLog.action.ilike(f'%{q}%'))

        total = query.count()
        logs = query.order_by(LandingPageAuditLog.created_at.desc()).offset(
            (page - 1) * page_size
        ).limit(page_size).all()

        emails = dict(self.session.query(AdminUser.user_id, AdminUser.email).all())
        pages = {p.id: p for p in self.session.query(LandingPage).all()}
        rows = []
        for log in logs:
            row = log.to_dict()
            target = pages.get(log.landing_page_id)
            row['actor_email'] = emails.get(log.actor_user_id)
            row['landing_page_label'] = (target.menu_label or target.slug or 'Unknown Page') if target else None
            row['landing_page_slug'] = target.slug if target else None
            rows.append(row)

        return {
            'rows': rows,
            'total': total,
            'page': page,
            'page_size': page_size,
            'total_pages': math.ceil(total / page_size),
            'options': {
                'actors': [{'user_id': uid, 'email': email}
                           for uid, email in sorted(emails.items(), key=lambda item: item[1] or '')],
                'pages': [{'id': p.id, 'label': p.menu_label or p.slug} for p in pages.values()],
            },
        }

    # =========================================================================
    # POSTS
    # =========================================================================

    def list_posts(self) -> List[Dict]:
        rows = self.session.query(FbPost).order_by(FbPost.created_at.desc()).all()
        return [p.to_dict() for p in rows]

    def create_post(self, data: Dict) -> Dict:
        values = {field: data.get(field) for field in POST_FIELDS if data.get(field) is not None}
        post = FbPost(**values)
        self.session.add(post)
        self.session.flush()
        self.audit.log_marketing('create_post', {'title': post.title})
        return post.to_dict()

    def update_post(self, data: Dict) -> Dict:
        post_id = as_str(data.get('id'))
        if not post_id:
            raise ValidationError("Missing post id", field='id')
        post = self.session.query(FbPost).filter(FbPost.id == post_id).first()
        if not post:
            raise NotFoundError("Post not found")

        updates = {field: data[field] for field in POST_FIELDS if field in data}
        for key, value in updates.items():
            setattr(post, key, value)
        post.updated_at = datetime.utcnow()
        self.session.flush()
        self.audit.log_marketing('update_post', {'id': post_id, 'updates': updates})
        return post.to_dict()

    def delete_post(self, post_id: str) -> bool:
        if not post_id:
            raise ValidationError("Missing post id", field='id')
        post = self.session.query(FbPost).filter(FbPost.id == post_id).first()
        if not post:
            raise NotFoundError("Post not found")
        self.session.delete(post)
        self.session.flush()
        self.audit.log_marketing('delete_post', {'id': post_id})
        return True

    # =========================================================================
    # MARKETING LOGS
    # =========================================================================

    def list_marketing_logs(self, limit: int = 100) -> List[Dict]:
        rows = self.session.query(MarketingLog).order_by(
            MarketingLog.created_at.desc()
        ).limit(limit).all()
        return [r.to_dict() for r in rows]

    def latest_scraper_progress(self, post_id: str) -> Optional[Dict]:
        """Newest scraper_progress entry for a post, or None."""
        if not post_id:
            raise ValidationError("Missing post_id", field='post_id')
        rows = self.session.query(MarketingLog).filter(
            MarketingLog.action == 'scraper_progress'
        ).order_by(MarketingLog.created_at.desc()).all()
        for row in rows:
            if str((row.details or {}).get('post_id')) == str(post_id):
                return row.to_dict()
        return None

    def delete_marketing_log(self, log_id: str) -> bool:
        if self.actor.get('role') != 'superadmin':
            raise PermissionDenied("Only superadmin can delete logs")
        row = self.session.query(MarketingLog).filter(MarketingLog.id == log_id).first()
        if not row:
            raise NotFoundError("Log not found")
        self.session.delete(row)
        self.session.flush()
        return True
