"""
Tests for landing pages, social posts and the marketing tracker
"""
import pytest
from datetime import datetime, timedelta

from validators import ValidationError, NotFoundError, PermissionDenied

STAFF = {'id': None, 'email': 'staff@jrv.test', 'role': 'admin'}
SUPER = {'id': None, 'email': 'boss@jrv.test', 'role': 'superadmin'}


def _repo(db_session, actor=STAFF):
    from services.marketing_repository import MarketingRepository
    return MarketingRepository(db_session, actor)


@pytest.mark.unit
class TestLandingPages:
    """Tests for landing page upsert and soft delete"""

    def test_upsert_creates_then_updates(self, db_session):
        """Test that the same slug updates in place"""
        repo = _repo(db_session)
        first = repo.upsert_landing_page({'slug': 'kereta-sewa-seremban', 'title': 'Sewa Kereta'})
        assert first['category'] == 'location'
        assert first['status'] == 'active'

        second = repo.upsert_landing_page({
            'slug': 'kereta-sewa-seremban', 'title': 'Kereta Sewa Murah', 'images': '["a.jpg"]'
        })
        assert second['id'] == first['id']
        assert second['title'] == 'Kereta Sewa Murah'
        assert second['images'] == ['a.jpg']

    def test_slug_required(self, db_session):
        """Test that a slug is required"""
        with pytest.raises(ValidationError, match='Slug required'):
            _repo(db_session).upsert_landing_page({'title': 'x'})

    def test_soft_delete_hides_page(self, db_session):
        """Test that deleted pages drop out of the default list"""
        repo = _repo(db_session)
        repo.upsert_landing_page({'slug': 'kl'})
        assert repo.delete_landing_page(slug='kl') is True

        assert repo.list_landing_pages() == []
        assert repo.list_landing_pages(include_deleted=True)[0]['status'] == 'deleted'

    def test_delete_needs_identifier(self, db_session):
        """Test delete without id or slug"""
        with pytest.raises(ValidationError, match='No identifier provided for deletion'):
            _repo(db_session).delete_landing_page()
        with pytest.raises(NotFoundError):
            _repo(db_session).delete_landing_page(slug='missing')


@pytest.mark.unit
class TestLandingPageAudit:
    """Tests for the landing page audit trail"""

    def test_create_update_delete_are_logged(self, db_session):
        """Test that each landing page change leaves old/new snapshots"""
        from database.models import LandingPageAuditLog

        repo = _repo(db_session)
        page = repo.upsert_landing_page({'slug': 'seremban', 'title': 'Seremban'})
        repo.upsert_landing_page({'slug': 'seremban', 'title': 'Sewa Seremban'})
        repo.delete_landing_page(slug='seremban')

        logs = {row.action: row for row in db_session.query(LandingPageAuditLog).all()}
        assert sorted(logs) == ['CREATE_LANDING_PAGE', 'DELETE_LANDING_PAGE', 'UPDATE_LANDING_PAGE']
        assert logs['CREATE_LANDING_PAGE'].meta['old'] is None
        assert logs['CREATE_LANDING_PAGE'].landing_page_id == page['id']
        assert logs['UPDATE_LANDING_PAGE'].meta['old']['title'] == 'Seremban'
        assert logs['UPDATE_LANDING_PAGE'].meta['new']['title'] == 'Sewa Seremban'
        assert logs['DELETE_LANDING_PAGE'].meta['new']['status'] == 'deleted'

    def test_logs_are_superadmin_only(self, db_session):
        """Test that plain admins cannot read the trail"""
        with pytest.raises(PermissionDenied):
            _repo(db_session).list_landing_page_logs()

    def test_logs_carry_actor_and_page(self, db_session, superadmin):
        """Test email and label enrichment plus the search box"""
        actor = {'id': superadmin.user_id, 'email': superadmin.email, 'role': 'superadmin'}
        repo = _repo(db_session, actor)
        page = repo.upsert_landing_page({'slug': 'nilai', 'menu_label': 'Nilai'})
        repo.upsert_landing_page({'slug': 'nilai', 'menu_label': 'Nilai'})

        result = repo.list_landing_page_logs()
        assert result['total'] == 2
        assert result['total_pages'] == 1
        row = result['rows'][0]
        assert row['actor_email'] == 'boss@jrv.test'
        assert row['landing_page_label'] == 'Nilai'
        assert row['landing_page_slug'] == 'nilai'
        assert result['options']['actors'] == [{'user_id': superadmin.user_id, 'email': 'boss@jrv.test'}]

        assert repo.list_landing_page_logs(q='create')['total'] == 1
        assert repo.list_landing_page_logs(q=page['id'])['total'] == 2
        assert repo.list_landing_page_logs(action='UPDATE_LANDING_PAGE')['total'] == 1

@pytest.mark.unit
class TestPosts:
    """Tests for social posts and scraper progress"""

    def test_post_lifecycle_is_logged(self, db_session):
        """Test create, update and delete each write a marketing log"""
        repo = _repo(db_session)
        post = repo.create_post({'title': 'Raya promo', 'url': 'https://fb.com/p/1'})
        assert post['platform'] == 'facebook'

        updated = repo.update_post({'id': post['id'], 'status': 'archived'})
        assert updated['status'] == 'archived'
        assert repo.delete_post(post['id']) is True

        actions = sorted(log['action'] for log in repo.list_marketing_logs())
        assert actions == ['create_post', 'delete_post', 'update_post']

    def test_update_missing_post(self, db_session):
        """Test update errors"""
        repo = _repo(db_session)
        with pytest.raises(ValidationError, match='Missing post id'):
            repo.update_post({})
        with pytest.raises(NotFoundError):
            repo.update_post({'id': 'missing'})

    def test_latest_scraper_progress(self, db_session):
        """Test that the newest progress entry for the post is returned"""
        from database.models import MarketingLog

        now = datetime.utcnow()
        db_session.add_all([
            MarketingLog(action='scraper_progress', details={'post_id': 'p1', 'step': 1},
                         created_at=now - timedelta(minutes=2)),
            MarketingLog(action='scraper_progress', details={'post_id': 'p1', 'step': 2},
                         created_at=now - timedelta(minutes=1)),
            MarketingLog(action='scraper_progress', details={'post_id': 'p2', 'step': 9}, created_at=now),
        ])
        db_session.flush()

        repo = _repo(db_session)
        assert repo.latest_scraper_progress('p1')['details']['step'] == 2
        assert repo.latest_scraper_progress('p3') is None

    def test_only_superadmin_deletes_logs(self, db_session):
        """Test marketing log deletion rights"""
        repo = _repo(db_session)
        repo.create_post({'title': 'x'})
        log_id = repo.list_marketing_logs()[0]['id']

        with pytest.raises(PermissionDenied, match='Only superadmin can delete logs'):
            repo.delete_marketing_log(log_id)
        assert _repo(db_session, SUPER).delete_marketing_log(log_id) is True


@pytest.mark.unit
class TestMarketingEndpoints:
    """Tests for the marketing blueprint"""

    def test_landing_page_roundtrip(self, client, admin, login_as):
        """Test upsert, fetch by slug and delete by query arg"""
        login_as(admin)
        client.post('/api/landing-pages', json={'slug': 'nilai', 'title': 'Nilai'})

        assert client.get('/api/landing-pages/nilai').get_json()['row']['title'] == 'Nilai'
        assert client.delete('/api/landing-pages?slug=nilai').status_code == 200
        assert client.get('/api/landing-pages').get_json()['rows'] == []

    def test_missing_landing_page(self, client, admin, login_as):
        """Test 404 for an unknown slug"""
        login_as(admin)
        assert client.get('/api/landing-pages/nowhere').status_code == 404

    def test_posts_default_action_is_create(self, client, admin, login_as):
        """Test that a POST without action creates a post"""
        login_as(admin)
        response = client.post('/api/posts', json={'title': 'New car in fleet'})
        assert response.get_json()['row']['title'] == 'New car in fleet'
        assert client.post('/api/posts', json={'action': 'boost'}).status_code == 400

    def test_tracker_reports_role(self, client, admin, login_as):
        """Test that the tracker tells the page which role is viewing"""
        login_as(admin)
        data = client.get('/api/marketing-tracker').get_json()
        assert data['role'] == 'admin'

    def test_tracker_delete_forbidden_for_admin(self, client, admin, login_as):
        """Test 403 on log delete by a plain admin"""
        login_as(admin)
        client.post('/api/posts', json={'title': 'x'})
        log_id = client.get('/api/marketing-tracker').get_json()['rows'][0]['id']
        response = client.post('/api/marketing-tracker', json={'action': 'delete', 'id': log_id})
        assert response.status_code == 403

    def test_landing_page_logs_endpoint(self, client, admin, superadmin, login_as):
        """Test that the audit trail route doesn't fall through to the slug route"""
        login_as(admin)
        client.post('/api/landing-pages', json={'slug': 'kl', 'menu_label': 'KL'})
        assert client.get('/api/landing-pages/logs').status_code == 403

        login_as(superadmin)
        data = client.get('/api/landing-pages/logs?page_size=5').get_json()
        assert data['page_size'] == 10
        assert data['rows'][0]['action'] == 'CREATE_LANDING_PAGE'
        assert data['rows'][0]['actor_email'] == 'staff@jrv.test'
