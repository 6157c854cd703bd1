"""
Tests for dashboard revenue math and the dashboard endpoints
"""
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from services.revenue_service import (
    bucket_boundaries,
    summarize_agreements,
    log_price_delta,
    merge_log_revenue,
    revenue_window,
    trend_granularity,
    trend_key,
    build_revenue_report,
    period_summary
)
from services.time_windows import to_iso_z

# 10:00 KL on Wednesday 14 January 2026
NOW = datetime(2026, 1, 14, 2, 0)


def _row(start, price, status='New', plate='WXY1234', make='Perodua', model='Myvi', days=2, **extra):
    row = {
        'id': extra.pop('id', 1),
        'date_start': start,
        'date_end': start + timedelta(days=days) if start else None,
        'updated_at': start,
        'total_price': price,
        'status': status,
        'car_id': extra.pop('car_id', 1),
        'plate_number': plate,
        'make': make,
        'model': model,
        'car_found': True,
        'catalog_found': True,
        'car_type': f"{make} {model}",
    }
    row.update(extra)
    return row


@pytest.mark.unit
class TestSummarizeAgreements:
    """Tests for dashboard bucket totals"""

    def _rows(self):
        return [
            _row(datetime(2026, 1, 13, 20, 0), 100),                        # today in KL
            _row(datetime(2026, 1, 5), 200, plate='ABC1', model='Bezza'),  # this month
            _row(datetime(2026, 1, 13, 20, 0), 999, status='Cancelled'),
            _row(datetime(2025, 6, 1), 50),                                 # last year
        ]

    def test_bucket_totals(self):
        """Test that each bucket sums agreements starting inside it"""
        totals = summarize_agreements(self._rows(), NOW)['totals']
        assert totals['daily'] == 100
        assert totals['weekly'] == 100
        assert totals['monthly'] == 300
        assert totals['quarterly'] == 300
        assert totals['yearly'] == 300
        assert totals['all_time'] == 350

    def test_active_now(self):
        """Test that only live rentals spanning now are active"""
        assert summarize_agreements(self._rows(), NOW)['active_now'] == 1

    def test_top_lists_rank_by_revenue(self):
        """Test the top plate and model lists"""
        top = summarize_agreements(self._rows(), NOW)['top']
        assert top['by_plate'][0] == ['ABC1', 200]
        assert ['Perodua Myvi', 150] in top['by_model']
        assert top['by_make'] == [['Perodua', 350]]

    def test_trend_covers_thirty_kl_days(self):
        """Test that the trend ends on today's KL date"""
        trend = summarize_agreements(self._rows(), NOW)['trend']
        assert len(trend) == 30
        assert trend[-1] == {'date': '2026-01-14', 'total': 100}

    def test_debug_counts(self):
        """Test join diagnostics"""
        rows = [_row(None, 10, car_id=None, car_found=False)]
        debug = summarize_agreements(rows, NOW)['debug']
        assert debug['missing_date_start'] == 1
        assert debug['missing_car_id'] == 1

    def test_trend_skips_bookings_later_today(self):
        """Test that the trend only sums bookings that have started"""
        rows = [_row(NOW - timedelta(hours=1), 100), _row(NOW + timedelta(hours=3), 70)]
        summary = summarize_agreements(rows, NOW)
        assert summary['trend'][-1]['total'] == 100
        assert summary['totals']['daily'] == 170

    def test_model_needs_make_and_model(self):
        """Test that a half-known car is grouped as UNKNOWN"""
        top = summarize_agreements([_row(NOW, 80, model=None)], NOW)['top']
        assert top['by_model'] == [['UNKNOWN', 80]]
        assert top['by_make'] == [['Perodua', 80]]


@pytest.mark.unit
class TestLogRevenue:
    """Tests for price changes read from agreement logs"""

    def test_log_price_delta_counts_revenue_actions(self):
        """Test that only price-changing actions are summed"""
        logs = [
            {'id': 'l1', 'agreement_id': 'a1', 'action': 'extended',
             'before': {'total_price': 300}, 'after': {'total_price': 450}},
            {'id': 'l2', 'agreement_id': 'a1', 'action': 'updated_regenerated',
             'before': {'total_price': '450'}, 'after': {'total_price': '400'}},
            {'id': 'l3', 'agreement_id': 'a2', 'action': 'created', 'before': None, 'after': {'total_price': 900}},
        ]
        result = log_price_delta(logs)
        assert result['total_diff'] == 100
        assert [a['diff'] for a in result['analysis']] == [150, -50]
        assert [a['id'] for a in result['analysis']] == ['a1', 'a1']
        assert result['analysis'][0]['log_id'] == 'l1'

    def test_cancelled_agreement_changes_are_not_counted(self):
        """Test that edits to a now cancelled agreement are listed but not summed"""
        logs = [{
            'id': 'l1', 'agreement_id': 'a1', 'action': 'updated_regenerated', 'agreement_status': 'Cancelled',
            'before': {'total_price': 100}, 'after': {'total_price': 150},
        }]
        result = log_price_delta(logs)
        assert result['total_diff'] == 0
        assert result['analysis'][0]['will_count'] is False

    def test_merge_skips_buckets_already_holding_the_new_price(self):
        """Test that a diff only lands in buckets that start after the agreement"""
        boundaries = bucket_boundaries(NOW)
        analysis = [
            # started last month: daily, weekly and monthly miss it
            {'diff': 50.0, 'will_count': True, 'date_start': datetime(2025, 12, 20)},
            # started today: every bucket already has the edited price
            {'diff': 30.0, 'will_count': True, 'date_start': datetime(2026, 1, 13, 20, 0)},
            {'diff': 999.0, 'will_count': False, 'date_start': datetime(2025, 12, 20)},
        ]
        totals = {'daily': 100.0, 'weekly': 100.0, 'monthly': 300.0, 'quarterly': 300.0,
                  'yearly': 300.0, 'all_time': 1000.0}
        merged = merge_log_revenue(totals, analysis, boundaries)
        assert merged['daily'] == 150
        assert merged['monthly'] == 350
        assert merged['yearly'] == 350
        assert merged['all_time'] == 1000
        assert merged['log_adjustment']['daily'] == 50
        assert merged['log_adjustment']['all_time'] == 0


def _agreement_payload(car, start, price):
    return {
        'customer_name': 'Ali Bin Abu',
        'id_number': '900101-14-5555',
        'mobile': '0123456789',
        'car_id': car.id,
        'plate_number': car.plate_number,
        'car_type': 'Perodua Myvi',
        'date_start_iso': to_iso_z(start),
        'date_end_iso': to_iso_z(start + timedelta(days=2)),
        'total_price': str(price),
    }


@pytest.mark.unit
class TestDashboardWithEdits:
    """Tests for dashboard totals after agreements are edited"""

    STAFF = {'id': None, 'email': 'staff@jrv.test', 'role': 'admin'}

    def _edit(self, db_session, car, start, prices, status=None):
        from services.agreements_repository import AgreementsRepository

        repo = AgreementsRepository(db_session, self.STAFF)
        row = repo.create_agreement(_agreement_payload(car, start, prices[0]))
        for price in prices[1:]:
            repo.update_agreement({**_agreement_payload(car, start, price), 'id': row['id']})
        if status:
            repo.update_agreement({**_agreement_payload(car, start, prices[-1]), 'id': row['id'], 'status': status})
        return row

    def test_edit_today_is_not_counted_twice(self, db_session, make_car):
        """Test that an agreement booked and edited today counts once at its new price"""
        from services.revenue_service import RevenueService

        self._edit(db_session, make_car(), datetime.utcnow(), [100, 150])
        data = RevenueService(db_session).get_dashboard()
        assert data['booking_totals']['daily'] == 150
        assert data['totals']['daily'] == 150
        assert data['totals']['all_time'] == 150

    def test_edit_to_older_booking_counts_today(self, db_session, make_car):
        """Test that today's extension of an older booking shows in the daily total"""
        from services.revenue_service import RevenueService

        self._edit(db_session, make_car(), datetime.utcnow() - timedelta(days=10), [100, 150])
        data = RevenueService(db_session).get_dashboard()
        assert data['totals']['daily'] == 50
        assert data['log_adjustment']['daily'] == 50
        assert data['totals']['all_time'] == 150

    def test_cancelled_after_edit_counts_nothing(self, db_session, make_car):
        """Test that a cancelled agreement adds nothing, edits included"""
        from services.revenue_service import RevenueService

        self._edit(db_session, make_car(), datetime.utcnow() - timedelta(days=10), [100, 150], status='Cancelled')
        data = RevenueService(db_session).get_dashboard()
        assert data['totals']['daily'] == 0
        assert data['totals']['all_time'] == 0

    def test_earnings_debug_lists_agreement_ids(self, db_session, make_car):
        """Test that the analysis is keyed by agreement"""
        from services.revenue_service import RevenueService

        row = self._edit(db_session, make_car(), datetime.utcnow(), [100, 120])
        debug = RevenueService(db_session).get_earnings_debug()
        assert debug['total_diff'] == 20
        assert [item['id'] for item in debug['analysis']] == [row['id']]


@pytest.mark.unit
class TestRevenueWindow:
    """Tests for report period resolution"""

    def test_custom_range_uses_kl_days(self):
        """Test that custom dates cover whole KL days"""
        start, end, period = revenue_window('custom', '2026-01-01', '2026-01-31', NOW)
        assert period == 'custom'
        assert start == datetime(2025, 12, 31, 16, 0)
        assert end == datetime(2026, 1, 31, 16, 0) - timedelta(milliseconds=1)

    def test_all_starts_at_epoch(self):
        """Test the all-time window"""
        start, end, period = revenue_window('all', now=NOW)
        assert start == datetime(1970, 1, 1)
        assert end == NOW

    def test_unknown_period_is_daily(self):
        """Test that unknown and incomplete custom periods fall back to daily"""
        assert revenue_window('bogus', now=NOW) == (NOW - timedelta(days=1), NOW, 'daily')
        assert revenue_window('custom', '2026-01-01', None, NOW)[2] == 'daily'

    def test_trend_granularity(self):
        """Test hour, day and month trend buckets"""
        assert trend_granularity('daily', NOW - timedelta(days=1), NOW) == 'hour'
        assert trend_granularity('weekly', NOW - timedelta(days=7), NOW) == 'day'
        assert trend_granularity('custom', NOW - timedelta(days=90), NOW) == 'month'
        assert trend_granularity('all', NOW - timedelta(days=1), NOW) == 'month'

    def test_trend_key_in_kl(self):
        """Test that trend keys are KL local"""
        assert trend_key(datetime(2026, 1, 13, 17, 30), 'hour') == '2026-01-14T01'
        assert trend_key(datetime(2026, 1, 31, 20, 0), 'month') == '2026-02'


@pytest.mark.unit
class TestRevenueReport:
    """Tests for the revenue report"""

    def _report(self, **filters):
        start, end = NOW - timedelta(days=7), NOW
        rows = [_row(NOW - timedelta(days=4), 300)]
        cars = [
            {'id': 1, 'plate_number': 'WXY1234', 'make': 'Perodua', 'model': 'Myvi', 'status': 'available'},
            {'id': 2, 'plate_number': 'QM3601N', 'make': 'Honda', 'model': 'City', 'status': 'rented'},
            {'id': 3, 'plate_number': 'OLD1', 'make': 'Proton', 'model': 'Saga', 'status': 'inactive'},
        ]
        return build_revenue_report(rows, rows, cars, 'weekly', start, end, **filters)

    def test_totals_and_fleet(self):
        """Test totals, fleet size and utilisation"""
        report = self._report()
        assert report['total_revenue'] == 300
        assert report['count'] == 1
        assert report['avg_ticket'] == 300
        assert report['fleet_size'] == 2
        assert report['span_days'] == 7
        # 2 rented days over 2 cars * 7 days
        assert report['fleet_utilization'] == pytest.approx(14.3)

    def test_filter_options_exclude_inactive(self):
        """Test that inactive cars are not offered as filters"""
        filters = self._report()['filters']
        assert filters['plates'] == ['QM 3601 N', 'WXY 1234']
        assert filters['models'] == ['Honda City', 'Perodua Myvi']

    def test_plate_filter(self):
        """Test that filtering by plate narrows rows and fleet"""
        report = self._report(plate='QM 3601 N')
        assert report['total_revenue'] == 0
        assert report['fleet_size'] == 1

    def test_fleet_health_per_car(self):
        """Test per-car trips and revenue"""
        health = {e['car_id']: e for e in self._report()['fleet_health']}
        assert health[1]['trips'] == 1
        assert health[1]['revenue'] == 300
        assert health[2]['trips'] == 0

    def test_period_summary_breakdown(self):
        """Test revenue and deposit breakdown by car type"""
        rows = [
            _row(NOW, 100, deposit_price=50),
            _row(NOW, 200, deposit_price=50),
            _row(NOW, 500, status='Deleted'),
        ]
        summary = period_summary(rows)
        assert summary['total_revenue'] == 300
        assert summary['total_deposit'] == 100
        assert summary['breakdown'] == [{'car_type': 'Perodua Myvi', 'count': 2, 'revenue': 300}]


@pytest.mark.unit
class TestDashboardEndpoints:
    """Tests for the dashboard blueprint"""

    def test_dashboard_requires_login(self, client):
        """Test that the dashboard is admin only"""
        assert client.get('/api/dashboard').status_code == 401

    def test_dashboard_totals(self, client, admin, login_as, make_car, make_agreement):
        """Test that today's agreement shows up in the daily total"""
        car = make_car()
        make_agreement(car=car, start=datetime.utcnow() - timedelta(minutes=5), price=250)
        login_as(admin)

        response = client.get('/api/dashboard')
        assert response.status_code == 200
        data = response.get_json()
        assert data['totals']['all_time'] == 250
        assert data['active_now'] == 1

    def test_revenue_report_endpoint(self, client, admin, login_as, make_car, make_agreement):
        """Test the revenue report with a custom range"""
        make_agreement(car=make_car(), start=datetime(2026, 1, 10), price=400)
        login_as(admin)

        response = client.get('/api/dashboard/revenue?period=custom&from=2026-01-01&to=2026-01-31')
        data = response.get_json()
        assert data['period'] == 'custom'
        assert data['total_revenue'] == 400

    def test_range_endpoint(self, client, admin, login_as):
        """Test that the range selector resolves a window"""
        login_as(admin)
        data = client.get('/api/dashboard/range?range=7d').get_json()
        assert data['success'] is True
        assert 'initial_from' in data

    def test_fleet_endpoint(self, client, admin, login_as, make_car):
        """Test the fleet status endpoint on an idle fleet"""
        make_car()
        login_as(admin)
        data = client.get('/api/dashboard/fleet').get_json()
        assert data['counts'] == {'fleet': 1, 'rented': 0, 'available': 1}
        assert data['available_now'][0]['plate_display'] == 'WXY 1234'

    def test_summary_endpoint_defaults_to_monthly(self, client, admin, login_as):
        """Test that unknown summary periods fall back to monthly"""
        login_as(admin)
        data = client.get('/api/dashboard/summary?period=bogus').get_json()
        assert data['period'] == 'monthly'
        assert data['count'] == 0


@pytest.mark.unit
class TestFleetStatusAndSummary:
    """Tests for RevenueService fleet status and period summaries"""

    def test_fleet_status(self, db_session, make_car, make_agreement):
        """Test rented, available, returning, upcoming and urgent lists"""
        from services.revenue_service import RevenueService

        out = make_car(plate='WXY1234')
        idle = make_car(plate='ABC1', make='Perodua', model='Bezza', roadtax_expiry=date(2026, 1, 14))
        make_car(plate='OLD1', status='inactive')
        make_agreement(car=out, start=NOW - timedelta(days=2), days=2.5)
        make_agreement(car=idle, start=NOW + timedelta(hours=24), status='Upcoming')

        status = RevenueService(db_session, NOW).get_fleet_status()
        assert status['counts'] == {'fleet': 2, 'rented': 1, 'available': 1}
        assert [c['plate_number'] for c in status['available_now']] == ['ABC1']
        assert [c['plate_number'] for c in status['available_tomorrow']] == ['WXY1234']
        assert [r['plate_number'] for r in status['expiring_soon']] == ['WXY1234']
        assert [r['plate_number'] for r in status['upcoming']] == ['ABC1']
        assert [u['plate_number'] for u in status['urgent']] == ['ABC1']

    def test_period_summary(self, db_session, make_car, make_agreement):
        """Test the month-to-date summary, its exclusions and the search filter"""
        from services.revenue_service import RevenueService

        myvi = make_car()
        city = make_car(plate='QM3601N', make='Honda', model='City')
        make_agreement(car=myvi, start=datetime(2026, 1, 5), price=200, deposit_price=Decimal('50'))
        make_agreement(car=city, start=datetime(2026, 1, 6), price=100, car_type='Honda City')
        make_agreement(car=myvi, start=datetime(2026, 1, 7), price=999, status='Cancelled')
        make_agreement(car=myvi, start=datetime(2026, 1, 20), price=500)
        make_agreement(car=myvi, start=datetime(2025, 12, 20), price=400)

        service = RevenueService(db_session, NOW)
        summary = service.get_period_summary('monthly')
        assert summary['period'] == 'monthly'
        assert summary['total_revenue'] == 300
        assert summary['total_deposit'] == 50
        assert summary['count'] == 2

        filtered = service.get_period_summary('monthly', q='city')
        assert filtered['breakdown'] == [{'car_type': 'Honda City', 'count': 1, 'revenue': 100}]
