"""
Revenue Service - Dashboard totals, revenue reports and fleet utilisation.

Booking revenue is the total_price of agreements bucketed by their start
date in Kuala Lumpur time. Price changes logged today (edits, extensions)
are added to the buckets that started after the agreement did, since the
others already hold the new price. Cancelled and Deleted agreements never
count.

The pure functions below work on plain row dicts so they can be tested
without a database; RevenueService runs the queries.
"""

import math
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Any, Optional, Tuple, Iterable

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from services.rental_days import rental_days_in_window, rental_days_float_in_window
from services.time_windows import (
    DAY, EPOCH, utcnow, to_kl, from_kl, to_iso_z, kl_date_key,
    start_of_day_kl, start_of_week_kl, start_of_month_kl, start_of_quarter_kl,
    start_of_year_kl, start_of_period_kl
)
from app.utils.helpers import to_number
from app.utils.vehicles import normalize_plate, normalize_model, format_plate, build_car_label
from validators import is_date_key

logger = logging.getLogger(__name__)

EXCLUDED_STATUSES = ('Cancelled', 'Deleted')
REVENUE_LOG_ACTIONS = ('updated', 'updated_regenerated', 'extended', 'deposit_refunded_toggled')
FLEET_STATUSES = ('available', 'rented')

TOP_LIMIT = 20
TREND_DAYS = 30
MONTHLY_TREND_AFTER_DAYS = 60

ROLLING_PERIOD_DAYS = {
    'daily': 1,
    'weekly': 7,
    'monthly': 30,
    'quarterly': 90,
    'yearly': 365,
}


def _price(row: Dict) -> float:
    return to_number(row.get('total_price')) or 0.0


def is_countable(row: Dict) -> bool:
    """Agreements that count toward revenue."""
    return row.get('status') not in EXCLUDED_STATUSES


def _top(totals: Dict[str, float], limit: int = TOP_LIMIT) -> List[List[Any]]:
    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:limit]
    return [[key, round(total, 2)] for key, total in ranked]


# =============================================================================
# DASHBOARD
# =============================================================================

def bucket_boundaries(now: datetime) -> Dict[str, datetime]:
    """KL calendar starts of the dashboard buckets."""
    return {
        'daily': start_of_day_kl(now),
        'weekly': start_of_week_kl(now),
        'monthly': start_of_month_kl(now),
        'quarterly': start_of_quarter_kl(now),
        'yearly': start_of_year_kl(now),
    }


def summarize_agreements(rows: List[Dict], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build dashboard totals, top lists and the 30 day trend.

    Args:
        rows: dicts with date_start, date_end, updated_at, total_price,
              status, car_id, plate_number, make, model, car_found,
              catalog_found
        now: naive UTC reference time
    """
    now = now or utcnow()

    debug = {
        'total_agreements': len(rows),
        'missing_date_start': sum(1 for r in rows if r.get('date_start') is None),
        'missing_date_end': sum(1 for r in rows if r.get('date_end') is None),
        'missing_car_id': sum(1 for r in rows if not r.get('car_id')),
        'join_missing_car': sum(1 for r in rows if r.get('car_id') and not r.get('car_found')),
        'join_missing_catalog': sum(1 for r in rows if r.get('car_found') and not r.get('catalog_found')),
    }

    live = [r for r in rows if is_countable(r)]
    live.sort(key=lambda r: r.get('date_start') or r.get('updated_at') or EPOCH, reverse=True)
    valid = [r for r in live if r.get('date_start') is not None]

    boundaries = bucket_boundaries(now)
    totals = {key: 0.0 for key in boundaries}
    totals['all_time'] = 0.0

    by_plate = defaultdict(float)
    by_make = defaultdict(float)
    by_model = defaultdict(float)
    trend_start = boundaries['daily'] - timedelta(days=TREND_DAYS - 1)
    trend = {kl_date_key(trend_start + timedelta(days=i)): 0.0 for i in range(TREND_DAYS)}

    for row in valid:
        price = _price(row)
        start = row['date_start']
        for key, boundary in boundaries.items():
            if start >= boundary:
                totals[key] += price
        totals['all_time'] += price

        make = (row.get('make') or '').strip()
        model = (row.get('model') or '').strip()
        by_plate[(row.get('plate_number') or '').strip() or 'UNKNOWN'] += price
        by_make[make or 'UNKNOWN'] += price
        by_model[build_car_label(make, model) if make and model else 'UNKNOWN'] += price

        day_key = kl_date_key(start)
        if day_key in trend and start <= now:
            trend[day_key] += price

    active_now = sum(
        1 for r in live
        if r.get('date_start') and r.get('date_end') and r['date_start'] <= now <= r['date_end']
    )

    return {
        'debug': debug,
        'totals': {key: round(value, 2) for key, value in totals.items()},
        'active_now': active_now,
        'top': {
            'by_plate': _top(by_plate),
            'by_make': _top(by_make),
            'by_model': _top(by_model),
        },
        'trend': [{'date': key, 'total': round(total, 2)} for key, total in trend.items()],
    }


def log_price_delta(logs: Iterable[Dict]) -> Dict[str, Any]:
    """
    Sum total_price changes recorded in agreement logs.

    Logs carry agreement_status and agreement_date_start from their
    agreement; changes to agreements that are now Cancelled or Deleted
    are listed but not counted.

    Returns:
        {'total_diff': float, 'analysis': [per-log breakdown]}
    """
    analysis = []
    total_diff = 0.0
    for log in logs:
        if log.get('action') not in REVENUE_LOG_ACTIONS:
            continue
        before_price = to_number((log.get('before') or {}).get('total_price')) or 0.0
        after_price = to_number((log.get('after') or {}).get('total_price')) or 0.0
        diff = round(after_price - before_price, 2)
        will_count = diff != 0 and log.get('agreement_status') not in EXCLUDED_STATUSES
        if will_count:
            total_diff += diff
        analysis.append({
            'id': log.get('agreement_id'),
            'log_id': log.get('id'),
            'created_at': log.get('created_at'),
            'action': log.get('action'),
            'date_start': log.get('agreement_date_start'),
            'before_price': before_price,
            'after_price': after_price,
            'diff': diff,
            'will_count': will_count,
        })
    return {'total_diff': round(total_diff, 2), 'analysis': analysis}


def merge_log_revenue(totals: Dict[str, float], analysis: Iterable[Dict],
                      boundaries: Dict[str, datetime]) -> Dict[str, Any]:
    """
    Add logged price changes to the buckets that don't already hold them.

    A bucket's booking sum uses the agreement's current price whenever the
    agreement starts inside it, so a diff only goes to buckets whose
    boundary is after the agreement's date_start. all_time has no boundary
    and only picks up changes to undated agreements.
    """
    adjustments = {key: 0.0 for key in totals}
    for item in analysis:
        if not item.get('will_count'):
            continue
        start = item.get('date_start')
        for key in totals:
            boundary = boundaries.get(key)
            if start is None or (boundary is not None and start < boundary):
                adjustments[key] += item['diff']

    merged = {key: round(value + adjustments[key], 2) for key, value in totals.items()}
    merged['log_adjustment'] = {key: round(value, 2) for key, value in adjustments.items()}
    return merged


# =============================================================================
# REVENUE REPORT
# =============================================================================

def revenue_window(period: Optional[str], date_from: Optional[str] = None,
                   date_to: Optional[str] = None,
                   now: Optional[datetime] = None) -> Tuple[datetime, datetime, str]:
    """
    Resolve a report period to (start, end, period).

    'custom' needs YYYY-MM-DD from/to and covers whole KL days; 'all' runs
    from the epoch; the others are rolling windows ending now.
    """
    now = now or utcnow()
    if period == 'custom' and is_date_key(date_from) and is_date_key(date_to):
        start = from_kl(datetime.strptime(date_from, '%Y-%m-%d'))
        end = from_kl(datetime.strptime(date_to, '%Y-%m-%d')) + DAY - timedelta(milliseconds=1)
        return start, end, 'custom'
    if period == 'all':
        return EPOCH, now, 'all'
    if period not in ROLLING_PERIOD_DAYS:
        period = 'daily'
    return now - timedelta(days=ROLLING_PERIOD_DAYS[period]), now, period


def trend_granularity(period: str, start: datetime, end: datetime) -> str:
    if period == 'daily':
        return 'hour'
    if period in ('yearly', 'all') or (end - start) > timedelta(days=MONTHLY_TREND_AFTER_DAYS):
        return 'month'
    return 'day'


def trend_key(dt: datetime, granularity: str) -> str:
    kl = to_kl(dt)
    if granularity == 'hour':
        return kl.strftime('%Y-%m-%dT%H')
    if granularity == 'month':
        return kl.strftime('%Y-%m')
    return kl.strftime('%Y-%m-%d')


def _row_plate(row: Dict) -> str:
    return row.get('plate_number') or row.get('car_plate') or ''


def _matches_filters(row: Dict, plate: Optional[str], model: Optional[str]) -> bool:
    if plate and normalize_plate(_row_plate(row)) != normalize_plate(plate):
        return False
    if model and normalize_model(row.get('car_type')) != model:
        return False
    return True


def _car_model(car: Dict) -> str:
    return normalize_model(build_car_label(car.get('make'), car.get('model')))


def build_revenue_report(rows: List[Dict], overlap_rows: List[Dict], cars: List[Dict],
                         period: str, start: datetime, end: datetime,
                         plate: Optional[str] = None, model: Optional[str] = None) -> Dict[str, Any]:
    """
    Revenue page numbers for one window.

    Args:
        rows: countable agreements whose date_start falls in the window
        overlap_rows: countable agreements overlapping the window at all
        cars: fleet cars (dicts with id, plate_number, make, model, status)
        period: resolved period name
        start, end: window bounds (naive UTC)
        plate, model: optional filters
    """
    rows = [r for r in rows if is_countable(r) and _matches_filters(r, plate, model)]
    overlap_rows = [r for r in overlap_rows if is_countable(r) and _matches_filters(r, plate, model)]

    fleet = [c for c in cars if c.get('status') in FLEET_STATUSES]
    filter_options = {
        'models': sorted({_car_model(c) for c in fleet}),
        'plates': sorted({format_plate(c.get('plate_number')) for c in fleet if c.get('plate_number')}),
    }
    if plate:
        fleet = [c for c in fleet if normalize_plate(c.get('plate_number')) == normalize_plate(plate)]
    if model:
        fleet = [c for c in fleet if _car_model(c) == model]

    total = sum(_price(r) for r in rows)
    count = len(rows)

    granularity = trend_granularity(period, start, end)
    trend = defaultdict(float)
    for row in rows:
        if row.get('date_start') is not None:
            trend[trend_key(row['date_start'], granularity)] += _price(row)

    span_days = max(1, math.ceil((end - start).total_seconds() / DAY.total_seconds()))
    rented_days = sum(
        rental_days_float_in_window(r.get('date_start'), r.get('date_end'), start, end)
        for r in overlap_rows
    )
    utilization = rented_days / (max(1, len(fleet)) * span_days) * 100

    # Per-car health; agreements without car_id are matched by plate
    by_id = {c['id']: c for c in fleet}
    by_plate = {normalize_plate(c.get('plate_number')): c for c in fleet if c.get('plate_number')}

    def resolve(row):
        car = by_id.get(row.get('car_id'))
        if car is None:
            car = by_plate.get(normalize_plate(_row_plate(row)))
        return car

    health = {
        c['id']: {
            'car_id': c['id'],
            'plate_number': format_plate(c.get('plate_number')),
            'model': _car_model(c),
            'days': 0,
            'trips': 0,
            'revenue': 0.0,
        }
        for c in fleet
    }
    for row in overlap_rows:
        car = resolve(row)
        if car is None:
            continue
        entry = health[car['id']]
        entry['days'] += rental_days_in_window(row.get('date_start'), row.get('date_end'), start, end)
        entry['trips'] += 1
    for row in rows:
        car = resolve(row)
        if car is not None:
            health[car['id']]['revenue'] += _price(row)

    fleet_health = []
    for entry in health.values():
        entry['revenue'] = round(entry['revenue'], 2)
        entry['utilization'] = round(min(entry['days'], span_days) / span_days * 100, 1)
        fleet_health.append(entry)
    fleet_health.sort(key=lambda e: (e['days'], e['revenue']), reverse=True)

    return {
        'period': period,
        'start': to_iso_z(start),
        'end': to_iso_z(end),
        'span_days': span_days,
        'total_revenue': round(total, 2),
        'count': count,
        'avg_ticket': round(total / count, 2) if count else 0.0,
        'trend_granularity': granularity,
        'trend': [{'key': key, 'total': round(value, 2)} for key, value in sorted(trend.items())],
        'fleet_size': len(fleet),
        'fleet_utilization': round(utilization, 1),
        'fleet_health': fleet_health,
        'filters': filter_options,
    }


def period_summary(rows: List[Dict]) -> Dict[str, Any]:
    """Revenue and deposit totals with a per-car-type breakdown."""
    rows = [r for r in rows if is_countable(r)]
    breakdown = defaultdict(lambda: {'count': 0, 'revenue': 0.0})
    total_deposit = 0.0
    for row in rows:
        key = (row.get('car_type') or '').strip() or 'Unknown'
        breakdown[key]['count'] += 1
        breakdown[key]['revenue'] += _price(row)
        total_deposit += to_number(row.get('deposit_price')) or 0.0

    return {
        'total_revenue': round(sum(_price(r) for r in rows), 2),
        'total_deposit': round(total_deposit, 2),
        'count': len(rows),
        'breakdown': [
            {'car_type': key, 'count': value['count'], 'revenue': round(value['revenue'], 2)}
            for key, value in sorted(breakdown.items())
        ],
    }


# =============================================================================
# SERVICE
# =============================================================================

class RevenueService:
    """Runs the revenue queries against the database."""

    def __init__(self, session: Session, now: Optional[datetime] = None):
        self.session = session
        self.now = now or utcnow()

    def _agreement_rows(self, *criteria) -> List[Dict]:
        from database.models import Agreement, Car

        query = self.session.query(Agreement).options(
            joinedload(Agreement.car).joinedload(Car.catalog)
        )
        if criteria:
            query = query.filter(*criteria)

        rows = []
        for a in query.all():
            car = a.car
            catalog = car.catalog if car else None
            rows.append({
                'id': a.id,
                'date_start': a.date_start,
                'date_end': a.date_end,
                'updated_at': a.updated_at,
                'total_price': float(a.total_price) if a.total_price is not None else 0.0,
                'deposit_price': float(a.deposit_price) if a.deposit_price is not None else 0.0,
                'status': a.status,
                'car_id': a.car_id,
                'car_type': a.car_type,
                'customer_name': a.customer_name,
                'mobile': a.mobile,
                'plate_number': (car.plate_number if car else None) or a.plate_number,
                'make': catalog.make if catalog else None,
                'model': catalog.model if catalog else None,
                'car_found': car is not None,
                'catalog_found': catalog is not None,
            })
        return rows

    def _countable_filter(self):
        from database.models import Agreement

        return or_(Agreement.status.is_(None), Agreement.status.notin_(EXCLUDED_STATUSES))

    def _fleet(self) -> List[Dict]:
        from database.models import Car

        cars = self.session.query(Car).options(joinedload(Car.catalog)).all()
        return [
            {
                'id': c.id,
                'plate_number': c.plate_number,
                'make': c.make,
                'model': c.model,
                'status': c.status,
            }
            for c in cars
        ]

    def _logs_since(self, since: datetime) -> List[Dict]:
        """Agreement logs since a time, with their agreement's status and start."""
        from database.models import Agreement, AgreementLog

        results = self.session.query(AgreementLog, Agreement.status, Agreement.date_start).join(
            Agreement, Agreement.id == AgreementLog.agreement_id
        ).filter(
            AgreementLog.created_at >= since
        ).order_by(AgreementLog.created_at.asc()).all()

        logs = []
        for log, status, date_start in results:
            data = log.to_dict()
            data['agreement_status'] = status
            data['agreement_date_start'] = date_start
            logs.append(data)
        return logs

    def get_earnings_debug(self) -> Dict[str, Any]:
        day_start = start_of_day_kl(self.now)
        logs = self._logs_since(day_start)
        delta = log_price_delta(logs)
        analysis = [
            {**item, 'date_start': to_iso_z(item['date_start'])}
            for item in delta['analysis']
        ]
        return {
            'now': to_iso_z(self.now),
            'day_start': to_iso_z(day_start),
            'total_logs_found': len(logs),
            'total_diff': delta['total_diff'],
            'analysis': analysis,
        }

    def get_dashboard(self) -> Dict[str, Any]:
        summary = summarize_agreements(self._agreement_rows(), self.now)
        boundaries = bucket_boundaries(self.now)
        delta = log_price_delta(self._logs_since(boundaries['daily']))
        totals = merge_log_revenue(summary['totals'], delta['analysis'], boundaries)
        log_adjustment = totals.pop('log_adjustment')

        return {
            'debug': summary['debug'],
            'totals': totals,
            'booking_totals': summary['totals'],
            'log_adjustment': log_adjustment,
            'active_now': summary['active_now'],
            'top': summary['top'],
            'trend': summary['trend'],
        }

    def get_revenue_report(self, period: str = None, date_from: str = None, date_to: str = None,
                           plate: str = None, model: str = None) -> Dict[str, Any]:
        from database.models import Agreement

        start, end, period = revenue_window(period, date_from, date_to, self.now)

        criteria = [self._countable_filter()]
        if period != 'all':
            criteria += [Agreement.date_start >= start, Agreement.date_start < end]
        rows = self._agreement_rows(*criteria)

        overlap_rows = self._agreement_rows(
            self._countable_filter(),
            Agreement.date_start <= end,
            Agreement.date_end >= start
        )

        return build_revenue_report(rows, overlap_rows, self._fleet(), period, start, end,
                                    plate=plate or None, model=model or None)

    def get_period_summary(self, period: str = 'monthly', q: str = None) -> Dict[str, Any]:
        from database.models import Agreement

        if period not in ('daily', 'weekly', 'monthly', 'quarterly'):
            period = 'monthly'
        start = start_of_period_kl(period, self.now)

        criteria = [
            self._countable_filter(),
            Agreement.date_start >= start,
            Agreement.date_start <= self.now,
        ]
        if q:
            like = f"%{q.strip()}%"
            criteria.append(or_(Agreement.car_type.ilike(like), Agreement.plate_number.ilike(like)))

        summary = period_summary(self._agreement_rows(*criteria))
        summary.update({'period': period, 'start': to_iso_z(start), 'end': to_iso_z(self.now)})
        return summary

    def get_fleet_status(self) -> Dict[str, Any]:
        """Who is out, who is free, what returns or starts soon."""
        from services.reminder_service import find_urgent_documents
        from database.models import Car

        now = self.now
        live = self._agreement_rows(self._countable_filter())

        def brief(row):
            return {
                'id': row['id'],
                'plate_number': row['plate_number'],
                'car_type': row['car_type'],
                'customer_name': row['customer_name'],
                'mobile': row['mobile'],
                'date_start': to_iso_z(row['date_start']),
                'date_end': to_iso_z(row['date_end']),
            }

        active = [r for r in live if r['date_start'] and r['date_end'] and r['date_start'] <= now <= r['date_end']]
        rented_ids = {r['car_id'] for r in active if r['car_id']}
        tomorrow_end = start_of_day_kl(now) + 2 * DAY

        fleet = [c for c in self._fleet() if c['status'] != 'inactive']
        available_now = sorted(
            (c for c in fleet if c['status'] == 'available' and c['id'] not in rented_ids),
            key=lambda c: c['plate_number'] or ''
        )
        returning_ids = {r['car_id'] for r in active if r['date_end'] <= tomorrow_end}
        available_tomorrow = sorted(
            (c for c in fleet if c['id'] in returning_ids),
            key=lambda c: c['plate_number'] or ''
        )

        expiring = sorted(
            (r for r in active if r['date_end'] <= now + timedelta(hours=24)),
            key=lambda r: r['date_end']
        )
        upcoming = sorted(
            (r for r in live if r['date_start'] and now < r['date_start'] <= now + timedelta(hours=48)),
            key=lambda r: r['date_start']
        )

        cars = self.session.query(Car).options(joinedload(Car.catalog)).filter(Car.status != 'inactive').all()

        return {
            'counts': {
                'fleet': len(fleet),
                'rented': len(rented_ids),
                'available': len(available_now),
            },
            'rented_now': [brief(r) for r in sorted(active, key=lambda r: r['date_end'])],
            'available_now': [
                {**c, 'plate_display': format_plate(c['plate_number'])} for c in available_now
            ],
            'available_tomorrow': available_tomorrow,
            'expiring_soon': [brief(r) for r in expiring],
            'upcoming': [brief(r) for r in upcoming],
            'urgent': find_urgent_documents(cars, now=now),
        }
