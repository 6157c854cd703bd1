"""
Site Events - Public website hit tracking and traffic analytics.

Hits arrive from the public site through POST /api/track. The admin
analytics pages read them back as summaries (traffic sources, top models,
geo, campaigns) and as per-visitor timelines.
"""

import re
import json
import logging
from collections import Counter, OrderedDict, defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Any, Optional, Tuple
from urllib.parse import urlsplit, parse_qsl, unquote_plus

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_setting
from services import geo_service
from services.time_windows import utcnow, to_utc_naive, to_iso_z, business_day_for_key
from app.utils.helpers import safe_text, safe_obj, to_num_or_null, parse_int_arg
from validators import ValidationError, is_date_key

logger = logging.getLogger(__name__)

FETCH_LIMIT = 5000
REALTIME_WINDOW = timedelta(minutes=5)

PAID_PARAMS = ('gclid', 'gad_source', 'gbraid', 'wbraid', 'utm_source')
ADS_PARAMS = ('gclid', 'gbraid', 'wbraid', 'gad_campaignid', 'gad_source')

TABLET_RE = re.compile(r'(tablet|ipad|playbook|silk)|(android(?!.*mobi))', re.I)
MOBILE_RE = re.compile(
    r'mobile|android|ip(hone|od)|iemobile|blackberry|kindle|silk-accelerated|(hpw|web)os|opera m(obi|ini)',
    re.I
)
ORGANIC_RE = re.compile(r'google\.|bing\.|yahoo\.|duckduckgo\.|baidu\.|yandex\.')
SOCIAL_RE = re.compile(r'facebook\.|instagram\.|tiktok\.|twitter\.|linkedin\.|pinterest\.|t\.co')
CAR_DETAIL_RE = re.compile(r'^/cars/([^/]+)/?$', re.I)
GAD_CAMPAIGN_RE = re.compile(r'gad_campaignid=([0-9]+)', re.I)
PLUS_CODE_RE = re.compile(r'^[A-Z0-9]+\+[A-Z0-9]+\s+', re.I)

MODEL_BLACKLIST = {
    'ads', 'promotion', 'promo', 'search', 'admin', 'login', 'register',
    'dashboard', 'analytics', 'undefined', 'null', 'api', 'static', 'media',
    'public', 'assets', 'favicon', 'manifest',
}

COUNTRY_MAP = {
    'MY': 'Malaysia',
    'MALAYSIA': 'Malaysia',
    'SG': 'Singapore',
    'SINGAPORE': 'Singapore',
    'US': 'United States',
    'USA': 'United States',
    'UNITED STATES': 'United States',
    'ID': 'Indonesia',
    'INDONESIA': 'Indonesia',
    'IN': 'India',
    'INDIA': 'India',
    'GB': 'United Kingdom',
    'UK': 'United Kingdom',
    'UNITED KINGDOM': 'United Kingdom',
    'AU': 'Australia',
    'AUSTRALIA': 'Australia',
}

# (body key, max length)
TEXT_FIELDS = [
    ('page_path', 300),
    ('page_url', 800),
    ('referrer', 800),
    ('session_id', 120),
    ('user_id', 120),
    ('anon_id', 120),
    ('utm_campaign', 200),
    ('utm_term', 200),
    ('utm_content', 200),
    ('keyword', 200),
]


# =============================================================================
# CLASSIFICATION
# =============================================================================

def get_device_type(user_agent: Optional[str]) -> str:
    if not user_agent:
        return 'Desktop'
    if TABLET_RE.search(user_agent):
        return 'Tablet'
    if MOBILE_RE.search(user_agent):
        return 'Mobile'
    return 'Desktop'


def _hostname(url: str) -> str:
    host = urlsplit(url).hostname or ''
    return re.sub(r'^www\.', '', host)


def get_traffic_type(referrer: Optional[str], page_url: Optional[str], props: Optional[Dict] = None) -> str:
    """Paid, Direct, Organic, Social or Referral for an incoming hit."""
    props = props or {}
    for param in PAID_PARAMS:
        if props.get(param) or (page_url and f"{param}=" in page_url):
            return 'Paid'

    if not referrer or not referrer.strip():
        return 'Direct'

    try:
        ref_host = _hostname(referrer)
        self_host = _hostname(page_url) if page_url else ''
    except ValueError:
        return 'Direct'
    if not ref_host:
        return 'Direct'

    if self_host and ref_host == self_host:
        return 'Direct'
    if ORGANIC_RE.search(ref_host):
        return 'Organic'
    if SOCIAL_RE.search(ref_host):
        return 'Social'
    return 'Referral'


def _props(row: Dict) -> Dict:
    props = row.get('props')
    if isinstance(props, str):
        try:
            props = json.loads(props)
        except ValueError:
            return {}
    return safe_obj(props)


def parse_url_params(url_like: Optional[str]) -> Dict[str, str]:
    """Query parameters of an absolute or relative URL."""
    s = str(url_like or '').strip()
    if not s or '?' not in s:
        return {}
    try:
        query = urlsplit(s).query
    except ValueError:
        query = s.split('?', 1)[1]
    return dict(parse_qsl(query, keep_blank_values=True))


def _host_from_url(value: Optional[str]) -> str:
    v = str(value or '').strip()
    if not v:
        return ''
    if not v.startswith('http'):
        v = 'https://' + v.lstrip('/')
    try:
        return _hostname(v)
    except ValueError:
        return re.sub(r'^https?://', '', v).split('/')[0]


def referrer_label(row: Dict) -> str:
    """Human label for a referrer, 'Direct / None' when there is none."""
    ref = str(row.get('referrer') or '').strip()
    if not ref:
        return 'Direct / None'

    host = _host_from_url(ref)
    if 'google.' in host:
        return 'Google'
    if 'facebook.' in host:
        return 'Facebook'
    if 'instagram.' in host:
        return 'Instagram'
    if 'tiktok.' in host:
        return 'TikTok'
    if 'bing.' in host:
        return 'Bing'
    if 'yahoo.' in host:
        return 'Yahoo'
    return host or 'Referral'


def is_google_ads_hit(row: Dict) -> Tuple[bool, Dict[str, str]]:
    """
    Look for Google Ads click identifiers in the page URL, the referrer
    and any URL-like props.

    Returns:
        (has_ads, merged_params)
    """
    params = {}
    params.update(parse_url_params(row.get('page_url')))
    params.update(parse_url_params(row.get('referrer')))
    props = _props(row)
    for key in ('url', 'href', 'page_url', 'referrer'):
        if props.get(key):
            params.update(parse_url_params(str(props[key])))

    has_ads = any(params.get(p) for p in ADS_PARAMS) or \
        'cpc' in str(row.get('utm_medium') or '').lower()
    return has_ads, params


def infer_traffic_type(row: Dict) -> str:
    """direct, organic, paid or referral; paid signals win over stored values."""
    has_ads, _ = is_google_ads_hit(row)
    if has_ads:
        return 'paid'
    label = referrer_label(row)
    if label == 'Direct / None':
        return 'direct'
    if label == 'Google':
        return 'organic'
    return 'referral'


def is_car_detail(row: Dict) -> bool:
    return bool(CAR_DETAIL_RE.match(str(row.get('page_path') or '')))


def should_count_model(row: Dict) -> bool:
    name = str(row.get('event_name') or '').lower()
    if name in ('model_click', 'whatsapp_click', 'phone_click'):
        return True
    return is_car_detail(row) and name in ('page_view', 'site_load')


def get_model_key(row: Dict) -> str:
    props = _props(row)
    make = str(props.get('make') or '').strip()
    model = str(props.get('model') or '').strip()
    if make or model:
        if model.lower() in MODEL_BLACKLIST:
            return 'Unknown'
        return f"{make} {model}".strip()

    match = CAR_DETAIL_RE.match(str(row.get('page_path') or ''))
    if match:
        slug = unquote_plus(match.group(1))
        if slug.lower() not in MODEL_BLACKLIST:
            return slug.replace('-', ' ').strip() or 'Unknown'
    return 'Unknown'


def get_campaign_key_raw(row: Dict) -> str:
    """utm_campaign, then gad:<campaign id> from URL params or props."""
    utm = str(row.get('utm_campaign') or '').strip()
    if utm:
        return utm

    _, params = is_google_ads_hit(row)
    gad = str(params.get('gad_campaignid') or '').strip()
    if gad:
        return f"gad:{gad}"

    match = GAD_CAMPAIGN_RE.search(json.dumps(_props(row), default=str))
    if match:
        return f"gad:{match.group(1)}"
    return ''


def get_campaign_key(row: Dict, session_campaign: Optional[str] = None) -> str:
    return get_campaign_key_raw(row) or session_campaign or '—'


def get_session_key(row: Dict) -> str:
    return row.get('session_id') or row.get('anon_id') or f"row:{row.get('id')}"


def infer_acquisition(first_row: Dict) -> Dict[str, str]:
    """Traffic source of a session, judged from its first event."""
    return {
        'traffic': infer_traffic_type(first_row),
        'campaign': get_campaign_key_raw(first_row),
        'ref_name': referrer_label(first_row),
    }


# =============================================================================
# GEO NORMALISATION
# =============================================================================

def _decode(value) -> str:
    raw = str(value if value is not None else '').strip()
    if not raw:
        return ''
    return unquote_plus(raw)


def normalize_country(value) -> str:
    s = _decode(value)
    if not s:
        return ''
    return COUNTRY_MAP.get(s.strip().upper(), s)


def normalize_region(value) -> str:
    s = _decode(value)
    if s.strip().isdigit():
        return ''
    return s


def normalize_city(value) -> str:
    return _decode(value)


def parse_address(full_address: Optional[str]) -> Dict[str, str]:
    """
    Split a Malaysian formatted address into city, region and country.

    'VJV6+HM Taman Foo, 70450 Seremban, Negeri Sembilan, Malaysia' gives
    city 'Taman Foo', region 'Negeri Sembilan', country 'Malaysia'.
    """
    unknown = {'city': 'Unknown', 'region': 'Unknown', 'country': 'Unknown'}
    if not full_address:
        return unknown

    cleaned = PLUS_CODE_RE.sub('', full_address).strip()
    parts = [p.strip() for p in cleaned.split(',') if p.strip()]
    if not parts:
        return unknown

    country = parts[-1]
    if country.upper() in ('MY', 'MALAYSIA'):
        country = 'Malaysia'

    if len(parts) == 1:
        return {'city': parts[0], 'region': 'Unknown', 'country': country}

    region = re.sub(r'\d{5}', '', parts[-2]).strip()
    city = re.sub(r'\s+\d{5}$', '', re.sub(r'^\d{5}\s+', '', parts[0]))
    return {'city': city, 'region': region, 'country': country}


# =============================================================================
# INGEST
# =============================================================================

def _client_ip(headers: Dict[str, str], remote_addr: Optional[str]) -> str:
    forwarded = headers.get('x-forwarded-for')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return remote_addr or '127.0.0.1'


def track_event(session: Session, body: Dict, headers, remote_addr: Optional[str] = None) -> Dict:
    """
    Store one website hit.

    Args:
        session: database session
        body: JSON body posted by the site tracker
        headers: request headers (any mapping)
        remote_addr: socket peer address
    """
    from database.models import SiteEvent

    body = safe_obj(body)
    event_name = safe_text(body.get('event_name') or body.get('event'), 120)
    if not event_name:
        raise ValidationError("Missing event_name", field='event_name')

    headers = {str(k).lower(): v for k, v in dict(headers or {}).items()}
    props = safe_obj(body.get('props'))
    ip = safe_text(_client_ip(headers, remote_addr), 120)
    user_agent = safe_text(headers.get('user-agent'), 800) or ''

    geo = {
        'country': safe_text(headers.get('x-vercel-ip-country'), 120),
        'region': safe_text(headers.get('x-vercel-ip-country-region'), 120),
        'city': safe_text(headers.get('x-vercel-ip-city'), 120),
        'isp': None,
    }

    geo_enabled = get_setting('ENABLE_GEO_LOOKUP', True)
    if geo_enabled and (not geo['country'] or not geo['city']) and geo_service.is_public_ip(ip):
        found = geo_service.lookup_ip(ip)
        if found:
            geo.update({k: v for k, v in found.items() if v})

    lat = to_num_or_null(props.get('lat'))
    lng = to_num_or_null(props.get('lng'))
    exact_address = props.get('exact_address') or None
    if geo_enabled and lat and lng and not exact_address:
        exact_address = geo_service.reverse_geocode(lat, lng)
        if exact_address:
            geo['city'] = f"{exact_address.split(',')[0]} (GPS)"

    traffic_type = safe_text(body.get('traffic_type'), 50) or \
        get_traffic_type(body.get('referrer'), body.get('page_url'), props)

    utm_source = safe_text(body.get('utm_source'), 120)
    utm_medium = safe_text(body.get('utm_medium'), 120)
    if traffic_type == 'Paid':
        utm_source = utm_source or 'google'
        utm_medium = utm_medium or 'cpc'

    event = SiteEvent(
        event_name=event_name,
        utm_source=utm_source,
        utm_medium=utm_medium,
        traffic_type=traffic_type,
        device_type=get_device_type(user_agent),
        user_agent=user_agent,
        ip=ip,
        country=safe_text(geo['country'], 100),
        region=safe_text(geo['region'], 120),
        city=safe_text(geo['city'], 200),
        isp=safe_text(geo['isp'], 200),
        exact_address=exact_address,
        lat=lat,
        lng=lng,
        props=props,
    )
    for field, max_len in TEXT_FIELDS:
        setattr(event, field, safe_text(body.get(field), max_len))

    session.add(event)
    session.flush()
    logger.debug(f"Tracked {event_name} ({traffic_type}, {event.device_type})")
    return event.to_dict()


def active_users(session: Session, minutes=None, now: Optional[datetime] = None) -> Dict:
    """Distinct sessions seen in the last few minutes."""
    from database.models import SiteEvent

    minutes = parse_int_arg(minutes, 5, 1, 60)
    since = (now or utcnow()) - timedelta(minutes=minutes)
    rows = session.query(SiteEvent.session_id).filter(
        SiteEvent.created_at >= since,
        SiteEvent.session_id.isnot(None)
    ).limit(FETCH_LIMIT).all()
    return {'minutes': minutes, 'active_users': len({r[0] for r in rows if r[0]})}


# =============================================================================
# ANALYTICS
# =============================================================================

def _top(counter: Counter, limit: int, label: str = 'name') -> List[Dict]:
    return [{label: key, 'count': count} for key, count in counter.most_common(limit)]


def _created(row: Dict) -> Optional[datetime]:
    return to_utc_naive(row.get('created_at'))


def compute_metrics(rows: List[Dict], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Analytics for a set of hits ordered oldest first.

    Traffic source, referrer and campaign of every hit come from the first
    hit of its session.
    """
    now = now or utcnow()
    realtime_since = now - REALTIME_WINDOW

    session_meta = {}
    for row in rows:
        key = get_session_key(row)
        if key not in session_meta:
            session_meta[key] = infer_acquisition(row)

    realtime_sessions = set()
    traffic = OrderedDict((k, 0) for k in ('direct', 'organic', 'paid', 'referral'))
    page_views = whatsapp_clicks = phone_clicks = 0

    models = Counter()
    referrers = Counter()
    countries = Counter()
    regions = Counter()
    cities = Counter()
    series = Counter()
    model_views = Counter()
    model_whatsapp = Counter()
    campaigns = defaultdict(lambda: {'count': 0, 'views': 0, 'wa': 0, 'calls': 0})

    for row in rows:
        key = get_session_key(row)
        meta = session_meta[key]
        created = _created(row)
        name = str(row.get('event_name') or '').lower()

        if created and created >= realtime_since:
            realtime_sessions.add(key)
        if created:
            series[created.strftime('%Y-%m-%d %H:00')] += 1

        traffic[meta['traffic']] += 1
        referrers[meta['ref_name']] += 1

        if name == 'page_view':
            page_views += 1
        elif name == 'whatsapp_click':
            whatsapp_clicks += 1
        elif name == 'phone_click':
            phone_clicks += 1

        if should_count_model(row):
            model_key = get_model_key(row)
            if model_key != 'Unknown':
                models[model_key] += 1

        countries[normalize_country(row.get('country')) or 'Unknown'] += 1
        regions[normalize_region(row.get('region')) or 'Unknown'] += 1
        cities[normalize_city(row.get('city')) or 'Unknown'] += 1

        detail = is_car_detail(row)
        is_view = detail and name in ('page_view', 'site_load')
        if is_view:
            model_views[get_model_key(row)] += 1
        if detail and name == 'whatsapp_click':
            model_whatsapp[get_model_key(row)] += 1

        camp = campaigns[get_campaign_key(row, meta['campaign'])]
        camp['count'] += 1
        if is_view:
            camp['views'] += 1
        if name == 'whatsapp_click':
            camp['wa'] += 1
        if name == 'phone_click':
            camp['calls'] += 1

    funnel = [
        {
            'model': model,
            'views': views,
            'whatsapp': model_whatsapp.get(model, 0),
            'rate': model_whatsapp.get(model, 0) / views if views else 0,
        }
        for model, views in model_views.most_common(15)
    ]

    campaign_rows = [
        {
            'campaign': name,
            'count': c['count'],
            'views': c['views'],
            'whatsapp': c['wa'],
            'calls': c['calls'],
            'conversions': c['wa'] + c['calls'],
            'rate': c['wa'] / c['views'] if c['views'] else 0,
        }
        for name, c in campaigns.items()
    ]
    campaign_rows.sort(key=lambda c: (c['conversions'], c['count']), reverse=True)

    return {
        'activeUsersRealtime': len(realtime_sessions),
        'pageViews': page_views,
        'whatsappClicks': whatsapp_clicks,
        'phoneClicks': phone_clicks,
        'traffic': dict(traffic),
        'topModels': _top(models, 20, label='key'),
        'topReferrers': _top(referrers, 20),
        'topCountries': _top(countries, 10),
        'topRegions': _top(regions, 10),
        'topCities': _top(cities, 10),
        'trafficSeries': [{'t': t, 'v': series[t]} for t in sorted(series)[-48:]],
        'funnel': funnel,
        'campaigns': campaign_rows[:20],
    }


def pct_change(curr: float, prev: float) -> float:
    if prev <= 0 and curr <= 0:
        return 0
    if prev <= 0:
        return 1
    return (curr - prev) / prev


def compare_metrics(current: Dict, previous: Dict) -> Dict[str, Any]:
    def block(c, p):
        c, p = c or 0, p or 0
        return {'curr': c, 'prev': p, 'delta': c - p, 'pct': pct_change(c, p)}

    result = {
        key: block(current[key], previous[key])
        for key in ('activeUsersRealtime', 'pageViews', 'whatsappClicks', 'phoneClicks')
    }
    result['traffic'] = {
        key: block(current['traffic'][key], previous['traffic'][key])
        for key in current['traffic']
    }
    return result


def _parse_range(date_from, date_to) -> Tuple[datetime, datetime]:
    if not date_from or not date_to:
        raise ValidationError("Missing from/to")
    start = to_utc_naive(date_from)
    end = to_utc_naive(date_to)
    if start is None or end is None:
        raise ValidationError("Invalid from/to")
    return start, end


def _fetch_rows(session: Session, start: datetime, end: datetime) -> List[Dict]:
    from database.models import SiteEvent

    rows = session.query(SiteEvent).filter(
        SiteEvent.created_at >= start,
        SiteEvent.created_at <= end
    ).order_by(SiteEvent.created_at.asc()).limit(FETCH_LIMIT).all()
    return [r.to_dict() for r in rows]


def summarize(session: Session, date_from, date_to, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Metrics for a window plus the equal-length window right before it."""
    start, end = _parse_range(date_from, date_to)
    span = end - start
    prev_start, prev_end = start - span, start

    current = compute_metrics(_fetch_rows(session, start, end), now)
    previous = compute_metrics(_fetch_rows(session, prev_start, prev_end), now)

    return {
        'range': {'from': to_iso_z(start), 'to': to_iso_z(end)},
        'prevRange': {'from': to_iso_z(prev_start), 'to': to_iso_z(prev_end)},
        **current,
        'current': current,
        'previous': previous,
        'compare': compare_metrics(current, previous),
    }


def list_events(session: Session, date_from, date_to, limit=None, offset=None) -> Dict[str, Any]:
    from database.models import SiteEvent

    start, end = _parse_range(date_from, date_to)
    limit = parse_int_arg(limit, 800, 50, 2000)
    offset = parse_int_arg(offset, 0, 0)

    rows = session.query(SiteEvent).filter(
        SiteEvent.created_at >= start,
        SiteEvent.created_at <= end
    ).order_by(SiteEvent.created_at.desc()).offset(offset).limit(limit).all()
    return {'rows': [r.to_dict() for r in rows], 'limit': limit, 'offset': offset}


def _split_identity(identity: str) -> Tuple[str, Optional[str]]:
    """'anon_ABC_2026-01-13' -> ('anon_ABC', '2026-01-13')."""
    core, sep, tail = identity.rpartition('_')
    if sep and is_date_key(tail):
        return core, tail
    return identity, None


def session_timeline(session: Session, session_id: Optional[str] = None,
                     identity: Optional[str] = None) -> List[Dict]:
    """
    Every hit of one visitor, oldest first.

    Identity keys may end in a _YYYY-MM-DD business day, which limits the
    timeline to that 06:00 to 06:00 KL day. 'fp_<ip>_...' fingerprints
    match on IP.
    """
    from database.models import SiteEvent

    if not session_id and not identity:
        raise ValidationError("Missing sessionId or id")

    query = session.query(SiteEvent)
    if session_id:
        query = query.filter(SiteEvent.session_id == session_id)
    else:
        core, business_day = _split_identity(identity)
        ip = core.split('_')[1] if core.startswith('fp_') and len(core.split('_')) > 1 else None
        if ip and ip != 'unknown':
            query = query.filter(SiteEvent.ip == ip)
        else:
            query = query.filter(or_(
                SiteEvent.anon_id == core,
                SiteEvent.session_id == core,
                SiteEvent.ip == core
            ))
        if business_day:
            start, end = business_day_for_key(business_day)
            query = query.filter(SiteEvent.created_at >= start, SiteEvent.created_at < end)

    events = []
    for row in query.order_by(SiteEvent.created_at.asc()).limit(500).all():
        data = row.to_dict()
        url = str(data.get('page_url') or data.get('page_path') or '').lower()
        ref = str(data.get('referrer') or '').lower()
        if 'localhost' in url or 'localhost' in ref:
            continue
        if 'walink' in url:
            data['event_name'] = 'whatsapp_click'
        events.append(data)
    return events


def backfill_geo(session: Session, limit=None, dry_run: bool = False) -> Dict[str, Any]:
    """
    Fill missing country/region/city of stored hits from their IP.

    Each public IP is looked up once. Only empty fields are written.
    """
    from database.models import SiteEvent

    limit = parse_int_arg(limit, 300, 1, 1000)
    rows = session.query(SiteEvent).filter(
        or_(SiteEvent.country.is_(None), SiteEvent.region.is_(None), SiteEvent.city.is_(None)),
        SiteEvent.ip.isnot(None)
    ).order_by(SiteEvent.created_at.desc()).limit(limit).all()

    ips = []
    for row in rows:
        ip = geo_service.clean_ip(row.ip)
        if geo_service.is_public_ip(ip) and ip not in ips:
            ips.append(ip)

    stats = {
        'scanned': len(rows),
        'uniqueIps': len(ips),
        'updates': 0,
        'lookupFailed': 0,
        'updateFailed': 0,
        'skippedNoGeo': 0,
        'dryRun': bool(dry_run),
    }

    found = {}
    for ip in ips:
        geo = geo_service.lookup_ip(ip)
        if geo:
            found[ip] = geo
        else:
            stats['lookupFailed'] += 1

    for row in rows:
        geo = found.get(geo_service.clean_ip(row.ip))
        if not geo:
            stats['skippedNoGeo'] += 1
            continue

        changes = {
            field: geo.get(field)
            for field in ('country', 'region', 'city')
            if not getattr(row, field) and geo.get(field)
        }
        if not changes:
            stats['skippedNoGeo'] += 1
            continue

        stats['updates'] += 1
        if not dry_run:
            for field, value in changes.items():
                setattr(row, field, value)

    if not dry_run and stats['updates']:
        try:
            session.flush()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Geo backfill write failed: {e}")
            stats['updateFailed'] = stats['updates']
            stats['updates'] = 0

    logger.info(f"Geo backfill: {stats}")
    return stats
