"""
Geo Service - IP and coordinate lookups for site analytics.

Lookups are best effort: a failed lookup logs a warning and returns None,
and the hit is stored with whatever geo data the request headers carried.
"""

import logging
import ipaddress
from typing import Dict, Optional

import requests

from config import get_setting

logger = logging.getLogger(__name__)

IP_API_URL = 'http://ip-api.com/json/{ip}'
IPINFO_URL = 'https://ipinfo.io/{ip}/json'
GOOGLE_GEOCODE_URL = 'https://maps.googleapis.com/maps/api/geocode/json'


def clean_ip(ip: Optional[str]) -> str:
    """First address of a possibly comma separated forwarded-for value."""
    if not ip:
        return ''
    return str(ip).split(',')[0].strip()


def is_public_ip(ip: Optional[str]) -> bool:
    ip = clean_ip(ip)
    if not ip:
        return False
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return not (addr.is_private or addr.is_loopback or addr.is_link_local
                or addr.is_reserved or addr.is_unspecified or addr.is_multicast)


def _timeout() -> int:
    return int(get_setting('GEO_TIMEOUT', 3))


def _lookup_ip_api(ip: str) -> Optional[Dict]:
    response = requests.get(IP_API_URL.format(ip=ip), timeout=_timeout())
    response.raise_for_status()
    data = response.json()
    if data.get('status') != 'success':
        return None
    return {
        'country': data.get('country'),
        'region': data.get('regionName'),
        'city': data.get('city'),
        'isp': data.get('isp'),
    }


def _lookup_ipinfo(ip: str, token: str) -> Optional[Dict]:
    response = requests.get(IPINFO_URL.format(ip=ip), params={'token': token}, timeout=_timeout())
    response.raise_for_status()
    data = response.json()
    if data.get('bogon') or not data.get('country'):
        return None
    return {
        'country': data.get('country'),
        'region': data.get('region'),
        'city': data.get('city'),
        'isp': data.get('org'),
    }


def lookup_ip(ip: Optional[str]) -> Optional[Dict]:
    """
    Country, region, city and ISP for a public IP address.

    Uses ipinfo.io when IPINFO_TOKEN is set, ip-api.com otherwise.

    Returns:
        dict with country/region/city/isp, or None
    """
    ip = clean_ip(ip)
    if not is_public_ip(ip):
        return None

    token = get_setting('IPINFO_TOKEN')
    try:
        if token:
            return _lookup_ipinfo(ip, token)
        return _lookup_ip_api(ip)
    except requests.exceptions.RequestException as e:
        logger.warning(f"IP geo lookup failed for {ip}: {e}")
        return None
    except ValueError as e:
        logger.warning(f"IP geo lookup returned invalid JSON for {ip}: {e}")
        return None


def reverse_geocode(lat, lng) -> Optional[str]:
    """
    Formatted street address for coordinates via Google Geocoding.

    Returns None when no server key is configured or nothing was found.
    """
    key = get_setting('GOOGLE_MAPS_SERVER_KEY')
    if not key or not lat or not lng:
        return None

    try:
        response = requests.get(
            GOOGLE_GEOCODE_URL,
            params={'latlng': f"{lat},{lng}", 'key': key},
            timeout=_timeout()
        )
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        logger.warning(f"Reverse geocode network error: {e}")
        return None
    except ValueError as e:
        logger.warning(f"Reverse geocode returned invalid JSON: {e}")
        return None

    results = data.get('results') or []
    if data.get('status') == 'OK' and results:
        return results[0].get('formatted_address')

    logger.warning(f"Reverse geocode error: {data.get('status')} {data.get('error_message', '')}")
    return None
