"""
Request context for the view ledger.

Resolves the client address behind proxies and derives geo/device facts.
Enrichment is best effort: any derivation failure leaves the fields empty
and never blocks recording a view.
"""
import re
from dataclasses import dataclass, field
from functools import lru_cache

import geoip2.database
import geoip2.errors
from django.conf import settings
from user_agents import parse as parse_user_agent

from apps.core.observability import get_sanitized_logger

logger = get_sanitized_logger(__name__)

MOBILE_UA_PATTERN = re.compile(r'Mobile|Android|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini', re.IGNORECASE)
TABLET_UA_PATTERN = re.compile(r'iPad|Tablet', re.IGNORECASE)
IPV4_MAPPED_PREFIX = '::ffff:'
UNKNOWN_ADDRESS = 'unknown'


@dataclass
class RequestFacts:
    ip_address: str
    user_agent: str = ''
    referrer: str = ''
    location: dict = field(default_factory=dict)


def normalize_ip(value):
    """Single canonical form used for the uniqueness window lookup."""
    value = (value or '').strip().lower()
    if value.startswith(IPV4_MAPPED_PREFIX):
        value = value[len(IPV4_MAPPED_PREFIX):]
    return value


def client_ip(request):
    """
    First X-Forwarded-For hop, then X-Real-IP, then the socket address.
    """
    meta = request.META
    if settings.FLIPBOOK_TRUST_PROXY_HEADERS:
        forwarded = meta.get('HTTP_X_FORWARDED_FOR', '')
        first_hop = forwarded.split(',')[0].strip()
        if first_hop:
            return normalize_ip(first_hop)
        real_ip = meta.get('HTTP_X_REAL_IP', '').strip()
        if real_ip:
            return normalize_ip(real_ip)
    return normalize_ip(meta.get('REMOTE_ADDR')) or UNKNOWN_ADDRESS


def request_facts(request, location=None):
    return RequestFacts(
        ip_address=client_ip(request),
        user_agent=request.META.get('HTTP_USER_AGENT', ''),
        referrer=request.META.get('HTTP_REFERER', ''),
        location=dict(location or {}),
    )


def derive_device(user_agent):
    if not user_agent:
        return {}
    ua = parse_user_agent(user_agent)
    return {
        'browser': (ua.browser.family or '')[:64],
        'os': (ua.os.family or '')[:64],
        'device_family': (ua.device.family or '')[:64],
        'is_mobile': bool(MOBILE_UA_PATTERN.search(user_agent)),
        'is_tablet': bool(ua.is_tablet or TABLET_UA_PATTERN.search(user_agent)),
    }


@lru_cache(maxsize=1)
def _geoip_reader(path):
    return geoip2.database.Reader(path)


def _geo_from_override(location):
    coordinates = location.get('coordinates') or {}
    geo = {
        'country': location.get('country') or '',
        'region': location.get('region') or '',
        'city': location.get('city') or '',
        'time_zone': location.get('timezone') or '',
        'latitude': location.get('latitude', coordinates.get('lat')),
        'longitude': location.get('longitude', coordinates.get('lon')),
    }
    return {key: value for key, value in geo.items() if value not in ('', None)}


def derive_geo(ip_address, location=None):
    """
    Geo facts for ``ip_address``; a client-supplied location wins.

    Returns an empty dict when no GeoLite2 database is configured or the
    address is private/unknown.
    """
    if location:
        return _geo_from_override(location)
    if not settings.GEOIP_PATH or not ip_address or ip_address == UNKNOWN_ADDRESS:
        return {}

    try:
        response = _geoip_reader(settings.GEOIP_PATH).city(ip_address)
    except (geoip2.errors.AddressNotFoundError, ValueError):
        return {}

    geo = {
        'country': response.country.iso_code or '',
        'region': response.subdivisions.most_specific.iso_code or '',
        'city': response.city.name or '',
        'time_zone': response.location.time_zone or '',
        'latitude': response.location.latitude,
        'longitude': response.location.longitude,
    }
    return {key: value for key, value in geo.items() if value not in ('', None)}


def derive_facts(facts):
    """Device + geo columns for a new View. Never raises."""
    derived = {}
    for derive, args in (
        (derive_device, (facts.user_agent,)),
        (derive_geo, (facts.ip_address, facts.location)),
    ):
        try:
            derived.update(derive(*args))
        except Exception as e:
            logger.warning(
                'Request enrichment failed',
                extra={'event': 'view_enrichment_failed', 'step': derive.__name__, 'error': str(e)}
            )
    return derived
