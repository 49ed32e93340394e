"""
Tests for client address resolution and geo/device enrichment.
"""
from unittest.mock import patch

from django.test import RequestFactory, override_settings

from apps.analytics.request_context import (
    RequestFacts,
    client_ip,
    derive_device,
    derive_facts,
    derive_geo,
    normalize_ip,
    request_facts,
)

IPHONE_UA = (
    'Mozilla/5.0 (iPhone; CPU iPhone OS 16_5 like Mac OS X) AppleWebKit/605.1.15 '
    '(KHTML, like Gecko) Version/16.5 Mobile/15E148 Safari/604.1'
)
IPAD_UA = (
    'Mozilla/5.0 (iPad; CPU OS 16_5 like Mac OS X) AppleWebKit/605.1.15 '
    '(KHTML, like Gecko) Version/16.5 Mobile/15E148 Safari/604.1'
)
DESKTOP_UA = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


class TestClientIp:

    def setup_method(self):
        self.factory = RequestFactory()

    def test_first_forwarded_hop_wins(self):
        request = self.factory.get(
            '/',
            HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.2',
            HTTP_X_REAL_IP='10.0.0.3',
            REMOTE_ADDR='10.0.0.4',
        )
        assert client_ip(request) == '203.0.113.7'

    def test_real_ip_when_no_forwarded_header(self):
        request = self.factory.get('/', HTTP_X_REAL_IP='203.0.113.8', REMOTE_ADDR='10.0.0.4')
        assert client_ip(request) == '203.0.113.8'

    def test_socket_address_fallback(self):
        request = self.factory.get('/', REMOTE_ADDR='203.0.113.9')
        assert client_ip(request) == '203.0.113.9'

    def test_ipv4_mapped_prefix_is_stripped(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='::ffff:203.0.113.7')
        assert client_ip(request) == '203.0.113.7'

    @override_settings(FLIPBOOK_TRUST_PROXY_HEADERS=False)
    def test_proxy_headers_ignored_when_untrusted(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='203.0.113.7', REMOTE_ADDR='10.0.0.4')
        assert client_ip(request) == '10.0.0.4'

    def test_request_facts(self):
        request = self.factory.get(
            '/',
            REMOTE_ADDR='203.0.113.9',
            HTTP_USER_AGENT=DESKTOP_UA,
            HTTP_REFERER='https://mail.example.com/',
        )

        result = request_facts(request, location={'country': 'IN'})

        assert result == RequestFacts(
            ip_address='203.0.113.9',
            user_agent=DESKTOP_UA,
            referrer='https://mail.example.com/',
            location={'country': 'IN'},
        )


class TestNormalizeIp:

    def test_lowercases_and_trims(self):
        assert normalize_ip(' 2001:DB8::1 ') == '2001:db8::1'

    def test_empty(self):
        assert normalize_ip(None) == ''


class TestDeriveDevice:

    def test_iphone_is_mobile(self):
        device = derive_device(IPHONE_UA)
        assert device['is_mobile'] is True
        assert device['is_tablet'] is False
        assert device['os'] == 'iOS'

    def test_ipad_is_tablet(self):
        device = derive_device(IPAD_UA)
        assert device['is_tablet'] is True

    def test_desktop(self):
        device = derive_device(DESKTOP_UA)
        assert device['browser'] == 'Chrome'
        assert device['is_mobile'] is False
        assert device['is_tablet'] is False

    def test_empty_user_agent(self):
        assert derive_device('') == {}


class TestDeriveGeo:

    def test_client_location_overrides_lookup(self):
        geo = derive_geo('203.0.113.9', {
            'country': 'IN',
            'region': 'MH',
            'city': 'Pune',
            'timezone': 'Asia/Kolkata',
            'coordinates': {'lat': 18.52, 'lon': 73.85},
        })

        assert geo == {
            'country': 'IN',
            'region': 'MH',
            'city': 'Pune',
            'time_zone': 'Asia/Kolkata',
            'latitude': 18.52,
            'longitude': 73.85,
        }

    @override_settings(GEOIP_PATH='')
    def test_no_database_configured(self):
        assert derive_geo('203.0.113.9') == {}

    def test_unknown_address(self):
        assert derive_geo('unknown') == {}


class TestDeriveFacts:

    def test_enrichment_failure_is_swallowed(self):
        """
        GIVEN a device parser that raises
        WHEN facts are derived
        THEN geo facts are still returned and nothing propagates
        """
        def broken_parser(user_agent):
            raise RuntimeError('parser exploded')

        with patch('apps.analytics.request_context.derive_device', broken_parser):
            derived = derive_facts(RequestFacts(
                ip_address='203.0.113.9',
                user_agent=DESKTOP_UA,
                location={'country': 'IN'},
            ))

        assert derived == {'country': 'IN'}
