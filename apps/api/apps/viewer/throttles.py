"""
Per-IP rate limits for the anonymous viewer endpoints.

Rates live in REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] under each scope.
"""
from rest_framework.throttling import AnonRateThrottle

from apps.core.observability import get_sanitized_logger, metrics

logger = get_sanitized_logger(__name__)


class PublicViewerThrottle(AnonRateThrottle):
    """Counts rejections per scope."""

    def allow_request(self, request, view):
        allowed = super().allow_request(request, view)
        if not allowed:
            metrics.public_throttled_total.labels(scope=self.scope).inc()
            logger.warning('Public request throttled', extra={'event': 'public_throttled', 'scope': self.scope})
        return allowed


class DocumentViewThrottle(PublicViewerThrottle):
    """View tracking and viewer events."""
    scope = 'document_views'


class ContactHourlyThrottle(PublicViewerThrottle):
    scope = 'contact_submissions'


class ContactBurstThrottle(PublicViewerThrottle):
    """Rapid-fire lead spam."""
    scope = 'contact_burst'


class DownloadThrottle(PublicViewerThrottle):
    scope = 'downloads'
