"""
Health check endpoints.

/healthz is liveness only; /readyz checks the database and media store;
/metrics exposes the Prometheus registry.
"""
import logging
from django.http import HttpResponse, JsonResponse
from django.views import View
from django.db import connection, DatabaseError
from django.conf import settings

logger = logging.getLogger(__name__)


class HealthzView(View):
    """Returns 200 OK while the process is serving requests."""

    def get(self, request):
        health_data = {
            'status': 'ok',
            'version': getattr(settings, 'VERSION', 'unknown'),
        }

        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            health_data['commit'] = commit_hash

        return JsonResponse(health_data, status=200)


class ReadyzView(View):
    """
    Readiness check endpoint.

    Returns 503 when the database or the media store bucket is unreachable.
    """

    def get(self, request):
        checks = {
            'database': self._check_database(),
            'media_store': self._check_media_store(),
        }

        all_healthy = all(checks.values())

        return JsonResponse(
            {
                'status': 'ready' if all_healthy else 'not_ready',
                'checks': checks,
            },
            status=200 if all_healthy else 503,
        )

    def _check_database(self):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
                return True
        except DatabaseError as e:
            logger.error(
                'Database health check failed',
                extra={'event': 'health_check_failed', 'check': 'database', 'error': str(e)}
            )
            return False

    def _check_media_store(self):
        from apps.documents.storage import MediaStoreError, bucket_reachable

        try:
            return bucket_reachable()
        except MediaStoreError as e:
            logger.error(
                'Media store health check failed',
                extra={'event': 'health_check_failed', 'check': 'media_store', 'error': str(e)}
            )
            return False


class MetricsView(View):
    """Prometheus scrape endpoint."""

    def get(self, request):
        from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

        return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)
