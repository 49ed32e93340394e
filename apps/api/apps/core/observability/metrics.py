"""
Prometheus metrics for the Flipbook Share API.
"""
import time
from functools import wraps

from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        self._setup_metrics()

    def _create_counter(self, name, description, labels=None):
        return Counter(name, description, labels or [])

    def _create_histogram(self, name, description, labels=None, buckets=None):
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])

    def _setup_metrics(self):

        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.http_requests_total = self._create_counter(
            'http_requests_total',
            'Total HTTP requests',
            ['route', 'method', 'status']
        )

        self.http_request_duration_seconds = self._create_histogram(
            'http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['route', 'method'],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
        )

        self.exceptions_total = self._create_counter(
            'exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )

        # ===================================================================
        # View Ledger / Reconciliation Metrics
        # ===================================================================
        self.views_total = self._create_counter(
            'flipbook_views_total',
            'Views recorded by the public viewer',
            ['unique']  # true|false
        )

        self.contacts_total = self._create_counter(
            'flipbook_contacts_total',
            'Contact submissions',
            ['result']  # new|repeat
        )

        self.unique_retractions_total = self._create_counter(
            'flipbook_unique_retractions_total',
            'Provisional unique views retracted after a contact match'
        )

        self.downloads_total = self._create_counter(
            'flipbook_downloads_total',
            'Downloads served',
            ['recorded']  # true when attached to a view
        )

        self.stats_drift_total = self._create_counter(
            'flipbook_stats_drift_total',
            'Documents whose cached stats differed from the ledger',
            ['source']  # task, command, api
        )

        self.reconcile_duration_seconds = self._create_histogram(
            'flipbook_reconcile_duration_seconds',
            'Duration of a full stats recalculation for one document',
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
        )

        # ===================================================================
        # Media Store Metrics
        # ===================================================================
        self.media_store_operations_total = self._create_counter(
            'flipbook_media_store_operations_total',
            'Media store calls',
            ['operation', 'result']  # upload|delete|bulk_delete, success|failure
        )

        self.media_store_duration_seconds = self._create_histogram(
            'flipbook_media_store_duration_seconds',
            'Media store call duration',
            ['operation'],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
        )

        # ===================================================================
        # Public Viewer Metrics
        # ===================================================================
        self.public_throttled_total = self._create_counter(
            'flipbook_public_throttled_total',
            'Public viewer requests rejected by throttling',
            ['scope']
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.reconcile_duration_seconds)
            def recalculate_stats(document):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    histogram_metric.observe(time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
