"""
Request correlation middleware.

Generates/propagates X-Request-ID, stores it for log records and
records per-request HTTP metrics.
"""
import uuid
import time
import logging
from threading import local

from django.utils.deprecation import MiddlewareMixin

_request_context = local()

logger = logging.getLogger(__name__)


def get_request_id():
    """Get current request ID from thread-local storage."""
    return getattr(_request_context, 'request_id', None)


def get_trace_id():
    return getattr(_request_context, 'trace_id', None)


def get_user_id():
    return getattr(_request_context, 'user_id', None)


class RequestCorrelationMiddleware(MiddlewareMixin):
    """
    Correlates logs for one request.

    Public viewer requests carry no user; owner requests are authenticated
    by JWT inside DRF, so the owner id is filled in lazily on response.
    """

    REQUEST_ID_HEADER = 'HTTP_X_REQUEST_ID'
    TRACE_ID_HEADER = 'HTTP_X_TRACE_ID'

    def process_request(self, request):
        request_id = request.META.get(self.REQUEST_ID_HEADER) or str(uuid.uuid4())
        trace_id = request.META.get(self.TRACE_ID_HEADER)

        request.request_id = request_id
        request.trace_id = trace_id
        request.start_time = time.time()

        _request_context.request_id = request_id
        _request_context.trace_id = trace_id
        _request_context.user_id = None

    def process_response(self, request, response):
        from .metrics import metrics

        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id

        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            _request_context.user_id = str(user.pk)

        if hasattr(request, 'start_time'):
            duration = time.time() - request.start_time
            route = _route_name(request)

            metrics.http_requests_total.labels(
                route=route,
                method=request.method,
                status=str(response.status_code),
            ).inc()
            metrics.http_request_duration_seconds.labels(
                route=route,
                method=request.method,
            ).observe(duration)

            logger.info(
                'Request completed',
                extra={
                    'event': 'http_request_completed',
                    'path': request.path,
                    'method': request.method,
                    'status_code': response.status_code,
                    'duration_ms': round(duration * 1000, 2),
                    'request_id': getattr(request, 'request_id', None),
                    'user_id': get_user_id(),
                }
            )

        clear_request_context()
        return response

    def process_exception(self, request, exception):
        from .metrics import metrics

        metrics.exceptions_total.labels(
            exception_type=exception.__class__.__name__,
            location='http',
        ).inc()
        logger.error(
            f'Request failed: {exception.__class__.__name__}',
            exc_info=True,
            extra={
                'event': 'http_request_exception',
                'path': request.path,
                'method': request.method,
                'exception_type': exception.__class__.__name__,
                'request_id': getattr(request, 'request_id', None),
            }
        )


def _route_name(request):
    """URL pattern name (bounded cardinality) instead of the raw path."""
    match = getattr(request, 'resolver_match', None)
    if match is not None and match.view_name:
        return match.view_name
    return 'unresolved'


def clear_request_context():
    """Clear thread-local request context (also used by tests)."""
    for attr in ['request_id', 'trace_id', 'user_id']:
        if hasattr(_request_context, attr):
            delattr(_request_context, attr)
