"""
DRF exception handler.

Plain API errors are rendered as ``{"error": message}``; field validation
errors keep DRF's per-field shape.
"""
from rest_framework.views import exception_handler as drf_exception_handler


def exception_handler(exc, context):
    response = drf_exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(response.data, dict) and set(response.data) == {'detail'}:
        response.data = {'error': response.data['detail']}
    return response
