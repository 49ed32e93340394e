"""
Owner analytics API.

GET /api/v1/analytics/dashboard/?time_range=7d|30d|90d
GET /api/v1/analytics/documents/{id}/?start_date=&end_date=&group_by=
GET /api/v1/analytics/documents/{id}/views/?page=&limit=
GET /api/v1/analytics/documents/{id}/contacts/?page=&limit=
GET /api/v1/analytics/documents/{id}/export/?type=views|contacts
"""
import io

from django.http import HttpResponse
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.observability import get_sanitized_logger
from apps.core.observability.events import log_domain_event
from apps.documents.services import get_owned_document

from . import reports
from .serializers import (
    AnalyticsQuerySerializer,
    ContactSerializer,
    DashboardQuerySerializer,
    ExportQuerySerializer,
    ViewSerializer,
)

logger = get_sanitized_logger(__name__)


class LedgerPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'limit'
    max_page_size = 500


class DashboardView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = DashboardQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(reports.dashboard(request.user, query.validated_data['time_range']))


class DocumentAnalyticsViewSet(viewsets.ViewSet):
    """Per-document analytics; other owners' documents are not found."""
    permission_classes = [IsAuthenticated]

    def _document(self, pk):
        return get_owned_document(self.request.user, pk)

    def _paginate(self, request, queryset, serializer_class):
        paginator = LedgerPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(serializer_class(page, many=True).data)

    def retrieve(self, request, pk=None):
        document = self._document(pk)
        query = AnalyticsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        return Response(reports.document_analytics(
            document,
            start=data.get('start_date'),
            end=data.get('end_date'),
            group_by=data['group_by'],
        ))

    @action(detail=True, methods=['get'])
    def views(self, request, pk=None):
        document = self._document(pk)
        queryset = reports.document_views(document).prefetch_related('events')
        return self._paginate(request, queryset, ViewSerializer)

    @action(detail=True, methods=['get'])
    def contacts(self, request, pk=None):
        document = self._document(pk)
        return self._paginate(request, reports.document_contacts(document), ContactSerializer)

    @action(detail=True, methods=['get'])
    def export(self, request, pk=None):
        document = self._document(pk)
        query = ExportQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        export_type = query.validated_data['type']

        header, rows = reports.export_rows(document, export_type)
        if not rows:
            return Response({'error': 'No data to export'}, status=status.HTTP_404_NOT_FOUND)

        buffer = io.StringIO()
        reports.write_csv(buffer, header, rows)
        filename = f'{document.public_slug}-{export_type}-{timezone.now():%Y%m%d}.csv'
        response = HttpResponse(buffer.getvalue(), content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="{filename}"'

        log_domain_event(
            'analytics_exported',
            entity_type='Document',
            entity_id=str(document.id),
            export_type=export_type,
            rows=len(rows),
        )
        return response
