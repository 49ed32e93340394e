"""
Owner document API.

POST   /api/v1/documents/                       upload (multipart)
GET    /api/v1/documents/                       list own documents
GET    /api/v1/documents/{id}/                  detail
PATCH  /api/v1/documents/{id}/                  settings, status, hyperlinks
DELETE /api/v1/documents/{id}/                  delete + media cleanup summary
POST   /api/v1/documents/bulk-delete/           per-item results
GET    /api/v1/documents/{id}/stream/           redirect to media
POST   /api/v1/documents/{id}/recalculate-stats/  rebuild cached stats
"""
from django.http import HttpResponseRedirect
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from apps.analytics.services import reconcile_stats
from apps.core.observability import get_sanitized_logger

from .models import Document, DocumentStatus
from .permissions import IsDocumentOwner
from .serializers import (
    BulkDeleteSerializer,
    DocumentCreateSerializer,
    DocumentSerializer,
    DocumentUpdateSerializer,
)
from .services import (
    DocumentNotFound,
    bulk_delete_documents,
    create_document,
    delete_document,
    get_owned_document,
)

logger = get_sanitized_logger(__name__)


class DocumentViewSet(mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      mixins.UpdateModelMixin,
                      viewsets.GenericViewSet):
    serializer_class = DocumentSerializer
    permission_classes = [IsDocumentOwner]
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    def get_queryset(self):
        return Document.objects.filter(owner=self.request.user).exclude(
            status=DocumentStatus.DELETED
        )

    def get_object(self):
        document = get_owned_document(self.request.user, self.kwargs.get('pk'))
        if not IsDocumentOwner().has_object_permission(self.request, self, document):
            raise DocumentNotFound()
        return document

    def get_serializer_class(self):
        if self.action in ('update', 'partial_update'):
            return DocumentUpdateSerializer
        return DocumentSerializer

    def create(self, request):
        serializer = DocumentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = create_document(request.user, **serializer.validated_data)
        return Response(DocumentSerializer(document).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        document = self.get_object()
        serializer = DocumentUpdateSerializer(document, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(DocumentSerializer(document).data)

    def destroy(self, request, pk=None):
        document = self.get_object()
        summary = delete_document(document)
        return Response(
            {'id': pk, 'deleted': True, 'cleanup': summary.as_dict()},
            status=status.HTTP_200_OK,
        )

    @action(detail=False, methods=['post'], url_path='bulk-delete')
    def bulk_delete(self, request):
        serializer = BulkDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        results = bulk_delete_documents(request.user, serializer.validated_data['ids'])
        return Response({
            'results': results,
            'deleted': sum(1 for r in results if r['success']),
            'failed': sum(1 for r in results if not r['success']),
        })

    @action(detail=True, methods=['get'])
    def stream(self, request, pk=None):
        document = self.get_object()
        url = document.primary_media_url()
        if not url:
            raise DocumentNotFound()
        return HttpResponseRedirect(url)

    @action(detail=True, methods=['post'], url_path='recalculate-stats')
    def recalculate_stats(self, request, pk=None):
        document = self.get_object()
        result = reconcile_stats(document, source='api')
        return Response({
            'id': str(document.id),
            'stats': result['stats'],
            'drift': result['drift'],
        })
