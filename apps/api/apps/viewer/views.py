"""
Public viewer endpoints (no authentication).

Every inaccessible document (missing, expired, inactive, still processing,
deleted) gets the same 404 body, so a link reveals nothing about its state.
Password-protected documents answer 403 with ``password_required`` until
the viewer password is supplied, as ``password`` (body or query string) or
the ``X-Document-Password`` header.
"""
import time

from django.http import HttpResponseRedirect
from rest_framework import status
from rest_framework.decorators import (
    api_view,
    authentication_classes,
    permission_classes,
    throttle_classes,
)
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from apps.analytics import ledger
from apps.analytics.request_context import request_facts
from apps.analytics.services import record_download, record_visit, submit_contact, unlock_video
from apps.core.observability import get_sanitized_logger
from apps.documents.services import (
    DocumentNotFound,
    DownloadNotAllowed,
    PasswordRequired,
    resolve_public_document,
)

from .serializers import (
    ContactSubmitSerializer,
    PublicDocumentSerializer,
    TrackViewSerializer,
    UnlockVideoSerializer,
    ViewerEventSerializer,
)
from .throttles import (
    ContactBurstThrottle,
    ContactHourlyThrottle,
    DocumentViewThrottle,
    DownloadThrottle,
)

logger = get_sanitized_logger(__name__)

PASSWORD_HEADER = 'HTTP_X_DOCUMENT_PASSWORD'


def _supplied_password(request):
    password = request.META.get(PASSWORD_HEADER)
    if password:
        return password
    if request.method == 'GET':
        return request.query_params.get('password', '')
    return request.data.get('password', '') if hasattr(request.data, 'get') else ''


def _unlocked(request, document):
    return document.check_viewer_password(_supplied_password(request))


def _require_password(request, document):
    if not _unlocked(request, document):
        raise PasswordRequired()


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def public_document(request, identifier):
    """
    GET /api/public/document/{slug-or-id}/

    Metadata for the viewer; ``files`` is null while the password is missing.
    """
    document = resolve_public_document(identifier)
    serializer = PublicDocumentSerializer(document, context={'locked': not _unlocked(request, document)})
    return Response(serializer.data)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([DocumentViewThrottle])
def track_view(request, identifier):
    """
    POST /api/public/document/{slug-or-id}/view/

    Body: {session_id?, password?, location?}. A known session_id continues
    that visit instead of counting a new one.
    """
    start_time = time.time()
    serializer = TrackViewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    document = resolve_public_document(identifier)
    _require_password(request, document)

    facts = request_facts(request, location=data.get('location'))
    view, created = record_visit(document, data.get('session_id'), facts)

    logger.info(
        'Public view tracked',
        extra={
            'document_id': str(document.id),
            'view_id': view.id,
            'new_session': created,
            'duration_ms': int((time.time() - start_time) * 1000),
        }
    )
    return Response(
        {
            'success': True,
            'session_id': view.session_id,
            'is_new_session': created,
            'require_contact': document.require_contact and not view.submitted_name,
        },
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([ContactBurstThrottle, ContactHourlyThrottle])
def submit_contact_view(request, identifier):
    """
    POST /api/public/document/{slug-or-id}/contact/

    Body: {session_id, name, mobile}. Repeat contacts are accepted; the
    response says whether this was a new one.
    """
    serializer = ContactSubmitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    document = resolve_public_document(identifier)
    view = ledger.find_session_view(document, data['session_id'])
    if view is None:
        raise DocumentNotFound()

    result = submit_contact(view, data['name'], data['mobile'])
    return Response({
        'success': True,
        'message': 'Contact information saved',
        'is_new_contact': result['is_new_contact'],
    })


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([DownloadThrottle])
def download(request, identifier):
    """
    GET /api/public/document/{slug-or-id}/download/?session_id=

    Records a download on the visitor's view and returns file locations.
    """
    document = resolve_public_document(identifier)
    if not document.allow_download:
        raise DownloadNotAllowed()
    _require_password(request, document)

    record_download(document, request_facts(request), session_id=request.query_params.get('session_id'))
    return Response({'files': document.download_urls()})


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([DocumentViewThrottle])
def unlock_video_view(request):
    """
    POST /api/public/unlock-video/

    Body: {document_id, session_id?, mobile?}.
    """
    serializer = UnlockVideoSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    document = resolve_public_document(data['document_id'])
    facts = request_facts(request, location=data.get('location'))
    view = unlock_video(document, facts, session_id=data.get('session_id'), mobile=data.get('mobile'))
    return Response({
        'success': True,
        'session_id': view.session_id,
        'video_unlocked': True,
    })


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def stream(request, identifier):
    """GET /api/public/document/{slug-or-id}/stream/ redirects to the media."""
    document = resolve_public_document(identifier)
    _require_password(request, document)
    url = document.primary_media_url()
    if not url:
        raise DocumentNotFound()
    return HttpResponseRedirect(url)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([DocumentViewThrottle])
def viewer_event(request, identifier):
    """
    POST /api/public/document/{slug-or-id}/event/

    Body: {session_id, kind: page_turn|video_play, page?, position?}.
    """
    serializer = ViewerEventSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    document = resolve_public_document(identifier)
    view = ledger.find_session_view(document, data['session_id'])
    if view is None:
        raise DocumentNotFound()

    if data['kind'] == 'page_turn':
        event = ledger.add_page_turn(view, data['page'])
    else:
        event = ledger.add_video_play(view, data.get('position'))
    return Response({'success': True, 'event_id': event.id}, status=status.HTTP_201_CREATED)
