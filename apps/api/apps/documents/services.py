"""
Document registry: create, lookup, update and delete of shared documents.

Deletion cleans up remote media first on a best-effort basis: a failed
remote delete is logged and reported in the returned summary but never
keeps the local record alive.
"""
import uuid
from collections import defaultdict
from dataclasses import dataclass, field

from django.db import DatabaseError
from rest_framework.exceptions import APIException, ErrorDetail, NotFound, PermissionDenied

from apps.core.observability import get_sanitized_logger, log_domain_event
from apps.core.observability.events import log_document_deleted, log_media_cleanup_failure
from apps.core.observability.tracing import trace_span

from . import storage
from .models import Document, DocumentStatus, FILES_SCHEMA_VERSION, MediaKind

logger = get_sanitized_logger(__name__)

NOT_FOUND_MESSAGE = 'Document not found'


class DocumentNotFound(NotFound):
    """Missing, inaccessible or foreign document. Always the same message."""
    default_detail = NOT_FOUND_MESSAGE
    default_code = 'document_not_found'


class PasswordRequired(PermissionDenied):
    """Viewer password missing or wrong. The body carries a machine-readable flag."""
    default_detail = 'Password required'
    default_code = 'password_required'

    def __init__(self):
        super().__init__()
        self.detail = {
            'error': ErrorDetail(self.default_detail, self.default_code),
            'password_required': True,
        }


class DownloadNotAllowed(PermissionDenied):
    default_detail = 'Downloads are not allowed for this document'
    default_code = 'download_not_allowed'


class UploadFailed(APIException):
    status_code = 502
    default_detail = 'Media upload failed, please retry'
    default_code = 'upload_failed'


@dataclass
class CleanupSummary:
    deleted_files: int = 0
    failed_files: int = 0
    total_attempted: int = 0
    failures: list = field(default_factory=list)

    def add_failure(self, public_id, resource_type, error):
        self.failed_files += 1
        self.failures.append({
            'public_id': public_id,
            'resource_type': resource_type,
            'error': error,
        })

    def as_dict(self):
        return {
            'deleted_files': self.deleted_files,
            'failed_files': self.failed_files,
            'total_attempted': self.total_attempted,
            'failures': list(self.failures),
        }


# ============================================================================
# Lookup
# ============================================================================

def _as_uuid(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def get_owned_document(owner, document_id):
    """Owner-scoped lookup; foreign and deleted documents look missing."""
    pk = _as_uuid(document_id)
    if pk is None:
        raise DocumentNotFound()
    try:
        return Document.objects.exclude(status=DocumentStatus.DELETED).get(pk=pk, owner=owner)
    except Document.DoesNotExist:
        raise DocumentNotFound()


def resolve_public_document(identifier):
    """
    Find an accessible document by public slug or id.

    Raises DocumentNotFound for every inaccessible case (missing, expired,
    inactive, processing, error, deleted) so callers cannot tell them apart.
    """
    pk = _as_uuid(identifier)
    lookup = {'pk': pk} if pk is not None else {'public_slug': identifier}
    try:
        document = Document.objects.get(**lookup)
    except Document.DoesNotExist:
        raise DocumentNotFound()

    if not document.is_accessible():
        raise DocumentNotFound()
    return document


# ============================================================================
# Create / update
# ============================================================================

def _original_entry(stored, upload):
    return {
        'url': stored.url,
        'public_id': stored.public_id,
        'resource_type': stored.resource_type,
        'file_name': upload.name,
        'file_size': upload.size,
        'mime_type': upload.content_type,
    }


def build_files(media_kind, stored, upload):
    """Canonical ``files`` structure for a freshly uploaded original."""
    original = _original_entry(stored, upload)
    if media_kind == MediaKind.PDF:
        return {'pdf': {'original': original, 'pages': []}}

    formats = {}
    subtype = (upload.content_type or '').split('/')[-1]
    if subtype in ('mp4', 'webm'):
        formats[subtype] = stored.url
    return {'video': {'original': original, 'formats': formats, 'thumbnail': None}}


def create_document(owner, *, upload, media_kind, title, description='',
                    allow_download=True, require_contact=False, expires_at=None,
                    password=''):
    """
    Register a document and push its file to the media store.

    The record starts in ``processing`` and becomes ``active`` once the
    upload is stored. If the upload fails, the record is removed and
    UploadFailed is raised.
    """
    document = Document(
        owner=owner,
        title=title,
        description=description or '',
        media_kind=media_kind,
        status=DocumentStatus.PROCESSING,
        original_name=upload.name,
        mime_type=upload.content_type or '',
        size_bytes=upload.size,
        allow_download=allow_download,
        require_contact=require_contact,
        expires_at=expires_at,
        schema_version=FILES_SCHEMA_VERSION,
    )
    document.set_viewer_password(password)
    document.save()

    resource_type = storage.RESOURCE_RAW if media_kind == MediaKind.PDF else storage.RESOURCE_VIDEO
    try:
        stored = storage.upload(
            upload,
            kind=resource_type,
            public_id=f'{document.id}_original',
            content_type=upload.content_type or 'application/octet-stream',
            length=upload.size,
        )
    except storage.MediaStoreError as e:
        document_id = document.id
        document.delete()
        log_domain_event(
            'document_upload_failed',
            entity_type='Document',
            entity_id=str(document_id),
            result='failure',
            media_kind=media_kind,
            error=str(e),
        )
        raise UploadFailed() from e

    document.files = build_files(media_kind, stored, upload)
    document.status = DocumentStatus.ACTIVE
    document.save(update_fields=['files', 'status', 'updated_at'])

    log_domain_event(
        'document_created',
        entity_type='Document',
        entity_id=str(document.id),
        entity_ids={'owner_id': str(owner.pk)},
        media_kind=media_kind,
        size_bytes=document.size_bytes,
    )
    return document


def set_page_hyperlinks(document, pages):
    """Replace the hyperlink overlays of a PDF document."""
    pdf = dict(document.files.get('pdf') or {})
    pdf['pages'] = sorted(
        ({'page': page['page'], 'hyperlinks': list(page.get('hyperlinks', []))} for page in pages),
        key=lambda page: page['page'],
    )
    files = dict(document.files)
    files['pdf'] = pdf
    document.files = files


# ============================================================================
# Delete
# ============================================================================

def cleanup_media(document):
    """
    Remove every remote object referenced by ``document``.

    Never raises for media store failures; they are logged and returned
    in the summary.
    """
    summary = CleanupSummary()
    grouped = defaultdict(list)
    for public_id, resource_type in document.media_references():
        grouped[resource_type].append(public_id)

    for resource_type, public_ids in grouped.items():
        summary.total_attempted += len(public_ids)
        try:
            if len(public_ids) == 1:
                storage.delete(public_ids[0], resource_type)
                failures = []
            else:
                failures = storage.bulk_delete(public_ids, resource_type)
        except storage.MediaStoreError as e:
            failures = [(public_id, str(e)) for public_id in public_ids]

        for public_id, error in failures:
            summary.add_failure(public_id, resource_type, error)
            log_media_cleanup_failure(document.id, public_id, resource_type, error)
        summary.deleted_files += len(public_ids) - len(failures)

    return summary


def delete_document(document):
    """Clean up media (best effort), then hard-delete the record and its views."""
    document_id = document.id
    with trace_span('document.delete', attributes={'document_id': str(document_id)}):
        summary = cleanup_media(document)
        document.delete()
    log_document_deleted(document_id, summary)
    return summary


def bulk_delete_documents(owner, document_ids):
    """
    Delete each document independently.

    Returns one ``{id, success, error?, cleanup?}`` entry per requested id;
    one failure never stops the batch.
    """
    results = []
    for document_id in document_ids:
        entry = {'id': str(document_id)}
        try:
            document = get_owned_document(owner, document_id)
            summary = delete_document(document)
        except DocumentNotFound:
            entry.update(success=False, error=NOT_FOUND_MESSAGE)
        except DatabaseError as e:
            logger.exception(
                'Bulk delete item failed',
                extra={'event': 'bulk_delete_item_failed', 'document_id': str(document_id)}
            )
            entry.update(success=False, error=str(e))
        else:
            entry.update(success=True, cleanup=summary.as_dict())
        results.append(entry)

    log_domain_event(
        'documents_bulk_deleted',
        entity_type='Document',
        entity_ids={'owner_id': str(owner.pk)},
        result='partial' if any(not r['success'] for r in results) else 'success',
        requested=len(results),
        succeeded=sum(1 for r in results if r['success']),
    )
    return results
