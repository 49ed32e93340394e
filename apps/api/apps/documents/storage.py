"""
Media store adapter (MinIO / S3 compatible).

Uploads document media, returns stable public identifiers and URLs and
removes objects when a document is deleted. Every call goes through an
HTTP pool with bounded connect/read timeouts and a bounded retry budget.
"""
import io
import time
from dataclasses import dataclass

import urllib3
from django.conf import settings
from minio import Minio
from minio.deleteobjects import DeleteObject
from minio.error import MinioException, S3Error

from apps.core.observability import get_sanitized_logger, metrics
from apps.core.observability.tracing import trace_span

logger = get_sanitized_logger(__name__)

RESOURCE_RAW = 'raw'
RESOURCE_VIDEO = 'video'
RESOURCE_IMAGE = 'image'
RESOURCE_TYPES = (RESOURCE_RAW, RESOURCE_VIDEO, RESOURCE_IMAGE)

# Missing objects are treated as already deleted.
MISSING_OBJECT_CODES = {'NoSuchKey', 'NoSuchObject'}

_TRANSPORT_ERRORS = (MinioException, urllib3.exceptions.HTTPError)


class MediaStoreError(Exception):
    """A media store call failed (after retries)."""

    def __init__(self, message, operation=None, public_id=None):
        super().__init__(message)
        self.operation = operation
        self.public_id = public_id


@dataclass(frozen=True)
class StoredObject:
    url: str
    public_id: str
    resource_type: str


def get_minio_client():
    """Get configured MinIO client with bounded network behaviour."""
    http_client = urllib3.PoolManager(
        timeout=urllib3.Timeout(
            connect=settings.MINIO_CONNECT_TIMEOUT,
            read=settings.MINIO_READ_TIMEOUT,
        ),
        retries=urllib3.Retry(
            total=settings.MINIO_MAX_RETRIES,
            backoff_factor=0.2,
            status_forcelist=[500, 502, 503, 504],
        ),
    )
    return Minio(
        settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_USE_SSL,
        http_client=http_client,
    )


def object_key(public_id: str, resource_type: str) -> str:
    if resource_type not in RESOURCE_TYPES:
        raise ValueError(f'Unknown resource type: {resource_type}')
    return f'{resource_type}/{public_id}'


def public_url(key: str) -> str:
    base = settings.MINIO_PUBLIC_URL.rstrip('/')
    return f'{base}/{settings.MINIO_MEDIA_BUCKET}/{key}'


def _record(operation, result, started):
    metrics.media_store_operations_total.labels(operation=operation, result=result).inc()
    metrics.media_store_duration_seconds.labels(operation=operation).observe(time.time() - started)


def upload(data, *, kind: str, public_id: str, content_type: str = 'application/octet-stream',
           length: int = None) -> StoredObject:
    """
    Upload ``data`` (bytes or a readable file object) under ``public_id``.

    Raises:
        MediaStoreError: the object could not be stored
    """
    key = object_key(public_id, kind)
    if isinstance(data, (bytes, bytearray)):
        stream, length = io.BytesIO(data), len(data)
    else:
        stream = data
        if length is None:
            length = data.size

    started = time.time()
    with trace_span('media_store.upload', kind='client', attributes={'public_id': public_id, 'resource_type': kind}):
        try:
            get_minio_client().put_object(
                settings.MINIO_MEDIA_BUCKET,
                key,
                stream,
                length,
                content_type=content_type,
            )
        except _TRANSPORT_ERRORS as e:
            _record('upload', 'failure', started)
            logger.error(
                'Media upload failed',
                extra={'event': 'media_upload_failed', 'public_id': public_id, 'error': str(e)}
            )
            raise MediaStoreError(f'Upload failed: {e}', operation='upload', public_id=public_id) from e

    _record('upload', 'success', started)
    return StoredObject(url=public_url(key), public_id=public_id, resource_type=kind)


def delete(public_id: str, resource_type: str) -> None:
    """
    Delete one object. A missing object counts as deleted.

    Raises:
        MediaStoreError: the store rejected or never answered the call
    """
    key = object_key(public_id, resource_type)
    started = time.time()
    try:
        get_minio_client().remove_object(settings.MINIO_MEDIA_BUCKET, key)
    except S3Error as e:
        if e.code in MISSING_OBJECT_CODES:
            _record('delete', 'missing', started)
            return
        _record('delete', 'failure', started)
        raise MediaStoreError(f'Delete failed: {e}', operation='delete', public_id=public_id) from e
    except _TRANSPORT_ERRORS as e:
        _record('delete', 'failure', started)
        raise MediaStoreError(f'Delete failed: {e}', operation='delete', public_id=public_id) from e
    _record('delete', 'success', started)


def bulk_delete(public_ids, resource_type: str):
    """
    Delete several objects of one resource type in a single request.

    Returns:
        list of ``(public_id, error_message)`` for objects that could not be
        removed; missing objects are not reported.

    Raises:
        MediaStoreError: the whole request failed
    """
    public_ids = list(public_ids)
    if not public_ids:
        return []

    keys = {object_key(public_id, resource_type): public_id for public_id in public_ids}
    started = time.time()
    failures = []
    with trace_span('media_store.bulk_delete', kind='client', attributes={'count': len(keys), 'resource_type': resource_type}):
        try:
            # remove_objects is lazy: errors only surface while iterating
            errors = get_minio_client().remove_objects(
                settings.MINIO_MEDIA_BUCKET,
                [DeleteObject(key) for key in keys],
            )
            for error in errors:
                if error.code in MISSING_OBJECT_CODES:
                    continue
                failures.append((keys.get(error.name, error.name), f'{error.code}: {error.message}'))
        except _TRANSPORT_ERRORS as e:
            _record('bulk_delete', 'failure', started)
            raise MediaStoreError(f'Bulk delete failed: {e}', operation='bulk_delete') from e

    _record('bulk_delete', 'partial' if failures else 'success', started)
    return failures


def bucket_reachable() -> bool:
    try:
        return get_minio_client().bucket_exists(settings.MINIO_MEDIA_BUCKET)
    except _TRANSPORT_ERRORS as e:
        raise MediaStoreError(f'Bucket check failed: {e}', operation='bucket_exists') from e
