"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Anonymous and owner-authenticated API clients
- Document and View factories
- A patched media store client (no network)
"""
import uuid
from unittest.mock import MagicMock, patch

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from apps.analytics.models import View
from apps.authz.models import User
from apps.documents.models import Document, DocumentStatus, MediaKind


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture(autouse=True)
def clear_throttle_cache():
    """Throttle counters live in the cache; every test starts clean."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Unauthenticated DRF API client (public viewer)."""
    return APIClient()


@pytest.fixture
def owner(db):
    return User.objects.create_user(
        email='owner@test.com',
        password='testpass123',
        first_name='Olivia',
        last_name='Owner',
    )


@pytest.fixture
def other_owner(db):
    return User.objects.create_user(email='other@test.com', password='testpass123')


@pytest.fixture
def owner_client(owner):
    client = APIClient()
    client.force_authenticate(user=owner)
    return client


@pytest.fixture
def other_owner_client(other_owner):
    client = APIClient()
    client.force_authenticate(user=other_owner)
    return client


# ============================================================================
# Media store
# ============================================================================

@pytest.fixture
def media_store():
    """
    MagicMock standing in for the MinIO client.

    Tests configure side effects on ``put_object`` / ``remove_object`` /
    ``remove_objects`` to simulate store failures.
    """
    client = MagicMock()
    client.remove_objects.return_value = []
    client.bucket_exists.return_value = True
    with patch('apps.documents.storage.get_minio_client', return_value=client):
        yield client


# ============================================================================
# Model factories
# ============================================================================

def _original(document_id, resource_type, file_name, mime_type):
    public_id = f'{document_id}_original'
    return {
        'url': f'http://media.test/flipbook-test/{resource_type}/{public_id}',
        'public_id': public_id,
        'resource_type': resource_type,
        'file_name': file_name,
        'file_size': 2048,
        'mime_type': mime_type,
    }


@pytest.fixture
def document_factory(owner):
    """
    Create an active document with a stored original.

    Usage:
        document = document_factory(title='Brochure', require_contact=True)
        video = document_factory(media_kind=MediaKind.VIDEO)
    """
    def make(owner=owner, media_kind=MediaKind.PDF, password='', **fields):
        document = Document(
            owner=owner,
            title=fields.pop('title', 'Spring Brochure'),
            media_kind=media_kind,
            status=fields.pop('status', DocumentStatus.ACTIVE),
            **fields,
        )
        if 'files' not in fields:
            if media_kind == MediaKind.PDF:
                document.files = {
                    'pdf': {
                        'original': _original(document.id, 'raw', 'brochure.pdf', 'application/pdf'),
                        'pages': [],
                    }
                }
            else:
                original = _original(document.id, 'video', 'promo.mp4', 'video/mp4')
                document.files = {
                    'video': {
                        'original': original,
                        'formats': {'mp4': original['url']},
                        'thumbnail': None,
                    }
                }
        document.set_viewer_password(password)
        document.save()
        return document
    return make


@pytest.fixture
def view_factory():
    """
    Create a ledger View row directly (no counters touched).

    Usage:
        view = view_factory(document, ip_address='198.51.100.7', is_unique=False)
    """
    def make(document, **fields):
        fields.setdefault('session_id', str(uuid.uuid4()))
        fields.setdefault('ip_address', '203.0.113.10')
        return View.objects.create(document=document, **fields)
    return make
