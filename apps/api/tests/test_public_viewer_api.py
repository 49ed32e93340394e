"""
Tests for the public viewer API (/api/public/).

Verifies that:
1. Every inaccessible document answers the same 404 body
2. View tracking, contact capture, downloads, unlocks and events work
   end to end without authentication
3. Password protection and download permissions are enforced
4. Contact submissions are rate limited per IP

Run: pytest apps/api/tests/test_public_viewer_api.py -v
"""
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework import status

from apps.analytics.models import View, ViewEventKind
from apps.documents.models import DocumentStatus, MediaKind
from apps.viewer.throttles import ContactBurstThrottle

NOT_FOUND = {'error': 'Document not found'}


def doc_url(identifier, action=''):
    return f'/api/public/document/{identifier}/{action + "/" if action else ""}'


def track(client, document, ip='198.51.100.1', **body):
    return client.post(doc_url(document.public_slug, 'view'), body, format='json', REMOTE_ADDR=ip)


@pytest.mark.django_db
class TestPublicDocument:

    def test_lookup_by_slug_and_id(self, api_client, document_factory):
        document = document_factory(require_contact=True)

        by_slug = api_client.get(doc_url(document.public_slug))
        by_id = api_client.get(doc_url(document.id))

        assert by_slug.status_code == by_id.status_code == status.HTTP_200_OK
        assert by_slug.data['id'] == by_id.data['id'] == str(document.id)
        assert by_slug.data['require_contact'] is True
        assert by_slug.data['is_video'] is False
        assert by_slug.data['files'] == document.files
        assert 'password' not in by_slug.data
        assert 'total_views' not in by_slug.data

    @pytest.mark.parametrize('state', [
        {'status': DocumentStatus.INACTIVE},
        {'status': DocumentStatus.PROCESSING},
        {'status': DocumentStatus.ERROR},
        {'status': DocumentStatus.DELETED},
        {'expires_at': 'past'},
    ])
    def test_inaccessible_documents_look_missing(self, api_client, document_factory, state):
        """
        GIVEN a document that exists but is not accessible
        WHEN a viewer opens or tracks it
        THEN the answer is identical to a document that never existed
        """
        if state.get('expires_at') == 'past':
            state = {'expires_at': timezone.now() - timedelta(minutes=1)}
        document = document_factory(**state)

        for response in (
            api_client.get(doc_url(document.public_slug)),
            api_client.post(doc_url(document.public_slug, 'view'), {}, format='json'),
            api_client.get(doc_url(document.public_slug, 'download')),
            api_client.get(doc_url('no-such-slug')),
        ):
            assert response.status_code == status.HTTP_404_NOT_FOUND
            assert response.data == NOT_FOUND

    def test_future_expiry_is_accessible(self, api_client, document_factory):
        document = document_factory(expires_at=timezone.now() + timedelta(days=1))
        assert api_client.get(doc_url(document.public_slug)).status_code == status.HTTP_200_OK


@pytest.mark.django_db
class TestTrackView:

    def test_new_visit(self, api_client, document_factory):
        document = document_factory(require_contact=True)

        response = track(api_client, document, location={'country': 'IN', 'city': 'Pune'})

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['require_contact'] is True
        view = View.objects.get(session_id=response.data['session_id'])
        assert view.ip_address == '198.51.100.1'
        assert view.country == 'IN'
        document.refresh_from_db()
        assert (document.total_views, document.unique_views) == (1, 1)

    def test_session_continuation(self, api_client, document_factory):
        document = document_factory()
        session_id = track(api_client, document).data['session_id']

        response = track(api_client, document, session_id=session_id)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['session_id'] == session_id
        assert response.data['is_new_session'] is False
        document.refresh_from_db()
        assert document.total_views == 1

    def test_forwarded_address_is_used(self, api_client, document_factory):
        document = document_factory()

        response = api_client.post(
            doc_url(document.public_slug, 'view'),
            {},
            format='json',
            HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1',
        )

        assert View.objects.get(session_id=response.data['session_id']).ip_address == '203.0.113.7'

    def test_invalid_location_rejected(self, api_client, document_factory):
        document = document_factory()

        response = track(api_client, document, location={'latitude': 500})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert View.objects.count() == 0


@pytest.mark.django_db
class TestContactSubmission:

    def test_end_to_end_two_sessions(self, api_client, document_factory):
        """
        GIVEN two sessions of one document from two addresses
        WHEN they submit "Ann"/"555" and "ann"/"555"
        THEN the document shows 2 views, 1 unique view and 1 contact
        """
        document = document_factory(require_contact=True)
        s1 = track(api_client, document, ip='198.51.100.1').data['session_id']
        s2 = track(api_client, document, ip='198.51.100.2').data['session_id']

        first = api_client.post(
            doc_url(document.public_slug, 'contact'),
            {'session_id': s1, 'name': 'Ann', 'mobile': '555'},
            format='json',
        )
        second = api_client.post(
            doc_url(document.public_slug, 'contact'),
            {'session_id': s2, 'name': 'ann', 'mobile': '555'},
            format='json',
        )

        assert first.status_code == second.status_code == status.HTTP_200_OK
        assert first.data['is_new_contact'] is True
        assert second.data['is_new_contact'] is False
        document.refresh_from_db()
        assert (document.total_views, document.unique_views, document.contacts_collected) == (2, 1, 1)

    def test_contact_clears_require_contact_for_session(self, api_client, document_factory):
        document = document_factory(require_contact=True)
        session_id = track(api_client, document).data['session_id']
        api_client.post(
            doc_url(document.public_slug, 'contact'),
            {'session_id': session_id, 'name': 'Ann', 'mobile': '555'},
            format='json',
        )

        response = track(api_client, document, session_id=session_id)

        assert response.data['require_contact'] is False

    @pytest.mark.parametrize('missing', ['session_id', 'name', 'mobile'])
    def test_missing_field_is_rejected_without_side_effects(self, api_client, document_factory, missing):
        document = document_factory()
        session_id = track(api_client, document).data['session_id']
        body = {'session_id': session_id, 'name': 'Ann', 'mobile': '555'}
        del body[missing]

        response = api_client.post(doc_url(document.public_slug, 'contact'), body, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert missing in response.data
        assert View.objects.get(session_id=session_id).submitted_name == ''

    def test_unknown_session_is_not_found(self, api_client, document_factory):
        document = document_factory()

        response = api_client.post(
            doc_url(document.public_slug, 'contact'),
            {'session_id': 'never-seen', 'name': 'Ann', 'mobile': '555'},
            format='json',
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data == NOT_FOUND


@pytest.mark.django_db
class TestDownload:

    def test_download_returns_files_and_counts(self, api_client, document_factory):
        document = document_factory()
        session_id = track(api_client, document).data['session_id']

        response = api_client.get(doc_url(document.public_slug, 'download'), {'session_id': session_id})

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'files': {'pdf': document.files['pdf']['original']['url'], 'video': None}}
        document.refresh_from_db()
        assert document.total_downloads == 1

    def test_download_not_allowed(self, api_client, document_factory):
        document = document_factory(allow_download=False)

        response = api_client.get(doc_url(document.public_slug, 'download'))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data == {'error': 'Downloads are not allowed for this document'}
        document.refresh_from_db()
        assert document.total_downloads == 0


@pytest.mark.django_db
class TestPasswordProtection:

    def test_metadata_withholds_files_without_password(self, api_client, document_factory):
        document = document_factory(password='open-sesame')

        locked = api_client.get(doc_url(document.public_slug))
        unlocked = api_client.get(doc_url(document.public_slug), {'password': 'open-sesame'})

        assert locked.data['password_protected'] is True
        assert locked.data['files'] is None
        assert unlocked.data['files'] == document.files

    @pytest.mark.parametrize('password', [None, 'wrong'])
    def test_view_download_stream_require_password(self, api_client, document_factory, password):
        document = document_factory(password='open-sesame')
        query = {'password': password} if password else {}

        responses = [
            api_client.post(doc_url(document.public_slug, 'view'), query, format='json'),
            api_client.get(doc_url(document.public_slug, 'download'), query),
            api_client.get(doc_url(document.public_slug, 'stream'), query),
        ]

        for response in responses:
            assert response.status_code == status.HTTP_403_FORBIDDEN
            assert response.data == {'error': 'Password required', 'password_required': True}
        assert View.objects.count() == 0

    def test_password_header_unlocks_view(self, api_client, document_factory):
        document = document_factory(password='open-sesame')

        response = api_client.post(
            doc_url(document.public_slug, 'view'),
            {},
            format='json',
            HTTP_X_DOCUMENT_PASSWORD='open-sesame',
        )

        assert response.status_code == status.HTTP_201_CREATED


@pytest.mark.django_db
class TestVideoUnlockAndEvents:

    def test_unlock_video_with_mobile(self, api_client, document_factory):
        document = document_factory(media_kind=MediaKind.VIDEO)
        session_id = track(api_client, document).data['session_id']

        response = api_client.post(
            '/api/public/unlock-video/',
            {'document_id': str(document.id), 'session_id': session_id, 'mobile': '9876543210'},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        view = View.objects.get(session_id=session_id)
        assert view.video_unlocked is True
        assert view.submitted_mobile == '9876543210'
        document.refresh_from_db()
        assert document.total_views == 1

    def test_unlock_requires_document_id(self, api_client):
        response = api_client.post('/api/public/unlock-video/', {'mobile': '555'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'document_id' in response.data

    def test_unlock_unknown_document(self, api_client):
        response = api_client.post('/api/public/unlock-video/', {'document_id': 'nope'}, format='json')
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_page_turn_event(self, api_client, document_factory):
        document = document_factory()
        session_id = track(api_client, document).data['session_id']

        response = api_client.post(
            doc_url(document.public_slug, 'event'),
            {'session_id': session_id, 'kind': 'page_turn', 'page': 4},
            format='json',
        )

        assert response.status_code == status.HTTP_201_CREATED
        view = View.objects.get(session_id=session_id)
        assert view.events.get(kind=ViewEventKind.PAGE_TURN).payload == {'page': 4}

    def test_page_turn_requires_page(self, api_client, document_factory):
        document = document_factory()
        session_id = track(api_client, document).data['session_id']

        response = api_client.post(
            doc_url(document.public_slug, 'event'),
            {'session_id': session_id, 'kind': 'page_turn'},
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_stream_redirects(self, api_client, document_factory):
        document = document_factory(media_kind=MediaKind.VIDEO)

        response = api_client.get(doc_url(document.public_slug, 'stream'))

        assert response.status_code == status.HTTP_302_FOUND
        assert response['Location'] == document.files['video']['original']['url']


@pytest.mark.django_db
class TestContactThrottling:

    def test_burst_limit_returns_429(self, api_client, document_factory, monkeypatch):
        """
        GIVEN a burst limit of 2 contact submissions per minute
        WHEN one address submits a third time
        THEN the third request is throttled and nothing is written
        """
        monkeypatch.setattr(ContactBurstThrottle, 'rate', '2/min', raising=False)
        document = document_factory()
        session_id = track(api_client, document).data['session_id']
        url = doc_url(document.public_slug, 'contact')

        for i in range(2):
            response = api_client.post(url, {'session_id': session_id, 'name': f'Ann {i}', 'mobile': '555'}, format='json')
            assert response.status_code == status.HTTP_200_OK

        response = api_client.post(url, {'session_id': session_id, 'name': 'Ann 9', 'mobile': '555'}, format='json')

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert 'Retry-After' in response
        assert View.objects.get(session_id=session_id).submitted_name == 'Ann 1'

    def test_limit_is_per_address(self, api_client, document_factory, monkeypatch):
        monkeypatch.setattr(ContactBurstThrottle, 'rate', '1/min', raising=False)
        document = document_factory()
        url = doc_url(document.public_slug, 'contact')
        first = track(api_client, document, ip='198.51.100.1').data['session_id']
        second = track(api_client, document, ip='198.51.100.2').data['session_id']

        a = api_client.post(url, {'session_id': first, 'name': 'Ann', 'mobile': '555'}, format='json', REMOTE_ADDR='198.51.100.1')
        b = api_client.post(url, {'session_id': second, 'name': 'Bob', 'mobile': '777'}, format='json', REMOTE_ADDR='198.51.100.2')

        assert a.status_code == b.status_code == status.HTTP_200_OK
