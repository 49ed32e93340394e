"""
Tests for the owner document API.

Covers upload validation, owner isolation, settings updates, media
cleanup on delete (including media store failures) and bulk delete.
"""
import uuid

import pytest
import urllib3
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from rest_framework import status

from apps.analytics.models import View
from apps.documents.models import Document, DocumentStatus, MediaKind

LIST_URL = '/api/v1/documents/'


def detail_url(document_id):
    return f'/api/v1/documents/{document_id}/'


def pdf_upload(name='brochure.pdf', content_type='application/pdf'):
    return SimpleUploadedFile(name, b'%PDF-1.4 flipbook test', content_type=content_type)


def video_upload(name='promo.mp4', content_type='video/mp4'):
    return SimpleUploadedFile(name, b'\x00\x00\x00\x18ftypmp42', content_type=content_type)


@pytest.mark.django_db
class TestDocumentUpload:

    def test_upload_pdf(self, owner_client, media_store):
        """
        GIVEN an authenticated owner
        WHEN they upload a PDF
        THEN the document is active with a versioned files structure and a public URL
        """
        response = owner_client.post(
            LIST_URL,
            {'title': 'Spring Brochure', 'pdf_file': pdf_upload(), 'require_contact': 'true'},
            format='multipart',
        )

        assert response.status_code == status.HTTP_201_CREATED, response.data
        data = response.data
        assert data['status'] == DocumentStatus.ACTIVE
        assert data['media_kind'] == MediaKind.PDF
        assert data['require_contact'] is True
        assert data['schema_version'] == 1
        original = data['files']['pdf']['original']
        assert original['public_id'] == f"{data['id']}_original"
        assert original['resource_type'] == 'raw'
        assert original['url'] == f"http://media.test/flipbook-test/raw/{data['id']}_original"
        assert data['public_url'] == f"http://viewer.test/viewer/{data['public_slug']}"
        assert data['stats']['total_views'] == 0
        media_store.put_object.assert_called_once()

    def test_upload_video_records_format(self, owner_client, media_store):
        response = owner_client.post(
            LIST_URL,
            {'title': 'Promo', 'video_file': video_upload()},
            format='multipart',
        )

        assert response.status_code == status.HTTP_201_CREATED, response.data
        video = response.data['files']['video']
        assert video['original']['resource_type'] == 'video'
        assert video['formats'] == {'mp4': video['original']['url']}

    def test_upload_with_password_hides_hash(self, owner_client, media_store):
        response = owner_client.post(
            LIST_URL,
            {'title': 'Private', 'pdf_file': pdf_upload(), 'password': 's3cret'},
            format='multipart',
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['password_protected'] is True
        assert 'password' not in response.data
        assert Document.objects.get(pk=response.data['id']).check_viewer_password('s3cret')

    def test_both_files_rejected(self, owner_client, media_store):
        response = owner_client.post(
            LIST_URL,
            {'title': 'Both', 'pdf_file': pdf_upload(), 'video_file': video_upload()},
            format='multipart',
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_no_file_rejected(self, owner_client, media_store):
        response = owner_client.post(LIST_URL, {'title': 'Empty'}, format='multipart')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_wrong_mime_type_rejected(self, owner_client, media_store):
        response = owner_client.post(
            LIST_URL,
            {'title': 'Not a PDF', 'pdf_file': pdf_upload('notes.txt', 'text/plain')},
            format='multipart',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'pdf_file' in response.data
        media_store.put_object.assert_not_called()

    @override_settings(FLIPBOOK_MAX_UPLOAD_BYTES=10)
    def test_oversized_upload_rejected(self, owner_client, media_store):
        response = owner_client.post(
            LIST_URL,
            {'title': 'Huge', 'pdf_file': pdf_upload()},
            format='multipart',
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_media_store_failure_removes_record(self, owner_client, media_store):
        """
        GIVEN a media store that fails the upload
        WHEN an owner uploads a PDF
        THEN the API answers 502 and no half-created document remains
        """
        media_store.put_object.side_effect = urllib3.exceptions.HTTPError('connection refused')

        response = owner_client.post(
            LIST_URL,
            {'title': 'Doomed', 'pdf_file': pdf_upload()},
            format='multipart',
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.data == {'error': 'Media upload failed, please retry'}
        assert Document.objects.count() == 0

    def test_unauthenticated_rejected(self, api_client):
        response = api_client.get(LIST_URL)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestOwnerIsolation:

    def test_list_shows_only_own_non_deleted_documents(self, owner_client, other_owner, document_factory):
        mine = document_factory(title='Mine')
        document_factory(title='Gone', status=DocumentStatus.DELETED)
        document_factory(owner=other_owner, title='Theirs')

        response = owner_client.get(LIST_URL)

        assert response.status_code == status.HTTP_200_OK
        assert [d['id'] for d in response.data['results']] == [str(mine.id)]

    def test_foreign_document_is_not_found(self, other_owner_client, document_factory):
        document = document_factory()

        response = other_owner_client.get(detail_url(document.id))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data == {'error': 'Document not found'}

    def test_foreign_document_cannot_be_deleted(self, other_owner_client, document_factory, media_store):
        document = document_factory()

        response = other_owner_client.delete(detail_url(document.id))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert Document.objects.filter(pk=document.pk).exists()
        media_store.remove_object.assert_not_called()

    def test_malformed_id_is_not_found(self, owner_client):
        response = owner_client.get(detail_url('not-a-uuid'))
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestDocumentUpdate:

    def test_update_settings(self, owner_client, document_factory):
        document = document_factory()

        response = owner_client.patch(
            detail_url(document.id),
            {'title': 'Renamed', 'allow_download': False, 'status': 'inactive'},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK, response.data
        document.refresh_from_db()
        assert document.title == 'Renamed'
        assert document.allow_download is False
        assert document.status == DocumentStatus.INACTIVE

    def test_status_cannot_be_set_to_deleted(self, owner_client, document_factory):
        document = document_factory()

        response = owner_client.patch(detail_url(document.id), {'status': 'deleted'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_set_and_clear_password(self, owner_client, document_factory):
        document = document_factory()

        response = owner_client.patch(detail_url(document.id), {'password': 'open-sesame'}, format='json')
        assert response.data['password_protected'] is True

        response = owner_client.patch(detail_url(document.id), {'password': ''}, format='json')
        assert response.data['password_protected'] is False

    def test_page_hyperlinks(self, owner_client, document_factory):
        document = document_factory()
        pages = [
            {'page': 3, 'hyperlinks': [{'target': 'https://example.com', 'x': 10, 'y': 20, 'width': 30, 'height': 5}]},
            {'page': 1, 'hyperlinks': [{'target': 'sales@example.com', 'kind': 'email', 'x': 0, 'y': 0, 'width': 50, 'height': 10}]},
        ]

        response = owner_client.patch(detail_url(document.id), {'pages': pages}, format='json')

        assert response.status_code == status.HTTP_200_OK, response.data
        stored = response.data['files']['pdf']['pages']
        assert [p['page'] for p in stored] == [1, 3]
        assert stored[0]['hyperlinks'][0]['kind'] == 'email'
        assert stored[1]['hyperlinks'][0]['kind'] == 'url'
        assert response.data['files']['pdf']['original']['public_id'] == f'{document.id}_original'

    def test_duplicate_pages_rejected(self, owner_client, document_factory):
        document = document_factory()
        page = {'page': 1, 'hyperlinks': []}

        response = owner_client.patch(detail_url(document.id), {'pages': [page, page]}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_hyperlinks_rejected_on_video(self, owner_client, document_factory):
        document = document_factory(media_kind=MediaKind.VIDEO)

        response = owner_client.patch(
            detail_url(document.id),
            {'pages': [{'page': 1, 'hyperlinks': []}]},
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestDocumentDelete:

    def test_delete_cleans_up_media_and_views(self, owner_client, document_factory, view_factory, media_store):
        document = document_factory()
        view_factory(document)

        response = owner_client.delete(detail_url(document.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['deleted'] is True
        assert response.data['cleanup'] == {
            'deleted_files': 1,
            'failed_files': 0,
            'total_attempted': 1,
            'failures': [],
        }
        media_store.remove_object.assert_called_once_with('flipbook-test', f'raw/{document.id}_original')
        assert not Document.objects.filter(pk=document.pk).exists()
        assert View.objects.count() == 0

    def test_delete_survives_media_store_failure(self, owner_client, document_factory, media_store):
        """
        GIVEN a media store that cannot delete the document's file
        WHEN the owner deletes the document
        THEN the record is removed and the failure is listed in the summary
        """
        document = document_factory()
        media_store.remove_object.side_effect = urllib3.exceptions.HTTPError('timeout')

        response = owner_client.delete(detail_url(document.id))

        assert response.status_code == status.HTTP_200_OK
        cleanup = response.data['cleanup']
        assert cleanup['deleted_files'] == 0
        assert cleanup['failed_files'] == 1
        assert cleanup['total_attempted'] == 1
        assert cleanup['failures'][0]['public_id'] == f'{document.id}_original'
        assert cleanup['failures'][0]['resource_type'] == 'raw'
        assert not Document.objects.filter(pk=document.pk).exists()

    def test_bulk_delete_reports_each_item(self, owner_client, other_owner, document_factory, media_store):
        mine = document_factory()
        also_mine = document_factory(media_kind=MediaKind.VIDEO)
        theirs = document_factory(owner=other_owner)
        missing = uuid.uuid4()

        response = owner_client.post(
            f'{LIST_URL}bulk-delete/',
            {'ids': [str(mine.id), str(also_mine.id), str(theirs.id), str(missing)]},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['deleted'] == 2
        assert response.data['failed'] == 2
        by_id = {r['id']: r for r in response.data['results']}
        assert by_id[str(mine.id)]['success'] is True
        assert by_id[str(theirs.id)] == {'id': str(theirs.id), 'success': False, 'error': 'Document not found'}
        assert Document.objects.filter(pk=theirs.pk).exists()
        assert not Document.objects.filter(pk__in=[mine.pk, also_mine.pk]).exists()

    def test_bulk_delete_requires_ids(self, owner_client):
        response = owner_client.post(f'{LIST_URL}bulk-delete/', {'ids': []}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestDocumentActions:

    def test_stream_redirects_to_media(self, owner_client, document_factory):
        document = document_factory()

        response = owner_client.get(f'{detail_url(document.id)}stream/')

        assert response.status_code == status.HTTP_302_FOUND
        assert response['Location'] == document.files['pdf']['original']['url']

    def test_recalculate_stats(self, owner_client, document_factory, view_factory):
        document = document_factory()
        view_factory(document)
        view_factory(document, is_unique=False)

        response = owner_client.post(f'{detail_url(document.id)}recalculate-stats/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['stats']['total_views'] == 2
        assert response.data['stats']['unique_views'] == 1
        assert response.data['drift']['total_views'] == {'cached': 0, 'recomputed': 2}
