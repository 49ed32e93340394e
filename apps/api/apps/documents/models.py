"""
Documents models: document

One record per shared flipbook (PDF or video). File references live in a
single versioned nested structure (``files``); aggregate stats are a cache
of the view ledger in ``apps.analytics`` and can always be rebuilt from it.
"""
import secrets
import string
import uuid

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.utils import timezone


SLUG_ALPHABET = string.ascii_letters + string.digits + '_-'
SLUG_LENGTH = 10

# Bump when the layout of Document.files changes (and add a data migration).
FILES_SCHEMA_VERSION = 1


def generate_public_slug():
    return ''.join(secrets.choice(SLUG_ALPHABET) for _ in range(SLUG_LENGTH))


class DocumentStatus(models.TextChoices):
    PROCESSING = 'processing', 'Processing'
    ACTIVE = 'active', 'Active'
    INACTIVE = 'inactive', 'Inactive'
    ERROR = 'error', 'Error'
    DELETED = 'deleted', 'Deleted'


class MediaKind(models.TextChoices):
    PDF = 'pdf', 'PDF'
    VIDEO = 'video', 'Video'


class HyperlinkKind(models.TextChoices):
    URL = 'url', 'URL'
    EMAIL = 'email', 'Email'
    INTERNAL = 'internal', 'Internal page'


class Document(models.Model):
    """
    Shared document.

    ``files`` layout (schema_version 1):

        {
          "pdf": {
            "original": {url, public_id, resource_type, file_name, file_size, mime_type},
            "pages": [{"page": 1, "hyperlinks": [{label, target, x, y, width, height, kind}]}]
          },
          "video": {
            "original": {url, public_id, resource_type, file_name, file_size, mime_type},
            "formats": {"mp4": url, "webm": url, "mobile": url},
            "thumbnail": url
          }
        }

    Only the key matching ``media_kind`` is present.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='documents',
    )

    title = models.CharField(max_length=200)
    description = models.TextField(max_length=1000, blank=True, default='')
    public_slug = models.CharField(
        max_length=16,
        unique=True,
        default=generate_public_slug,
        editable=False,
        help_text="Random URL-safe identifier used in public viewer links"
    )

    media_kind = models.CharField(max_length=16, choices=MediaKind.choices)
    status = models.CharField(
        max_length=16,
        choices=DocumentStatus.choices,
        default=DocumentStatus.PROCESSING,
    )
    files = models.JSONField(default=dict, blank=True)
    schema_version = models.PositiveSmallIntegerField(default=FILES_SCHEMA_VERSION)

    original_name = models.CharField(max_length=255, blank=True, default='')
    mime_type = models.CharField(max_length=128, blank=True, default='')
    size_bytes = models.BigIntegerField(default=0)

    # Viewer settings
    allow_download = models.BooleanField(default=True)
    require_contact = models.BooleanField(
        default=False,
        help_text="Viewers must submit name + mobile before reading"
    )
    expires_at = models.DateTimeField(
        blank=True,
        null=True,
        help_text="Document becomes inaccessible after this instant"
    )
    password = models.CharField(
        max_length=128,
        blank=True,
        default='',
        help_text="Hashed viewer password (empty = not protected)"
    )

    # Aggregate stats (cache of the view ledger)
    total_views = models.PositiveIntegerField(default=0)
    unique_views = models.PositiveIntegerField(default=0)
    total_downloads = models.PositiveIntegerField(default=0)
    contacts_collected = models.PositiveIntegerField(default=0)
    last_viewed_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    STATS_FIELDS = ('total_views', 'unique_views', 'total_downloads', 'contacts_collected')

    class Meta:
        db_table = 'flipbook_document'
        ordering = ['-created_at']
        verbose_name = 'Document'
        verbose_name_plural = 'Documents'
        indexes = [
            models.Index(fields=['owner', 'status'], name='idx_document_owner_status'),
            models.Index(fields=['status'], name='idx_document_status'),
        ]

    def __str__(self):
        return f'{self.title} ({self.public_slug})'

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------
    def is_expired(self, now=None):
        if self.expires_at is None:
            return False
        return (now or timezone.now()) > self.expires_at

    def is_accessible(self, now=None):
        """Public viewers may open the document."""
        return self.status == DocumentStatus.ACTIVE and not self.is_expired(now)

    @property
    def password_protected(self):
        return bool(self.password)

    def set_viewer_password(self, raw_password):
        self.password = make_password(raw_password) if raw_password else ''

    def check_viewer_password(self, raw_password):
        if not self.password:
            return True
        if not raw_password:
            return False
        return check_password(raw_password, self.password)

    @property
    def public_url(self):
        base = settings.FLIPBOOK_FRONTEND_URL.rstrip('/')
        return f'{base}/viewer/{self.public_slug}'

    # ------------------------------------------------------------------
    # File references
    # ------------------------------------------------------------------
    def media_references(self):
        """
        Every remote object this document points at, as
        ``(public_id, resource_type)`` pairs, without duplicates.
        """
        refs = []
        for kind in (MediaKind.PDF, MediaKind.VIDEO):
            original = (self.files.get(kind) or {}).get('original') or {}
            if original.get('public_id'):
                ref = (original['public_id'], original.get('resource_type') or 'raw')
                if ref not in refs:
                    refs.append(ref)
        return refs

    def primary_media_url(self):
        for kind in (MediaKind.VIDEO, MediaKind.PDF):
            original = (self.files.get(kind) or {}).get('original') or {}
            if original.get('url'):
                return original['url']
        return None

    def download_urls(self):
        return {
            kind.value: ((self.files.get(kind) or {}).get('original') or {}).get('url')
            for kind in (MediaKind.PDF, MediaKind.VIDEO)
        }

    @property
    def stats(self):
        data = {field: getattr(self, field) for field in self.STATS_FIELDS}
        data['last_viewed_at'] = self.last_viewed_at
        return data
