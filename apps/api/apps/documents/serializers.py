"""
Document serializers.
"""
from django.conf import settings
from rest_framework import serializers

from .models import Document, DocumentStatus, HyperlinkKind, MediaKind


PDF_MIME_TYPES = ['application/pdf', 'application/x-pdf']


class HyperlinkSerializer(serializers.Serializer):
    """Clickable overlay on a PDF page; coordinates are page percentages."""
    label = serializers.CharField(max_length=200, allow_blank=True, required=False, default='')
    target = serializers.CharField(max_length=2048)
    x = serializers.FloatField(min_value=0, max_value=100)
    y = serializers.FloatField(min_value=0, max_value=100)
    width = serializers.FloatField(min_value=0, max_value=100)
    height = serializers.FloatField(min_value=0, max_value=100)
    kind = serializers.ChoiceField(choices=HyperlinkKind.choices, default=HyperlinkKind.URL)


class PageHyperlinksSerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1)
    hyperlinks = HyperlinkSerializer(many=True)


class DocumentSerializer(serializers.ModelSerializer):
    """Owner-facing representation."""
    public_url = serializers.CharField(read_only=True)
    password_protected = serializers.BooleanField(read_only=True)
    is_accessible = serializers.SerializerMethodField()
    stats = serializers.SerializerMethodField()

    class Meta:
        model = Document
        fields = [
            'id',
            'title',
            'description',
            'public_slug',
            'public_url',
            'media_kind',
            'status',
            'files',
            'schema_version',
            'original_name',
            'mime_type',
            'size_bytes',
            'allow_download',
            'require_contact',
            'expires_at',
            'password_protected',
            'is_accessible',
            'stats',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_is_accessible(self, obj):
        return obj.is_accessible()

    def get_stats(self, obj):
        return {
            'total_views': obj.total_views,
            'unique_views': obj.unique_views,
            'total_downloads': obj.total_downloads,
            'contacts_collected': obj.contacts_collected,
            'last_viewed_at': obj.last_viewed_at,
        }


class DocumentCreateSerializer(serializers.Serializer):
    """Multipart upload: exactly one of pdf_file / video_file."""
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')
    pdf_file = serializers.FileField(required=False)
    video_file = serializers.FileField(required=False)
    allow_download = serializers.BooleanField(required=False, default=True)
    require_contact = serializers.BooleanField(required=False, default=False)
    expires_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    password = serializers.CharField(
        max_length=128, required=False, allow_blank=True, default='', write_only=True
    )

    def _check_size(self, upload):
        limit = settings.FLIPBOOK_MAX_UPLOAD_BYTES
        if upload.size > limit:
            raise serializers.ValidationError(
                f'File size exceeds maximum of {limit // (1024 * 1024)}MB'
            )

    def validate_pdf_file(self, upload):
        self._check_size(upload)
        if upload.content_type not in PDF_MIME_TYPES:
            raise serializers.ValidationError('Only PDF files are allowed')
        return upload

    def validate_video_file(self, upload):
        self._check_size(upload)
        if not (upload.content_type or '').startswith('video/'):
            raise serializers.ValidationError('Only video files are allowed')
        return upload

    def validate(self, attrs):
        pdf_file = attrs.get('pdf_file')
        video_file = attrs.get('video_file')
        if bool(pdf_file) == bool(video_file):
            raise serializers.ValidationError('Upload exactly one of pdf_file or video_file')

        if pdf_file:
            attrs['media_kind'] = MediaKind.PDF
            attrs['upload'] = attrs.pop('pdf_file')
            attrs.pop('video_file', None)
        else:
            attrs['media_kind'] = MediaKind.VIDEO
            attrs['upload'] = attrs.pop('video_file')
            attrs.pop('pdf_file', None)
        return attrs


class DocumentUpdateSerializer(serializers.ModelSerializer):
    """
    Owner edits. ``password`` is write-only (empty string removes it);
    ``pages`` replaces PDF hyperlink overlays.
    """
    status = serializers.ChoiceField(
        choices=[DocumentStatus.ACTIVE, DocumentStatus.INACTIVE],
        required=False,
    )
    password = serializers.CharField(max_length=128, required=False, allow_blank=True, write_only=True)
    pages = PageHyperlinksSerializer(many=True, required=False, write_only=True)

    class Meta:
        model = Document
        fields = [
            'title',
            'description',
            'allow_download',
            'require_contact',
            'expires_at',
            'status',
            'password',
            'pages',
        ]

    def validate_status(self, value):
        current = self.instance.status if self.instance else None
        if current not in (DocumentStatus.ACTIVE, DocumentStatus.INACTIVE) and value != current:
            raise serializers.ValidationError(f'Cannot change status of a document in {current}')
        return value

    def validate_pages(self, pages):
        if self.instance is not None and self.instance.media_kind != MediaKind.PDF:
            raise serializers.ValidationError('Hyperlinks are only supported on PDF documents')
        page_numbers = [page['page'] for page in pages]
        if len(page_numbers) != len(set(page_numbers)):
            raise serializers.ValidationError('Each page may appear only once')
        return pages

    def update(self, instance, validated_data):
        from .services import set_page_hyperlinks

        if 'password' in validated_data:
            instance.set_viewer_password(validated_data.pop('password'))
        if 'pages' in validated_data:
            set_page_hyperlinks(instance, validated_data.pop('pages'))
        return super().update(instance, validated_data)


class BulkDeleteSerializer(serializers.Serializer):
    ids = serializers.ListField(
        child=serializers.CharField(max_length=64),
        allow_empty=False,
        max_length=100,
    )
