"""
Public viewer serializers.

Everything here is anonymous input; strings are length-limited and nothing
is echoed back except what the owner already published.
"""
from rest_framework import serializers

from apps.analytics.ledger import SESSION_ID_MAX_LENGTH
from apps.analytics.models import ViewEventKind
from apps.documents.models import Document


class CoordinatesSerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90, required=False, allow_null=True)
    lon = serializers.FloatField(min_value=-180, max_value=180, required=False, allow_null=True)


class LocationSerializer(serializers.Serializer):
    """Browser-provided geo, preferred over the address lookup."""
    country = serializers.CharField(max_length=100, required=False, allow_blank=True)
    region = serializers.CharField(max_length=100, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    timezone = serializers.CharField(max_length=64, required=False, allow_blank=True)
    latitude = serializers.FloatField(min_value=-90, max_value=90, required=False, allow_null=True)
    longitude = serializers.FloatField(min_value=-180, max_value=180, required=False, allow_null=True)
    coordinates = CoordinatesSerializer(required=False)


class PublicDocumentSerializer(serializers.ModelSerializer):
    is_video = serializers.SerializerMethodField()
    password_protected = serializers.BooleanField(read_only=True)
    files = serializers.SerializerMethodField()

    class Meta:
        model = Document
        fields = [
            'id',
            'title',
            'description',
            'public_slug',
            'media_kind',
            'is_video',
            'files',
            'allow_download',
            'require_contact',
            'password_protected',
            'expires_at',
        ]
        read_only_fields = fields

    def get_is_video(self, obj):
        return obj.media_kind == 'video'

    def get_files(self, obj):
        # Withheld until the viewer password matches.
        if self.context.get('locked'):
            return None
        return obj.files


class TrackViewSerializer(serializers.Serializer):
    session_id = serializers.CharField(max_length=SESSION_ID_MAX_LENGTH, required=False, allow_blank=True)
    password = serializers.CharField(max_length=128, required=False, allow_blank=True)
    location = LocationSerializer(required=False)


class ContactSubmitSerializer(serializers.Serializer):
    session_id = serializers.CharField(max_length=SESSION_ID_MAX_LENGTH)
    name = serializers.CharField(max_length=200)
    mobile = serializers.CharField(max_length=32)


class UnlockVideoSerializer(serializers.Serializer):
    document_id = serializers.CharField(max_length=64)
    session_id = serializers.CharField(max_length=SESSION_ID_MAX_LENGTH, required=False, allow_blank=True)
    mobile = serializers.CharField(max_length=32, required=False, allow_blank=True)
    location = LocationSerializer(required=False)


class ViewerEventSerializer(serializers.Serializer):
    session_id = serializers.CharField(max_length=SESSION_ID_MAX_LENGTH)
    kind = serializers.ChoiceField(choices=[ViewEventKind.PAGE_TURN, ViewEventKind.VIDEO_PLAY])
    page = serializers.IntegerField(min_value=1, required=False)
    position = serializers.FloatField(min_value=0, required=False)

    def validate(self, attrs):
        if attrs['kind'] == ViewEventKind.PAGE_TURN and 'page' not in attrs:
            raise serializers.ValidationError({'page': 'This field is required for page_turn.'})
        return attrs
