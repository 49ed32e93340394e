"""
Analytics serializers.
"""
from rest_framework import serializers

from .models import View, ViewEvent
from .reports import GROUP_BY_TRUNC, TIME_RANGES

DATE_INPUT_FORMATS = ['iso-8601', '%Y-%m-%d']


class ViewEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = ViewEvent
        fields = ['id', 'kind', 'payload', 'timestamp']
        read_only_fields = fields


class ViewSerializer(serializers.ModelSerializer):
    """One ledger row as shown to the document owner."""
    device = serializers.CharField(source='device_class', read_only=True)
    has_contact = serializers.BooleanField(read_only=True)
    events = ViewEventSerializer(many=True, read_only=True)

    class Meta:
        model = View
        fields = [
            'id',
            'session_id',
            'created_at',
            'ip_address',
            'referrer',
            'country',
            'region',
            'city',
            'time_zone',
            'latitude',
            'longitude',
            'browser',
            'os',
            'device_family',
            'device',
            'is_mobile',
            'is_tablet',
            'is_unique',
            'video_unlocked',
            'submitted_name',
            'submitted_mobile',
            'contact_submitted_at',
            'has_contact',
            'events',
        ]
        read_only_fields = fields


class ContactSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='submitted_name', read_only=True)
    mobile = serializers.CharField(source='submitted_mobile', read_only=True)
    submitted_at = serializers.DateTimeField(source='contact_submitted_at', read_only=True)

    class Meta:
        model = View
        fields = ['id', 'name', 'mobile', 'submitted_at', 'country', 'city', 'browser', 'os', 'is_mobile']
        read_only_fields = fields


class AnalyticsQuerySerializer(serializers.Serializer):
    start_date = serializers.DateTimeField(required=False, input_formats=DATE_INPUT_FORMATS)
    end_date = serializers.DateTimeField(required=False, input_formats=DATE_INPUT_FORMATS)
    group_by = serializers.ChoiceField(choices=sorted(GROUP_BY_TRUNC), required=False, default='day')

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and start > end:
            raise serializers.ValidationError('start_date must be before end_date')
        return attrs


class DashboardQuerySerializer(serializers.Serializer):
    time_range = serializers.ChoiceField(choices=list(TIME_RANGES), required=False, default='7d')


class ExportQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=['views', 'contacts'], required=False, default='views')
