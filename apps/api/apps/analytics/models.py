"""
Analytics models: view ledger.

A View is one tracked visit of one document; ViewEvent is its append-only
event log. Document stats are derived from these tables.
"""
from django.db import models
from django.utils import timezone

from apps.documents.models import Document


class ViewEventKind(models.TextChoices):
    VIEW = 'view', 'View'
    PAGE_TURN = 'page_turn', 'Page turn'
    VIDEO_PLAY = 'video_play', 'Video play'
    DOWNLOAD = 'download', 'Download'
    CONTACT_SUBMIT = 'contact_submit', 'Contact submitted'
    VIDEO_UNLOCKED = 'video_unlocked', 'Video unlocked'
    ATTEMPTED_UNLOCK = 'attempted_unlock', 'Attempted unlock'


class View(models.Model):
    """
    One visit attempt.

    Request facts (address, agent, geo, device) are captured once at
    creation. ``is_unique`` starts provisional and may only go from
    True to False, through the contact reconciliation path.
    """
    document = models.ForeignKey(Document, on_delete=models.CASCADE, related_name='views')
    session_id = models.CharField(max_length=64)

    # Request facts
    ip_address = models.CharField(max_length=64, blank=True, default='')
    user_agent = models.TextField(blank=True, default='')
    referrer = models.TextField(blank=True, default='')

    # Geo (empty when lookup failed)
    country = models.CharField(max_length=100, blank=True, default='')
    region = models.CharField(max_length=100, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    time_zone = models.CharField(max_length=64, blank=True, default='')
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)

    # Device
    browser = models.CharField(max_length=64, blank=True, default='')
    os = models.CharField(max_length=64, blank=True, default='')
    device_family = models.CharField(max_length=64, blank=True, default='')
    is_mobile = models.BooleanField(default=False)
    is_tablet = models.BooleanField(default=False)

    # Identity claim (lead capture)
    submitted_name = models.CharField(max_length=200, blank=True, default='')
    submitted_mobile = models.CharField(max_length=32, blank=True, default='')
    contact_submitted_at = models.DateTimeField(blank=True, null=True)

    is_unique = models.BooleanField(default=True)
    video_unlocked = models.BooleanField(default=False)
    video_unlocked_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'flipbook_view'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['document', 'ip_address', 'created_at'], name='idx_view_doc_ip_created'),
            models.Index(fields=['document', 'session_id'], name='idx_view_doc_session'),
            models.Index(fields=['document', 'created_at'], name='idx_view_doc_created'),
            models.Index(fields=['document', 'submitted_mobile'], name='idx_view_doc_mobile'),
        ]

    def __str__(self):
        return f'View {self.pk} of {self.document_id}'

    @property
    def has_contact(self):
        return bool(self.submitted_name and self.submitted_mobile)

    @property
    def device_class(self):
        if self.is_tablet:
            return 'tablet'
        if self.is_mobile:
            return 'mobile'
        return 'desktop'


class ViewEvent(models.Model):
    view = models.ForeignKey(View, on_delete=models.CASCADE, related_name='events')
    kind = models.CharField(max_length=32, choices=ViewEventKind.choices)
    payload = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'flipbook_view_event'
        ordering = ['timestamp', 'id']
        indexes = [
            models.Index(fields=['view', 'timestamp'], name='idx_view_event_view_ts'),
            models.Index(fields=['kind', 'timestamp'], name='idx_view_event_kind_ts'),
        ]

    def __str__(self):
        return f'{self.kind} @ {self.timestamp:%Y-%m-%d %H:%M:%S}'
