"""
View ledger: one View per visit plus its append-only event log.

The only writes to ``View.is_unique`` after creation happen in
``apps.analytics.services`` (contact reconciliation).
"""
import uuid
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .models import View, ViewEvent, ViewEventKind
from .request_context import derive_facts, normalize_ip

SESSION_ID_MAX_LENGTH = 64


def new_session_id():
    return str(uuid.uuid4())


def clean_session_id(session_id):
    return (str(session_id).strip() if session_id else '')[:SESSION_ID_MAX_LENGTH]


def seen_recently(document, ip_address, now=None):
    """Another visit from this address within the uniqueness window."""
    now = now or timezone.now()
    window_start = now - timedelta(hours=settings.FLIPBOOK_UNIQUE_WINDOW_HOURS)
    return View.objects.filter(
        document=document,
        ip_address=ip_address,
        created_at__gte=window_start,
    ).exists()


def create_view(document, session_id, facts):
    """
    Record a new visit.

    ``is_unique`` is provisional: true unless the same address visited this
    document within the last FLIPBOOK_UNIQUE_WINDOW_HOURS.
    """
    now = timezone.now()
    ip_address = normalize_ip(facts.ip_address)
    view = View.objects.create(
        document=document,
        session_id=clean_session_id(session_id) or new_session_id(),
        ip_address=ip_address,
        user_agent=facts.user_agent or '',
        referrer=facts.referrer or '',
        is_unique=not seen_recently(document, ip_address, now=now),
        created_at=now,
        **derive_facts(facts),
    )
    append_event(view, ViewEventKind.VIEW, {'referrer': view.referrer} if view.referrer else None)
    return view


def find_session_view(document, session_id):
    session_id = clean_session_id(session_id)
    if not session_id:
        return None
    return View.objects.filter(document=document, session_id=session_id).order_by('-created_at', '-id').first()


def find_recent_view_by_ip(document, ip_address, hours):
    since = timezone.now() - timedelta(hours=hours)
    return View.objects.filter(
        document=document,
        ip_address=normalize_ip(ip_address),
        created_at__gte=since,
    ).order_by('-created_at', '-id').first()


def append_event(view, kind, payload=None):
    """Not idempotent: one call per physical event."""
    return ViewEvent.objects.create(view=view, kind=kind, payload=payload or {})


def add_download(view, payload=None):
    return append_event(view, ViewEventKind.DOWNLOAD, payload)


def add_page_turn(view, page):
    return append_event(view, ViewEventKind.PAGE_TURN, {'page': page})


def add_video_play(view, position=None):
    return append_event(view, ViewEventKind.VIDEO_PLAY, {'position': position} if position is not None else None)


def mark_video_unlocked(view, mobile=None):
    """
    Flag the view's video as unlocked.

    A mobile number is captured only if the view has none yet, so an
    unlock never rewrites a contact that reconciliation already counted.
    """
    now = timezone.now()
    mobile = (mobile or '').strip()
    fields = {'video_unlocked': True, 'video_unlocked_at': now}

    if mobile and not view.submitted_mobile:
        fields.update(submitted_mobile=mobile, contact_submitted_at=now)

    View.objects.filter(pk=view.pk).update(**fields)
    for name, value in fields.items():
        setattr(view, name, value)

    if mobile:
        return append_event(view, ViewEventKind.VIDEO_UNLOCKED, {'mobile': mobile})
    return append_event(view, ViewEventKind.ATTEMPTED_UNLOCK)
