"""
Uniqueness & contact reconciliation.

Document stats are a cache of the view ledger. They are only ever changed
by single-statement F() updates (hot path) or fully overwritten by
``reconcile_stats`` (repair path); nothing here does a read-modify-write of
an in-memory Document.

Contact submissions for one document are serialized by a row lock on the
document, and retraction of a provisional unique view is a compare-and-swap
on ``View.is_unique`` so a view can be retracted (and ``unique_views``
decremented) at most once.
"""
import time

from django.conf import settings
from django.db import transaction
from django.db.models import F, Max
from django.db.models.functions import Lower
from django.utils import timezone

from apps.core.observability import get_sanitized_logger, metrics
from apps.core.observability.events import (
    log_consistency_checkpoint,
    log_contact_submitted,
    log_domain_event,
    log_view_recorded,
)
from apps.core.observability.tracing import add_span_attribute, trace_span
from apps.documents.models import Document, DocumentStatus
from apps.documents.services import DocumentNotFound

from . import ledger
from .models import View, ViewEvent, ViewEventKind

logger = get_sanitized_logger(__name__)

STATS_FIELDS = ('total_views', 'unique_views', 'total_downloads', 'contacts_collected')


# ============================================================================
# Contact identity
# ============================================================================

def contact_key(name, phone):
    return f'{(name or "").strip().lower()}|{(phone or "").strip()}'


def contact_exists(document, name, phone, exclude_view=None):
    """
    Another view of ``document`` that submitted the same contact
    (case-insensitive name, exact trimmed phone), or None.
    """
    name = (name or '').strip()
    phone = (phone or '').strip()
    if not name or not phone:
        return None

    queryset = View.objects.filter(
        document_id=getattr(document, 'pk', document),
        submitted_name__iexact=name,
        submitted_mobile=phone,
    )
    if exclude_view is not None:
        queryset = queryset.exclude(pk=exclude_view.pk)
    return queryset.order_by('created_at', 'id').first()


def distinct_contact_count(views):
    """Distinct (lower(name), mobile) pairs among ``views``."""
    return (
        views.exclude(submitted_name='')
        .exclude(submitted_mobile='')
        .annotate(name_key=Lower('submitted_name'))
        .order_by()
        .values('name_key', 'submitted_mobile')
        .distinct()
        .count()
    )


# ============================================================================
# Hot-path counters
# ============================================================================

def increment_view_counters(document, is_unique):
    """One UPDATE against the stored row; safe under concurrent visits."""
    Document.objects.filter(pk=document.pk).update(
        total_views=F('total_views') + 1,
        unique_views=F('unique_views') + (1 if is_unique else 0),
        last_viewed_at=timezone.now(),
    )


def increment_download_counter(document):
    Document.objects.filter(pk=document.pk).update(total_downloads=F('total_downloads') + 1)


def retract_unique(view):
    """
    Compare-and-swap ``is_unique`` True -> False.

    Only the caller that actually flips the flag decrements
    ``unique_views``, and the decrement never goes below zero. Returns
    whether this call performed the retraction.
    """
    flipped = View.objects.filter(pk=view.pk, is_unique=True).update(is_unique=False)
    if not flipped:
        return False
    Document.objects.filter(pk=view.document_id, unique_views__gt=0).update(
        unique_views=F('unique_views') - 1
    )
    view.is_unique = False
    metrics.unique_retractions_total.inc()
    return True


# ============================================================================
# Visits
# ============================================================================

def record_visit(document, session_id, facts):
    """
    Create (or continue) the view for ``session_id``.

    Returns ``(view, created)``. Continuing an existing session appends a
    ``view`` event and leaves the counters untouched.
    """
    existing = ledger.find_session_view(document, session_id)
    if existing is not None:
        ledger.append_event(existing, ViewEventKind.VIEW)
        log_view_recorded(existing, continued=True)
        return existing, False

    view = ledger.create_view(document, session_id, facts)
    increment_view_counters(document, view.is_unique)
    metrics.views_total.labels(unique=str(view.is_unique).lower()).inc()
    log_view_recorded(view)
    return view, True


def record_download(document, facts, session_id=None):
    """
    Attach a download to the visitor's view.

    The view is the session's when ``session_id`` is known, otherwise the
    latest view from the same address within the download window. Without
    a view nothing is recorded, so ``total_downloads`` stays equal to the
    number of ledger download events.
    """
    view = ledger.find_session_view(document, session_id) if session_id else None
    if view is None:
        view = ledger.find_recent_view_by_ip(
            document, facts.ip_address, settings.FLIPBOOK_DOWNLOAD_SESSION_WINDOW_HOURS
        )

    if view is not None:
        ledger.add_download(view)
        increment_download_counter(document)

    metrics.downloads_total.labels(recorded=str(view is not None).lower()).inc()
    log_domain_event(
        'document_downloaded',
        entity_type='Document',
        entity_id=str(document.pk),
        entity_ids={'view_id': str(view.pk)} if view is not None else None,
        recorded=view is not None,
    )
    return view


def unlock_video(document, facts, session_id=None, mobile=None):
    """Unlock the session's video, creating (and counting) a view if needed."""
    view = ledger.find_session_view(document, session_id) if session_id else None
    if view is None:
        view, _ = record_visit(document, session_id, facts)
    ledger.mark_video_unlocked(view, mobile)
    log_domain_event(
        'video_unlocked' if (mobile or '').strip() else 'video_unlock_attempted',
        entity_type='View',
        entity_id=str(view.pk),
        entity_ids={'document_id': str(document.pk)},
    )
    return view


# ============================================================================
# Contact submission
# ============================================================================

def submit_contact(view, name, phone):
    """
    Attach a (name, phone) contact to ``view`` and reconcile counters.

    - If another view of the same document already submitted this contact,
      the visit is a repeat: its provisional uniqueness is retracted.
    - ``contacts_collected`` grows only for a contact never seen on this
      document, submitted by a view that had no contact before.

    Duplicates are expected and are not errors.
    """
    name = (name or '').strip()
    phone = (phone or '').strip()

    with trace_span('contact.submit', attributes={'view_id': view.pk, 'document_id': str(view.document_id)}):
        with transaction.atomic():
            # Per-document serialization point for the read-then-write below.
            try:
                document = Document.objects.select_for_update().get(pk=view.document_id)
                current = View.objects.select_for_update().get(pk=view.pk)
            except (Document.DoesNotExist, View.DoesNotExist):
                raise DocumentNotFound()
            if not document.is_accessible():
                raise DocumentNotFound()

            had_contact = bool(current.submitted_name)
            # Re-submitting the contact this view already holds is not a repeat visit.
            resubmitted = had_contact and (
                contact_key(current.submitted_name, current.submitted_mobile) == contact_key(name, phone)
            )
            match = None if resubmitted else contact_exists(document, name, phone, exclude_view=current)

            retracted = retract_unique(current) if match is not None else False

            now = timezone.now()
            View.objects.filter(pk=current.pk).update(
                submitted_name=name,
                submitted_mobile=phone,
                contact_submitted_at=now,
            )
            ledger.append_event(current, ViewEventKind.CONTACT_SUBMIT, {'name': name, 'mobile': phone})

            is_new_contact = match is None and not had_contact
            if is_new_contact:
                Document.objects.filter(pk=document.pk).update(
                    contacts_collected=F('contacts_collected') + 1
                )
            add_span_attribute('contact.is_new', is_new_contact)
            add_span_attribute('contact.unique_retracted', retracted)

    view.refresh_from_db(fields=['is_unique', 'submitted_name', 'submitted_mobile', 'contact_submitted_at'])
    metrics.contacts_total.labels(result='new' if is_new_contact else 'repeat').inc()
    log_contact_submitted(view, is_new_contact=is_new_contact, retracted=retracted)
    return {'is_new_contact': is_new_contact, 'unique_retracted': retracted}


# ============================================================================
# Full recomputation (repair path)
# ============================================================================

def ledger_stats(document):
    """Stats derived from the ledger only; does not write."""
    views = View.objects.filter(document=document)
    return {
        'total_views': views.count(),
        'unique_views': views.filter(is_unique=True).count(),
        'total_downloads': ViewEvent.objects.filter(
            view__document=document, kind=ViewEventKind.DOWNLOAD
        ).count(),
        'contacts_collected': distinct_contact_count(views),
    }


def reconcile_stats(document, source='api'):
    """
    Overwrite the cached stats with ``ledger_stats`` and report drift.

    Returns ``{'stats': {...}, 'drift': {field: {'cached', 'recomputed'}}}``.
    Drift is logged as a failed consistency checkpoint and counted, never
    raised.
    """
    started = time.time()
    with transaction.atomic():
        locked = Document.objects.select_for_update().get(pk=document.pk)
        stats = ledger_stats(locked)
        last_viewed_at = View.objects.filter(document=locked).aggregate(last=Max('created_at'))['last']
        drift = {
            name: {'cached': getattr(locked, name), 'recomputed': value}
            for name, value in stats.items()
            if getattr(locked, name) != value
        }
        Document.objects.filter(pk=locked.pk).update(last_viewed_at=last_viewed_at, **stats)

    metrics.reconcile_duration_seconds.observe(time.time() - started)
    log_consistency_checkpoint(
        'document_stats_cache',
        entity_ids={'document_id': str(document.pk)},
        checks_passed={name: name not in drift for name in STATS_FIELDS},
        source=source,
        drift=drift,
    )
    if drift:
        metrics.stats_drift_total.labels(source=source).inc()

    for name, value in stats.items():
        setattr(document, name, value)
    document.last_viewed_at = last_viewed_at
    return {'stats': stats, 'drift': drift}


def recalculate_stats(document, source='api'):
    """Rebuild the cached stats from the ledger. Idempotent."""
    return reconcile_stats(document, source=source)['stats']


def reconcile_all(source='task'):
    """Reconcile every non-deleted document. Returns ``(checked, drifted)``."""
    checked = drifted = 0
    document_ids = Document.objects.exclude(status=DocumentStatus.DELETED).values_list('pk', flat=True)
    for document_id in document_ids.iterator():
        try:
            document = Document.objects.get(pk=document_id)
            result = reconcile_stats(document, source=source)
        except Document.DoesNotExist:
            continue  # deleted while iterating
        checked += 1
        drifted += bool(result['drift'])
    return checked, drifted
