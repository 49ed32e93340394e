"""
Analytics aggregator: read-only rollups over the view ledger.

``View.is_unique`` is trusted as stored; nothing here reconciles.
"""
import csv
from datetime import timedelta

from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncDay, TruncHour, TruncWeek
from django.utils import timezone

from apps.documents.models import Document, DocumentStatus

from .models import View, ViewEvent, ViewEventKind
from .services import distinct_contact_count

DEFAULT_RANGE_DAYS = 30
TOP_N = 10
DASHBOARD_TOP_N = 6
DASHBOARD_RECENT_VIEWS = 10

GROUP_BY_TRUNC = {
    'hour': TruncHour,
    'day': TruncDay,
    'week': TruncWeek,
}

TIME_RANGES = {'7d': 7, '30d': 30, '90d': 90}

VIEWS_CSV_HEADER = [
    'Date', 'IP Address', 'Country', 'City', 'Browser', 'OS',
    'Mobile Device', 'Referrer', 'Name', 'Mobile',
]
CONTACTS_CSV_HEADER = [
    'Name', 'Mobile', 'Submitted At', 'Country', 'City', 'Browser', 'OS', 'Mobile Device',
]


def period_label(value, group_by):
    if group_by == 'hour':
        return value.strftime('%Y-%m-%d %H:00')
    if group_by == 'week':
        year, week, _ = value.isocalendar()
        return f'{year}-W{week:02d}'
    return value.strftime('%Y-%m-%d')


def _percentage(part, total):
    return round(part * 100.0 / total, 1) if total else 0.0


def _top(views, column, limit):
    rows = (
        views.exclude(**{column: ''})
        .values(column)
        .annotate(count=Count('id'))
        .order_by('-count', column)[:limit]
    )
    return [{'name': row[column], 'count': row['count']} for row in rows]


def _series(views, group_by):
    trunc = GROUP_BY_TRUNC[group_by]
    rows = (
        views.annotate(period=trunc('created_at'))
        .values('period')
        .annotate(views=Count('id'), unique_views=Count('id', filter=Q(is_unique=True)))
        .order_by('period')
    )
    series = []
    for row in rows:
        label = period_label(row['period'], group_by)
        # Hourly/daily rows are already one per label; weekly labels can
        # only repeat if the DB truncates differently from isocalendar.
        if series and series[-1]['period'] == label:
            series[-1]['views'] += row['views']
            series[-1]['unique_views'] += row['unique_views']
        else:
            series.append({'period': label, 'views': row['views'], 'unique_views': row['unique_views']})
    return series


def document_analytics(document, start=None, end=None, group_by='day'):
    """Summary, top countries/browsers and a time series for one document."""
    end = end or timezone.now()
    start = start or end - timedelta(days=DEFAULT_RANGE_DAYS)
    if group_by not in GROUP_BY_TRUNC:
        raise ValueError(f'Unsupported group_by: {group_by}')

    views = View.objects.filter(document=document, created_at__gte=start, created_at__lte=end)

    counts = views.aggregate(
        total_views=Count('id'),
        unique_views=Count('id', filter=Q(is_unique=True)),
        mobile_views=Count('id', filter=Q(is_mobile=True)),
        countries=Count('country', filter=~Q(country=''), distinct=True),
        browsers=Count('browser', filter=~Q(browser=''), distinct=True),
        devices=Count('device_family', filter=~Q(device_family=''), distinct=True),
    )
    summary = {
        'total_views': counts['total_views'],
        'unique_views': counts['unique_views'],
        'total_downloads': ViewEvent.objects.filter(
            view__document=document,
            kind=ViewEventKind.DOWNLOAD,
            timestamp__gte=start,
            timestamp__lte=end,
        ).count(),
        'contacts_collected': distinct_contact_count(views),
        'mobile_views': counts['mobile_views'],
        'desktop_views': counts['total_views'] - counts['mobile_views'],
        'countries': counts['countries'],
        'browsers': counts['browsers'],
        'devices': counts['devices'],
    }

    return {
        'document': {
            'id': str(document.id),
            'title': document.title,
            'public_slug': document.public_slug,
        },
        'range': {'start': start, 'end': end, 'group_by': group_by},
        'summary': summary,
        'top_countries': _top(views, 'country', TOP_N),
        'top_browsers': _top(views, 'browser', TOP_N),
        'views_over_time': _series(views, group_by),
    }


def dashboard(owner, time_range='7d'):
    """Cross-document overview for one owner."""
    if time_range not in TIME_RANGES:
        raise ValueError(f'Unsupported time_range: {time_range}')
    days = TIME_RANGES[time_range]
    now = timezone.now()
    start = (now - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)

    documents = Document.objects.filter(owner=owner).exclude(status=DocumentStatus.DELETED)
    totals = documents.aggregate(
        total_documents=Count('id'),
        total_views=Sum('total_views'),
        unique_views=Sum('unique_views'),
        total_downloads=Sum('total_downloads'),
        contacts_collected=Sum('contacts_collected'),
    )
    totals = {key: value or 0 for key, value in totals.items()}

    views = View.objects.filter(document__in=documents, created_at__gte=start)
    range_total = views.count()

    return {
        'time_range': time_range,
        'totals': totals,
        'range_views': range_total,
        'views_over_time': _daily_series(views, start, days),
        'device_breakdown': _device_breakdown(views, range_total),
        'top_locations': [
            dict(row, percentage=_percentage(row['count'], range_total))
            for row in _top(views, 'country', DASHBOARD_TOP_N)
        ],
        'recent_views': [
            {
                'id': view.id,
                'document_id': str(view.document_id),
                'document_title': view.document.title,
                'created_at': view.created_at,
                'country': view.country,
                'city': view.city,
                'browser': view.browser,
                'device': view.device_class,
                'is_unique': view.is_unique,
                'has_contact': view.has_contact,
            }
            for view in views.select_related('document').order_by('-created_at', '-id')[:DASHBOARD_RECENT_VIEWS]
        ],
        'top_documents': [
            {
                'id': str(document.id),
                'title': document.title,
                'public_slug': document.public_slug,
                'total_views': document.total_views,
                'unique_views': document.unique_views,
                'contacts_collected': document.contacts_collected,
            }
            for document in documents.order_by('-total_views', '-created_at')[:DASHBOARD_TOP_N]
        ],
    }


def _daily_series(views, start, days):
    view_rows = {
        row['day'].date(): row
        for row in views.annotate(day=TruncDay('created_at'))
        .values('day')
        .annotate(views=Count('id'), unique_views=Count('id', filter=Q(is_unique=True)))
        .order_by('day')
    }
    download_rows = {
        row['day'].date(): row['downloads']
        for row in ViewEvent.objects.filter(
            view__in=views, kind=ViewEventKind.DOWNLOAD, timestamp__gte=start
        )
        .annotate(day=TruncDay('timestamp'))
        .values('day')
        .annotate(downloads=Count('id'))
        .order_by('day')
    }

    series = []
    for offset in range(days):
        day = (start + timedelta(days=offset)).date()
        row = view_rows.get(day, {})
        series.append({
            'date': day.isoformat(),
            'views': row.get('views', 0),
            'unique_views': row.get('unique_views', 0),
            'downloads': download_rows.get(day, 0),
        })
    return series


def _device_breakdown(views, total):
    counts = views.aggregate(
        tablet=Count('id', filter=Q(is_tablet=True)),
        mobile=Count('id', filter=Q(is_tablet=False, is_mobile=True)),
    )
    counts['desktop'] = total - counts['tablet'] - counts['mobile']
    return [
        {'device': device, 'count': counts[device], 'percentage': _percentage(counts[device], total)}
        for device in ('desktop', 'mobile', 'tablet')
    ]


# ============================================================================
# Lists & CSV export
# ============================================================================

def document_views(document):
    return View.objects.filter(document=document).order_by('-created_at', '-id')


def document_contacts(document):
    return (
        View.objects.filter(document=document)
        .exclude(submitted_name='')
        .exclude(submitted_mobile='')
        .order_by('-contact_submitted_at', '-id')
    )


def _yes_no(flag):
    return 'Yes' if flag else 'No'


# Leading characters a spreadsheet evaluates as a formula.
FORMULA_PREFIXES = ('=', '+', '-', '@', '\t', '\r')


def csv_cell(value):
    """Visitor-supplied text is quoted so it never opens as a formula."""
    if isinstance(value, str) and value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value


def export_rows(document, export_type):
    """Header + rows for the CSV export; rows are empty when there is no data."""
    if export_type == 'contacts':
        rows = [
            [csv_cell(value) for value in (
                view.submitted_name,
                view.submitted_mobile,
                view.contact_submitted_at.isoformat() if view.contact_submitted_at else '',
                view.country,
                view.city,
                view.browser,
                view.os,
                _yes_no(view.is_mobile),
            )]
            for view in document_contacts(document).iterator()
        ]
        return CONTACTS_CSV_HEADER, rows

    if export_type == 'views':
        rows = [
            [csv_cell(value) for value in (
                view.created_at.isoformat(),
                view.ip_address,
                view.country,
                view.city,
                view.browser,
                view.os,
                _yes_no(view.is_mobile),
                view.referrer,
                view.submitted_name,
                view.submitted_mobile,
            )]
            for view in document_views(document).iterator()
        ]
        return VIEWS_CSV_HEADER, rows

    raise ValueError(f'Unsupported export type: {export_type}')


def write_csv(stream, header, rows):
    writer = csv.writer(stream)
    writer.writerow(header)
    writer.writerows(rows)
