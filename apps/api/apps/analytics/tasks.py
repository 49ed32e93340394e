"""
Celery tasks for the view ledger.
"""
from celery import shared_task

from apps.core.observability import get_sanitized_logger

logger = get_sanitized_logger(__name__)


@shared_task(name='apps.analytics.tasks.reconcile_document_stats')
def reconcile_document_stats(document_id=None):
    """
    Rebuild cached document stats from the view ledger.

    Args:
        document_id: reconcile one document; all non-deleted documents when None
    """
    from apps.documents.models import Document

    from .services import reconcile_all, reconcile_stats

    if document_id is None:
        checked, drifted = reconcile_all(source='task')
        logger.info(
            'Document stats reconciled',
            extra={'event': 'stats_reconciled', 'checked': checked, 'drifted': drifted}
        )
        return {'checked': checked, 'drifted': drifted}

    try:
        document = Document.objects.get(pk=document_id)
    except Document.DoesNotExist:
        logger.warning(
            'Document not found for reconciliation',
            extra={'event': 'stats_reconcile_skipped', 'document_id': str(document_id)}
        )
        return {'checked': 0, 'drifted': 0}

    result = reconcile_stats(document, source='task')
    return {'checked': 1, 'drifted': int(bool(result['drift']))}
