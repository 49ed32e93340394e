"""
Domain events logging helpers.

Structured events for document lifecycle, view tracking and
contact reconciliation.
"""
from typing import Dict, Optional

from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'view_recorded', 'contact_submitted')
        entity_type: Type of entity (e.g., 'Document', 'View')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, warning, ...)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'contact_submitted',
            entity_type='View',
            entity_id=str(view.id),
            entity_ids={'document_id': str(view.document_id)},
            is_new_contact=True,
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'partial', 'throttled']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_consistency_checkpoint(
    checkpoint_name: str,
    entity_ids: Dict[str, str],
    checks_passed: Dict[str, bool],
    **extra_fields
):
    """
    Log a consistency checkpoint event.

    A failed checkpoint is logged at ERROR but never raised; callers
    decide how to repair.

    Example:
        log_consistency_checkpoint(
            'document_stats_cache',
            entity_ids={'document_id': str(document.id)},
            checks_passed={'unique_views': False, 'total_views': True},
            cached={'unique_views': 3},
            recomputed={'unique_views': 2},
        )
    """
    all_passed = all(checks_passed.values())

    event_data = {
        'event': 'consistency_checkpoint',
        'checkpoint': checkpoint_name,
        'status': 'passed' if all_passed else 'failed',
        'checks': checks_passed,
    }
    event_data.update(entity_ids)
    event_data.update(sanitize_dict(extra_fields))

    if all_passed:
        logger.info(f'Checkpoint passed: {checkpoint_name}', extra=event_data)
    else:
        logger.error(f'Checkpoint FAILED: {checkpoint_name}', extra=event_data)
    return all_passed


def log_view_recorded(view, continued=False):
    log_domain_event(
        'view_recorded',
        entity_type='View',
        entity_id=str(view.id),
        entity_ids={'document_id': str(view.document_id)},
        is_unique=view.is_unique,
        continued=continued,
        is_mobile=view.is_mobile,
        country=view.country,
    )


def log_contact_submitted(view, is_new_contact, retracted):
    """Contact submission outcome. Name/mobile are never part of the event."""
    log_domain_event(
        'contact_submitted',
        entity_type='View',
        entity_id=str(view.id),
        entity_ids={'document_id': str(view.document_id)},
        is_new_contact=is_new_contact,
        unique_retracted=retracted,
    )


def log_media_cleanup_failure(document_id, public_id, resource_type, error):
    log_domain_event(
        'media_cleanup_failed',
        entity_type='Document',
        entity_id=str(document_id),
        result='warning',
        public_id=public_id,
        resource_type=resource_type,
        error=str(error),
    )


def log_document_deleted(document_id, summary):
    log_domain_event(
        'document_deleted',
        entity_type='Document',
        entity_id=str(document_id),
        result='partial' if summary.failed_files else 'success',
        deleted_files=summary.deleted_files,
        failed_files=summary.failed_files,
        total_attempted=summary.total_attempted,
    )
