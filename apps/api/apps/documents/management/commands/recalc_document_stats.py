"""
Rebuild cached document stats from the view ledger.

    python manage.py recalc_document_stats
    python manage.py recalc_document_stats --document <uuid>
"""
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from apps.analytics.services import reconcile_all, reconcile_stats
from apps.documents.models import Document


class Command(BaseCommand):
    help = 'Recalculate document stats (views, unique views, downloads, contacts) from the view ledger'

    def add_arguments(self, parser):
        parser.add_argument('--document', help='Only this document id')

    def handle(self, *args, **options):
        document_id = options.get('document')

        if not document_id:
            checked, drifted = reconcile_all(source='command')
            self.stdout.write(self.style.SUCCESS(
                f'Reconciled {checked} documents ({drifted} with drift)'
            ))
            return

        try:
            document = Document.objects.get(pk=document_id)
        except (Document.DoesNotExist, ValidationError, ValueError):
            raise CommandError(f'Document "{document_id}" not found')

        result = reconcile_stats(document, source='command')
        for name, change in result['drift'].items():
            self.stdout.write(self.style.WARNING(
                f'{name}: {change["cached"]} -> {change["recomputed"]}'
            ))
        self.stdout.write(self.style.SUCCESS(f'Reconciled {document.title} ({document.id})'))
