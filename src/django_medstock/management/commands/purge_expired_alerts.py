"""Management command to purge alerts past their time-to-live.

Expired alerts are already invisible to every read; this only reclaims
the rows. Dismissed alerts are kept until their own expiry.
"""

from django.core.management.base import BaseCommand
from django.db.models import Count
from django.utils import timezone

from django_medstock.models import Alert, AlertType


class Command(BaseCommand):
    help = 'Purge medicine and user alerts that have outlived their TTL'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report expired alerts per type and leave them in place',
        )

    def handle(self, *args, **options):
        expired = Alert.objects.expired(timezone.now())

        if not options['dry_run']:
            deleted, _ = expired.delete()
            self.stdout.write(self.style.SUCCESS(f'Deleted {deleted} expired alerts'))
            return

        per_type = dict(
            expired.order_by().values_list('type').annotate(n=Count('id'))
        )
        self.stdout.write(f'Would delete {sum(per_type.values())} expired alerts')
        for alert_type, n in sorted(per_type.items()):
            self.stdout.write(f'  - {AlertType(alert_type).label}: {n}')
