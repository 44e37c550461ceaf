from django.core.management.base import BaseCommand
from django.conf import settings

from core.models import Store
from inventory.breaking_bulk import expire_batches, raise_expiry_alerts


class Command(BaseCommand):
    help = 'Flag expired batches and alert store owners about batches expiring soon'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=settings.EXPIRY_ALERT_DAYS,
            help='Alert window in days'
        )
        parser.add_argument(
            '--store',
            help='Access code of a single store to check'
        )

    def handle(self, *args, **options):
        stores = Store.objects.filter(is_active=True)
        if options['store']:
            stores = stores.filter(access_code=options['store'].upper())

        total_alerts = 0
        total_expired = 0
        for store in stores:
            expired = expire_batches(store)
            alerts = raise_expiry_alerts(store, options['days'])
            total_expired += expired
            total_alerts += len(alerts)
            if expired or alerts:
                self.stdout.write(
                    self.style.SUCCESS(f'✓ {store.name}: {len(alerts)} expiring, {expired} expired')
                )

        if total_alerts or total_expired:
            self.stdout.write(
                self.style.SUCCESS(f'\n✓ Raised {total_alerts} expiry alerts, flagged {total_expired} expired batches')
            )
        else:
            self.stdout.write(self.style.WARNING('No new expiring batches.'))
