from django.core.management.base import BaseCommand

from billing.services import process_subscription_reminders


class Command(BaseCommand):
    help = 'Send subscription reminders and suspend stores past the grace period (run daily)'

    def handle(self, *args, **options):
        result = process_subscription_reminders()

        self.stdout.write(self.style.SUCCESS(f"✓ {result['reminded']} reminders sent"))
        if result['suspended']:
            self.stdout.write(self.style.WARNING(f"{result['suspended']} stores suspended"))
        else:
            self.stdout.write(self.style.SUCCESS('✓ No stores suspended'))
