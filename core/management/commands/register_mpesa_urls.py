"""
Register the C2B validation and confirmation URLs for the subscription till
"""
from django.core.management.base import BaseCommand, CommandError
from core.mpesa_config import MpesaConfig
from core.mpesa_service import MpesaService


class Command(BaseCommand):
    help = 'Register the C2B callback URLs with Daraja'

    def handle(self, *args, **options):
        validation_url = MpesaConfig.get_callback_url('c2b_validation')
        confirmation_url = MpesaConfig.get_callback_url('c2b_confirmation')

        self.stdout.write(f"Registering C2B URLs for till {MpesaConfig.get_till_number()}...")
        try:
            result = MpesaService().c2b_register_url(
                validation_url=validation_url,
                confirmation_url=confirmation_url,
            )
        except Exception as e:
            raise CommandError(f"Error registering URLs: {str(e)}")

        self.stdout.write(self.style.SUCCESS(
            f"C2B URLs registered: {result.get('response_description') or 'OK'}"
        ))
        self.stdout.write("\n" + "=" * 50)
        self.stdout.write(f"Environment: {'production' if MpesaConfig.is_production() else 'sandbox'}")
        self.stdout.write(f"C2B Validation: {validation_url}")
        self.stdout.write(f"C2B Confirmation: {confirmation_url}")
        self.stdout.write("=" * 50)
