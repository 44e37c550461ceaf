from django.apps import AppConfig


class CoreConfig(AppConfig):
    """
    Stores, users and roles, products, sales, the audit trail,
    notifications and the M-Pesa Daraja integration.
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
    verbose_name = 'DukaBook Core'

    def ready(self):
        import core.signals  # noqa: F401
