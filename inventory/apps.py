from django.apps import AppConfig


class InventoryConfig(AppConfig):
    """
    Batches and breaking bulk, stock audits with shrinkage debts,
    supplier invoices and purchase orders, expiry clearance and
    stockout alerts.
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'inventory'
    verbose_name = 'Inventory Management'

    def ready(self):
        import inventory.signals  # noqa: F401
