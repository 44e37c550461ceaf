"""
Stock movements open and close stockout alerts
"""
from django.db.models.signals import post_save
from django.dispatch import receiver

from core.models import StockTransaction
from . import stockouts


@receiver(post_save, sender=StockTransaction)
def track_stockouts(sender, instance, created, **kwargs):
    if not created:
        return
    if instance.previous_quantity > 0 and instance.new_quantity <= 0:
        stockouts.raise_stockout_alert(instance.product, reference=instance.reference)
    elif instance.previous_quantity <= 0 and instance.new_quantity > 0:
        stockouts.resolve_stockout(instance.product, reference=instance.reference)
