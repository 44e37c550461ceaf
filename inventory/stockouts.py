"""
Stockouts: when a product runs out, how long it stays out and what the
empty shelf costs in lost sales.
"""
import logging
import math
from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum, F
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.models import Product, SaleItem
from core.utils import notify_store_owner
from .models import InventoryAlert

logger = logging.getLogger('inventory')

VELOCITY_DAYS = 30
REORDER_COVER_DAYS = 14
CRITICAL_STOCKOUT_DAYS = 5


def average_daily_units(product, days=VELOCITY_DAYS):
    since = timezone.now() - timedelta(days=days)
    sold = SaleItem.objects.filter(
        product=product, sale__status='COMPLETED', sale__created_at__gte=since,
    ).aggregate(total=Sum('quantity'))['total'] or 0
    return round(sold / days, 2)


def suggested_reorder_quantity(product, avg_daily=None):
    avg_daily = average_daily_units(product) if avg_daily is None else avg_daily
    return max(product.reorder_quantity, math.ceil(avg_daily * REORDER_COVER_DAYS))


def open_stockout(product):
    return InventoryAlert.objects.filter(product=product, alert_type='OUT_OF_STOCK', is_resolved=False).first()


def raise_stockout_alert(product, reference=''):
    """One open OUT_OF_STOCK alert per product while its shelf is empty."""
    alert = open_stockout(product)
    if alert is not None:
        return alert

    avg_daily = average_daily_units(product)
    reorder = suggested_reorder_quantity(product, avg_daily)
    alert = InventoryAlert.objects.create(
        store=product.store,
        product=product,
        alert_type='OUT_OF_STOCK',
        severity='CRITICAL',
        message=f"{product.name} is out of stock. Suggested reorder: {reorder} units",
        data={
            'stockout_at': timezone.now().isoformat(),
            'avg_daily_units': avg_daily,
            'suggested_reorder_quantity': reorder,
            'unit_price': float(product.selling_price),
            'reference': reference,
        },
    )
    notify_store_owner(product.store, 'STOCK', f'Out of stock: {product.name}', alert.message)
    logger.warning(f"{product.name} out of stock in {product.store.access_code}")
    return alert


def days_out_of_stock(alert, until=None):
    started = parse_datetime(alert.data.get('stockout_at', '')) or alert.created_at
    end = until or alert.resolved_at or timezone.now()
    return max((end - started).days, 0)


def estimated_lost_revenue(alert, until=None):
    """Units that would have sold while the shelf was empty, at the price when it ran out"""
    units = alert.data.get('avg_daily_units', 0) * days_out_of_stock(alert, until)
    return (Decimal(str(units)) * Decimal(str(alert.data.get('unit_price', 0)))).quantize(Decimal('0.01'))


def resolve_stockout(product, reference=''):
    alert = open_stockout(product)
    if alert is None:
        return None
    now = timezone.now()
    alert.is_resolved = True
    alert.resolved_at = now
    alert.data = {
        **alert.data,
        'restocked_at': now.isoformat(),
        'restock_reference': reference,
        'days_out_of_stock': days_out_of_stock(alert, now),
        'estimated_lost_revenue': float(estimated_lost_revenue(alert, now)),
    }
    alert.save(update_fields=['is_resolved', 'resolved_at', 'data'])
    logger.info(f"{product.name} back in stock after {alert.data['days_out_of_stock']} day(s)")
    return alert


def stockout_summary(store):
    open_alerts = InventoryAlert.objects.filter(
        store=store, alert_type='OUT_OF_STOCK', is_resolved=False,
    ).select_related('product')
    rows = []
    for alert in open_alerts:
        days = days_out_of_stock(alert)
        rows.append({
            'alert_id': alert.id,
            'product_id': alert.product_id,
            'product_name': alert.product.name,
            'days_out_of_stock': days,
            'is_critical': days >= CRITICAL_STOCKOUT_DAYS,
            'suggested_reorder_quantity': alert.data.get('suggested_reorder_quantity'),
            'estimated_lost_revenue': estimated_lost_revenue(alert),
        })
    rows.sort(key=lambda row: row['estimated_lost_revenue'], reverse=True)
    return {
        'open_stockouts': len(rows),
        'critical_stockouts': sum(1 for row in rows if row['is_critical']),
        'estimated_lost_revenue': sum((row['estimated_lost_revenue'] for row in rows), Decimal('0')),
        'stockouts': rows,
    }


def stockout_risk(store):
    """Stocked products at or under their low stock threshold, emptiest first."""
    products = Product.objects.filter(
        store=store, is_active=True, quantity__gt=0, quantity__lte=F('low_stock_threshold'),
    ).order_by('quantity')
    rows = []
    for product in products:
        avg_daily = average_daily_units(product)
        rows.append({
            'product_id': product.id,
            'product_name': product.name,
            'quantity': product.quantity,
            'low_stock_threshold': product.low_stock_threshold,
            'avg_daily_units': avg_daily,
            'days_until_stockout': math.ceil(product.quantity / avg_daily) if avg_daily else None,
            'suggested_reorder_quantity': suggested_reorder_quantity(product, avg_daily),
        })
    return rows
