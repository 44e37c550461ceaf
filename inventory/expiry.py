"""
Expiry markdowns and clearance.

Each store keeps a ladder of discount rules (45 days out 20% off, 14 days
40%, 7 days 80% by default). Batches are graded by how close they are to
expiry, priced with the matching rule and, once cleared, written off with
a record of what was recovered.
"""
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import Count, Avg
from django.utils import timezone

from core.utils import to_decimal
from .models import InventoryBatch, ExpiryDiscountRule, ExpiryClearance, InventoryAlert

logger = logging.getLogger('inventory')

DEFAULT_RULES = [
    (45, Decimal('20.00')),
    (14, Decimal('40.00')),
    (7, Decimal('80.00')),
]

# Upper bound in days for each grade; anything further out is OK
CRITICAL_DAYS = 3
URGENT_DAYS = 7
CAUTION_DAYS = 45

CLEARANCE_TRANSACTIONS = {
    'DISCOUNTED_SALE': 'SALE',
    'DONATION': 'DAMAGE',
    'DISPOSED': 'EXPIRED',
}


def _money(value):
    return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def discount_rules(store):
    """Active rules of a store, tightest window first. Stores without rules get the defaults."""
    if not ExpiryDiscountRule.objects.filter(store=store).exists():
        ExpiryDiscountRule.objects.bulk_create([
            ExpiryDiscountRule(store=store, days_before_expiry=days, discount_percentage=discount)
            for days, discount in DEFAULT_RULES
        ])
    return list(ExpiryDiscountRule.objects.filter(store=store, is_active=True).order_by('days_before_expiry'))


def set_discount_rule(store, days_before_expiry, discount_percentage, auto_apply=None, is_active=None):
    try:
        days_before_expiry = int(days_before_expiry)
    except (TypeError, ValueError):
        raise ValueError('Days before expiry must be a whole number')
    if days_before_expiry < 0:
        raise ValueError('Days before expiry cannot be negative')
    discount_percentage = to_decimal(discount_percentage, 'discount percentage')
    if not Decimal('0') < discount_percentage <= Decimal('100'):
        raise ValueError('Discount must be between 0 and 100 percent')

    discount_rules(store)
    defaults = {'discount_percentage': discount_percentage}
    if auto_apply is not None:
        defaults['auto_apply'] = bool(auto_apply)
    if is_active is not None:
        defaults['is_active'] = bool(is_active)
    rule, created = ExpiryDiscountRule.objects.update_or_create(
        store=store, days_before_expiry=days_before_expiry, defaults=defaults,
    )
    logger.info(f"Expiry rule in {store.access_code}: {rule} ({'added' if created else 'updated'})")
    return rule


def expiry_status(days_to_expiry):
    if days_to_expiry is None:
        return 'OK'
    if days_to_expiry < 0:
        return 'EXPIRED'
    if days_to_expiry <= CRITICAL_DAYS:
        return 'CRITICAL'
    if days_to_expiry <= URGENT_DAYS:
        return 'URGENT'
    if days_to_expiry <= CAUTION_DAYS:
        return 'CAUTION'
    return 'OK'


def suggested_discount(rules, days_to_expiry):
    """Discount of the tightest rule the batch falls inside. Expired stock is not sold."""
    if days_to_expiry is None or days_to_expiry < 0:
        return Decimal('0')
    for rule in rules:
        if days_to_expiry <= rule.days_before_expiry:
            return rule.discount_percentage
    return Decimal('0')


def batch_expiry_info(batch, rules):
    days = batch.days_to_expiry
    discount = suggested_discount(rules, days)
    price = batch.product.selling_price
    unit_cost = batch.cost_price if batch.cost_price is not None else batch.product.cost_price
    return {
        'batch_id': batch.id,
        'batch_number': batch.batch_number,
        'product_id': batch.product_id,
        'product_name': batch.product.name,
        'quantity': batch.quantity,
        'expiry_date': batch.expiry_date.isoformat() if batch.expiry_date else None,
        'days_to_expiry': days,
        'status': expiry_status(days),
        'discount_percentage': discount,
        'selling_price': price,
        'clearance_price': _money(price * (100 - discount) / 100),
        'stock_value': price * batch.quantity,
        'estimated_loss': unit_cost * batch.quantity,
    }


def expiry_report(store, include_ok=False):
    """Stocked active batches graded by closeness to expiry, soonest first."""
    rules = discount_rules(store)
    batches = InventoryBatch.objects.filter(
        store=store, status__in=('ACTIVE', 'EXPIRED'), quantity__gt=0, expiry_date__isnull=False,
    ).select_related('product').order_by('expiry_date')
    rows = [batch_expiry_info(batch, rules) for batch in batches]
    if not include_ok:
        rows = [row for row in rows if row['status'] != 'OK']
    return rows


def expiry_loss_impact(store):
    """Cost of stock that will be lost if nothing at risk is cleared"""
    at_risk = expiry_report(store)
    total = sum((row['estimated_loss'] for row in at_risk), Decimal('0'))
    by_status = {}
    for row in at_risk:
        by_status[row['status']] = by_status.get(row['status'], 0) + 1
    return {
        'total_potential_loss': total,
        'items_at_risk': len(at_risk),
        'average_loss_per_item': _money(total / len(at_risk)) if at_risk else Decimal('0'),
        'by_status': by_status,
    }


def record_clearance(batch, quantity, clearance_type, user=None, clearance_price=None, notes=''):
    """
    Move units out of a batch before (or after) it spoils.

    A discounted sale is priced with the batch's expiry rule unless a
    price is given; donations and disposals recover nothing.
    """
    if clearance_type not in CLEARANCE_TRANSACTIONS:
        raise ValueError(f'Unknown clearance type: {clearance_type}')
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValueError('Quantity must be a whole number')
    if quantity <= 0:
        raise ValueError('Quantity must be greater than 0')

    with transaction.atomic():
        batch = InventoryBatch.objects.select_for_update().select_related('product').get(pk=batch.pk)
        if batch.status == 'DISPOSED':
            raise ValueError(f'Batch {batch.batch_number} is already disposed')
        if quantity > batch.quantity:
            raise ValueError(f'Batch {batch.batch_number} only has {batch.quantity} units left')

        product = batch.product
        original_price = product.selling_price
        days = batch.days_to_expiry
        if clearance_type == 'DISCOUNTED_SALE':
            if days is not None and days < 0:
                raise ValueError(f'Batch {batch.batch_number} has expired and cannot be sold')
            if clearance_price is None:
                discount = suggested_discount(discount_rules(batch.store), days)
                clearance_price = _money(original_price * (100 - discount) / 100)
            else:
                clearance_price = to_decimal(clearance_price, 'clearance price')
                if clearance_price < 0 or clearance_price > original_price:
                    raise ValueError('Clearance price must be between 0 and the selling price')
        else:
            clearance_price = Decimal('0')

        discount_percentage = (
            _money((original_price - clearance_price) / original_price * 100) if original_price else Decimal('0')
        )
        clearance = ExpiryClearance.objects.create(
            store=batch.store,
            batch=batch,
            product=product,
            clearance_type=clearance_type,
            quantity=quantity,
            original_price=original_price,
            clearance_price=clearance_price,
            discount_percentage=discount_percentage,
            days_to_expiry=days,
            cleared_by=user,
            notes=notes,
        )

        batch.quantity -= quantity
        if batch.quantity == 0:
            batch.status = 'DISPOSED'
            InventoryAlert.objects.filter(batch=batch, is_resolved=False).update(
                is_resolved=True, resolved_at=timezone.now()
            )
        batch.save(update_fields=['quantity', 'status', 'updated_at'])
        product.adjust_stock(
            -quantity, CLEARANCE_TRANSACTIONS[clearance_type], user=user, reference=batch.batch_number,
            notes=f"Expiry clearance ({clearance.get_clearance_type_display().lower()}) "
                  f"at KES {clearance_price}",
        )

    logger.info(f"Cleared {quantity} x {product.name} from batch {batch.batch_number} "
                f"via {clearance_type}, recovered KES {clearance.recovered_value}")
    return clearance


def clearance_history(store, days=30):
    since = timezone.now() - timedelta(days=days)
    return ExpiryClearance.objects.filter(store=store, created_at__gte=since).select_related('product', 'batch')


def clearance_stats(store, days=30):
    clearances = clearance_history(store, days)
    summary = clearances.aggregate(count=Count('id'), average_discount=Avg('discount_percentage'))
    quantity = 0
    original_value = recovered = Decimal('0')
    for clearance in clearances:
        quantity += clearance.quantity
        original_value += clearance.original_value
        recovered += clearance.recovered_value
    by_type = dict(clearances.order_by().values_list('clearance_type').annotate(count=Count('id')))
    return {
        'clearance_count': summary['count'],
        'quantity_cleared': quantity,
        'original_value': original_value,
        'recovered_value': recovered,
        'loss': original_value - recovered,
        'average_discount': _money(summary['average_discount'] or Decimal('0')),
        'recovery_rate': round(float(recovered / original_value * 100), 2) if original_value else 0,
        'by_type': by_type,
    }
