"""
Breaking bulk and batch (FEFO) stock handling.

A bulk parent product (a bottle, a sack) is sold in smaller breakout units
through a child product linked by `parent`. Stock of either can be tracked
in batches that carry their own expiry date; sales consume the batch that
expires first.
"""
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q, Sum
from django.utils import timezone

from core.models import Product
from core.utils import notify_store_owner
from .models import InventoryBatch, InventoryAlert

logger = logging.getLogger('inventory')

PRESETS = {
    'wine': {
        'label': 'Wine',
        'bulk_unit_name': 'Bottle (750ml)',
        'breakout_unit_name': 'Tot (30ml)',
        'conversion_rate': 25,
    },
    'spirit': {
        'label': 'Spirit',
        'bulk_unit_name': 'Bottle (1L)',
        'breakout_unit_name': 'Shot (40ml)',
        'conversion_rate': 25,
    },
    'cereal': {
        'label': 'Cereals',
        'bulk_unit_name': 'Sack (90kg)',
        'breakout_unit_name': '1kg Bag',
        'conversion_rate': 90,
    },
    'rice': {
        'label': 'Rice',
        'bulk_unit_name': 'Sack (90kg)',
        'breakout_unit_name': '500g Bag',
        'conversion_rate': 180,
    },
    'sugar': {
        'label': 'Sugar',
        'bulk_unit_name': 'Bag (50kg)',
        'breakout_unit_name': '1kg Pack',
        'conversion_rate': 50,
    },
}

# Above this many unaccounted units a negative variance is critical
CRITICAL_UNITS = 50

EXPIRY_CRITICAL_DAYS = 7


def _unit_price(amount, rate):
    return (Decimal(amount or 0) / rate).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def _positive_int(value, field):
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'{field} must be a whole number')
    if value <= 0:
        raise ValueError(f'{field} must be greater than 0')
    return value


def create_breakout_product(parent, breakout_unit_name, conversion_rate, bulk_unit_name='',
                            user=None, populate=True):
    """
    Create the sellable unit product of a bulk item, e.g. "Tot (30ml) (Smirnoff 750ml)".

    Prices are the parent's divided by the conversion rate, stock thresholds
    are scaled up by it. With `populate` the parent's active batches are
    mirrored as unit batches straight away.
    """
    conversion_rate = _positive_int(conversion_rate, 'Conversion rate')
    breakout_unit_name = (breakout_unit_name or '').strip()
    if not breakout_unit_name:
        raise ValueError('Breakout unit name is required')
    if parent.is_breakout:
        raise ValueError(f'{parent.name} is already a breakout unit')

    bulk_unit_name = (bulk_unit_name or parent.bulk_unit_name or '').strip()

    with transaction.atomic():
        child = Product.objects.create(
            store=parent.store,
            name=f"{breakout_unit_name} ({parent.name})",
            sku=f"{parent.sku or ''}_{breakout_unit_name}"[:50],
            barcode=f"{parent.barcode}-UNIT" if parent.barcode else '',
            description=f"{conversion_rate}x {breakout_unit_name} per {bulk_unit_name or 'bulk unit'}",
            category=parent.category,
            supplier=parent.supplier,
            cost_price=_unit_price(parent.cost_price, conversion_rate),
            selling_price=_unit_price(parent.selling_price, conversion_rate),
            quantity=0,
            low_stock_threshold=parent.low_stock_threshold * conversion_rate,
            reorder_quantity=parent.reorder_quantity * conversion_rate,
            bulk_unit_name=bulk_unit_name,
            breakout_unit_name=breakout_unit_name,
            conversion_rate=conversion_rate,
            parent=parent,
            is_bulk_parent=False,
        )

        parent.is_bulk_parent = True
        parent.bulk_unit_name = bulk_unit_name
        parent.breakout_unit_name = breakout_unit_name
        parent.conversion_rate = conversion_rate
        parent.save(update_fields=['is_bulk_parent', 'bulk_unit_name', 'breakout_unit_name',
                                   'conversion_rate', 'updated_at'])

        if populate:
            populate_breakout_batches(parent, child=child, user=user)

    logger.info(f"Breakout product {child.name} created from {parent.name} at {conversion_rate} per unit")
    return child


def create_breakout_from_preset(parent, preset_key, user=None, populate=True):
    preset = PRESETS.get(preset_key)
    if preset is None:
        raise ValueError(f'Unknown breaking bulk preset: {preset_key}')
    return create_breakout_product(
        parent,
        preset['breakout_unit_name'],
        preset['conversion_rate'],
        bulk_unit_name=preset['bulk_unit_name'],
        user=user,
        populate=populate,
    )


def _breakout_child(parent, child=None):
    if child is not None:
        if child.parent_id != parent.id:
            raise ValueError(f'{child.name} is not a breakout unit of {parent.name}')
        return child
    child = parent.breakout_products.filter(is_active=True).order_by('created_at').first()
    if child is None:
        raise ValueError(f'{parent.name} has no breakout unit product')
    return child


def populate_breakout_batches(parent, child=None, user=None):
    """
    Mirror every active parent batch as a unit batch on the child: one
    bottle in stock becomes 25 tots with the bottle's expiry date.
    Parent batches already mirrored are skipped.
    """
    child = _breakout_child(parent, child)
    rate = child.conversion_rate or 1

    created = []
    with transaction.atomic():
        parent_batches = InventoryBatch.objects.select_for_update().filter(
            product=parent, status='ACTIVE', quantity__gt=0
        ).exclude(breakout_batches__product=child)

        for bulk_batch in parent_batches:
            created.append(InventoryBatch.objects.create(
                store=parent.store,
                product=child,
                batch_number=f"{bulk_batch.batch_number or 'BULK'}_{child.breakout_unit_name}",
                quantity=bulk_batch.quantity * rate,
                expiry_date=bulk_batch.expiry_date,
                cost_price=child.cost_price,
                parent_batch=bulk_batch,
                received_by=user,
            ))

        units = sum(batch.quantity for batch in created)
        if units:
            child.adjust_stock(
                units, 'BREAKOUT', user=user,
                reference=parent.sku or str(parent.pk),
                notes=f"Breakout from {len(created)} bulk batch(es) of {parent.name}",
            )

    logger.info(f"Populated {len(created)} breakout batches for {child.name}")
    return created


def fefo_queryset(product):
    """Sellable batches of a product, the one expiring first on top."""
    today = timezone.localdate()
    return InventoryBatch.objects.filter(
        product=product,
        status='ACTIVE',
        quantity__gt=0,
    ).filter(
        Q(expiry_date__gte=today) | Q(expiry_date__isnull=True)
    ).order_by(F('expiry_date').asc(nulls_last=True), 'created_at')


def allocate_fefo(product, quantity):
    """
    Take `quantity` units from the product's batches, first expiring first.

    Returns the allocations made. Units not covered by batches are reported
    as an allocation with no batch and come from untracked stock. Product
    stock itself is not changed here.
    """
    quantity = _positive_int(quantity, 'Quantity')
    remaining = quantity
    allocations = []

    with transaction.atomic():
        for batch in fefo_queryset(product).select_for_update():
            if remaining <= 0:
                break
            take = min(batch.quantity, remaining)
            batch.quantity -= take
            batch.save(update_fields=['quantity', 'updated_at'])
            allocations.append({
                'batch_id': batch.id,
                'batch_number': batch.batch_number,
                'expiry_date': batch.expiry_date.isoformat() if batch.expiry_date else None,
                'quantity': take,
            })
            remaining -= take

    if remaining > 0:
        allocations.append({
            'batch_id': None,
            'batch_number': '',
            'expiry_date': None,
            'quantity': remaining,
        })

    return allocations


def restore_allocations(allocations):
    """Put units taken by allocate_fefo back into their batches."""
    for allocation in allocations or []:
        if allocation.get('batch_id'):
            InventoryBatch.objects.filter(pk=allocation['batch_id']).update(
                quantity=F('quantity') + allocation['quantity']
            )


def break_bulk(parent, bulk_quantity, user=None, child=None):
    """
    Open sealed bulk units: parent stock goes down by N, the unit product
    goes up by N x conversion rate. Unit batches inherit the expiry of
    the bulk batches they were opened from.
    """
    bulk_quantity = _positive_int(bulk_quantity, 'Bulk quantity')
    child = _breakout_child(parent, child)
    rate = child.conversion_rate or 1

    with transaction.atomic():
        parent = Product.objects.select_for_update().get(pk=parent.pk)
        if parent.quantity < bulk_quantity:
            raise ValueError(
                f'Only {parent.quantity} {parent.bulk_unit_name or "units"} of {parent.name} in stock'
            )

        allocations = allocate_fefo(parent, bulk_quantity)
        reference = f"BREAK-{timezone.now().strftime('%Y%m%d%H%M%S')}"
        parent.adjust_stock(
            -bulk_quantity, 'BREAKOUT', user=user, reference=reference,
            notes=f"Opened {bulk_quantity} for {child.name}",
        )

        unit_batches = []
        for allocation in allocations:
            if not allocation['batch_id']:
                continue
            bulk_batch = InventoryBatch.objects.get(pk=allocation['batch_id'])
            unit_batches.append(InventoryBatch.objects.create(
                store=parent.store,
                product=child,
                batch_number=f"{bulk_batch.batch_number}_{child.breakout_unit_name}",
                quantity=allocation['quantity'] * rate,
                expiry_date=bulk_batch.expiry_date,
                cost_price=child.cost_price,
                parent_batch=bulk_batch,
                received_by=user,
            ))

        units = bulk_quantity * rate
        child.adjust_stock(
            units, 'BREAKOUT', user=user, reference=reference,
            notes=f"{bulk_quantity} x {parent.name} opened",
        )

    logger.info(f"Broke {bulk_quantity} of {parent.name} into {units} {child.name}")
    return {
        'parent_id': parent.id,
        'child_id': child.id,
        'bulk_quantity': bulk_quantity,
        'units_added': units,
        'allocations': allocations,
        'batches': [batch.id for batch in unit_batches],
    }


def deduct_breakout_units(child, quantity, batch=None, user=None, reference='', transaction_type='SALE'):
    """Take units off a breakout product, from a given batch or FEFO."""
    if not child.is_breakout:
        raise ValueError(f'{child.name} is not a breakout unit')
    quantity = _positive_int(quantity, 'Quantity')

    with transaction.atomic():
        child = Product.objects.select_for_update().get(pk=child.pk)
        if child.quantity < quantity:
            raise ValueError(f'Insufficient stock for {child.name}. Available: {child.quantity}')

        if batch is not None:
            batch = InventoryBatch.objects.select_for_update().get(pk=batch.pk)
            if batch.product_id != child.id:
                raise ValueError(f'Batch {batch.batch_number} does not belong to {child.name}')
            if batch.quantity < quantity:
                raise ValueError(f'Batch {batch.batch_number} only has {batch.quantity} left')
            batch.quantity -= quantity
            batch.save(update_fields=['quantity', 'updated_at'])
            allocations = [{
                'batch_id': batch.id,
                'batch_number': batch.batch_number,
                'expiry_date': batch.expiry_date.isoformat() if batch.expiry_date else None,
                'quantity': quantity,
            }]
        else:
            allocations = allocate_fefo(child, quantity)

        child.adjust_stock(-quantity, transaction_type, user=user, reference=reference)

    return allocations


def calculate_audit_variance(parent, physical_bulk_count):
    """
    Compare what the shelf says with what the system says for a bulk item.

    Expected units are the physically counted bulk units times the
    conversion rate; system units are the stock of every active breakout
    product. A shortfall means units left without a sale (theft or
    over-pouring).
    """
    try:
        physical_bulk_count = int(physical_bulk_count)
    except (TypeError, ValueError):
        raise ValueError('Physical count must be a whole number')
    if physical_bulk_count < 0:
        raise ValueError('Physical count cannot be negative')

    rate = parent.conversion_rate or 1
    expected_units = physical_bulk_count * rate
    total_system_units = parent.breakout_products.filter(is_active=True).aggregate(
        total=Sum('quantity'))['total'] or 0

    variance = total_system_units - expected_units
    risk_level = 'SAFE'
    message = f"Inventory balanced: {total_system_units} units in system matches physical stock."

    if variance > 0:
        risk_level = 'WARNING'
        message = f"System overstock: {variance} extra units. Physical recount recommended."
    elif variance < 0:
        risk_level = 'CRITICAL' if total_system_units > CRITICAL_UNITS else 'WARNING'
        message = f"{risk_level}: {abs(variance)} units unaccounted for! Check for theft or over-pouring."

    result = {
        'totalSystemUnits': total_system_units,
        'expectedUnits': expected_units,
        'variance': abs(variance),
        'riskLevel': risk_level,
        'message': message,
    }

    if risk_level != 'SAFE':
        InventoryAlert.objects.create(
            store=parent.store,
            alert_type='BULK_VARIANCE',
            severity=risk_level,
            product=parent,
            message=message,
            data=result,
        )
        logger.warning(f"Bulk variance on {parent.name}: {message}")

    return result


def receive_batch(product, quantity, expiry_date=None, batch_number='', cost_price=None,
                  user=None, reference='', notes=''):
    """Book a delivered lot into stock as a new batch."""
    quantity = _positive_int(quantity, 'Quantity')
    with transaction.atomic():
        batch = InventoryBatch.objects.create(
            store=product.store,
            product=product,
            batch_number=batch_number,
            quantity=quantity,
            expiry_date=expiry_date,
            cost_price=cost_price if cost_price is not None else product.cost_price,
            received_by=user,
        )
        product.adjust_stock(quantity, 'PURCHASE', user=user, reference=reference or batch.batch_number,
                             notes=notes)
    logger.info(f"Received batch {batch.batch_number} of {quantity} x {product.name}")
    return batch


def dispose_batch(batch, user=None, reason=''):
    """Write a batch off: remaining stock leaves with an EXPIRED transaction."""
    if batch.status == 'DISPOSED':
        raise ValueError(f'Batch {batch.batch_number} is already disposed')

    with transaction.atomic():
        batch = InventoryBatch.objects.select_for_update().get(pk=batch.pk)
        written_off = batch.quantity
        if written_off > 0:
            batch.product.adjust_stock(
                -written_off, 'EXPIRED', user=user, reference=batch.batch_number,
                notes=reason or 'Batch disposed',
            )
        batch.quantity = 0
        batch.status = 'DISPOSED'
        batch.save(update_fields=['quantity', 'status', 'updated_at'])
        InventoryAlert.objects.filter(batch=batch, is_resolved=False).update(
            is_resolved=True, resolved_at=timezone.now()
        )

    logger.info(f"Batch {batch.batch_number} disposed, {written_off} units written off")
    return batch


def expire_batches(store=None):
    """Flag active batches past their expiry date. Returns how many were flagged."""
    today = timezone.localdate()
    batches = InventoryBatch.objects.filter(status='ACTIVE', expiry_date__lt=today).select_related('product')
    if store is not None:
        batches = batches.filter(store=store)

    count = 0
    for batch in batches:
        batch.status = 'EXPIRED'
        batch.save(update_fields=['status', 'updated_at'])
        InventoryAlert.objects.get_or_create(
            batch=batch,
            alert_type='EXPIRED',
            defaults={
                'store': batch.store,
                'product': batch.product,
                'severity': 'CRITICAL',
                'message': f"{batch.product.name} batch {batch.batch_number} expired on {batch.expiry_date}",
                'data': {'quantity': batch.quantity},
            },
        )
        count += 1

    if count:
        logger.info(f"{count} batches flagged as expired")
    return count


def expiring_batches(store, days=None):
    """Active stocked batches expiring within the alert window, soonest first."""
    days = settings.EXPIRY_ALERT_DAYS if days is None else days
    today = timezone.localdate()
    return InventoryBatch.objects.filter(
        store=store,
        status='ACTIVE',
        quantity__gt=0,
        expiry_date__gte=today,
        expiry_date__lte=today + timedelta(days=days),
    ).select_related('product').order_by('expiry_date')


def raise_expiry_alerts(store, days=None):
    """One EXPIRING_SOON alert and owner notification per batch, never repeated."""
    raised = []
    for batch in expiring_batches(store, days):
        days_left = batch.days_to_expiry
        message = (f"{batch.product.name} batch {batch.batch_number}: {batch.quantity} units "
                   f"expire in {days_left} day(s) on {batch.expiry_date}")
        alert, created = InventoryAlert.objects.get_or_create(
            batch=batch,
            alert_type='EXPIRING_SOON',
            defaults={
                'store': store,
                'product': batch.product,
                'severity': 'CRITICAL' if days_left <= EXPIRY_CRITICAL_DAYS else 'WARNING',
                'message': message,
                'data': {'days_to_expiry': days_left, 'quantity': batch.quantity},
            },
        )
        if created:
            notify_store_owner(store, 'EXPIRY', f'Expiring: {batch.product.name}', message)
            raised.append(alert)
    return raised
