"""
Supplier invoices, purchase orders and the fraud flags raised when a
delivery or invoice does not match what was ordered
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum, Count, Q
from django.utils import timezone

from core.models import PurchaseOrder, PurchaseOrderItem
from core.utils import to_decimal, notify_store_owner
from .breaking_bulk import receive_batch
from .models import SupplierInvoice, SupplierFraudFlag

logger = logging.getLogger('inventory')

UNPAID_STATUSES = ('PENDING', 'VERIFIED', 'DISPUTED')

# Severity thresholds for supplier fraud flags
CRITICAL_OVERCHARGE = Decimal('10000')
HIGH_VARIANCE_PERCENT = Decimal('20')
LOW_QUALITY_SCORE = 5
MEDIUM_DAYS_LATE = 7


def create_invoice(store, supplier, invoice_number, invoice_date, due_date, subtotal,
                   tax_amount=0, purchase_order=None, notes='', user=None):
    if supplier.store_id != store.id:
        raise ValueError('Supplier does not belong to this store')
    invoice_number = (invoice_number or '').strip()
    if not invoice_number:
        raise ValueError('Invoice number is required')
    if SupplierInvoice.objects.filter(supplier=supplier, invoice_number=invoice_number).exists():
        raise ValueError(f'Invoice {invoice_number} from {supplier.name} is already recorded')
    if due_date < invoice_date:
        raise ValueError('Due date cannot be before the invoice date')
    if purchase_order is not None and purchase_order.store_id != store.id:
        raise ValueError('Purchase order does not belong to this store')

    subtotal = to_decimal(subtotal, 'subtotal')
    tax_amount = to_decimal(tax_amount or 0, 'tax amount')
    if subtotal < 0 or tax_amount < 0:
        raise ValueError('Invoice amounts cannot be negative')

    invoice = SupplierInvoice.objects.create(
        store=store,
        supplier=supplier,
        purchase_order=purchase_order,
        invoice_number=invoice_number,
        invoice_date=invoice_date,
        due_date=due_date,
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=subtotal + tax_amount,
        notes=notes,
        created_by=user,
    )
    logger.info(f"Supplier invoice {invoice_number} from {supplier.name} recorded: KES {invoice.total_amount}")
    if purchase_order is not None:
        check_invoice_against_order(invoice, user=user)
    return invoice


def verify_invoice(invoice):
    if invoice.status not in ('PENDING', 'DISPUTED'):
        raise ValueError(f'Cannot verify a {invoice.get_status_display().lower()} invoice')
    invoice.status = 'VERIFIED'
    invoice.save(update_fields=['status', 'updated_at'])
    return invoice


def mark_invoice_paid(invoice, payment_date=None):
    if invoice.status == 'PAID':
        raise ValueError('Invoice is already paid')
    invoice.status = 'PAID'
    invoice.payment_date = payment_date or timezone.localdate()
    invoice.save(update_fields=['status', 'payment_date', 'updated_at'])
    logger.info(f"Supplier invoice {invoice.invoice_number} paid on {invoice.payment_date}")
    return invoice


def dispute_invoice(invoice, note):
    if invoice.status == 'PAID':
        raise ValueError('A paid invoice cannot be disputed')
    note = (note or '').strip()
    if not note:
        raise ValueError('A reason is required to dispute an invoice')
    invoice.status = 'DISPUTED'
    stamp = timezone.localdate().isoformat()
    invoice.notes = f"{invoice.notes}\n[{stamp}] Disputed: {note}".strip()
    invoice.save(update_fields=['status', 'notes', 'updated_at'])
    return invoice


def total_owed(store, supplier=None):
    invoices = SupplierInvoice.objects.filter(store=store, status__in=UNPAID_STATUSES)
    if supplier is not None:
        invoices = invoices.filter(supplier=supplier)
    return invoices.aggregate(total=Sum('total_amount'))['total'] or Decimal('0')


def owed_by_supplier(store):
    """Unpaid totals per supplier with overdue counts, largest balance first."""
    today = timezone.localdate()
    rows = SupplierInvoice.objects.filter(store=store, status__in=UNPAID_STATUSES).values(
        'supplier_id', 'supplier__name'
    ).annotate(
        owed=Sum('total_amount'),
        invoices=Count('id'),
        overdue=Count('id', filter=Q(due_date__lt=today)),
    ).order_by('-owed')
    return [
        {
            'supplier_id': row['supplier_id'],
            'supplier': row['supplier__name'],
            'owed': row['owed'],
            'invoices': row['invoices'],
            'overdue': row['overdue'],
        }
        for row in rows
    ]


def create_purchase_order(store, supplier, items, user=None, expected_date=None, notes=''):
    """
    items: [{'product': Product, 'quantity': int, 'unit_cost': Decimal,
             'expiry_date': date|None, 'batch_number': str}]
    """
    if supplier.store_id != store.id:
        raise ValueError('Supplier does not belong to this store')
    if not items:
        raise ValueError('A purchase order needs at least one item')

    with transaction.atomic():
        order = PurchaseOrder.objects.create(
            store=store,
            supplier=supplier,
            expected_date=expected_date,
            notes=notes,
            created_by=user,
        )
        for item in items:
            product = item['product']
            if product.store_id != store.id:
                raise ValueError(f'{product.name} does not belong to this store')
            quantity = int(item['quantity'])
            if quantity <= 0:
                raise ValueError(f'Quantity for {product.name} must be greater than 0')
            PurchaseOrderItem.objects.create(
                purchase_order=order,
                product=product,
                quantity=quantity,
                unit_cost=to_decimal(item.get('unit_cost', product.cost_price), 'unit cost'),
                expiry_date=item.get('expiry_date'),
                batch_number=item.get('batch_number', ''),
            )
        order.recalculate_total()

    logger.info(f"Purchase order {order.po_number} created for {supplier.name}: KES {order.total_amount}")
    return order


def _move(order, allowed_from, status):
    if order.status not in allowed_from:
        raise ValueError(f'Cannot mark a {order.get_status_display().lower()} order as {status.lower()}')
    order.status = status
    order.save(update_fields=['status', 'updated_at'])
    logger.info(f"Purchase order {order.po_number} {status}")
    return order


def submit_purchase_order(order):
    return _move(order, ('DRAFT',), 'SUBMITTED')


def approve_purchase_order(order):
    return _move(order, ('SUBMITTED',), 'APPROVED')


def cancel_purchase_order(order):
    return _move(order, ('DRAFT', 'SUBMITTED', 'APPROVED'), 'CANCELLED')


def receive_purchase_order(order, user=None, received_quantities=None):
    """
    Book the delivered goods into stock. Lines with an expiry date or batch
    number become inventory batches.

    received_quantities maps a line id to what actually arrived; lines not
    named arrive in full. Short and late deliveries are flagged against the
    supplier.
    """
    if order.status not in ('SUBMITTED', 'APPROVED'):
        raise ValueError(f'Cannot receive a {order.get_status_display().lower()} order')
    if received_quantities and not isinstance(received_quantities, dict):
        raise ValueError('Received quantities must map order lines to quantities')
    try:
        received_quantities = {int(k): v for k, v in (received_quantities or {}).items()}
    except (TypeError, ValueError):
        raise ValueError('Received quantities must map order lines to quantities')

    shortfalls = []
    with transaction.atomic():
        for item in order.items.select_related('product'):
            outstanding = item.quantity - item.received_quantity
            if outstanding <= 0:
                continue
            try:
                delivered = int(received_quantities.get(item.id, outstanding))
            except (TypeError, ValueError):
                raise ValueError(f'Received quantity for {item.product.name} must be a whole number')
            if delivered < 0 or delivered > outstanding:
                raise ValueError(f'Received quantity for {item.product.name} must be between 0 and {outstanding}')

            product = item.product
            if delivered and (item.expiry_date or item.batch_number):
                receive_batch(
                    product, delivered,
                    expiry_date=item.expiry_date,
                    batch_number=item.batch_number,
                    cost_price=item.unit_cost,
                    user=user,
                    reference=order.po_number,
                    notes=f'Received from {order.supplier.name}',
                )
            elif delivered:
                product.adjust_stock(
                    delivered, 'PURCHASE', user=user, reference=order.po_number,
                    notes=f'Received from {order.supplier.name}',
                )
            if product.cost_price != item.unit_cost:
                product.cost_price = item.unit_cost
                product.save(update_fields=['cost_price', 'updated_at'])
            item.received_quantity += delivered
            item.save()
            if delivered < outstanding:
                shortfalls.append((item, delivered))

        order.status = 'RECEIVED'
        order.received_date = timezone.localdate()
        order.save(update_fields=['status', 'received_date', 'updated_at'])

        for item, delivered in shortfalls:
            flag_supplier_fraud(
                order.store, order.supplier, 'QUANTITY_MISMATCH',
                purchase_order=order,
                quantity_ordered=item.quantity,
                quantity_received=item.received_quantity,
                description=f'{item.product.name}: ordered {item.quantity}, received {item.received_quantity}',
                user=user,
            )
        if order.expected_date and order.received_date > order.expected_date:
            days_late = (order.received_date - order.expected_date).days
            flag_supplier_fraud(
                order.store, order.supplier, 'DELIVERY_LATE',
                purchase_order=order,
                days_late=days_late,
                description=f'{order.po_number} arrived {days_late} day(s) after {order.expected_date}',
                user=user,
            )

    logger.info(f"Purchase order {order.po_number} received, {len(shortfalls)} line(s) short")
    return order


# Supplier fraud flags

def fraud_severity(overcharge_amount=0, variance_percentage=0, quality_score=None, days_late=0):
    if overcharge_amount > CRITICAL_OVERCHARGE:
        return 'CRITICAL'
    if variance_percentage > HIGH_VARIANCE_PERCENT or (quality_score is not None and quality_score < LOW_QUALITY_SCORE):
        return 'HIGH'
    if days_late > MEDIUM_DAYS_LATE:
        return 'MEDIUM'
    return 'LOW'


def flag_supplier_fraud(store, supplier, fraud_type, description='', purchase_order=None, invoice=None,
                        quantity_ordered=0, quantity_received=0, ordered_unit_price=None,
                        invoice_unit_price=None, overcharge_amount=None, days_late=0,
                        quality_score=None, user=None):
    """
    Raise a flag against a supplier. Quantity and price variances are
    worked out from what was ordered against what was delivered or billed.
    """
    if fraud_type not in dict(SupplierFraudFlag.TYPE_CHOICES):
        raise ValueError(f'Unknown fraud type: {fraud_type}')
    if supplier.store_id != store.id:
        raise ValueError('Supplier does not belong to this store')
    if quality_score not in (None, ''):
        quality_score = int(quality_score)
        if not 1 <= quality_score <= 10:
            raise ValueError('Quality score must be between 1 and 10')
    else:
        quality_score = None

    quantity_ordered = int(quantity_ordered or 0)
    quantity_received = int(quantity_received or 0)
    quantity_variance = quantity_ordered - quantity_received
    variance_percentage = (
        (Decimal(quantity_variance) / quantity_ordered * 100).quantize(Decimal('0.01')) if quantity_ordered else Decimal('0')
    )

    price_variance = Decimal('0')
    if ordered_unit_price is not None and invoice_unit_price is not None:
        price_variance = to_decimal(invoice_unit_price, 'invoice price') - to_decimal(ordered_unit_price, 'ordered price')
    if overcharge_amount is None:
        overcharge_amount = max(price_variance, Decimal('0')) * quantity_received
    overcharge_amount = to_decimal(overcharge_amount, 'overcharge amount')

    severity = fraud_severity(overcharge_amount, variance_percentage, quality_score, days_late)
    flag = SupplierFraudFlag.objects.create(
        store=store,
        supplier=supplier,
        purchase_order=purchase_order,
        invoice=invoice,
        fraud_type=fraud_type,
        severity=severity,
        quantity_ordered=quantity_ordered,
        quantity_received=quantity_received,
        quantity_variance=quantity_variance,
        variance_percentage=variance_percentage,
        price_variance=price_variance,
        overcharge_amount=overcharge_amount,
        days_late=days_late,
        quality_score=quality_score,
        description=description or dict(SupplierFraudFlag.TYPE_CHOICES)[fraud_type],
        reported_by=user,
    )
    if severity in ('CRITICAL', 'HIGH'):
        notify_store_owner(
            store, 'PURCHASE', f'Supplier flagged: {supplier.name}',
            f'{flag.get_fraud_type_display()} ({severity}): {flag.description}',
        )
    logger.warning(f"Supplier {supplier.name} flagged for {fraud_type} ({severity}): {flag.description}")
    return flag


def resolve_fraud_flag(flag, notes, user=None):
    if flag.is_resolved:
        raise ValueError('Flag is already resolved')
    notes = (notes or '').strip()
    if not notes:
        raise ValueError('Resolution notes are required')
    flag.is_resolved = True
    flag.resolution_notes = notes
    flag.resolved_by = user
    flag.resolved_at = timezone.now()
    flag.save(update_fields=['is_resolved', 'resolution_notes', 'resolved_by', 'resolved_at'])
    logger.info(f"Supplier fraud flag {flag.id} resolved: {notes}")
    return flag


def open_fraud_flags(store, high_severity_only=False):
    flags = SupplierFraudFlag.objects.filter(store=store, is_resolved=False).select_related('supplier')
    if high_severity_only:
        flags = flags.filter(severity__in=('CRITICAL', 'HIGH'))
    return flags


def detect_po_invoice_mismatch(invoice):
    """Ways an invoice disagrees with the purchase order it bills. Empty when they agree."""
    order = invoice.purchase_order
    if order is None:
        return []
    issues = []
    if order.supplier_id != invoice.supplier_id:
        issues.append(f'Supplier mismatch: PO from {order.supplier.name}, invoice from {invoice.supplier.name}')
    if abs(invoice.subtotal - order.total_amount) > Decimal('0.01'):
        issues.append(f'Amount mismatch: PO KES {order.total_amount}, Invoice KES {invoice.subtotal}')
    return issues


def check_invoice_against_order(invoice, user=None):
    issues = detect_po_invoice_mismatch(invoice)
    if not issues:
        return None
    return flag_supplier_fraud(
        invoice.store, invoice.supplier, 'INVOICE_MISMATCH',
        description='; '.join(issues),
        purchase_order=invoice.purchase_order,
        invoice=invoice,
        overcharge_amount=max(invoice.subtotal - invoice.purchase_order.total_amount, Decimal('0')),
        user=user,
    )


def supplier_scorecard(supplier):
    """Delivery record of a supplier: fill rate, punctuality and open flags."""
    lines = PurchaseOrderItem.objects.filter(
        purchase_order__supplier=supplier, purchase_order__status='RECEIVED',
    ).aggregate(ordered=Sum('quantity'), received=Sum('received_quantity'))
    orders = PurchaseOrder.objects.filter(supplier=supplier, status='RECEIVED')
    dated = orders.filter(expected_date__isnull=False)
    late = sum(1 for order in dated if order.received_date and order.received_date > order.expected_date)
    flags = SupplierFraudFlag.objects.filter(supplier=supplier)
    ordered = lines['ordered'] or 0
    return {
        'supplier_id': supplier.id,
        'supplier': supplier.name,
        'orders_received': orders.count(),
        'fill_rate': round((lines['received'] or 0) / ordered * 100, 1) if ordered else None,
        'on_time_rate': round((dated.count() - late) / dated.count() * 100, 1) if dated.count() else None,
        'total_flags': flags.count(),
        'open_flags': flags.filter(is_resolved=False).count(),
        'flags_by_type': dict(flags.order_by().values_list('fraud_type').annotate(count=Count('id'))),
        'total_overcharge': flags.aggregate(total=Sum('overcharge_amount'))['total'] or Decimal('0'),
    }
