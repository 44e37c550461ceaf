"""
Checkout: turning a cart into a sale, and everything that can happen to
the sale afterwards (M-Pesa completion, cancellation, voiding).
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import Sum, Count
from django.utils import timezone

from core.models import Product, Sale, SaleItem, Notification
from core.mpesa_service import MpesaService
from core.mpesa_utils import MpesaUtils
from core.reports import DEFAULT_STORE_NAME
from core.utils import record_audit, to_decimal, validate_phone
from inventory.breaking_bulk import allocate_fefo, restore_allocations

logger = logging.getLogger('pos')

# Payment is settled on the spot for these
IMMEDIATE_METHODS = ('CASH', 'CARD', 'BANK')


def find_product_by_barcode(store, code):
    """Scanned code to product, case-insensitive, active products of the store only."""
    code = (code or '').strip()
    if not code:
        return None
    return Product.objects.filter(store=store, barcode__iexact=code, is_active=True).first()


def build_receipt_data(sale):
    local_time = timezone.localtime(sale.created_at)
    return {
        'transaction_id': sale.invoice_number,
        'sale_id': sale.id,
        'store_name': sale.store.name or DEFAULT_STORE_NAME,
        'timestamp': local_time.strftime('%d/%m/%Y, %H:%M:%S'),
        'items': [
            {
                'product_id': item.product_id,
                'product_name': item.product_name,
                'barcode': item.product_barcode,
                'quantity': item.quantity,
                'unit_price': float(item.unit_price),
                'total_price': float(item.total_price),
            }
            for item in sale.items.all()
        ],
        'subtotal': float(sale.subtotal),
        'tax_amount': float(sale.tax_amount),
        'total': float(sale.total),
        'payment_method': sale.payment_label,
        'amount_tendered': float(sale.amount_tendered),
        'change_due': float(sale.change_due),
        'customer_name': sale.customer_name,
        'mpesa_receipt': sale.mpesa_receipt,
        'status': sale.status,
    }


def record_pos_sale(store, cart_items, payment_method, cashier=None, amount_tendered=None,
                    customer_name='', customer_phone='', mpesa_phone='', mpesa_receipt='',
                    notes='', service=None):
    """
    Record a sale from cart lines and take the goods out of stock.

    cart_items: [{'product_id': int, 'quantity': int}, ...]

    MADENI puts the total on the customer's tab. MPESA with a phone number
    sends an STK push and leaves the sale PENDING until the callback; a
    push that fails cancels the sale. MPESA without a phone is a till
    payment the cashier has already seen.
    """
    from debtors.services import add_debt

    if not cart_items:
        raise ValueError('Cannot record sale with empty cart')
    if payment_method not in dict(Sale.PAYMENT_METHODS):
        raise ValueError(f'Unknown payment method: {payment_method}')

    customer_name = (customer_name or '').strip()
    customer_phone = (customer_phone or '').strip()
    if payment_method == 'MADENI':
        if not customer_name or not customer_phone:
            raise ValueError('Customer name and phone are required for Madeni (credit) sales')
        if not validate_phone(customer_phone):
            raise ValueError(f'Invalid phone number: {customer_phone}')

    stk_pending = payment_method == 'MPESA' and bool(mpesa_phone)

    with transaction.atomic():
        lines = []
        subtotal = Decimal('0')
        for item in cart_items:
            quantity = int(item['quantity'])
            if quantity <= 0:
                raise ValueError('Quantities must be at least 1')
            product = Product.objects.select_for_update().filter(
                pk=item['product_id'], store=store, is_active=True
            ).first()
            if product is None:
                raise ValueError(f"Product {item.get('product_name') or item['product_id']} is no longer available")
            if product.quantity < quantity:
                raise ValueError(f'Insufficient stock for {product.name}. Available: {product.quantity}')
            lines.append((product, quantity))
            subtotal += product.selling_price * quantity

        tax_amount = (subtotal * store.tax_rate / Decimal('100')).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        total = subtotal + tax_amount

        change_due = Decimal('0')
        if payment_method == 'CASH':
            tendered = to_decimal(amount_tendered, 'amount tendered') if amount_tendered not in (None, '') else total
            if tendered < total:
                raise ValueError(f'Amount tendered (KES {tendered}) is less than the total (KES {total})')
            change_due = tendered - total
        else:
            tendered = total

        if stk_pending:
            status, payment_status = 'PENDING', 'PENDING'
        elif payment_method == 'MADENI':
            status, payment_status = 'COMPLETED', 'PENDING'
        else:
            status, payment_status = 'COMPLETED', 'PAID'

        sale = Sale.objects.create(
            store=store,
            cashier=cashier,
            customer_name=customer_name,
            customer_phone=customer_phone,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total=total,
            amount_tendered=tendered,
            change_due=change_due,
            payment_method=payment_method,
            status=status,
            payment_status=payment_status,
            mpesa_receipt=mpesa_receipt if payment_method == 'MPESA' and not stk_pending else '',
            collected_by=(cashier.get_full_name() or cashier.username) if cashier else '',
            notes=notes or '',
        )

        for product, quantity in lines:
            allocations = allocate_fefo(product, quantity)
            SaleItem.objects.create(
                sale=sale,
                product=product,
                quantity=quantity,
                unit_price=product.selling_price,
                batch_allocations=allocations,
            )
            product.adjust_stock(
                -quantity, 'SALE', user=cashier, reference=sale.invoice_number,
                notes=f'Sale #{sale.invoice_number}',
            )

        if payment_method == 'MADENI':
            add_debt(store, customer_name, customer_phone, total, sale=sale, actor=cashier)

    logger.info(f"Sale {sale.invoice_number} of KES {total} ({payment_method}) recorded in {store.access_code}")

    mpesa_transaction = None
    if stk_pending:
        try:
            mpesa_transaction = request_sale_payment(sale, mpesa_phone, user=cashier, service=service)
        except Exception as e:
            logger.error(f"STK push for sale {sale.invoice_number} failed: {str(e)}", exc_info=True)
            cancel_pending_sale(sale, f'M-Pesa request failed: {str(e)}')
            raise ValueError(f'M-Pesa payment failed: {str(e)}. Please try another method.')

        if mpesa_transaction.status == 'FAILED':
            cancel_pending_sale(sale, f'M-Pesa request failed: {mpesa_transaction.result_description}')
            raise ValueError('M-Pesa payment failed. Please try another method.')

    return {
        'sale': sale,
        'receipt': build_receipt_data(sale),
        'mpesa_transaction': mpesa_transaction,
    }


def request_sale_payment(sale, phone_number, user=None, service=None):
    """Send an STK push for a pending M-Pesa sale."""
    if sale.payment_method != 'MPESA' or sale.status != 'PENDING':
        raise ValueError(f'Sale {sale.invoice_number} is not awaiting M-Pesa payment')

    service = service or MpesaService()
    description = f"Payment for invoice {sale.invoice_number}"
    response = service.stk_push(
        phone_number=phone_number,
        amount=sale.total,
        account_reference=sale.invoice_number,
        transaction_desc=description,
    )

    mpesa_transaction = MpesaUtils.log_mpesa_transaction(
        response,
        amount=sale.total,
        phone_number=phone_number,
        account_reference=sale.invoice_number,
        transaction_desc=description,
        user=user,
        store=sale.store,
        sale=sale,
        purpose='SALE',
    )

    if response.get('success'):
        sale.mpesa_checkout_id = response['checkout_request_id']
        sale.mpesa_phone = response.get('phone_number') or phone_number
        sale.save(update_fields=['mpesa_checkout_id', 'mpesa_phone', 'updated_at'])

    return mpesa_transaction


def complete_mpesa_sale(sale, receipt_number, phone_number=None):
    if sale.status != 'PENDING':
        logger.warning(f"Ignoring M-Pesa completion of {sale.status} sale {sale.invoice_number}")
        return sale

    sale.status = 'COMPLETED'
    sale.payment_status = 'PAID'
    sale.mpesa_receipt = receipt_number or ''
    if phone_number:
        sale.mpesa_phone = str(phone_number)
    sale.save(update_fields=['status', 'payment_status', 'mpesa_receipt', 'mpesa_phone', 'updated_at'])

    if sale.cashier:
        Notification.objects.create(
            user=sale.cashier,
            store=sale.store,
            notification_type='SALE',
            title='M-Pesa Payment Successful',
            message=f'Payment of KES {sale.total} received for invoice #{sale.invoice_number}',
            link=f'/pos/sales/{sale.id}/',
        )
    logger.info(f"Sale {sale.invoice_number} paid via M-Pesa {receipt_number}")
    return sale


def _restore_stock(sale, user, transaction_type, note):
    for item in sale.items.select_related('product'):
        restore_allocations(item.batch_allocations)
        if item.product:
            item.product.adjust_stock(
                item.quantity, transaction_type, user=user, reference=sale.invoice_number, notes=note,
            )


def cancel_pending_sale(sale, reason=''):
    """Cancel an unpaid sale and put its goods back on the shelf."""
    if sale.status != 'PENDING':
        return sale

    with transaction.atomic():
        _restore_stock(sale, None, 'RETURN', f'Sale #{sale.invoice_number} cancelled')
        sale.status = 'CANCELLED'
        sale.notes = f"{sale.notes}\n{reason}".strip() if reason else sale.notes
        sale.save(update_fields=['status', 'notes', 'updated_at'])

    if sale.cashier:
        Notification.objects.create(
            user=sale.cashier,
            store=sale.store,
            notification_type='SYSTEM',
            title='Sale cancelled',
            message=f'Sale #{sale.invoice_number} was cancelled. {reason}'.strip(),
            link=f'/pos/sales/{sale.id}/',
        )
    logger.info(f"Sale {sale.invoice_number} cancelled: {reason}")
    return sale


def void_sale(sale, user, reason):
    """
    Void a recorded sale: stock goes back and a credit sale comes off the
    customer's tab.
    """
    from debtors.services import reverse_debt

    reason = (reason or '').strip()
    if not reason:
        raise ValueError('A reason is required to void a sale')
    if sale.status in ('VOIDED', 'CANCELLED'):
        raise ValueError(f'Sale {sale.invoice_number} is already {sale.status.lower()}')

    old_status = sale.status
    with transaction.atomic():
        _restore_stock(sale, user, 'RETURN', f'Sale #{sale.invoice_number} voided')
        if sale.payment_method == 'MADENI':
            reverse_debt(sale, actor=user)

        sale.status = 'VOIDED'
        sale.voided_by = user
        sale.voided_at = timezone.now()
        sale.notes = f"{sale.notes}\nVoided: {reason}".strip()
        sale.save(update_fields=['status', 'voided_by', 'voided_at', 'notes', 'updated_at'])

        record_audit(
            sale.store, 'SALE_VOIDED', 'sale',
            f"Sale {sale.invoice_number} of KES {sale.total} voided: {reason}",
            resource_id=sale.id, actor=user,
            customer_name=sale.customer_name, customer_phone=sale.customer_phone,
            old_value={'status': old_status}, new_value={'status': 'VOIDED'},
            metadata={'payment_method': sale.payment_method, 'total': float(sale.total)},
        )

    logger.info(f"Sale {sale.invoice_number} voided by {user.username}")
    return sale


def daily_reconciliation(store, date):
    """Totals and counts per payment method of the day's completed sales."""
    sales = Sale.objects.filter(store=store, status='COMPLETED', created_at__date=date)
    by_method = {
        row['payment_method']: row
        for row in sales.values('payment_method').annotate(total=Sum('total'), count=Count('id'))
    }

    methods = []
    for code, label in Sale.PAYMENT_METHODS:
        row = by_method.get(code, {})
        methods.append({
            'payment_method': code,
            'label': label,
            'total': float(row.get('total') or 0),
            'count': row.get('count', 0),
        })

    totals = sales.aggregate(total=Sum('total'), count=Count('id'))
    return {
        'date': date.isoformat(),
        'methods': methods,
        'total': float(totals['total'] or 0),
        'count': totals['count'],
        'pending_mpesa': Sale.objects.filter(
            store=store, status='PENDING', payment_method='MPESA', created_at__date=date
        ).count(),
        'voided': Sale.objects.filter(store=store, status='VOIDED', created_at__date=date).count(),
    }
