"""
M-Pesa reconciliation: money Daraja confirmed for POS sales against the
sales it was meant to pay for.

A confirmed STK payment matches when its sale completed; the match is
flagged when the amounts differ by more than KES 100. Completed M-Pesa
sales with no confirmed payment behind them are listed so the owner can
check the till statement.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum
from django.utils import timezone

from core.models import Sale
from core.mpesa_models import MpesaTransaction
from core.utils import record_audit, notify_store_owner
from .models import MpesaReconciliation

logger = logging.getLogger('pos')

VARIANCE_TOLERANCE = Decimal('100')


def confirmed_payments(store, start_date, end_date):
    return MpesaTransaction.objects.filter(
        store=store,
        purpose='SALE',
        status='SUCCESS',
        completed_at__date__range=[start_date, end_date],
    ).select_related('sale')


def match_payment(payment):
    """Compare one confirmed payment with its sale."""
    sale = payment.sale
    row = {
        'transaction_id': str(payment.transaction_id),
        'receipt': payment.mpesa_receipt_number,
        'amount': payment.amount,
        'sale_id': sale.id if sale else None,
        'invoice_number': sale.invoice_number if sale else '',
    }
    if sale is None or sale.status != 'COMPLETED':
        row.update(matched=False, variance=None, flagged=True,
                   reason='No sale' if sale is None else f'Sale is {sale.status.lower()}')
        return row
    variance = payment.amount - sale.total
    row.update(matched=True, sale_total=sale.total, variance=variance,
               flagged=abs(variance) > VARIANCE_TOLERANCE, reason='')
    return row


def reconcile_mpesa(store, start_date, end_date=None, user=None):
    """Match the period's confirmed payments to sales and keep the result."""
    end_date = end_date or start_date
    if start_date > end_date:
        raise ValueError('Start date must be before end date')

    rows = [match_payment(payment) for payment in confirmed_payments(store, start_date, end_date)]
    matched = [row for row in rows if row['matched']]
    unmatched = [row for row in rows if not row['matched']]
    flagged = [row for row in matched if row['flagged']]

    paid_sale_ids = {row['sale_id'] for row in matched}
    unconfirmed_sales = Sale.objects.filter(
        store=store, status='COMPLETED', payment_method='MPESA',
        created_at__date__range=[start_date, end_date],
    ).exclude(pk__in=paid_sale_ids)
    unconfirmed = [
        {'sale_id': sale.id, 'invoice_number': sale.invoice_number, 'total': str(sale.total),
         'receipt': sale.mpesa_receipt}
        for sale in unconfirmed_sales
    ]
    missing_receipts = sum(1 for sale in unconfirmed if not sale['receipt'])

    def money(values):
        return sum(values, Decimal('0'))

    issues = bool(unmatched or flagged or missing_receipts)
    log = MpesaReconciliation.objects.create(
        store=store,
        period_start=start_date,
        period_end=end_date,
        total_deposits=money(row['amount'] for row in rows),
        matched_amount=money(row['amount'] for row in matched),
        unmatched_amount=money(row['amount'] for row in unmatched),
        matched_count=len(matched),
        unmatched_count=len(unmatched),
        variance_amount=money(abs(row['variance']) for row in matched),
        flagged_count=len(flagged),
        status='ISSUES_FOUND' if issues else 'RECONCILED',
        details={
            'flagged': [_serialisable(row) for row in flagged],
            'unmatched': [_serialisable(row) for row in unmatched],
            'unconfirmed_sales': unconfirmed,
        },
        reconciled_by=user,
    )

    record_audit(
        store, 'CASH_AUDIT', 'mpesa_reconciliation',
        f"M-Pesa reconciliation {start_date} to {end_date}: {log.matched_count} matched, "
        f"{log.unmatched_count} unmatched, {log.flagged_count} flagged",
        resource_id=log.id, actor=user,
        new_value={'status': log.status, 'total_deposits': float(log.total_deposits)},
    )
    if issues:
        notify_store_owner(
            store, 'CASH_CLOSE', 'M-Pesa reconciliation issues',
            f"{start_date} to {end_date}: {log.unmatched_count} payment(s) without a sale, "
            f"{log.flagged_count} amount mismatch(es), {missing_receipts} M-Pesa sale(s) without a receipt",
        )
    logger.info(f"M-Pesa reconciliation {log.id} for {store.access_code}: {log.status}")
    return log


def _serialisable(row):
    return {key: str(value) if isinstance(value, Decimal) else value for key, value in row.items()}


def reconciliation_variance(log):
    """How far the matched payments drifted from their sales, as a share of deposits."""
    percent = float(log.variance_amount / log.total_deposits * 100) if log.total_deposits else 0
    return {
        'total_deposits': log.total_deposits,
        'variance_amount': log.variance_amount,
        'variance_percentage': round(percent, 2),
        'reconciled_count': log.matched_count,
        'unreconciled_count': log.unmatched_count + len(log.details.get('unconfirmed_sales', [])),
    }


def average_daily_deposits(store, days=30):
    end = timezone.localdate()
    total = confirmed_payments(store, end - timedelta(days=days - 1), end).aggregate(
        total=Sum('amount'))['total'] or Decimal('0')
    return (total / days).quantize(Decimal('0.01'))
