"""
End of day cash: the staff blind close and the owner's register audit.
"""
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction, IntegrityError
from django.db.models import Sum, Avg, Max, Min, Count
from django.utils import timezone

from core.models import Sale
from core.utils import record_audit, notify_store_owner, to_decimal
from .models import BlindClose, CashAudit

logger = logging.getLogger('pos')

FRAUD_SUSPECT_PERCENT = Decimal('5')
HIGH_SEVERITY_PERCENT = Decimal('15')
MEDIUM_SEVERITY_PERCENT = Decimal('10')
# variance_percentage holds at most 8 digits
MAX_VARIANCE_PERCENT = Decimal('999999.99')

PATTERN_WINDOW_DAYS = 30
HIGH_RISK_SUSPECTS = 10
MEDIUM_RISK_SUSPECTS = 5


def expected_cash(store, date):
    """Completed CASH sales of the day. Card, M-Pesa and credit never reach the drawer."""
    return Sale.objects.filter(
        store=store,
        status='COMPLETED',
        payment_method='CASH',
        created_at__date=date,
    ).aggregate(total=Sum('total'))['total'] or Decimal('0')


def non_cash_totals(store, date):
    """What staff may see while counting: everything except the cash figure."""
    rows = Sale.objects.filter(
        store=store, status='COMPLETED', created_at__date=date
    ).exclude(payment_method='CASH').values('payment_method').annotate(total=Sum('total'))
    return {row['payment_method']: float(row['total']) for row in rows}


def submit_blind_close(store, staff, counted_cash, date=None):
    """
    Record the staff count of the drawer. The response never carries the
    expected amount, only whether the count was off and by how much.
    """
    date = date or timezone.localdate()
    counted_cash = to_decimal(counted_cash, 'counted cash')
    if counted_cash < 0:
        raise ValueError('Counted cash cannot be negative')
    if BlindClose.objects.filter(store=store, close_date=date).exists():
        raise ValueError(f'Cash for {date} has already been closed')

    expected = expected_cash(store, date)
    difference = counted_cash - expected
    if difference < 0:
        discrepancy_type = 'SHORTAGE'
    elif difference > 0:
        discrepancy_type = 'OVERAGE'
    else:
        discrepancy_type = 'BALANCED'
    discrepancy = abs(difference)

    staff_name = staff.get_full_name() or staff.username
    try:
        with transaction.atomic():
            close = BlindClose.objects.create(
                store=store,
                close_date=date,
                expected_cash=expected,
                counted_cash=counted_cash,
                discrepancy_amount=discrepancy,
                discrepancy_type=discrepancy_type,
                staff=staff,
            )
            if discrepancy > 0:
                record_audit(
                    store, 'CASH_CLOSE', 'blind_close',
                    f"Blind close {date} by {staff_name}: {discrepancy_type} of KES {discrepancy}",
                    resource_id=close.id, actor=staff,
                    new_value={
                        'counted_cash': float(counted_cash),
                        'expected_cash': float(expected),
                        'discrepancy_amount': float(discrepancy),
                        'discrepancy_type': discrepancy_type,
                    },
                )
    except IntegrityError:
        raise ValueError(f'Cash for {date} has already been closed')

    if discrepancy > 0:
        notify_store_owner(
            store, 'CASH_CLOSE', f'Cash {discrepancy_type.lower()} on {date}',
            f"{staff_name} counted KES {counted_cash}. {discrepancy_type} of KES {discrepancy}.",
        )
        logger.warning(f"Blind close {store.access_code} {date}: {discrepancy_type} of KES {discrepancy}")
    else:
        logger.info(f"Blind close {store.access_code} {date} balanced")

    return close


def staff_close_result(close):
    """The blind close as shown to staff."""
    return {
        'id': close.id,
        'close_date': close.close_date.isoformat(),
        'counted_cash': float(close.counted_cash),
        'discrepancy_amount': float(close.discrepancy_amount),
        'discrepancy_type': close.discrepancy_type,
        'message': 'The owner will review your count and notify you of any discrepancies.',
    }


def verify_blind_close(close, owner, notes=''):
    if close.verified_by_owner:
        raise ValueError('This close has already been verified')

    close.verified_by_owner = True
    close.verified_by = owner
    close.verified_at = timezone.now()
    close.owner_notes = notes or ''
    close.save(update_fields=['verified_by_owner', 'verified_by', 'verified_at', 'owner_notes'])

    record_audit(
        close.store, 'CASH_CLOSE_VERIFIED', 'blind_close',
        f"Blind close {close.close_date} verified ({close.discrepancy_type} KES {close.discrepancy_amount})",
        resource_id=close.id, actor=owner,
        new_value={'verified': True, 'owner_notes': close.owner_notes},
    )
    return close


def _percent(value):
    value = value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    return max(min(value, MAX_VARIANCE_PERCENT), -MAX_VARIANCE_PERCENT)


def record_cash_audit(store, register_date, opening_balance, expected_closing, actual_closing,
                      reconciled_by=None, notes=''):
    opening_balance = to_decimal(opening_balance or 0, 'opening balance')
    expected_closing = to_decimal(expected_closing, 'expected closing')
    actual_closing = to_decimal(actual_closing, 'actual closing')

    variance = actual_closing - expected_closing
    variance_percent = _percent(variance / expected_closing * 100) if expected_closing else Decimal('0')
    magnitude = abs(variance_percent)

    if variance > 0:
        category = 'OVERAGE'
    elif variance < 0:
        category = 'SHORTAGE'
    else:
        category = 'NORMAL'

    if magnitude > HIGH_SEVERITY_PERCENT:
        severity = 'HIGH'
    elif magnitude > MEDIUM_SEVERITY_PERCENT:
        severity = 'MEDIUM'
    else:
        severity = 'LOW'

    audit = CashAudit.objects.create(
        store=store,
        register_date=register_date,
        opening_balance=opening_balance,
        expected_closing=expected_closing,
        actual_closing=actual_closing,
        variance_amount=variance,
        variance_percentage=variance_percent,
        is_fraud_suspect=magnitude > FRAUD_SUSPECT_PERCENT,
        fraud_category=category,
        severity=severity,
        reconciled_by=reconciled_by,
        notes=notes or '',
    )

    record_audit(
        store, 'CASH_AUDIT', 'cash_audit',
        f"Cash audit {register_date}: variance KES {variance} ({variance_percent}%), {category}",
        resource_id=audit.id, actor=reconciled_by,
        new_value={'variance_amount': float(variance), 'variance_percentage': float(variance_percent),
                   'severity': severity, 'is_fraud_suspect': audit.is_fraud_suspect},
    )

    if audit.is_fraud_suspect:
        notify_store_owner(
            store, 'CASH_CLOSE', 'Cash variance alert',
            f"Cash variance of {variance_percent}% detected on {register_date}. "
            f"Amount: KES {abs(variance)}. Status: {category}. Please review.",
        )
        logger.warning(f"Cash audit {store.access_code} {register_date}: {variance_percent}% {category}")

    return audit


def cash_fraud_pattern(store, days=PATTERN_WINDOW_DAYS):
    since = timezone.localdate() - timedelta(days=days)
    audits = CashAudit.objects.filter(store=store, register_date__gte=since)

    suspects = audits.filter(is_fraud_suspect=True).count()
    if suspects >= HIGH_RISK_SUSPECTS:
        risk = 'HIGH_RISK'
    elif suspects >= MEDIUM_RISK_SUSPECTS:
        risk = 'MEDIUM_RISK'
    else:
        risk = 'LOW_RISK'

    stats = audits.aggregate(
        avg=Avg('variance_percentage'),
        max=Max('variance_percentage'),
        min=Min('variance_percentage'),
        count=Count('id'),
        total=Sum('variance_amount'),
    )
    return {
        'risk_level': risk,
        'suspect_count': suspects,
        'high_severity_count': audits.filter(severity='HIGH').count(),
        'avg_variance': round(float(stats['avg'] or 0), 2),
        'max_variance': float(stats['max'] or 0),
        'min_variance': float(stats['min'] or 0),
        'variance_count': stats['count'],
        'total_variance_amount': float(stats['total'] or 0),
    }
