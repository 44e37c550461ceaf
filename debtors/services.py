"""
Madeni: customer credit taken at the till and paid back over time.
"""
import logging
from decimal import Decimal
from urllib.parse import quote

from django.db import transaction
from django.db.models import Sum, Count
from django.utils import timezone

from core.models import AuditLog
from core.permissions import get_user_role, ROLE_SUPER_ADMIN, MANAGER_ROLES
from core.utils import record_audit, normalize_phone, to_decimal, validate_phone
from .models import Debtor, DebtPayment

logger = logging.getLogger('debtors')

REMINDER_TEMPLATE = (
    "Hi {name}, you have an outstanding balance of KES {debt} from your recent purchases. "
    "Please settle when possible. Thank you!"
)


def _status_for(debtor):
    if debtor.total_debt <= 0:
        return 'SETTLED'
    if debtor.amount_paid > 0:
        return 'PARTIAL'
    return 'ACTIVE'


def add_debt(store, customer_name, customer_phone, amount, sale=None, actor=None):
    """Put an amount on the customer's tab, creating the debtor on first credit."""
    amount = to_decimal(amount)
    if amount <= 0:
        raise ValueError('Debt amount must be greater than zero')
    if not validate_phone(customer_phone):
        raise ValueError(f'Invalid phone number: {customer_phone}')

    phone = normalize_phone(customer_phone)
    metadata = {'payment_method': 'MADENI'}
    if sale is not None:
        metadata['transaction_id'] = sale.invoice_number

    with transaction.atomic():
        debtor = Debtor.objects.select_for_update().filter(store=store, customer_phone=phone).first()
        if debtor is None:
            debtor = Debtor.objects.create(
                store=store,
                customer_name=customer_name,
                customer_phone=phone,
                total_debt=amount,
                last_sale_date=timezone.now(),
            )
            record_audit(
                store, 'DEBTOR_CREATED', 'debtor',
                f"New debtor created: {customer_name}. Initial debt: KES {amount}",
                resource_id=debtor.id, actor=actor,
                customer_name=customer_name, customer_phone=phone,
                new_value={'total_debt': float(amount)},
                metadata=metadata,
            )
        else:
            old_debt = debtor.total_debt
            debtor.total_debt = old_debt + amount
            debtor.customer_name = customer_name or debtor.customer_name
            debtor.last_sale_date = timezone.now()
            debtor.status = _status_for(debtor)
            debtor.save(update_fields=['total_debt', 'customer_name', 'last_sale_date', 'status', 'updated_at'])
            record_audit(
                store, 'DEBT_UPDATED', 'debtor',
                f"POS sale of KES {amount} added to existing debt. New balance: KES {debtor.total_debt}",
                resource_id=debtor.id, actor=actor,
                customer_name=debtor.customer_name, customer_phone=phone,
                old_value={'total_debt': float(old_debt)},
                new_value={'total_debt': float(debtor.total_debt)},
                metadata=metadata,
            )

    logger.info(f"Debt of KES {amount} added for {phone} in {store.access_code}")
    return debtor


def reverse_debt(sale, actor=None):
    """Take a voided credit sale back off the customer's tab."""
    phone = normalize_phone(sale.customer_phone)
    with transaction.atomic():
        debtor = Debtor.objects.select_for_update().filter(store=sale.store, customer_phone=phone).first()
        if debtor is None:
            logger.warning(f"No debtor {phone} to reverse sale {sale.invoice_number}")
            return None

        old_debt = debtor.total_debt
        debtor.total_debt = max(Decimal('0'), old_debt - sale.total)
        debtor.status = _status_for(debtor)
        debtor.save(update_fields=['total_debt', 'status', 'updated_at'])

    record_audit(
        sale.store, 'DEBT_UPDATED', 'debtor',
        f"Sale {sale.invoice_number} voided. KES {sale.total} removed from debt. New balance: KES {debtor.total_debt}",
        resource_id=debtor.id, actor=actor,
        customer_name=debtor.customer_name, customer_phone=debtor.customer_phone,
        old_value={'total_debt': float(old_debt)},
        new_value={'total_debt': float(debtor.total_debt)},
        metadata={'transaction_id': sale.invoice_number, 'payment_method': 'MADENI'},
    )
    return debtor


def record_payment(debtor, amount, actor=None, method='CASH', note=''):
    amount = to_decimal(amount)
    if amount <= 0:
        raise ValueError('Payment amount must be greater than zero')
    if method not in dict(DebtPayment.METHOD_CHOICES):
        raise ValueError(f'Unknown payment method: {method}')

    with transaction.atomic():
        debtor = Debtor.objects.select_for_update().get(pk=debtor.pk)
        if amount > debtor.total_debt:
            raise ValueError(f'Payment of KES {amount} exceeds the outstanding debt of KES {debtor.total_debt}')

        old_debt = debtor.total_debt
        debtor.total_debt = old_debt - amount
        debtor.amount_paid += amount
        debtor.last_payment_date = timezone.now()
        debtor.status = _status_for(debtor)
        debtor.save(update_fields=['total_debt', 'amount_paid', 'last_payment_date', 'status', 'updated_at'])

        payment = DebtPayment.objects.create(
            debtor=debtor, amount=amount, method=method,
            balance_after=debtor.total_debt, recorded_by=actor, note=note or '',
        )
        record_audit(
            debtor.store, 'DEBT_PAYMENT', 'debtor',
            f"Payment of KES {amount} received from {debtor.customer_name}. Balance: KES {debtor.total_debt}",
            resource_id=debtor.id, actor=actor,
            customer_name=debtor.customer_name, customer_phone=debtor.customer_phone,
            old_value={'total_debt': float(old_debt)},
            new_value={'total_debt': float(debtor.total_debt), 'status': debtor.status},
            metadata={'payment_method': method, 'payment_id': payment.id},
        )

    logger.info(f"Debt payment KES {amount} from {debtor.customer_phone}, balance {debtor.total_debt}")
    return payment


def forgive_debt(debtor, actor, reason, role=None):
    """
    Write off the whole balance. Owners and managers only.

    `role` is the role the request acts under, which is STORE_OWNER for a
    till in owner mode; it defaults to the actor's profile role.
    """
    if role is None and actor is not None:
        role = get_user_role(actor)
    if role != ROLE_SUPER_ADMIN and role not in MANAGER_ROLES:
        raise ValueError('Only the store owner or a manager can forgive a debt')
    reason = (reason or '').strip()
    if not reason:
        raise ValueError('A reason is required to forgive a debt')
    if debtor.total_debt <= 0:
        raise ValueError(f'{debtor.customer_name} has no outstanding debt')

    forgiven = debtor.total_debt
    debtor.total_debt = Decimal('0')
    debtor.status = 'SETTLED'
    debtor.notes = f"{debtor.notes}\nForgiven KES {forgiven}: {reason}".strip()
    debtor.save(update_fields=['total_debt', 'status', 'notes', 'updated_at'])

    record_audit(
        debtor.store, 'DEBT_FORGIVEN', 'debtor',
        f"Debt of KES {forgiven} forgiven for {debtor.customer_name}. Reason: {reason}",
        resource_id=debtor.id, actor=actor, actor_role=role,
        customer_name=debtor.customer_name, customer_phone=debtor.customer_phone,
        old_value={'total_debt': float(forgiven)},
        new_value={'total_debt': 0, 'status': 'SETTLED'},
        metadata={'reason': reason},
    )
    logger.info(f"Debt KES {forgiven} forgiven for {debtor.customer_phone} in {debtor.store.access_code}")
    return debtor


def reminder_message(debtor):
    return REMINDER_TEMPLATE.format(name=debtor.customer_name, debt=f"{debtor.total_debt:,.2f}")


def whatsapp_reminder_link(debtor, actor=None):
    phone = normalize_phone(debtor.customer_phone)
    url = f"https://wa.me/{phone}?text={quote(reminder_message(debtor))}"

    record_audit(
        debtor.store, 'REMINDER_SENT', 'debtor',
        f"WhatsApp reminder sent to {debtor.customer_name}",
        resource_id=debtor.id, actor=actor,
        customer_name=debtor.customer_name, customer_phone=phone,
        metadata={'channel': 'WHATSAPP', 'total_debt': float(debtor.total_debt)},
    )
    return url


def debtor_history(debtor):
    return AuditLog.objects.filter(
        store=debtor.store, resource_type='debtor', resource_id=str(debtor.id)
    ).order_by('-created_at')


def debtor_dashboard_stats(store, top=5):
    debtors = Debtor.objects.filter(store=store)
    outstanding = debtors.exclude(status='SETTLED')
    counts = dict(debtors.values_list('status').annotate(n=Count('id')))

    return {
        'total_outstanding': float(outstanding.aggregate(total=Sum('total_debt'))['total'] or 0),
        'total_collected': float(debtors.aggregate(total=Sum('amount_paid'))['total'] or 0),
        'debtor_count': outstanding.count(),
        'active_count': counts.get('ACTIVE', 0),
        'partial_count': counts.get('PARTIAL', 0),
        'settled_count': counts.get('SETTLED', 0),
        'largest_debtors': [
            {
                'id': d.id,
                'customer_name': d.customer_name,
                'customer_phone': d.customer_phone,
                'total_debt': float(d.total_debt),
                'status': d.status,
            }
            for d in outstanding.order_by('-total_debt')[:top]
        ],
    }
