"""
Subscription billing: trials, plan activation from M-Pesa payments,
C2B matching, SuperAdmin overrides and payment reminders.
"""
import calendar
import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction, IntegrityError
from django.db.models import Sum
from django.utils import timezone

from core.models import Store, Profile, AuditLog
from core.mpesa_config import MpesaConfig
from core.mpesa_models import MpesaTransaction
from core.mpesa_service import MpesaService
from core.mpesa_utils import MpesaUtils
from core.utils import record_audit, notify_store_owner, to_decimal
from .models import Subscription, PaymentHistory, PaymentReminder, C2BTransaction
from .plans import PLANS, TRIAL_PLAN_ID, ADMIN_TIER_PRICES, get_plan, plan_months, plan_for_amount
from .sms import send_sms

logger = logging.getLogger('billing')

SUSPENSION_REASON = 'Subscription expired'
LIVE_STATUSES = ('TRIAL', 'ACTIVE')


def add_months(value, months):
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def days_until(expires_at, now=None):
    """Signed whole days until expires_at, rounded down."""
    now = now or timezone.now()
    return math.floor((expires_at - now).total_seconds() / 86400)


def calculate_days_remaining(expires_at, now=None):
    """Whole days left, never negative."""
    if expires_at is None:
        return 0
    return max(0, days_until(expires_at, now))


def get_subscription(store):
    return Subscription.objects.filter(store=store).first()


def create_trial_subscription(store):
    """Start the free trial. Only stores claimed by an owner get one."""
    if not store.owner_id:
        logger.warning(f"No trial for {store.access_code}: store has no owner")
        return None

    existing = get_subscription(store)
    if existing is not None:
        return existing

    now = timezone.now()
    subscription = Subscription.objects.create(
        store=store,
        plan_id=TRIAL_PLAN_ID,
        status='TRIAL',
        is_trial=True,
        current_period_start=now,
        current_period_end=now + timedelta(days=settings.TRIAL_DURATION_DAYS),
    )
    logger.info(f"Trial of {settings.TRIAL_DURATION_DAYS} days started for {store.access_code}")
    return subscription


def get_effective_tier(store):
    """
    What the store is entitled to right now. A tier set by the SuperAdmin
    on the store wins over the subscription.
    """
    subscription = get_subscription(store)
    result = {
        'tier': 'NONE',
        'is_trial_active': False,
        'trial_days_left': 0,
        'days_remaining': 0,
        'subscription_status': subscription.status if subscription else None,
        'plan_id': subscription.plan_id if subscription else None,
        'has_full_access': False,
        'can_access_premium_features': False,
    }

    if store.tier in ('BASIC', 'PREMIUM'):
        result.update({
            'tier': store.tier,
            'has_full_access': True,
            'can_access_premium_features': store.tier == 'PREMIUM',
        })
        if subscription is not None:
            result['days_remaining'] = calculate_days_remaining(subscription.current_period_end)
        return result

    if subscription is None:
        return result

    in_period = subscription.is_within_period
    if subscription.status == 'TRIAL' and in_period:
        days_left = calculate_days_remaining(subscription.current_period_end)
        result.update({
            'tier': 'TRIAL',
            'is_trial_active': True,
            'trial_days_left': days_left,
            'days_remaining': days_left,
            'has_full_access': True,
            'can_access_premium_features': True,
        })
    elif subscription.status == 'ACTIVE' and in_period:
        tier = get_plan(subscription.plan_id)['tier']
        result.update({
            'tier': tier,
            'days_remaining': calculate_days_remaining(subscription.current_period_end),
            'has_full_access': tier == 'PREMIUM',
            'can_access_premium_features': tier == 'PREMIUM',
        })
    else:
        result['tier'] = 'EXPIRED'
    return result


def check_subscription_status(store):
    """TRIAL, ACTIVE or EXPIRED. A store without a subscription counts as expired."""
    subscription = get_subscription(store)
    if subscription is None:
        return 'EXPIRED'
    if subscription.status not in LIVE_STATUSES or not subscription.is_within_period:
        return 'EXPIRED'
    return subscription.status


def _lift_suspension(store):
    if store.is_suspended and store.suspension_reason == SUSPENSION_REASON:
        store.is_suspended = False
        store.suspension_reason = ''
        store.save(update_fields=['is_suspended', 'suspension_reason', 'updated_at'])
        logger.info(f"Suspension lifted for {store.access_code}")


def activate_subscription(store, plan_id, amount=None, receipt='', method='MPESA_STK', reference='',
                          months=None, notes=''):
    """
    Book a plan payment. The new period runs from the later of now and
    the current period end.
    """
    plan = get_plan(plan_id)
    amount = to_decimal(amount if amount is not None else plan['price'])
    months = months or plan_months(plan_id)
    now = timezone.now()

    with transaction.atomic():
        subscription = Subscription.objects.select_for_update().filter(store=store).first()
        if subscription is None:
            start = now
            subscription = Subscription(store=store, current_period_start=now)
        else:
            start = max(now, subscription.current_period_end)
            if subscription.current_period_end < now:
                subscription.current_period_start = now

        subscription.plan_id = plan_id
        subscription.status = 'ACTIVE'
        subscription.is_trial = False
        subscription.current_period_end = add_months(start, months)
        subscription.last_payment_date = now
        subscription.last_payment_amount = amount
        subscription.mpesa_receipt = receipt or ''
        subscription.payment_method = method
        subscription.payment_reference = reference or receipt or ''
        subscription.save()

        PaymentHistory.objects.create(
            store=store,
            subscription=subscription,
            amount=amount,
            payment_method=method,
            status='COMPLETED',
            plan_id=plan_id,
            mpesa_receipt=receipt or '',
            reference=reference or '',
            notes=notes,
            paid_at=now,
        )
        _lift_suspension(store)

    notify_store_owner(
        store, 'SUBSCRIPTION', 'Subscription activated',
        f"{plan['name']} is active until {timezone.localtime(subscription.current_period_end):%d %b %Y}. "
        f"Payment of KES {amount} received.",
    )
    logger.info(f"{plan_id} activated for {store.access_code} until {subscription.current_period_end} ({method} {receipt})")
    return subscription


def initiate_subscription_payment(store, plan_id, phone_number, user=None, service=None):
    """Send an STK push for a plan, referenced by the store access code."""
    plan = get_plan(plan_id)
    service = service or MpesaService()
    description = f"DukaBook {plan['name']}"

    response = service.stk_push(
        phone_number=phone_number,
        amount=plan['price'],
        account_reference=store.access_code,
        transaction_desc=description,
    )

    mpesa_transaction = MpesaUtils.log_mpesa_transaction(
        response,
        amount=plan['price'],
        phone_number=phone_number,
        account_reference=store.access_code,
        transaction_desc=description,
        user=user,
        store=store,
        purpose='SUBSCRIPTION',
        plan_id=plan_id,
    )

    if not response.get('success'):
        logger.error(f"Subscription STK push for {store.access_code} failed: {response.get('error')}")
        raise ValueError(response.get('error') or 'STK Push failed')

    logger.info(f"Subscription STK push {mpesa_transaction.checkout_request_id} sent for {store.access_code}")
    return mpesa_transaction


def _parse_trans_time(value):
    if not value:
        return None
    try:
        return timezone.make_aware(datetime.strptime(str(value), '%Y%m%d%H%M%S'))
    except ValueError:
        logger.warning(f"Unparseable C2B TransTime: {value}")
        return None


def handle_c2b_confirmation(payload):
    """
    Store a confirmed till payment and put it to work. The same TransID
    is only ever processed once.
    """
    trans_id = (payload.get('TransID') or '').strip()
    if not trans_id:
        raise ValueError('Missing TransID')

    existing = C2BTransaction.objects.filter(trans_id=trans_id).first()
    if existing is not None:
        logger.info(f"C2B {trans_id} already recorded ({existing.status})")
        return existing

    amount = to_decimal(payload.get('TransAmount'), 'TransAmount')
    bill_ref = (payload.get('BillRefNumber') or '').strip()

    try:
        with transaction.atomic():
            c2b = C2BTransaction.objects.create(
                trans_id=trans_id,
                transaction_type=payload.get('TransactionType') or '',
                trans_time=_parse_trans_time(payload.get('TransTime')),
                amount=amount,
                business_short_code=str(payload.get('BusinessShortCode') or ''),
                bill_ref_number=bill_ref,
                msisdn=str(payload.get('MSISDN') or ''),
                first_name=payload.get('FirstName') or '',
                middle_name=payload.get('MiddleName') or '',
                last_name=payload.get('LastName') or '',
                status='COMPLETED',
                raw_data=payload,
            )

            store = Store.objects.filter(access_code__iexact=bill_ref).first() if bill_ref else None
            if store is None:
                c2b.status = 'UNMATCHED'
                c2b.notes = f'No store matches account reference "{bill_ref}"'
            else:
                c2b.store = store
                plan_id = plan_for_amount(amount)
                if plan_id is None:
                    c2b.status = 'CREDITED'
                    c2b.notes = f'KES {amount} is below the cheapest plan'
                else:
                    activate_subscription(
                        store, plan_id, amount=amount, receipt=trans_id,
                        method='MPESA_C2B', reference=trans_id,
                    )
                    c2b.status = 'PROCESSED'
                    c2b.plan_id = plan_id
                    c2b.subscription_activated = True
                    c2b.notes = f'{plan_id} activated'
            c2b.processed_at = timezone.now()
            c2b.save()
    except IntegrityError:
        return C2BTransaction.objects.get(trans_id=trans_id)

    logger.info(f"C2B {trans_id} KES {amount} ref {bill_ref}: {c2b.status}")
    return c2b


def link_c2b_payment_to_store(trans_id, store, plan_id, actor=None):
    """SuperAdmin assigns an unmatched or credited till payment to a store."""
    plan = get_plan(plan_id)

    with transaction.atomic():
        c2b = C2BTransaction.objects.select_for_update().filter(trans_id=trans_id).first()
        if c2b is None:
            raise ValueError('Payment not found')
        if c2b.subscription_activated:
            raise ValueError('Payment already processed')

        subscription = activate_subscription(
            store, plan_id, amount=c2b.amount, receipt=c2b.trans_id,
            method='MPESA_C2B_MANUAL', reference=c2b.trans_id,
            months=plan_months(plan_id), notes='Manually linked by admin',
        )

        c2b.store = store
        c2b.plan_id = plan_id
        c2b.status = 'PROCESSED'
        c2b.subscription_activated = True
        c2b.notes = 'Manually linked by admin'
        c2b.processed_at = timezone.now()
        c2b.save()

        record_audit(
            store, 'PAYMENT_LINKED', 'c2b_transaction',
            f"Manually linked C2B payment {c2b.trans_id} of KES {c2b.amount} to {plan['name']}",
            resource_id=c2b.trans_id, actor=actor,
            customer_phone=c2b.msisdn[:15],
            new_value={'plan_id': plan_id, 'period_end': subscription.current_period_end.isoformat()},
        )

    return c2b


def _subscription_snapshot(store, subscription):
    snapshot = {'tier': store.tier, 'subscription': None}
    if subscription is not None:
        snapshot['subscription'] = {
            'plan_id': subscription.plan_id,
            'status': subscription.status,
            'is_trial': subscription.is_trial,
            'current_period_start': subscription.current_period_start.isoformat(),
            'current_period_end': subscription.current_period_end.isoformat(),
            'payment_method': subscription.payment_method,
            'payment_reference': subscription.payment_reference,
        }
    return snapshot


def set_store_tier_admin(store, tier, months=12, actor=None):
    """Grant a tier by hand, booked as an ADMIN_MANUAL payment."""
    if tier not in ADMIN_TIER_PRICES:
        raise ValueError(f'Invalid tier: {tier}')
    months = int(months)
    if months < 1:
        raise ValueError('Duration must be at least one month')

    now = timezone.now()
    price = ADMIN_TIER_PRICES[tier]
    plan_id = f"{tier.lower()}-{'yearly' if months >= 12 else 'monthly'}"

    with transaction.atomic():
        subscription = Subscription.objects.select_for_update().filter(store=store).first()
        snapshot = _subscription_snapshot(store, subscription)
        if subscription is None:
            subscription = Subscription(store=store)

        subscription.plan_id = plan_id
        subscription.status = 'ACTIVE'
        subscription.is_trial = False
        subscription.current_period_start = now
        subscription.current_period_end = add_months(now, months)
        subscription.payment_method = 'ADMIN_MANUAL'
        subscription.payment_reference = f"admin-tier-{tier}-{int(now.timestamp() * 1000)}"
        subscription.last_payment_date = now
        subscription.last_payment_amount = price
        subscription.save()

        if price > 0:
            PaymentHistory.objects.create(
                store=store,
                subscription=subscription,
                amount=price,
                payment_method='ADMIN_MANUAL',
                status='COMPLETED',
                plan_id=tier,
                reference=subscription.payment_reference,
                notes=f'Admin manual tier upgrade to {tier} for {months} months',
                paid_at=now,
            )

        store.tier = tier
        store.save(update_fields=['tier', 'updated_at'])
        _lift_suspension(store)

        record_audit(
            store, 'TIER_CHANGED', 'store',
            f"Tier set to {tier} for {months} months by SuperAdmin",
            resource_id=store.id, actor=actor,
            old_value=snapshot,
            new_value={'tier': tier, 'months': months, 'plan_id': plan_id},
            metadata={'source': 'ADMIN_MANUAL'},
        )

    logger.info(f"{store.access_code} set to {tier} for {months} months")
    return subscription


def undo_admin_tier_upgrade(store, actor=None):
    """Put the store back the way it was before the last manual tier change."""
    entry = AuditLog.objects.filter(
        store=store, action_type='TIER_CHANGED', metadata__source='ADMIN_MANUAL'
    ).order_by('-created_at').first()
    if entry is None:
        raise ValueError('No admin tier upgrade to undo')

    previous = entry.old_value or {}
    previous_subscription = previous.get('subscription')

    with transaction.atomic():
        payment = PaymentHistory.objects.filter(store=store, payment_method='ADMIN_MANUAL').order_by('-created_at').first()
        if payment is not None:
            payment.delete()

        subscription = Subscription.objects.select_for_update().filter(store=store).first()
        if subscription is None:
            raise ValueError('Subscription not found')

        if previous_subscription:
            subscription.plan_id = previous_subscription['plan_id']
            subscription.status = previous_subscription['status']
            subscription.is_trial = previous_subscription['is_trial']
            subscription.current_period_start = datetime.fromisoformat(previous_subscription['current_period_start'])
            subscription.current_period_end = datetime.fromisoformat(previous_subscription['current_period_end'])
            subscription.payment_method = previous_subscription['payment_method']
            subscription.payment_reference = previous_subscription['payment_reference']
            message = ('Tier upgrade undone - restored to free trial' if subscription.is_trial
                       else 'Tier upgrade undone - previous subscription restored')
        else:
            subscription.status = 'CANCELLED'
            message = 'Tier upgrade undone - subscription cancelled'
        subscription.save()

        store.tier = previous.get('tier') or ''
        store.save(update_fields=['tier', 'updated_at'])

        record_audit(
            store, 'TIER_CHANGED', 'store', message,
            resource_id=store.id, actor=actor,
            new_value={'tier': store.tier, 'status': subscription.status},
            metadata={'source': 'ADMIN_UNDO'},
        )

    logger.info(f"{store.access_code}: {message}")
    return message


def _reminder_phone(store):
    if store.phone:
        return store.phone
    profile = Profile.objects.filter(user_id=store.owner_id).first() if store.owner_id else None
    return profile.phone if profile and profile.phone else ''


def reminder_message(store, reminder_type, days_left):
    till = MpesaConfig.get_till_number()
    if reminder_type == 'TRIAL_ENDING':
        price = PLANS[TRIAL_PLAN_ID]['price']
        return (f"Hi {store.name}! Your DukaBook FREE trial ends in {days_left} days. "
                f"Upgrade to Premium for just KES {price:,.0f}/month to keep all features. "
                f"Pay via M-Pesa to {till} Acc: {store.access_code}.")
    if reminder_type == 'PAYMENT_DUE':
        return (f"Reminder: Your DukaBook subscription is due in {days_left} days. "
                f"Pay via M-Pesa to {till} Acc: {store.access_code}. Keep your business running smoothly!")
    if reminder_type == 'OVERDUE':
        return (f"URGENT: Your DukaBook subscription is overdue! Please pay now to avoid service interruption. "
                f"M-Pesa: {till} Acc: {store.access_code}.")
    if reminder_type == 'FINAL_WARNING':
        return (f"FINAL WARNING: DukaBook will be suspended if payment is not received. "
                f"M-Pesa: {till} Acc: {store.access_code}. Pay now to continue!")
    if reminder_type == 'SUSPENDED':
        return (f"Your DukaBook account has been suspended due to non-payment. "
                f"Pay via M-Pesa {till} Acc: {store.access_code} to reactivate immediately.")
    raise ValueError(f'Unknown reminder type: {reminder_type}')


def send_payment_reminder(store, subscription, reminder_type):
    """SMS the store about its subscription and keep a record of it."""
    days = days_until(subscription.current_period_end)
    message = reminder_message(store, reminder_type, max(days, 0))
    phone = _reminder_phone(store)

    sent = False
    if phone:
        sent = send_sms(phone, message)
    else:
        logger.warning(f"No phone number for {store.access_code}, {reminder_type} reminder not sent")

    return PaymentReminder.objects.create(
        store=store,
        subscription=subscription,
        reminder_type=reminder_type,
        days_before_due=days if days > 0 else None,
        days_overdue=abs(days) if days < 0 else None,
        phone_number=phone[:15],
        message=message,
        sms_sent=sent,
        sent_at=timezone.now() if sent else None,
    )


def _already_reminded(subscription, reminder_type):
    return PaymentReminder.objects.filter(
        subscription=subscription, reminder_type=reminder_type,
        created_at__date=timezone.localdate(),
    ).exists()


def _reminder_for(subscription, days):
    grace = settings.GRACE_PERIOD_DAYS
    if days >= 0:
        if subscription.is_trial and days == 3:
            return 'TRIAL_ENDING'
        if not subscription.is_trial and days in (7, 3):
            return 'PAYMENT_DUE'
        return None
    if days == -1:
        return 'OVERDUE'
    if days == -(grace - 1):
        return 'FINAL_WARNING'
    return None


def process_subscription_reminders():
    """
    Daily sweep: remind stores ahead of and just after their due date,
    and suspend them once the grace period has run out.
    """
    grace = settings.GRACE_PERIOD_DAYS
    reminded = 0
    suspended = 0
    now = timezone.now()

    subscriptions = Subscription.objects.filter(status__in=LIVE_STATUSES).select_related('store')
    for subscription in subscriptions:
        store = subscription.store
        days = days_until(subscription.current_period_end, now)

        if days < -grace:
            with transaction.atomic():
                subscription.status = 'EXPIRED'
                subscription.save(update_fields=['status', 'updated_at'])
                store.is_suspended = True
                store.suspension_reason = SUSPENSION_REASON
                store.save(update_fields=['is_suspended', 'suspension_reason', 'updated_at'])
            send_payment_reminder(store, subscription, 'SUSPENDED')
            notify_store_owner(
                store, 'SUBSCRIPTION', 'Store suspended',
                f"{store.name} has been suspended because the subscription expired. Pay to reactivate.",
            )
            logger.warning(f"{store.access_code} suspended: subscription expired {subscription.current_period_end}")
            suspended += 1
            continue

        reminder_type = _reminder_for(subscription, days)
        if reminder_type and not _already_reminded(subscription, reminder_type):
            send_payment_reminder(store, subscription, reminder_type)
            reminded += 1

    logger.info(f"Subscription reminders: {reminded} sent, {suspended} stores suspended")
    return {'reminded': reminded, 'suspended': suspended}


def _subscription_row(subscription):
    return {
        'store_id': subscription.store_id,
        'store_name': subscription.store.name,
        'access_code': subscription.store.access_code,
        'plan_id': subscription.plan_id,
        'status': subscription.status,
        'current_period_end': subscription.current_period_end.isoformat(),
    }


def billing_dashboard_stats():
    now = timezone.now()
    month_start = timezone.localtime(now).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    week_ahead = now + timedelta(days=7)
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)

    payments = PaymentHistory.objects.filter(status='COMPLETED')
    total_revenue = payments.aggregate(total=Sum('amount'))['total'] or Decimal('0')
    monthly_recurring = payments.filter(paid_at__gte=month_start).aggregate(total=Sum('amount'))['total'] or Decimal('0')

    subscriptions = Subscription.objects.select_related('store')
    total = subscriptions.count()
    active = subscriptions.filter(status='ACTIVE').count()
    trial = subscriptions.filter(status='TRIAL').count()
    expired = subscriptions.filter(status__in=['EXPIRED', 'SUSPENDED', 'CANCELLED']).count()

    pending = MpesaTransaction.objects.filter(purpose='SUBSCRIPTION', status='PENDING')
    churned = subscriptions.filter(status='EXPIRED', updated_at__gte=month_ago).count()
    converted = subscriptions.filter(status='ACTIVE', is_trial=False).count()

    return {
        'total_revenue': float(total_revenue),
        'monthly_recurring_revenue': float(monthly_recurring),
        'active_subscriptions': active,
        'trial_subscriptions': trial,
        'expired_subscriptions': expired,
        'pending_payments': pending.count(),
        'pending_amount': float(pending.aggregate(total=Sum('amount'))['total'] or 0),
        'churn_rate': round(churned / total * 100, 1) if total else 0,
        'conversion_rate': round(converted / (converted + trial) * 100, 1) if converted + trial else 0,
        'avg_revenue_per_store': round(float(total_revenue) / active, 2) if active else 0,
        'expiring_soon': [
            _subscription_row(s) for s in subscriptions.filter(
                status__in=LIVE_STATUSES, current_period_end__gt=now, current_period_end__lte=week_ahead
            )
        ],
        'recently_expired': [
            _subscription_row(s) for s in subscriptions.filter(
                current_period_end__gte=week_ago, current_period_end__lt=now
            )
        ],
    }
