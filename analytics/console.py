"""
SuperAdmin console: store administration and platform-wide figures.
"""
import logging
from datetime import timedelta

from django.contrib.auth.models import User
from django.db import transaction
from django.db.models import Sum, Count, Max, F, Q
from django.utils import timezone

from billing.services import create_trial_subscription, get_effective_tier
from core.models import Store, Sale, Product, Profile
from core.utils import record_audit
from debtors.models import Debtor

logger = logging.getLogger('analytics')

INACTIVE_AFTER_DAYS = 7
STORE_FIELDS = ['name', 'location', 'business_type', 'phone', 'email', 'currency', 'tax_rate',
                'theme_color', 'is_demo', 'is_active']


def _completed(store=None):
    sales = Sale.objects.filter(status='COMPLETED')
    return sales.filter(store=store) if store is not None else sales


def store_rows():
    """Every store with its effective tier, for the console list."""
    rows = []
    for store in Store.objects.select_related('owner').order_by('name'):
        tier = get_effective_tier(store)
        rows.append({
            'id': store.id,
            'name': store.name,
            'access_code': store.access_code,
            'business_type': store.business_type,
            'location': store.location,
            'owner_email': store.owner.email if store.owner else None,
            'tier': tier['tier'],
            'manual_tier': store.tier or None,
            'trial_days_left': tier['trial_days_left'],
            'is_active': store.is_active,
            'is_suspended': store.is_suspended,
            'created_at': store.created_at.isoformat(),
        })
    return rows


def _find_owner(email):
    email = (email or '').strip()
    if not email:
        return None
    owner = User.objects.filter(email__iexact=email).first()
    if owner is None:
        raise ValueError(f'No user with email {email}')
    return owner


def create_store(data, actor=None):
    """Create a store; linking an owner starts its free trial."""
    name = (data.get('name') or '').strip()
    if not name:
        raise ValueError('Store name is required')
    access_code = (data.get('access_code') or '').strip().upper()
    if access_code and Store.objects.filter(access_code=access_code).exists():
        raise ValueError(f'Access code {access_code} is already in use')

    owner = _find_owner(data.get('owner_email'))

    with transaction.atomic():
        store = Store(name=name, access_code=access_code, owner=owner)
        for field in STORE_FIELDS[1:]:
            if data.get(field) not in (None, ''):
                setattr(store, field, data[field])
        if data.get('owner_pin'):
            store.set_owner_pin(data['owner_pin'])
        store.save()

        if owner is not None:
            create_trial_subscription(store)

        record_audit(
            store, 'STORE_CREATED', 'store', f"Store {store.name} ({store.access_code}) created",
            resource_id=store.id, actor=actor,
            new_value={'name': store.name, 'access_code': store.access_code, 'owner': owner.email if owner else None},
        )

    logger.info(f"Store {store.access_code} created by console")
    return store


def update_store(store, data, actor=None):
    old_value = {field: str(getattr(store, field)) for field in STORE_FIELDS}
    changed = []
    for field in STORE_FIELDS:
        if field in data:
            setattr(store, field, data[field])
            changed.append(field)

    if 'is_suspended' in data:
        store.is_suspended = bool(data['is_suspended'])
        store.suspension_reason = (data.get('suspension_reason') or 'Suspended by admin') if store.is_suspended else ''
        changed += ['is_suspended', 'suspension_reason']
    if data.get('owner_pin'):
        store.set_owner_pin(data['owner_pin'])
        changed.append('owner_pin')

    if not changed:
        raise ValueError('Nothing to update')

    store.save()
    record_audit(
        store, 'STORE_UPDATED', 'store', f"Store {store.name} updated: {', '.join(sorted(set(changed)))}",
        resource_id=store.id, actor=actor,
        old_value=old_value,
        new_value={field: str(getattr(store, field)) for field in STORE_FIELDS},
    )
    return store


def link_owner(store, email, actor=None):
    owner = _find_owner(email)
    if owner is None:
        raise ValueError('Owner email is required')

    with transaction.atomic():
        previous = store.owner.email if store.owner else None
        store.owner = owner
        store.save(update_fields=['owner', 'updated_at'])
        Profile.objects.filter(user=owner).update(store=store, role='STORE_OWNER')
        create_trial_subscription(store)

        record_audit(
            store, 'STORE_UPDATED', 'store', f"Owner of {store.name} set to {owner.email}",
            resource_id=store.id, actor=actor,
            old_value={'owner': previous}, new_value={'owner': owner.email},
        )
    return store


def _last_sale(store):
    return _completed(store).aggregate(last=Max('created_at'))['last']


def store_health(store):
    now = timezone.now()
    sales = _completed(store)
    last_sale = _last_sale(store)
    days_since = (timezone.localdate() - timezone.localtime(last_sale).date()).days if last_sale else None

    week = sales.filter(created_at__gte=now - timedelta(days=7)).aggregate(total=Sum('total'), count=Count('id'))
    month = sales.filter(created_at__gte=now - timedelta(days=30)).aggregate(total=Sum('total'), count=Count('id'))
    products = Product.objects.filter(store=store, is_active=True)
    low_stock = products.filter(quantity__lte=F('low_stock_threshold')).count()
    staff_count = Profile.objects.filter(store=store).exclude(role='STORE_OWNER').count()

    score = 100
    if days_since is None or days_since >= INACTIVE_AFTER_DAYS:
        score -= 40
    elif days_since >= 3:
        score -= 20
    if low_stock > 5:
        score -= 20
    elif low_stock:
        score -= 10
    if store.is_suspended:
        score -= 30
    if not products.exists():
        score -= 10

    return {
        'store_id': store.id,
        'store_name': store.name,
        'access_code': store.access_code,
        'last_sale_date': last_sale.isoformat() if last_sale else None,
        'days_since_last_sale': days_since,
        'sales_7_days': week['count'],
        'revenue_7_days': float(week['total'] or 0),
        'sales_30_days': month['count'],
        'revenue_30_days': float(month['total'] or 0),
        'product_count': products.count(),
        'staff_count': staff_count,
        'low_stock_count': low_stock,
        'outstanding_debt': float(
            Debtor.objects.filter(store=store).aggregate(total=Sum('total_debt'))['total'] or 0
        ),
        'is_active': days_since is not None and days_since < INACTIVE_AFTER_DAYS,
        'health_score': max(score, 0),
    }


def platform_stats():
    now = timezone.now()
    today = timezone.localdate()
    month_start = today.replace(day=1)
    stores = Store.objects.all()
    sales = _completed()

    active_cutoff = now - timedelta(days=INACTIVE_AFTER_DAYS)
    active_stores = stores.filter(sales__status='COMPLETED', sales__created_at__gte=active_cutoff).distinct().count()
    totals = sales.aggregate(total=Sum('total'), count=Count('id'))
    total_stores = stores.count()

    by_type = {
        row['business_type']: row['n']
        for row in stores.values('business_type').annotate(n=Count('id'))
    }
    revenue_by_type = {
        row['store__business_type']: float(row['total'] or 0)
        for row in sales.filter(created_at__date__gte=month_start)
        .values('store__business_type').annotate(total=Sum('total'))
    }

    return {
        'total_stores': total_stores,
        'active_stores': active_stores,
        'inactive_stores': total_stores - active_stores,
        'suspended_stores': stores.filter(is_suspended=True).count(),
        'premium_stores': stores.filter(tier='PREMIUM').count(),
        'basic_stores': stores.filter(tier='BASIC').count(),
        'total_transactions': totals['count'],
        'total_revenue': float(totals['total'] or 0),
        'today_revenue': float(sales.filter(created_at__date=today).aggregate(t=Sum('total'))['t'] or 0),
        'month_revenue': float(sales.filter(created_at__date__gte=month_start).aggregate(t=Sum('total'))['t'] or 0),
        'total_debt_exposure': float(
            Debtor.objects.exclude(status='SETTLED').aggregate(total=Sum('total_debt'))['total'] or 0
        ),
        'avg_revenue_per_store': round(float(totals['total'] or 0) / total_stores, 2) if total_stores else 0,
        'stores_by_business_type': by_type,
        'revenue_by_business_type': revenue_by_type,
    }


def search_c2b(queryset, query):
    return queryset.filter(
        Q(trans_id__icontains=query) | Q(bill_ref_number__icontains=query) |
        Q(msisdn__icontains=query) | Q(first_name__icontains=query) | Q(last_name__icontains=query)
    )
