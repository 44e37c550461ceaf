"""
Subscription plan catalogue, prices in KES.
"""
from decimal import Decimal

PLANS = {
    'basic-monthly': {
        'name': 'Basic Monthly',
        'tier': 'BASIC',
        'billing_cycle': 'MONTHLY',
        'price': Decimal('500'),
        'max_staff': 3,
        'max_products': 100,
    },
    'premium-monthly': {
        'name': 'Premium Monthly',
        'tier': 'PREMIUM',
        'billing_cycle': 'MONTHLY',
        'price': Decimal('1500'),
        'max_staff': 20,
        'max_products': 1000,
    },
    'basic-yearly': {
        'name': 'Basic Yearly',
        'tier': 'BASIC',
        'billing_cycle': 'YEARLY',
        'price': Decimal('5000'),
        'max_staff': 3,
        'max_products': 100,
    },
    'premium-yearly': {
        'name': 'Premium Yearly',
        'tier': 'PREMIUM',
        'billing_cycle': 'YEARLY',
        'price': Decimal('15000'),
        'max_staff': 20,
        'max_products': 1000,
    },
}

TRIAL_PLAN_ID = 'premium-monthly'

# Manual SuperAdmin upgrades are booked at these amounts
ADMIN_TIER_PRICES = {
    'BASIC': Decimal('0'),
    'PREMIUM': Decimal('2999'),
}

PLAN_CHOICES = [(plan_id, plan['name']) for plan_id, plan in PLANS.items()]


def get_plan(plan_id):
    plan = PLANS.get(plan_id)
    if plan is None:
        raise ValueError(f'Unknown plan: {plan_id}')
    return plan


def plan_months(plan_id):
    return 12 if get_plan(plan_id)['billing_cycle'] == 'YEARLY' else 1


def plan_for_amount(amount):
    """The most expensive plan the amount pays for, or None."""
    covered = [(plan['price'], plan_id) for plan_id, plan in PLANS.items() if plan['price'] <= amount]
    if not covered:
        return None
    return max(covered)[1]


def plan_list():
    return [
        {
            'id': plan_id,
            'name': plan['name'],
            'tier': plan['tier'],
            'billing_cycle': plan['billing_cycle'],
            'price': float(plan['price']),
            'max_staff': plan['max_staff'],
            'max_products': plan['max_products'],
        }
        for plan_id, plan in PLANS.items()
    ]
