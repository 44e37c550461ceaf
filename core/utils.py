import re
import logging
from decimal import Decimal

logger = logging.getLogger('core')

SYSTEM_ACTOR_NAME = 'POS System'
SYSTEM_ACTOR_ROLE = 'SYSTEM'


def validate_phone(phone):
    """Validate Kenyan phone number, allowing spaces, dashes and a leading +"""
    if re.search(r'[^\d\s\-+()]', phone or ''):
        return False
    return re.match(r'^254[17]\d{8}$', normalize_phone(phone)) is not None


def normalize_phone(phone):
    """Bring any Kenyan mobile number to the 2547XXXXXXXX form used as a key."""
    digits = re.sub(r'\D', '', phone or '')
    if digits.startswith('0'):
        digits = '254' + digits[1:]
    elif len(digits) == 9 and digits[0] in '17':
        digits = '254' + digits
    return digits


def to_decimal(value, field='amount'):
    try:
        return Decimal(str(value)).quantize(Decimal('0.01'))
    except Exception:
        raise ValueError(f'Invalid {field}: {value}')


def record_audit(store, action_type, resource_type, description, resource_id='',
                 actor=None, actor_role=None, customer_name='', customer_phone='',
                 old_value=None, new_value=None, metadata=None):
    """
    Append one entry to the audit trail.

    With no actor the entry is attributed to the POS system itself.
    """
    from .models import AuditLog
    from .permissions import get_user_role

    if actor is not None:
        actor_name = actor.get_full_name() or actor.username
        actor_role = actor_role or get_user_role(actor)
    else:
        actor_name = SYSTEM_ACTOR_NAME
        actor_role = actor_role or SYSTEM_ACTOR_ROLE

    entry = AuditLog.objects.create(
        store=store,
        action_type=action_type,
        resource_type=resource_type,
        resource_id=str(resource_id or ''),
        actor=actor,
        actor_name=actor_name,
        actor_role=actor_role,
        customer_name=customer_name or '',
        customer_phone=customer_phone or '',
        old_value=old_value,
        new_value=new_value,
        change_description=description,
        metadata=metadata or {},
    )
    logger.info(f"Audit {action_type} on {resource_type} {resource_id} by {actor_name}: {description}")
    return entry


def notify_store_owner(store, notification_type, title, message, link=''):
    """Raise a notification for the store owner, falling back to store admins."""
    from .models import Notification, Profile

    recipients = []
    if store.owner_id:
        recipients.append(store.owner)
    else:
        recipients = [p.user for p in Profile.objects.filter(store=store, role__in=['STORE_OWNER', 'ADMIN']).select_related('user')]

    if not recipients:
        return [Notification.objects.create(
            store=store, notification_type=notification_type, title=title, message=message, link=link
        )]

    return [
        Notification.objects.create(
            user=user, store=store, notification_type=notification_type,
            title=title, message=message, link=link
        )
        for user in recipients
    ]


def get_request_data(request):
    """Handle both JSON and FormData bodies."""
    if request.content_type == 'application/json':
        import json
        try:
            return json.loads(request.body or b'{}')
        except json.JSONDecodeError:
            raise ValueError('Invalid JSON body')
    return request.POST
