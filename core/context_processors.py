from .models import Notification
from .permissions import get_current_store


def notifications(request):
    if not getattr(request, 'user', None) or not request.user.is_authenticated:
        return {'unread_notifications_count': 0}
    return {
        'unread_notifications_count': Notification.objects.filter(user=request.user, is_read=False).count(),
    }


def current_store(request):
    if not getattr(request, 'user', None) or not request.user.is_authenticated:
        return {'current_store': None}
    return {'current_store': get_current_store(request)}
