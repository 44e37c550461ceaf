import logging

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.models import Store
from core.permissions import require_role, require_store
from core.utils import get_request_data
from . import services
from .models import Subscription, PaymentHistory, PaymentReminder
from .plans import plan_list as catalogue
from .serializers import SubscriptionSerializer, PaymentHistorySerializer, PaymentReminderSerializer

logger = logging.getLogger('billing')


@login_required
def plan_list(request):
    return JsonResponse({'success': True, 'plans': catalogue()})


@require_role('STORE_OWNER', 'ADMIN', 'STAFF')
@require_store
def subscription_status(request):
    """Entitlements of the current store"""
    subscription = services.get_subscription(request.store)
    return JsonResponse({
        'success': True,
        'status': services.check_subscription_status(request.store),
        **services.get_effective_tier(request.store),
        'subscription': SubscriptionSerializer(subscription).data if subscription else None,
    })


@require_role('STORE_OWNER')
@require_store
@csrf_exempt
@require_POST
def subscribe(request):
    """Pay for a plan by STK push to the owner's phone"""
    try:
        data = get_request_data(request)
        phone = data.get('phone_number') or request.store.phone
        if not phone:
            return JsonResponse({'success': False, 'error': 'Phone number is required'})
        mpesa_transaction = services.initiate_subscription_payment(
            request.store, data.get('plan_id'), phone, user=request.user,
        )
        return JsonResponse({
            'success': True,
            'checkout_request_id': mpesa_transaction.checkout_request_id,
            'message': 'STK Push sent. Enter your M-Pesa PIN to complete payment.',
        })
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})
    except Exception as e:
        logger.error(f"Subscription payment error for {request.store.access_code}: {str(e)}", exc_info=True)
        return JsonResponse({'success': False, 'error': str(e)}, status=502)


@require_role('STORE_OWNER')
@require_store
def payment_history(request):
    payments = PaymentHistory.objects.filter(store=request.store)
    return JsonResponse({'success': True, 'payments': PaymentHistorySerializer(payments, many=True).data})


@require_role('SUPER_ADMIN')
def billing_dashboard(request):
    return JsonResponse({'success': True, **services.billing_dashboard_stats()})


@require_role('SUPER_ADMIN')
def subscription_list(request):
    subscriptions = Subscription.objects.select_related('store')
    status = request.GET.get('status')
    if status:
        subscriptions = subscriptions.filter(status=status)
    return JsonResponse({'success': True, 'subscriptions': SubscriptionSerializer(subscriptions, many=True).data})


@require_role('SUPER_ADMIN')
def reminder_list(request):
    reminders = PaymentReminder.objects.select_related('store')
    store_id = request.GET.get('store_id')
    if store_id:
        reminders = reminders.filter(store_id=store_id)
    return JsonResponse({'success': True, 'reminders': PaymentReminderSerializer(reminders[:200], many=True).data})


@require_role('SUPER_ADMIN')
@csrf_exempt
@require_POST
def run_reminders(request):
    return JsonResponse({'success': True, **services.process_subscription_reminders()})


@require_role('SUPER_ADMIN')
@csrf_exempt
@require_POST
def send_reminder(request, store_id):
    store = get_object_or_404(Store, pk=store_id)
    subscription = services.get_subscription(store)
    if subscription is None:
        return JsonResponse({'success': False, 'error': f'{store.name} has no subscription'})
    try:
        data = get_request_data(request)
        reminder = services.send_payment_reminder(store, subscription, data.get('reminder_type', 'PAYMENT_DUE'))
        return JsonResponse({'success': True, 'reminder': PaymentReminderSerializer(reminder).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})
