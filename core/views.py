import logging
from datetime import timedelta

from django.contrib.auth.decorators import login_required
from django.core.paginator import Paginator
from django.db.models import Sum, Count, F
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .models import Store, Product, Sale, Expense, Notification, AuditLog
from .permissions import require_role, require_store, get_request_role
from .serializers import ExpenseSerializer, NotificationSerializer, AuditLogSerializer, StoreSerializer
from .utils import get_request_data, to_decimal

logger = logging.getLogger('core')


@login_required
@csrf_exempt
@require_POST
def enter_store(request):
    """
    Bind a store to this session by its access code. A matching owner
    PIN switches the session into owner mode.
    """
    try:
        data = get_request_data(request)
        access_code = (data.get('access_code') or '').strip().upper()
        if not access_code:
            return JsonResponse({'success': False, 'error': 'Access code is required'})

        store = Store.objects.filter(access_code=access_code, is_active=True).first()
        if store is None:
            return JsonResponse({'success': False, 'error': 'Invalid access code'})
        if store.is_suspended:
            return JsonResponse({'success': False, 'error': f'Store suspended: {store.suspension_reason}'})

        owner_pin = data.get('owner_pin')
        owner_mode = bool(owner_pin) and store.check_owner_pin(owner_pin)
        if owner_pin and not owner_mode:
            logger.warning(f"Wrong owner PIN for store {store.access_code} by {request.user.username}")
            return JsonResponse({'success': False, 'error': 'Incorrect owner PIN'})

        request.session['store_id'] = store.id
        request.session['owner_mode'] = owner_mode
        request.session.pop('pos_cart', None)
        request.session.modified = True

        logger.info(f"{request.user.username} entered store {store.access_code} (owner_mode={owner_mode})")
        return JsonResponse({
            'success': True,
            'store': StoreSerializer(store).data,
            'owner_mode': owner_mode,
            'role': get_request_role(request),
        })
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@login_required
@csrf_exempt
@require_POST
def exit_store(request):
    for key in ('store_id', 'owner_mode', 'pos_cart'):
        request.session.pop(key, None)
    request.session.modified = True
    return JsonResponse({'success': True})


@require_store
def dashboard(request):
    """Today at a glance for the current store"""
    store = request.store
    today = timezone.localdate()
    week_ago = today - timedelta(days=7)

    completed = Sale.objects.filter(store=store, status='COMPLETED')
    sales_today = completed.filter(created_at__date=today).aggregate(total=Sum('total'), count=Count('id'))
    sales_week = completed.filter(created_at__date__gte=week_ago).aggregate(total=Sum('total'))['total'] or 0

    low_stock = Product.objects.filter(
        store=store, is_active=True, quantity__lte=F('low_stock_threshold')
    ).count()

    return JsonResponse({
        'success': True,
        'store': store.name,
        'sales_today': float(sales_today['total'] or 0),
        'transactions_today': sales_today['count'],
        'sales_week': float(sales_week),
        'product_count': Product.objects.filter(store=store, is_active=True).count(),
        'low_stock_count': low_stock,
        'expenses_today': float(
            Expense.objects.filter(store=store, date=today).aggregate(total=Sum('amount'))['total'] or 0
        ),
    })


@require_store
@csrf_exempt
def expenses(request):
    """List expenses (GET) or record one (POST)"""
    store = request.store

    if request.method == 'POST':
        try:
            data = get_request_data(request)
            category = data.get('category', 'OTHER')
            if category not in dict(Expense.CATEGORY_CHOICES):
                return JsonResponse({'success': False, 'error': f'Unknown expense category: {category}'})
            amount = to_decimal(data.get('amount'))
            if amount <= 0:
                return JsonResponse({'success': False, 'error': 'Amount must be greater than 0'})
            description = (data.get('description') or '').strip()
            if not description:
                return JsonResponse({'success': False, 'error': 'Description is required'})

            expense = Expense.objects.create(
                store=store,
                category=category,
                amount=amount,
                description=description,
                date=data.get('date') or timezone.localdate(),
                recorded_by=request.user,
            )
            logger.info(f"Expense {expense.expense_number} of KES {amount} recorded in {store.access_code}")
            return JsonResponse({'success': True, 'expense': ExpenseSerializer(expense).data})
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})

    queryset = Expense.objects.filter(store=store)
    start_date = request.GET.get('start_date')
    end_date = request.GET.get('end_date')
    if start_date and end_date:
        queryset = queryset.filter(date__range=[start_date, end_date])
    category = request.GET.get('category')
    if category:
        queryset = queryset.filter(category=category)

    totals = queryset.values('category').annotate(total=Sum('amount')).order_by('-total')
    return JsonResponse({
        'success': True,
        'expenses': ExpenseSerializer(queryset[:200], many=True).data,
        'total': float(queryset.aggregate(total=Sum('amount'))['total'] or 0),
        'by_category': [{'category': t['category'], 'total': float(t['total'])} for t in totals],
    })


@login_required
def notification_list(request):
    notifications = Notification.objects.filter(user=request.user)
    if request.GET.get('unread') == '1':
        notifications = notifications.filter(is_read=False)
    return JsonResponse({
        'success': True,
        'notifications': NotificationSerializer(notifications[:50], many=True).data,
        'unread_count': Notification.objects.filter(user=request.user, is_read=False).count(),
    })


@login_required
@csrf_exempt
@require_POST
def mark_notification_read(request, notification_id):
    notification = get_object_or_404(Notification, id=notification_id, user=request.user)
    notification.is_read = True
    notification.save(update_fields=['is_read'])
    return JsonResponse({'success': True})


@login_required
@csrf_exempt
@require_POST
def mark_all_notifications_read(request):
    updated = Notification.objects.filter(user=request.user, is_read=False).update(is_read=True)
    return JsonResponse({'success': True, 'updated': updated})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def audit_log(request):
    """Audit trail of the current store, newest first"""
    entries = AuditLog.objects.filter(store=request.store)

    action_type = request.GET.get('action_type')
    if action_type:
        entries = entries.filter(action_type=action_type)
    resource_type = request.GET.get('resource_type')
    if resource_type:
        entries = entries.filter(resource_type=resource_type)
    resource_id = request.GET.get('resource_id')
    if resource_id:
        entries = entries.filter(resource_id=resource_id)

    paginator = Paginator(entries, 50)
    page_obj = paginator.get_page(request.GET.get('page'))
    return JsonResponse({
        'success': True,
        'entries': AuditLogSerializer(page_obj.object_list, many=True).data,
        'page': page_obj.number,
        'total_pages': paginator.num_pages,
    })
