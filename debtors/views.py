import logging

from django.db.models import Q
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.permissions import require_role, require_store, get_request_role
from core.serializers import AuditLogSerializer
from core.utils import get_request_data
from . import services
from .models import Debtor
from .serializers import DebtorSerializer, DebtPaymentSerializer

logger = logging.getLogger('debtors')

DEBTOR_ROLES = ('STORE_OWNER', 'ADMIN', 'STAFF')


@require_role(*DEBTOR_ROLES)
@require_store
def debtor_list(request):
    debtors = Debtor.objects.filter(store=request.store)

    status = request.GET.get('status')
    if status:
        debtors = debtors.filter(status=status)
    elif request.GET.get('include_settled') != '1':
        debtors = debtors.exclude(status='SETTLED')

    query = request.GET.get('q')
    if query:
        debtors = debtors.filter(Q(customer_name__icontains=query) | Q(customer_phone__icontains=query))

    return JsonResponse({'success': True, 'debtors': DebtorSerializer(debtors, many=True).data})


@require_role(*DEBTOR_ROLES)
@require_store
def debtor_detail(request, pk):
    debtor = get_object_or_404(Debtor, pk=pk, store=request.store)
    return JsonResponse({
        'success': True,
        'debtor': DebtorSerializer(debtor).data,
        'payments': DebtPaymentSerializer(debtor.payments.all(), many=True).data,
        'history': AuditLogSerializer(services.debtor_history(debtor), many=True).data,
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def debtor_dashboard(request):
    return JsonResponse({'success': True, **services.debtor_dashboard_stats(request.store)})


@require_role(*DEBTOR_ROLES)
@require_store
@csrf_exempt
@require_POST
def record_payment(request, pk):
    debtor = get_object_or_404(Debtor, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        payment = services.record_payment(
            debtor, data.get('amount'), actor=request.user,
            method=data.get('method', 'CASH'), note=data.get('note', ''),
        )
        debtor.refresh_from_db()
        return JsonResponse({
            'success': True,
            'payment': DebtPaymentSerializer(payment).data,
            'debtor': DebtorSerializer(debtor).data,
        })
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def forgive_debt(request, pk):
    debtor = get_object_or_404(Debtor, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        debtor = services.forgive_debt(
            debtor, request.user, data.get('reason'), role=get_request_role(request),
        )
        return JsonResponse({'success': True, 'debtor': DebtorSerializer(debtor).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role(*DEBTOR_ROLES)
@require_store
@csrf_exempt
@require_POST
def send_reminder(request, pk):
    debtor = get_object_or_404(Debtor, pk=pk, store=request.store)
    if debtor.total_debt <= 0:
        return JsonResponse({'success': False, 'error': f'{debtor.customer_name} has no outstanding debt'})
    url = services.whatsapp_reminder_link(debtor, actor=request.user)
    return JsonResponse({'success': True, 'whatsapp_url': url, 'message': services.reminder_message(debtor)})
