import logging

from django.core.paginator import Paginator
from django.db.models import Sum, Count
from django.http import JsonResponse, HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.models import Product, Sale, SaleItem
from core.permissions import require_role, require_store, get_request_role, MANAGER_ROLES, ROLE_SUPER_ADMIN
from core.reports import generate_receipt_pdf
from core.serializers import SaleSerializer, ProductSerializer
from core.utils import get_request_data, to_decimal
from inventory.models import ShrinkageDebt
from inventory.serializers import ShrinkageDebtSerializer
from inventory.shrinkage import update_debt_status
from . import cash, checkout, mpesa_reconciliation
from .cart import SessionCart
from .models import BlindClose, CashAudit, MpesaReconciliation
from .serializers import BlindCloseSerializer, CashAuditSerializer, MpesaReconciliationSerializer

logger = logging.getLogger('pos')

POS_ROLES = ('STORE_OWNER', 'ADMIN', 'STAFF')


def _is_manager(request):
    role = get_request_role(request)
    return role == ROLE_SUPER_ADMIN or role in MANAGER_ROLES


def _report_date(request):
    value = request.GET.get('date')
    if not value:
        return timezone.localdate()
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f'Invalid date: {value}')
    return parsed


# Cart

@require_role(*POS_ROLES)
@require_store
def get_cart(request):
    """Get current cart from session"""
    cart = SessionCart(request.session)
    return JsonResponse({'success': True, **cart.to_dict()})


@require_role(*POS_ROLES)
@require_store
@csrf_exempt
@require_POST
def add_to_cart(request):
    """Add product to POS cart"""
    try:
        data = get_request_data(request)
        product = Product.objects.filter(pk=data.get('product_id'), store=request.store, is_active=True).first()
        if product is None:
            return JsonResponse({'success': False, 'error': 'Product not found'}, status=404)
        try:
            quantity = int(data.get('quantity', 1))
        except (TypeError, ValueError):
            return JsonResponse({'success': False, 'error': 'Quantity must be a whole number'})
        cart = SessionCart(request.session).add(product, quantity)
        return JsonResponse({'success': True, **cart.to_dict()})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role(*POS_ROLES)
@require_store
@csrf_exempt
@require_POST
def scan_barcode(request):
    """Look up a scanned barcode and add one unit to the cart"""
    try:
        data = get_request_data(request)
        code = (data.get('barcode') or '').strip()
        if not code:
            return JsonResponse({'success': False, 'error': 'Barcode is required'})

        product = checkout.find_product_by_barcode(request.store, code)
        if product is None:
            logger.info(f"Barcode {code} not found in {request.store.access_code}")
            return JsonResponse({'success': False, 'error': f'No product with barcode {code}'}, status=404)

        cart = SessionCart(request.session).add(product, 1)
        return JsonResponse({'success': True, 'product': ProductSerializer(product).data, **cart.to_dict()})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role(*POS_ROLES)
@require_store
@csrf_exempt
@require_POST
def update_cart_item(request):
    """Update cart item quantity"""
    try:
        data = get_request_data(request)
        cart = SessionCart(request.session).update(int(data.get('product_id')), int(data.get('quantity', 1)))
        return JsonResponse({'success': True, **cart.to_dict()})
    except (TypeError, ValueError) as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role(*POS_ROLES)
@require_store
@csrf_exempt
@require_POST
def remove_from_cart(request):
    """Remove item from cart"""
    try:
        data = get_request_data(request)
        cart = SessionCart(request.session).remove(int(data.get('product_id')))
        return JsonResponse({'success': True, **cart.to_dict()})
    except (TypeError, ValueError) as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role(*POS_ROLES)
@csrf_exempt
@require_POST
def clear_cart(request):
    """Clear entire cart"""
    SessionCart(request.session).clear()
    return JsonResponse({'success': True, 'cart_count': 0, 'item_count': 0, 'total_amount': 0})


# Sales

@require_role(*POS_ROLES)
@require_store
@csrf_exempt
@require_POST
def process_sale(request):
    """Process the sale transaction"""
    cart = SessionCart(request.session)
    try:
        data = get_request_data(request)
        result = checkout.record_pos_sale(
            request.store,
            cart.items,
            data.get('payment_method', 'CASH'),
            cashier=request.user,
            amount_tendered=data.get('amount_tendered'),
            customer_name=data.get('customer_name', ''),
            customer_phone=data.get('customer_phone', ''),
            mpesa_phone=data.get('mpesa_phone', ''),
            mpesa_receipt=data.get('mpesa_receipt', ''),
            notes=data.get('notes', ''),
        )
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})

    cart.clear()
    sale = result['sale']
    response = {
        'success': True,
        'sale_id': sale.id,
        'invoice_number': sale.invoice_number,
        'total': float(sale.total),
        'status': sale.status,
        'receipt': result['receipt'],
        'mpesa': result['mpesa_transaction'] is not None,
    }
    if result['mpesa_transaction'] is not None:
        response['mpesa_checkout_id'] = result['mpesa_transaction'].checkout_request_id
        response['message'] = 'M-Pesa payment initiated. Check your phone.'
    return JsonResponse(response)


@require_role(*POS_ROLES)
@require_store
def sale_list(request):
    """Sales of the current store. Staff only see their own."""
    sales = Sale.objects.filter(store=request.store).select_related('cashier')
    if not _is_manager(request):
        sales = sales.filter(cashier=request.user)

    start_date = request.GET.get('start_date')
    end_date = request.GET.get('end_date')
    if start_date and end_date:
        sales = sales.filter(created_at__date__range=[start_date, end_date])

    status = request.GET.get('status')
    if status:
        sales = sales.filter(status=status)

    payment_method = request.GET.get('payment_method')
    if payment_method:
        sales = sales.filter(payment_method=payment_method)

    paginator = Paginator(sales.prefetch_related('items'), 50)
    page_obj = paginator.get_page(request.GET.get('page'))

    total_sales = sales.filter(status='COMPLETED').aggregate(
        total_amount=Sum('total'),
        total_count=Count('id')
    )
    return JsonResponse({
        'success': True,
        'sales': SaleSerializer(page_obj.object_list, many=True).data,
        'page': page_obj.number,
        'total_pages': paginator.num_pages,
        'total_amount': float(total_sales['total_amount'] or 0),
        'total_count': total_sales['total_count'] or 0,
    })


@require_role(*POS_ROLES)
@require_store
def sale_detail(request, pk):
    sale = get_object_or_404(Sale, pk=pk, store=request.store)
    if not _is_manager(request) and sale.cashier_id != request.user.id:
        return JsonResponse({'success': False, 'error': 'Access denied'}, status=403)
    return JsonResponse({
        'success': True,
        'sale': SaleSerializer(sale).data,
        'receipt': checkout.build_receipt_data(sale),
    })


@require_role(*POS_ROLES)
@require_store
def sale_status(request, pk):
    """Polled by the till while an STK push is outstanding"""
    sale = get_object_or_404(Sale, pk=pk, store=request.store)
    return JsonResponse({
        'success': True,
        'status': sale.status,
        'payment_status': sale.payment_status,
        'mpesa_receipt': sale.mpesa_receipt,
    })


@require_role(*POS_ROLES)
@require_store
def print_receipt(request, sale_id):
    """Print receipt for a sale"""
    sale = get_object_or_404(Sale, id=sale_id, store=request.store)
    pdf = generate_receipt_pdf(sale)

    response = HttpResponse(pdf, content_type='application/pdf')
    response['Content-Disposition'] = f'filename="receipt_{sale.invoice_number}.pdf"'
    return response


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def void_sale(request, pk):
    sale = get_object_or_404(Sale, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        sale = checkout.void_sale(sale, request.user, data.get('reason'))
        return JsonResponse({'success': True, 'sale': SaleSerializer(sale).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def daily_sales_report(request):
    """Daily sales summary"""
    try:
        day = _report_date(request)
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})

    sales = Sale.objects.filter(store=request.store, created_at__date=day, status='COMPLETED')

    hourly_sales = []
    for hour in range(6, 23):
        hour_sales = sales.filter(created_at__hour=hour).aggregate(total=Sum('total'))['total'] or 0
        hourly_sales.append({'hour': f'{hour}:00', 'sales': float(hour_sales)})

    top_products = SaleItem.objects.filter(sale__in=sales).values('product_id', 'product_name').annotate(
        quantity_sold=Sum('quantity'),
        revenue=Sum('total_price'),
    ).order_by('-quantity_sold')[:10]

    return JsonResponse({
        'success': True,
        'date': day.isoformat(),
        'total_sales': float(sales.aggregate(total=Sum('total'))['total'] or 0),
        'total_transactions': sales.count(),
        'reconciliation': checkout.daily_reconciliation(request.store, day),
        'hourly_sales': hourly_sales,
        'top_products': [
            {**row, 'revenue': float(row['revenue'] or 0)} for row in top_products
        ],
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def daily_reconciliation(request):
    try:
        day = _report_date(request)
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})
    return JsonResponse({'success': True, **checkout.daily_reconciliation(request.store, day)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def mpesa_reconciliations(request):
    """Reconcile a period of M-Pesa payments (POST) or list past runs (GET)"""
    store = request.store
    if request.method == 'POST':
        try:
            data = get_request_data(request)
            start_date = parse_date(data.get('start_date') or '') or timezone.localdate()
            end_date = parse_date(data.get('end_date') or '') or start_date
            log = mpesa_reconciliation.reconcile_mpesa(store, start_date, end_date, user=request.user)
            return JsonResponse({
                'success': True,
                'reconciliation': MpesaReconciliationSerializer(log).data,
                'variance': mpesa_reconciliation.reconciliation_variance(log),
            })
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})

    logs = MpesaReconciliation.objects.filter(store=store)
    return JsonResponse({
        'success': True,
        'reconciliations': MpesaReconciliationSerializer(logs[:60], many=True).data,
        'average_daily_deposits': mpesa_reconciliation.average_daily_deposits(store),
    })


# Cash

@require_role(*POS_ROLES)
@require_store
@csrf_exempt
def blind_close(request):
    """Staff submit their count (POST); managers list past closes (GET)"""
    store = request.store

    if request.method == 'POST':
        try:
            data = get_request_data(request)
            close_date = parse_date(data['close_date']) if data.get('close_date') else None
            close = cash.submit_blind_close(store, request.user, data.get('counted_cash'), close_date)
            return JsonResponse({'success': True, 'close': cash.staff_close_result(close)})
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})

    if not _is_manager(request):
        # Staff get the non-cash totals only, never the expected cash
        return JsonResponse({
            'success': True,
            'date': timezone.localdate().isoformat(),
            'non_cash_totals': cash.non_cash_totals(store, timezone.localdate()),
            'already_closed': BlindClose.objects.filter(store=store, close_date=timezone.localdate()).exists(),
        })

    closes = BlindClose.objects.filter(store=store).select_related('staff')
    if request.GET.get('unverified') == '1':
        closes = closes.filter(verified_by_owner=False)
    return JsonResponse({'success': True, 'closes': BlindCloseSerializer(closes[:60], many=True).data})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def verify_blind_close(request, pk):
    close = get_object_or_404(BlindClose, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        close = cash.verify_blind_close(close, request.user, data.get('notes', ''))
        return JsonResponse({'success': True, 'close': BlindCloseSerializer(close).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def cash_audits(request):
    """Record a register reconciliation (POST) or list them with the fraud pattern (GET)"""
    store = request.store

    if request.method == 'POST':
        try:
            data = get_request_data(request)
            register_date = parse_date(data.get('register_date') or '') or timezone.localdate()
            expected = data.get('expected_closing')
            if expected in (None, ''):
                expected = cash.expected_cash(store, register_date) + (
                    to_decimal(data.get('opening_balance') or 0, 'opening balance')
                )
            audit = cash.record_cash_audit(
                store,
                register_date,
                data.get('opening_balance') or 0,
                expected,
                data.get('actual_closing'),
                reconciled_by=request.user,
                notes=data.get('notes', ''),
            )
            return JsonResponse({'success': True, 'audit': CashAuditSerializer(audit).data})
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})

    audits = CashAudit.objects.filter(store=store)
    if request.GET.get('flagged') == '1':
        audits = audits.filter(is_fraud_suspect=True)
    return JsonResponse({
        'success': True,
        'audits': CashAuditSerializer(audits[:60], many=True).data,
        'pattern': cash.cash_fraud_pattern(store),
    })


# Staff shrinkage

@require_role(*POS_ROLES)
@require_store
def my_shrinkage(request):
    debts = ShrinkageDebt.objects.filter(store=request.store, agent=request.user)
    return JsonResponse({'success': True, 'debts': ShrinkageDebtSerializer(debts, many=True).data})


@require_role(*POS_ROLES)
@require_store
@csrf_exempt
@require_POST
def respond_to_shrinkage(request, pk):
    """The accountable staff member acknowledges or disputes a debt"""
    debt = get_object_or_404(ShrinkageDebt, pk=pk, store=request.store, agent=request.user)
    try:
        data = get_request_data(request)
        status = data.get('status', 'ACKNOWLEDGED')
        if status not in ('ACKNOWLEDGED', 'DISPUTED'):
            return JsonResponse({'success': False, 'error': 'You can only acknowledge or dispute a debt'})
        update_debt_status(debt, status, notes=data.get('notes'), actor=request.user)
        return JsonResponse({'success': True, 'debt': ShrinkageDebtSerializer(debt).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})
