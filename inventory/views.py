import csv
import logging
from datetime import datetime

from django.contrib.auth.models import User
from django.core.paginator import Paginator
from django.db.models import F, Q
from django.http import JsonResponse, HttpResponse
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.models import Product, StockTransaction, PurchaseOrder, Supplier
from core.permissions import require_role, require_store
from core.serializers import ProductSerializer
from core.utils import get_request_data
from . import breaking_bulk, expiry, shrinkage, stockouts, suppliers
from .models import (
    InventoryBatch, StockAudit, StockAuditItem, ShrinkageDebt, SupplierInvoice, InventoryAlert, SupplierFraudFlag,
)
from .serializers import (
    InventoryBatchSerializer, StockTransactionSerializer, StockAuditSerializer, StockAuditItemSerializer,
    ShrinkageDebtSerializer, SupplierSerializer, SupplierInvoiceSerializer, PurchaseOrderSerializer,
    InventoryAlertSerializer, ExpiryDiscountRuleSerializer, ExpiryClearanceSerializer, SupplierFraudFlagSerializer,
)

logger = logging.getLogger('inventory')


def _parse_date(value, field, required=False):
    if not value:
        if required:
            raise ValueError(f'{field} is required')
        return None
    parsed = parse_date(str(value))
    if parsed is None:
        raise ValueError(f'Invalid {field}: {value}')
    return parsed


def _errors(serializer):
    first = next(iter(serializer.errors.values()))
    return first[0] if isinstance(first, list) else str(first)


def search_products(store, query):
    """Products of a store matching name, SKU or barcode"""
    products = Product.objects.filter(store=store)
    query = (query or '').strip()
    if query:
        products = products.filter(
            Q(name__icontains=query) |
            Q(sku__icontains=query) |
            Q(barcode__icontains=query)
        )
    return products


# Products

@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def product_list(request):
    """List products (GET) or create one (POST)"""
    store = request.store

    if request.method == 'POST':
        try:
            data = get_request_data(request)
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})
        if request.FILES:
            data = data.copy()
            data.update(request.FILES)
        serializer = ProductSerializer(data=data, context={'store': store})
        if not serializer.is_valid():
            return JsonResponse({'success': False, 'error': _errors(serializer), 'errors': serializer.errors})
        product = serializer.save(store=store)
        logger.info(f"Product {product.name} created in {store.access_code} by {request.user.username}")
        return JsonResponse({'success': True, 'product': ProductSerializer(product).data})

    products = search_products(store, request.GET.get('search'))

    category = request.GET.get('category')
    if category:
        products = products.filter(category__id=category)

    stock_status = request.GET.get('stock_status')
    if stock_status == 'low':
        products = products.filter(quantity__lte=F('low_stock_threshold'))
    elif stock_status == 'out':
        products = products.filter(quantity=0)
    elif stock_status == 'in':
        products = products.filter(quantity__gt=0)

    if request.GET.get('include_inactive') != '1':
        products = products.filter(is_active=True)

    paginator = Paginator(products.select_related('category'), 50)
    page_obj = paginator.get_page(request.GET.get('page'))
    return JsonResponse({
        'success': True,
        'products': ProductSerializer(page_obj.object_list, many=True).data,
        'page': page_obj.number,
        'total_pages': paginator.num_pages,
        'total': paginator.count,
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def product_search(request):
    products = search_products(request.store, request.GET.get('q')).filter(is_active=True)[:20]
    return JsonResponse({'success': True, 'products': ProductSerializer(products, many=True).data})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def product_detail(request, pk):
    """View (GET), update (POST) or deactivate (DELETE) a product"""
    product = get_object_or_404(Product, pk=pk, store=request.store)

    if request.method == 'POST':
        try:
            data = get_request_data(request)
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})
        serializer = ProductSerializer(product, data=data, partial=True, context={'store': request.store})
        if not serializer.is_valid():
            return JsonResponse({'success': False, 'error': _errors(serializer), 'errors': serializer.errors})
        product = serializer.save()
        logger.info(f"Product {product.name} updated by {request.user.username}")
        return JsonResponse({'success': True, 'product': ProductSerializer(product).data})

    if request.method == 'DELETE':
        product.is_active = False
        product.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Product {product.name} deactivated by {request.user.username}")
        return JsonResponse({'success': True})

    transactions = StockTransaction.objects.filter(product=product).order_by('-created_at')[:20]
    return JsonResponse({
        'success': True,
        'product': ProductSerializer(product).data,
        'transactions': StockTransactionSerializer(transactions, many=True).data,
        'batches': InventoryBatchSerializer(breaking_bulk.fefo_queryset(product), many=True).data,
        'breakout_products': ProductSerializer(product.breakout_products.filter(is_active=True), many=True).data,
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def stock_transactions(request):
    """Stock transaction history"""
    transactions = StockTransaction.objects.filter(product__store=request.store).select_related('product')

    start_date = request.GET.get('start_date')
    end_date = request.GET.get('end_date')
    if start_date and end_date:
        transactions = transactions.filter(created_at__date__range=[start_date, end_date])

    transaction_type = request.GET.get('transaction_type')
    if transaction_type:
        transactions = transactions.filter(transaction_type=transaction_type)

    product_id = request.GET.get('product')
    if product_id:
        transactions = transactions.filter(product__id=product_id)

    paginator = Paginator(transactions.order_by('-created_at'), 100)
    page_obj = paginator.get_page(request.GET.get('page'))
    return JsonResponse({
        'success': True,
        'transactions': StockTransactionSerializer(page_obj.object_list, many=True).data,
        'page': page_obj.number,
        'total_pages': paginator.num_pages,
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def low_stock_report(request):
    """Products at or below their low stock threshold"""
    low_stock_products = Product.objects.filter(
        store=request.store,
        quantity__lte=F('low_stock_threshold'),
        is_active=True
    ).order_by('quantity')

    total_value = sum(product.total_value for product in low_stock_products)
    return JsonResponse({
        'success': True,
        'products': ProductSerializer(low_stock_products, many=True).data,
        'total_count': low_stock_products.count(),
        'out_of_stock': low_stock_products.filter(quantity=0).count(),
        'total_value': float(total_value),
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def export_inventory_csv(request):
    """Export inventory to CSV"""
    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = 'attachment; filename="inventory_{}.csv"'.format(
        datetime.now().strftime('%Y%m%d')
    )

    writer = csv.writer(response)
    writer.writerow([
        'SKU', 'Barcode', 'Product Name', 'Category', 'Current Stock',
        'Cost Price', 'Selling Price', 'Total Value', 'Low Stock Threshold',
        'Reorder Quantity', 'Expiry Date', 'Supplier'
    ])

    products = Product.objects.filter(store=request.store, is_active=True).select_related(
        'category', 'supplier'
    ).order_by('category__name', 'name')
    for product in products:
        writer.writerow([
            product.sku,
            product.barcode,
            product.name,
            product.category.name if product.category else '',
            product.quantity,
            product.cost_price,
            product.selling_price,
            product.total_value,
            product.low_stock_threshold,
            product.reorder_quantity,
            product.expiry_date.strftime('%Y-%m-%d') if product.expiry_date else '',
            product.supplier.name if product.supplier else '',
        ])

    return response


# Breaking bulk

@require_role('STORE_OWNER', 'ADMIN')
def breaking_bulk_presets(request):
    return JsonResponse({'success': True, 'presets': breaking_bulk.PRESETS})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def create_breakout(request, pk):
    """Create the unit product of a bulk item from a preset or explicit units"""
    parent = get_object_or_404(Product, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        populate = str(data.get('populate', 'true')).lower() not in ('false', '0')
        if data.get('preset'):
            child = breaking_bulk.create_breakout_from_preset(
                parent, data['preset'], user=request.user, populate=populate
            )
        else:
            child = breaking_bulk.create_breakout_product(
                parent,
                data.get('breakout_unit_name'),
                data.get('conversion_rate'),
                bulk_unit_name=data.get('bulk_unit_name', ''),
                user=request.user,
                populate=populate,
            )
        return JsonResponse({'success': True, 'product': ProductSerializer(child).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def break_bulk(request, pk):
    parent = get_object_or_404(Product, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        result = breaking_bulk.break_bulk(parent, data.get('quantity'), user=request.user)
        return JsonResponse({'success': True, **result})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def bulk_audit(request, pk):
    """Variance between counted bulk units and breakout stock in the system"""
    parent = get_object_or_404(Product, pk=pk, store=request.store, is_bulk_parent=True)
    try:
        data = get_request_data(request)
        result = breaking_bulk.calculate_audit_variance(parent, data.get('physical_count'))
        return JsonResponse({'success': True, **result})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


# Batches

@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def batch_list(request):
    """List batches (GET) or receive a new batch (POST)"""
    store = request.store

    if request.method == 'POST':
        try:
            data = get_request_data(request)
            product = get_object_or_404(Product, pk=data.get('product_id'), store=store)
            batch = breaking_bulk.receive_batch(
                product,
                data.get('quantity'),
                expiry_date=_parse_date(data.get('expiry_date'), 'expiry date'),
                batch_number=data.get('batch_number', ''),
                user=request.user,
            )
            return JsonResponse({'success': True, 'batch': InventoryBatchSerializer(batch).data})
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})

    batches = InventoryBatch.objects.filter(store=store).select_related('product')
    product_id = request.GET.get('product')
    if product_id:
        batches = batches.filter(product_id=product_id)
    status = request.GET.get('status')
    if status:
        batches = batches.filter(status=status)
    return JsonResponse({'success': True, 'batches': InventoryBatchSerializer(batches[:200], many=True).data})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def expiring_batches(request):
    try:
        days = int(request.GET['days']) if request.GET.get('days') else None
    except ValueError:
        return JsonResponse({'success': False, 'error': 'days must be a number'})
    batches = breaking_bulk.expiring_batches(request.store, days)
    return JsonResponse({'success': True, 'batches': InventoryBatchSerializer(batches, many=True).data})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def dispose_batch(request, pk):
    batch = get_object_or_404(InventoryBatch, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        batch = breaking_bulk.dispose_batch(batch, user=request.user, reason=data.get('reason', ''))
        return JsonResponse({'success': True, 'batch': InventoryBatchSerializer(batch).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def alert_list(request):
    alerts = InventoryAlert.objects.filter(store=request.store, is_resolved=False).select_related('product')
    alert_type = request.GET.get('type')
    if alert_type:
        alerts = alerts.filter(alert_type=alert_type)
    return JsonResponse({'success': True, 'alerts': InventoryAlertSerializer(alerts[:100], many=True).data})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def stockout_report(request):
    return JsonResponse({
        'success': True,
        **stockouts.stockout_summary(request.store),
        'at_risk': stockouts.stockout_risk(request.store),
    })


# Stock audits and shrinkage

@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def stock_audit_list(request):
    if request.method == 'POST':
        try:
            data = get_request_data(request)
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})
        audit = shrinkage.create_stock_audit(
            request.store, request.user,
            collected_by=data.get('collected_by', ''), notes=data.get('notes', '')
        )
        return JsonResponse({'success': True, 'audit': StockAuditSerializer(audit).data})

    audits = StockAudit.objects.filter(store=request.store)
    return JsonResponse({'success': True, 'audits': StockAuditSerializer(audits[:50], many=True).data})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def stock_audit_detail(request, pk):
    audit = get_object_or_404(StockAudit, pk=pk, store=request.store)
    return JsonResponse({'success': True, 'audit': StockAuditSerializer(audit).data})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def stock_audit_count(request, pk):
    """Record the physical count of one product"""
    audit = get_object_or_404(StockAudit, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        product = get_object_or_404(Product, pk=data.get('product_id'), store=request.store)
        item = shrinkage.add_audit_item(audit, product, data.get('physical_count'), notes=data.get('notes', ''))
        return JsonResponse({'success': True, 'item': StockAuditItemSerializer(item).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def stock_audit_action(request, pk, action):
    audit = get_object_or_404(StockAudit, pk=pk, store=request.store)
    try:
        if action == 'complete':
            shrinkage.complete_audit(audit, user=request.user)
        elif action == 'apply':
            shrinkage.apply_audit(audit, user=request.user)
        else:
            return JsonResponse({'success': False, 'error': f'Unknown action: {action}'}, status=404)
        audit.refresh_from_db()
        return JsonResponse({'success': True, 'audit': StockAuditSerializer(audit).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def assign_shrinkage(request, item_id):
    """Charge a short audit line to a staff member"""
    item = get_object_or_404(StockAuditItem, pk=item_id, audit__store=request.store)
    try:
        data = get_request_data(request)
        agent = get_object_or_404(User, pk=data.get('agent_id'))
        debt = shrinkage.record_shrinkage_debt(item, agent, notes=data.get('notes') or None, actor=request.user)
        return JsonResponse({'success': True, 'debt': ShrinkageDebtSerializer(debt).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def shrinkage_dashboard(request):
    debts = ShrinkageDebt.objects.filter(store=request.store).select_related('agent', 'audit')
    status = request.GET.get('status')
    if status:
        debts = debts.filter(status=status)
    agent_id = request.GET.get('agent')
    if agent_id:
        debts = debts.filter(agent_id=agent_id)

    stats = shrinkage.store_shrinkage_stats(request.store)
    return JsonResponse({
        'success': True,
        'debts': ShrinkageDebtSerializer(debts[:100], many=True).data,
        'stats': {key: float(value) for key, value in stats.items()},
        'agents': [
            {key: float(value) if key.endswith('amount') or key == 'total_sales_value' else value
             for key, value in row.items()}
            for row in shrinkage.agent_shrinkage_summary(request.store)
        ],
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def shrinkage_debt_action(request, pk, action):
    debt = get_object_or_404(ShrinkageDebt, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        if action == 'status':
            shrinkage.update_debt_status(debt, data.get('status'), notes=data.get('notes'), actor=request.user)
        elif action == 'resolve':
            shrinkage.resolve_debt(debt, data.get('amount'), actor=request.user)
        else:
            return JsonResponse({'success': False, 'error': f'Unknown action: {action}'}, status=404)
        return JsonResponse({'success': True, 'debt': ShrinkageDebtSerializer(debt).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


# Suppliers, invoices and purchase orders

@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def supplier_list(request):
    store = request.store
    if request.method == 'POST':
        try:
            data = get_request_data(request)
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})
        serializer = SupplierSerializer(data=data)
        if not serializer.is_valid():
            return JsonResponse({'success': False, 'error': _errors(serializer), 'errors': serializer.errors})
        supplier = serializer.save(store=store)
        logger.info(f"Supplier {supplier.name} added to {store.access_code}")
        return JsonResponse({'success': True, 'supplier': SupplierSerializer(supplier).data})

    owed = {row['supplier_id']: row for row in suppliers.owed_by_supplier(store)}
    rows = []
    for supplier in Supplier.objects.filter(store=store, is_active=True):
        row = SupplierSerializer(supplier).data
        row['owed'] = float(owed.get(supplier.id, {}).get('owed') or 0)
        row['overdue_invoices'] = owed.get(supplier.id, {}).get('overdue', 0)
        rows.append(row)
    return JsonResponse({
        'success': True,
        'suppliers': rows,
        'total_owed': float(suppliers.total_owed(store)),
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def invoice_list(request):
    store = request.store
    if request.method == 'POST':
        try:
            data = get_request_data(request)
            supplier = get_object_or_404(Supplier, pk=data.get('supplier_id'), store=store)
            purchase_order = None
            if data.get('purchase_order_id'):
                purchase_order = get_object_or_404(PurchaseOrder, pk=data['purchase_order_id'], store=store)
            invoice = suppliers.create_invoice(
                store, supplier,
                data.get('invoice_number'),
                _parse_date(data.get('invoice_date'), 'invoice date', required=True),
                _parse_date(data.get('due_date'), 'due date', required=True),
                data.get('subtotal'),
                tax_amount=data.get('tax_amount') or 0,
                purchase_order=purchase_order,
                notes=data.get('notes', ''),
                user=request.user,
            )
            return JsonResponse({'success': True, 'invoice': SupplierInvoiceSerializer(invoice).data})
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})

    invoices = SupplierInvoice.objects.filter(store=store).select_related('supplier')
    status = request.GET.get('status')
    if status:
        invoices = invoices.filter(status=status)
    supplier_id = request.GET.get('supplier')
    if supplier_id:
        invoices = invoices.filter(supplier_id=supplier_id)

    serialized = SupplierInvoiceSerializer(invoices, many=True).data
    return JsonResponse({
        'success': True,
        'invoices': serialized,
        'overdue_count': sum(1 for row in serialized if row['is_overdue']),
        'due_soon_count': sum(1 for row in serialized if row['is_due_soon']),
        'total_owed': float(suppliers.total_owed(store)),
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def invoice_action(request, pk, action):
    invoice = get_object_or_404(SupplierInvoice, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        if action == 'verify':
            suppliers.verify_invoice(invoice)
        elif action == 'pay':
            suppliers.mark_invoice_paid(invoice, _parse_date(data.get('payment_date'), 'payment date'))
        elif action == 'dispute':
            suppliers.dispute_invoice(invoice, data.get('note'))
        else:
            return JsonResponse({'success': False, 'error': f'Unknown action: {action}'}, status=404)
        return JsonResponse({'success': True, 'invoice': SupplierInvoiceSerializer(invoice).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def purchase_order_list(request):
    """List purchase orders (GET) or create one (POST)"""
    store = request.store
    if request.method == 'POST':
        try:
            data = get_request_data(request)
            supplier = get_object_or_404(Supplier, pk=data.get('supplier_id'), store=store)
            items = []
            for line in data.get('items') or []:
                items.append({
                    'product': get_object_or_404(Product, pk=line.get('product_id'), store=store),
                    'quantity': line.get('quantity', 0),
                    'unit_cost': line.get('unit_cost'),
                    'expiry_date': _parse_date(line.get('expiry_date'), 'expiry date'),
                    'batch_number': line.get('batch_number', ''),
                })
            order = suppliers.create_purchase_order(
                store, supplier, items, user=request.user,
                expected_date=_parse_date(data.get('expected_date'), 'expected date'),
                notes=data.get('notes', ''),
            )
            return JsonResponse({'success': True, 'order': PurchaseOrderSerializer(order).data})
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})

    orders = PurchaseOrder.objects.filter(store=store).select_related('supplier')
    status = request.GET.get('status')
    if status:
        orders = orders.filter(status=status)
    supplier_id = request.GET.get('supplier')
    if supplier_id:
        orders = orders.filter(supplier__id=supplier_id)

    paginator = Paginator(orders, 20)
    page_obj = paginator.get_page(request.GET.get('page'))
    return JsonResponse({
        'success': True,
        'orders': PurchaseOrderSerializer(page_obj.object_list, many=True).data,
        'page': page_obj.number,
        'total_pages': paginator.num_pages,
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def purchase_order_detail(request, pk):
    order = get_object_or_404(PurchaseOrder, pk=pk, store=request.store)
    return JsonResponse({'success': True, 'order': PurchaseOrderSerializer(order).data})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def purchase_order_action(request, pk, action):
    order = get_object_or_404(PurchaseOrder, pk=pk, store=request.store)
    actions = {
        'submit': lambda: suppliers.submit_purchase_order(order),
        'approve': lambda: suppliers.approve_purchase_order(order),
        'receive': lambda: suppliers.receive_purchase_order(
            order, user=request.user, received_quantities=get_request_data(request).get('received'),
        ),
        'cancel': lambda: suppliers.cancel_purchase_order(order),
    }
    if action not in actions:
        return JsonResponse({'success': False, 'error': f'Unknown action: {action}'}, status=404)
    try:
        actions[action]()
        return JsonResponse({'success': True, 'order': PurchaseOrderSerializer(order).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


# Expiry markdowns and clearance

@require_role('STORE_OWNER', 'ADMIN')
@require_store
def expiry_report(request):
    store = request.store
    return JsonResponse({
        'success': True,
        'batches': expiry.expiry_report(store, include_ok=request.GET.get('all') == '1'),
        'impact': expiry.expiry_loss_impact(store),
    })


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def expiry_rules(request):
    """List the discount ladder (GET) or add/change one step of it (POST)"""
    store = request.store
    if request.method == 'POST':
        try:
            data = get_request_data(request)
            rule = expiry.set_discount_rule(
                store, data.get('days_before_expiry'), data.get('discount_percentage'),
                auto_apply=data.get('auto_apply'), is_active=data.get('is_active'),
            )
            return JsonResponse({'success': True, 'rule': ExpiryDiscountRuleSerializer(rule).data})
        except ValueError as e:
            return JsonResponse({'success': False, 'error': str(e)})

    rules = expiry.discount_rules(store)
    return JsonResponse({'success': True, 'rules': ExpiryDiscountRuleSerializer(rules, many=True).data})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def clear_batch(request, pk):
    batch = get_object_or_404(InventoryBatch, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        clearance = expiry.record_clearance(
            batch, data.get('quantity'), data.get('clearance_type'), user=request.user,
            clearance_price=data.get('clearance_price') or None, notes=data.get('notes', ''),
        )
        return JsonResponse({'success': True, 'clearance': ExpiryClearanceSerializer(clearance).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def clearance_list(request):
    try:
        days = int(request.GET.get('days') or 30)
    except ValueError:
        return JsonResponse({'success': False, 'error': 'days must be a number'})
    history = expiry.clearance_history(request.store, days)
    return JsonResponse({
        'success': True,
        'clearances': ExpiryClearanceSerializer(history[:200], many=True).data,
        'stats': expiry.clearance_stats(request.store, days),
    })


# Supplier fraud flags

@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
def fraud_flag_list(request):
    """Open flags (GET, high=1 for CRITICAL and HIGH only) or flag a supplier (POST)"""
    store = request.store
    if request.method == 'POST':
        try:
            data = get_request_data(request)
            supplier = get_object_or_404(Supplier, pk=data.get('supplier_id'), store=store)
            order = None
            if data.get('purchase_order_id'):
                order = get_object_or_404(PurchaseOrder, pk=data['purchase_order_id'], store=store)
            flag = suppliers.flag_supplier_fraud(
                store, supplier, data.get('fraud_type'),
                description=data.get('description', ''),
                purchase_order=order,
                quantity_ordered=data.get('quantity_ordered') or 0,
                quantity_received=data.get('quantity_received') or 0,
                ordered_unit_price=data.get('ordered_unit_price'),
                invoice_unit_price=data.get('invoice_unit_price'),
                days_late=int(data.get('days_late') or 0),
                quality_score=data.get('quality_score'),
                user=request.user,
            )
            return JsonResponse({'success': True, 'flag': SupplierFraudFlagSerializer(flag).data})
        except (TypeError, ValueError) as e:
            return JsonResponse({'success': False, 'error': str(e)})

    flags = suppliers.open_fraud_flags(store, high_severity_only=request.GET.get('high') == '1')
    return JsonResponse({'success': True, 'flags': SupplierFraudFlagSerializer(flags[:100], many=True).data})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
@csrf_exempt
@require_POST
def resolve_fraud_flag(request, pk):
    flag = get_object_or_404(SupplierFraudFlag, pk=pk, store=request.store)
    try:
        data = get_request_data(request)
        flag = suppliers.resolve_fraud_flag(flag, data.get('notes'), user=request.user)
        return JsonResponse({'success': True, 'flag': SupplierFraudFlagSerializer(flag).data})
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def supplier_scorecard(request, pk):
    supplier = get_object_or_404(Supplier, pk=pk, store=request.store)
    return JsonResponse({'success': True, **suppliers.supplier_scorecard(supplier)})
