import logging

from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status

from billing import services as billing
from billing.models import C2BTransaction
from billing.serializers import C2BTransactionSerializer
from core.models import Store
from core.permissions import IsSuperAdmin, require_role, require_store
from core.serializers import StoreSerializer
from . import console
from .report_generators import SalesReportGenerator, ProductProfitabilityReport

logger = logging.getLogger('analytics')


class ConsoleAPIView(APIView):
    """
    Base SuperAdmin console view
    """
    permission_classes = [IsSuperAdmin]

    @staticmethod
    def error(message, code=status.HTTP_400_BAD_REQUEST):
        return Response({'success': False, 'error': message}, status=code)


class StoreListView(ConsoleAPIView):
    def get(self, request):
        return Response({'success': True, 'stores': console.store_rows()})

    def post(self, request):
        try:
            store = console.create_store(request.data, actor=request.user)
        except ValueError as e:
            return self.error(str(e))
        return Response({'success': True, 'store': StoreSerializer(store).data}, status=status.HTTP_201_CREATED)


class StoreDetailView(ConsoleAPIView):
    def get(self, request, pk):
        store = get_object_or_404(Store, pk=pk)
        return Response({
            'success': True,
            'store': StoreSerializer(store).data,
            'entitlement': billing.get_effective_tier(store),
            'health': console.store_health(store),
        })

    def patch(self, request, pk):
        store = get_object_or_404(Store, pk=pk)
        try:
            store = console.update_store(store, request.data, actor=request.user)
        except ValueError as e:
            return self.error(str(e))
        except Exception as e:
            logger.error(f"Store update failed for {store.access_code}: {str(e)}", exc_info=True)
            return self.error(str(e))
        return Response({'success': True, 'store': StoreSerializer(store).data})


class LinkOwnerView(ConsoleAPIView):
    def post(self, request, pk):
        store = get_object_or_404(Store, pk=pk)
        try:
            store = console.link_owner(store, request.data.get('email'), actor=request.user)
        except ValueError as e:
            return self.error(str(e))
        return Response({'success': True, 'store': StoreSerializer(store).data})


class StoreTierView(ConsoleAPIView):
    """Set a tier by hand (POST) or undo the last manual change (DELETE)"""

    def post(self, request, pk):
        store = get_object_or_404(Store, pk=pk)
        try:
            subscription = billing.set_store_tier_admin(
                store, request.data.get('tier'), months=request.data.get('months', 12), actor=request.user,
            )
        except (TypeError, ValueError) as e:
            return self.error(str(e))
        return Response({
            'success': True,
            'tier': store.tier,
            'current_period_end': subscription.current_period_end.isoformat(),
        })

    def delete(self, request, pk):
        store = get_object_or_404(Store, pk=pk)
        try:
            message = billing.undo_admin_tier_upgrade(store, actor=request.user)
        except ValueError as e:
            return self.error(str(e))
        return Response({'success': True, 'message': message})


class PlatformStatsView(ConsoleAPIView):
    def get(self, request):
        return Response({
            'success': True,
            **console.platform_stats(),
            'billing': billing.billing_dashboard_stats(),
        })


class StoreHealthView(ConsoleAPIView):
    def get(self, request):
        rows = [console.store_health(store) for store in Store.objects.filter(is_active=True)]
        rows.sort(key=lambda row: row['health_score'])
        return Response({'success': True, 'stores': rows})


class C2BTransactionListView(ConsoleAPIView):
    def get(self, request):
        transactions = C2BTransaction.objects.select_related('store')

        status_filter = request.GET.get('status')
        if status_filter:
            transactions = transactions.filter(status=status_filter)
        query = request.GET.get('q')
        if query:
            transactions = console.search_c2b(transactions, query)

        return Response({
            'success': True,
            'transactions': C2BTransactionSerializer(transactions[:200], many=True).data,
            'unmatched_count': C2BTransaction.objects.filter(status__in=['UNMATCHED', 'CREDITED']).count(),
        })


class C2BLinkView(ConsoleAPIView):
    def post(self, request, trans_id):
        store = Store.objects.filter(pk=request.data.get('store_id')).first()
        if store is None:
            return self.error('Store not found', status.HTTP_404_NOT_FOUND)
        try:
            c2b = billing.link_c2b_payment_to_store(trans_id, store, request.data.get('plan_id'), actor=request.user)
        except ValueError as e:
            return self.error(str(e))
        return Response({'success': True, 'transaction': C2BTransactionSerializer(c2b).data})


def _report_for(request):
    start_date = parse_date(request.GET.get('start_date') or '')
    end_date = parse_date(request.GET.get('end_date') or '')
    return SalesReportGenerator(request.store, start_date, end_date)


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def sales_report(request):
    try:
        report = _report_for(request).generate_detailed_report()
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})
    return JsonResponse({'success': True, **report})


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def export_sales_csv(request):
    try:
        generator = _report_for(request)
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})

    response = HttpResponse(generator.to_csv(), content_type='text/csv')
    response['Content-Disposition'] = (
        f'attachment; filename="sales_report_{generator.start_date}_to_{generator.end_date}.csv"'
    )
    return response


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def revenue_chart(request):
    """Plotly figure JSON for the revenue trend"""
    try:
        figure = _report_for(request).revenue_trend_chart()
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})
    return HttpResponse(figure, content_type='application/json')


@require_role('STORE_OWNER', 'ADMIN')
@require_store
def product_profitability(request):
    try:
        report = ProductProfitabilityReport(
            request.store,
            parse_date(request.GET.get('start_date') or ''),
            parse_date(request.GET.get('end_date') or ''),
        ).generate()
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)})
    return JsonResponse({'success': True, **report})
