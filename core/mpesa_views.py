"""
M-Pesa API Views and Webhook Handlers
"""
import json
import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.decorators import login_required
from django.db import transaction
from django.http import JsonResponse
from django.utils import timezone
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status

from .mpesa_config import MpesaConfig
from .mpesa_models import MpesaTransaction, MpesaCallback
from .mpesa_service import MpesaService
from .mpesa_utils import MpesaUtils
from .permissions import HasStoreRole, get_current_store, get_user_role
from .serializers import MpesaTransactionSerializer

logger = logging.getLogger('mpesa')


class MpesaAPIView(APIView):
    """
    Base M-Pesa API View
    """
    permission_classes = [HasStoreRole]

    def get_mpesa_service(self):
        return MpesaService()


@method_decorator(csrf_exempt, name='dispatch')
class MpesaWebhookView(View):
    """
    Base M-Pesa Webhook View. Daraja always gets a ResultCode answer.
    """
    http_method_names = ['post']

    def parse_request(self, request):
        try:
            return json.loads(request.body.decode('utf-8'))
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.error("Invalid JSON in webhook request")
            return None

    @staticmethod
    def accept(description='Success'):
        return JsonResponse({'ResultCode': 0, 'ResultDesc': description})

    @staticmethod
    def reject(description):
        return JsonResponse({'ResultCode': 1, 'ResultDesc': description})


class STKPushView(MpesaAPIView):
    """
    Initiate an STK push against a pending POS sale
    """

    def post(self, request):
        from pos.checkout import request_sale_payment
        from .models import Sale

        sale_id = request.data.get('sale_id')
        phone_number = request.data.get('phone_number')
        if not sale_id or not phone_number:
            return Response({'success': False, 'error': 'sale_id and phone_number are required'},
                            status=status.HTTP_400_BAD_REQUEST)

        store = get_current_store(request)
        sale = Sale.objects.filter(pk=sale_id, store=store).first()
        if sale is None:
            return Response({'success': False, 'error': 'Sale not found'}, status=status.HTTP_404_NOT_FOUND)

        try:
            mpesa_transaction = request_sale_payment(sale, phone_number, user=request.user,
                                                     service=self.get_mpesa_service())
        except ValueError as e:
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.error(f"STK Push error: {str(e)}", exc_info=True)
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

        if mpesa_transaction.status == 'FAILED':
            return Response({
                'success': False,
                'error': mpesa_transaction.result_description or 'STK Push failed',
                'transaction_id': str(mpesa_transaction.transaction_id),
            }, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            'success': True,
            'transaction_id': str(mpesa_transaction.transaction_id),
            'checkout_request_id': mpesa_transaction.checkout_request_id,
            'message': 'STK Push initiated successfully. Check your phone to complete payment.'
        })


class STKCallbackView(MpesaWebhookView):
    """
    Handle STK Push Callback from M-Pesa
    """

    def post(self, request):
        callback_data = self.parse_request(request)
        if not callback_data:
            return self.reject('Invalid JSON')

        logger.info(f"STK Callback received: {callback_data}")
        parsed = MpesaUtils.parse_callback_data(callback_data)

        callback = MpesaCallback.objects.create(
            callback_type='STK',
            raw_data=callback_data,
            result_code=parsed['result_code'],
            result_description=parsed['result_description'] or '',
        )

        if parsed['type'] != 'STK':
            return self.reject('Not an STK callback')

        mpesa_transaction = MpesaTransaction.objects.filter(
            checkout_request_id=parsed['checkout_request_id']
        ).first()
        if mpesa_transaction is None:
            logger.error(f"Transaction not found for CheckoutRequestID: {parsed['checkout_request_id']}")
            return self.reject('Transaction not found')

        callback.transaction = mpesa_transaction
        callback.save(update_fields=['transaction'])

        try:
            with transaction.atomic():
                # Daraja retries callbacks, so re-read the row under lock
                mpesa_transaction = MpesaTransaction.objects.select_for_update().get(pk=mpesa_transaction.pk)
                if mpesa_transaction.status != 'PENDING':
                    notes = None
                elif parsed['result_code'] == 0:
                    notes = self.handle_successful_payment(mpesa_transaction, parsed)
                else:
                    notes = self.handle_failed_payment(mpesa_transaction, parsed)
            if notes is None:
                callback.mark_processed('Duplicate callback ignored')
                return self.accept()
            callback.mark_processed(notes)
        except Exception as e:
            logger.error(f"STK Callback processing error: {str(e)}", exc_info=True)
            callback.processing_notes = str(e)
            callback.save(update_fields=['processing_notes'])
            return self.reject('Processing error')

        return self.accept()

    def handle_successful_payment(self, mpesa_transaction, parsed):
        from pos.checkout import complete_mpesa_sale
        from billing.services import activate_subscription

        receipt_number = parsed['receipt_number']
        mpesa_transaction.mark_success(
            receipt_number=receipt_number,
            result_code=0,
            result_desc='Payment successful'
        )

        if mpesa_transaction.purpose == 'SUBSCRIPTION' and mpesa_transaction.store:
            activate_subscription(
                mpesa_transaction.store,
                mpesa_transaction.plan_id,
                amount=parsed['amount'] or mpesa_transaction.amount,
                receipt=receipt_number,
                method='MPESA_STK',
                reference=mpesa_transaction.checkout_request_id,
            )
            notes = f"Subscription {mpesa_transaction.plan_id} activated"
        elif mpesa_transaction.sale:
            complete_mpesa_sale(mpesa_transaction.sale, receipt_number, parsed['phone_number'])
            notes = f"Sale {mpesa_transaction.sale.invoice_number} completed"
        else:
            notes = 'Payment recorded'

        MpesaUtils.send_payment_notification(mpesa_transaction, 'SUCCESS')
        logger.info(f"Payment successful for transaction {mpesa_transaction.transaction_id}: {notes}")
        return notes

    def handle_failed_payment(self, mpesa_transaction, parsed):
        from pos.checkout import cancel_pending_sale

        result_code = parsed['result_code']
        result_desc = parsed['result_description'] or MpesaUtils.get_transaction_status_message(result_code)

        if result_code == 1032:
            mpesa_transaction.mark_cancelled(result_desc)
        else:
            mpesa_transaction.mark_failed(result_code=result_code, result_desc=result_desc)

        if mpesa_transaction.sale and mpesa_transaction.purpose == 'SALE':
            cancel_pending_sale(mpesa_transaction.sale, f'M-Pesa payment failed: {result_desc}')

        MpesaUtils.send_payment_notification(mpesa_transaction, 'FAILED')
        logger.info(f"Payment failed for transaction {mpesa_transaction.transaction_id}: {result_desc}")
        return f"Payment failed: {result_desc}"


class C2BValidationView(MpesaWebhookView):
    """
    Handle C2B Validation Callback. Every payment to the till is accepted;
    matching to a store happens on confirmation.
    """

    def post(self, request):
        callback_data = self.parse_request(request)
        if not callback_data:
            return self.reject('Invalid JSON')

        logger.info(f"C2B Validation received: {callback_data}")
        callback = MpesaCallback.objects.create(callback_type='C2B_VALIDATION', raw_data=callback_data)
        callback.mark_processed('Accepted')
        return self.accept('Accepted')


class C2BConfirmationView(MpesaWebhookView):
    """
    Handle C2B Confirmation Callback
    """

    def post(self, request):
        from billing.services import handle_c2b_confirmation

        callback_data = self.parse_request(request)
        if not callback_data:
            return self.reject('Invalid JSON')

        logger.info(f"C2B Confirmation received: {callback_data}")
        callback = MpesaCallback.objects.create(callback_type='C2B_CONFIRMATION', raw_data=callback_data)

        try:
            c2b = handle_c2b_confirmation(callback_data)
        except ValueError as e:
            logger.error(f"C2B Confirmation rejected: {str(e)}")
            callback.processing_notes = str(e)
            callback.save(update_fields=['processing_notes'])
            return self.reject(str(e))
        except Exception as e:
            logger.error(f"C2B Confirmation error: {str(e)}", exc_info=True)
            return self.reject('Processing error')

        callback.mark_processed(f"C2B {c2b.trans_id} {c2b.status}")
        return self.accept()


class QueryTransactionView(MpesaAPIView):
    """
    Query STK push status with Daraja
    """

    def post(self, request):
        checkout_request_id = request.data.get('checkout_request_id')
        if not checkout_request_id:
            return Response({'success': False, 'error': 'Missing checkout_request_id'},
                            status=status.HTTP_400_BAD_REQUEST)

        try:
            result = self.get_mpesa_service().stk_query(checkout_request_id)
        except Exception as e:
            logger.error(f"Query transaction error: {str(e)}")
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

        return Response({
            'success': True,
            'result_code': result.get('result_code'),
            'result_desc': result.get('result_desc'),
            'message': MpesaUtils.get_transaction_status_message(result.get('result_code')),
        })


class TransactionHistoryView(MpesaAPIView):
    """
    Get transaction history of the current store
    """

    def get(self, request):
        try:
            days = int(request.GET.get('days', 7))
            page = max(int(request.GET.get('page', 1)), 1)
            page_size = min(int(request.GET.get('page_size', 20)), 100)
        except ValueError:
            return Response({'success': False, 'error': 'Invalid paging parameters'},
                            status=status.HTTP_400_BAD_REQUEST)

        start_date = timezone.now() - timedelta(days=days)
        transactions = MpesaTransaction.objects.filter(created_at__gte=start_date)

        if get_user_role(request.user) != 'SUPER_ADMIN' or request.GET.get('store_id'):
            transactions = transactions.filter(store=get_current_store(request))

        status_filter = request.GET.get('status')
        if status_filter:
            transactions = transactions.filter(status=status_filter)
        purpose = request.GET.get('purpose')
        if purpose:
            transactions = transactions.filter(purpose=purpose)

        total = transactions.count()
        start = (page - 1) * page_size
        serializer = MpesaTransactionSerializer(transactions[start:start + page_size], many=True)

        return Response({
            'success': True,
            'transactions': serializer.data,
            'total': total,
            'page': page,
            'page_size': page_size,
            'total_pages': (total + page_size - 1) // page_size
        })


@require_GET
@login_required
def mpesa_config_view(request):
    """M-Pesa settings the till needs to show payment instructions"""
    return JsonResponse({
        'environment': settings.MPESA_ENVIRONMENT,
        'shortcode': MpesaConfig.get_shortcode(),
        'till_number': MpesaConfig.get_till_number(),
        'is_test_mode': not MpesaConfig.is_production(),
        'max_amount': settings.MPESA_MAX_AMOUNT,
        'min_amount': settings.MPESA_MIN_AMOUNT,
        'currency': 'KES'
    })
