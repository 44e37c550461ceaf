from decimal import Decimal
from unittest import mock

from django.test import TestCase

from billing.models import Subscription, C2BTransaction
from core.models import Notification
from core.mpesa_models import MpesaTransaction, MpesaCallback
from core.mpesa_utils import MpesaUtils
from pos.checkout import record_pos_sale
from .factories import (
    make_user, make_owner_and_store, make_product,
    FakeMpesaService, stk_callback, c2b_confirmation,
)


class MpesaUtilsTests(TestCase):
    def test_format_phone_number(self):
        self.assertEqual(MpesaUtils.format_phone_number('0712345678'), '254712345678')
        self.assertEqual(MpesaUtils.format_phone_number('+254 712 345 678'), '254712345678')
        self.assertEqual(MpesaUtils.format_phone_number('112345678'), '254112345678')
        with self.assertRaises(ValueError):
            MpesaUtils.format_phone_number('12345')
        with self.assertRaises(ValueError):
            MpesaUtils.format_phone_number('0812')

    def test_validate_amount(self):
        self.assertEqual(MpesaUtils.validate_amount('250'), 250)
        for bad in ('0', '-5', '150001', '10.50', 'ten'):
            with self.assertRaises(ValueError):
                MpesaUtils.validate_amount(bad)

    def test_parse_stk_callback(self):
        parsed = MpesaUtils.parse_callback_data(stk_callback('ws_CO_1', amount=300, receipt='QK1'))
        self.assertEqual(parsed['type'], 'STK')
        self.assertEqual(parsed['checkout_request_id'], 'ws_CO_1')
        self.assertEqual(parsed['amount'], 300)
        self.assertEqual(parsed['receipt_number'], 'QK1')
        self.assertEqual(parsed['phone_number'], '254712345678')

    def test_status_messages(self):
        self.assertEqual(MpesaUtils.get_transaction_status_message(1032), 'Request cancelled by user')
        self.assertEqual(MpesaUtils.get_transaction_status_message('2001'), 'Wrong M-Pesa PIN entered')
        self.assertIn('Unknown error', MpesaUtils.get_transaction_status_message(42))


class STKCallbackTests(TestCase):
    url = '/api/mpesa/stk-callback/'

    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.cashier = make_user(store=self.store)
        self.product = make_product(self.store, quantity=10, selling_price='100.00')

    def pending_sale(self, quantity=2):
        result = record_pos_sale(
            self.store, [{'product_id': self.product.id, 'quantity': quantity}], 'MPESA',
            cashier=self.cashier, mpesa_phone='0712345678', service=FakeMpesaService(),
        )
        return result['sale'], result['mpesa_transaction']

    def post(self, payload):
        return self.client.post(self.url, payload, content_type='application/json').json()

    def test_success_completes_pending_sale(self):
        sale, mpesa_transaction = self.pending_sale()
        self.assertEqual(sale.status, 'PENDING')

        reply = self.post(stk_callback(mpesa_transaction.checkout_request_id, amount=200, receipt='QK7ABC1234'))
        self.assertEqual(reply['ResultCode'], 0)

        sale.refresh_from_db()
        mpesa_transaction.refresh_from_db()
        self.assertEqual(sale.status, 'COMPLETED')
        self.assertEqual(sale.payment_status, 'PAID')
        self.assertEqual(sale.mpesa_receipt, 'QK7ABC1234')
        self.assertEqual(mpesa_transaction.status, 'SUCCESS')
        self.assertTrue(MpesaCallback.objects.get(transaction=mpesa_transaction).is_processed)
        self.assertTrue(Notification.objects.filter(user=self.cashier, title='M-Pesa Payment Successful').exists())

    def test_cancelled_by_user_restores_stock(self):
        sale, mpesa_transaction = self.pending_sale(quantity=3)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 7)

        reply = self.post(stk_callback(mpesa_transaction.checkout_request_id, result_code=1032,
                                       result_desc='Request cancelled by user'))
        self.assertEqual(reply['ResultCode'], 0)

        sale.refresh_from_db()
        mpesa_transaction.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(sale.status, 'CANCELLED')
        self.assertEqual(mpesa_transaction.status, 'CANCELLED')
        self.assertEqual(self.product.quantity, 10)

    def test_failure_marks_transaction_failed(self):
        sale, mpesa_transaction = self.pending_sale()
        self.post(stk_callback(mpesa_transaction.checkout_request_id, result_code=1,
                               result_desc='Insufficient Funds'))
        mpesa_transaction.refresh_from_db()
        sale.refresh_from_db()
        self.assertEqual(mpesa_transaction.status, 'FAILED')
        self.assertEqual(sale.status, 'CANCELLED')

    def test_duplicate_callback_is_ignored(self):
        sale, mpesa_transaction = self.pending_sale()
        payload = stk_callback(mpesa_transaction.checkout_request_id)
        self.post(payload)
        reply = self.post(stk_callback(mpesa_transaction.checkout_request_id, result_code=1032))

        self.assertEqual(reply['ResultCode'], 0)
        sale.refresh_from_db()
        self.assertEqual(sale.status, 'COMPLETED')
        duplicate = MpesaCallback.objects.filter(transaction=mpesa_transaction).order_by('-id').first()
        self.assertEqual(duplicate.processing_notes, 'Duplicate callback ignored')

    def test_retry_landing_after_lookup_is_not_applied_twice(self):
        sale, mpesa_transaction = self.pending_sale()
        original_save = MpesaCallback.save

        def save_then_settle(callback, *args, **kwargs):
            original_save(callback, *args, **kwargs)
            if kwargs.get('update_fields') == ['transaction']:
                # another delivery settles the payment between lookup and lock
                MpesaTransaction.objects.filter(pk=mpesa_transaction.pk).update(status='SUCCESS')

        with mock.patch.object(MpesaCallback, 'save', autospec=True, side_effect=save_then_settle):
            reply = self.post(stk_callback(mpesa_transaction.checkout_request_id, amount=200))

        self.assertEqual(reply['ResultCode'], 0)
        sale.refresh_from_db()
        self.assertEqual(sale.status, 'PENDING')
        self.assertFalse(Notification.objects.filter(title='M-Pesa Payment Successful').exists())
        callback = MpesaCallback.objects.get(transaction=mpesa_transaction)
        self.assertEqual(callback.processing_notes, 'Duplicate callback ignored')

    def test_unknown_checkout_request_is_rejected(self):
        reply = self.post(stk_callback('ws_CO_UNKNOWN'))
        self.assertEqual(reply['ResultCode'], 1)
        self.assertEqual(MpesaCallback.objects.count(), 1)

    def test_invalid_json_is_rejected(self):
        reply = self.client.post(self.url, 'not json', content_type='application/json').json()
        self.assertEqual(reply['ResultCode'], 1)

    def test_subscription_payment_activates_plan(self):
        mpesa_transaction = MpesaTransaction.objects.create(
            transaction_type='STK_PUSH', purpose='SUBSCRIPTION', plan_id='basic-monthly',
            amount=Decimal('500'), phone_number='254712345678', account_reference=self.store.access_code,
            store=self.store, user=self.owner, checkout_request_id='ws_CO_SUB1',
        )
        self.post(stk_callback('ws_CO_SUB1', amount=500, receipt='QKSUB001'))

        subscription = Subscription.objects.get(store=self.store)
        self.assertEqual(subscription.status, 'ACTIVE')
        self.assertEqual(subscription.plan_id, 'basic-monthly')
        self.assertEqual(subscription.mpesa_receipt, 'QKSUB001')
        mpesa_transaction.refresh_from_db()
        self.assertEqual(mpesa_transaction.status, 'SUCCESS')


class C2BWebhookTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store(access_code='MAMA01')

    def test_validation_accepts_everything(self):
        reply = self.client.post('/api/mpesa/c2b/validation/', c2b_confirmation('QKV1', 10, 'WHATEVER'),
                                 content_type='application/json').json()
        self.assertEqual(reply['ResultCode'], 0)
        self.assertEqual(reply['ResultDesc'], 'Accepted')

    def test_confirmation_activates_matching_store(self):
        reply = self.client.post('/api/mpesa/c2b/confirmation/', c2b_confirmation('QKC1', 1500, 'mama01'),
                                 content_type='application/json').json()
        self.assertEqual(reply['ResultCode'], 0)

        c2b = C2BTransaction.objects.get(trans_id='QKC1')
        self.assertEqual(c2b.status, 'PROCESSED')
        self.assertEqual(c2b.store, self.store)
        self.assertEqual(Subscription.objects.get(store=self.store).plan_id, 'premium-monthly')
        self.assertTrue(MpesaCallback.objects.get(callback_type='C2B_CONFIRMATION').is_processed)

    def test_confirmation_without_trans_id_is_rejected(self):
        payload = c2b_confirmation('', 500, 'MAMA01')
        reply = self.client.post('/api/mpesa/c2b/confirmation/', payload,
                                 content_type='application/json').json()
        self.assertEqual(reply['ResultCode'], 1)
        self.assertFalse(C2BTransaction.objects.exists())
