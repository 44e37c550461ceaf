from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from core.models import AuditLog, Notification
from core.mpesa_models import MpesaTransaction
from core.tests.factories import make_user, make_owner_and_store, make_product, FakeMpesaService, stk_callback
from pos import mpesa_reconciliation
from pos.checkout import record_pos_sale, void_sale


class MpesaReconciliationTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.cashier = make_user(store=self.store)
        self.product = make_product(self.store, quantity=50, selling_price='100.00')
        self.service = FakeMpesaService()
        self.today = timezone.localdate()

    def paid_sale(self, quantity=2, receipt='QK7ABC1234'):
        result = record_pos_sale(
            self.store, [{'product_id': self.product.id, 'quantity': quantity}], 'MPESA',
            cashier=self.cashier, mpesa_phone='0712345678', service=self.service,
        )
        payment = result['mpesa_transaction']
        self.client.post('/api/mpesa/stk-callback/',
                         stk_callback(payment.checkout_request_id, amount=quantity * 100, receipt=receipt),
                         content_type='application/json')
        result['sale'].refresh_from_db()
        return result['sale'], payment

    def reconcile(self):
        return mpesa_reconciliation.reconcile_mpesa(self.store, self.today, user=self.owner)

    def test_paid_sales_reconcile(self):
        self.paid_sale(2, 'QK1')
        self.paid_sale(3, 'QK2')

        log = self.reconcile()
        self.assertEqual(log.status, 'RECONCILED')
        self.assertEqual((log.matched_count, log.unmatched_count, log.flagged_count), (2, 0, 0))
        self.assertEqual(log.total_deposits, Decimal('500.00'))
        self.assertEqual(log.variance_amount, Decimal('0'))
        self.assertEqual(log.details['unconfirmed_sales'], [])

        audit = AuditLog.objects.get(resource_type='mpesa_reconciliation')
        self.assertEqual((audit.action_type, audit.actor), ('CASH_AUDIT', self.owner))
        self.assertFalse(Notification.objects.filter(notification_type='CASH_CLOSE').exists())

    def test_amount_drift_over_tolerance_is_flagged(self):
        _, far = self.paid_sale(2, 'QK1')
        _, near = self.paid_sale(3, 'QK2')
        MpesaTransaction.objects.filter(pk=far.pk).update(amount=Decimal('350'))
        MpesaTransaction.objects.filter(pk=near.pk).update(amount=Decimal('350'))

        log = self.reconcile()
        self.assertEqual(log.status, 'ISSUES_FOUND')
        self.assertEqual((log.matched_count, log.flagged_count), (2, 1))
        self.assertEqual(log.variance_amount, Decimal('200.00'))
        self.assertEqual(log.details['flagged'][0]['receipt'], 'QK1')
        self.assertEqual(log.details['flagged'][0]['variance'], '150.00')
        self.assertTrue(Notification.objects.filter(
            user=self.owner, notification_type='CASH_CLOSE', title='M-Pesa reconciliation issues',
        ).exists())

        variance = mpesa_reconciliation.reconciliation_variance(log)
        self.assertEqual(variance['variance_percentage'], 28.57)

    def test_payment_for_voided_sale_is_unmatched(self):
        sale, _ = self.paid_sale(2)
        void_sale(sale, self.owner, 'Customer returned the goods')

        log = self.reconcile()
        self.assertEqual(log.status, 'ISSUES_FOUND')
        self.assertEqual((log.matched_count, log.unmatched_count), (0, 1))
        self.assertEqual(log.unmatched_amount, Decimal('200.00'))
        self.assertEqual(log.details['unmatched'][0]['reason'], 'Sale is voided')

    def test_till_sales_are_listed_for_checking(self):
        self.paid_sale(2, 'QK1')
        till_sale = record_pos_sale(self.store, [{'product_id': self.product.id, 'quantity': 1}], 'MPESA',
                                    mpesa_receipt='QK99XYZ')['sale']

        log = self.reconcile()
        self.assertEqual(log.status, 'RECONCILED')
        self.assertEqual([row['invoice_number'] for row in log.details['unconfirmed_sales']],
                         [till_sale.invoice_number])
        self.assertEqual(mpesa_reconciliation.reconciliation_variance(log)['unreconciled_count'], 1)

    def test_period_must_run_forwards(self):
        with self.assertRaises(ValueError):
            mpesa_reconciliation.reconcile_mpesa(self.store, self.today, self.today - timedelta(days=1))

    def test_reconciliation_views(self):
        self.paid_sale(2)
        self.client.force_login(self.owner)
        result = self.client.post('/pos/mpesa-reconciliation/', {
            'start_date': self.today.isoformat(), 'end_date': self.today.isoformat(),
        }, content_type='application/json').json()
        self.assertTrue(result['success'])
        self.assertEqual(result['reconciliation']['status'], 'RECONCILED')
        self.assertEqual(result['variance']['reconciled_count'], 1)

        listing = self.client.get('/pos/mpesa-reconciliation/').json()
        self.assertEqual(len(listing['reconciliations']), 1)
        self.assertEqual(listing['average_daily_deposits'], '6.67')

    def test_staff_cannot_reconcile(self):
        self.client.force_login(self.cashier)
        self.assertEqual(self.client.get('/pos/mpesa-reconciliation/').status_code, 403)
