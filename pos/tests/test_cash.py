from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from core.models import AuditLog, Notification
from core.tests.factories import make_user, make_owner_and_store, make_product
from pos import cash, checkout
from pos.models import CashAudit


class BlindCloseTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.staff = make_user(store=self.store, first_name='Otieno')
        product = make_product(self.store, quantity=100, selling_price='250.00')
        line = [{'product_id': product.id, 'quantity': 2}]
        checkout.record_pos_sale(self.store, line, 'CASH')
        checkout.record_pos_sale(self.store, line, 'CASH')
        checkout.record_pos_sale(self.store, line, 'MPESA', mpesa_receipt='QK1')
        checkout.record_pos_sale(self.store, line, 'MADENI', customer_name='Wafula', customer_phone='0733000444')

    def test_expected_cash_counts_only_cash_sales(self):
        self.assertEqual(cash.expected_cash(self.store, timezone.localdate()), Decimal('1000.00'))

    def test_shortage_is_flagged_to_owner(self):
        close = cash.submit_blind_close(self.store, self.staff, '900')
        self.assertEqual(close.discrepancy_type, 'SHORTAGE')
        self.assertEqual(close.discrepancy_amount, Decimal('100.00'))
        self.assertEqual(close.expected_cash, Decimal('1000.00'))
        self.assertTrue(AuditLog.objects.filter(action_type='CASH_CLOSE', actor=self.staff).exists())
        self.assertTrue(Notification.objects.filter(user=self.owner, notification_type='CASH_CLOSE').exists())

    def test_balanced_close_raises_no_alarm(self):
        close = cash.submit_blind_close(self.store, self.staff, '1000')
        self.assertEqual(close.discrepancy_type, 'BALANCED')
        self.assertFalse(AuditLog.objects.filter(action_type='CASH_CLOSE').exists())
        self.assertFalse(Notification.objects.filter(notification_type='CASH_CLOSE').exists())

    def test_one_close_per_day(self):
        cash.submit_blind_close(self.store, self.staff, '1200')
        with self.assertRaisesMessage(ValueError, 'already been closed'):
            cash.submit_blind_close(self.store, self.staff, '1000')

    def test_staff_never_see_expected_cash(self):
        close = cash.submit_blind_close(self.store, self.staff, '1200')
        result = cash.staff_close_result(close)
        self.assertEqual(result['discrepancy_type'], 'OVERAGE')
        self.assertEqual(result['discrepancy_amount'], 200.0)
        self.assertNotIn('expected_cash', result)

    def test_blind_close_views(self):
        self.client.force_login(self.staff)
        summary = self.client.get('/pos/blind-close/').json()
        self.assertNotIn('expected_cash', summary)
        self.assertEqual(summary['non_cash_totals'], {'MPESA': 500.0, 'MADENI': 500.0})

        result = self.client.post('/pos/blind-close/', {'counted_cash': '950'},
                                  content_type='application/json').json()
        self.assertTrue(result['success'])
        self.assertNotIn('expected_cash', result['close'])
        self.assertTrue(self.client.get('/pos/blind-close/').json()['already_closed'])

    def test_owner_verifies_once(self):
        close = cash.submit_blind_close(self.store, self.staff, '900')
        cash.verify_blind_close(close, self.owner, 'Paid transport from till')
        self.assertTrue(close.verified_by_owner)
        self.assertTrue(AuditLog.objects.filter(action_type='CASH_CLOSE_VERIFIED').exists())
        with self.assertRaises(ValueError):
            cash.verify_blind_close(close, self.owner)


class CashAuditTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()

    def audit(self, expected, actual, days_ago=0):
        return cash.record_cash_audit(
            self.store, timezone.localdate() - timedelta(days=days_ago), 0, expected, actual,
            reconciled_by=self.owner,
        )

    def test_small_variance_is_not_suspect(self):
        audit = self.audit('10000', '9600')
        self.assertEqual(audit.variance_amount, Decimal('-400.00'))
        self.assertEqual(audit.variance_percentage, Decimal('-4.00'))
        self.assertEqual(audit.fraud_category, 'SHORTAGE')
        self.assertEqual(audit.severity, 'LOW')
        self.assertFalse(audit.is_fraud_suspect)

    def test_severity_bands(self):
        self.assertEqual(self.audit('10000', '9400').severity, 'LOW')
        self.assertEqual(self.audit('10000', '8800').severity, 'MEDIUM')
        high = self.audit('10000', '11600')
        self.assertEqual(high.severity, 'HIGH')
        self.assertEqual(high.fraud_category, 'OVERAGE')
        self.assertTrue(high.is_fraud_suspect)
        self.assertTrue(Notification.objects.filter(title='Cash variance alert').exists())

    def test_zero_expected_has_zero_percent(self):
        audit = self.audit('0', '50')
        self.assertEqual(audit.variance_percentage, Decimal('0'))
        self.assertFalse(audit.is_fraud_suspect)

    def test_tiny_expected_caps_percentage(self):
        audit = self.audit('0.01', '50000')
        audit.refresh_from_db()
        self.assertEqual(audit.variance_percentage, Decimal('999999.99'))
        self.assertEqual(audit.severity, 'HIGH')
        self.assertEqual(self.audit('0.01', '0').variance_percentage, Decimal('-100.00'))

    def test_fraud_pattern_risk_levels(self):
        self.assertEqual(cash.cash_fraud_pattern(self.store)['risk_level'], 'LOW_RISK')
        for day in range(5):
            self.audit('1000', '800', days_ago=day)
        self.assertEqual(cash.cash_fraud_pattern(self.store)['risk_level'], 'MEDIUM_RISK')
        for day in range(5, 10):
            self.audit('1000', '800', days_ago=day)
        pattern = cash.cash_fraud_pattern(self.store)
        self.assertEqual(pattern['risk_level'], 'HIGH_RISK')
        self.assertEqual(pattern['suspect_count'], 10)
        self.assertEqual(pattern['avg_variance'], -20.0)

    def test_old_audits_fall_out_of_window(self):
        for day in range(40, 50):
            self.audit('1000', '500', days_ago=day)
        self.assertEqual(cash.cash_fraud_pattern(self.store)['risk_level'], 'LOW_RISK')
        self.assertEqual(CashAudit.objects.count(), 10)
