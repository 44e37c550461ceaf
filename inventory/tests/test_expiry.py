from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from core.models import StockTransaction
from core.tests.factories import make_user, make_owner_and_store, make_product
from inventory import expiry
from inventory.breaking_bulk import receive_batch
from inventory.models import ExpiryDiscountRule


class ExpiryGradingTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()

    def test_default_ladder_is_created_once(self):
        rules = expiry.discount_rules(self.store)
        self.assertEqual([(r.days_before_expiry, r.discount_percentage) for r in rules],
                         [(7, Decimal('80.00')), (14, Decimal('40.00')), (45, Decimal('20.00'))])
        expiry.discount_rules(self.store)
        self.assertEqual(ExpiryDiscountRule.objects.filter(store=self.store).count(), 3)

    def test_status_grades(self):
        grades = {-1: 'EXPIRED', 0: 'CRITICAL', 3: 'CRITICAL', 4: 'URGENT', 7: 'URGENT',
                  8: 'CAUTION', 45: 'CAUTION', 46: 'OK', None: 'OK'}
        for days, grade in grades.items():
            self.assertEqual(expiry.expiry_status(days), grade, days)

    def test_tightest_rule_wins(self):
        rules = expiry.discount_rules(self.store)
        self.assertEqual(expiry.suggested_discount(rules, 2), Decimal('80.00'))
        self.assertEqual(expiry.suggested_discount(rules, 10), Decimal('40.00'))
        self.assertEqual(expiry.suggested_discount(rules, 30), Decimal('20.00'))
        self.assertEqual(expiry.suggested_discount(rules, 60), Decimal('0'))
        self.assertEqual(expiry.suggested_discount(rules, -1), Decimal('0'))

    def test_store_can_change_a_step(self):
        expiry.set_discount_rule(self.store, 14, '50', auto_apply=True)
        rules = expiry.discount_rules(self.store)
        self.assertEqual(len(rules), 3)
        self.assertEqual(expiry.suggested_discount(rules, 10), Decimal('50.00'))
        self.assertTrue(ExpiryDiscountRule.objects.get(store=self.store, days_before_expiry=14).auto_apply)

        expiry.set_discount_rule(self.store, 7, '80', is_active=False)
        self.assertEqual(expiry.suggested_discount(expiry.discount_rules(self.store), 2), Decimal('50.00'))

        for days, discount in ((14, '0'), (14, '120'), (-3, '10'), ('soon', '10')):
            with self.assertRaises(ValueError):
                expiry.set_discount_rule(self.store, days, discount)


class ExpiryClearanceTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store(business_type='CHEMIST')
        self.clerk = make_user(store=self.store)
        self.syrup = make_product(self.store, quantity=0, selling_price='200.00', cost_price='120.00',
                                  name='Cough syrup 100ml')
        today = timezone.localdate()
        self.expired = receive_batch(self.syrup, 2, expiry_date=today - timedelta(days=1), batch_number='CS-OLD')
        self.soon = receive_batch(self.syrup, 5, expiry_date=today + timedelta(days=2), batch_number='CS-02')
        self.month = receive_batch(self.syrup, 4, expiry_date=today + timedelta(days=30), batch_number='CS-30')
        self.far = receive_batch(self.syrup, 10, expiry_date=today + timedelta(days=90), batch_number='CS-90')

    def test_report_lists_batches_at_risk(self):
        rows = expiry.expiry_report(self.store)
        self.assertEqual([row['batch_number'] for row in rows], ['CS-OLD', 'CS-02', 'CS-30'])
        self.assertEqual([row['status'] for row in rows], ['EXPIRED', 'CRITICAL', 'CAUTION'])
        self.assertEqual(rows[1]['clearance_price'], Decimal('40.00'))
        self.assertEqual(rows[2]['clearance_price'], Decimal('160.00'))
        self.assertEqual(len(expiry.expiry_report(self.store, include_ok=True)), 4)

    def test_loss_impact(self):
        impact = expiry.expiry_loss_impact(self.store)
        self.assertEqual(impact['items_at_risk'], 3)
        self.assertEqual(impact['total_potential_loss'], Decimal('1320.00'))
        self.assertEqual(impact['average_loss_per_item'], Decimal('440.00'))
        self.assertEqual(impact['by_status'], {'EXPIRED': 1, 'CRITICAL': 1, 'CAUTION': 1})

    def test_discounted_sale_takes_the_rule_price(self):
        clearance = expiry.record_clearance(self.soon, 3, 'DISCOUNTED_SALE', user=self.clerk)

        self.assertEqual(clearance.clearance_price, Decimal('40.00'))
        self.assertEqual(clearance.discount_percentage, Decimal('80.00'))
        self.assertEqual(clearance.recovered_value, Decimal('120.00'))
        self.assertEqual(clearance.loss, Decimal('480.00'))
        self.soon.refresh_from_db()
        self.syrup.refresh_from_db()
        self.assertEqual(self.soon.quantity, 2)
        self.assertEqual(self.syrup.quantity, 18)
        movement = StockTransaction.objects.get(product=self.syrup, transaction_type='SALE')
        self.assertEqual((movement.transaction_type, movement.quantity, movement.reference), ('SALE', -3, 'CS-02'))

    def test_donating_the_rest_closes_the_batch(self):
        clearance = expiry.record_clearance(self.expired, 2, 'DONATION', notes='Children\'s home, Kibra')
        self.assertEqual(clearance.clearance_price, Decimal('0'))
        self.assertEqual(clearance.discount_percentage, Decimal('100.00'))
        self.expired.refresh_from_db()
        self.assertEqual((self.expired.quantity, self.expired.status), (0, 'DISPOSED'))
        with self.assertRaisesMessage(ValueError, 'already disposed'):
            expiry.record_clearance(self.expired, 1, 'DISPOSED')

    def test_clearance_validation(self):
        with self.assertRaisesMessage(ValueError, 'cannot be sold'):
            expiry.record_clearance(self.expired, 1, 'DISCOUNTED_SALE')
        with self.assertRaisesMessage(ValueError, 'only has 5 units'):
            expiry.record_clearance(self.soon, 6, 'DISPOSED')
        with self.assertRaisesMessage(ValueError, 'between 0 and the selling price'):
            expiry.record_clearance(self.soon, 1, 'DISCOUNTED_SALE', clearance_price='250')
        with self.assertRaises(ValueError):
            expiry.record_clearance(self.soon, 1, 'RETURNED')
        with self.assertRaises(ValueError):
            expiry.record_clearance(self.soon, 0, 'DISPOSED')

    def test_clearance_stats(self):
        expiry.record_clearance(self.soon, 5, 'DISCOUNTED_SALE', clearance_price='100')
        expiry.record_clearance(self.expired, 2, 'DISPOSED')

        stats = expiry.clearance_stats(self.store)
        self.assertEqual(stats['clearance_count'], 2)
        self.assertEqual(stats['quantity_cleared'], 7)
        self.assertEqual(stats['original_value'], Decimal('1400.00'))
        self.assertEqual(stats['recovered_value'], Decimal('500.00'))
        self.assertEqual(stats['loss'], Decimal('900.00'))
        self.assertEqual(stats['average_discount'], Decimal('75.00'))
        self.assertEqual(stats['recovery_rate'], 35.71)
        self.assertEqual(stats['by_type'], {'DISCOUNTED_SALE': 1, 'DISPOSED': 1})

    def test_expiry_views(self):
        self.client.force_login(self.owner)
        report = self.client.get('/inventory/expiry/').json()
        self.assertTrue(report['success'])
        self.assertEqual(report['impact']['items_at_risk'], 3)

        result = self.client.post(f'/inventory/batches/{self.soon.id}/clear/', {
            'quantity': 2, 'clearance_type': 'DISCOUNTED_SALE',
        }, content_type='application/json').json()
        self.assertTrue(result['success'])
        self.assertEqual(result['clearance']['clearance_price'], '40.00')

        rules = self.client.post('/inventory/expiry/rules/', {
            'days_before_expiry': 3, 'discount_percentage': '90',
        }, content_type='application/json').json()
        self.assertTrue(rules['success'])
        self.assertEqual(len(self.client.get('/inventory/expiry/rules/').json()['rules']), 4)

        listing = self.client.get('/inventory/expiry/clearances/').json()
        self.assertEqual(listing['stats']['clearance_count'], 1)

    def test_staff_cannot_clear_batches(self):
        self.client.force_login(self.clerk)
        response = self.client.post(f'/inventory/batches/{self.soon.id}/clear/', {
            'quantity': 1, 'clearance_type': 'DISPOSED',
        }, content_type='application/json')
        self.assertEqual(response.status_code, 403)
