from decimal import Decimal

from django.test import TestCase

from core.models import AuditLog, Notification, Profile
from core.tests.factories import make_user, make_owner_and_store, make_product
from inventory import shrinkage
from inventory.models import ShrinkageDebt
from pos.checkout import record_pos_sale


class StockAuditTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.agent = make_user(store=self.store, first_name='Juma', last_name='Hassan')
        self.soda = make_product(self.store, quantity=24, selling_price='60.00', name='Coke 500ml')
        self.bread = make_product(self.store, quantity=10, selling_price='65.00', name='Bread')
        self.audit = shrinkage.create_stock_audit(self.store, self.owner)

    def test_shortage_is_flagged_with_debt_amount(self):
        item = shrinkage.add_audit_item(self.audit, self.soda, 20)
        self.assertEqual(item.variance, 4)
        self.assertEqual(item.debt_amount, Decimal('240.00'))
        self.assertEqual(item.status, 'FLAGGED')

        recount = shrinkage.add_audit_item(self.audit, self.soda, 24)
        self.assertEqual(recount.pk, item.pk)
        self.assertEqual(recount.status, 'PENDING')
        self.assertEqual(self.audit.total_debt, Decimal('0'))

    def test_recount_overwrites_stored_shortage(self):
        item = shrinkage.add_audit_item(self.audit, self.soda, 20)
        shrinkage.add_audit_item(self.audit, self.soda, 24)

        item.refresh_from_db()
        self.assertEqual((item.physical_count, item.variance), (24, 0))
        self.assertEqual(item.debt_amount, Decimal('0'))
        self.assertEqual(item.status, 'PENDING')
        with self.assertRaises(ValueError):
            shrinkage.record_shrinkage_debt(item, self.agent)
        self.assertFalse(ShrinkageDebt.objects.exists())

    def test_charged_item_cannot_be_recounted(self):
        item = shrinkage.add_audit_item(self.audit, self.soda, 20)
        shrinkage.record_shrinkage_debt(item, self.agent)
        with self.assertRaisesMessage(ValueError, 'cannot be recounted'):
            shrinkage.add_audit_item(self.audit, self.soda, 24)
        item.refresh_from_db()
        self.assertEqual(item.physical_count, 20)

    def test_count_validation(self):
        _, other_store = make_owner_and_store()
        with self.assertRaises(ValueError):
            shrinkage.add_audit_item(self.audit, make_product(other_store), 1)
        with self.assertRaises(ValueError):
            shrinkage.add_audit_item(self.audit, self.soda, -1)
        shrinkage.complete_audit(self.audit, self.owner)
        with self.assertRaises(ValueError):
            shrinkage.add_audit_item(self.audit, self.soda, 20)

    def test_complete_then_apply_corrects_stock(self):
        shrinkage.add_audit_item(self.audit, self.soda, 20)
        shrinkage.add_audit_item(self.audit, self.bread, 12)
        shrinkage.complete_audit(self.audit, self.owner)

        self.assertEqual(shrinkage.apply_audit(self.audit, self.owner), 2)
        self.soda.refresh_from_db()
        self.bread.refresh_from_db()
        self.assertEqual((self.soda.quantity, self.bread.quantity), (20, 12))
        with self.assertRaises(ValueError):
            shrinkage.apply_audit(self.audit)
        self.assertEqual(AuditLog.objects.filter(action_type='STOCK_AUDIT').count(), 2)

    def test_shortage_becomes_staff_debt(self):
        item = shrinkage.add_audit_item(self.audit, self.soda, 20)
        debt = shrinkage.record_shrinkage_debt(item, self.agent, actor=self.owner)

        self.assertEqual(debt.quantity_missing, 4)
        self.assertEqual(debt.total_debt_amount, Decimal('240.00'))
        self.assertEqual(debt.status, 'PENDING')
        self.assertEqual(Profile.objects.get(user=self.agent).total_shrinkage_debt, Decimal('240.00'))
        item.refresh_from_db()
        self.assertEqual(item.status, 'RESOLVED')
        self.assertTrue(Notification.objects.filter(user=self.owner, notification_type='SHRINKAGE').exists())

        with self.assertRaisesMessage(ValueError, 'already recorded'):
            shrinkage.record_shrinkage_debt(item, self.agent)

    def test_debt_needs_a_shortage_and_a_staff_member(self):
        overcount = shrinkage.add_audit_item(self.audit, self.bread, 12)
        with self.assertRaises(ValueError):
            shrinkage.record_shrinkage_debt(overcount, self.agent)

        short = shrinkage.add_audit_item(self.audit, self.soda, 20)
        outsider = make_user()
        with self.assertRaises(ValueError):
            shrinkage.record_shrinkage_debt(short, outsider)


class ShrinkageDebtLifecycleTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.agent = make_user(store=self.store)
        product = make_product(self.store, quantity=10, selling_price='100.00')
        audit = shrinkage.create_stock_audit(self.store, self.owner)
        item = shrinkage.add_audit_item(audit, product, 7)
        self.debt = shrinkage.record_shrinkage_debt(item, self.agent)

    def test_acknowledge_counts_once(self):
        shrinkage.update_debt_status(self.debt, 'ACKNOWLEDGED', actor=self.agent)
        shrinkage.update_debt_status(self.debt, 'ACKNOWLEDGED', actor=self.agent)
        profile = Profile.objects.get(user=self.agent)
        self.assertEqual(profile.acknowledged_shrinkage_debt, Decimal('300.00'))

    def test_dispute_withdraws_acknowledgement(self):
        shrinkage.update_debt_status(self.debt, 'ACKNOWLEDGED', actor=self.agent)
        shrinkage.update_debt_status(self.debt, 'DISPUTED', actor=self.agent)
        self.assertEqual(Profile.objects.get(user=self.agent).acknowledged_shrinkage_debt, Decimal('0'))

        shrinkage.update_debt_status(self.debt, 'ACKNOWLEDGED', actor=self.agent)
        self.assertEqual(Profile.objects.get(user=self.agent).acknowledged_shrinkage_debt, Decimal('300.00'))

    def test_resolve_closes_the_debt(self):
        shrinkage.resolve_debt(self.debt, '300', actor=self.owner)
        self.debt.refresh_from_db()
        self.assertEqual(self.debt.status, 'RESOLVED')
        self.assertEqual(self.debt.resolved_amount, Decimal('300.00'))
        with self.assertRaises(ValueError):
            shrinkage.update_debt_status(self.debt, 'DISPUTED')
        with self.assertRaises(ValueError):
            shrinkage.resolve_debt(self.debt, '300')

    def test_store_and_agent_summaries(self):
        shrinkage.update_debt_status(self.debt, 'ACKNOWLEDGED')
        product = make_product(self.store, quantity=50, selling_price='200.00')
        record_pos_sale(self.store, [{'product_id': product.id, 'quantity': 15}], 'CASH', cashier=self.agent)

        stats = shrinkage.store_shrinkage_stats(self.store)
        self.assertEqual(stats['total_shrinkage_loss'], Decimal('300.00'))
        self.assertEqual(stats['acknowledged_debts'], Decimal('300.00'))
        self.assertEqual(stats['incident_count'], 1)

        summary = shrinkage.agent_shrinkage_summary(self.store)
        self.assertEqual(len(summary), 1)
        self.assertEqual(summary[0]['acknowledged_incidents'], 1)
        self.assertEqual(summary[0]['total_sales_value'], Decimal('3000.00'))
        self.assertEqual(summary[0]['shrinkage_to_sales_ratio'], 10.0)

    def test_staff_respond_to_own_debt(self):
        self.client.force_login(self.agent)
        mine = self.client.get('/pos/my-shrinkage/').json()
        self.assertEqual(len(mine['debts']), 1)

        result = self.client.post(f'/pos/my-shrinkage/{self.debt.id}/', {'status': 'RESOLVED'},
                                  content_type='application/json').json()
        self.assertFalse(result['success'])

        result = self.client.post(f'/pos/my-shrinkage/{self.debt.id}/', {'status': 'DISPUTED', 'notes': 'I was off'},
                                  content_type='application/json').json()
        self.assertTrue(result['success'])
        self.assertEqual(ShrinkageDebt.objects.get().status, 'DISPUTED')
