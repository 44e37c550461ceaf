from decimal import Decimal
from urllib.parse import unquote

from django.test import TestCase

from core.models import AuditLog
from core.tests.factories import make_user, make_owner_and_store
from debtors import services
from debtors.models import Debtor, DebtPayment


class AddDebtTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()

    def test_first_credit_creates_debtor(self):
        debtor = services.add_debt(self.store, 'Mama Njeri', '0722 111 333', '450')
        self.assertEqual(debtor.customer_phone, '254722111333')
        self.assertEqual(debtor.total_debt, Decimal('450.00'))
        self.assertEqual(debtor.status, 'ACTIVE')
        self.assertTrue(AuditLog.objects.filter(action_type='DEBTOR_CREATED', resource_id=str(debtor.id)).exists())

    def test_same_phone_in_any_format_accumulates(self):
        services.add_debt(self.store, 'Mama Njeri', '0722111333', '450')
        debtor = services.add_debt(self.store, 'Mama Njeri', '+254722111333', '50')
        self.assertEqual(Debtor.objects.count(), 1)
        self.assertEqual(debtor.total_debt, Decimal('500.00'))
        self.assertTrue(AuditLog.objects.filter(action_type='DEBT_UPDATED').exists())

    def test_debtors_are_per_store(self):
        _, other = make_owner_and_store()
        services.add_debt(self.store, 'Baraka', '0700000001', '100')
        services.add_debt(other, 'Baraka', '0700000001', '100')
        self.assertEqual(Debtor.objects.count(), 2)

    def test_rejects_bad_input(self):
        with self.assertRaises(ValueError):
            services.add_debt(self.store, 'Baraka', '0700000001', '0')
        with self.assertRaises(ValueError):
            services.add_debt(self.store, 'Baraka', '99', '100')


class PaymentTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.debtor = services.add_debt(self.store, 'Chebet', '0711222333', '1000')

    def test_partial_then_full_payment(self):
        payment = services.record_payment(self.debtor, '400', actor=self.owner, method='MPESA')
        self.assertEqual(payment.balance_after, Decimal('600.00'))
        self.debtor.refresh_from_db()
        self.assertEqual(self.debtor.status, 'PARTIAL')
        self.assertEqual(self.debtor.amount_paid, Decimal('400.00'))

        services.record_payment(self.debtor, '600')
        self.debtor.refresh_from_db()
        self.assertEqual(self.debtor.status, 'SETTLED')
        self.assertTrue(self.debtor.is_settled)
        self.assertEqual(DebtPayment.objects.filter(debtor=self.debtor).count(), 2)

    def test_payment_cannot_exceed_debt(self):
        with self.assertRaisesMessage(ValueError, 'exceeds the outstanding debt'):
            services.record_payment(self.debtor, '1000.01')
        with self.assertRaises(ValueError):
            services.record_payment(self.debtor, '-5')
        with self.assertRaises(ValueError):
            services.record_payment(self.debtor, '100', method='CHEQUE')
        self.assertFalse(DebtPayment.objects.exists())


class ForgiveTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.debtor = services.add_debt(self.store, 'Kiprop', '0799888777', '300')

    def test_staff_cannot_forgive(self):
        staff = make_user(store=self.store)
        with self.assertRaises(ValueError):
            services.forgive_debt(self.debtor, staff, 'Friend of the family')

    def test_owner_forgives_with_reason(self):
        with self.assertRaises(ValueError):
            services.forgive_debt(self.debtor, self.owner, '')

        debtor = services.forgive_debt(self.debtor, self.owner, 'Customer passed away')
        self.assertEqual(debtor.total_debt, Decimal('0'))
        self.assertEqual(debtor.status, 'SETTLED')
        entry = AuditLog.objects.get(action_type='DEBT_FORGIVEN')
        self.assertEqual(entry.metadata, {'reason': 'Customer passed away'})

        with self.assertRaises(ValueError):
            services.forgive_debt(debtor, self.owner, 'Again')


class ReminderAndStatsTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()

    def test_whatsapp_link(self):
        debtor = services.add_debt(self.store, 'Akinyi', '0711000999', '1250')
        url = services.whatsapp_reminder_link(debtor, actor=self.owner)
        self.assertTrue(url.startswith('https://wa.me/254711000999?text='))
        self.assertIn('KES 1,250.00', unquote(url))
        self.assertTrue(AuditLog.objects.filter(action_type='REMINDER_SENT').exists())

    def test_history_lists_debtor_entries(self):
        debtor = services.add_debt(self.store, 'Akinyi', '0711000999', '200')
        services.record_payment(debtor, '50')
        actions = [entry.action_type for entry in services.debtor_history(debtor)]
        self.assertEqual(sorted(actions), ['DEBTOR_CREATED', 'DEBT_PAYMENT'])

    def test_dashboard_stats(self):
        services.add_debt(self.store, 'A', '0711000001', '500')
        b = services.add_debt(self.store, 'B', '0711000002', '300')
        c = services.add_debt(self.store, 'C', '0711000003', '100')
        services.record_payment(b, '100')
        services.record_payment(c, '100')

        stats = services.debtor_dashboard_stats(self.store)
        self.assertEqual(stats['total_outstanding'], 700.0)
        self.assertEqual(stats['total_collected'], 200.0)
        self.assertEqual(stats['debtor_count'], 2)
        self.assertEqual((stats['active_count'], stats['partial_count'], stats['settled_count']), (1, 1, 1))
        self.assertEqual(stats['largest_debtors'][0]['customer_name'], 'A')


class DebtorViewTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.debtor = services.add_debt(self.store, 'Mutua', '0722333444', '800')

    def test_staff_record_payment_but_cannot_forgive(self):
        self.client.force_login(make_user(store=self.store))
        result = self.client.post(f'/debtors/{self.debtor.id}/pay/', {'amount': '300'},
                                  content_type='application/json').json()
        self.assertTrue(result['success'])
        self.assertEqual(result['debtor']['status'], 'PARTIAL')

        response = self.client.post(f'/debtors/{self.debtor.id}/forgive/', {'reason': 'x'},
                                    content_type='application/json')
        self.assertEqual(response.status_code, 403)

    def test_reminder_view(self):
        self.client.force_login(self.owner)
        result = self.client.post(f'/debtors/{self.debtor.id}/remind/').json()
        self.assertTrue(result['success'])
        self.assertIn('wa.me/254722333444', result['whatsapp_url'])

    def test_owner_pin_lets_cashier_forgive(self):
        self.store.set_owner_pin('4321')
        self.store.save()
        cashier = make_user(store=self.store)
        self.client.force_login(cashier)
        self.client.post('/store/enter/', {'access_code': self.store.access_code, 'owner_pin': '4321'},
                         content_type='application/json')

        result = self.client.post(f'/debtors/{self.debtor.id}/forgive/', {'reason': 'Bereavement'},
                                  content_type='application/json').json()
        self.assertTrue(result['success'])
        self.assertEqual(result['debtor']['status'], 'SETTLED')
        entry = AuditLog.objects.get(action_type='DEBT_FORGIVEN')
        self.assertEqual((entry.actor, entry.actor_role), (cashier, 'STORE_OWNER'))
