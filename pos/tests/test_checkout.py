from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from core.models import Sale, StockTransaction, AuditLog
from core.mpesa_models import MpesaTransaction
from core.tests.factories import make_user, make_owner_and_store, make_product, FakeMpesaService
from debtors.models import Debtor
from inventory.breaking_bulk import receive_batch
from pos import checkout


class RecordSaleTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.cashier = make_user(store=self.store)
        self.bread = make_product(self.store, quantity=10, selling_price='65.00', cost_price='50.00', name='Bread')
        self.sugar = make_product(self.store, quantity=4, selling_price='180.00', cost_price='150.00', name='Sugar 1kg')

    def cart(self, *lines):
        return [{'product_id': product.id, 'quantity': quantity} for product, quantity in lines]

    def test_cash_sale_deducts_stock_and_gives_change(self):
        result = checkout.record_pos_sale(
            self.store, self.cart((self.bread, 2), (self.sugar, 1)), 'CASH',
            cashier=self.cashier, amount_tendered='400',
        )
        sale = result['sale']
        self.assertEqual(sale.status, 'COMPLETED')
        self.assertEqual(sale.payment_status, 'PAID')
        self.assertEqual(sale.total, Decimal('310.00'))
        self.assertEqual(sale.change_due, Decimal('90.00'))
        self.assertEqual(result['receipt']['payment_method'], 'CASH')
        self.assertEqual(len(result['receipt']['items']), 2)

        self.bread.refresh_from_db()
        self.assertEqual(self.bread.quantity, 8)
        movement = StockTransaction.objects.get(product=self.bread)
        self.assertEqual(movement.transaction_type, 'SALE')
        self.assertEqual(movement.quantity, -2)
        self.assertEqual(movement.reference, sale.invoice_number)

    def test_store_tax_is_added(self):
        self.store.tax_rate = Decimal('16')
        self.store.save()
        sale = checkout.record_pos_sale(self.store, self.cart((self.sugar, 1)), 'CARD')['sale']
        self.assertEqual(sale.tax_amount, Decimal('28.80'))
        self.assertEqual(sale.total, Decimal('208.80'))

    def test_cash_short_of_total_is_refused(self):
        with self.assertRaises(ValueError):
            checkout.record_pos_sale(self.store, self.cart((self.sugar, 1)), 'CASH', amount_tendered='100')
        self.assertFalse(Sale.objects.exists())

    def test_insufficient_stock_rolls_back(self):
        with self.assertRaisesMessage(ValueError, 'Insufficient stock for Sugar 1kg'):
            checkout.record_pos_sale(self.store, self.cart((self.bread, 1), (self.sugar, 5)), 'CASH')
        self.bread.refresh_from_db()
        self.assertEqual(self.bread.quantity, 10)
        self.assertFalse(Sale.objects.exists())

    def test_empty_cart(self):
        with self.assertRaisesMessage(ValueError, 'Cannot record sale with empty cart'):
            checkout.record_pos_sale(self.store, [], 'CASH')

    def test_madeni_requires_customer(self):
        with self.assertRaises(ValueError):
            checkout.record_pos_sale(self.store, self.cart((self.bread, 1)), 'MADENI', customer_name='Kamau')
        with self.assertRaises(ValueError):
            checkout.record_pos_sale(self.store, self.cart((self.bread, 1)), 'MADENI',
                                     customer_name='Kamau', customer_phone='12345')

    def test_madeni_sale_goes_on_the_tab(self):
        for _ in range(2):
            checkout.record_pos_sale(
                self.store, self.cart((self.bread, 1)), 'MADENI',
                customer_name='Kamau', customer_phone='0722000111',
            )
        debtor = Debtor.objects.get(store=self.store)
        self.assertEqual(debtor.customer_phone, '254722000111')
        self.assertEqual(debtor.total_debt, Decimal('130.00'))
        self.assertEqual(Sale.objects.filter(payment_status='PENDING', status='COMPLETED').count(), 2)

    def test_madeni_audit_names_the_cashier(self):
        checkout.record_pos_sale(
            self.store, self.cart((self.bread, 2)), 'MADENI', cashier=self.cashier,
            customer_name='Wanjiru', customer_phone='0722 111 333',
        )
        debtor = Debtor.objects.get(store=self.store)
        self.assertEqual(debtor.customer_phone, '254722111333')
        entry = AuditLog.objects.get(action_type='DEBTOR_CREATED')
        self.assertEqual(entry.actor, self.cashier)
        self.assertEqual(entry.actor_role, 'STAFF')

    def test_mpesa_till_payment_completes_immediately(self):
        sale = checkout.record_pos_sale(
            self.store, self.cart((self.bread, 1)), 'MPESA', mpesa_receipt='QK99XYZ',
        )['sale']
        self.assertEqual(sale.status, 'COMPLETED')
        self.assertEqual(sale.mpesa_receipt, 'QK99XYZ')

    def test_stk_push_leaves_sale_pending(self):
        service = FakeMpesaService()
        result = checkout.record_pos_sale(
            self.store, self.cart((self.bread, 2)), 'MPESA',
            cashier=self.cashier, mpesa_phone='0712345678', service=service,
        )
        sale = result['sale']
        self.assertEqual(sale.status, 'PENDING')
        self.assertEqual(service.pushes[0]['amount'], Decimal('130.00'))
        self.assertEqual(service.pushes[0]['account_reference'], sale.invoice_number)
        self.assertEqual(sale.mpesa_checkout_id, 'ws_CO_TEST0001')
        self.assertEqual(result['mpesa_transaction'].sale, sale)

    def test_failed_stk_push_cancels_sale(self):
        with self.assertRaisesMessage(ValueError, 'M-Pesa payment failed'):
            checkout.record_pos_sale(
                self.store, self.cart((self.bread, 2)), 'MPESA',
                mpesa_phone='0712345678', service=FakeMpesaService(success=False),
            )
        sale = Sale.objects.get()
        self.assertEqual(sale.status, 'CANCELLED')
        self.assertEqual(MpesaTransaction.objects.get().status, 'FAILED')
        self.bread.refresh_from_db()
        self.assertEqual(self.bread.quantity, 10)

    def test_stk_push_exception_cancels_sale(self):
        service = mock.Mock()
        service.stk_push.side_effect = RuntimeError('Daraja unreachable')
        with self.assertRaisesMessage(ValueError, 'Daraja unreachable'):
            checkout.record_pos_sale(self.store, self.cart((self.bread, 1)), 'MPESA',
                                     mpesa_phone='0712345678', service=service)
        self.assertEqual(Sale.objects.get().status, 'CANCELLED')

    def test_sale_consumes_earliest_expiring_batch(self):
        today = timezone.localdate()
        late = receive_batch(self.bread, 5, expiry_date=today + timedelta(days=20), batch_number='LATE')
        early = receive_batch(self.bread, 5, expiry_date=today + timedelta(days=3), batch_number='EARLY')

        sale = checkout.record_pos_sale(self.store, self.cart((self.bread, 7)), 'CASH')['sale']
        allocations = sale.items.get().batch_allocations
        self.assertEqual([a['batch_number'] for a in allocations], ['EARLY', 'LATE'])
        self.assertEqual([a['quantity'] for a in allocations], [5, 2])
        early.refresh_from_db()
        late.refresh_from_db()
        self.assertEqual((early.quantity, late.quantity), (0, 3))


class VoidSaleTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.product = make_product(self.store, quantity=10, selling_price='100.00')

    def sell(self, method='CASH', **extra):
        return checkout.record_pos_sale(
            self.store, [{'product_id': self.product.id, 'quantity': 3}], method, **extra
        )['sale']

    def test_void_restores_stock_and_audits(self):
        sale = self.sell()
        checkout.void_sale(sale, self.owner, 'Customer changed mind')

        sale.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(sale.status, 'VOIDED')
        self.assertEqual(sale.voided_by, self.owner)
        self.assertEqual(self.product.quantity, 10)
        entry = AuditLog.objects.get(action_type='SALE_VOIDED')
        self.assertEqual(entry.old_value, {'status': 'COMPLETED'})

    def test_void_needs_reason_and_only_once(self):
        sale = self.sell()
        with self.assertRaises(ValueError):
            checkout.void_sale(sale, self.owner, '  ')
        checkout.void_sale(sale, self.owner, 'Wrong item')
        with self.assertRaises(ValueError):
            checkout.void_sale(sale, self.owner, 'Again')

    def test_void_credit_sale_reduces_debt(self):
        sale = self.sell('MADENI', customer_name='Njeri', customer_phone='0711000222')
        self.assertEqual(Debtor.objects.get().total_debt, Decimal('300.00'))

        checkout.void_sale(sale, self.owner, 'Returned goods')
        debtor = Debtor.objects.get()
        self.assertEqual(debtor.total_debt, Decimal('0.00'))
        self.assertEqual(debtor.status, 'SETTLED')

    def test_void_view_is_for_managers(self):
        sale = self.sell()
        staff = make_user(store=self.store)
        self.client.force_login(staff)
        response = self.client.post(f'/pos/sales/{sale.id}/void/', {'reason': 'x'},
                                    content_type='application/json')
        self.assertEqual(response.status_code, 403)


class ReconciliationTests(TestCase):
    def test_totals_per_payment_method(self):
        _, store = make_owner_and_store()
        product = make_product(store, quantity=50, selling_price='50.00')
        line = [{'product_id': product.id, 'quantity': 2}]
        checkout.record_pos_sale(store, line, 'CASH')
        checkout.record_pos_sale(store, line, 'CASH')
        checkout.record_pos_sale(store, line, 'MPESA', mpesa_receipt='QK1')
        voided = checkout.record_pos_sale(store, line, 'CARD')['sale']
        checkout.void_sale(voided, make_user(role='ADMIN', store=store), 'Test')

        report = checkout.daily_reconciliation(store, timezone.localdate())
        by_method = {row['payment_method']: row for row in report['methods']}
        self.assertEqual(by_method['CASH']['total'], 200.0)
        self.assertEqual(by_method['CASH']['count'], 2)
        self.assertEqual(by_method['MPESA']['total'], 100.0)
        self.assertEqual(by_method['CARD']['count'], 0)
        self.assertEqual(report['total'], 300.0)
        self.assertEqual(report['voided'], 1)
