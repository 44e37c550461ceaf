from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from core.models import Notification, Supplier, StockTransaction
from core.tests.factories import make_user, make_owner_and_store, make_product
from inventory import suppliers
from inventory.models import InventoryBatch, SupplierFraudFlag


def make_supplier(store, name='Bidco Africa'):
    return Supplier.objects.create(store=store, name=name, contact_person='Wanjiru', phone='0722555666')


class SupplierInvoiceTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.bidco = make_supplier(self.store)
        self.today = timezone.localdate()

    def invoice(self, number, subtotal='1000', supplier=None, due_in=14, **extra):
        return suppliers.create_invoice(
            self.store, supplier or self.bidco, number,
            self.today, self.today + timedelta(days=due_in), subtotal, **extra
        )

    def test_total_includes_tax(self):
        invoice = self.invoice('INV-001', '1000', tax_amount='160')
        self.assertEqual(invoice.total_amount, Decimal('1160.00'))
        self.assertEqual(invoice.status, 'PENDING')
        self.assertFalse(invoice.is_due_soon)

    def test_invoice_validation(self):
        self.invoice('INV-001')
        with self.assertRaisesMessage(ValueError, 'already recorded'):
            self.invoice('INV-001')
        with self.assertRaises(ValueError):
            self.invoice('INV-002', due_in=-1)
        with self.assertRaises(ValueError):
            self.invoice('INV-003', '-10')
        with self.assertRaises(ValueError):
            self.invoice('  ')
        _, other_store = make_owner_and_store()
        with self.assertRaises(ValueError):
            self.invoice('INV-004', supplier=make_supplier(other_store))

    def test_status_transitions(self):
        invoice = self.invoice('INV-001')
        suppliers.dispute_invoice(invoice, 'Short by two cartons')
        self.assertEqual(invoice.status, 'DISPUTED')
        self.assertIn('Short by two cartons', invoice.notes)

        suppliers.verify_invoice(invoice)
        suppliers.mark_invoice_paid(invoice)
        self.assertEqual(invoice.payment_date, self.today)
        with self.assertRaises(ValueError):
            suppliers.dispute_invoice(invoice, 'Too late')
        with self.assertRaises(ValueError):
            suppliers.mark_invoice_paid(invoice)
        with self.assertRaises(ValueError):
            suppliers.verify_invoice(invoice)

    def test_verify_keeps_invoice_owed(self):
        invoice = self.invoice('INV-010', '2500')
        suppliers.verify_invoice(invoice)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, 'VERIFIED')
        self.assertEqual(suppliers.total_owed(self.store), Decimal('2500.00'))
        with self.assertRaisesMessage(ValueError, 'Cannot verify a verified invoice'):
            suppliers.verify_invoice(invoice)

    def test_dispute_needs_a_note(self):
        with self.assertRaises(ValueError):
            suppliers.dispute_invoice(self.invoice('INV-001'), '')

    def test_amounts_owed(self):
        kapa = make_supplier(self.store, 'Kapa Oil')
        self.invoice('B-1', '3000')
        paid = self.invoice('B-2', '500')
        suppliers.mark_invoice_paid(paid)
        overdue = suppliers.create_invoice(
            self.store, kapa, 'K-1', self.today - timedelta(days=30), self.today - timedelta(days=2), '1200'
        )

        self.assertEqual(suppliers.total_owed(self.store), Decimal('4200.00'))
        self.assertEqual(suppliers.total_owed(self.store, kapa), Decimal('1200.00'))
        self.assertTrue(overdue.is_overdue)

        rows = suppliers.owed_by_supplier(self.store)
        self.assertEqual([row['supplier'] for row in rows], ['Bidco Africa', 'Kapa Oil'])
        self.assertEqual(rows[1]['overdue'], 1)
        self.assertEqual(rows[0]['invoices'], 1)

    def test_invoice_views(self):
        self.client.force_login(self.owner)
        result = self.client.post('/inventory/invoices/', {
            'supplier_id': self.bidco.id,
            'invoice_number': 'INV-900',
            'invoice_date': self.today.isoformat(),
            'due_date': (self.today + timedelta(days=30)).isoformat(),
            'subtotal': '2500',
        }, content_type='application/json').json()
        self.assertTrue(result['success'])

        invoice_id = result['invoice']['id']
        result = self.client.post(f'/inventory/invoices/{invoice_id}/pay/', {}, content_type='application/json').json()
        self.assertTrue(result['success'])
        listing = self.client.get('/inventory/invoices/').json()
        self.assertEqual(listing['total_owed'], 0.0)

    def test_staff_cannot_see_invoices(self):
        self.client.force_login(make_user(store=self.store))
        self.assertEqual(self.client.get('/inventory/invoices/').status_code, 403)


class PurchaseOrderTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store(business_type='CHEMIST')
        self.supplier = make_supplier(self.store, 'Dawa Distributors')
        self.panadol = make_product(self.store, quantity=2, cost_price='80.00', name='Panadol 24s')
        self.gloves = make_product(self.store, quantity=0, cost_price='300.00', name='Gloves box')
        self.expiry = timezone.localdate() + timedelta(days=365)

    def order(self):
        return suppliers.create_purchase_order(self.store, self.supplier, [
            {'product': self.panadol, 'quantity': 10, 'unit_cost': '85.00',
             'expiry_date': self.expiry, 'batch_number': 'PN2291'},
            {'product': self.gloves, 'quantity': 4, 'unit_cost': '300.00'},
        ], user=self.owner)

    def test_order_total(self):
        order = self.order()
        self.assertEqual(order.status, 'DRAFT')
        self.assertEqual(order.total_amount, Decimal('2050.00'))
        self.assertTrue(order.po_number.startswith('PO-'))

    def test_order_validation(self):
        with self.assertRaises(ValueError):
            suppliers.create_purchase_order(self.store, self.supplier, [])
        with self.assertRaises(ValueError):
            suppliers.create_purchase_order(self.store, self.supplier, [{'product': self.gloves, 'quantity': 0}])

    def test_lifecycle(self):
        order = self.order()
        with self.assertRaises(ValueError):
            suppliers.receive_purchase_order(order)
        with self.assertRaises(ValueError):
            suppliers.approve_purchase_order(order)
        suppliers.submit_purchase_order(order)
        suppliers.approve_purchase_order(order)
        suppliers.cancel_purchase_order(order)
        with self.assertRaises(ValueError):
            suppliers.submit_purchase_order(order)

    def test_receive_books_stock_and_batches(self):
        order = self.order()
        suppliers.submit_purchase_order(order)
        suppliers.receive_purchase_order(order, user=self.owner)

        self.assertEqual(order.status, 'RECEIVED')
        self.assertEqual(order.received_date, timezone.localdate())
        self.panadol.refresh_from_db()
        self.gloves.refresh_from_db()
        self.assertEqual(self.panadol.quantity, 12)
        self.assertEqual(self.panadol.cost_price, Decimal('85.00'))
        self.assertEqual(self.gloves.quantity, 4)

        batch = InventoryBatch.objects.get()
        self.assertEqual((batch.product, batch.batch_number, batch.quantity), (self.panadol, 'PN2291', 10))
        self.assertEqual(batch.expiry_date, self.expiry)
        self.assertEqual(
            StockTransaction.objects.filter(transaction_type='PURCHASE', reference=order.po_number).count(), 2
        )

        with self.assertRaises(ValueError):
            suppliers.receive_purchase_order(order)

    def test_purchase_order_views(self):
        self.client.force_login(self.owner)
        result = self.client.post('/inventory/purchase-orders/', {
            'supplier_id': self.supplier.id,
            'items': [{'product_id': self.gloves.id, 'quantity': 2, 'unit_cost': '310'}],
        }, content_type='application/json').json()
        self.assertTrue(result['success'])

        order_id = result['order']['id']
        for action in ('submit', 'receive'):
            result = self.client.post(f'/inventory/purchase-orders/{order_id}/{action}/').json()
            self.assertTrue(result['success'])
        self.gloves.refresh_from_db()
        self.assertEqual(self.gloves.quantity, 2)

        response = self.client.post(f'/inventory/purchase-orders/{order_id}/explode/')
        self.assertEqual(response.status_code, 404)


class SupplierFraudTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store(business_type='CHEMIST')
        self.supplier = make_supplier(self.store, 'Dawa Distributors')
        self.panadol = make_product(self.store, quantity=2, cost_price='80.00', name='Panadol 24s')
        self.gloves = make_product(self.store, quantity=0, cost_price='300.00', name='Gloves box')
        self.today = timezone.localdate()

    def order(self, expected_date=None):
        order = suppliers.create_purchase_order(self.store, self.supplier, [
            {'product': self.panadol, 'quantity': 10, 'unit_cost': '85.00', 'batch_number': 'PN2291'},
            {'product': self.gloves, 'quantity': 4, 'unit_cost': '300.00'},
        ], user=self.owner, expected_date=expected_date)
        suppliers.submit_purchase_order(order)
        return order

    def test_severity_thresholds(self):
        self.assertEqual(suppliers.fraud_severity(overcharge_amount=Decimal('10001')), 'CRITICAL')
        self.assertEqual(suppliers.fraud_severity(variance_percentage=Decimal('25')), 'HIGH')
        self.assertEqual(suppliers.fraud_severity(quality_score=3), 'HIGH')
        self.assertEqual(suppliers.fraud_severity(days_late=8), 'MEDIUM')
        self.assertEqual(suppliers.fraud_severity(variance_percentage=Decimal('20'), days_late=7), 'LOW')

    def test_short_delivery_is_flagged(self):
        order = self.order()
        panadol_line = order.items.get(product=self.panadol)
        suppliers.receive_purchase_order(order, user=self.owner, received_quantities={panadol_line.id: 7})

        self.panadol.refresh_from_db()
        self.gloves.refresh_from_db()
        self.assertEqual((self.panadol.quantity, self.gloves.quantity), (9, 4))
        panadol_line.refresh_from_db()
        self.assertEqual(panadol_line.received_quantity, 7)

        flag = SupplierFraudFlag.objects.get()
        self.assertEqual(flag.fraud_type, 'QUANTITY_MISMATCH')
        self.assertEqual((flag.quantity_ordered, flag.quantity_received, flag.quantity_variance), (10, 7, 3))
        self.assertEqual(flag.variance_percentage, Decimal('30.00'))
        self.assertEqual(flag.severity, 'HIGH')
        self.assertEqual(flag.purchase_order, order)
        self.assertTrue(Notification.objects.filter(user=self.owner, notification_type='PURCHASE').exists())

    def test_received_quantities_are_checked(self):
        order = self.order()
        panadol_line = order.items.get(product=self.panadol)
        with self.assertRaisesMessage(ValueError, 'between 0 and 10'):
            suppliers.receive_purchase_order(order, received_quantities={panadol_line.id: 11})
        with self.assertRaises(ValueError):
            suppliers.receive_purchase_order(order, received_quantities='7')
        order.refresh_from_db()
        self.assertEqual(order.status, 'SUBMITTED')
        self.assertFalse(SupplierFraudFlag.objects.exists())

    def test_late_delivery_is_flagged(self):
        order = self.order(expected_date=self.today - timedelta(days=10))
        suppliers.receive_purchase_order(order)

        flag = SupplierFraudFlag.objects.get()
        self.assertEqual((flag.fraud_type, flag.days_late, flag.severity), ('DELIVERY_LATE', 10, 'MEDIUM'))
        self.assertFalse(Notification.objects.filter(notification_type='PURCHASE').exists())

    def test_invoice_checked_against_its_order(self):
        order = self.order()
        suppliers.receive_purchase_order(order)
        suppliers.create_invoice(self.store, self.supplier, 'DD-1', self.today, self.today + timedelta(days=30),
                                 '2050', purchase_order=order)
        self.assertFalse(SupplierFraudFlag.objects.exists())

        invoice = suppliers.create_invoice(self.store, self.supplier, 'DD-2', self.today,
                                           self.today + timedelta(days=30), '2300', purchase_order=order)
        flag = SupplierFraudFlag.objects.get()
        self.assertEqual(flag.fraud_type, 'INVOICE_MISMATCH')
        self.assertEqual(flag.invoice, invoice)
        self.assertEqual(flag.description, 'Amount mismatch: PO KES 2050.00, Invoice KES 2300.00')
        self.assertEqual(flag.overcharge_amount, Decimal('250.00'))
        self.assertEqual(flag.severity, 'LOW')

    def test_price_overcharge(self):
        flag = suppliers.flag_supplier_fraud(
            self.store, self.supplier, 'PRICE_OVERCHARGE',
            quantity_ordered=100, quantity_received=100,
            ordered_unit_price='85', invoice_unit_price='200',
        )
        self.assertEqual(flag.price_variance, Decimal('115.00'))
        self.assertEqual(flag.overcharge_amount, Decimal('11500.00'))
        self.assertEqual(flag.severity, 'CRITICAL')
        self.assertEqual(flag.description, 'Price Overcharge')

        with self.assertRaises(ValueError):
            suppliers.flag_supplier_fraud(self.store, self.supplier, 'RUDE_DRIVER')
        with self.assertRaises(ValueError):
            suppliers.flag_supplier_fraud(self.store, self.supplier, 'QUALITY_ISSUE', quality_score=11)
        _, other_store = make_owner_and_store()
        with self.assertRaises(ValueError):
            suppliers.flag_supplier_fraud(other_store, self.supplier, 'QUALITY_ISSUE')

    def test_resolving_a_flag(self):
        high = suppliers.flag_supplier_fraud(self.store, self.supplier, 'QUALITY_ISSUE', quality_score=2)
        low = suppliers.flag_supplier_fraud(self.store, self.supplier, 'DELIVERY_LATE', days_late=2)
        self.assertEqual(list(suppliers.open_fraud_flags(self.store, high_severity_only=True)), [high])

        with self.assertRaisesMessage(ValueError, 'notes are required'):
            suppliers.resolve_fraud_flag(high, '  ')
        suppliers.resolve_fraud_flag(high, 'Credit note DD-CN-4 received', user=self.owner)
        self.assertTrue(high.is_resolved)
        self.assertIsNotNone(high.resolved_at)
        with self.assertRaisesMessage(ValueError, 'already resolved'):
            suppliers.resolve_fraud_flag(high, 'Again')
        self.assertEqual(list(suppliers.open_fraud_flags(self.store)), [low])

    def test_scorecard(self):
        short = self.order()
        panadol_line = short.items.get(product=self.panadol)
        suppliers.receive_purchase_order(short, received_quantities={panadol_line.id: 7})
        on_time = self.order(expected_date=self.today)
        suppliers.receive_purchase_order(on_time)

        card = suppliers.supplier_scorecard(self.supplier)
        self.assertEqual(card['orders_received'], 2)
        self.assertEqual(card['fill_rate'], 89.3)
        self.assertEqual(card['on_time_rate'], 100.0)
        self.assertEqual(card['total_flags'], 1)
        self.assertEqual(card['flags_by_type'], {'QUANTITY_MISMATCH': 1})

    def test_fraud_flag_views(self):
        self.client.force_login(self.owner)
        result = self.client.post('/inventory/suppliers/fraud-flags/', {
            'supplier_id': self.supplier.id, 'fraud_type': 'QUALITY_ISSUE',
            'quality_score': 3, 'description': 'Crushed cartons',
        }, content_type='application/json').json()
        self.assertTrue(result['success'])
        self.assertEqual(result['flag']['severity'], 'HIGH')

        flag_id = result['flag']['id']
        listing = self.client.get('/inventory/suppliers/fraud-flags/?high=1').json()
        self.assertEqual([flag['id'] for flag in listing['flags']], [flag_id])

        result = self.client.post(f'/inventory/suppliers/fraud-flags/{flag_id}/resolve/', {
            'notes': 'Replaced by supplier',
        }, content_type='application/json').json()
        self.assertTrue(result['flag']['is_resolved'])
        self.assertEqual(self.client.get('/inventory/suppliers/fraud-flags/').json()['flags'], [])

        card = self.client.get(f'/inventory/suppliers/{self.supplier.id}/scorecard/').json()
        self.assertEqual(card['total_flags'], 1)

    def test_staff_cannot_flag_suppliers(self):
        self.client.force_login(make_user(store=self.store))
        response = self.client.post('/inventory/suppliers/fraud-flags/', {
            'supplier_id': self.supplier.id, 'fraud_type': 'QUALITY_ISSUE',
        }, content_type='application/json')
        self.assertEqual(response.status_code, 403)
