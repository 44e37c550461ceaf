from unittest import mock

from django.test import TestCase
from reportlab.platypus import Paragraph

from core.reports import generate_receipt_pdf
from core.tests.factories import make_user, make_owner_and_store, make_product
from pos.checkout import record_pos_sale


class ReceiptPdfTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.cashier = make_user(store=self.store, first_name='Achieng')
        self.product = make_product(self.store, quantity=10, selling_price='120.00', name='Omo 500g')

    def render(self, sale):
        with mock.patch('core.reports.Paragraph', wraps=Paragraph) as paragraph:
            pdf = generate_receipt_pdf(sale)
        return pdf, [call.args[0] for call in paragraph.call_args_list]

    def test_cash_receipt(self):
        sale = record_pos_sale(
            self.store, [{'product_id': self.product.id, 'quantity': 2}], 'CASH',
            cashier=self.cashier, amount_tendered='300',
        )['sale']
        pdf, lines = self.render(sale)

        self.assertTrue(pdf.startswith(b'%PDF'))
        self.assertEqual(lines[0], self.store.name)
        self.assertIn(f'RECEIPT: {sale.invoice_number}', lines)
        self.assertIn('Served by: Achieng', lines)
        self.assertIn('TOTAL: KES 240.00', lines)
        self.assertIn('Payment: CASH', lines)
        self.assertIn('Tendered: KES 300.00', lines)
        self.assertIn('Change: KES 60.00', lines)

    def test_credit_and_mpesa_labels(self):
        credit = record_pos_sale(
            self.store, [{'product_id': self.product.id, 'quantity': 1}], 'MADENI',
            customer_name='Otieno', customer_phone='0733 444 555',
        )['sale']
        _, lines = self.render(credit)
        self.assertIn('Payment: MADENI (Credit)', lines)
        self.assertIn('Customer: Otieno', lines)
        self.assertNotIn('Change: KES 0.00', lines)

        till = record_pos_sale(
            self.store, [{'product_id': self.product.id, 'quantity': 1}], 'MPESA', mpesa_receipt='QK12AB34CD',
        )['sale']
        _, lines = self.render(till)
        self.assertIn('Payment: M-PESA', lines)
        self.assertIn('M-Pesa Ref: QK12AB34CD', lines)
