from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from core.models import Notification
from core.tests.factories import make_owner_and_store, make_product
from inventory import stockouts
from inventory.breaking_bulk import receive_batch
from inventory.models import InventoryAlert
from pos.checkout import record_pos_sale


def sell(store, product, quantity):
    return record_pos_sale(store, [{'product_id': product.id, 'quantity': quantity}], 'CASH')['sale']


class StockoutTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.unga = make_product(self.store, quantity=30, selling_price='100.00', name='Unga 2kg')

    def test_selling_the_last_unit_opens_an_alert(self):
        sale = sell(self.store, self.unga, 30)

        alert = InventoryAlert.objects.get(alert_type='OUT_OF_STOCK')
        self.assertEqual(alert.product, self.unga)
        self.assertEqual(alert.severity, 'CRITICAL')
        self.assertEqual(alert.data['avg_daily_units'], 1.0)
        self.assertEqual(alert.data['suggested_reorder_quantity'], 25)
        self.assertEqual(alert.data['reference'], sale.invoice_number)
        self.assertTrue(Notification.objects.filter(user=self.owner, notification_type='STOCK').exists())

    def test_restock_closes_the_alert(self):
        sell(self.store, self.unga, 30)
        batch = receive_batch(self.unga, 20, batch_number='UN-7')

        alert = InventoryAlert.objects.get(alert_type='OUT_OF_STOCK')
        self.assertTrue(alert.is_resolved)
        self.assertEqual(alert.data['restock_reference'], batch.batch_number)
        self.assertEqual(alert.data['days_out_of_stock'], 0)
        self.assertIsNone(stockouts.open_stockout(self.unga))

    def test_long_stockout_counts_lost_sales(self):
        sell(self.store, self.unga, 30)
        alert = InventoryAlert.objects.get(alert_type='OUT_OF_STOCK')
        alert.data['stockout_at'] = (timezone.now() - timedelta(days=6, hours=1)).isoformat()
        alert.save()

        summary = stockouts.stockout_summary(self.store)
        self.assertEqual(summary['open_stockouts'], 1)
        self.assertEqual(summary['critical_stockouts'], 1)
        self.assertEqual(summary['estimated_lost_revenue'], Decimal('600.00'))
        self.assertEqual(summary['stockouts'][0]['days_out_of_stock'], 6)

        self.unga.adjust_stock(10, 'PURCHASE', reference='PO-1')
        alert.refresh_from_db()
        self.assertEqual(alert.data['estimated_lost_revenue'], 600.0)
        self.assertEqual(stockouts.stockout_summary(self.store)['open_stockouts'], 0)

    def test_products_running_low(self):
        sell(self.store, self.unga, 27)
        make_product(self.store, quantity=40, name='Sugar 1kg')

        rows = stockouts.stockout_risk(self.store)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['product_name'], 'Unga 2kg')
        self.assertEqual(rows[0]['avg_daily_units'], 0.9)
        self.assertEqual(rows[0]['days_until_stockout'], 4)
        self.assertEqual(rows[0]['suggested_reorder_quantity'], 25)

    def test_stockout_view(self):
        sell(self.store, self.unga, 30)
        self.client.force_login(self.owner)
        report = self.client.get('/inventory/stockouts/').json()
        self.assertTrue(report['success'])
        self.assertEqual(report['open_stockouts'], 1)
        self.assertEqual(report['stockouts'][0]['product_name'], 'Unga 2kg')
