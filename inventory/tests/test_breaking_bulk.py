from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from core.models import Notification, StockTransaction
from core.tests.factories import make_owner_and_store, make_product
from inventory import breaking_bulk
from inventory.models import InventoryBatch, InventoryAlert


class BreakoutProductTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store(business_type='WINES')
        self.bottle = make_product(
            self.store, quantity=4, selling_price='1250.00', cost_price='1000.00',
            name='Smirnoff 750ml', sku='SMR750', barcode='5410316000001',
        )

    def test_unit_product_takes_scaled_prices(self):
        tot = breaking_bulk.create_breakout_from_preset(self.bottle, 'wine', populate=False)
        self.assertEqual(tot.name, 'Tot (30ml) (Smirnoff 750ml)')
        self.assertEqual(tot.parent, self.bottle)
        self.assertEqual(tot.conversion_rate, 25)
        self.assertEqual(tot.selling_price, Decimal('50.00'))
        self.assertEqual(tot.cost_price, Decimal('40.00'))
        self.assertEqual(tot.low_stock_threshold, 125)
        self.assertEqual(tot.barcode, '5410316000001-UNIT')
        self.assertEqual(tot.quantity, 0)

        self.bottle.refresh_from_db()
        self.assertTrue(self.bottle.is_bulk_parent)
        self.assertEqual(self.bottle.bulk_unit_name, 'Bottle (750ml)')

    def test_rejects_bad_breakouts(self):
        with self.assertRaises(ValueError):
            breaking_bulk.create_breakout_from_preset(self.bottle, 'maize')
        with self.assertRaises(ValueError):
            breaking_bulk.create_breakout_product(self.bottle, 'Tot', 0)
        tot = breaking_bulk.create_breakout_product(self.bottle, 'Tot', 25, populate=False)
        with self.assertRaises(ValueError):
            breaking_bulk.create_breakout_product(tot, 'Drop', 10)

    def test_populate_mirrors_bulk_batches_once(self):
        expiry = timezone.localdate() + timedelta(days=200)
        batch = breaking_bulk.receive_batch(self.bottle, 2, expiry_date=expiry, batch_number='LOT9')
        tot = breaking_bulk.create_breakout_from_preset(self.bottle, 'wine')

        unit_batch = InventoryBatch.objects.get(product=tot)
        self.assertEqual(unit_batch.quantity, 50)
        self.assertEqual(unit_batch.expiry_date, expiry)
        self.assertEqual(unit_batch.parent_batch, batch)
        tot.refresh_from_db()
        self.assertEqual(tot.quantity, 50)

        self.assertEqual(breaking_bulk.populate_breakout_batches(self.bottle), [])

    def test_break_bulk_moves_stock_with_expiry(self):
        expiry = timezone.localdate() + timedelta(days=90)
        breaking_bulk.receive_batch(self.bottle, 2, expiry_date=expiry, batch_number='LOT1')
        tot = breaking_bulk.create_breakout_from_preset(self.bottle, 'wine', populate=False)

        result = breaking_bulk.break_bulk(self.bottle, 1, user=self.owner)
        self.assertEqual(result['units_added'], 25)
        self.bottle.refresh_from_db()
        tot.refresh_from_db()
        self.assertEqual(self.bottle.quantity, 5)
        self.assertEqual(tot.quantity, 25)
        unit_batch = InventoryBatch.objects.get(pk=result['batches'][0])
        self.assertEqual(unit_batch.expiry_date, expiry)
        self.assertEqual(StockTransaction.objects.filter(transaction_type='BREAKOUT').count(), 2)

        with self.assertRaises(ValueError):
            breaking_bulk.break_bulk(self.bottle, 6)

    def test_deduct_units_from_chosen_batch(self):
        breaking_bulk.receive_batch(self.bottle, 1, batch_number='LOT1')
        tot = breaking_bulk.create_breakout_from_preset(self.bottle, 'wine')
        unit_batch = InventoryBatch.objects.get(product=tot)

        allocations = breaking_bulk.deduct_breakout_units(tot, 3, batch=unit_batch)
        self.assertEqual(allocations[0]['quantity'], 3)
        unit_batch.refresh_from_db()
        self.assertEqual(unit_batch.quantity, 22)
        with self.assertRaises(ValueError):
            breaking_bulk.deduct_breakout_units(self.bottle, 1)


class BulkAuditTests(TestCase):
    def setUp(self):
        _, self.store = make_owner_and_store()
        self.bottle = make_product(self.store, quantity=0, selling_price='1250.00', cost_price='1000.00')
        self.tot = breaking_bulk.create_breakout_product(self.bottle, 'Tot', 25, populate=False)

    def set_units(self, units):
        self.tot.quantity = units
        self.tot.save()

    def test_balanced(self):
        self.set_units(50)
        result = breaking_bulk.calculate_audit_variance(self.bottle, 2)
        self.assertEqual(result['riskLevel'], 'SAFE')
        self.assertFalse(InventoryAlert.objects.exists())

    def test_small_shortfall_is_a_warning(self):
        self.set_units(40)
        result = breaking_bulk.calculate_audit_variance(self.bottle, 2)
        self.assertEqual((result['riskLevel'], result['variance']), ('WARNING', 10))

    def test_large_shortfall_is_critical(self):
        self.set_units(60)
        result = breaking_bulk.calculate_audit_variance(self.bottle, 4)
        self.assertEqual(result['riskLevel'], 'CRITICAL')
        self.assertEqual(result['expectedUnits'], 100)
        self.assertIn('unaccounted', result['message'])
        self.assertEqual(InventoryAlert.objects.get().alert_type, 'BULK_VARIANCE')

    def test_overstock_is_a_warning(self):
        self.set_units(30)
        self.assertEqual(breaking_bulk.calculate_audit_variance(self.bottle, 1)['riskLevel'], 'WARNING')


class BatchExpiryTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store(business_type='CHEMIST')
        self.product = make_product(self.store, quantity=0, name='Panadol 24s')
        today = timezone.localdate()
        self.expired = breaking_bulk.receive_batch(self.product, 5, expiry_date=today - timedelta(days=1))
        self.soon = breaking_bulk.receive_batch(self.product, 5, expiry_date=today + timedelta(days=5))
        self.later = breaking_bulk.receive_batch(self.product, 5, expiry_date=today + timedelta(days=60))
        self.undated = breaking_bulk.receive_batch(self.product, 5)

    def test_fefo_skips_expired_and_puts_undated_last(self):
        order = list(breaking_bulk.fefo_queryset(self.product))
        self.assertEqual(order, [self.soon, self.later, self.undated])

    def test_expire_batches_flags_once(self):
        self.assertEqual(breaking_bulk.expire_batches(self.store), 1)
        self.expired.refresh_from_db()
        self.assertEqual(self.expired.status, 'EXPIRED')
        self.assertEqual(breaking_bulk.expire_batches(self.store), 0)
        self.assertEqual(InventoryAlert.objects.filter(alert_type='EXPIRED').count(), 1)

    def test_expiry_alerts_are_not_repeated(self):
        raised = breaking_bulk.raise_expiry_alerts(self.store, days=30)
        self.assertEqual([alert.batch for alert in raised], [self.soon])
        self.assertEqual(raised[0].severity, 'CRITICAL')
        self.assertEqual(Notification.objects.filter(notification_type='EXPIRY').count(), 1)
        self.assertEqual(breaking_bulk.raise_expiry_alerts(self.store, days=30), [])

    def test_dispose_writes_stock_off(self):
        breaking_bulk.dispose_batch(self.expired, user=self.owner, reason='Expired stock')
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 15)
        self.expired.refresh_from_db()
        self.assertEqual((self.expired.status, self.expired.quantity), ('DISPOSED', 0))
        with self.assertRaises(ValueError):
            breaking_bulk.dispose_batch(self.expired)

    def test_check_expiring_batches_command(self):
        call_command('check_expiring_batches', stdout=StringIO())
        self.expired.refresh_from_db()
        self.assertEqual(self.expired.status, 'EXPIRED')
        self.assertTrue(InventoryAlert.objects.filter(alert_type='EXPIRING_SOON', batch=self.soon).exists())
