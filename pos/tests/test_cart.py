from django.contrib.sessions.backends.db import SessionStore
from django.test import TestCase

from core.tests.factories import make_user, make_owner_and_store, make_product
from pos.cart import SessionCart, SESSION_KEY
from pos.checkout import find_product_by_barcode


class SessionCartTests(TestCase):
    def setUp(self):
        _, self.store = make_owner_and_store()
        self.session = SessionStore()
        self.soap = make_product(self.store, quantity=5, selling_price='45.00', name='Sunlight Soap')
        self.milk = make_product(self.store, quantity=20, selling_price='60.00', name='Brookside Milk')

    def test_add_merges_lines_for_same_product(self):
        cart = SessionCart(self.session)
        cart.add(self.soap, 2).add(self.soap, 1).add(self.milk)

        self.assertEqual(len(cart), 2)
        self.assertEqual(cart.item_count, 4)
        self.assertEqual(float(cart.total_amount), 45 * 3 + 60)
        self.assertEqual(len(SessionCart(self.session).items), 2)

    def test_add_respects_stock(self):
        cart = SessionCart(self.session).add(self.soap, 4)
        with self.assertRaises(ValueError):
            cart.add(self.soap, 2)
        with self.assertRaises(ValueError):
            SessionCart(SessionStore()).add(self.soap, 6)

        self.soap.quantity = 0
        self.soap.save()
        with self.assertRaisesMessage(ValueError, 'out of stock'):
            SessionCart(SessionStore()).add(self.soap)

    def test_update_to_zero_removes_line(self):
        cart = SessionCart(self.session).add(self.soap, 2).add(self.milk, 1)
        cart.update(self.soap.id, 0)
        self.assertEqual([item['product_id'] for item in cart.items], [self.milk.id])

        cart.update(self.milk.id, 3)
        self.assertEqual(cart.to_dict()['total_amount'], 180.0)
        with self.assertRaises(ValueError):
            cart.update(self.milk.id, 21)

    def test_clear_drops_session_key(self):
        cart = SessionCart(self.session).add(self.milk)
        cart.clear()
        self.assertNotIn(SESSION_KEY, self.session)
        self.assertEqual(cart.to_dict(), {'cart_items': [], 'cart_count': 0, 'item_count': 0, 'total_amount': 0.0})


class CartViewTests(TestCase):
    def setUp(self):
        _, self.store = make_owner_and_store()
        self.cashier = make_user(store=self.store)
        self.client.force_login(self.cashier)
        self.product = make_product(self.store, quantity=3, barcode='6161101600019', name='Kasuku Cooking Fat')

    def post(self, url, data):
        return self.client.post(url, data, content_type='application/json').json()

    def test_scan_adds_one_unit(self):
        result = self.post('/pos/scan/', {'barcode': ' 6161101600019 '})
        self.assertTrue(result['success'])
        self.assertEqual(result['product']['name'], 'Kasuku Cooking Fat')
        self.assertEqual(result['item_count'], 1)

    def test_scan_unknown_barcode(self):
        response = self.client.post('/pos/scan/', {'barcode': '000'}, content_type='application/json')
        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.json()['success'])

    def test_scan_ignores_other_stores(self):
        _, other = make_owner_and_store()
        make_product(other, barcode='5000000000001')
        result = self.client.post('/pos/scan/', {'barcode': '5000000000001'}, content_type='application/json')
        self.assertEqual(result.status_code, 404)

    def test_process_sale_clears_cart(self):
        self.post('/pos/add-to-cart/', {'product_id': self.product.id, 'quantity': 2})
        result = self.post('/pos/sales/process/', {'payment_method': 'CASH', 'amount_tendered': '500'})

        self.assertTrue(result['success'])
        self.assertEqual(result['status'], 'COMPLETED')
        self.assertEqual(result['receipt']['change_due'], 300.0)
        self.assertEqual(self.client.get('/pos/cart/').json()['cart_count'], 0)

    def test_process_sale_with_empty_cart(self):
        result = self.post('/pos/sales/process/', {'payment_method': 'CASH'})
        self.assertFalse(result['success'])
        self.assertEqual(result['error'], 'Cannot record sale with empty cart')

    def test_add_with_null_quantity_is_refused(self):
        response = self.client.post('/pos/add-to-cart/', {'product_id': self.product.id, 'quantity': None},
                                    content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'success': False, 'error': 'Quantity must be a whole number'})


class BarcodeLookupTests(TestCase):
    def setUp(self):
        _, self.store = make_owner_and_store()

    def test_matches_trimmed_code_ignoring_case(self):
        product = make_product(self.store, barcode='ABC-123x')
        self.assertEqual(find_product_by_barcode(self.store, '  abc-123X '), product)

    def test_skips_inactive_and_other_store_products(self):
        make_product(self.store, barcode='6161100000011', is_active=False)
        _, other = make_owner_and_store()
        make_product(other, barcode='6161100000028')

        self.assertIsNone(find_product_by_barcode(self.store, '6161100000011'))
        self.assertIsNone(find_product_by_barcode(self.store, '6161100000028'))
        self.assertIsNone(find_product_by_barcode(self.store, '   '))
