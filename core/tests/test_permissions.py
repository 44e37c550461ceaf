from django.contrib.auth.models import User
from django.test import TestCase

from core.models import Profile, AuditLog
from core.permissions import get_user_role, user_has_permission, ROLE_PERMISSIONS
from core.utils import record_audit, normalize_phone, validate_phone
from .factories import make_user, make_superadmin, make_store, make_owner_and_store


class ProfileSignalTests(TestCase):
    def test_new_user_gets_staff_profile(self):
        user = User.objects.create_user(username='wanjiku', password='pass1234')
        self.assertEqual(user.profile.role, 'STAFF')
        self.assertIsNone(user.profile.store)

    def test_superuser_is_super_admin(self):
        admin = make_superadmin()
        self.assertEqual(Profile.objects.get(user=admin).role, 'SUPER_ADMIN')
        self.assertEqual(get_user_role(admin), 'SUPER_ADMIN')

    def test_owning_a_store_promotes_staff_to_owner(self):
        user = make_user()
        store = make_store(owner=user)
        profile = Profile.objects.get(user=user)
        self.assertEqual(profile.role, 'STORE_OWNER')
        self.assertEqual(profile.store, store)

    def test_second_store_keeps_first_as_profile_store(self):
        owner, first = make_owner_and_store()
        make_store(owner=owner)
        self.assertEqual(Profile.objects.get(user=owner).store, first)


class RolePermissionTests(TestCase):
    def test_staff_cannot_reach_inventory_or_billing(self):
        self.assertEqual(ROLE_PERMISSIONS['STAFF'], ['POS', 'SALES', 'DEBTORS'])
        staff = make_user()
        self.assertTrue(user_has_permission(staff, 'POS'))
        self.assertFalse(user_has_permission(staff, 'INVENTORY'))
        self.assertFalse(user_has_permission(staff, 'BILLING'))

    def test_only_super_admin_has_console(self):
        owner, _ = make_owner_and_store()
        self.assertFalse(user_has_permission(owner, 'CONSOLE'))
        self.assertTrue(user_has_permission(make_superadmin(), 'CONSOLE'))

    def test_middleware_blocks_staff_from_inventory(self):
        store = make_store()
        staff = make_user(store=store)
        self.client.force_login(staff)
        response = self.client.get('/inventory/products/')
        self.assertEqual(response.status_code, 403)


class EnterStoreTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.store.set_owner_pin('4321')
        self.store.save()
        self.staff = make_user()
        self.client.force_login(self.staff)

    def enter(self, **data):
        return self.client.post('/store/enter/', data, content_type='application/json').json()

    def test_access_code_binds_store_to_session(self):
        result = self.enter(access_code=self.store.access_code.lower())
        self.assertTrue(result['success'])
        self.assertFalse(result['owner_mode'])
        self.assertEqual(result['role'], 'STAFF')
        self.assertEqual(self.client.session['store_id'], self.store.id)

    def test_unknown_access_code(self):
        result = self.enter(access_code='NOPE')
        self.assertFalse(result['success'])
        self.assertEqual(result['error'], 'Invalid access code')

    def test_suspended_store_cannot_be_entered(self):
        self.store.is_suspended = True
        self.store.suspension_reason = 'Subscription expired'
        self.store.save()
        result = self.enter(access_code=self.store.access_code)
        self.assertFalse(result['success'])
        self.assertIn('suspended', result['error'])

    def test_wrong_owner_pin_is_refused(self):
        result = self.enter(access_code=self.store.access_code, owner_pin='0000')
        self.assertFalse(result['success'])
        self.assertNotIn('store_id', self.client.session)

    def test_owner_pin_elevates_session(self):
        self.assertEqual(self.client.get('/audit-log/').status_code, 403)

        result = self.enter(access_code=self.store.access_code, owner_pin='4321')
        self.assertTrue(result['owner_mode'])
        self.assertEqual(result['role'], 'STORE_OWNER')

        response = self.client.get('/audit-log/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])

    def test_exit_store_clears_session(self):
        self.enter(access_code=self.store.access_code, owner_pin='4321')
        self.client.post('/store/exit/')
        self.assertNotIn('store_id', self.client.session)
        self.assertNotIn('owner_mode', self.client.session)

    def test_store_views_need_a_store(self):
        response = self.client.get('/')
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()['success'])


class ExpenseViewTests(TestCase):
    def setUp(self):
        self.owner, self.store = make_owner_and_store()
        self.client.force_login(self.owner)

    def test_record_and_list_expense(self):
        response = self.client.post('/expenses/', {
            'category': 'RENT', 'amount': '15000', 'description': 'October rent',
        }, content_type='application/json')
        result = response.json()
        self.assertTrue(result['success'])
        self.assertTrue(result['expense']['expense_number'])

        listing = self.client.get('/expenses/').json()
        self.assertEqual(listing['total'], 15000.0)
        self.assertEqual(listing['by_category'], [{'category': 'RENT', 'total': 15000.0}])

    def test_rejects_bad_expense(self):
        result = self.client.post('/expenses/', {
            'category': 'RENT', 'amount': '0', 'description': 'Nothing',
        }, content_type='application/json').json()
        self.assertFalse(result['success'])

        result = self.client.post('/expenses/', {
            'category': 'HOLIDAY', 'amount': '100', 'description': 'Trip',
        }, content_type='application/json').json()
        self.assertIn('Unknown expense category', result['error'])


class AuditTrailTests(TestCase):
    def test_system_entry_without_actor(self):
        store = make_store()
        entry = record_audit(store, 'SALE_VOIDED', 'sale', 'Voided for test', resource_id=7)
        self.assertEqual(entry.actor_name, 'POS System')
        self.assertEqual(entry.actor_role, 'SYSTEM')
        self.assertEqual(entry.resource_id, '7')

    def test_actor_entry_records_role(self):
        owner, store = make_owner_and_store()
        record_audit(store, 'STORE_UPDATED', 'store', 'Renamed', actor=owner)
        entry = AuditLog.objects.get(store=store)
        self.assertEqual(entry.actor, owner)
        self.assertEqual(entry.actor_role, 'STORE_OWNER')


class PhoneHelperTests(TestCase):
    def test_kenyan_numbers(self):
        self.assertTrue(validate_phone('0712345678'))
        self.assertTrue(validate_phone('+254112345678'))
        self.assertFalse(validate_phone('0812345678'))
        self.assertTrue(validate_phone('0722 111 333'))
        self.assertTrue(validate_phone('0722-111-333'))
        self.assertFalse(validate_phone('07221113'))
        self.assertFalse(validate_phone('0722 111 33x'))
        self.assertEqual(normalize_phone('0712 345 678'), '254712345678')
        self.assertEqual(normalize_phone('+254712345678'), '254712345678')
        self.assertEqual(normalize_phone('712345678'), '254712345678')
