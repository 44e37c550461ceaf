from io import StringIO
from unittest import mock

from django.contrib.auth.models import Group
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, RequestFactory, override_settings

from core.context_processors import notifications, current_store
from core.models import Notification, Profile
from core.mpesa_service import MpesaService
from core.permissions import ROLE_PERMISSIONS
from core.tests.factories import make_user, make_superadmin, make_owner_and_store


class SetupRolesTests(TestCase):
    def test_creates_one_group_per_role(self):
        out = StringIO()
        call_command('setup_roles', stdout=out)
        self.assertEqual(set(Group.objects.values_list('name', flat=True)), set(ROLE_PERMISSIONS))
        self.assertIn('Successfully created 4 new roles', out.getvalue())

        out = StringIO()
        call_command('setup_roles', stdout=out)
        self.assertIn('All roles already exist', out.getvalue())


class FixUserRolesTests(TestCase):
    def test_repairs_owner_admin_and_stale_roles(self):
        owner, store = make_owner_and_store()
        admin = make_superadmin()
        impostor = make_user(role='STORE_OWNER')
        Profile.objects.filter(user=owner).update(role='STAFF', store=None)
        Profile.objects.filter(user=admin).update(role='STAFF')

        call_command('fix_user_roles', stdout=StringIO())

        owner_profile = Profile.objects.get(user=owner)
        self.assertEqual((owner_profile.role, owner_profile.store), ('STORE_OWNER', store))
        self.assertEqual(Profile.objects.get(user=admin).role, 'SUPER_ADMIN')
        self.assertEqual(Profile.objects.get(user=impostor).role, 'STAFF')

        out = StringIO()
        call_command('fix_user_roles', stdout=out)
        self.assertIn('already set correctly', out.getvalue())


@override_settings(BASE_URL='https://dukabook.example.com')
class RegisterMpesaUrlsTests(TestCase):
    @mock.patch('core.management.commands.register_mpesa_urls.MpesaService')
    def test_registers_confirmation_and_validation(self, service_class):
        service_class.return_value.c2b_register_url.return_value = {'response_description': 'Success'}
        out = StringIO()
        call_command('register_mpesa_urls', stdout=out)

        service_class.return_value.c2b_register_url.assert_called_once_with(
            validation_url='https://dukabook.example.com/api/mpesa/c2b/validation/',
            confirmation_url='https://dukabook.example.com/api/mpesa/c2b/confirmation/',
        )
        self.assertIn('C2B URLs registered: Success', out.getvalue())

    @mock.patch('core.management.commands.register_mpesa_urls.MpesaService')
    def test_failure_is_a_command_error(self, service_class):
        service_class.return_value.c2b_register_url.side_effect = Exception('MPESA_CONSUMER_KEY is not configured')
        with self.assertRaises(CommandError):
            call_command('register_mpesa_urls', stdout=StringIO())


@override_settings(
    BASE_URL='https://dukabook.example.com', MPESA_ENVIRONMENT='sandbox',
    MPESA_CONSUMER_KEY='key', MPESA_CONSUMER_SECRET='secret',
)
class MpesaServiceTests(TestCase):
    def daraja(self, body):
        response = mock.Mock(status_code=200, text='{}')
        response.json.return_value = body
        return response

    def test_stk_push_request(self):
        token = self.daraja({'access_token': 'tok123', 'expires_in': '3599'})
        accepted = self.daraja({
            'MerchantRequestID': '29115-34620561-1', 'CheckoutRequestID': 'ws_CO_191220191020363925',
            'ResponseCode': '0', 'ResponseDescription': 'Success. Request accepted for processing',
            'CustomerMessage': 'Success. Request accepted for processing',
        })
        with mock.patch('core.mpesa_service.requests.get', return_value=token), \
                mock.patch('core.mpesa_service.requests.post', return_value=accepted) as post:
            result = MpesaService().stk_push('0712 345 678', '149.6', 'INV-20240101-0001', 'Sale at Duka Moja')

        self.assertTrue(result['success'])
        self.assertEqual(result['checkout_request_id'], 'ws_CO_191220191020363925')
        payload = post.call_args[1]['json']
        self.assertEqual(payload['Amount'], 150)
        self.assertEqual(payload['PhoneNumber'], '254712345678')
        self.assertEqual(payload['AccountReference'], 'INV-20240101')
        self.assertEqual(payload['CallBackURL'], 'https://dukabook.example.com/api/mpesa/stk-callback/')
        self.assertEqual(post.call_args[1]['headers']['Authorization'], 'Bearer tok123')

    def test_rejected_push(self):
        token = self.daraja({'access_token': 'tok123'})
        rejected = self.daraja({'ResponseCode': '1', 'ResponseDescription': 'Insufficient balance'})
        with mock.patch('core.mpesa_service.requests.get', return_value=token), \
                mock.patch('core.mpesa_service.requests.post', return_value=rejected):
            result = MpesaService().stk_push('0712345678', 100, 'REF', 'Test')
        self.assertEqual(result, {
            'success': False, 'error': 'Insufficient balance',
            'response_code': '1', 'response_description': 'Insufficient balance',
        })

    def test_input_validation(self):
        service = MpesaService()
        with self.assertRaises(ValueError):
            service.stk_push('12345', 100, 'REF', 'Test')
        with self.assertRaises(ValueError):
            service.stk_push('0712345678', 200000, 'REF', 'Test')
        with self.assertRaises(ValueError):
            service.stk_push('0712345678', 100, 'REF', 'Test', callback_url='http://localhost/cb')

    @override_settings(MPESA_CONSUMER_KEY='')
    def test_missing_credentials(self):
        with self.assertRaisesMessage(Exception, 'MPESA_CONSUMER_KEY is not configured'):
            MpesaService().get_access_token()


class ContextProcessorTests(TestCase):
    def test_unread_count_and_store(self):
        owner, store = make_owner_and_store()
        Notification.objects.create(user=owner, store=store, notification_type='SALE', title='Sale', message='KES 100')
        request = RequestFactory().get('/')
        request.user = owner
        request.session = {}

        self.assertEqual(notifications(request), {'unread_notifications_count': 1})
        self.assertEqual(current_store(request), {'current_store': store})
