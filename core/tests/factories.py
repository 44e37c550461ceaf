"""
Small builders shared by the test suites of every app.
"""
from datetime import timedelta
from decimal import Decimal
from itertools import count

from django.contrib.auth.models import User
from django.utils import timezone

from core.models import Store, Product, Profile

_seq = count(1)


def make_user(role='STAFF', store=None, password='pass1234', **extra):
    n = next(_seq)
    username = extra.pop('username', f'user{n}')
    user = User.objects.create_user(
        username=username, password=password, email=extra.pop('email', f'{username}@example.com'), **extra
    )
    Profile.objects.filter(user=user).update(role=role, store=store)
    user.profile.refresh_from_db()
    return user


def make_superadmin():
    n = next(_seq)
    return User.objects.create_superuser(username=f'admin{n}', email=f'admin{n}@example.com', password='pass1234')


def make_store(owner=None, **extra):
    n = next(_seq)
    fields = {
        'name': f'Duka {n}',
        'access_code': f'DUKA{n}',
        'business_type': 'GENERAL',
        'phone': '0712345678',
    }
    fields.update(extra)
    return Store.objects.create(owner=owner, **fields)


def make_owner_and_store(**store_fields):
    owner = make_user(role='STORE_OWNER')
    store = make_store(owner=owner, **store_fields)
    owner.profile.refresh_from_db()
    return owner, store


def make_product(store, quantity=10, selling_price='100.00', cost_price='60.00', **extra):
    n = next(_seq)
    fields = {
        'name': f'Product {n}',
        'sku': f'SKU{n}',
        'barcode': f'600{n:07d}',
        'low_stock_threshold': 5,
    }
    fields.update(extra)
    return Product.objects.create(
        store=store, quantity=quantity,
        selling_price=Decimal(str(selling_price)), cost_price=Decimal(str(cost_price)),
        **fields
    )


def days_from_now(days):
    return timezone.now() + timedelta(days=days)


class FakeMpesaService:
    """Stands in for MpesaService: records STK pushes and answers with a canned reply."""

    def __init__(self, success=True, error='Invalid Access Token'):
        self.success = success
        self.error = error
        self.pushes = []

    def stk_push(self, phone_number, amount, account_reference, transaction_desc):
        self.pushes.append({
            'phone_number': phone_number,
            'amount': amount,
            'account_reference': account_reference,
            'transaction_desc': transaction_desc,
        })
        n = len(self.pushes)
        if not self.success:
            return {'success': False, 'error': self.error, 'data': {'errorMessage': self.error}}
        return {
            'success': True,
            'checkout_request_id': f'ws_CO_TEST{n:04d}',
            'merchant_request_id': f'MR-TEST-{n}',
            'phone_number': '254712345678',
            'response_code': '0',
            'response_description': 'Success. Request accepted for processing',
            'data': {'ResponseCode': '0'},
        }


def stk_callback(checkout_request_id, result_code=0, amount=100, receipt='QK7ABC1234',
                 result_desc='The service request is processed successfully.'):
    """Body Daraja posts to the STK callback URL."""
    body = {
        'MerchantRequestID': 'MR-TEST-1',
        'CheckoutRequestID': checkout_request_id,
        'ResultCode': result_code,
        'ResultDesc': result_desc,
    }
    if result_code == 0:
        body['CallbackMetadata'] = {'Item': [
            {'Name': 'Amount', 'Value': amount},
            {'Name': 'MpesaReceiptNumber', 'Value': receipt},
            {'Name': 'TransactionDate', 'Value': 20261019101530},
            {'Name': 'PhoneNumber', 'Value': 254712345678},
        ]}
    return {'Body': {'stkCallback': body}}


def c2b_confirmation(trans_id, amount, bill_ref, msisdn='254712345678'):
    return {
        'TransactionType': 'Pay Bill',
        'TransID': trans_id,
        'TransTime': '20261019101530',
        'TransAmount': str(amount),
        'BusinessShortCode': '400200',
        'BillRefNumber': bill_ref,
        'MSISDN': msisdn,
        'FirstName': 'Achieng',
        'LastName': 'Otieno',
    }
