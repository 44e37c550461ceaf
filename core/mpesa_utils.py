"""
M-Pesa Utility Functions and Helpers
"""
import re
import logging
from decimal import Decimal, InvalidOperation
from django.conf import settings

logger = logging.getLogger('mpesa')


class MpesaUtils:
    """
    Utility class for M-Pesa operations
    """

    STATUS_MESSAGES = {
        0: "Success",
        1: "Insufficient Funds",
        2: "Less Than Minimum Transaction Value",
        3: "More Than Maximum Transaction Value",
        4: "Would Exceed Daily Transfer Limit",
        8: "Would Exceed Maximum Balance",
        11: "Debit Account Invalid",
        15: "Duplicate Detected",
        17: "Internal Failure",
        26: "Traffic blocking condition in place",
        1001: "Subscriber busy, another transaction in progress",
        1019: "Transaction expired",
        1032: "Request cancelled by user",
        1037: "No response from user (timeout)",
        2001: "Wrong M-Pesa PIN entered",
    }

    @staticmethod
    def format_phone_number(phone_number):
        """
        Format Kenyan phone number to M-Pesa format (2547XXXXXXXX)

        Raises:
            ValueError: If phone number is invalid
        """
        phone = re.sub(r'\D', '', str(phone_number or ''))

        if len(phone) < 9 or len(phone) > 12:
            raise ValueError(f"Invalid phone number length: {phone}")

        if phone.startswith('0'):
            if len(phone) == 10:
                return '254' + phone[1:]
            raise ValueError(f"Invalid 0-prefixed phone number: {phone}")
        elif phone.startswith('254'):
            if len(phone) == 12:
                return phone
            raise ValueError(f"Invalid 254-prefixed phone number: {phone}")
        elif phone[0] in '71':
            if len(phone) == 9:
                return '254' + phone
            raise ValueError(f"Invalid {phone[0]}-prefixed phone number: {phone}")
        raise ValueError(f"Unknown phone number format: {phone}")

    @staticmethod
    def validate_amount(amount):
        """
        Validate amount for an STK push: whole shillings within the limits

        Raises:
            ValueError: If amount is invalid
        """
        try:
            amount = Decimal(str(amount))
        except (InvalidOperation, TypeError):
            raise ValueError("Invalid amount format")

        if amount <= 0:
            raise ValueError("Amount must be greater than 0")
        if amount < settings.MPESA_MIN_AMOUNT:
            raise ValueError(f"Amount must be at least KES {settings.MPESA_MIN_AMOUNT}")
        if amount > settings.MPESA_MAX_AMOUNT:
            raise ValueError(f"Amount exceeds M-Pesa limit of {settings.MPESA_MAX_AMOUNT:,}")
        if amount != amount.to_integral_value():
            raise ValueError("Amount must be a whole number (no cents)")
        return int(amount)

    @staticmethod
    def parse_callback_data(data):
        """
        Parse STK or C2B callback data into a flat dictionary
        """
        parsed_data = {
            'type': None,
            'checkout_request_id': None,
            'merchant_request_id': None,
            'receipt_number': None,
            'amount': None,
            'phone_number': None,
            'result_code': None,
            'result_description': None,
            'raw_data': data,
        }

        if not isinstance(data, dict):
            return parsed_data

        if 'Body' in data and 'stkCallback' in data.get('Body', {}):
            stk_callback = data['Body']['stkCallback']
            parsed_data['type'] = 'STK'
            parsed_data['checkout_request_id'] = stk_callback.get('CheckoutRequestID')
            parsed_data['merchant_request_id'] = stk_callback.get('MerchantRequestID')
            parsed_data['result_code'] = stk_callback.get('ResultCode')
            parsed_data['result_description'] = stk_callback.get('ResultDesc')

            for item in stk_callback.get('CallbackMetadata', {}).get('Item', []):
                name = item.get('Name')
                if name == 'Amount':
                    parsed_data['amount'] = item.get('Value')
                elif name == 'MpesaReceiptNumber':
                    parsed_data['receipt_number'] = item.get('Value')
                elif name == 'PhoneNumber':
                    parsed_data['phone_number'] = str(item.get('Value'))
                elif name == 'TransactionDate':
                    parsed_data['transaction_date'] = str(item.get('Value'))

        elif 'TransID' in data:
            parsed_data['type'] = 'C2B'
            parsed_data['receipt_number'] = data.get('TransID')
            parsed_data['trans_type'] = data.get('TransactionType', '')
            parsed_data['trans_time'] = data.get('TransTime', '')
            parsed_data['amount'] = data.get('TransAmount')
            parsed_data['business_short_code'] = data.get('BusinessShortCode', '')
            parsed_data['bill_ref_number'] = (data.get('BillRefNumber') or '').strip()
            parsed_data['invoice_number'] = data.get('InvoiceNumber') or ''
            parsed_data['org_account_balance'] = data.get('OrgAccountBalance') or ''
            parsed_data['third_party_trans_id'] = data.get('ThirdPartyTransID') or ''
            parsed_data['phone_number'] = data.get('MSISDN', '')
            parsed_data['first_name'] = data.get('FirstName') or ''
            parsed_data['middle_name'] = data.get('MiddleName') or ''
            parsed_data['last_name'] = data.get('LastName') or ''
            parsed_data['result_code'] = 0
            parsed_data['result_description'] = 'C2B Payment'

        return parsed_data

    @classmethod
    def get_transaction_status_message(cls, result_code):
        """
        Get human-readable message for M-Pesa result code
        """
        try:
            result_code = int(result_code)
        except (TypeError, ValueError):
            pass
        return cls.STATUS_MESSAGES.get(result_code, f"Unknown error (Code: {result_code})")

    @staticmethod
    def log_mpesa_transaction(response_data, amount, phone_number, account_reference,
                              transaction_desc, user=None, store=None, sale=None,
                              purpose='SALE', plan_id=''):
        """
        Persist an STK push we have just sent along with Daraja's answer
        """
        from .mpesa_models import MpesaTransaction

        transaction = MpesaTransaction.objects.create(
            transaction_type='STK_PUSH',
            purpose=purpose,
            amount=amount,
            phone_number=response_data.get('phone_number') or phone_number,
            account_reference=account_reference,
            transaction_desc=transaction_desc,
            plan_id=plan_id,
            user=user,
            store=store,
            sale=sale,
            merchant_request_id=response_data.get('merchant_request_id') or '',
            checkout_request_id=response_data.get('checkout_request_id') or '',
            response_code=str(response_data.get('response_code') or ''),
            response_description=response_data.get('response_description') or '',
            raw_response=response_data.get('data'),
        )

        if not response_data.get('success'):
            transaction.mark_failed(result_desc=response_data.get('error'))

        return transaction

    @staticmethod
    def send_payment_notification(transaction, notification_type='SUCCESS'):
        """
        Tell the user who started the payment how it ended
        """
        from .models import Notification

        if not transaction.user:
            return None

        if notification_type == 'SUCCESS':
            title = 'M-Pesa Payment Successful'
            message = f'Payment of KES {transaction.amount} was successful. Receipt: {transaction.mpesa_receipt_number}'
        elif notification_type == 'FAILED':
            title = 'M-Pesa Payment Failed'
            message = f'Payment of KES {transaction.amount} failed. Reason: {transaction.result_description}'
        else:
            return None

        return Notification.objects.create(
            user=transaction.user,
            store=transaction.store,
            notification_type='SUBSCRIPTION' if transaction.purpose == 'SUBSCRIPTION' else 'SALE',
            title=title,
            message=message,
        )
