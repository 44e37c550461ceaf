"""
Daraja client: OAuth, STK push and query, C2B registration and simulation
"""
import requests
import base64
import json
import logging
from datetime import datetime
from urllib.parse import urlparse
from django.conf import settings
from .mpesa_config import MpesaConfig

logger = logging.getLogger('mpesa')


class MpesaService:
    """
    M-Pesa Service for handling all M-Pesa operations
    """

    def __init__(self):
        self.consumer_key = settings.MPESA_CONSUMER_KEY
        self.consumer_secret = settings.MPESA_CONSUMER_SECRET
        self.base_url = MpesaConfig.get_base_url()
        self.environment = settings.MPESA_ENVIRONMENT

    def get_access_token(self):
        """
        Get M-Pesa OAuth access token
        Returns: access_token
        """
        url = MpesaConfig.get_endpoint('oauth')

        if not self.consumer_key:
            logger.error("MPESA_CONSUMER_KEY not configured!")
            raise Exception("MPESA_CONSUMER_KEY is not configured")
        if not self.consumer_secret:
            logger.error("MPESA_CONSUMER_SECRET not configured!")
            raise Exception("MPESA_CONSUMER_SECRET is not configured")

        auth_string = f"{self.consumer_key}:{self.consumer_secret}"
        encoded_auth = base64.b64encode(auth_string.encode()).decode()
        headers = {
            'Authorization': f'Basic {encoded_auth}',
            'Cache-Control': 'no-cache'
        }

        logger.info(f"Requesting access token from {url} ({self.environment})")

        try:
            response = requests.get(url, headers=headers, timeout=30)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            logger.error("Timeout occurred while getting access token")
            raise Exception("Timeout occurred while getting access token")
        except requests.exceptions.HTTPError as e:
            logger.error(f"HTTP Error getting access token: {e.response.text}")
            raise Exception(f"Failed to authenticate with M-Pesa (HTTP {e.response.status_code}): {e.response.text}")
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error getting access token: {str(e)}")
            raise Exception(f"Network error: {str(e)}")
        except json.JSONDecodeError:
            logger.error("Invalid JSON response from M-Pesa OAuth endpoint")
            raise Exception("Invalid JSON response from M-Pesa OAuth endpoint")

        if 'access_token' not in data:
            logger.error(f"Failed to get access token: {data}")
            raise Exception(f"Failed to get access token: {data}")

        return data['access_token']

    def generate_password(self, shortcode=None, passkey=None):
        """
        Generate password for STK Push
        """
        shortcode = shortcode or MpesaConfig.get_shortcode()
        passkey = passkey or MpesaConfig.get_passkey()

        timestamp = datetime.now().strftime('%Y%m%d%H%M%S')
        password = base64.b64encode(
            f"{shortcode}{passkey}{timestamp}".encode()
        ).decode()

        return password, timestamp

    def _post(self, endpoint_name, payload, action):
        """POST an authenticated JSON request and return the decoded body."""
        access_token = self.get_access_token()
        url = MpesaConfig.get_endpoint(endpoint_name)
        headers = {
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json'
        }

        try:
            response = requests.post(url, json=payload, headers=headers, timeout=30)
            logger.info(f"{action} response {response.status_code}: {response.text}")
            response.raise_for_status()
            return response.json()
        except requests.exceptions.Timeout:
            logger.error(f"Timeout occurred during {action}")
            raise Exception(f"Timeout occurred during {action}")
        except requests.exceptions.HTTPError as e:
            logger.error(f"HTTP Error during {action}: {e.response.text}")
            raise Exception(f"M-Pesa API Error (HTTP {e.response.status_code}): {e.response.text}")
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error during {action}: {str(e)}")
            raise Exception(f"Network error during {action}: {str(e)}")
        except json.JSONDecodeError:
            raise Exception(f"Invalid JSON response from M-Pesa {action}")

    @staticmethod
    def validate_callback_url(callback_url):
        """M-Pesa only calls back to publicly reachable HTTPS URLs."""
        parsed = urlparse(callback_url)
        if parsed.scheme.lower() != 'https':
            logger.error(f"Invalid callback URL scheme: {callback_url}")
            raise ValueError(
                "Invalid CallBackURL: M-Pesa requires a publicly accessible HTTPS callback URL. "
                "Set BASE_URL to an https URL or pass a valid callback_url.")

        hostname = parsed.hostname or ''
        if hostname.startswith('localhost') or hostname.startswith('127.') or hostname == '::1':
            logger.error(f"Callback URL resolves to localhost/loopback: {callback_url}")
            raise ValueError(
                "Invalid CallBackURL: Callback URL must be publicly accessible (not localhost).")
        return callback_url

    def stk_push(self, phone_number, amount, account_reference, transaction_desc, callback_url=None):
        """
        Initiate STK Push (Lipa na M-Pesa Online)

        Args:
            phone_number: Customer phone number in any Kenyan format
            amount: Amount to charge, whole shillings
            account_reference: Invoice number or store access code
            transaction_desc: Transaction description
            callback_url: Defaults to our STK callback under BASE_URL

        Returns: dict with response data
        """
        phone_number = self.validate_phone_number(phone_number)
        amount = self.format_amount(amount)
        callback_url = self.validate_callback_url(
            callback_url or MpesaConfig.get_callback_url('stk_callback')
        )

        shortcode = MpesaConfig.get_shortcode()
        password, timestamp = self.generate_password(shortcode, MpesaConfig.get_passkey())

        payload = {
            "BusinessShortCode": shortcode,
            "Password": password,
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": amount,
            "PartyA": phone_number,
            "PartyB": shortcode,
            "PhoneNumber": phone_number,
            "CallBackURL": callback_url,
            "AccountReference": str(account_reference)[:12],
            "TransactionDesc": str(transaction_desc)[:13]
        }

        logger.info(f"STK Push of KES {amount} to {phone_number} ref {account_reference}")
        data = self._post('stk_push', payload, 'STK Push')

        if str(data.get('ResponseCode')) == '0':
            return {
                'success': True,
                'data': data,
                'phone_number': phone_number,
                'checkout_request_id': data.get('CheckoutRequestID'),
                'merchant_request_id': data.get('MerchantRequestID'),
                'customer_message': data.get('CustomerMessage'),
                'response_code': data.get('ResponseCode'),
                'response_description': data.get('ResponseDescription')
            }

        return {
            'success': False,
            'error': data.get('ResponseDescription') or data.get('errorMessage') or 'STK Push failed',
            'response_code': data.get('ResponseCode'),
            'response_description': data.get('ResponseDescription')
        }

    def stk_query(self, checkout_request_id):
        """
        Query STK Push transaction status
        """
        shortcode = MpesaConfig.get_shortcode()
        password, timestamp = self.generate_password(shortcode, MpesaConfig.get_passkey())

        payload = {
            "BusinessShortCode": shortcode,
            "Password": password,
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id
        }

        data = self._post('stk_query', payload, 'STK Query')
        return {
            'success': True,
            'data': data,
            'result_code': data.get('ResultCode'),
            'result_desc': data.get('ResultDesc')
        }

    def c2b_register_url(self, validation_url=None, confirmation_url=None, response_type="Completed"):
        """
        Register the C2B validation and confirmation URLs against the till
        """
        payload = {
            "ShortCode": MpesaConfig.get_till_number(),
            "ResponseType": response_type,
            "ConfirmationURL": confirmation_url or MpesaConfig.get_callback_url('c2b_confirmation'),
            "ValidationURL": validation_url or MpesaConfig.get_callback_url('c2b_validation')
        }

        data = self._post('c2b_register', payload, 'C2B URL registration')
        return {
            'success': True,
            'data': data,
            'response_code': data.get('ResponseCode'),
            'response_description': data.get('ResponseDescription')
        }

    def c2b_simulate(self, phone_number, amount, bill_ref_number, command_id="CustomerBuyGoodsOnline"):
        """
        Simulate a C2B payment (sandbox only)
        """
        if MpesaConfig.is_production():
            raise ValueError("C2B simulation is only available in the sandbox")

        payload = {
            "ShortCode": MpesaConfig.get_till_number(),
            "CommandID": command_id,
            "Amount": self.format_amount(amount),
            "Msisdn": self.validate_phone_number(phone_number),
            "BillRefNumber": bill_ref_number
        }

        data = self._post('c2b_simulate', payload, 'C2B simulation')
        return {
            'success': True,
            'data': data,
            'response_code': data.get('ResponseCode'),
            'response_description': data.get('ResponseDescription')
        }

    def validate_phone_number(self, phone_number):
        """
        Validate and format Kenyan phone number

        Returns: number in 2547XXXXXXXX form or raises ValueError
        """
        phone_number = ''.join(filter(str.isdigit, str(phone_number or '')))

        if len(phone_number) < 9 or len(phone_number) > 12:
            raise ValueError("Invalid phone number length")

        if phone_number.startswith('0') and len(phone_number) == 10:
            return '254' + phone_number[1:]
        if phone_number.startswith('254') and len(phone_number) == 12:
            return phone_number
        if phone_number[0] in '71' and len(phone_number) == 9:
            return '254' + phone_number
        raise ValueError("Invalid phone number format")

    def format_amount(self, amount):
        """
        Format amount for M-Pesa: whole shillings within the transaction limits
        """
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise ValueError("Invalid amount")

        if amount < settings.MPESA_MIN_AMOUNT:
            raise ValueError(f"Amount must be at least KES {settings.MPESA_MIN_AMOUNT}")
        if amount > settings.MPESA_MAX_AMOUNT:
            raise ValueError(f"Amount exceeds M-Pesa limit of {settings.MPESA_MAX_AMOUNT:,}")
        return int(round(amount))
