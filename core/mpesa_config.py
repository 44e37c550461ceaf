"""
M-Pesa Configuration and Constants
"""
from django.conf import settings


class MpesaConfig:
    """
    Daraja environment, endpoint table and shortcode resolution
    """

    # Environments
    ENV_SANDBOX = 'sandbox'
    ENV_PRODUCTION = 'production'

    # URLs
    SANDBOX_BASE_URL = 'https://sandbox.safaricom.co.ke'
    PRODUCTION_BASE_URL = 'https://api.safaricom.co.ke'

    # Public Lipa na M-Pesa sandbox credentials
    SANDBOX_SHORTCODE = '174379'
    SANDBOX_PASSKEY = 'bfb279f9aa9bdbcf158e97dd71a467cd2e0c893059b10f78e6b72ada1ed2c919'

    # Endpoints
    ENDPOINTS = {
        'oauth': '/oauth/v1/generate?grant_type=client_credentials',
        'stk_push': '/mpesa/stkpush/v1/processrequest',
        'stk_query': '/mpesa/stkpushquery/v1/query',
        'c2b_register': '/mpesa/c2b/v1/registerurl',
        'c2b_simulate': '/mpesa/c2b/v1/simulate',
    }

    # Paths of our own webhook endpoints, relative to BASE_URL
    CALLBACK_PATHS = {
        'stk_callback': '/api/mpesa/stk-callback/',
        'c2b_validation': '/api/mpesa/c2b/validation/',
        'c2b_confirmation': '/api/mpesa/c2b/confirmation/',
    }

    @classmethod
    def is_production(cls):
        return settings.MPESA_ENVIRONMENT == cls.ENV_PRODUCTION

    @classmethod
    def get_base_url(cls):
        """Get base URL based on environment"""
        if cls.is_production():
            return cls.PRODUCTION_BASE_URL
        return cls.SANDBOX_BASE_URL

    @classmethod
    def get_endpoint(cls, endpoint_name):
        """Get complete endpoint URL"""
        return cls.get_base_url() + cls.ENDPOINTS.get(endpoint_name, '')

    @classmethod
    def get_shortcode(cls):
        if cls.is_production():
            return settings.MPESA_SHORTCODE
        return cls.SANDBOX_SHORTCODE

    @classmethod
    def get_passkey(cls):
        if cls.is_production():
            return settings.MPESA_PASSKEY
        return cls.SANDBOX_PASSKEY

    @classmethod
    def get_till_number(cls):
        return settings.MPESA_TILL_NUMBER

    @classmethod
    def get_callback_url(cls, name):
        return settings.BASE_URL.rstrip('/') + cls.CALLBACK_PATHS[name]
