"""
Africa's Talking SMS gateway
"""
import logging

import requests
from django.conf import settings

from core.utils import normalize_phone

logger = logging.getLogger('billing')

AT_SMS_URL = 'https://api.africastalking.com/version1/messaging'
AT_SANDBOX_SMS_URL = 'https://api.sandbox.africastalking.com/version1/messaging'


def sms_configured():
    return bool(settings.AT_API_KEY)


def send_sms(phone_number, message):
    """
    Send one SMS. Returns True when the gateway accepted it for the
    recipient. Without an API key the message is only logged.
    """
    phone = '+' + normalize_phone(phone_number)

    if not sms_configured():
        logger.info(f"SMS (simulated) to {phone}: {message}")
        return False

    url = AT_SANDBOX_SMS_URL if settings.AT_USERNAME == 'sandbox' else AT_SMS_URL
    headers = {
        'apiKey': settings.AT_API_KEY,
        'Accept': 'application/json',
        'Content-Type': 'application/x-www-form-urlencoded',
    }
    payload = {
        'username': settings.AT_USERNAME,
        'to': phone,
        'message': message,
        'from': settings.AT_SENDER_ID,
    }

    try:
        response = requests.post(url, data=payload, headers=headers, timeout=30)
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"SMS to {phone} failed: {str(e)}")
        return False
    except ValueError:
        logger.error(f"SMS gateway returned invalid JSON for {phone}")
        return False

    recipients = data.get('SMSMessageData', {}).get('Recipients') or []
    sent = bool(recipients) and recipients[0].get('status') == 'Success'
    if sent:
        logger.info(f"SMS sent to {phone}")
    else:
        logger.warning(f"SMS to {phone} not accepted: {data}")
    return sent
