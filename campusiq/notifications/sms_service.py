"""
SMS сервис: отправка через Twilio REST API.
"""
import logging
import re

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class SMSService:
    """Сервис для отправки SMS через Twilio Messages API."""

    API_URL = 'https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json'

    def __init__(self):
        self.account_sid = getattr(settings, 'TWILIO_ACCOUNT_SID', '')
        self.auth_token = getattr(settings, 'TWILIO_AUTH_TOKEN', '')
        self.from_number = getattr(settings, 'TWILIO_PHONE_NUMBER', '')
        self.country_code = getattr(settings, 'SMS_DEFAULT_COUNTRY_CODE', '91')

        self.enabled = bool(self.account_sid and self.auth_token and self.from_number)
        if not self.enabled:
            logger.warning('Twilio credentials not configured. SMS sending will be disabled.')

    @staticmethod
    def format_e164(phone, default_country_code='91'):
        """
        Привести номер к E.164.

            9876543210      → +919876543210
            09876543210     → +919876543210
            919876543210    → +919876543210
            +14155238886    → +14155238886
        """
        cleaned = re.sub(r'[^\d+]', '', phone or '')
        if re.fullmatch(r'\+\d{10,15}', cleaned):
            return cleaned

        cleaned = cleaned.lstrip('+')
        if cleaned.startswith('0'):
            cleaned = cleaned[1:]
        if cleaned.startswith(default_country_code) and len(cleaned) >= 12:
            return f'+{cleaned}'
        if len(cleaned) == 10:
            return f'+{default_country_code}{cleaned}'
        return f'+{cleaned}'

    def send_sms(self, phone_number, message):
        """
        Отправить SMS.

        Returns:
            dict: {'success': bool, 'message': str, 'sid': str|None, 'retryable': bool}
        """
        if not self.enabled:
            return {'success': False, 'message': 'SMS service not configured', 'sid': None, 'retryable': False}

        to = self.format_e164(phone_number, self.country_code)
        try:
            response = requests.post(
                self.API_URL.format(sid=self.account_sid),
                data={'To': to, 'From': self.from_number, 'Body': message},
                auth=(self.account_sid, self.auth_token),
                timeout=10,
            )
        except requests.RequestException as e:
            logger.error(f'Network error sending SMS to {to}: {e}')
            return {'success': False, 'message': f'Network error: {e}', 'sid': None, 'retryable': True}

        if response.status_code in (200, 201):
            sid = response.json().get('sid')
            logger.info(f'SMS sent to {to}. SID: {sid}')
            return {'success': True, 'message': 'SMS sent', 'sid': sid, 'retryable': False}

        try:
            error = response.json().get('message', response.text)
        except ValueError:
            error = response.text
        logger.error(f'Twilio error {response.status_code} for {to}: {error}')
        return {
            'success': False,
            'message': error,
            'sid': None,
            'retryable': response.status_code == 429 or response.status_code >= 500,
        }
