"""Celery tasks for SMS and email delivery."""
import logging

from celery import shared_task

from .email_service import EmailService
from .sms_service import SMSService

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_sms_task(self, phone_number, message):
    """Deliver one SMS; network and 5xx/429 errors are retried."""
    result = SMSService().send_sms(phone_number, message)
    if not result['success'] and result.get('retryable'):
        raise self.retry()
    return result


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_email_task(self, to, subject, message, html_message=None):
    """Deliver one email via the configured Django backend."""
    result = EmailService().send(to, subject, message, html_message)
    if not result['success'] and result['message'] != 'Email service not configured':
        raise self.retry()
    return result
