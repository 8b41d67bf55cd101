"""
Email сервис: HTML + текстовые письма через Django mail.
"""
import logging
from concurrent.futures import ThreadPoolExecutor

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils.html import strip_tags

logger = logging.getLogger(__name__)

# Пул потоков для fire-and-forget отправки, когда брокер Celery недоступен
_email_executor = ThreadPoolExecutor(max_workers=3, thread_name_prefix='email_sender')


def render_email(template_name, context):
    """Отрендерить notifications/email/<template_name>.html → (html, text)."""
    html = render_to_string(f'notifications/email/{template_name}.html', {
        'frontend_url': settings.FRONTEND_URL,
        **context,
    })
    return html, strip_tags(html).strip()


class EmailService:
    """Сервис для отправки email"""

    def __init__(self):
        self.from_email = getattr(settings, 'DEFAULT_FROM_EMAIL', 'noreply@campusiq.app')
        self.enabled = getattr(settings, 'EMAIL_BACKEND', '') != 'django.core.mail.backends.dummy.EmailBackend'

        if not self.enabled:
            logger.warning('Email backend not configured. Email sending will be disabled.')

    def send(self, to, subject, message, html_message=None, async_send=False):
        """
        Отправить письмо.

        Args:
            to (str): адрес получателя
            subject (str): тема
            message (str): текстовая версия
            html_message (str|None): HTML версия
            async_send (bool): отправить в фоне через пул потоков

        Returns:
            dict: {'success': bool, 'message': str}
        """
        if not self.enabled:
            return {'success': False, 'message': 'Email service not configured'}

        if async_send:
            _email_executor.submit(self._send_sync, to, subject, message, html_message)
            logger.info(f'Email "{subject}" queued for async sending to {to}')
            return {'success': True, 'message': 'Email queued for sending'}

        return self._send_sync(to, subject, message, html_message)

    def _send_sync(self, to, subject, message, html_message=None):
        try:
            msg = EmailMultiAlternatives(subject, message, self.from_email, [to])
            if html_message:
                msg.attach_alternative(html_message, 'text/html')
            msg.send(fail_silently=False)
            logger.info(f'Email "{subject}" sent to {to}')
            return {'success': True, 'message': 'Email sent'}
        except Exception as e:
            logger.error(f'Failed to send email "{subject}" to {to}: {e}')
            return {'success': False, 'message': str(e)}
