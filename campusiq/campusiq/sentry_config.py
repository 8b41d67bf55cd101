"""
Sentry integration для Django.

Включается переменной окружения SENTRY_DSN; без неё init_sentry() ничего не делает.
Вызывается в конце settings.py.
"""
import logging
import os

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = ('password', 'old_password', 'new_password', 'token', 'refresh', 'access', 'secret')


def init_sentry():
    """Инициализирует Sentry SDK. Возвращает True если DSN задан."""
    sentry_dsn = os.environ.get('SENTRY_DSN', '')

    if not sentry_dsn:
        logger.info("Sentry: DSN not configured, skipping initialization")
        return False

    environment = os.environ.get('DJANGO_ENV', 'production')
    if os.environ.get('DEBUG', 'False').lower() in ('true', '1', 'yes'):
        environment = 'development'

    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[
            DjangoIntegration(transaction_style='url'),
            CeleryIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        environment=environment,
        release=os.environ.get('APP_VERSION', 'unknown'),
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.1')),
        send_default_pii=False,
        before_send=before_send_callback,
    )

    logger.info(f"Sentry: initialized for {environment} environment")
    return True


def before_send_callback(event, hint):
    """Фильтрует 404 и маскирует пароли/токены в теле запроса."""
    if 'exc_info' in hint:
        exc_type, _, _ = hint['exc_info']
        if exc_type.__name__ in ('Http404', 'NotFound'):
            return None

    request_data = event.get('request') or {}
    data = request_data.get('data')
    if isinstance(data, dict):
        for key in SENSITIVE_KEYS:
            if key in data:
                data[key] = '[FILTERED]'

    headers = request_data.get('headers')
    if isinstance(headers, dict) and 'Authorization' in headers:
        headers['Authorization'] = '[FILTERED]'

    return event


def set_user_context(user):
    """Контекст пользователя для последующих событий (вызывается из school scope)."""
    if user and user.is_authenticated:
        sentry_sdk.set_user({
            'id': user.pk,
            'email': user.email,
            'role': getattr(user, 'role', 'unknown'),
        })
        school_id = getattr(user, 'school_id', None)
        if school_id:
            sentry_sdk.set_tag('school_id', str(school_id))
    else:
        sentry_sdk.set_user(None)
