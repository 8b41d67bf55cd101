"""
Production settings.
Всё секретное приходит из окружения; без SECRET_KEY процесс не стартует.
"""
import os

from django.core.exceptions import ImproperlyConfigured

from .settings import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = os.environ.get('SECRET_KEY', '')
if not SECRET_KEY:
    raise ImproperlyConfigured('SECRET_KEY must be set in production')

ALLOWED_HOSTS = [h.strip() for h in os.environ.get('ALLOWED_HOSTS', '').split(',') if h.strip()]
for domain in PLATFORM_DOMAINS:  # noqa: F405
    ALLOWED_HOSTS.extend([domain, f'.{domain}'])

# === Security ===
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
SECURE_SSL_REDIRECT = os.environ.get('SECURE_SSL_REDIRECT', 'True').lower() in ('true', '1', 'yes')
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'

FEATURE_SMS_NOTIFICATIONS = os.environ.get('FEATURE_SMS_NOTIFICATIONS', 'True').lower() in ('true', '1', 'yes')

print("🚀 Settings: Production")
