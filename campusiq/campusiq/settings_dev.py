"""
Development settings - локальная разработка
"""
from .settings import *  # noqa: F401,F403

DEBUG = True
ALLOWED_HOSTS = ['*']

FEATURE_SMS_NOTIFICATIONS = False
FEATURE_EMAIL_NOTIFICATIONS = True

FRONTEND_URL = 'http://localhost:3000'

# Email в консоль
EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

# Без брокера: задачи выполняются синхронно
CELERY_TASK_ALWAYS_EAGER = True

LOG_LEVEL = 'DEBUG'
LOGGING['root']['level'] = LOG_LEVEL  # noqa: F405

print("🔧 Settings: Development (локальная разработка)")
