"""
Test settings: in-memory SQLite, eager Celery, locmem email, быстрый hasher.
"""
from .settings import *  # noqa: F401,F403

DEBUG = False
ALLOWED_HOSTS = ['*']

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

FEATURE_SMS_NOTIFICATIONS = False
FEATURE_EMAIL_NOTIFICATIONS = True

# Throttling не должен мешать тестам кроме явных проверок
REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    'DEFAULT_THROTTLE_CLASSES': [],
    'DEFAULT_THROTTLE_RATES': {
        **REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'],  # noqa: F405
        'login': '1000/min',
        'register': '1000/min',
        'password_reset': '1000/min',
    },
}

NOTIFICATION_STREAM_POLL_SECONDS = 0
NOTIFICATION_STREAM_MAX_SECONDS = 0

LOGGING['root']['level'] = 'WARNING'  # noqa: F405
