"""
Django settings for the CampusIQ backend.

Base settings. Environment overlays (settings_dev, settings_production,
settings_test) star-import this module and override what they need.
"""
import os
from datetime import timedelta
from pathlib import Path

from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    return os.environ.get(name, str(default)).lower() in ('true', '1', 'yes')


def _env_list(name, default=''):
    return [item.strip() for item in os.environ.get(name, default).split(',') if item.strip()]


SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-insecure-campusiq-key-change-me')
DEBUG = _env_bool('DEBUG', False)
ALLOWED_HOSTS = _env_list('ALLOWED_HOSTS', 'localhost,127.0.0.1')

VERSION = os.environ.get('APP_VERSION', '1.0.0')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'rest_framework_simplejwt',
    # CampusIQ apps
    'tenants',
    'accounts',
    'audit',
    'notifications',
    'students',
    'attendance',
    'fees',
    'exams',
    'messaging',
    'visitors',
    'reports',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'tenants.middleware.SchoolMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'campusiq.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'campusiq.wsgi.application'
ASGI_APPLICATION = 'campusiq.asgi.application'

# ============================================================
# Database: SQLite локально, PostgreSQL если задан POSTGRES_DB
# ============================================================
if os.environ.get('POSTGRES_DB'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ['POSTGRES_DB'],
            'USER': os.environ.get('POSTGRES_USER', 'campusiq'),
            'PASSWORD': os.environ.get('POSTGRES_PASSWORD', ''),
            'HOST': os.environ.get('POSTGRES_HOST', '127.0.0.1'),
            'PORT': os.environ.get('POSTGRES_PORT', '5432'),
            'CONN_MAX_AGE': int(os.environ.get('POSTGRES_CONN_MAX_AGE', '60')),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

AUTH_USER_MODEL = 'accounts.User'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 8}},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get('TIME_ZONE', 'Asia/Kolkata')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ============================================================
# REST framework / JWT
# ============================================================
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_PAGINATION_CLASS': 'campusiq.pagination.StandardPagination',
    'PAGE_SIZE': 50,
    'DEFAULT_THROTTLE_CLASSES': [
        'rest_framework.throttling.UserRateThrottle',
        'rest_framework.throttling.AnonRateThrottle',
    ],
    'DEFAULT_THROTTLE_RATES': {
        'user': os.environ.get('THROTTLE_USER', '600/min'),
        'anon': os.environ.get('THROTTLE_ANON', '60/min'),
        'login': os.environ.get('THROTTLE_LOGIN', '10/min'),
        'register': os.environ.get('THROTTLE_REGISTER', '5/hour'),
        'password_reset': os.environ.get('THROTTLE_PASSWORD_RESET', '5/hour'),
    },
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=int(os.environ.get('JWT_ACCESS_MINUTES', '60'))),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=int(os.environ.get('JWT_REFRESH_DAYS', '7'))),
    'AUTH_HEADER_TYPES': ('Bearer',),
}

# Lockout после неудачных логинов
LOGIN_MAX_ATTEMPTS = int(os.environ.get('LOGIN_MAX_ATTEMPTS', '5'))
LOGIN_LOCKOUT_MINUTES = int(os.environ.get('LOGIN_LOCKOUT_MINUTES', '15'))

# Срок жизни ссылок сброса пароля, подтверждения email и активации (секунды)
PASSWORD_RESET_TIMEOUT = int(os.environ.get('PASSWORD_RESET_TIMEOUT', str(60 * 60 * 24)))

# ============================================================
# Multi-tenant
# ============================================================
PLATFORM_DOMAINS = _env_list('PLATFORM_DOMAINS', 'campusiq.app,www.campusiq.app')
SCHOOL_CACHE_TTL = int(os.environ.get('SCHOOL_CACHE_TTL', '300'))
TRIAL_DAYS = int(os.environ.get('TRIAL_DAYS', '14'))

PLAN_LIMITS = {
    'starter': {'max_students': 100, 'max_teachers': 10},
    'basic': {'max_students': 500, 'max_teachers': 50},
    'pro': {'max_students': 2000, 'max_teachers': 200},
    'enterprise': {'max_students': 100000, 'max_teachers': 10000},
}

FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:3000')
DEFAULT_CURRENCY = os.environ.get('DEFAULT_CURRENCY', 'INR')

# ============================================================
# Notifications (email / SMS)
# ============================================================
FEATURE_SMS_NOTIFICATIONS = _env_bool('FEATURE_SMS_NOTIFICATIONS', False)
FEATURE_EMAIL_NOTIFICATIONS = _env_bool('FEATURE_EMAIL_NOTIFICATIONS', True)

EMAIL_BACKEND = os.environ.get('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = os.environ.get('EMAIL_HOST', 'localhost')
EMAIL_PORT = int(os.environ.get('EMAIL_PORT', '587'))
EMAIL_HOST_USER = os.environ.get('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.environ.get('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = _env_bool('EMAIL_USE_TLS', True)
DEFAULT_FROM_EMAIL = os.environ.get('DEFAULT_FROM_EMAIL', 'CampusIQ <noreply@campusiq.app>')

TWILIO_ACCOUNT_SID = os.environ.get('TWILIO_ACCOUNT_SID', '')
TWILIO_AUTH_TOKEN = os.environ.get('TWILIO_AUTH_TOKEN', '')
TWILIO_PHONE_NUMBER = os.environ.get('TWILIO_PHONE_NUMBER', '')
SMS_DEFAULT_COUNTRY_CODE = os.environ.get('SMS_DEFAULT_COUNTRY_CODE', '91')

# Realtime feed (SSE)
NOTIFICATION_STREAM_POLL_SECONDS = int(os.environ.get('NOTIFICATION_STREAM_POLL_SECONDS', '5'))
NOTIFICATION_STREAM_MAX_SECONDS = int(os.environ.get('NOTIFICATION_STREAM_MAX_SECONDS', '300'))

AUDIT_RETENTION_DAYS = int(os.environ.get('AUDIT_RETENTION_DAYS', '365'))

# ============================================================
# Celery
# ============================================================
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', 'redis://127.0.0.1:6379/0')
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = _env_bool('CELERY_TASK_ALWAYS_EAGER', False)
CELERY_TASK_IGNORE_RESULT = True
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    'mark-overdue-fee-payments': {
        'task': 'fees.tasks.mark_overdue_payments',
        'schedule': crontab(hour=1, minute=0),
    },
    'send-fee-reminders': {
        'task': 'fees.tasks.send_fee_reminders',
        'schedule': crontab(hour=9, minute=0),
    },
    'expire-trials': {
        'task': 'tenants.tasks.expire_trials',
        'schedule': crontab(minute=0),
    },
    'daily-attendance-report': {
        'task': 'attendance.tasks.daily_attendance_report',
        'schedule': crontab(hour=18, minute=0),
    },
    'purge-old-audit-logs': {
        'task': 'audit.tasks.purge_old_audit_logs',
        'schedule': crontab(hour=3, minute=30, day_of_week='sun'),
    },
}

# ============================================================
# Logging
# ============================================================
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '[{asctime}] {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'campusiq.safe_logging.ThreadSafeStreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'WARNING'),
            'propagate': False,
        },
    },
}

from .sentry_config import init_sentry  # noqa: E402

init_sentry()
