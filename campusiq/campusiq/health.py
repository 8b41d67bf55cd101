"""
Health Check Endpoints for Monitoring
=====================================
Используется системой мониторинга / оркестратором для проверки состояния приложения.
"""
import time

from django.conf import settings
from django.db import connection
from django.http import JsonResponse


def health_check(request):
    """
    Health check endpoint для мониторинга.

    Возвращает 200 если всё работает, 503 если база недоступна.
    """
    status = {
        'status': 'healthy',
        'timestamp': time.time(),
        'version': getattr(settings, 'VERSION', '1.0.0'),
        'checks': {}
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
        status['checks']['database'] = 'ok'
    except Exception as e:
        status['status'] = 'unhealthy'
        status['checks']['database'] = f'error: {str(e)[:100]}'

    status['checks']['sms'] = 'enabled' if getattr(settings, 'FEATURE_SMS_NOTIFICATIONS', False) else 'disabled'
    status['checks']['email'] = 'enabled' if getattr(settings, 'FEATURE_EMAIL_NOTIFICATIONS', False) else 'disabled'

    http_status = 200 if status['status'] == 'healthy' else 503
    return JsonResponse(status, status=http_status)


def ready_check(request):
    """
    Readiness probe - проверяет готовность приложения обслуживать запросы.
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        return JsonResponse({'ready': True})
    except Exception:
        return JsonResponse({'ready': False}, status=503)


def live_check(request):
    """
    Liveness probe - проверяет что процесс жив.
    """
    return JsonResponse({'alive': True, 'timestamp': time.time()})
